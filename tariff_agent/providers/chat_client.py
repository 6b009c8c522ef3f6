"""OpenAI 兼容 Provider 适配器。

OpenAI、Kimi（Moonshot）与 GLM（BigModel）都提供同构的 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

本模块负责：

1. 接收统一的 ChatRequest，转换为 chat/completions 请求 JSON（含 function tools）。
2. 通过 httpx.AsyncClient 发送请求并处理网络/API 异常。
3. 将响应 JSON 解析为统一的 ChatResult；函数调用的 arguments 保持原始文本，
   由调度器负责解析与校验。
"""

import json
from typing import Any, Dict, List

import httpx

from tariff_agent.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from tariff_agent.domain.models import (
    ChatChoice,
    ChatMessage,
    ChatRequest,
    ChatResult,
    ChatUsage,
)
from tariff_agent.providers.registry import ModelConfig, ProviderConfig
from tariff_agent.tools.definitions import OperationRequest, ToolDef


class ChatCompletionsClient:
    """OpenAI 兼容 Provider 的客户端实现。"""

    def __init__(self, provider_cfg: ProviderConfig, settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._cfg = provider_cfg
        self._settings = settings
        self.name = provider_cfg.name

    async def chat(self, req: ChatRequest) -> ChatResult:
        api_key = getattr(self._settings, self._cfg.api_key_field, None)
        if not api_key:
            raise ValidationError(
                f"{self._cfg.api_key_field.upper()} not set",
                code="MISSING_API_KEY",
            )
        try:
            model_cfg = self._cfg.models[req.model]
        except KeyError:
            raise ValidationError(f"Unknown model {req.model!r} for provider {self.name!r}")
        payload = self._build_payload(req, model_cfg)
        base = getattr(self._settings, self._cfg.base_url_field, None) or self._cfg.base_url
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{base}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(str(e) or type(e).__name__)
        if resp.status_code == 429:
            raise RateLimitError(f"{self.name} rate limit")
        if resp.status_code >= 400:
            raise ApiError(
                f"{self.name} API error (HTTP {resp.status_code})",
                upstream_status=resp.status_code,
                body=resp.text[:500],
            )
        try:
            data = resp.json()
        except ValueError:
            raise ApiError(f"{self.name} returned a non-JSON body", upstream_status=resp.status_code)
        return self._parse_response(data, req)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        payload = {
            "model": model_cfg.provider_model,
            "messages": [self._message_to_payload(m) for m in req.messages],
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
        }
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools]
            payload["tool_choice"] = req.tool_choice
        return payload

    def _parse_response(self, data: Any, req: ChatRequest) -> ChatResult:
        data = self._mapping(data, "response body")
        raw_choices = data.get("choices") or []
        if not isinstance(raw_choices, list):
            raise ApiError(f"{self.name} returned malformed choices")
        choices: List[ChatChoice] = []
        for i, raw_choice in enumerate(raw_choices):
            ch = self._mapping(raw_choice, "choice")
            msg = self._mapping(ch.get("message") or {}, "message")
            choices.append(
                ChatChoice(
                    index=ch.get("index", i),
                    message=self._build_chat_message(msg),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        usage_raw = data.get("usage")
        if not isinstance(usage_raw, dict):
            # 格式异常按缺失处理
            usage_raw = {}
        usage = ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
        return ChatResult(provider=self.name, model=req.model, choices=choices, usage=usage, raw=data)

    def _mapping(self, value: Any, what: str) -> Dict[str, Any]:
        if not isinstance(value, dict):
            raise ApiError(f"{self.name} returned a malformed {what}")
        return value

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        """把内部的 ToolDef 转成 function tool 描述。"""

        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in tool.params.items():
            properties[name] = dict(param.schema or {"type": "string"})
            if param.description:
                properties[name]["description"] = param.description
            if param.required:
                required.append(name)
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    @staticmethod
    def _raw_arguments(raw: Any) -> str:
        if raw is None:
            return ""
        if isinstance(raw, str):
            return raw
        # 个别厂商直接返回对象而不是 JSON 字符串
        return json.dumps(raw, ensure_ascii=False)

    def _build_chat_message(self, payload: Dict[str, Any]) -> ChatMessage:
        requests: List[OperationRequest] = []
        tool_calls = payload.get("tool_calls") or []
        if not isinstance(tool_calls, list):
            raise ApiError(f"{self.name} returned malformed tool_calls")
        for idx, raw_call in enumerate(tool_calls):
            call = self._mapping(raw_call, "tool call")
            func = self._mapping(call.get("function") or {}, "tool call")
            requests.append(
                OperationRequest(
                    id=call.get("id") or f"tool_call_{idx}",
                    name=func.get("name") or call.get("name") or "",
                    arguments=self._raw_arguments(func.get("arguments")),
                )
            )

        # 部分模型仍会返回旧版 function_call 字段
        function_call = payload.get("function_call")
        if function_call:
            function_call = self._mapping(function_call, "function_call")
            requests.append(
                OperationRequest(
                    id=function_call.get("id") or "function_call",
                    name=function_call.get("name") or "",
                    arguments=self._raw_arguments(function_call.get("arguments")),
                )
            )
        content = payload.get("content") or ""
        if not isinstance(content, str):
            raise ApiError(f"{self.name} returned non-text message content")
        return ChatMessage(
            role=payload.get("role") or "assistant",
            content=content,
            operation_requests=requests or None,
        )

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        return {"role": message.role, "content": message.content}
