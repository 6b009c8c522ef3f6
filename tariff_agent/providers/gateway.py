"""模型网关。

控制器对模型的全部要求：给定最近一条用户消息、系统提示词和操作 schema，
返回自由文本，或者恰好一个操作请求（名称 + 原始参数文本）。
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from tariff_agent.domain.exceptions import BusinessError, GatewayFailure
from tariff_agent.domain.models import ChatMessage, ChatRequest
from tariff_agent.infrastructure.logging.logger import logger
from tariff_agent.providers.base import ProviderClient
from tariff_agent.tools.definitions import OperationRequest, ToolDef


@dataclass(frozen=True)
class GatewayReply:
    text: str
    operation: Optional[OperationRequest] = None


class ModelGateway:
    def __init__(
        self,
        provider: ProviderClient,
        model: str,
        tools: List[ToolDef],
        temperature: float = 0.1,
        timeout: float = 30.0,
    ):
        self._provider = provider
        self._model = model
        self._tools = list(tools)
        self._temperature = temperature
        self._timeout = timeout

    async def complete(self, user_message: str, system_prompt: str) -> GatewayReply:
        req = ChatRequest(
            provider=self._provider.name,
            model=self._model,
            messages=[
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_message),
            ],
            temperature=self._temperature,
            tools=self._tools,
            tool_choice="auto",
        )
        try:
            result = await asyncio.wait_for(self._provider.chat(req), timeout=self._timeout)
        except asyncio.TimeoutError:
            raise GatewayFailure(f"Model gateway timed out after {self._timeout}s", code="GATEWAY_TIMEOUT")
        except BusinessError:
            raise
        except Exception as exc:
            raise GatewayFailure(
                "Model gateway call failed",
                provider=self._provider.name,
                cause=str(exc) or type(exc).__name__,
            ) from exc
        if not result.choices:
            raise GatewayFailure("Model gateway returned no choices")

        message = result.choices[0].message
        requests = message.operation_requests or []
        if len(requests) > 1:
            logger.warning(
                "gateway.extra_operations_ignored",
                extra={"extra": {"kept": requests[0].name, "ignored": [r.name for r in requests[1:]]}},
            )
        return GatewayReply(text=message.content or "", operation=requests[0] if requests else None)
