"""Provider 抽象接口。

模型网关不直接依赖具体厂商的 HTTP 调用，而是依赖此协议：
负责将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
"""

from typing import Protocol

from tariff_agent.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    - name: Provider 名称，用于日志。
    - chat(req): 执行一次非流式对话调用，返回统一的 ChatResult。
    """

    name: str

    async def chat(self, req: ChatRequest) -> ChatResult:
        ...
