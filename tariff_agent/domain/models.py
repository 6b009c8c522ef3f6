"""模型网关使用的统一对话数据模型。

- ChatMessage: 一条发给 / 来自 LLM 的消息。
- ChatRequest: 发给底层 Provider 的完整请求。
- ChatResult: 从 Provider 响应解析出的统一结果。

所有 Provider 适配器都只依赖这些模型，并负责在各自的 API JSON 与这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List, TYPE_CHECKING

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from tariff_agent.tools.definitions import OperationRequest, ToolDef


Role = Literal["system", "user", "assistant", "tool"]


@dataclass
class ChatMessage:
    """一条对话消息。

    - operation_requests: 当 role 为 "assistant" 且模型触发函数调用时，
      这里保存模型发起的操作请求（参数保持原始文本，由调度器解析）。
    """

    role: Role
    content: str
    operation_requests: Optional[List["OperationRequest"]] = None


@dataclass
class ChatRequest:
    provider: str  # 逻辑 Provider 名，如 "openai"
    model: str  # 逻辑模型名，如 "hs-chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]
    temperature: float = 0.1
    max_tokens: Optional[int] = None
    tools: Optional[List["ToolDef"]] = None
    tool_choice: Literal["auto", "none", "required"] = "auto"


@dataclass
class ChatUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果，raw 保留原始响应 JSON 以便调试。"""

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Dict[str, Any] = field(default_factory=dict)
