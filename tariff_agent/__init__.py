"""Tariff Agent 顶层包。

该包提供海关 HS 编码分类对话 Agent 的核心实现：
按阶段构造提示词、调用模型网关、把模型请求的操作调度到分类库，
并在每一轮返回新的会话状态。会话状态始终由调用方持有。
"""

from tariff_agent.agents.dialogue_controller import DialogueController, TurnResult
from tariff_agent.domain.taxonomy import ConversationState, Phase, TaxonomyNode

__all__ = ["DialogueController", "TurnResult", "ConversationState", "Phase", "TaxonomyNode"]
