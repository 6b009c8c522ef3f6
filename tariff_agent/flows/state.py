"""State definition for the per-turn LangGraph flow."""

from __future__ import annotations

from typing import List, Optional, TypedDict, Union

from tariff_agent.domain.taxonomy import ConversationState, TaxonomyNode
from tariff_agent.providers.gateway import GatewayReply
from tariff_agent.tools.definitions import Outcome


class TurnState(TypedDict, total=False):
    """Values flowing through one turn. Lives only for the duration of one invocation."""

    trace_id: str
    user_message: str
    conversation: ConversationState
    system_prompt: str
    reply: Optional[GatewayReply]
    outcome: Optional[Outcome]
    response: Union[str, List[TaxonomyNode]]
    next_conversation: ConversationState
