"""对话控制器。

每一轮：按阶段生成系统提示词 -> 调用模型网关 -> （如有操作请求）调度到分类库
-> 折叠出下一个会话状态。

控制器实例在轮次之间是无状态的：会话状态由调用方传入、由控制器返回，
实例上只保存不可变的协作对象，因此同一实例可以被并发请求共享。
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union
from uuid import uuid4

from tariff_agent.domain.exceptions import BusinessError, InvalidRequest
from tariff_agent.domain.taxonomy import (
    ConversationState,
    Message,
    TaxonomyNode,
    TaxonomyStore,
    latest_user_message,
)
from tariff_agent.flows.graph import build_graph
from tariff_agent.flows.state import TurnState
from tariff_agent.infrastructure.logging.logger import logger
from tariff_agent.prompts import PromptBuilder
from tariff_agent.providers.gateway import ModelGateway
from tariff_agent.tools.dispatcher import FunctionDispatcher


@dataclass(frozen=True)
class TurnResult:
    response: Union[str, List[TaxonomyNode]]
    state: ConversationState

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.response, str):
            response: Any = self.response
        else:
            response = [node.to_dict() for node in self.response]
        return {"response": response, "stateObject": self.state.to_dict()}


class DialogueController:
    def __init__(
        self,
        gateway: ModelGateway,
        store: TaxonomyStore,
        prompt_builder: Optional[PromptBuilder] = None,
        default_top_k: int = 5,
        max_top_k: int = 25,
    ):
        self._dispatcher = FunctionDispatcher(store, default_top_k=default_top_k, max_top_k=max_top_k)
        self._graph = build_graph(prompt_builder or PromptBuilder(), gateway, self._dispatcher)

    async def run_turn(
        self,
        messages: Sequence[Message],
        state: Optional[ConversationState] = None,
    ) -> TurnResult:
        """执行一轮对话。

        Args:
            messages: 完整对话历史，只有最近一条用户消息会转发给模型
            state: 调用方持有的会话状态，缺省为初始状态

        Returns:
            TurnResult(response, state)；失败时抛出 BusinessError，调用方原状态保持不变
        """
        if not messages:
            raise InvalidRequest("Messages are required")
        conversation = state or ConversationState.initial()
        user_message = latest_user_message(messages)

        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "phase": conversation.phase.value,
        }
        turn: TurnState = {
            "trace_id": log_ctx["trace_id"],
            "user_message": user_message.content,
            "conversation": conversation,
            "reply": None,
            "outcome": None,
        }
        self._log(logging.INFO, "Turn started", log_ctx, results=len(conversation.current_results))
        try:
            final = await self._graph.ainvoke(turn)
        except BusinessError as exc:
            fields = dict(exc.extra)
            fields.update(error_code=exc.code, error=exc.message)
            self._log(logging.ERROR, "Turn failed", log_ctx, **fields)
            raise

        result = TurnResult(response=final["response"], state=final["next_conversation"])
        reply = final.get("reply")
        self._log(
            logging.INFO,
            "Turn completed",
            log_ctx,
            operation=reply.operation.name if reply and reply.operation else None,
            next_phase=result.state.phase.value,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return result

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
