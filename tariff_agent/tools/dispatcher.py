import json
import re
from typing import Any, Dict, Mapping

from tariff_agent.domain.exceptions import (
    BusinessError,
    InvalidArgument,
    MalformedOperationArguments,
    UnsupportedOperation,
)
from tariff_agent.domain.taxonomy import ConversationState, Phase, TaxonomyStore
from tariff_agent.infrastructure.logging.logger import logger
from .definitions import (
    ConfirmOperation,
    ConfirmOutcome,
    ExpandOperation,
    ExpandOutcome,
    Operation,
    OperationName,
    OperationRequest,
    Outcome,
    SearchOperation,
    SearchOutcome,
)

# ASCII 十进制整数，可带负号
_INT_TEXT = re.compile(r"-?[0-9]+")


def parse_arguments(raw: Any) -> Dict[str, Any]:
    """把模型返回的参数文本解析为键值对象；空文本视为无参数。"""

    if isinstance(raw, Mapping):
        return dict(raw)
    if raw is None:
        return {}
    if not isinstance(raw, str):
        raise MalformedOperationArguments(f"Arguments must be text, got {type(raw).__name__}")
    text = raw.strip()
    if not text:
        return {}
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedOperationArguments(f"Arguments are not valid JSON: {exc.msg}")
    if not isinstance(payload, dict):
        raise MalformedOperationArguments("Arguments must be a JSON object")
    return payload


def _coerce_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidArgument(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INT_TEXT.fullmatch(value.strip()):
        return int(value.strip())
    raise InvalidArgument(f"{name} must be an integer")


class FunctionDispatcher:
    """三种操作的解析、校验与执行。

    操作名先映射到封闭的 OperationName 枚举，再按枚举成员逐一分支，
    不存在按字符串查表调用处理函数的路径。
    """

    def __init__(self, store: TaxonomyStore, default_top_k: int = 5, max_top_k: int = 25):
        self._store = store
        self._default_top_k = default_top_k
        self._max_top_k = max_top_k

    def parse(self, request: OperationRequest, phase: Phase) -> Operation:
        try:
            name = OperationName(request.name)
        except ValueError:
            raise UnsupportedOperation(
                f"Operation {request.name!r} is not supported",
                operation=request.name,
            )
        args = parse_arguments(request.arguments)

        if name is OperationName.SEARCH:
            return self._parse_search(args)
        if phase is not Phase.TRAVERSE:
            raise UnsupportedOperation(
                f"Operation {name.value!r} is not allowed in phase {phase.value!r}",
                operation=name.value,
                phase=phase.value,
            )
        if name is OperationName.EXPAND:
            if "parentId" not in args:
                raise InvalidArgument("expand requires parentId")
            return ExpandOperation(parent_id=_coerce_int(args["parentId"], "parentId"))
        if name is OperationName.CONFIRM:
            return ConfirmOperation()
        raise UnsupportedOperation(f"Operation {request.name!r} is not supported")

    def _parse_search(self, args: Dict[str, Any]) -> SearchOperation:
        query = args.get("query")
        if not isinstance(query, str) or not query.strip():
            raise InvalidArgument("search requires a non-empty query")
        raw_top_k = args.get("topK")
        top_k = self._default_top_k if raw_top_k is None else _coerce_int(raw_top_k, "topK")
        if top_k <= 0:
            raise InvalidArgument("topK must be a positive integer")
        if top_k > self._max_top_k:
            logger.info(
                "dispatcher.top_k_clamped",
                extra={"extra": {"requested": top_k, "max": self._max_top_k}},
            )
            top_k = self._max_top_k
        return SearchOperation(query=query.strip(), top_k=top_k)

    async def execute(self, operation: Operation, state: ConversationState) -> Outcome:
        if isinstance(operation, SearchOperation):
            hits = await self._store.search_by_text(operation.query, operation.top_k)
            return SearchOutcome(hits=tuple(rank_hits(hits)[: operation.top_k]))
        if isinstance(operation, ExpandOperation):
            children = await self._store.children_of(operation.parent_id)
            kept = tuple(c for c in children if c.parent_id == operation.parent_id)
            if len(kept) != len(children):
                logger.warning(
                    "dispatcher.foreign_children_dropped",
                    extra={"extra": {"parent_id": operation.parent_id, "dropped": len(children) - len(kept)}},
                )
            return ExpandOutcome(parent_id=operation.parent_id, children=kept)
        if isinstance(operation, ConfirmOperation):
            return ConfirmOutcome(node=state.current_node)
        raise UnsupportedOperation(f"Unknown operation {operation!r}")

    async def dispatch(self, request: OperationRequest, state: ConversationState) -> Outcome:
        try:
            return await self.execute(self.parse(request, state.phase), state)
        except BusinessError as exc:
            # 失败日志需要带上触发失败的操作
            exc.extra.setdefault("operation", request.name)
            exc.extra.setdefault("phase", state.phase.value)
            raise


def rank_hits(hits):
    """按相关度降序稳定排序；只要有命中缺少分数就保持存储给出的顺序。"""

    hits = list(hits)
    if hits and all(h.score is not None for h in hits):
        return sorted(hits, key=lambda h: h.score, reverse=True)
    return hits
