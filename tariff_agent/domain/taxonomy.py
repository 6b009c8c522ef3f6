"""分类树与会话状态模型。

- TaxonomyNode: 分类树（海关 HS 编码树）中的一个节点。
- SearchHit: 语义检索命中的节点及其相关度。
- ConversationState: 由调用方持有、每轮传入并整体替换的会话状态。
- TaxonomyStore: 控制器依赖的分类库读接口。

状态的线上格式（stateObject）在这里集中做序列化与反序列化，
兼容旧版存储字段名（id_、hs_code、indonesian_description）与旧阶段名 parse_db。
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from .exceptions import InvalidRequest

_INT_TEXT = re.compile(r"-?[0-9]+")
_TRUE_TEXT = ("true", "1", "yes")
_FALSE_TEXT = ("false", "0", "no", "")


class Phase(str, Enum):
    """控制器的会话阶段。"""

    GENERAL = "general"
    TRAVERSE = "traverse"

    @classmethod
    def parse(cls, raw: Any) -> "Phase":
        text = str(raw or "").strip().lower()
        # parse_db 只是 TRAVERSE 阶段内部的提示词变体
        if text == "parse_db":
            return cls.TRAVERSE
        try:
            return cls(text)
        except ValueError:
            raise InvalidRequest(f"Unknown phase: {raw!r}")


# 线上字段名 -> 旧版存储字段名
_NODE_ALIASES = {
    "id": ("id", "id_"),
    "code": ("code", "hs_code"),
    "localized_description": ("localized_description", "indonesian_description"),
}


def _pick(data: Mapping[str, Any], name: str, default: Any = None) -> Any:
    for key in _NODE_ALIASES.get(name, (name,)):
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INT_TEXT.fullmatch(value.strip()):
        return int(value.strip())
    raise InvalidRequest(f"Field {name!r} must be an integer")


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_TEXT:
            return True
        if text in _FALSE_TEXT:
            return False
    raise InvalidRequest(f"Field {name!r} must be a boolean")


@dataclass(frozen=True)
class TaxonomyNode:
    id: int
    parent_id: Optional[int]
    depth: int
    code: str
    description: str
    localized_description: str = ""
    is_leaf: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "depth": self.depth,
            "code": self.code,
            "description": self.description,
            "localized_description": self.localized_description,
            "is_leaf": self.is_leaf,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaxonomyNode":
        if not isinstance(data, Mapping):
            raise InvalidRequest("Taxonomy node must be an object")
        raw_id = _pick(data, "id")
        if raw_id is None:
            raise InvalidRequest("Taxonomy node is missing 'id'")
        raw_parent = _pick(data, "parent_id")
        return cls(
            id=_as_int(raw_id, "id"),
            parent_id=None if raw_parent is None else _as_int(raw_parent, "parent_id"),
            depth=_as_int(_pick(data, "depth", 0), "depth"),
            code=str(_pick(data, "code", "")),
            description=str(_pick(data, "description", "")),
            localized_description=str(_pick(data, "localized_description", "")),
            is_leaf=_as_bool(_pick(data, "is_leaf", False), "is_leaf"),
        )


@dataclass(frozen=True)
class SearchHit:
    """检索命中。score 越大越相关；None 表示存储未给出相关度。"""

    node: TaxonomyNode
    score: Optional[float] = None


@dataclass(frozen=True)
class ConversationState:
    """一次会话的全部可变信息，控制器本身不保存任何会话字段。

    不变量：GENERAL 阶段下 current_results 为空且 current_node 为 None。
    """

    phase: Phase = Phase.GENERAL
    current_results: Tuple[TaxonomyNode, ...] = field(default_factory=tuple)
    current_node: Optional[TaxonomyNode] = None

    @classmethod
    def initial(cls) -> "ConversationState":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "currentResults": [n.to_dict() for n in self.current_results],
            "currentNode": self.current_node.to_dict() if self.current_node else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ConversationState":
        if data is None:
            return cls.initial()
        if not isinstance(data, Mapping):
            raise InvalidRequest("stateObject must be an object")
        phase = Phase.parse(data.get("phase", data.get("state", Phase.GENERAL.value)))
        raw_results = data.get("currentResults") or []
        if not isinstance(raw_results, list):
            raise InvalidRequest("stateObject.currentResults must be a list")
        raw_node = data.get("currentNode")
        if phase is Phase.GENERAL:
            # GENERAL 阶段不携带候选集，直接归一化
            return cls.initial()
        return cls(
            phase=phase,
            current_results=tuple(TaxonomyNode.from_dict(item) for item in raw_results),
            current_node=TaxonomyNode.from_dict(raw_node) if raw_node else None,
        )


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    ROLES = ("user", "assistant", "system")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        if not isinstance(data, Mapping):
            raise InvalidRequest("Each message must be an object")
        role = str(data.get("role") or "")
        if role not in cls.ROLES:
            raise InvalidRequest(f"Unsupported message role: {role!r}")
        return cls(role=role, content=str(data.get("content") or ""))


def latest_user_message(messages: Iterable[Message]) -> Message:
    """返回最近一条用户消息；之前的轮次不会回放给模型。"""

    found: Optional[Message] = None
    for message in messages:
        if message.role == "user":
            found = message
    if found is None:
        raise InvalidRequest("Messages are required")
    return found


class TaxonomyStore(Protocol):
    """分类库读接口：语义检索与直接子节点查询。"""

    async def search_by_text(self, text: str, limit: int) -> List[SearchHit]:
        ...

    async def children_of(self, parent_id: int) -> List[TaxonomyNode]:
        ...
