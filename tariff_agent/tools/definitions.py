"""操作（函数调用）数据结构定义。

这些 dataclass 描述了模型可以请求的三种操作，既用于：
- 将操作 schema 暴露给 LLM（ToolDef / ToolParam），这是与模型网关之间的稳定契约；
- 在调度器中表示解析后的操作（SearchOperation / ExpandOperation / ConfirmOperation）
  以及执行结果（SearchOutcome / ExpandOutcome / ConfirmOutcome）。

操作集合是封闭的：OperationName 之外的名字无法到达任何处理函数。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from tariff_agent.domain.taxonomy import SearchHit, TaxonomyNode


class OperationName(str, Enum):
    SEARCH = "search"
    EXPAND = "expand"
    CONFIRM = "confirm"


@dataclass
class ToolParam:
    """单个操作参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]


@dataclass
class ToolDef:
    """一个可供 LLM 调用的操作定义。"""

    name: str
    description: str
    params: Dict[str, ToolParam]


@dataclass
class OperationRequest:
    """模型发起的一次操作请求，arguments 为未解析的原始文本。"""

    name: str
    arguments: str = ""
    id: str = ""


@dataclass(frozen=True)
class SearchOperation:
    query: str
    top_k: int


@dataclass(frozen=True)
class ExpandOperation:
    parent_id: int


@dataclass(frozen=True)
class ConfirmOperation:
    pass


Operation = Union[SearchOperation, ExpandOperation, ConfirmOperation]


@dataclass(frozen=True)
class SearchOutcome:
    hits: Tuple[SearchHit, ...]

    @property
    def nodes(self) -> List[TaxonomyNode]:
        return [hit.node for hit in self.hits]


@dataclass(frozen=True)
class ExpandOutcome:
    parent_id: int
    children: Tuple[TaxonomyNode, ...]


@dataclass(frozen=True)
class ConfirmOutcome:
    node: Optional[TaxonomyNode]


Outcome = Union[SearchOutcome, ExpandOutcome, ConfirmOutcome]


OPERATION_SCHEMA: List[ToolDef] = [
    ToolDef(
        name=OperationName.SEARCH.value,
        description="Search the customs classification tree for nodes matching a product description",
        params={
            "query": ToolParam(
                name="query",
                description="Product description, translated to English",
                required=True,
                schema={"type": "string"},
            ),
            "topK": ToolParam(
                name="topK",
                description="Number of results to return",
                required=False,
                schema={"type": "integer", "minimum": 1, "default": 5},
            ),
        },
    ),
    ToolDef(
        name=OperationName.EXPAND.value,
        description="List the direct sub-categories of a classification node",
        params={
            "parentId": ToolParam(
                name="parentId",
                description="The id of the chosen candidate",
                required=True,
                schema={"type": "integer"},
            ),
        },
    ),
    ToolDef(
        name=OperationName.CONFIRM.value,
        description="Confirm the currently selected classification node as final",
        params={},
    ),
]
