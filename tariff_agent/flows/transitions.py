"""会话状态迁移。

| 当前阶段 | 操作     | 下一阶段 | 状态变化                                      |
|----------|----------|----------|-----------------------------------------------|
| 任意     | search   | TRAVERSE | current_results = 命中；current_node 清空     |
| TRAVERSE | expand   | TRAVERSE | current_results = 子节点；current_node = 首个 |
| TRAVERSE | confirm  | GENERAL  | 返回原 current_node；其余全部清空             |

fold 是纯函数：不修改传入的状态，只返回新状态与给调用方的响应。
"""

from typing import List, Tuple

from tariff_agent.domain.taxonomy import ConversationState, Phase, TaxonomyNode
from tariff_agent.tools.definitions import ConfirmOutcome, ExpandOutcome, Outcome, SearchOutcome


def fold(state: ConversationState, outcome: Outcome) -> Tuple[ConversationState, List[TaxonomyNode]]:
    if isinstance(outcome, SearchOutcome):
        nodes = tuple(outcome.nodes)
        return ConversationState(phase=Phase.TRAVERSE, current_results=nodes, current_node=None), list(nodes)
    if isinstance(outcome, ExpandOutcome):
        children = tuple(outcome.children)
        return (
            ConversationState(
                phase=Phase.TRAVERSE,
                current_results=children,
                current_node=children[0] if children else None,
            ),
            list(children),
        )
    if isinstance(outcome, ConfirmOutcome):
        response = [outcome.node] if outcome.node is not None else []
        return ConversationState.initial(), response
    raise TypeError(f"Unknown outcome {outcome!r}")
