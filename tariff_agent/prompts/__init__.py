"""系统提示词构造。

每个阶段对应 prompts/<locale>/ 下的一个模板文件，模板中只使用显式命名的占位符：

- $operation_names: 模型可用的操作名。
- $candidates: 当前候选集的 JSON 文档。
- $candidate_format: 候选集序列化格式的版本号。

候选集的序列化格式单独版本化（CANDIDATE_FORMAT），与指令文本解耦。
PromptBuilder 只读取 (phase, current_results)，从不修改会话状态。
"""

import json
from pathlib import Path
from string import Template
from typing import Dict, Iterable, Sequence

from tariff_agent.domain.taxonomy import Phase, TaxonomyNode
from tariff_agent.tools.definitions import OperationName


PROMPTS_DIR = Path(__file__).resolve().parent
CANDIDATE_FORMAT = "candidates/v1"

# 每个阶段允许模型使用的操作
PHASE_OPERATIONS: Dict[Phase, Sequence[OperationName]] = {
    Phase.GENERAL: (OperationName.SEARCH,),
    Phase.TRAVERSE: (OperationName.EXPAND, OperationName.CONFIRM),
}


def serialize_candidates(nodes: Iterable[TaxonomyNode]) -> str:
    """把候选节点序列化为带格式版本号的 JSON 文档。"""

    document = {
        "format": CANDIDATE_FORMAT,
        "candidates": [node.to_dict() for node in nodes],
    }
    return json.dumps(document, ensure_ascii=False)


def load_template(phase: Phase, locale: str = "en") -> Template:
    fname = PROMPTS_DIR / locale / f"{phase.value}.md"
    return Template(fname.read_text(encoding="utf-8"))


class PromptBuilder:
    """按阶段渲染系统提示词。模板在构造时一次性加载。"""

    def __init__(self, locale: str = "en"):
        self._templates = {phase: load_template(phase, locale) for phase in Phase}

    def build(self, phase: Phase, current_results: Sequence[TaxonomyNode] = ()) -> str:
        names = ", ".join(f"`{op.value}`" for op in PHASE_OPERATIONS[phase])
        return self._templates[phase].substitute(
            operation_names=names,
            candidates=serialize_candidates(current_results),
            candidate_format=CANDIDATE_FORMAT,
        )
