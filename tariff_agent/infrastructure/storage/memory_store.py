import json
import re
from pathlib import Path
from typing import Dict, Iterable, List

from tariff_agent.domain.exceptions import BusinessError, NotFound
from tariff_agent.domain.taxonomy import SearchHit, TaxonomyNode

_WORD = re.compile(r"\w+", re.UNICODE)


def _tokens(text: str) -> set[str]:
    return {w for w in _WORD.findall((text or "").lower()) if len(w) > 1}


class InMemoryTaxonomyStore:
    """进程内分类库，适用于本地开发与测试。

    search_by_text 使用词重叠度作为相关度，没有向量索引；
    children_of 保持节点加载顺序。
    """

    def __init__(self, nodes: Iterable[TaxonomyNode]):
        self._nodes: Dict[int, TaxonomyNode] = {}
        self._children: Dict[int, List[TaxonomyNode]] = {}
        for node in nodes:
            self._nodes[node.id] = node
        for node in self._nodes.values():
            if node.parent_id is not None:
                self._children.setdefault(node.parent_id, []).append(node)

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryTaxonomyStore":
        p = Path(path).expanduser()
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise BusinessError(f"Failed to load taxonomy file {p}: {e}", code="STORE_READ_ERROR")
        if not isinstance(data, list):
            raise BusinessError(f"Taxonomy file {p} must hold a list of nodes", code="STORE_READ_ERROR")
        return cls(TaxonomyNode.from_dict(item) for item in data)

    def __len__(self) -> int:
        return len(self._nodes)

    async def search_by_text(self, text: str, limit: int) -> List[SearchHit]:
        query = _tokens(text)
        if not query:
            return []
        hits: List[SearchHit] = []
        for node in self._nodes.values():
            words = _tokens(node.description) | _tokens(node.localized_description)
            overlap = len(query & words)
            if overlap:
                hits.append(SearchHit(node=node, score=overlap / len(query | words)))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    async def children_of(self, parent_id: int) -> List[TaxonomyNode]:
        if parent_id not in self._nodes:
            raise NotFound(f"Taxonomy node {parent_id} does not exist", parent_id=parent_id)
        return list(self._children.get(parent_id, []))
