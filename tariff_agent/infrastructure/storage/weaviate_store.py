"""Weaviate 分类库适配器。

通过 Weaviate 的 GraphQL 端点（{url}/v1/graphql）完成两类读操作：

- search_by_text: nearText 语义检索，相关度取 certainty，缺失时用 1 - distance。
- children_of: 按 parent_id 精确过滤直接子节点，并按编码排序。

集合中的字段沿用数据导入时的命名（id_、hs_code、indonesian_description），
由 TaxonomyNode.from_dict 统一转换。
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from tariff_agent.domain.exceptions import BusinessError, NotFound
from tariff_agent.domain.taxonomy import SearchHit, TaxonomyNode
from tariff_agent.infrastructure.logging.logger import logger

NODE_FIELDS = "description indonesian_description hs_code id_ parent_id depth is_leaf"
MAX_CHILDREN = 1000


class StoreQueryError(BusinessError):
    default_code = "STORE_QUERY_ERROR"


class WeaviateTaxonomyStore:
    def __init__(
        self,
        url: str,
        collection: str = "hs_codes_transformer",
        api_key: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self._endpoint = f"{url.rstrip('/')}/v1/graphql"
        # GraphQL 中的类名首字母必须大写
        self._class_name = collection[:1].upper() + collection[1:]
        self._api_key = api_key
        self._timeout = timeout

    async def search_by_text(self, text: str, limit: int) -> List[SearchHit]:
        query = (
            "{ Get { %s(nearText: {concepts: [%s]}, limit: %d) { %s _additional { certainty distance } } } }"
            % (self._class_name, json.dumps(text, ensure_ascii=False), int(limit), NODE_FIELDS)
        )
        hits: List[SearchHit] = []
        for item in await self._get(query):
            extra = item.pop("_additional", None) or {}
            hits.append(SearchHit(node=TaxonomyNode.from_dict(item), score=self._score(extra)))
        return hits

    async def children_of(self, parent_id: int) -> List[TaxonomyNode]:
        items = await self._get(self._where_query("parent_id", parent_id, MAX_CHILDREN))
        if len(items) >= MAX_CHILDREN:
            logger.warning(
                "weaviate.children_truncated",
                extra={"extra": {"parent_id": parent_id, "limit": MAX_CHILDREN}},
            )
        children = [TaxonomyNode.from_dict(item) for item in items]
        if not children and not await self._exists(parent_id):
            raise NotFound(f"Taxonomy node {parent_id} does not exist", parent_id=parent_id)
        children.sort(key=lambda n: (n.code, n.id))
        return children

    async def _exists(self, node_id: int) -> bool:
        return bool(await self._get(self._where_query("id_", node_id, 1)))

    def _where_query(self, path: str, value: int, limit: int) -> str:
        return (
            '{ Get { %s(where: {path: ["%s"], operator: Equal, valueInt: %d}, limit: %d) { %s } } }'
            % (self._class_name, path, int(value), limit, NODE_FIELDS)
        )

    @staticmethod
    def _score(extra: Dict[str, Any]) -> Optional[float]:
        if extra.get("certainty") is not None:
            return float(extra["certainty"])
        if extra.get("distance") is not None:
            return 1.0 - float(extra["distance"])
        return None

    async def _get(self, query: str) -> List[Dict[str, Any]]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        async with httpx.AsyncClient(timeout=self._timeout, trust_env=False) as client:
            resp = await client.post(self._endpoint, json={"query": query}, headers=headers)
        if resp.status_code >= 400:
            raise StoreQueryError(f"Weaviate returned HTTP {resp.status_code}", upstream_status=resp.status_code)
        data = resp.json()
        if data.get("errors"):
            raise StoreQueryError(f"Weaviate query failed: {data['errors'][0].get('message', 'unknown error')}")
        return list(((data.get("data") or {}).get("Get") or {}).get(self._class_name) or [])
