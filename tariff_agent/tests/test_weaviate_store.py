import asyncio
import logging

import pytest

from tariff_agent.domain.exceptions import NotFound
from tariff_agent.infrastructure.storage.weaviate_store import StoreQueryError, WeaviateTaxonomyStore


def _item(id_, parent, code, desc="d"):
    return {
        "id_": id_,
        "parent_id": parent,
        "depth": 1,
        "hs_code": code,
        "description": desc,
        "indonesian_description": "",
        "is_leaf": True,
    }


def _install(monkeypatch, responses, captured):
    """按顺序返回 responses 中的 (status, json) 元组。"""

    class Resp:
        def __init__(self, status, body):
            self.status_code = status
            self._body = body

        def json(self):
            return self._body

    class Client:
        def __init__(self, *a, **kw):
            captured.setdefault("client_kwargs", kw)

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, url, json=None, headers=None, **_):
            captured.setdefault("queries", []).append(json["query"])
            captured["url"] = url
            captured["headers"] = headers
            status, body = responses.pop(0)
            return Resp(status, body)

    monkeypatch.setattr("httpx.AsyncClient", Client)


def _get(items, cls="Hs_codes_transformer"):
    return {"data": {"Get": {cls: items}}}


def test_search_uses_near_text(monkeypatch):
    captured = {}
    hit = dict(_item(2, 1, "0306"), _additional={"certainty": 0.91, "distance": None})
    far = dict(_item(7, 6, "1605"), _additional={"certainty": None, "distance": 0.4})
    _install(monkeypatch, [(200, _get([hit, far]))], captured)

    store = WeaviateTaxonomyStore("http://weaviate:8080/", api_key="secret-key")
    hits = asyncio.run(store.search_by_text('frozen "shrimp"', 5))

    assert captured["url"] == "http://weaviate:8080/v1/graphql"
    assert captured["headers"]["Authorization"] == "Bearer secret-key"
    query = captured["queries"][0]
    assert "Hs_codes_transformer(nearText" in query
    assert '\\"shrimp\\"' in query
    assert "limit: 5" in query
    assert [h.node.code for h in hits] == ["0306", "1605"]
    assert hits[0].score == pytest.approx(0.91)
    assert hits[1].score == pytest.approx(0.6)


def test_children_filtered_and_sorted(monkeypatch):
    captured = {}
    _install(monkeypatch, [(200, _get([_item(5, 2, "0306.36"), _item(3, 2, "0306.16")]))], captured)
    store = WeaviateTaxonomyStore("http://weaviate:8080")
    children = asyncio.run(store.children_of(2))
    assert [n.code for n in children] == ["0306.16", "0306.36"]
    assert 'path: ["parent_id"], operator: Equal, valueInt: 2' in captured["queries"][0]
    assert "Authorization" not in captured["headers"]


def test_leaf_has_no_children(monkeypatch):
    captured = {}
    _install(monkeypatch, [(200, _get([])), (200, _get([_item(3, 2, "0306.16")]))], captured)
    store = WeaviateTaxonomyStore("http://weaviate:8080")
    assert asyncio.run(store.children_of(3)) == []
    assert 'path: ["id_"]' in captured["queries"][1]


def test_unknown_parent(monkeypatch):
    _install(monkeypatch, [(200, _get([])), (200, _get([]))], {})
    store = WeaviateTaxonomyStore("http://weaviate:8080")
    with pytest.raises(NotFound):
        asyncio.run(store.children_of(999))


def test_http_and_graphql_errors(monkeypatch):
    _install(monkeypatch, [(503, {}), (200, {"errors": [{"message": "no such class"}]})], {})
    store = WeaviateTaxonomyStore("http://weaviate:8080")
    with pytest.raises(StoreQueryError) as exc_info:
        asyncio.run(store.search_by_text("shrimp", 5))
    assert exc_info.value.extra["upstream_status"] == 503
    with pytest.raises(StoreQueryError, match="no such class"):
        asyncio.run(store.search_by_text("shrimp", 5))


def test_children_at_limit_are_flagged(monkeypatch, caplog):
    monkeypatch.setattr("tariff_agent.infrastructure.storage.weaviate_store.MAX_CHILDREN", 2)
    _install(monkeypatch, [(200, _get([_item(3, 2, "0306.16"), _item(4, 2, "0306.17")]))], {})
    store = WeaviateTaxonomyStore("http://weaviate:8080")
    with caplog.at_level(logging.WARNING, logger="tariff_agent"):
        children = asyncio.run(store.children_of(2))
    assert len(children) == 2
    [record] = [r for r in caplog.records if r.getMessage() == "weaviate.children_truncated"]
    assert record.extra == {"parent_id": 2, "limit": 2}
