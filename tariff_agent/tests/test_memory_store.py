import asyncio
import json
from pathlib import Path

import pytest

from tariff_agent.domain.exceptions import BusinessError, NotFound
from tariff_agent.infrastructure.storage.memory_store import InMemoryTaxonomyStore


SAMPLE = Path(__file__).resolve().parents[2] / "data" / "sample_taxonomy.json"


def test_load_sample_file():
    store = InMemoryTaxonomyStore.from_file(SAMPLE)
    assert len(store) == 9


def test_search_ranks_by_overlap():
    store = InMemoryTaxonomyStore.from_file(SAMPLE)
    hits = asyncio.run(store.search_by_text("frozen shrimps", 3))
    assert 0 < len(hits) <= 3
    assert hits[0].node.code in {"0306.16", "0306.17"}
    scores = [h.score for h in hits]
    assert scores == sorted(scores, reverse=True)


def test_search_matches_localized_description():
    store = InMemoryTaxonomyStore.from_file(SAMPLE)
    hits = asyncio.run(store.search_by_text("udang beku", 5))
    assert {h.node.code for h in hits} >= {"0306.16", "0306.17"}


def test_search_without_overlap():
    store = InMemoryTaxonomyStore.from_file(SAMPLE)
    assert asyncio.run(store.search_by_text("bicycle", 5)) == []
    assert asyncio.run(store.search_by_text("", 5)) == []


def test_children_keep_load_order():
    store = InMemoryTaxonomyStore.from_file(SAMPLE)
    children = asyncio.run(store.children_of(2))
    assert [n.code for n in children] == ["0306.16", "0306.17", "0306.36"]
    assert all(n.parent_id == 2 for n in children)
    assert asyncio.run(store.children_of(3)) == []


def test_children_of_unknown_node():
    store = InMemoryTaxonomyStore.from_file(SAMPLE)
    with pytest.raises(NotFound):
        asyncio.run(store.children_of(999))


def test_legacy_field_names(tmp_path):
    path = tmp_path / "nodes.json"
    path.write_text(json.dumps([
        {"id_": 1, "parent_id": None, "depth": 0, "hs_code": "03", "description": "Fish",
         "indonesian_description": "Ikan", "is_leaf": False},
    ]), encoding="utf-8")
    store = InMemoryTaxonomyStore.from_file(path)
    hits = asyncio.run(store.search_by_text("ikan", 5))
    assert hits[0].node.code == "03"
    assert hits[0].node.localized_description == "Ikan"


def test_bad_file(tmp_path):
    missing = tmp_path / "missing.json"
    with pytest.raises(BusinessError) as exc_info:
        InMemoryTaxonomyStore.from_file(missing)
    assert exc_info.value.code == "STORE_READ_ERROR"

    not_a_list = tmp_path / "object.json"
    not_a_list.write_text('{"id": 1}', encoding="utf-8")
    with pytest.raises(BusinessError):
        InMemoryTaxonomyStore.from_file(not_a_list)
