import asyncio

import pytest

from tariff_agent.domain.exceptions import NotFound, StoreUnavailable
from tariff_agent.domain.taxonomy import SearchHit, TaxonomyNode
from tariff_agent.infrastructure.storage.retrying import RetryingTaxonomyStore


NODE = TaxonomyNode(id=1, parent_id=None, depth=0, code="03", description="Fish")


class FlakyStore:
    """前 failures 次调用抛错，之后正常返回。"""

    def __init__(self, failures, error=RuntimeError("connection reset")):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def search_by_text(self, text, limit):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return [SearchHit(NODE, 1.0)]

    async def children_of(self, parent_id):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return [NODE]


class SlowStore:
    def __init__(self):
        self.calls = 0

    async def search_by_text(self, text, limit):
        self.calls += 1
        await asyncio.sleep(1)
        return []

    async def children_of(self, parent_id):
        raise AssertionError("not used")


def _recorder():
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    return delays, sleep


def test_recovers_after_transient_failures():
    delays, sleep = _recorder()
    inner = FlakyStore(failures=2)
    store = RetryingTaxonomyStore(inner, attempts=3, sleep=sleep)
    hits = asyncio.run(store.search_by_text("shrimp", 5))
    assert hits[0].node == NODE
    assert inner.calls == 3
    assert delays == [0.5, 1.0]


def test_gives_up_after_attempts():
    delays, sleep = _recorder()
    inner = FlakyStore(failures=10)
    store = RetryingTaxonomyStore(inner, attempts=3, sleep=sleep)
    with pytest.raises(StoreUnavailable) as exc_info:
        asyncio.run(store.children_of(1))
    assert inner.calls == 3
    assert len(delays) == 2
    assert exc_info.value.extra["op"] == "children_of"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_not_found_is_not_retried():
    delays, sleep = _recorder()
    inner = FlakyStore(failures=10, error=NotFound("no such node"))
    store = RetryingTaxonomyStore(inner, attempts=3, sleep=sleep)
    with pytest.raises(NotFound):
        asyncio.run(store.children_of(42))
    assert inner.calls == 1
    assert delays == []


def test_timeout_counts_as_failure():
    delays, sleep = _recorder()
    inner = SlowStore()
    store = RetryingTaxonomyStore(inner, attempts=2, timeout=0.01, sleep=sleep)
    with pytest.raises(StoreUnavailable):
        asyncio.run(store.search_by_text("shrimp", 5))
    assert inner.calls == 2
    assert delays == [0.5]


def test_backoff_is_capped():
    store = RetryingTaxonomyStore(FlakyStore(0), initial_backoff=0.5, max_backoff=2.0)
    assert [store.backoff(n) for n in range(1, 6)] == [0.5, 1.0, 2.0, 2.0, 2.0]
