"""分类库调用的超时与有限次重试。

每次调用都在 timeout 内完成，否则视为失败；失败后按指数退避重试，
达到 attempts 上限仍失败则抛出 StoreUnavailable。NotFound 是存储的确定性答复，不重试。
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, TypeVar

from tariff_agent.domain.exceptions import NotFound, StoreUnavailable
from tariff_agent.domain.taxonomy import SearchHit, TaxonomyNode, TaxonomyStore
from tariff_agent.infrastructure.logging.logger import logger

T = TypeVar("T")


class RetryingTaxonomyStore:
    def __init__(
        self,
        inner: TaxonomyStore,
        attempts: int = 3,
        timeout: float = 10.0,
        initial_backoff: float = 0.5,
        max_backoff: float = 8.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._inner = inner
        self._attempts = max(1, attempts)
        self._timeout = timeout
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._sleep = sleep

    async def search_by_text(self, text: str, limit: int) -> List[SearchHit]:
        return await self._call("search_by_text", lambda: self._inner.search_by_text(text, limit))

    async def children_of(self, parent_id: int) -> List[TaxonomyNode]:
        return await self._call("children_of", lambda: self._inner.children_of(parent_id))

    def backoff(self, attempt: int) -> float:
        """第 attempt 次失败后的等待时间（attempt 从 1 开始）。"""

        return min(self._max_backoff, self._initial_backoff * (2 ** (attempt - 1)))

    async def _call(self, op: str, factory: Callable[[], Awaitable[T]]) -> T:
        last_exc: BaseException | None = None
        for attempt in range(1, self._attempts + 1):
            try:
                return await asyncio.wait_for(factory(), timeout=self._timeout)
            except NotFound:
                raise
            except Exception as exc:  # 包括 asyncio.TimeoutError
                last_exc = exc
            level = logging.WARNING if attempt < self._attempts else logging.ERROR
            logger.log(
                level,
                "store.call_failed",
                extra={"extra": {
                    "op": op,
                    "attempt": attempt,
                    "max_attempts": self._attempts,
                    "error": str(last_exc) or type(last_exc).__name__,
                }},
            )
            if attempt < self._attempts:
                await self._sleep(self.backoff(attempt))
        raise StoreUnavailable(
            f"Taxonomy store {op} failed after {self._attempts} attempts",
            op=op,
        ) from last_exc
