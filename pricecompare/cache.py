"""In-memory TTL caches and in-flight request coalescing.

Both structures are process-wide and only touched from the event loop. Every
per-key read/modify/write below completes without an ``await`` in between, so
single-key operations are linearizable without an extra lock.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Literal, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

EvictionPolicy = Literal["fifo", "lru"]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value. An empty ``value`` is a cached negative result, not a miss."""

    timestamp: float
    ttl: float
    value: T

    def is_live(self, now: float) -> bool:
        return now - self.timestamp <= self.ttl


class InMemoryCache(Generic[T]):
    """Bounded TTL cache.

    ``policy="fifo"`` evicts in insertion order; ``policy="lru"`` refreshes an
    entry's position on every hit and evicts the least recently used one.
    """

    def __init__(
        self,
        max_entries: int,
        policy: EvictionPolicy = "fifo",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self.policy = policy
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry[T]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def get(self, key: str) -> Optional[CacheEntry[T]]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if not entry.is_live(self._clock()):
            self._store.pop(key, None)
            return None
        if self.policy == "lru":
            self._store.move_to_end(key)
        return entry

    def set(self, key: str, value: T, ttl: float) -> None:
        if key in self._store:
            self._store.pop(key)
        self._store[key] = CacheEntry(timestamp=self._clock(), ttl=ttl, value=value)
        while len(self._store) > self.max_entries:
            evicted, _ = self._store.popitem(last=False)
            logger.debug("cache_evict key=%r policy=%s", evicted, self.policy)

    def clear(self) -> None:
        self._store.clear()


def _retrieve_exception(task: asyncio.Task) -> None:
    # Every waiter may have been cancelled before the fetch failed.
    if not task.cancelled() and task.exception() is not None:
        logger.debug("inflight_failed error=%r", task.exception())


class InFlightRegistry(Generic[T]):
    """At most one outstanding fetch per key; concurrent callers share it."""

    def __init__(self) -> None:
        self._pending: Dict[str, asyncio.Task[T]] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: str) -> bool:
        return key in self._pending

    async def run(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        on_result: Callable[[T], None] | None = None,
    ) -> T:
        """Await the pending fetch for ``key`` or start a new one.

        The marker is removed as soon as the fetch settles and before
        ``on_result`` stores anything, so a failed fetch is retried by the next
        caller. Waiters are shielded: cancelling one caller never cancels the
        fetch the others are waiting on.
        """
        task = self._pending.get(key)
        if task is not None:
            logger.debug("inflight_join key=%r", key)
            return await asyncio.shield(task)

        async def _settle() -> T:
            try:
                result = await fetch()
            finally:
                self._pending.pop(key, None)
            if on_result is not None:
                on_result(result)
            return result

        task = asyncio.ensure_future(_settle())
        task.add_done_callback(_retrieve_exception)
        self._pending[key] = task
        return await asyncio.shield(task)
