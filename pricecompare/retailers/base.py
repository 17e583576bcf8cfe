"""Retailer port and the decorators layered on top of concrete adapters.

A retailer is anything with a ``retailer`` id and an async ``search(term)``
returning products. Decorators keep that exact contract, so the wiring is plain
composition::

    CachedRetailer(LimitedRetailer(DiaAdapter(http), concurrency=1))

The cache sits outside the limiter: cache hits and callers coalesced onto an
in-flight fetch never take a concurrency slot.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Protocol, runtime_checkable

from ..cache import InMemoryCache, InFlightRegistry
from ..canonical import collapse
from ..models import Product

logger = logging.getLogger(__name__)


@runtime_checkable
class RetailerPort(Protocol):
    retailer: str

    async def search(self, term: str) -> List[Product]: ...


class LimitedRetailer:
    """Bound the number of concurrent upstream calls to one retailer."""

    def __init__(self, inner: RetailerPort, concurrency: int) -> None:
        self.inner = inner
        self.retailer = inner.retailer
        self.concurrency = max(1, concurrency)
        self._semaphore = asyncio.Semaphore(self.concurrency)

    async def search(self, term: str) -> List[Product]:
        async with self._semaphore:
            return await self.inner.search(term)


def _normalize_term(term: str) -> str:
    return collapse(term.strip().lower())


def candidate_cache_key(retailer: str, term: str) -> str:
    return f"retailer:{retailer}|q={_normalize_term(term)}"


class CachedRetailer:
    """LRU cache with separate positive/negative TTLs and in-flight coalescing.

    Upstream failures are not cached: they propagate to every caller waiting on
    that fetch and the next call tries again.
    """

    def __init__(
        self,
        inner: RetailerPort,
        *,
        ttl: float = 600.0,
        negative_ttl: float = 90.0,
        max_entries: int = 2000,
        cache: InMemoryCache[List[Product]] | None = None,
    ) -> None:
        self.inner = inner
        self.retailer = inner.retailer
        self.ttl = ttl
        self.negative_ttl = negative_ttl
        if cache is None:
            cache = InMemoryCache(max_entries, policy="lru")
        self.cache: InMemoryCache[List[Product]] = cache
        self.in_flight: InFlightRegistry[List[Product]] = InFlightRegistry()

    async def search(self, term: str) -> List[Product]:
        key = candidate_cache_key(self.retailer, term)

        entry = self.cache.get(key)
        if entry is not None:
            logger.debug("candidate_cache_hit key=%r size=%s", key, len(entry.value))
            return entry.value

        def store(products: List[Product]) -> None:
            ttl = self.ttl if products else self.negative_ttl
            self.cache.set(key, products, ttl)

        return await self.in_flight.run(key, lambda: self.inner.search(term), store)
