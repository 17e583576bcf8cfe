"""Per-retailer search orchestration on top of the retailer ports."""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from .cache import InMemoryCache, InFlightRegistry
from .canonical import collapse, normalize_text
from .config import settings
from .errors import UnknownRetailerError
from .matching import ProductMatcher
from .models import Product, SearchResult
from .retailers.base import RetailerPort
from .terms import build_search_terms

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[List[Product]]]

MAX_CANDIDATES = 120
MAX_PRODUCTIVE_TERMS = 3


def pick_retailers(requested: Optional[Sequence[str]], supported: Sequence[str]) -> List[str]:
    """Intersection of ``requested`` with ``supported``; never empty."""
    if not requested:
        return list(supported)
    wanted = set(requested)
    selected = [retailer for retailer in supported if retailer in wanted]
    return selected or list(supported)


def is_generic_single_word(query: str) -> bool:
    words = normalize_text(query).split()
    return len(words) == 1 and len(words[0]) > 3


def dedupe_key(product: Product) -> str:
    if product.id:
        return f"id:{product.id}|price:{product.price}"
    return f"name:{product.name.lower().strip()}|price:{product.price}"


async def safe_fetch(fetcher: Fetcher, term: str) -> List[Product]:
    """Run ``fetcher`` and turn any upstream failure into an empty result."""
    try:
        return list(await fetcher(term) or [])
    except Exception as exc:
        logger.warning("Upstream search failed term=%r: %s", term, exc)
        return []


class CandidatePool:
    """Insertion-ordered, de-duplicated, capped pool of candidates."""

    def __init__(self, cap: int = MAX_CANDIDATES) -> None:
        self.cap = cap
        self.products: List[Product] = []
        self._seen: set[str] = set()

    @property
    def full(self) -> bool:
        return len(self.products) >= self.cap

    def add(self, products: Sequence[Product]) -> None:
        for product in products:
            if self.full:
                return
            key = dedupe_key(product)
            if key in self._seen:
                continue
            self._seen.add(key)
            self.products.append(product)


class SearchService:
    """Drives term expansion, the query cache and the matcher for one retailer."""

    def __init__(
        self,
        retailers: Sequence[RetailerPort],
        matcher: ProductMatcher | None = None,
        *,
        cache: InMemoryCache[List[Product]] | None = None,
        ttl: float | None = None,
        negative_ttl: float | None = None,
    ) -> None:
        self._retailers: Dict[str, RetailerPort] = {r.retailer: r for r in retailers}
        self.matcher = matcher or ProductMatcher()
        if cache is None:
            cache = InMemoryCache(settings.query_cache_max_entries, policy="fifo")
        self.cache: InMemoryCache[List[Product]] = cache
        self.in_flight: InFlightRegistry[List[Product]] = InFlightRegistry()
        self.ttl = settings.query_cache_ttl_seconds if ttl is None else ttl
        self.negative_ttl = settings.query_cache_negative_ttl_seconds if negative_ttl is None else negative_ttl

    def supported_retailers(self) -> List[str]:
        return list(self._retailers)

    async def by_retailer(self, retailer: str, query: str, limit: int | None = None) -> SearchResult:
        original_query = (query or "").strip()
        if not original_query:
            return SearchResult(query=original_query, retailer=retailer, count=0, products=[])

        port = self._retailers.get(retailer)
        if port is None:
            raise UnknownRetailerError(retailer)

        limit = settings.default_limit if limit is None else limit

        t0 = perf_counter()
        generic = is_generic_single_word(original_query)
        candidates = await self.fetch_candidates_with_fallback(original_query, port.search, retailer)
        t1 = perf_counter()

        if generic:
            products = candidates[:limit]
        else:
            products = self.matcher.match(original_query, candidates, limit)
        t2 = perf_counter()

        logger.info(
            "timing: total=%.2fms fetch=%.2fms rank=%.2fms retailer=%s q=%r generic=%s candidates=%s products=%s",
            (t2 - t0) * 1000,
            (t1 - t0) * 1000,
            (t2 - t1) * 1000,
            retailer,
            original_query,
            generic,
            len(candidates),
            len(products),
        )
        return SearchResult(query=original_query, retailer=retailer, count=len(products), products=products)

    async def fetch_candidates_with_fallback(self, query: str, fetcher: Fetcher, retailer: str) -> List[Product]:
        q = (query or "").strip()
        if not q:
            return []

        pool = CandidatePool()

        if is_generic_single_word(q):
            pool.add(await self.fetch_cached(retailer, normalize_text(q), fetcher))
            return pool.products

        productive = 0
        for term in build_search_terms(q):
            found = await self.fetch_cached(retailer, term, fetcher)
            pool.add(found)
            if found:
                productive += 1
            if productive >= MAX_PRODUCTIVE_TERMS or pool.full:
                break
        return pool.products

    async def fetch_cached(self, retailer: str, term: str, fetcher: Fetcher) -> List[Product]:
        """Cached, coalesced, never-raising fetch of one term."""
        key = f"{retailer}::{collapse(term.lower())}"

        entry = self.cache.get(key)
        if entry is not None:
            logger.debug("query_cache_hit key=%r size=%s", key, len(entry.value))
            return entry.value

        def store(products: List[Product]) -> None:
            self.cache.set(key, products, self.ttl if products else self.negative_ttl)

        return await self.in_flight.run(key, lambda: safe_fetch(fetcher, term), store)
