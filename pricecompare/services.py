"""Process-wide service wiring.

Each raw adapter is wrapped as ``CachedRetailer(LimitedRetailer(adapter))`` and
the resulting ports are shared by one :class:`SearchService` and one
:class:`CompareService` for the lifetime of the process.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Sequence

from .compare import CompareService
from .config import settings
from .matching import ProductMatcher
from .retailers.adapters import CarrefourAdapter, DiaAdapter, JumboAdapter, VeaAdapter
from .retailers.base import CachedRetailer, LimitedRetailer, RetailerPort
from .retailers.http_client import HttpClient
from .search_service import SearchService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    search: SearchService
    compare: CompareService
    http: HttpClient | None = None

    async def aclose(self) -> None:
        if self.http is not None:
            await self.http.aclose()


def decorate_retailer(port: RetailerPort) -> RetailerPort:
    concurrency = settings.retailer_concurrency.get(port.retailer, 1)
    limited = LimitedRetailer(port, concurrency)
    return CachedRetailer(
        limited,
        ttl=settings.candidate_cache_ttl_seconds,
        negative_ttl=settings.candidate_cache_negative_ttl_seconds,
        max_entries=settings.candidate_cache_max_entries,
    )


def build_retailers(http: HttpClient) -> List[RetailerPort]:
    raw: List[RetailerPort] = [
        CarrefourAdapter(http),
        DiaAdapter(http),
        JumboAdapter(http),
        VeaAdapter(http),
    ]
    return [decorate_retailer(port) for port in raw]


def build_services(retailers: Sequence[RetailerPort], http: HttpClient | None = None) -> Services:
    search = SearchService(retailers, ProductMatcher())
    compare = CompareService(search)
    return Services(search=search, compare=compare, http=http)


@lru_cache(maxsize=1)
def get_services() -> Services:
    http = HttpClient()
    retailers = build_retailers(http)
    logger.info(
        "Retailers ready: %s (concurrency=%s)",
        [r.retailer for r in retailers],
        settings.retailer_concurrency,
    )
    return build_services(retailers, http)
