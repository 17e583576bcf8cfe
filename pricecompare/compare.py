"""Cross-retailer comparison for a single item and for a shopping list."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from .config import settings
from .errors import ListTooLargeError
from .models import CompareItemResponse, CompareItemResult, CompareListResponse, RankingRow
from .search_service import SearchService, pick_retailers
from .terms import clean_items

logger = logging.getLogger(__name__)


def check_list_cost(
    items: Sequence[str],
    retailers: Sequence[str],
    *,
    max_items: int | None = None,
    max_cost: int | None = None,
) -> None:
    """Reject a list request before any upstream work when it is too expensive."""
    max_items = settings.max_list_items if max_items is None else max_items
    max_cost = settings.max_list_cost if max_cost is None else max_cost
    if len(items) > max_items:
        raise ListTooLargeError(f"Max items: {max_items}")
    cost = len(items) * len(retailers)
    if cost > max_cost:
        raise ListTooLargeError(f"Too expensive (cost={cost})")


def rank_retailers(detail: Sequence[CompareItemResponse], retailers: Sequence[str]) -> List[RankingRow]:
    """Total of each retailer's top product per item, cheapest retailer first.

    An item without products for a retailer adds 0 to its total and is listed
    in that retailer's ``missingItems``.
    """
    totals: Dict[str, float] = {retailer: 0.0 for retailer in retailers}
    missing: Dict[str, List[str]] = {retailer: [] for retailer in retailers}

    for item in detail:
        for row in item.results:
            best = row.products[0] if row.products else None
            totals[row.retailer] = totals.get(row.retailer, 0.0) + (best.price if best else 0.0)
            if best is None:
                missing.setdefault(row.retailer, []).append(item.query)

    ranking = [
        RankingRow(
            retailer=retailer,
            total=total,
            missingCount=len(missing.get(retailer, [])),
            missingItems=missing.get(retailer, []),
        )
        for retailer, total in totals.items()
    ]
    ranking.sort(key=lambda row: row.total)
    return ranking


class CompareService:
    def __init__(self, search: SearchService, item_concurrency: int | None = None) -> None:
        self.search = search
        self.item_concurrency = settings.item_concurrency if item_concurrency is None else item_concurrency

    async def compare_item(
        self,
        query: str,
        retailers: Optional[Sequence[str]] = None,
        limit: int | None = None,
    ) -> CompareItemResponse:
        q = (query or "").strip()
        limit = settings.default_limit if limit is None else limit
        selected = pick_retailers(retailers, self.search.supported_retailers())

        if not q:
            return CompareItemResponse(
                query=q,
                limit=limit,
                retailers=selected,
                results=[CompareItemResult(retailer=r, products=[]) for r in selected],
            )

        limiter = asyncio.Semaphore(self.item_concurrency)

        async def one(retailer: str) -> CompareItemResult:
            async with limiter:
                try:
                    result = await self.search.by_retailer(retailer, q, limit)
                except Exception as exc:
                    logger.warning("compare_item retailer=%s q=%r failed: %s", retailer, q, exc)
                    return CompareItemResult(retailer=retailer, products=[], error=str(exc))
            return CompareItemResult(retailer=retailer, products=result.products)

        results = await asyncio.gather(*(one(retailer) for retailer in selected))
        return CompareItemResponse(query=q, limit=limit, retailers=selected, results=list(results))

    async def compare_list(
        self,
        items: Sequence[str],
        retailers: Optional[Sequence[str]] = None,
        limit: int | None = None,
    ) -> CompareListResponse:
        clean = clean_items(items)
        limit = settings.default_limit if limit is None else limit
        selected = pick_retailers(retailers, self.search.supported_retailers())

        if not clean:
            return CompareListResponse(items=[], limit=limit, retailers=selected, best=None, ranking=[], detail=[])

        item_limiter = asyncio.Semaphore(self.item_concurrency)

        async def one(item: str) -> CompareItemResponse:
            async with item_limiter:
                return await self.compare_item(item, selected, limit)

        detail = list(await asyncio.gather(*(one(item) for item in clean)))
        ranking = rank_retailers(detail, selected)
        logger.info(
            "compare_list items=%s retailers=%s best=%s",
            len(clean),
            selected,
            ranking[0].retailer if ranking else None,
        )
        return CompareListResponse(
            items=clean,
            limit=limit,
            retailers=selected,
            best=ranking[0] if ranking else None,
            ranking=ranking,
            detail=detail,
        )
