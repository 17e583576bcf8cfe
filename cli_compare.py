"""Terminal client that reuses the in-process comparison services."""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Iterable, List, Optional

from pricecompare.compare import check_list_cost
from pricecompare.config import RETAILERS
from pricecompare.errors import ListTooLargeError
from pricecompare.models import CompareItemResponse, CompareListResponse
from pricecompare.search_service import pick_retailers
from pricecompare.services import Services, get_services
from pricecompare.terms import clean_items

MAX_ROWS = 10
GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


def pretty_print_item(payload: CompareItemResponse) -> None:
    print(f"Query: {payload.query} | retailers: {', '.join(payload.retailers)}")
    for row in payload.results:
        if row.error:
            print(f"  {RED}{row.retailer}: {row.error}{RESET}")
            continue
        print(f"  {row.retailer}: {len(row.products)} products")
        for idx, product in enumerate(row.products[:MAX_ROWS], start=1):
            print(f"    {idx:02d}. ${product.price:,.2f} | {product.name}")


def pretty_print_list(payload: CompareListResponse) -> None:
    for item in payload.detail:
        pretty_print_item(item)
    print("Ranking:")
    for row in payload.ranking:
        color = GREEN if payload.best and row.retailer == payload.best.retailer else RESET
        missing = f" missing={', '.join(row.missingItems)}" if row.missingItems else ""
        print(f"  {color}{row.retailer}: ${row.total:,.2f}{RESET}{missing}")


async def run_queries(services: Services, queries: Iterable[str], retailers: Optional[List[str]], limit: int) -> None:
    for query in queries:
        pretty_print_item(await services.compare.compare_item(query, retailers, limit))


async def run_list(services: Services, items: List[str], retailers: Optional[List[str]], limit: int) -> None:
    selected = pick_retailers(retailers, services.search.supported_retailers())
    check_list_cost(clean_items(items), selected)
    pretty_print_list(await services.compare.compare_list(items, selected, limit))


async def interactive_shell(services: Services, retailers: Optional[List[str]], limit: int) -> None:
    print("Interactive price comparison. Type 'exit' to quit.")
    while True:
        try:
            query = (await asyncio.to_thread(input, "> ")).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        await run_queries(services, [query], retailers, limit)


def read_batch(file_path: Path) -> List[str]:
    with file_path.open("r", encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip()]


async def _main(args: argparse.Namespace) -> int:
    services = get_services()
    try:
        if args.list:
            await run_list(services, args.list, args.retailers, args.limit)
        elif args.batch:
            await run_queries(services, read_batch(args.batch), args.retailers, args.limit)
        elif args.query:
            await run_queries(services, [args.query], args.retailers, args.limit)
        else:
            await interactive_shell(services, args.retailers, args.limit)
    except ListTooLargeError as exc:
        print(f"{RED}{exc}{RESET}")
        return 2
    finally:
        await services.aclose()
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the price comparison service")
    parser.add_argument("query", nargs="?", help="Item to compare. If omitted, starts REPL mode.")
    parser.add_argument("--list", nargs="+", help="Compare a whole shopping list instead of one item")
    parser.add_argument("--batch", type=Path, help="File with queries to compare line by line")
    parser.add_argument("--retailers", nargs="+", choices=RETAILERS, help="Subset of retailers")
    parser.add_argument("--limit", type=int, default=15, help="Products per retailer")
    args = parser.parse_args(list(argv) if argv is not None else None)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    raise SystemExit(main())
