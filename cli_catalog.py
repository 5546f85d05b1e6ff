"""Terminal client that reuses the in-process catalog service."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from time import perf_counter
from typing import Iterable, Sequence

from sheetcatalog.cache import CatalogCache
from sheetcatalog.catalog import CatalogService
from sheetcatalog.config import settings
from sheetcatalog.fx import fixed_rate, get_cny_to_eur_rate
from sheetcatalog.models import CatalogItem
from sheetcatalog.sheets_client import SheetAccessor

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


def build_service(rate: float | None = None) -> CatalogService:
    provider = fixed_rate(rate) if rate is not None else get_cny_to_eur_rate
    return CatalogService(SheetAccessor(settings), provider, CatalogCache.from_settings(settings))


def _eta_label(started: float) -> str:
    eta = (perf_counter() - started) * 1000
    color = GREEN if eta < 500 else RED
    return f"{color}{eta:.1f} ms{RESET}"


def print_items(items: Sequence[CatalogItem]) -> None:
    for idx, item in enumerate(items, start=1):
        price = f"{item.price_converted:.2f} EUR" if item.price_converted is not None else "-"
        print(
            f"  {idx:02d}. row={item.row_number} | {item.brand or '-'} | {item.title} | "
            f"{item.seller or '-'} | {price} | images={len(item.images)}"
            + (f" | {item.agent_url}" if item.agent_url else "")
        )


async def run(args: argparse.Namespace) -> int:
    service = build_service(args.rate)
    started = perf_counter()

    if args.command == "page":
        result = await service.get_items_page(args.page, args.page_size)
        print(f"Page {result.page}/{result.total_pages} | items: {result.total_items} | ETA: {_eta_label(started)}")
        print_items(result.items)
    elif args.command == "search":
        result = await service.get_spreadsheet_page(
            args.page,
            args.page_size,
            query=args.query,
            brand=args.brand,
            category=args.category,
            seller=args.seller,
            order=args.order,
            seed=args.seed,
        )
        print(
            f"Page {result.page}/{result.total_pages} | matches: {result.total_items} | "
            f"order: {result.order} | ETA: {_eta_label(started)}"
        )
        print_items(result.items)
    elif args.command == "item":
        item = await service.get_item_by_slug_or_id(args.key)
        if item is None:
            print(f"No item for {args.key!r}")
            return 1
        print(json.dumps(item.model_dump(), ensure_ascii=False, indent=2))
    elif args.command == "head":
        items = await service.get_items_head(args.limit)
        print(f"Head: {len(items)} items | ETA: {_eta_label(started)}")
        print_items(items)
    elif args.command == "sellers":
        listings = await service.get_sellers()
        print(f"Sellers: {len(listings)} | ETA: {_eta_label(started)}")
        for idx, listing in enumerate(listings, start=1):
            print(f"  {idx:02d}. {listing.name} | {listing.description} | {listing.href}")
    elif args.command == "export":
        for item in await service.get_items_from_sheet():
            sys.stdout.write(json.dumps(item.model_dump(), ensure_ascii=False) + "\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CLI client for the sheet catalog")
    parser.add_argument("--rate", type=float, help="Fixed CNY->EUR rate instead of the live lookup")
    sub = parser.add_subparsers(dest="command", required=True)

    page = sub.add_parser("page", help="Natural-order page")
    page.add_argument("page", nargs="?", type=int, default=1)
    page.add_argument("--page-size", type=int, default=None)

    search = sub.add_parser("search", help="Filtered and ordered page")
    search.add_argument("query", nargs="?", default="")
    search.add_argument("--page", type=int, default=1)
    search.add_argument("--page-size", type=int, default=None)
    search.add_argument("--brand", default="all")
    search.add_argument("--category", default="all")
    search.add_argument("--seller", default="all")
    search.add_argument("--order", choices=("default", "random"), default="random")
    search.add_argument("--seed", default=None)

    item = sub.add_parser("item", help="Lookup by slug, title or id")
    item.add_argument("key")

    head = sub.add_parser("head", help="First items of the sheet")
    head.add_argument("--limit", type=int, default=None)

    sub.add_parser("sellers", help="Sellers directory")
    sub.add_parser("export", help="Dump every item as JSON lines")
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
