"""Catalog query orchestration on top of the sheet accessor and caches.

Every public operation goes through :class:`CatalogCache` first and only
touches the sheet on a miss:

* ``get_items_page`` reads one contiguous block of rows (cheap listing).
* ``get_spreadsheet_page`` filters and orders the cached metadata projection,
  then batch-fetches only the rows of the requested page.
* ``get_item_by_slug_or_id`` resolves a key through the cached lookup index
  and fetches a single row.
* ``get_sellers`` reads the two sellers tabs in one batch, cached on its own
  (shorter) TTL.
"""
from __future__ import annotations

import logging
import math
from time import perf_counter
from typing import Any, Callable, Dict, Optional, Protocol, Sequence
from urllib.parse import unquote

from .cache import CatalogCache
from .columns import FIRST_DATA_ROW, META_LAST_COLUMN
from .config import Settings, settings
from .filters import filter_row_numbers
from .fx import RateProvider
from .metadata import SlugIndex, build_meta
from .models import (
    ALL,
    CatalogItem,
    CatalogMeta,
    Facets,
    FilterSpec,
    Order,
    PageResult,
    SellerDirectory,
    SellerListing,
    SpreadsheetPage,
)
from .parser import parse_row
from .sellers import build_directory, seller_listings
from .sheets_client import pick_tab
from .shuffle import daily_seed, shuffle_key, shuffled
from .utils import normalize_slug

logger = logging.getLogger(__name__)

# Columns A..C are enough to know how many data rows the sheet spans.
COUNT_LAST_COLUMN = "C"


class CatalogTooLargeError(RuntimeError):
    """Refusing to load the whole sheet past the configured hard cap."""


class SheetReader(Protocol):
    async def get_range(
        self, start_row: int = ..., end_row: Optional[int] = ..., *, last_column: str = ...
    ) -> list[list[str]]: ...

    async def batch_get_rows(self, row_numbers: Sequence[int]) -> Dict[int, list[str]]: ...

    async def list_tabs(self, spreadsheet_id: Optional[str] = ...) -> list[str]: ...

    async def get_tabs(
        self, titles: Sequence[str], spreadsheet_id: Optional[str] = ...
    ) -> list[list[list[str]]]: ...


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, number or default)


def _page_window(total: int, page: int, page_size: int) -> tuple[int, int, int]:
    """Return ``(safe_page, total_pages, start_index)`` with the page clamped."""
    total_pages = max(1, math.ceil(total / page_size))
    safe_page = min(page, total_pages)
    return safe_page, total_pages, (safe_page - 1) * page_size


def _facet_value(value: Optional[str]) -> str:
    value = (value or "").strip()
    return value or ALL


class CatalogService:
    def __init__(
        self,
        accessor: SheetReader,
        rate_provider: RateProvider,
        cache: Optional[CatalogCache] = None,
        config: Settings = settings,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.accessor = accessor
        self.rate_provider = rate_provider
        self.config = config
        self.cache = cache if cache is not None else CatalogCache.from_settings(config)
        self.clock = clock if clock is not None else self.cache.clock

    def _parse(self, raw: Sequence[object], row_number: int, rate: float) -> Optional[CatalogItem]:
        config = self.config
        return parse_row(raw, row_number, rate, config.photo_host, config.agent_link, config.agent_ref)

    # ---- cached building blocks -------------------------------------------------

    async def get_items_count(self) -> int:
        """Number of data rows the sheet spans (blank rows in between included)."""

        async def load() -> int:
            values = await self.accessor.get_range(FIRST_DATA_ROW, last_column=COUNT_LAST_COLUMN)
            return len(values)

        return await self.cache.count.get_or_load("count", load)

    async def get_meta(self) -> CatalogMeta:
        async def load() -> CatalogMeta:
            values = await self.accessor.get_range(FIRST_DATA_ROW, last_column=META_LAST_COLUMN)
            return build_meta(values, FIRST_DATA_ROW, built_at=self.clock())

        return await self.cache.meta.get_or_load("meta", load)

    async def get_facets(self) -> Facets:
        return (await self.get_meta()).facets

    async def _get_index(self) -> SlugIndex:
        async def load() -> SlugIndex:
            meta = await self.get_meta()
            index = SlugIndex.from_rows(meta.rows)
            logger.info("slug index built keys=%s", len(index))
            return index

        return await self.cache.index.get_or_load("index", load)

    async def _ordered_row_numbers(self, meta: CatalogMeta, spec: FilterSpec, order: Order, seed: str) -> tuple[int, ...]:
        signature = spec.signature()
        # Orders are only valid for the metadata snapshot they were computed from.
        key = (meta.built_at, order, shuffle_key(seed, signature) if order == "random" else signature)

        async def load() -> tuple[int, ...]:
            matches = filter_row_numbers(meta.rows, spec)
            if order == "random":
                matches = shuffled(shuffle_key(seed, signature), matches)
            return tuple(matches)

        return await self.cache.orders.get_or_load(key, load)

    async def fetch_items_by_row_numbers(self, row_numbers: Sequence[int]) -> list[CatalogItem]:
        """Parsed items for ``row_numbers`` in that order; blank rows dropped."""
        wanted = tuple(row_numbers)
        if not wanted:
            return []

        async def load() -> list[CatalogItem]:
            raw_rows = await self.accessor.batch_get_rows(wanted)
            rate = await self.rate_provider()
            items: list[CatalogItem] = []
            for row_number in wanted:
                raw = raw_rows.get(row_number)
                if raw is None:
                    continue
                item = self._parse(raw, row_number, rate)
                if item is not None:
                    items.append(item)
            return items

        return await self.cache.rows.get_or_load(wanted, load)

    # ---- public operations ------------------------------------------------------

    async def get_items_page(self, page: Any = 1, page_size: Any = None) -> PageResult:
        """Natural-order page read straight from a contiguous range."""
        requested_page = _positive_int(page, 1)
        size = _positive_int(page_size, self.config.default_page_size)
        total = await self.get_items_count()
        safe_page, total_pages, start_index = _page_window(total, requested_page, size)

        async def load() -> PageResult:
            start_row = FIRST_DATA_ROW + start_index
            values = await self.accessor.get_range(start_row, start_row + size - 1)
            rate = await self.rate_provider()
            items: list[CatalogItem] = []
            for offset, raw in enumerate(values):
                item = self._parse(raw, start_row + offset, rate)
                if item is not None:
                    items.append(item)
            return PageResult(
                items=items,
                page=safe_page,
                page_size=size,
                total_items=total,
                total_pages=total_pages,
            )

        return await self.cache.pages.get_or_load((safe_page, size), load)

    async def get_spreadsheet_page(
        self,
        page: Any = 1,
        page_size: Any = None,
        *,
        query: Optional[str] = None,
        brand: Optional[str] = None,
        category: Optional[str] = None,
        seller: Optional[str] = None,
        order: Optional[str] = None,
        seed: Optional[str] = None,
    ) -> SpreadsheetPage:
        """Filtered, ordered page with facets.

        ``order="default"`` keeps sheet order; anything else shuffles with the
        given seed, the configured seed, or today's UTC date.
        """
        t0 = perf_counter()
        requested_page = _positive_int(page, 1)
        size = _positive_int(page_size, self.config.default_page_size)
        resolved_order: Order = "default" if order == "default" else "random"
        spec = FilterSpec(
            query=(query or "").strip(),
            brand=_facet_value(brand),
            category=_facet_value(category),
            seller=_facet_value(seller),
        )
        base_seed = (seed or "").strip() or self.config.shuffle_seed or daily_seed(self.clock)

        meta = await self.get_meta()
        t1 = perf_counter()
        ordered = await self._ordered_row_numbers(meta, spec, resolved_order, base_seed)
        t2 = perf_counter()

        safe_page, total_pages, start_index = _page_window(len(ordered), requested_page, size)
        page_rows = ordered[start_index : start_index + size]
        items = await self.fetch_items_by_row_numbers(page_rows)
        t3 = perf_counter()

        logger.info(
            "timing: total=%.2fms meta=%.2fms order=%.2fms fetch=%.2fms page=%s/%s matches=%s order=%s filter=%s",
            (t3 - t0) * 1000,
            (t1 - t0) * 1000,
            (t2 - t1) * 1000,
            (t3 - t2) * 1000,
            safe_page,
            total_pages,
            len(ordered),
            resolved_order,
            spec.signature(),
        )
        return SpreadsheetPage(
            items=items,
            page=safe_page,
            page_size=size,
            total_items=len(ordered),
            total_pages=total_pages,
            facets=meta.facets,
            order=resolved_order,
        )

    async def get_item_by_slug_or_id(self, key: Optional[str]) -> Optional[CatalogItem]:
        """Resolve a URL key by slug, then title, then id."""
        wanted = normalize_slug(unquote(key or ""))
        if not wanted:
            return None
        index = await self._get_index()
        row_number = index.resolve(wanted)
        if row_number is None:
            logger.info("item not found key=%r", wanted)
            return None
        items = await self.fetch_items_by_row_numbers([row_number])
        return items[0] if items else None

    async def get_items_head(self, limit: Any = None) -> list[CatalogItem]:
        size = _positive_int(limit, self.config.head_limit)

        async def load() -> list[CatalogItem]:
            return (await self.get_items_page(1, size)).items

        return await self.cache.head.get_or_load(size, load)

    async def get_items_preview(self, limit: Any = None) -> list[CatalogItem]:
        return await self.get_items_head(_positive_int(limit, self.config.preview_limit))

    async def get_items_from_sheet(self) -> list[CatalogItem]:
        """Load every item, refusing sheets beyond ``MAX_LOAD_ALL_ITEMS``."""
        total = await self.get_items_count()
        cap = self.config.max_load_all_items
        if total > cap:
            raise CatalogTooLargeError(
                f"Too many items ({total} > {cap}); use get_items_page() or get_spreadsheet_page()."
            )
        size = self.config.load_all_page_size
        pages = max(1, math.ceil(total / size))
        items: list[CatalogItem] = []
        for page in range(1, pages + 1):
            items.extend((await self.get_items_page(page, size)).items)
        logger.info("loaded full catalog items=%s pages=%s", len(items), pages)
        return items

    async def get_seller_directory(self) -> SellerDirectory:
        """Sellers and seller cards from their own tabs, picked by title or position."""

        async def load() -> SellerDirectory:
            sheet_id = self.config.sellers_sheet_id or None
            available = await self.accessor.list_tabs(sheet_id)
            tabs = [
                pick_tab(available, self.config.sellers_tab, 0),
                pick_tab(available, self.config.seller_cards_tab, 1),
            ]
            seller_values, card_values = await self.accessor.get_tabs(tabs, sheet_id)
            return build_directory(seller_values, card_values)

        return await self.cache.sellers.get_or_load("sellers", load)

    async def get_sellers(self) -> list[SellerListing]:
        return seller_listings((await self.get_seller_directory()).sellers)
