"""Shared fixtures: an in-memory sheet that behaves like the Sheets API."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import pytest

from sheetcatalog.cache import CatalogCache
from sheetcatalog.catalog import CatalogService
from sheetcatalog.columns import COLUMN_COUNT, COLUMNS, FIRST_DATA_ROW, IMAGE_SLOTS, pad_row
from sheetcatalog.config import Settings
from sheetcatalog.fx import fixed_rate
from sheetcatalog.sheets_client import column_width

RATE = 0.136
# 2024-05-01T12:00:00Z
FIXED_NOW = 1714564800.0


def make_row(images: Sequence[str] = (), **fields: str) -> List[str]:
    """Build a 20-cell row from column names (``title=...``, ``tags=...``)."""
    positions = {column.name: column.index for column in COLUMNS}
    row = [""] * COLUMN_COUNT
    for slot, url in zip(IMAGE_SLOTS, images):
        row[positions[slot]] = url
    for name, value in fields.items():
        row[positions[name]] = value
    return row


SAMPLE_ROWS: List[List[str]] = [
    # row 2
    make_row(
        id="a1",
        title="Nike Air Max",
        brand="Nike",
        category="Shoes",
        seller="Alpha",
        images=[
            "//photo.yupoo.com/alpha/h1/medium.jpg?auth=1",
            "https://photo.yupoo.com/alpha/h1/big.jpg",
            "https://cdn.example.com/p/1.png",
        ],
        img_extra="https://photo.yupoo.com/alpha/h2/small.jpg | https://cdn.example.com/p/1.png?x=1",
        source_url="https://shop.example.com/a1",
        source_price="¥1500",
        tags="new, Sale\nnew",
    ),
    # row 3
    make_row(
        id="a2",
        slug="Custom Slug",
        title="Café Hoodie",
        brand="Stüssy",
        category="Hoodies",
        seller="Beta",
        source_price="CNY 238.50",
    ),
    # row 4: blank
    [],
    # row 5
    make_row(id="x", title="Jacket X", brand="nike", category="Jackets", seller="Alpha"),
    # row 6: no title, still a row
    make_row(id="a4", source_url="https://shop.example.com/a4"),
    # row 7
    make_row(id="a5", title="Adidas Samba", brand="Adidas", category="Shoes", seller="Gamma", source_price="n/a"),
    # rows 8..17
    *[
        make_row(id=f"f{n}", title=f"Filler {n}", brand=f"Brand{n % 3}", category="Misc", seller="Delta")
        for n in range(8, 18)
    ],
]

TITLED_ROWS = [2, 3, 5, 7, *range(8, 18)]

SELLER_TABS: Dict[str, List[List[str]]] = {
    "sellers": [
        ["id", "Name", "tags", "yupoo_url", "whatsapp", "store_url"],
        ["s1", "Alpha", "Nike; jordan / NIKE", "https://alpha.x.yupoo.com", "", ""],
        ["s2", "Beta", "", "", "+39 000", "https://beta.example.com"],
        ["", "No Id", "x"],
        ["s3", "", "y"],
        ["s4", "alpha", "Adidas"],
        ["s5", "Gamma", "a,b,c,d"],
    ],
    "seller_cards": [
        ["id", "seller_id", "title", "subtitle", "image"],
        ["c1", "s1", "Sneakers", "Top batches", "https://img.example.com/c1.jpg"],
        ["c2", "s2", ""],
    ],
}


class FakeSheet:
    """Accessor double that trims trailing blank rows like ``values.get``."""

    def __init__(
        self,
        rows: Sequence[Sequence[str]] = SAMPLE_ROWS,
        tabs: Optional[Dict[str, List[List[str]]]] = None,
    ) -> None:
        self.rows: Dict[int, List[str]] = {
            FIRST_DATA_ROW + offset: list(row) for offset, row in enumerate(rows)
        }
        self.range_calls: List[tuple] = []
        self.batch_calls: List[tuple] = []
        self.tabs = dict(SELLER_TABS if tabs is None else tabs)
        self.tab_calls: List[tuple] = []

    def _last_row(self, width: int) -> int:
        filled = [n for n, row in self.rows.items() if any(cell.strip() for cell in row[:width])]
        return max(filled, default=FIRST_DATA_ROW - 1)

    async def get_range(
        self,
        start_row: int = FIRST_DATA_ROW,
        end_row: Optional[int] = None,
        *,
        last_column: str = "T",
    ) -> List[List[str]]:
        self.range_calls.append((start_row, end_row, last_column))
        width = column_width(last_column)
        last = self._last_row(width)
        stop = last if end_row is None else min(end_row, last)
        return [pad_row(self.rows.get(n, [])[:width], width) for n in range(start_row, stop + 1)]

    async def batch_get_rows(self, row_numbers: Sequence[int]) -> Dict[int, List[str]]:
        self.batch_calls.append(tuple(row_numbers))
        return {n: pad_row(self.rows.get(n, []), COLUMN_COUNT) for n in row_numbers}

    async def list_tabs(self, spreadsheet_id: Optional[str] = None) -> List[str]:
        self.tab_calls.append(("list", spreadsheet_id))
        return list(self.tabs)

    async def get_tabs(self, titles: Sequence[str], spreadsheet_id: Optional[str] = None) -> List[List[List[str]]]:
        self.tab_calls.append(("get", tuple(titles), spreadsheet_id))
        return [[list(row) for row in self.tabs.get(title, [])] for title in titles]


class FakeClock:
    def __init__(self, now: float = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(**overrides) -> Settings:
    values = dict(
        sheet_id="sheet-id",
        sheet_tab="items",
        cache_ttl_seconds=600,
        default_page_size=5,
        shuffle_seed="",
        photo_host="photo.yupoo.com",
        agent_link="usfans",
        agent_ref="",
        sellers_sheet_id="",
        sellers_tab="sellers",
        seller_cards_tab="seller_cards",
        sellers_ttl_seconds=300,
    )
    values.update(overrides)
    return Settings(**values)


def make_service(
    sheet: Optional[FakeSheet] = None,
    clock: Optional[FakeClock] = None,
    rate: float = RATE,
    **overrides,
) -> CatalogService:
    config = make_settings(**overrides)
    clock = clock or FakeClock()
    return CatalogService(
        sheet if sheet is not None else FakeSheet(),
        fixed_rate(rate),
        CatalogCache.from_settings(config, clock=clock),
        config=config,
    )


@pytest.fixture
def sheet() -> FakeSheet:
    return FakeSheet()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(sheet: FakeSheet, clock: FakeClock) -> CatalogService:
    return make_service(sheet, clock)
