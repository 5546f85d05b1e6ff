"""Column layout of the catalog sheet (``A``..``T``).

Rows are positional: the sheet has no header-driven mapping. Every column is
declared once here with its decoder, and the table is checked at import time
so a mistyped index fails loudly instead of silently shifting fields.
"""
from __future__ import annotations

import logging
from typing import Callable, Mapping, NamedTuple, Sequence

logger = logging.getLogger(__name__)

COLUMN_COUNT = 20
FIRST_DATA_ROW = 2


def _text(value: str) -> str:
    return (value or "").strip()


class Column(NamedTuple):
    name: str
    index: int
    decoder: Callable[[str], str] = _text


COLUMNS: tuple[Column, ...] = (
    Column("id", 0),
    Column("slug", 1),
    Column("title", 2),
    Column("brand", 3),
    Column("category", 4),
    Column("seller", 5),
    *(Column(f"img{n}", 5 + n) for n in range(1, 9)),
    Column("img_extra", 14),
    Column("status", 15),
    Column("gallery_url", 16),
    Column("source_url", 17),
    Column("source_price", 18),
    Column("tags", 19),
)

IMAGE_SLOTS: tuple[str, ...] = tuple(f"img{n}" for n in range(1, 9))
# Columns A..F are enough to build the metadata projection.
META_COLUMNS: tuple[str, ...] = ("id", "slug", "title", "brand", "category", "seller")


def column_letter(index: int) -> str:
    """Convert a 0-based column index to its A1 letter (0 -> ``A``)."""
    letters = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def validate_columns(columns: Sequence[Column], expected: int = COLUMN_COUNT) -> None:
    """Ensure the table covers indices ``0..expected-1`` exactly once."""
    indices = [column.index for column in columns]
    if sorted(indices) != list(range(expected)):
        raise RuntimeError(
            f"Column table must cover indices 0..{expected - 1} exactly once, got {indices}"
        )
    names = [column.name for column in columns]
    if len(set(names)) != len(names):
        raise RuntimeError(f"Duplicate column names in table: {names}")


def pad_row(row: Sequence[object], width: int = COLUMN_COUNT) -> list[str]:
    """Coerce cells to ``str`` and right-pad with blanks up to ``width``."""
    cells = ["" if cell is None else str(cell) for cell in row][:width]
    if len(cells) < width:
        cells.extend([""] * (width - len(cells)))
    return cells


def decode_row(row: Sequence[str], columns: Sequence[Column] = COLUMNS) -> Mapping[str, str]:
    """Map a padded raw row to ``{column name: decoded value}``."""
    return {column.name: column.decoder(row[column.index]) for column in columns}


LAST_COLUMN = column_letter(COLUMN_COUNT - 1)
META_LAST_COLUMN = column_letter(len(META_COLUMNS) - 1)

validate_columns(COLUMNS)
logger.debug("column table validated: %s columns, last=%s", len(COLUMNS), LAST_COLUMN)
