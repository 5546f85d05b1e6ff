"""Metadata projection, facets and the slug/title/id resolution index."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .columns import FIRST_DATA_ROW, META_COLUMNS, pad_row
from .models import CatalogMeta, Facets, MetaRow
from .parser import derive_slug
from .utils import normalize_slug, normalize_text, unique_keep_order

logger = logging.getLogger(__name__)


def unique_sorted(values: Iterable[str]) -> list[str]:
    """Case-insensitive dedup (first spelling kept), alphabetical order."""
    return sorted(unique_keep_order(values), key=lambda value: (normalize_text(value), value))


def build_meta_rows(values: Sequence[Sequence[object]], first_row: int = FIRST_DATA_ROW) -> list[MetaRow]:
    """Project raw ``A..F`` rows; rows without a title are skipped."""
    rows: list[MetaRow] = []
    for offset, raw in enumerate(values):
        cells = [cell.strip() for cell in pad_row(raw, len(META_COLUMNS))]
        item_id, raw_slug, title, brand, category, seller = cells
        if not title:
            continue
        row_number = first_row + offset
        rows.append(
            MetaRow(
                row_number=row_number,
                id=item_id,
                slug=derive_slug(raw_slug, title, item_id or f"row-{row_number}"),
                title=title,
                brand=brand,
                category=category,
                seller=seller,
            )
        )
    return rows


def compute_facets(rows: Iterable[MetaRow]) -> Facets:
    rows = list(rows)
    return Facets(
        brands=unique_sorted(row.brand for row in rows),
        categories=unique_sorted(row.category for row in rows),
        sellers=unique_sorted(row.seller for row in rows),
    )


def build_meta(
    values: Sequence[Sequence[object]], first_row: int = FIRST_DATA_ROW, built_at: float = 0.0
) -> CatalogMeta:
    rows = build_meta_rows(values, first_row)
    facets = compute_facets(rows)
    logger.info(
        "meta built rows=%s brands=%s categories=%s sellers=%s",
        len(rows),
        len(facets.brands),
        len(facets.categories),
        len(facets.sellers),
    )
    return CatalogMeta(rows=rows, facets=facets, built_at=built_at)


@dataclass
class SlugIndex:
    """Normalized slug/title/id -> row number, first occurrence wins."""

    by_slug: dict[str, int] = field(default_factory=dict)
    by_title: dict[str, int] = field(default_factory=dict)
    by_id: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows: Iterable[MetaRow]) -> "SlugIndex":
        index = cls()
        for row in rows:
            for mapping, raw in (
                (index.by_id, row.id),
                (index.by_slug, row.slug),
                (index.by_title, row.title),
            ):
                key = normalize_slug(raw)
                if key and key not in mapping:
                    mapping[key] = row.row_number
        return index

    def resolve(self, key: str) -> Optional[int]:
        """Slug match beats title match beats id match."""
        for mapping in (self.by_slug, self.by_title, self.by_id):
            row_number = mapping.get(key)
            if row_number is not None:
                return row_number
        return None

    def __len__(self) -> int:
        return len(self.by_slug) + len(self.by_title) + len(self.by_id)
