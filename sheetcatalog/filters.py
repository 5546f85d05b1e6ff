"""Filter evaluation over the metadata projection."""
from __future__ import annotations

from typing import Iterable

from .models import ALL, FilterSpec, MetaRow
from .utils import normalize_text


def _constraint(value: str) -> str:
    """Trimmed facet constraint, ``""`` when unconstrained."""
    value = (value or "").strip()
    return "" if value == ALL else value


def filter_row_numbers(rows: Iterable[MetaRow], spec: FilterSpec) -> list[int]:
    """Row numbers matching ``spec``, in sheet order.

    Free text is compared normalized (case and accents ignored) against title,
    brand, seller and category. Facet constraints compare the raw cell value
    exactly, since the UI only offers values taken verbatim from the facets.
    """
    query = normalize_text(spec.query)
    brand = _constraint(spec.brand)
    category = _constraint(spec.category)
    seller = _constraint(spec.seller)

    matches: list[int] = []
    for row in rows:
        if brand and row.brand != brand:
            continue
        if category and row.category != category:
            continue
        if seller and row.seller != seller:
            continue
        if query:
            haystack = normalize_text(f"{row.title} {row.brand} {row.seller} {row.category}")
            if query not in haystack:
                continue
        matches.append(row.row_number)
    return matches
