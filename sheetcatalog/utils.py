"""Utility helpers for text normalization.

The same normalization feeds three places: free-text search (haystack and
query), slug derivation for items, and the slug/title/id lookup index. Keeping
them in one module guarantees that a slug produced by the row parser resolves
through the lookup index.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Any, Iterable, Optional

SLUG_MAX_LENGTH = 80

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def strip_diacritics(text: str) -> str:
    """Decompose to NFD and drop combining marks (``"Café"`` -> ``"Cafe"``)."""
    # NFD rather than unidecode: transliteration would change existing item slugs.
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: Optional[str]) -> str:
    """Trim, lowercase and strip diacritics; used for substring search."""
    if not text:
        return ""
    return strip_diacritics(str(text).strip().lower())


def normalize_slug(value: Any) -> str:
    """Lowercase, strip accents, turn every non ``[a-z0-9]`` run into ``-``."""
    base = normalize_text("" if value is None else str(value))
    return _NON_SLUG_RE.sub("-", base).strip("-")


def slugify(value: Any) -> str:
    """Slug used for item URLs: :func:`normalize_slug` capped at 80 chars."""
    return normalize_slug(value)[:SLUG_MAX_LENGTH].strip("-")


def unique_keep_order(values: Iterable[str]) -> list[str]:
    """Drop blanks and case-insensitive duplicates, keeping first spelling."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in values:
        value = (raw or "").strip()
        if not value:
            continue
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(value)
    return result
