"""Sellers directory read from the ``sellers`` and ``seller_cards`` tabs.

Unlike the catalog tab, these tabs are header driven: the first row names the
columns and the order of columns does not matter.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence

from .columns import pad_row
from .models import Seller, SellerCard, SellerDirectory, SellerListing
from .utils import unique_keep_order

logger = logging.getLogger(__name__)

DEFAULT_SELLER_HREF = "/sellers"
DEFAULT_SELLER_DESCRIPTION = "Selected seller for consistency and reliability."

_SELLER_TAG_SPLIT_RE = re.compile(r"[,;|/\n]+")


def header_records(values: Sequence[Sequence[object]]) -> list[dict[str, str]]:
    """Rows below the header as ``{lower-cased header: trimmed cell}``."""
    if not values:
        return []
    headers = [str(cell or "").strip().lower() for cell in values[0]]
    records: list[dict[str, str]] = []
    for raw in values[1:]:
        cells = pad_row(raw, len(headers))
        record: dict[str, str] = {}
        for header, cell in zip(headers, cells):
            if header and header not in record:
                record[header] = cell.strip()
        records.append(record)
    return records


def _first(record: dict[str, str], *keys: str) -> str:
    for key in keys:
        value = record.get(key, "")
        if value:
            return value
    return ""


def split_seller_tags(text: Optional[str]) -> list[str]:
    return unique_keep_order(_SELLER_TAG_SPLIT_RE.split(text or ""))


def parse_sellers(values: Sequence[Sequence[object]]) -> list[Seller]:
    """Rows lacking an ``id`` or ``name`` are skipped."""
    sellers: list[Seller] = []
    for record in header_records(values):
        seller_id = record.get("id", "")
        name = record.get("name", "")
        if not seller_id or not name:
            continue
        sellers.append(
            Seller(
                id=seller_id,
                name=name,
                tags=split_seller_tags(_first(record, "tags", "specialities", "brands")),
                yupoo_url=record.get("yupoo_url") or None,
                whatsapp=record.get("whatsapp") or None,
                store_url=record.get("store_url") or None,
            )
        )
    return sellers


def parse_seller_cards(values: Sequence[Sequence[object]]) -> list[SellerCard]:
    cards: list[SellerCard] = []
    for record in header_records(values):
        card_id = record.get("id", "")
        seller_id = record.get("seller_id", "")
        title = record.get("title", "")
        if not card_id or not seller_id or not title:
            continue
        cards.append(
            SellerCard(
                id=card_id,
                seller_id=seller_id,
                title=title,
                description=_first(record, "description", "subtitle") or None,
                image=record.get("image") or None,
            )
        )
    return cards


def build_directory(
    seller_values: Sequence[Sequence[object]], card_values: Sequence[Sequence[object]]
) -> SellerDirectory:
    directory = SellerDirectory(sellers=parse_sellers(seller_values), cards=parse_seller_cards(card_values))
    logger.info("sellers directory built sellers=%s cards=%s", len(directory.sellers), len(directory.cards))
    return directory


def seller_listings(sellers: Iterable[Seller]) -> list[SellerListing]:
    """Public list: first seller per case-insensitive name, in tab order."""
    seen: set[str] = set()
    listings: list[SellerListing] = []
    for seller in sellers:
        name = seller.name.strip()
        key = name.lower()
        if not name or key in seen:
            continue
        seen.add(key)
        description = (
            f"Specialities: {' · '.join(seller.tags[:3])}" if seller.tags else DEFAULT_SELLER_DESCRIPTION
        )
        listings.append(
            SellerListing(
                name=name,
                description=description,
                tags=list(seller.tags),
                verified=True,
                href=seller.store_url or seller.yupoo_url or DEFAULT_SELLER_HREF,
            )
        )
    return listings
