"""Row parser: fixed-column sheet rows to :class:`CatalogItem`."""
from __future__ import annotations

import logging
import math
import re
from typing import Optional, Sequence

from .columns import COLUMN_COUNT, IMAGE_SLOTS, decode_row, pad_row
from .config import settings
from .images import clean_image_url, dedupe_images, extract_urls, scan_for_image_urls
from .links import agent_product_url
from .models import CatalogItem
from .utils import slugify, unique_keep_order

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Item"

_CURRENCY_RE = re.compile(r"(?i)cny|rmb|eur|usd|[¥￥€$£~元]")
_NUMBER_RE = re.compile(r"\d{1,3}(?:[ \u00a0']\d{3})+(?:[.,]\d+)?|\d[\d.,]*")
_THOUSANDS_COMMA_RE = re.compile(r"^\d{1,3}(,\d{3})+$")
_THOUSANDS_DOT_RE = re.compile(r"^\d{1,3}(\.\d{3}){2,}$")
_TAG_SPLIT_RE = re.compile(r"[\n\r,;|]+")


def parse_price(text: Optional[str]) -> Optional[float]:
    """Loosely extract an amount from price text such as ``"¥1,500"``.

    Currency symbols and codes are ignored. Separators are resolved as follows:

    * both ``,`` and ``.`` present: the rightmost one is the decimal mark;
    * only ``,``: thousands when it groups by three (``1,500``), else decimal;
    * only ``.``: decimal, unless repeated in groups of three (``1.500.000``).

    Digit groups may also be split by one space, NBSP or ``'`` followed by
    exactly three digits (``1 500``). Any other gap ends the number, so
    ``"CNY 238 EUR 32"`` reads as 238.

    Returns ``None`` when nothing numeric is found.
    """
    if not text:
        return None
    stripped = _CURRENCY_RE.sub(" ", str(text))
    match = _NUMBER_RE.search(stripped)
    if not match:
        return None
    number = re.sub(r"[\s']", "", match.group(0)).rstrip(".,")
    if not number:
        return None
    if "," in number and "." in number:
        if number.rfind(",") > number.rfind("."):
            number = number.replace(".", "").replace(",", ".")
        else:
            number = number.replace(",", "")
    elif "," in number:
        if _THOUSANDS_COMMA_RE.match(number):
            number = number.replace(",", "")
        else:
            number = number.replace(",", ".", 1).replace(",", "")
    elif _THOUSANDS_DOT_RE.match(number):
        number = number.replace(".", "")
    try:
        value = float(number)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def convert_price(amount: Optional[float], rate: float) -> Optional[float]:
    """Apply the rate and round half-up to cents."""
    if amount is None:
        return None
    return math.floor(amount * rate * 100 + 0.5) / 100


def parse_tags(text: Optional[str]) -> list[str]:
    return unique_keep_order(_TAG_SPLIT_RE.split(text or ""))


def derive_slug(raw_slug: str, title: str, item_id: str) -> str:
    """Explicit slug cell, else the title, else the id."""
    if raw_slug:
        slug = slugify(raw_slug)
        if slug:
            return slug
    return slugify(title) or item_id


def row_is_empty(row: Sequence[str]) -> bool:
    return not any((cell or "").strip() for cell in row)


def collect_images(fields: dict, row: Sequence[str], photo_host: str) -> list[str]:
    """Primary slots, then the extra-images cell, then a whole-row scan."""
    primary = [clean_image_url(fields[slot], photo_host) for slot in IMAGE_SLOTS]
    extra = [clean_image_url(url, photo_host) for url in extract_urls(fields["img_extra"])]
    declared = dedupe_images(primary + extra, photo_host)
    scanned = scan_for_image_urls(row, photo_host)
    return dedupe_images(declared + scanned, photo_host)


def parse_row(
    row: Sequence[object],
    row_number: int,
    rate: float,
    photo_host: str = settings.photo_host,
    agent: str = settings.agent_link,
    agent_ref: str = settings.agent_ref,
) -> Optional[CatalogItem]:
    """Decode one raw sheet row; ``None`` for a fully blank row."""
    cells = pad_row(row, COLUMN_COUNT)
    fields = dict(decode_row(cells))
    title = fields["title"]
    source_url = fields["source_url"]
    if not title and not source_url and row_is_empty(cells):
        return None

    item_id = fields["id"] or f"row-{row_number}"
    images = collect_images(fields, cells, photo_host)
    price_raw = fields["source_price"]

    return CatalogItem(
        row_number=row_number,
        id=item_id,
        slug=derive_slug(fields["slug"], title, item_id),
        title=title or DEFAULT_TITLE,
        brand=fields["brand"],
        category=fields["category"],
        seller=fields["seller"],
        images=images,
        cover=images[0] if images else "",
        source_url=source_url,
        agent_url=agent_product_url(source_url, agent, agent_ref),
        source_price_raw=price_raw,
        tags=parse_tags(fields["tags"]),
        price_converted=convert_price(parse_price(price_raw), rate),
    )
