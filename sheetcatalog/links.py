"""Marketplace source links to shopping-agent product links.

Taobao and Tmall listings carry the item in ``id``; Weidian uses ``itemID``
(sometimes spelled ``itemId``). Anything else has no agent equivalent and maps
to ``None``.
"""
from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence
from urllib.parse import SplitResult, parse_qs, quote, urlsplit

DEFAULT_USFANS_REF = "R9K9XG"
DEFAULT_MULEBUY_REF = "200836051"

TAOBAO = "TAOBAO"
WEIDIAN = "WEIDIAN"

_USFANS_PLATFORM_IDS = {TAOBAO: 2, WEIDIAN: 3}


def _component(value: str) -> str:
    # same escaping as JavaScript's encodeURIComponent
    return quote(value, safe="-_.!~*'()")


def _split(url: Optional[str]) -> Optional[SplitResult]:
    try:
        parts = urlsplit((url or "").strip())
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    return parts


def _first_param(query: Dict[str, list[str]], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        values = query.get(key)
        if values and values[0].strip():
            return values[0].strip()
    return None


def marketplace_item(url: Optional[str]) -> Optional[tuple[str, str]]:
    """Return ``(platform, item_id)`` for a Taobao/Tmall/Weidian item URL."""
    parts = _split(url)
    if parts is None:
        return None
    host = parts.hostname.lower()
    query = parse_qs(parts.query, keep_blank_values=True)
    if "taobao.com" in host or "tmall.com" in host:
        item_id = _first_param(query, ("id",))
        return (TAOBAO, item_id) if item_id else None
    if "weidian.com" in host:
        item_id = _first_param(query, ("itemID", "itemId"))
        return (WEIDIAN, item_id) if item_id else None
    return None


def _host(url: Optional[str]) -> str:
    parts = _split(url)
    return parts.hostname.lower() if parts is not None else ""


def to_usfans_product_url(url: Optional[str], ref: str = DEFAULT_USFANS_REF) -> Optional[str]:
    """``https://item.taobao.com/item.htm?id=1`` -> ``https://www.usfans.com/product/2/1?ref=...``.

    Links that already point at USFans are returned unchanged.
    """
    if "usfans.com" in _host(url):
        return url
    item = marketplace_item(url)
    if item is None:
        return None
    platform, item_id = item
    return f"https://www.usfans.com/product/{_USFANS_PLATFORM_IDS[platform]}/{_component(item_id)}?ref={_component(ref)}"


def to_mulebuy_product_url(url: Optional[str], ref: str = DEFAULT_MULEBUY_REF) -> Optional[str]:
    if "mulebuy.com" in _host(url):
        return url
    item = marketplace_item(url)
    if item is None:
        return None
    platform, item_id = item
    return f"https://mulebuy.com/product?id={_component(item_id)}&platform={platform}&ref={_component(ref)}"


AGENTS: Dict[str, Callable[..., Optional[str]]] = {
    "usfans": to_usfans_product_url,
    "mulebuy": to_mulebuy_product_url,
}


def agent_product_url(url: Optional[str], agent: str = "usfans", ref: str = "") -> Optional[str]:
    """Dispatch to the configured agent; an empty ``ref`` keeps the agent default."""
    converter = AGENTS.get((agent or "").strip().lower())
    if converter is None:
        return None
    return converter(url, ref) if ref else converter(url)
