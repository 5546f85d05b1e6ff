"""Image URL normalization and smart deduplication.

The upstream scraper writes the same photo several times: once per size
variant (``/small.jpg``, ``/medium.jpg``, ``/big.jpg``) and sometimes with and
without an auth token in the query string. :func:`dedupe_images` collapses
those variants into one URL per visual asset:

1. Normalize the URL (scheme-relative and host-relative photohost links
   become absolute ``https`` URLs).
2. Upgrade photohost size variants to ``/big.``, keeping the query string.
3. Derive a dedup key (``seller/hash`` path prefix on the photohost, the bare
   lower-cased URL elsewhere).
4. Keep the first-seen position per key; a later variant replaces the stored
   URL only when it scores strictly higher.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Optional
from urllib.parse import urlsplit

from .config import settings

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"https?://[^\s,|;]+", re.IGNORECASE)
IMAGE_EXT_PATTERN = re.compile(r"\.(jpe?g|png|webp|gif|avif)(\?|#|$)", re.IGNORECASE)
_SIZE_VARIANT_RE = re.compile(
    r"/(medium|small|thumb|square)\.(jpg|jpeg|png|webp)(\?.*)?$", re.IGNORECASE
)
_ABSOLUTE_RE = re.compile(r"^https?://", re.IGNORECASE)

BIG_MARKER = "/big."
# Video placeholder the scraper stores next to real photos.
PLACEHOLDER_MARKERS = ("ci_play.png",)


def _is_photohost(host: str, photo_host: str) -> bool:
    return bool(photo_host) and photo_host in host.lower()


def normalize_http(url: Optional[str], photo_host: str = settings.photo_host) -> str:
    """Make scheme-relative and host-relative photohost links absolute."""
    value = (url or "").strip()
    if not value:
        return ""
    if value.startswith("//"):
        return f"https:{value}"
    if photo_host and value.lower().startswith(f"/{photo_host}/"):
        return f"https://{value[1:]}"
    return value


def to_big_variant(url: str, photo_host: str = settings.photo_host) -> str:
    """Rewrite ``/medium.jpg?x`` style photohost URLs to ``/big.jpg?x``."""
    fixed = normalize_http(url, photo_host)
    if not fixed or not _is_photohost(_host_of(fixed), photo_host):
        return fixed
    return _SIZE_VARIANT_RE.sub(
        lambda m: f"/big.{m.group(2)}{m.group(3) or ''}", fixed
    )


def _host_of(url: str) -> str:
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        return ""


def dedup_key(url: str, photo_host: str = settings.photo_host) -> str:
    """Identity of the underlying asset behind ``url``."""
    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
    except ValueError:
        return f"url:{url.lower()}"
    if _is_photohost(host, photo_host):
        segments = [segment for segment in parts.path.split("/") if segment]
        if len(segments) >= 2:
            return f"photo:{segments[0]}/{segments[1]}"
    bare = f"{parts.scheme}://{parts.netloc}{parts.path}"
    return f"url:{bare.lower()}"


def score_url(url: str) -> int:
    """Rank variants of one asset: big beats small, tokenized beats bare."""
    value = (url or "").strip()
    if not value:
        return -1
    score = 0
    if BIG_MARKER in value.lower():
        score += 4
    try:
        if urlsplit(value).query:
            score += 2
    except ValueError:
        pass
    score += min(2, len(value) // 120)
    return score


def clean_image_url(raw: Optional[str], photo_host: str = settings.photo_host) -> str:
    """Normalize one candidate, returning ``""`` when it is not usable."""
    url = to_big_variant(normalize_http(raw, photo_host), photo_host)
    if not url or not _ABSOLUTE_RE.match(url):
        return ""
    lowered = url.lower()
    if any(marker in lowered for marker in PLACEHOLDER_MARKERS):
        return ""
    return url


def dedupe_images(urls: Iterable[Optional[str]], photo_host: str = settings.photo_host) -> list[str]:
    """Collapse size/token variants to one best URL per asset, first-seen order."""
    order: list[str] = []
    chosen: dict[str, str] = {}
    for raw in urls:
        url = clean_image_url(raw, photo_host)
        if not url:
            continue
        key = dedup_key(url, photo_host)
        previous = chosen.get(key)
        if previous is None:
            chosen[key] = url
            order.append(key)
        elif score_url(url) > score_url(previous):
            logger.debug("image upgrade key=%s %r -> %r", key, previous, url)
            chosen[key] = url
    return [chosen[key] for key in order]


def extract_urls(text: Optional[str]) -> list[str]:
    """Pull every ``http(s)`` URL out of a free-text cell."""
    return URL_PATTERN.findall(text or "")


def looks_like_image(url: str) -> bool:
    return bool(IMAGE_EXT_PATTERN.search(url)) or BIG_MARKER in url.lower()


def scan_for_image_urls(cells: Iterable[str], photo_host: str = settings.photo_host) -> list[str]:
    """Fallback scan over a whole row for URLs that point at images."""
    found: list[str] = []
    for cell in cells:
        for raw in extract_urls(cell):
            url = clean_image_url(raw, photo_host)
            if url and looks_like_image(url):
                found.append(url)
    return dedupe_images(found, photo_host)
