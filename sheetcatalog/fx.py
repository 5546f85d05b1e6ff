"""CNY -> EUR conversion rate provider.

The query layer only needs ``async () -> float``. This default provider asks a
public rate endpoint, falls back to a fixed rate on any failure and keeps the
answer for an hour in the shared key/value backend.
"""
from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Awaitable, Callable, Optional
from urllib.error import URLError
from urllib.request import urlopen

from .cache import CacheBackend, get_backend
from .config import Settings, settings

logger = logging.getLogger(__name__)

RateProvider = Callable[[], Awaitable[float]]

RATE_CACHE_KEY = "fx:cnyeur:v1"


def _fetch_rate(url: str, timeout: float = 5.0) -> Optional[float]:
    try:
        with urlopen(url, timeout=timeout) as response:
            payload = json.load(response)
    except (OSError, URLError, ValueError) as exc:
        logger.warning("FX lookup failed url=%s: %s", url, exc)
        return None
    rate = payload.get("result") if isinstance(payload, dict) else None
    if not isinstance(rate, (int, float)) or not math.isfinite(rate) or rate <= 0:
        logger.warning("FX lookup returned unusable rate %r", rate)
        return None
    return float(rate)


async def get_cny_to_eur_rate(
    config: Settings = settings,
    backend: Optional[CacheBackend] = None,
) -> float:
    backend = backend if backend is not None else get_backend(config)
    cached = backend.get(RATE_CACHE_KEY)
    if cached and isinstance(cached.get("rate"), (int, float)):
        return float(cached["rate"])

    rate = await asyncio.to_thread(_fetch_rate, config.fx_url)
    if rate is None:
        rate = config.fx_fallback_rate
        logger.info("Using fallback CNY->EUR rate %s", rate)
    backend.set(RATE_CACHE_KEY, {"rate": rate}, config.fx_ttl_seconds)
    return rate


def fixed_rate(value: float) -> RateProvider:
    """Provider that always answers ``value``."""

    async def provider() -> float:
        return value

    return provider
