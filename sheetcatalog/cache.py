"""Caching helpers.

Two layers live here:

* :class:`CatalogCache`: the per-process query cache. It groups independent
  :class:`CacheFamily` dicts (item count, metadata, pages, row orders, head
  listings, resolution index, fetched rows, sellers directory), each with its
  own TTL and capacity and a shared injectable clock.
* :func:`get_backend`: a small JSON key/value store with Redis primary and
  in-memory fallback, for values worth sharing between processes (the
  currency rate).
"""
from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, Protocol, TypeVar

import redis

from .config import Settings, settings

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[T]):
    timestamp: float
    payload: T


class CacheFamily(Generic[T]):
    """TTL-gated memoization for one kind of payload.

    Entries are valid while ``now - timestamp < ttl``. Refreshing an expired key
    keeps its insertion position; once the family holds more than ``capacity``
    keys, the oldest-inserted ones are dropped first.

    With ``single_flight`` enabled, concurrent misses on the same key share one
    in-flight load instead of each calling the loader.
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        capacity: int,
        clock: Clock = time.time,
        single_flight: bool = True,
    ) -> None:
        self.name = name
        self.ttl = ttl
        self.capacity = max(1, capacity)
        self.single_flight = single_flight
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry[T]] = {}
        self._inflight: Dict[Hashable, "asyncio.Future[T]"] = {}
        self.hits = 0
        self.misses = 0
        self.loads = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self._lookup(key) is not None

    def _lookup(self, key: Hashable) -> Optional[CacheEntry[T]]:
        entry = self._entries.get(key)
        if entry is None or self._clock() - entry.timestamp >= self.ttl:
            return None
        return entry

    def get(self, key: Hashable) -> Optional[T]:
        entry = self._lookup(key)
        if entry is None:
            self.misses += 1
            logger.debug("cache_miss family=%s key=%r", self.name, key)
            return None
        self.hits += 1
        logger.debug("cache_hit family=%s key=%r", self.name, key)
        return entry.payload

    def set(self, key: Hashable, payload: T) -> None:
        self._entries[key] = CacheEntry(self._clock(), payload)
        self._prune()

    def _prune(self) -> None:
        while len(self._entries) > self.capacity:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("cache_prune family=%s key=%r", self.name, oldest)

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[T]]) -> T:
        entry = self._lookup(key)
        if entry is not None:
            self.hits += 1
            logger.debug("cache_hit family=%s key=%r", self.name, key)
            return entry.payload
        self.misses += 1
        logger.debug("cache_miss family=%s key=%r", self.name, key)
        if not self.single_flight:
            return await self._load(key, loader)

        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._load(key, loader))
            self._inflight[key] = pending
            pending.add_done_callback(lambda _done, k=key: self._inflight.pop(k, None))
        else:
            logger.debug("cache_join family=%s key=%r", self.name, key)
        return await asyncio.shield(pending)

    async def _load(self, key: Hashable, loader: Callable[[], Awaitable[T]]) -> T:
        self.loads += 1
        payload = await loader()
        self.set(key, payload)
        return payload

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "ttl": self.ttl,
            "hits": self.hits,
            "misses": self.misses,
            "loads": self.loads,
        }


class CatalogCache:
    """The query layer's cache families, constructed once per process."""

    def __init__(
        self,
        ttl: float,
        *,
        clock: Clock = time.time,
        single_flight: bool = True,
        capacity_pages: int = 100,
        capacity_orders: int = 100,
        capacity_head: int = 20,
        capacity_rows: int = 250,
        sellers_ttl: Optional[float] = None,
    ) -> None:
        self.clock = clock

        def family(name: str, capacity: int, family_ttl: float = ttl) -> CacheFamily:
            return CacheFamily(name, family_ttl, capacity, clock=clock, single_flight=single_flight)

        self.count: CacheFamily[int] = family("count", 1)
        self.meta: CacheFamily = family("meta", 1)
        self.index: CacheFamily = family("index", 1)
        self.pages: CacheFamily = family("pages", capacity_pages)
        self.orders: CacheFamily[tuple[int, ...]] = family("orders", capacity_orders)
        self.head: CacheFamily = family("head", capacity_head)
        self.rows: CacheFamily = family("rows", capacity_rows)
        self.sellers: CacheFamily = family("sellers", 1, ttl if sellers_ttl is None else sellers_ttl)

    @classmethod
    def from_settings(cls, config: Settings = settings, clock: Clock = time.time) -> "CatalogCache":
        return cls(
            config.cache_ttl_seconds,
            clock=clock,
            single_flight=config.cache_single_flight,
            capacity_pages=config.cache_capacity_pages,
            capacity_orders=config.cache_capacity_orders,
            capacity_head=config.cache_capacity_head,
            capacity_rows=config.cache_capacity_rows,
            sellers_ttl=config.sellers_ttl_seconds,
        )

    def families(self) -> Dict[str, CacheFamily]:
        return {
            family.name: family
            for family in (
                self.count, self.meta, self.index, self.pages, self.orders, self.head, self.rows, self.sellers
            )
        }

    def stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: family.stats() for name, family in self.families().items()}


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None: ...


@dataclass
class RedisCache:
    client: redis.Redis

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Redis get failed: %s", exc)
            return None
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        try:
            self.client.setex(key, ttl, json.dumps(value))
        except redis.RedisError as exc:
            logger.warning("Redis set failed: %s", exc)


class InMemoryCache:
    def __init__(self, clock: Clock = time.time) -> None:
        self._store: Dict[str, tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._store.get(key)
            if not value:
                return None
            expires_at, payload = value
            if expires_at <= self._clock():
                self._store.pop(key, None)
                return None
            return payload

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        with self._lock:
            self._store[key] = (self._clock() + ttl, value)


_backend: CacheBackend | None = None


def get_backend(config: Settings = settings) -> CacheBackend:
    global _backend
    if _backend is not None:
        return _backend
    try:
        client = redis.Redis(host=config.redis_host, port=config.redis_port, decode_responses=False)
        client.ping()
        logger.info("Using Redis cache at %s:%s", config.redis_host, config.redis_port)
        _backend = RedisCache(client)
    except redis.RedisError:
        logger.warning("Redis not available, using in-memory cache")
        _backend = InMemoryCache()
    return _backend
