"""Deterministic, seeded shuffling of row numbers.

The permutation must be identical for a given key on every process and every
request, so the PRNG is a tiny fixed algorithm (mulberry32) rather than
:mod:`random`, whose stream is an implementation detail of CPython. All integer
arithmetic is done modulo 2**32.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Iterator, Sequence, TypeVar

T = TypeVar("T")

_MASK = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK


def _utf16_units(text: str) -> Iterator[int]:
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def seed_from_string(text: str) -> int:
    """32-bit seed from a string (multiply, xor, rotate, then avalanche)."""
    units = list(_utf16_units(text))
    h = (1779033703 ^ len(units)) & _MASK
    for unit in units:
        h = _imul(h ^ unit, 3432918353)
        h = ((h << 13) | (h >> 19)) & _MASK
    h = _imul(h ^ (h >> 16), 2246822507)
    h = _imul(h ^ (h >> 13), 3266489909)
    return (h ^ (h >> 16)) & _MASK


def mulberry32(seed: int) -> Callable[[], float]:
    """Return a generator of floats in ``[0, 1)`` seeded with ``seed``."""
    state = seed & _MASK

    def next_float() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & _MASK
        x = _imul(state ^ (state >> 15), 1 | state)
        x = (x ^ ((x + _imul(x ^ (x >> 7), 61 | x)) & _MASK)) & _MASK
        return ((x ^ (x >> 14)) & _MASK) / 4294967296

    return next_float


def shuffle_in_place(items: list[T], seed: int) -> list[T]:
    """Fisher–Yates from the end, driven by :func:`mulberry32`."""
    rnd = mulberry32(seed)
    for i in range(len(items) - 1, 0, -1):
        j = int(rnd() * (i + 1))
        items[i], items[j] = items[j], items[i]
    return items


def shuffled(key: str, items: Sequence[T]) -> list[T]:
    """Shuffled copy of ``items``; the same key always gives the same order."""
    return shuffle_in_place(list(items), seed_from_string(key))


def daily_seed(clock: Callable[[], float] = time.time) -> str:
    """UTC calendar day, so the default shuffle only changes at day rollover."""
    return datetime.fromtimestamp(clock(), tz=timezone.utc).strftime("%Y-%m-%d")


def shuffle_key(seed: str, signature: str) -> str:
    return f"{seed}|{signature}"
