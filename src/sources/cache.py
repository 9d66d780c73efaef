"""
Small in-process LRU cache with per-entry TTL, used to memoize text fetches.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TEN_MINUTES = 10 * 60.0
FIVE_MINUTES = 5 * 60.0
ONE_HOUR = 60 * 60.0


@dataclass
class _Entry(Generic[T]):
    value: T
    stored_at: float
    ttl: float


class TTLCache(Generic[T]):
    """LRU cache whose entries expire `ttl` seconds after being stored."""

    def __init__(self, max_size: int = 100, clock: Callable[[], float] = time.monotonic):
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry[T]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def set(self, key: str, value: T, ttl: float) -> None:
        self._entries[key] = _Entry(value=value, stored_at=self._clock(), ttl=ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            logger.debug("Cache MISS: %s", key)
            return None
        if self._clock() - entry.stored_at > entry.ttl:
            del self._entries[key]
            self.misses += 1
            logger.debug("Cache MISS: %s (expired)", key)
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        logger.debug("Cache HIT: %s", key)
        return entry.value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, float]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
            "size": len(self._entries),
        }
