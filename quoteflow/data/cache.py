"""
In-memory TTL cache for provider lookups
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from ..utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and the moment it was fetched"""
    value: T
    fetched_at: float

    def age_seconds(self, now: float) -> float:
        return now - self.fetched_at

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return self.age_seconds(now) >= ttl_seconds


class TTLCache(Generic[T]):
    """
    Map of key -> CacheEntry with a fixed time to live
    Expired entries are dropped on the next lookup of the same key
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        now = self._clock()
        if entry.is_expired(now, self.ttl_seconds):
            del self._entries[key]
            self.misses += 1
            logger.debug(f"Cache expired for {key} (age: {entry.age_seconds(now):.1f}s)")
            return None

        self.hits += 1
        return entry.value

    def set(self, key: str, value: T) -> CacheEntry[T]:
        entry = CacheEntry(value=value, fetched_at=self._clock())
        self._entries[key] = entry
        return entry

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock(), self.ttl_seconds)

    def stats(self) -> Dict[str, Any]:
        return {
            'entries': len(self._entries),
            'hits': self.hits,
            'misses': self.misses,
            'ttl_seconds': self.ttl_seconds,
        }
