"""Time-boxed in-memory cache shared by schema, type metadata, and fragments.

``MemoryCache`` is the default ``CacheStore``. It is constructed explicitly
and passed around; nothing in the engine reaches for a global instance.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
import time
from typing import Any, Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheStore(Protocol):
    """Minimal cache contract consumed by the engine."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None: ...


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expiry: float


class MemoryCache:
    """TTL cache with a max-size bound.

    When full, the entry with the earliest expiry is evicted (not LRU).
    Expired entries are dropped lazily on read.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss: %s", key)
            return None
        if self._clock() > entry.expiry:
            del self._entries[key]
            logger.debug("Cache expired: %s", key)
            return None
        logger.debug("Cache hit: %s", key)
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl
        if key not in self._entries and len(self._entries) >= self._max_size:
            self._evict_oldest()
        self._entries[key] = CacheEntry(value=value, expiry=self._clock() + ttl)
        logger.debug("Cache set: %s (expires in %ss)", key, ttl)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        size = len(self._entries)
        self._entries.clear()
        logger.info("Cache cleared (%d entries removed)", size)

    def cleanup(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now > e.expiry]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Cache cleanup: removed %d expired entries", len(expired))
        return len(expired)

    def stats(self) -> dict[str, Any]:
        return {"size": len(self._entries), "max_size": self._max_size, "ttl": self._ttl}

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_oldest(self) -> None:
        oldest_key = min(self._entries, key=lambda k: self._entries[k].expiry)
        del self._entries[oldest_key]
        logger.debug("Cache evicted (oldest): %s", oldest_key)


async def with_cache(
    cache: CacheStore,
    key: str,
    fn: Callable[[], Awaitable[T]],
    ttl_seconds: float | None = None,
) -> T:
    """Return the cached value for *key*, computing and storing it on a miss."""
    cached = cache.get(key)
    if cached is not None:
        return cached
    result = await fn()
    cache.set(key, result, ttl_seconds)
    return result
