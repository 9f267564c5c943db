"""In-process expiring cache backing the in-memory throttle repository.

Each entry carries its own absolute expiration. Expired entries are treated
as absent and evicted lazily on access (and opportunistically on writes).
All time reads go through the clock passed to the constructor.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from throttlekit.core.clock import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Container for cached values with expiration metadata."""

    value: Any
    expires_at: datetime


class ExpiringCache:
    """Thread-safe, in-memory cache with per-entry expiration and LRU capping.

    Attributes:
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(self, max_entries: int | None = None, *, clock: Clock = utc_now) -> None:
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"ExpiringCache(max_entries={self._max_entries}, size={len(self._store)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    def get(self, key: str) -> Any | None:
        """Retrieve a cached value if it exists and is not expired.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found/expired.
        """

        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self._is_expired(entry):
                self._evict_single(key)
                self._misses += 1
                logger.debug("cache.expired", extra={"size": len(self._store)})
                return None

            self._hits += 1
            self._store.move_to_end(key)
            return entry.value

    def contains(self, key: str) -> bool:
        return self.get(key) is not None

    def set(self, key: str, value: Any, expires_at: datetime) -> None:
        """Store a value until ``expires_at``, evicting as needed.

        Args:
            key: Cache key.
            value: Value to store.
            expires_at: Absolute time after which the entry is absent.
        """

        with self._lock:
            self._evict_expired_locked()
            self._store[key] = CacheEntry(value=value, expires_at=expires_at)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

    def remove(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired_keys = [k for k, entry in self._store.items() if entry.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() >= entry.expires_at
