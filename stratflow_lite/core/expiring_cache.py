"""Time-boxed get-or-fetch cache used by every data-access service.

Each service owns one ExpiringCache instance. Entries are valid while
``now - stored_at < ttl``; an expired entry behaves exactly like a missing one
and is purged as soon as it is observed.

Example:
    cache = ExpiringCache(ttl_seconds=300)

    sprints = cache.get("allSprints")
    if sprints is None:
        sprints = await api.get("/sprints")
        cache.set("allSprints", sprints)

    # After a mutation
    cache.invalidate("allSprints")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
AGGREGATE_TTL_SECONDS = 30


@dataclass
class CacheEntry:
    """Single cached value with its insertion time (clock units, seconds)."""

    key: str
    value: Any
    stored_at: float

    def is_valid(self, now: float, ttl_seconds: float) -> bool:
        return now - self.stored_at < ttl_seconds


class ExpiringCache:
    """In-memory key -> value store with a fixed time-to-live.

    The cache never raises; ``get`` returns None for absent or stale keys.
    Cached values should therefore not be None themselves.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        """Initialize cache.

        Args:
            ttl_seconds: Lifetime of each entry in seconds
            clock: Monotonic time source (injectable for tests)
            name: Label used in log messages
        """
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        # Per-key invalidation counters; an in-flight fetch stores only if its counter is unchanged
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self.stats = {
            "hits": 0,
            "misses": 0,
            "expirations": 0,
            "invalidations": 0,
            "discarded_fetches": 0,
        }

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value if present and unexpired, else None."""
        entry = self._entries.get(key)
        if entry is None:
            self.stats["misses"] += 1
            return None

        if not entry.is_valid(self._clock(), self.ttl_seconds):
            del self._entries[key]
            self.stats["expirations"] += 1
            self.stats["misses"] += 1
            logger.debug("[%s] Entry expired: %s", self.name, key)
            return None

        self.stats["hits"] += 1
        return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store value under key with the current timestamp, overwriting any prior entry."""
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())
        logger.debug("[%s] Cached %s", self.name, key)

    def _token(self, key: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    def _bump(self, key: str) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value or await ``fetch()`` and cache its result.

        Fetch failures propagate and leave the cache untouched. If the key is
        invalidated (or the cache cleared) while the fetch is in flight, the
        result is returned to the caller but not stored.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        self._generations.setdefault(key, 0)
        token = self._token(key)
        value = await fetch()
        if self._token(key) == token:
            self.set(key, value)
        else:
            self.stats["discarded_fetches"] += 1
            logger.debug("[%s] Discarded fetch for %s invalidated while in flight", self.name, key)
        return value

    def invalidate(self, key: str) -> bool:
        """Evict a single key. Returns True if an entry was removed."""
        self._bump(key)
        removed = self._entries.pop(key, None) is not None
        if removed:
            self.stats["invalidations"] += 1
            logger.debug("[%s] Invalidated %s", self.name, key)
        return removed

    def invalidate_matching(self, predicate: Callable[[str], bool]) -> int:
        """Evict every key for which ``predicate(key)`` is true.

        Returns:
            Number of evicted entries
        """
        for key in [k for k in self._generations if predicate(k)]:
            self._bump(key)

        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]

        if doomed:
            self.stats["invalidations"] += len(doomed)
            logger.debug("[%s] Invalidated %d matching entries", self.name, len(doomed))
        return len(doomed)

    def clear(self) -> None:
        """Drop every entry."""
        size = len(self._entries)
        self._entries.clear()
        self._generations.clear()
        self._epoch += 1
        self.stats["invalidations"] += size
        logger.debug("[%s] Cleared %d entries", self.name, size)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key) if isinstance(key, str) else None
        return entry is not None and entry.is_valid(self._clock(), self.ttl_seconds)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dict with hits, misses, hit_rate (0-100), expirations,
            invalidations, discarded_fetches, current_size and ttl_seconds
        """
        total = self.stats["hits"] + self.stats["misses"]
        hit_rate = (self.stats["hits"] / total * 100) if total > 0 else 0.0

        return {
            "hits": self.stats["hits"],
            "misses": self.stats["misses"],
            "hit_rate": round(hit_rate, 2),
            "expirations": self.stats["expirations"],
            "invalidations": self.stats["invalidations"],
            "discarded_fetches": self.stats["discarded_fetches"],
            "current_size": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
        }
