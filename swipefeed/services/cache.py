"""
CacheManager - Async-compatible in-process response cache with TTL.

Features:
- Memory-based cache keyed by normalized request parameters
- Fixed TTL from write time, lazy eviction on read
- Size bound with oldest-entry eviction and an explicit expiry sweep
- Injectable clock for deterministic tests
"""

import asyncio
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    key: str
    payload: T
    stored_at: datetime
    ttl: timedelta

    def is_expired(self, now: datetime) -> bool:
        """Check if entry is past its TTL."""
        return now - self.stored_at >= self.ttl


class CacheManager:
    """
    Async-compatible cache manager with a fixed TTL.

    Usage:
        cache = CacheManager(prefix="listings_", default_ttl=timedelta(minutes=5))

        key = cache.generate_key({"provider": "duga", "hits": 5, "offset": 1})
        payload = await cache.get(key)
        if payload is None:
            payload = await fetch_data()
            await cache.set(key, payload)
    """

    def __init__(
        self,
        prefix: str = "swipefeed_",
        max_size: int = 500,
        default_ttl: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] | None = None,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._prefix = prefix
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock or datetime.now
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    def generate_key(self, params: dict[str, Any]) -> str:
        """
        Generate a cache key from request-shaping parameters.

        Keys are sorted and ``None`` values dropped, so logically identical
        requests map to the same key regardless of argument order.
        """
        cleaned = {k: v for k, v in params.items() if v is not None}
        full_key = json.dumps(cleaned, sort_keys=True, ensure_ascii=False, default=str)

        # Hash long keys
        if len(full_key) > 200:
            hash_val = hashlib.md5(full_key.encode()).hexdigest()[:16]
            return f"{self._prefix}{hash_val}"

        return f"{self._prefix}{full_key}"

    async def get(self, key: str) -> Any | None:
        """
        Get value from cache.

        Returns the payload if present and fresh, None otherwise. An entry read
        past its TTL is removed.
        """
        async with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                self._stats.misses += 1
                self._log(f"MISS: {key[:50]}...")
                return None

            if entry.is_expired(self._clock()):
                del self._memory[key]
                self._stats.misses += 1
                self._stats.expirations += 1
                self._log(f"EXPIRED: {key[:50]}...")
                return None

            self._stats.hits += 1
            self._log(f"HIT: {key[:50]}...")
            return entry.payload

    async def set(self, key: str, payload: Any, ttl: timedelta | None = None) -> None:
        """
        Set value in cache.

        Args:
            key: Cache key
            payload: Data to cache
            ttl: Time to live (uses default if not specified)
        """
        ttl = ttl or self._default_ttl
        entry = CacheEntry(
            key=key,
            payload=payload,
            stored_at=self._clock(),
            ttl=ttl,
        )

        async with self._lock:
            if len(self._memory) >= self._max_size and key not in self._memory:
                self._evict_oldest()

            self._memory[key] = entry
            self._log(f"SET: {key[:50]}... (TTL: {ttl.total_seconds()}s)")

    async def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        async with self._lock:
            if key in self._memory:
                del self._memory[key]
                self._log(f"DELETE: {key[:50]}...")
                return True
            return False

    async def clear(self) -> None:
        """Clear all cache entries."""
        async with self._lock:
            count = len(self._memory)
            self._memory.clear()
            self._log(f"CLEAR: {count} entries removed")

    async def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        async with self._lock:
            now = self._clock()
            expired_keys = [k for k, v in self._memory.items() if v.is_expired(now)]
            for key in expired_keys:
                del self._memory[key]

            if expired_keys:
                self._stats.expirations += len(expired_keys)
                self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

            return len(expired_keys)

    def _evict_oldest(self) -> None:
        """Evict the oldest entry. Caller holds the lock."""
        if not self._memory:
            return

        oldest_key = min(
            self._memory.keys(),
            key=lambda k: self._memory[k].stored_at,
        )
        del self._memory[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}...")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheManager] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
