"""
Time-bounded inventory cache.

Holds at most one snapshot per key. An entry is valid only while
``now - captured_at < ttl``; expired entries behave exactly like absent ones
and are dropped on access. The clock is injectable so expiry can be driven
deterministically in tests.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

from ..utils.logging import get_logger

logger = get_logger("devserver-mcp.inventory.cache")

T = TypeVar('T')

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Single cache entry."""
    key: str
    value: Tuple[T, ...]
    captured_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        """Check if entry is still inside the staleness window."""
        return now - self.captured_at < ttl


@dataclass
class CacheStats:
    """Cache statistics."""
    hits: int = 0
    misses: int = 0
    expirations: int = 0
    invalidations: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class InventoryCache(Generic[T]):
    """Keyed snapshot cache with a fixed staleness window."""

    def __init__(self, ttl: float, clock: Optional[Clock] = None):
        """
        Initialize cache.

        Args:
            ttl: Staleness window in seconds
            clock: Monotonic time source, defaults to time.monotonic
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._stats = CacheStats()

    def get(self, key: str) -> Optional[Tuple[T, ...]]:
        """Return the snapshot for key, or None if absent or stale."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        if not entry.is_fresh(self._clock(), self.ttl):
            del self._entries[key]
            self._stats.expirations += 1
            self._stats.misses += 1
            logger.debug("cache_entry_expired", key=key)
            return None

        self._stats.hits += 1
        return entry.value

    def set(self, key: str, value) -> None:
        """Store a snapshot for key, replacing any previous entry."""
        self._entries[key] = CacheEntry(
            key=key,
            value=tuple(value),
            captured_at=self._clock(),
        )

    def clear(self) -> None:
        """Remove every entry unconditionally."""
        if self._entries:
            self._stats.invalidations += 1
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(self._clock(), self.ttl)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def stats(self) -> CacheStats:
        """Cache statistics."""
        return self._stats


__all__ = [
    'InventoryCache',
    'CacheEntry',
    'CacheStats',
    'Clock',
]
