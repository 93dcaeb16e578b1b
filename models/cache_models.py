"""Models for response cache data.

Defines data classes for in-memory cache entries and cache statistics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

__all__: list[str] = [
    "CacheEntry",
    "CacheStatistics",
]


@dataclass
class CacheEntry:
    """Response cache entry data.

    Timestamps are monotonic clock readings in seconds.

    Attributes:
        key (str): Cache key identifier.
        value (str): Cached translation text.
        stored_at (float): Time the value was stored or last refreshed.
        ttl (float): Time to live in seconds.
        refreshing (bool): True while a background refresh is in flight for this key.
        refreshed_at (float | None): Time of the last successful background refresh.
        refresher (Callable[[], Awaitable[str]] | None): Coroutine factory that recomputes the value.
    """

    key: str
    value: str
    stored_at: float
    ttl: float
    refreshing: bool = False
    refreshed_at: float | None = None
    refresher: Callable[[], Awaitable[str]] | None = None

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) <= self.ttl


@dataclass
class CacheStatistics:
    """Cache usage statistics.

    Attributes:
        hits (int): Lookups answered by a fresh entry.
        misses (int): Lookups with no usable entry.
        stale_hits (int): Lookups answered by an expired entry inside the stale window.
        stored (int): Number of values written.
        refreshes (int): Number of successful background refreshes.
        refresh_failures (int): Number of failed background refreshes.
        size (int): Current number of entries.
        max_size (int): Capacity of the cache.
    """

    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    stored: int = 0
    refreshes: int = 0
    refresh_failures: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Ratio of hits to lookups, 0.0 when nothing has been looked up."""
        lookups: int = self.hits + self.misses
        if lookups == 0:
            return 0.0
        return self.hits / lookups

    def to_dict(self) -> dict[str, int | float]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale_hits": self.stale_hits,
            "stored": self.stored,
            "refreshes": self.refreshes,
            "refresh_failures": self.refresh_failures,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": self.hit_rate,
        }
