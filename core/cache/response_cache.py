"""In-memory LRU response cache with stale-while-revalidate.

Entries expire after their TTL. An expired entry that is still inside the stale grace window is served
immediately while a detached task recomputes it; only one refresh runs per key at a time, and a failed
refresh leaves the stale value in place. The cache lives for the lifetime of one orchestrator.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from typing import TYPE_CHECKING, ClassVar, Self

from core.trans.interface import CacheRefreshError
from models.cache_models import CacheEntry, CacheStatistics
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

    from models.config_models import Config

__all__: list[str] = ["ResponseCache"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class ResponseCache:
    """Bounded translation cache keyed by ``StringUtils.generate_cache_key``.

    Attributes:
        DEFAULT_MAX_SIZE (int): Default capacity.
        DEFAULT_TTL_SEC (float): Default time to live of an entry.
        DEFAULT_STALE_TTL_SEC (float): Default grace window during which expired entries are still served.
        CLOSE_TIMEOUT_SEC (float): Time granted to running refreshes on close.
    """

    DEFAULT_MAX_SIZE: ClassVar[int] = 1000
    DEFAULT_TTL_SEC: ClassVar[float] = 24 * 60 * 60
    DEFAULT_STALE_TTL_SEC: ClassVar[float] = 60 * 60
    CLOSE_TIMEOUT_SEC: ClassVar[float] = 2.0

    def __init__(
        self,
        *,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl: float = DEFAULT_TTL_SEC,
        stale_ttl: float = DEFAULT_STALE_TTL_SEC,
        allow_stale: bool = True,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            max_size (int): Maximum number of entries; the least recently used entry is evicted first.
            ttl (float): Default time to live in seconds.
            stale_ttl (float): Seconds after expiry during which the stale value is still served.
            allow_stale (bool): Whether stale-while-revalidate is enabled.
            enabled (bool): If False, every lookup misses and nothing is stored.
            clock (Callable[[], float]): Monotonic clock, replaceable in tests.

        Raises:
            ValueError: If max_size is not positive.
        """
        if max_size <= 0:
            msg: str = f"Cache size must be positive, got {max_size}"
            raise ValueError(msg)

        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_size: int = max_size
        self._ttl: float = ttl
        self._stale_ttl: float = stale_ttl
        self._allow_stale: bool = allow_stale
        self._enabled: bool = enabled
        self._clock: Callable[[], float] = clock
        self._stats: CacheStatistics = CacheStatistics(max_size=max_size)
        self._refresh_tasks: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(cls, config: Config) -> Self:
        """Build a cache from the CACHE configuration section."""
        return cls(
            max_size=config.CACHE.MAX_SIZE,
            ttl=config.CACHE.TTL_MS / 1000,
            stale_ttl=config.CACHE.STALE_TTL_MS / 1000,
            allow_stale=config.CACHE.STALE_WHILE_REVALIDATE,
            enabled=config.CACHE.ENABLED,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @staticmethod
    def make_key(text: str, target_lang: str, category: str | None = None) -> str:
        """Derive the cache key of a translation request."""
        return StringUtils.generate_cache_key(text, target_lang, category)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> str | None:
        """Look up a cached value.

        A fresh entry is returned directly. An expired entry inside the stale window is returned as well,
        and a background refresh is scheduled if the entry knows how to recompute itself and no refresh
        for it is already running. Entries beyond the stale window are dropped.

        Args:
            key (str): Cache key.

        Returns:
            str | None: The cached value, or None on a miss.
        """
        if not self._enabled:
            return None

        entry: CacheEntry | None = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        now: float = self._clock()
        if entry.is_fresh(now):
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return entry.value

        if self._allow_stale and entry.age(now) <= entry.ttl + self._stale_ttl:
            self._entries.move_to_end(key)
            self._stats.stale_hits += 1
            logger.debug("Stale hit for '%s' (age %.1fs)", key[:40], entry.age(now))
            self._schedule_refresh(entry)
            return entry.value

        del self._entries[key]
        self._stats.misses += 1
        return None

    def set(
        self,
        key: str,
        value: str,
        *,
        ttl: float | None = None,
        refresher: Callable[[], Awaitable[str]] | None = None,
    ) -> None:
        """Store a value, evicting the least recently used entries beyond capacity.

        Args:
            key (str): Cache key.
            value (str): Value to store.
            ttl (float | None): Time to live in seconds; defaults to the cache TTL.
            refresher (Callable[[], Awaitable[str]] | None): Coroutine factory used to recompute the value
                when it is served stale.
        """
        if not self._enabled:
            return

        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            stored_at=self._clock(),
            ttl=self._ttl if ttl is None else ttl,
            refresher=refresher,
        )
        self._entries.move_to_end(key)
        self._stats.stored += 1

        while len(self._entries) > self._max_size:
            evicted_key, _ = self._entries.popitem(last=False)
            logger.debug("Evicted least recently used entry '%s'", evicted_key[:40])

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove every entry. Statistics are kept."""
        self._entries.clear()

    def reset_stats(self) -> None:
        self._stats = CacheStatistics(max_size=self._max_size)

    def get_stats(self) -> CacheStatistics:
        """Snapshot of the cache statistics."""
        return CacheStatistics(
            hits=self._stats.hits,
            misses=self._stats.misses,
            stale_hits=self._stats.stale_hits,
            stored=self._stats.stored,
            refreshes=self._stats.refreshes,
            refresh_failures=self._stats.refresh_failures,
            size=len(self._entries),
            max_size=self._max_size,
        )

    def _schedule_refresh(self, entry: CacheEntry) -> None:
        if entry.refresher is None or entry.refreshing:
            return
        try:
            task: asyncio.Task[None] = asyncio.get_running_loop().create_task(self._refresh(entry))
        except RuntimeError:
            logger.debug("No running event loop; stale entry '%s' is not refreshed", entry.key[:40])
            return
        entry.refreshing = True
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def _refresh(self, entry: CacheEntry) -> None:
        """Recompute a stale entry; on failure the stale value stays authoritative."""
        if entry.refresher is None:
            entry.refreshing = False
            return
        try:
            value: str = await entry.refresher()
        except Exception as err:  # noqa: BLE001 - a failed refresh keeps the stale value
            self._stats.refresh_failures += 1
            failure = CacheRefreshError(f"Background refresh of '{entry.key[:40]}' failed: {err}")
            logger.warning("%s; keeping stale value", failure)
            return
        finally:
            entry.refreshing = False

        # The entry may have been replaced, evicted or cleared while the refresh was running.
        if self._entries.get(entry.key) is not entry:
            logger.debug("Entry '%s' changed during refresh; refreshed value discarded", entry.key[:40])
            return
        now: float = self._clock()
        entry.value = value
        entry.stored_at = now
        entry.refreshed_at = now
        self._stats.refreshes += 1
        logger.debug("Refreshed stale entry '%s'", entry.key[:40])

    async def close(self) -> None:
        """Wait briefly for running refreshes, then cancel whatever is left."""
        if not self._refresh_tasks:
            return
        _, pending = await asyncio.wait(set(self._refresh_tasks), timeout=self.CLOSE_TIMEOUT_SEC)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
