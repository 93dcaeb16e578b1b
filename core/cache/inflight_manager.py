from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, ClassVar, Self

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import Config


__all__: list[str] = ["InFlightManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class InFlightManager:
    """Coalesces concurrent translation requests that share a cache key.

    The first caller for a key becomes the producer and must later call ``store_result`` or
    ``store_exception``; callers arriving while the producer is running wait for its outcome instead
    of sending the same text to a provider again.

    Attributes:
        DEFAULT_WAIT_TIMEOUT_SEC (float): Default time a waiting caller gives the producer.
    """

    DEFAULT_WAIT_TIMEOUT_SEC: ClassVar[float] = 60.0

    def __init__(self, *, wait_timeout: float | None = None) -> None:
        self._inflight: dict[str, asyncio.Future[str]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()
        self._wait_timeout: float = wait_timeout if wait_timeout is not None else self.DEFAULT_WAIT_TIMEOUT_SEC
        self._closed: bool = False

    @classmethod
    def from_config(cls, config: Config) -> Self:
        """Build a manager whose wait covers the worst case of a single provider request.

        A producer can spend ``QUEUE_TIMEOUT_MS`` in the rate limiter queue, then ``MAX_RETRIES + 1`` attempts
        of ``TIMEOUT_MS`` each with up to ``MAX_DELAY_MS`` of backoff between them.
        """
        attempts: int = max(0, config.RETRY.MAX_RETRIES) + 1
        budget_ms: int = (
            config.RATE_LIMITER.QUEUE_TIMEOUT_MS
            + attempts * config.ADVANCED.TIMEOUT_MS
            + (attempts - 1) * config.RETRY.MAX_DELAY_MS
        )
        return cls(wait_timeout=budget_ms / 1000)

    def __len__(self) -> int:
        return len(self._inflight)

    @property
    def wait_timeout(self) -> float:
        return self._wait_timeout

    async def acquire(self, cache_key: str) -> str | None:
        """Register as producer for a key, or wait for the producer already registered.

        Args:
            cache_key (str): Cache key of the request.

        Returns:
            str | None: None if the caller is now the producer, otherwise the producer's result.

        Raises:
            TimeoutError: If the producer did not finish in time or was cancelled.
            Exception: The exception stored by the producer.
        """
        if self._closed or not cache_key:
            return None

        async with self._lock:
            fut: asyncio.Future[str] | None = self._inflight.get(cache_key)
            if fut is None:
                self._inflight[cache_key] = asyncio.get_running_loop().create_future()
                logger.debug("Marked in-flight start for key: %s", cache_key[:40])
                return None
            logger.debug("In-flight request detected for key: %s", cache_key[:40])

        try:
            # shield() keeps a waiter timeout from cancelling the producer-owned future.
            return await asyncio.wait_for(asyncio.shield(fut), timeout=self._wait_timeout)
        except TimeoutError:
            # The key stays registered: the producer still publishes to the remaining waiters.
            logger.warning("Timed out waiting for in-flight request: %s", cache_key[:40])
            msg: str = f"In-flight request timed out for key: {cache_key[:40]}"
            raise TimeoutError(msg) from None
        except asyncio.CancelledError:
            if not fut.cancelled():
                raise
            await self._discard(cache_key, fut)
            msg = f"In-flight request cancelled for key: {cache_key[:40]}"
            raise TimeoutError(msg) from None

    async def _discard(self, cache_key: str, fut: asyncio.Future[str]) -> None:
        async with self._lock:
            if self._inflight.get(cache_key) is fut:
                self._inflight.pop(cache_key, None)

    async def store_result(self, cache_key: str, result: str) -> None:
        """Publish the producer's result to every waiting caller and release the key."""
        async with self._lock:
            fut: asyncio.Future[str] | None = self._inflight.pop(cache_key, None)
            if fut and not fut.done():
                fut.set_result(result)

    async def store_exception(self, cache_key: str, exc: Exception) -> None:
        """Publish the producer's failure to every waiting caller and release the key."""
        async with self._lock:
            fut: asyncio.Future[str] | None = self._inflight.pop(cache_key, None)
            if fut and not fut.done():
                fut.set_exception(exc)
                # Mark the exception as retrieved when nobody is waiting for it.
                fut.add_done_callback(lambda f: f.exception())

    async def close(self) -> None:
        """Cancel pending in-flight futures and refuse new registrations."""
        self._closed = True
        async with self._lock:
            for fut in self._inflight.values():
                if not fut.done():
                    fut.cancel()
            self._inflight.clear()
        logger.debug("InFlightManager closed and in-flight state cleared")
