"""Models for provider bookkeeping shared by the rate limiter and the fallback chain."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Awaitable, Callable

    from core.trans.interface import TransInterface

__all__: list[str] = [
    "ProviderEntry",
    "ProviderLimit",
    "ProviderStats",
    "QueueTask",
    "RateLimiterStatus",
]


@dataclass
class ProviderLimit:
    """Request limits of one provider.

    Attributes:
        rpm (int): Requests allowed per rolling window.
        concurrency (int): Requests allowed in flight at the same time.
    """

    rpm: int
    concurrency: int

    def to_dict(self) -> dict[str, int]:
        return {"rpm": self.rpm, "concurrency": self.concurrency}


@dataclass(order=True)
class QueueTask:
    """A deferred unit of work waiting in a provider queue.

    Only ``sort_index`` takes part in ordering: ``(-priority, sequence)`` for the priority strategy
    and ``(0, sequence)`` for FIFO, so equal priorities keep their enqueue order.

    Attributes:
        sort_index (tuple[int, int]): Heap ordering key.
        provider (str): Name of the provider queue.
        func (Callable[[], Awaitable[Any]]): Coroutine factory executed when the task is released.
        priority (int): Requested priority; higher runs first.
        enqueued_at (float): Monotonic time of enqueueing.
        deadline (float): Monotonic time after which the task is rejected without running.
        future (asyncio.Future[Any]): Resolved with the task result or exception.
    """

    sort_index: tuple[int, int]
    provider: str = field(compare=False)
    func: Callable[[], Awaitable[Any]] = field(compare=False, repr=False)
    future: asyncio.Future[Any] = field(compare=False, repr=False)
    priority: int = field(compare=False, default=0)
    enqueued_at: float = field(compare=False, default=0.0)
    deadline: float = field(compare=False, default=0.0)


@dataclass
class RateLimiterStatus:
    """Snapshot of one provider queue as reported by the rate limiter.

    Attributes:
        queue_size (int): Tasks waiting to be released.
        processing (int): Tasks currently in flight.
        requests_used (int): Requests started inside the current rolling window.
        requests_limit (int): Effective requests-per-window limit.
        concurrency_limit (int): Effective concurrency limit.
        reset_in (float): Seconds until the oldest request leaves the window.
        error_rate (float): Error ratio over the sliding sample window.
        avg_response_time (float): Average latency in seconds over the sliding sample window.
        adjustments (int): Number of adaptive limit changes so far.
        config (dict[str, int]): Configured (maximum) limits.
    """

    queue_size: int = 0
    processing: int = 0
    requests_used: int = 0
    requests_limit: int = 0
    concurrency_limit: int = 0
    reset_in: float = 0.0
    error_rate: float = 0.0
    avg_response_time: float = 0.0
    adjustments: int = 0
    config: dict[str, int] = field(default_factory=dict)


@dataclass
class ProviderStats:
    """Running statistics of one provider inside the fallback chain.

    Timestamps are epoch seconds; ``disabled_until`` is a monotonic reading.

    Attributes:
        success (int): Successful calls.
        failure (int): Failed calls.
        consecutive_failures (int): Failures since the last success.
        offenses (int): Number of times the circuit breaker opened for this provider.
        total_time (float): Accumulated latency of successful calls in seconds.
        avg_response_time (float): Average latency of successful calls in seconds.
        last_success (float | None): Time of the last success.
        last_error (dict[str, Any] | None): ``{"time": float, "message": str, "category": str}``.
        disabled_until (float): Monotonic time until which the provider is skipped.
    """

    success: int = 0
    failure: int = 0
    consecutive_failures: int = 0
    offenses: int = 0
    total_time: float = 0.0
    avg_response_time: float = 0.0
    last_success: float | None = None
    last_error: dict[str, Any] | None = None
    disabled_until: float = 0.0

    @property
    def total_calls(self) -> int:
        return self.success + self.failure

    @property
    def success_rate(self) -> float:
        """Share of successful calls; untried providers count as fully reliable."""
        if self.total_calls == 0:
            return 1.0
        return self.success / self.total_calls


@dataclass
class ProviderEntry:
    """A named provider implementation managed by the fallback chain.

    Attributes:
        name (str): Provider name, also used as the rate limiter queue name.
        implementation (TransInterface): Provider adapter.
        stats (ProviderStats): Running statistics.
    """

    name: str
    implementation: TransInterface
    stats: ProviderStats = field(default_factory=ProviderStats)
