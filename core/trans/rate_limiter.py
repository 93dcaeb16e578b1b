"""Per-provider request queues with rate limiting and adaptive throttling.

Each provider gets its own priority queue. A queued task is released only while the provider is below
its concurrency limit and below its requests-per-window limit; otherwise the queue waits until a slot
frees up or the oldest request leaves the rolling window. Tasks that wait longer than the queue timeout
are rejected with QueueTimeoutError without ever running.

Adaptive throttling keeps a sliding sample of recent outcomes per provider. A high error rate shrinks the
effective limits multiplicatively; a sustained healthy period restores them gradually, never beyond the
configured caps.
"""

from __future__ import annotations

import asyncio
import contextlib
import heapq
import itertools
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Final, Literal, Self, TypeAlias

from core.trans.interface import QueueTimeoutError
from models.provider_models import ProviderLimit, QueueTask, RateLimiterStatus
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Mapping

    from models.config_models import Config

__all__: list[str] = ["QueueStrategy", "RateLimiter"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

QueueStrategy: TypeAlias = Literal["priority", "fifo"]

QUEUE_STRATEGIES: Final[tuple[str, ...]] = ("priority", "fifo")
DEFAULT_LIMIT: Final[ProviderLimit] = ProviderLimit(rpm=60, concurrency=2)


@dataclass
class _ProviderState:
    """Mutable bookkeeping of one provider queue."""

    name: str
    limit: ProviderLimit
    rpm: int
    concurrency: int
    queue: list[QueueTask] = field(default_factory=list)
    processing: int = 0
    window: deque[float] = field(default_factory=deque)
    samples: deque[tuple[float, bool, float]] = field(default_factory=lambda: deque(maxlen=RateLimiter.SAMPLE_SIZE))
    adjustments: int = 0
    last_adjusted: float = 0.0
    pump: asyncio.Task[None] | None = None
    wakeup: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def error_rate(self) -> float:
        if not self.samples:
            return 0.0
        return sum(1 for _, failed, _ in self.samples if failed) / len(self.samples)

    @property
    def avg_response_time(self) -> float:
        if not self.samples:
            return 0.0
        return sum(latency for _, _, latency in self.samples) / len(self.samples)


class RateLimiter:
    """Queue and gate provider calls.

    The limiter owns periodic housekeeping tasks that start with the first enqueued task;
    call ``destroy()`` to stop them and reject anything still queued.

    Attributes:
        WINDOW_SEC (float): Length of the rolling request window.
        METRICS_CLEANUP_SEC (float): Interval of the sample cleanup timer.
        ADJUSTMENT_INTERVAL_SEC (float): Interval of the adaptive adjustment timer, also the healthy
            period required before limits are raised again.
        SAMPLE_SIZE (int): Number of recent outcomes kept per provider.
        MIN_SAMPLES (int): Samples required before the error rate is acted upon.
        ERROR_RATE_THRESHOLD (float): Error rate above which limits shrink.
        HEALTHY_ERROR_RATE (float): Error rate below which limits may grow.
        MIN_THROTTLE_FACTOR (float): Lower bound of the shrink factor.
        RECOVERY_FACTOR (float): Growth factor applied on recovery.
        MIN_RPM (int): Floor of the effective requests per window.
        MIN_CONCURRENCY (int): Floor of the effective concurrency.
        THROTTLE_COOLDOWN_SEC (float): Minimum time between two consecutive shrink steps.
        CONCURRENCY_POLL_SEC (float): Re-check interval while all concurrency slots are busy.
    """

    WINDOW_SEC: ClassVar[float] = 60.0
    METRICS_CLEANUP_SEC: ClassVar[float] = 120.0
    ADJUSTMENT_INTERVAL_SEC: ClassVar[float] = 300.0
    SAMPLE_SIZE: ClassVar[int] = 50
    MIN_SAMPLES: ClassVar[int] = 10
    ERROR_RATE_THRESHOLD: ClassVar[float] = 0.1
    HEALTHY_ERROR_RATE: ClassVar[float] = 0.02
    MIN_THROTTLE_FACTOR: ClassVar[float] = 0.5
    RECOVERY_FACTOR: ClassVar[float] = 1.1
    MIN_RPM: ClassVar[int] = 10
    MIN_CONCURRENCY: ClassVar[int] = 1
    THROTTLE_COOLDOWN_SEC: ClassVar[float] = 5.0
    CONCURRENCY_POLL_SEC: ClassVar[float] = 1.0
    MIN_WAIT_SEC: ClassVar[float] = 0.01

    def __init__(
        self,
        *,
        provider_limits: Mapping[str, ProviderLimit | Mapping[str, int]] | None = None,
        queue_strategy: QueueStrategy = "priority",
        queue_timeout: float = 30.0,
        adaptive_throttling: bool = True,
        enabled: bool = True,
        window: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            provider_limits (Mapping[str, ProviderLimit | Mapping[str, int]] | None): Limits per provider,
                either ProviderLimit objects or ``{"rpm": int, "concurrency": int}`` mappings.
                Providers without an entry use 60 rpm and a concurrency of 2.
            queue_strategy (QueueStrategy): "priority" (higher first, FIFO among equals) or "fifo".
            queue_timeout (float): Maximum queue wait in seconds before a task is rejected.
            adaptive_throttling (bool): Whether limits follow the observed error rate.
            enabled (bool): If False, tasks run immediately without queueing.
            window (float | None): Length of the rolling request window in seconds. Defaults to WINDOW_SEC.
            clock (Callable[[], float]): Monotonic clock, replaceable in tests.

        Raises:
            ValueError: If the queue strategy is unknown.
        """
        if queue_strategy not in QUEUE_STRATEGIES:
            msg: str = f"Unknown queue strategy '{queue_strategy}'. Expected one of {QUEUE_STRATEGIES}."
            raise ValueError(msg)

        self._queue_strategy: QueueStrategy = queue_strategy
        self._queue_timeout: float = float(queue_timeout)
        self._adaptive: bool = adaptive_throttling
        self._enabled: bool = enabled
        self._window: float = float(window) if window is not None else self.WINDOW_SEC
        self._clock: Callable[[], float] = clock
        self._limits: dict[str, ProviderLimit] = {
            name: self._to_limit(limit) for name, limit in (provider_limits or {}).items()
        }
        self._states: dict[str, _ProviderState] = {}
        self._sequence: itertools.count[int] = itertools.count()
        self._timers: list[asyncio.Task[None]] = []
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._destroyed: bool = False

    @classmethod
    def from_config(cls, config: Config) -> Self:
        """Build a rate limiter from the RATE_LIMITER and PROVIDER_LIMITS configuration sections."""
        return cls(
            provider_limits=config.PROVIDER_LIMITS.LIMITS,
            queue_strategy=config.RATE_LIMITER.QUEUE_STRATEGY,  # type: ignore[arg-type]
            queue_timeout=config.RATE_LIMITER.QUEUE_TIMEOUT_MS / 1000,
            adaptive_throttling=config.RATE_LIMITER.ADAPTIVE_THROTTLING,
            enabled=config.RATE_LIMITER.ENABLED,
        )

    @staticmethod
    def _to_limit(limit: ProviderLimit | Mapping[str, int]) -> ProviderLimit:
        if isinstance(limit, ProviderLimit):
            return ProviderLimit(rpm=limit.rpm, concurrency=limit.concurrency)
        return ProviderLimit(
            rpm=max(1, int(limit.get("rpm", DEFAULT_LIMIT.rpm))),
            concurrency=max(1, int(limit.get("concurrency", DEFAULT_LIMIT.concurrency))),
        )

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    async def enqueue(self, provider: str, task: Callable[[], Awaitable[Any]], priority: int = 0) -> Any:
        """Queue a unit of work for a provider and wait for its result.

        Args:
            provider (str): Provider queue name.
            task (Callable[[], Awaitable[Any]]): Coroutine factory; called once when the task is released.
            priority (int): Higher values are released first under the priority strategy.

        Returns:
            Any: Whatever the task returns.

        Raises:
            QueueTimeoutError: If the task waited longer than the queue timeout, or the limiter was destroyed.
            Exception: Any exception raised by the task itself.
        """
        if self._destroyed:
            msg = f"Rate limiter is destroyed; task for '{provider}' was not run."
            raise QueueTimeoutError(msg)
        if not self._enabled:
            return await task()

        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        self._start_timers()
        state: _ProviderState = self._get_state(provider)
        now: float = self._clock()
        seq: int = next(self._sequence)
        queued = QueueTask(
            sort_index=(-priority, seq) if self._queue_strategy == "priority" else (0, seq),
            provider=provider,
            func=task,
            future=loop.create_future(),
            priority=priority,
            enqueued_at=now,
            deadline=now + self._queue_timeout,
        )
        heapq.heappush(state.queue, queued)
        logger.debug("Enqueued task #%d for '%s' (priority=%d, queued=%d)", seq, provider, priority, len(state.queue))
        state.wakeup.set()
        self._ensure_pump(state)
        return await queued.future

    def _get_state(self, provider: str) -> _ProviderState:
        state: _ProviderState | None = self._states.get(provider)
        if state is None:
            limit: ProviderLimit = self._limits.get(provider) or ProviderLimit(
                rpm=DEFAULT_LIMIT.rpm, concurrency=DEFAULT_LIMIT.concurrency
            )
            state = _ProviderState(name=provider, limit=limit, rpm=limit.rpm, concurrency=limit.concurrency)
            self._states[provider] = state
        return state

    def _ensure_pump(self, state: _ProviderState) -> None:
        if state.pump is None or state.pump.done():
            state.pump = asyncio.create_task(self._process_queue(state), name=f"rate-limiter-{state.name}")

    async def _process_queue(self, state: _ProviderState) -> None:
        """Release queued tasks of one provider while the limits allow it."""
        while state.queue:
            now: float = self._clock()
            self._reject_expired(state, now)
            if not state.queue:
                break

            wait: float = self._calculate_wait_time(state, now)
            if wait > 0:
                earliest_deadline: float = min(t.deadline for t in state.queue)
                timeout: float = max(self.MIN_WAIT_SEC, min(wait, earliest_deadline - now + self.MIN_WAIT_SEC))
                state.wakeup.clear()
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(state.wakeup.wait(), timeout=timeout)
                continue

            queued: QueueTask = heapq.heappop(state.queue)
            if queued.future.done():
                continue
            self._start_task(state, queued, now)

    def _reject_expired(self, state: _ProviderState, now: float) -> None:
        """Drop tasks whose caller gave up and reject tasks that waited past their deadline."""
        kept: list[QueueTask] = []
        for queued in state.queue:
            if queued.future.done():
                continue
            if now > queued.deadline:
                waited: float = now - queued.enqueued_at
                logger.warning(
                    "Task for '%s' rejected after waiting %.2fs in queue (timeout %.2fs)",
                    state.name,
                    waited,
                    self._queue_timeout,
                )
                msg: str = f"Task for '{state.name}' waited {waited:.2f}s in queue (timeout {self._queue_timeout}s)"
                queued.future.set_exception(QueueTimeoutError(msg))
                continue
            kept.append(queued)

        if len(kept) != len(state.queue):
            heapq.heapify(kept)
            state.queue = kept

    def _prune_window(self, state: _ProviderState, now: float) -> None:
        while state.window and now - state.window[0] >= self._window:
            state.window.popleft()

    def _calculate_wait_time(self, state: _ProviderState, now: float) -> float:
        """Return 0 when a task may be released now, otherwise the time to wait before re-checking."""
        self._prune_window(state, now)
        if len(state.window) >= state.rpm:
            reset_in: float = state.window[0] + self._window - now
            return max(self.MIN_WAIT_SEC, reset_in)
        if state.processing >= state.concurrency:
            # Woken early by the completion of a running task.
            return self.CONCURRENCY_POLL_SEC
        return 0.0

    def _start_task(self, state: _ProviderState, queued: QueueTask, now: float) -> None:
        state.processing += 1
        state.window.append(now)
        logger.debug(
            "Releasing task for '%s' after %.3fs (processing=%d/%d, window=%d/%d)",
            state.name,
            now - queued.enqueued_at,
            state.processing,
            state.concurrency,
            len(state.window),
            state.rpm,
        )
        runner: asyncio.Task[None] = asyncio.create_task(self._execute(state, queued))
        self._background_tasks.add(runner)
        runner.add_done_callback(self._background_tasks.discard)

    async def _execute(self, state: _ProviderState, queued: QueueTask) -> None:
        started: float = self._clock()
        try:
            result: Any = await queued.func()
        except asyncio.CancelledError:
            if not queued.future.done():
                queued.future.cancel()
            raise
        except Exception as err:  # noqa: BLE001 - forwarded to the waiting caller
            self._record_sample(state, failed=True, latency=self._clock() - started)
            if not queued.future.done():
                queued.future.set_exception(err)
        else:
            self._record_sample(state, failed=False, latency=self._clock() - started)
            if not queued.future.done():
                queued.future.set_result(result)
        finally:
            state.processing -= 1
            state.wakeup.set()

    def _record_sample(self, state: _ProviderState, *, failed: bool, latency: float) -> None:
        now: float = self._clock()
        state.samples.append((now, failed, latency))
        if failed and self._adaptive:
            self._throttle_down(state, now)

    def _throttle_down(self, state: _ProviderState, now: float) -> None:
        """Shrink the effective limits when the error rate is above the threshold."""
        if len(state.samples) < self.MIN_SAMPLES:
            return
        error_rate: float = state.error_rate
        if error_rate <= self.ERROR_RATE_THRESHOLD:
            return
        if state.adjustments and now - state.last_adjusted < self.THROTTLE_COOLDOWN_SEC:
            return

        factor: float = max(self.MIN_THROTTLE_FACTOR, 1.0 - error_rate)
        rpm_floor: int = min(self.MIN_RPM, state.limit.rpm)
        new_rpm: int = max(rpm_floor, int(state.rpm * factor))
        new_concurrency: int = max(self.MIN_CONCURRENCY, int(state.concurrency * factor))
        if (new_rpm, new_concurrency) == (state.rpm, state.concurrency):
            return

        logger.warning(
            "Throttling '%s': error rate %.1f%%, rpm %d -> %d, concurrency %d -> %d",
            state.name,
            error_rate * 100,
            state.rpm,
            new_rpm,
            state.concurrency,
            new_concurrency,
        )
        state.rpm = new_rpm
        state.concurrency = new_concurrency
        state.adjustments += 1
        state.last_adjusted = now

    @classmethod
    def _grow(cls, value: int) -> int:
        # 50 * 1.1 == 55.00000000000001; round before ceil.
        return math.ceil(round(value * cls.RECOVERY_FACTOR, 6))

    def _restore_limits(self, state: _ProviderState, now: float) -> None:
        """Raise the effective limits step by step after a sustained healthy period."""
        if (state.rpm, state.concurrency) == (state.limit.rpm, state.limit.concurrency):
            return
        if state.error_rate >= self.HEALTHY_ERROR_RATE:
            return
        if now - state.last_adjusted < self.ADJUSTMENT_INTERVAL_SEC:
            return

        new_rpm: int = min(state.limit.rpm, self._grow(state.rpm))
        new_concurrency: int = min(state.limit.concurrency, self._grow(state.concurrency))
        logger.info(
            "Restoring limits of '%s': rpm %d -> %d, concurrency %d -> %d",
            state.name,
            state.rpm,
            new_rpm,
            state.concurrency,
            new_concurrency,
        )
        state.rpm = new_rpm
        state.concurrency = new_concurrency
        state.adjustments += 1
        state.last_adjusted = now
        state.wakeup.set()

    def _adjust_throttling(self) -> None:
        """Periodic evaluation of every provider's error rate."""
        if not self._adaptive:
            return
        now: float = self._clock()
        for state in self._states.values():
            if state.error_rate > self.ERROR_RATE_THRESHOLD:
                self._throttle_down(state, now)
            else:
                self._restore_limits(state, now)

    def _cleanup_metrics(self) -> None:
        """Forget samples older than the adjustment interval and requests outside the window."""
        now: float = self._clock()
        for state in self._states.values():
            while state.samples and now - state.samples[0][0] > self.ADJUSTMENT_INTERVAL_SEC:
                state.samples.popleft()
            self._prune_window(state, now)

    def _start_timers(self) -> None:
        if self._timers or self._destroyed:
            return
        self._timers = [
            asyncio.create_task(self._periodic(self.METRICS_CLEANUP_SEC, self._cleanup_metrics), name="metrics"),
            asyncio.create_task(self._periodic(self.ADJUSTMENT_INTERVAL_SEC, self._adjust_throttling), name="adjust"),
        ]

    @staticmethod
    async def _periodic(interval: float, callback: Callable[[], None]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                callback()
            except Exception:  # noqa: BLE001 - a housekeeping failure must not stop the timer
                logger.exception("Rate limiter housekeeping failed")

    def get_queue_size(self, provider: str) -> int:
        state: _ProviderState | None = self._states.get(provider)
        return len(state.queue) if state else 0

    def get_status(self) -> dict[str, RateLimiterStatus]:
        """Report the state of every provider queue that has been used.

        Returns:
            dict[str, RateLimiterStatus]: Status snapshot keyed by provider name.
        """
        now: float = self._clock()
        status: dict[str, RateLimiterStatus] = {}
        for name, state in self._states.items():
            self._prune_window(state, now)
            reset_in: float = max(0.0, state.window[0] + self._window - now) if state.window else 0.0
            status[name] = RateLimiterStatus(
                queue_size=len(state.queue),
                processing=state.processing,
                requests_used=len(state.window),
                requests_limit=state.rpm,
                concurrency_limit=state.concurrency,
                reset_in=reset_in,
                error_rate=state.error_rate,
                avg_response_time=state.avg_response_time,
                adjustments=state.adjustments,
                config=state.limit.to_dict(),
            )
        return status

    def get_config(self) -> dict[str, Any]:
        return {
            "queue_strategy": self._queue_strategy,
            "queue_timeout": self._queue_timeout,
            "adaptive_throttling": self._adaptive,
            "enabled": self._enabled,
        }

    def update_config(
        self,
        *,
        queue_strategy: QueueStrategy | None = None,
        queue_timeout: float | None = None,
        adaptive_throttling: bool | None = None,
        provider_limits: Mapping[str, ProviderLimit | Mapping[str, int]] | None = None,
    ) -> None:
        """Change options at runtime.

        New provider limits become the caps and the effective limits of the affected providers.
        The queue strategy applies to tasks enqueued afterwards.
        """
        if queue_strategy is not None:
            if queue_strategy not in QUEUE_STRATEGIES:
                msg: str = f"Unknown queue strategy '{queue_strategy}'. Expected one of {QUEUE_STRATEGIES}."
                raise ValueError(msg)
            self._queue_strategy = queue_strategy
        if queue_timeout is not None:
            self._queue_timeout = float(queue_timeout)
        if adaptive_throttling is not None:
            self._adaptive = adaptive_throttling
        for name, limit in (provider_limits or {}).items():
            new_limit: ProviderLimit = self._to_limit(limit)
            self._limits[name] = new_limit
            state: _ProviderState | None = self._states.get(name)
            if state is not None:
                state.limit = new_limit
                state.rpm = new_limit.rpm
                state.concurrency = new_limit.concurrency
                state.wakeup.set()

    def destroy(self) -> None:
        """Stop the housekeeping timers and reject every task still waiting in a queue.

        Running tasks are left to complete. Calling destroy more than once has no further effect.
        """
        if self._destroyed:
            return
        self._destroyed = True

        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

        for state in self._states.values():
            if state.pump is not None and not state.pump.done():
                state.pump.cancel()
            for queued in state.queue:
                if not queued.future.done():
                    msg: str = f"Rate limiter destroyed before the task for '{state.name}' ran."
                    queued.future.set_exception(QueueTimeoutError(msg))
            state.queue.clear()
        logger.info("Rate limiter destroyed")
