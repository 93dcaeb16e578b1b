"""Ordered, self-reranking, circuit-breaking chain of translation providers.

Every call walks the providers in their current ranking and routes each attempt through the rate
limiter. A failing provider is recorded and the next one is tried; the first success is returned.
Providers with too many consecutive failures are skipped until their cooldown elapses, and every
``re_rank_interval`` operations the ranking is recomputed from the observed success rate and latency.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, ClassVar, Self

from core.trans.interface import (
    AllProvidersExhaustedError,
    ErrorCategory,
    ProviderFailure,
    TransInterface,
    classify_error,
    is_retryable,
)
from models.provider_models import ProviderEntry, ProviderStats
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Mapping, Sequence

    from core.trans.rate_limiter import RateLimiter
    from models.config_models import Config

__all__: list[str] = ["FallbackChain"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class FallbackChain:
    """Try providers in priority order until one succeeds.

    Attributes:
        RE_RANK_INTERVAL (int): Default number of operations between two re-rankings.
        FAILURE_THRESHOLD (int): Default consecutive failures that open the circuit for a provider.
        BASE_COOLDOWN_SEC (float): Default cooldown of the first circuit opening.
        MAX_COOLDOWN_SEC (float): Upper bound of the exponentially growing cooldown.
        CONSECUTIVE_FAILURE_PENALTY (float): Score deducted per consecutive failure when re-ranking.
    """

    RE_RANK_INTERVAL: ClassVar[int] = 10
    FAILURE_THRESHOLD: ClassVar[int] = 3
    BASE_COOLDOWN_SEC: ClassVar[float] = 30.0
    MAX_COOLDOWN_SEC: ClassVar[float] = 600.0
    CONSECUTIVE_FAILURE_PENALTY: ClassVar[float] = 0.1

    def __init__(
        self,
        providers: Sequence[ProviderEntry | Mapping[str, Any]],
        rate_limiter: RateLimiter,
        *,
        re_rank_interval: int | None = None,
        failure_threshold: int | None = None,
        base_cooldown: float | None = None,
        max_cooldown: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the chain.

        Args:
            providers (Sequence[ProviderEntry | Mapping[str, Any]]): Providers in initial priority order,
                either ProviderEntry objects or ``{"name": str, "implementation": TransInterface}`` mappings.
            rate_limiter (RateLimiter): Gate for every provider attempt.
            re_rank_interval (int | None): Operations between two re-rankings.
            failure_threshold (int | None): Consecutive failures that disable a provider.
            base_cooldown (float | None): Cooldown in seconds of the first disable.
            max_cooldown (float | None): Maximum cooldown in seconds.
            clock (Callable[[], float]): Monotonic clock, replaceable in tests.

        Raises:
            ValueError: If no provider is given or a name is used twice.
        """
        self._providers: list[ProviderEntry] = [self._to_entry(p) for p in providers]
        if not self._providers:
            msg = "FallbackChain requires at least one provider."
            raise ValueError(msg)
        names: list[str] = [entry.name for entry in self._providers]
        if len(set(names)) != len(names):
            msg = f"Duplicate provider names in fallback chain: {names}"
            raise ValueError(msg)

        self._rate_limiter: RateLimiter = rate_limiter
        self._re_rank_interval: int = max(1, re_rank_interval or self.RE_RANK_INTERVAL)
        self._failure_threshold: int = max(1, failure_threshold or self.FAILURE_THRESHOLD)
        self._base_cooldown: float = base_cooldown if base_cooldown is not None else self.BASE_COOLDOWN_SEC
        self._max_cooldown: float = max_cooldown if max_cooldown is not None else self.MAX_COOLDOWN_SEC
        self._clock: Callable[[], float] = clock
        self._operation_count: int = 0

    @classmethod
    def from_config(
        cls,
        providers: Sequence[ProviderEntry | Mapping[str, Any]],
        rate_limiter: RateLimiter,
        config: Config,
    ) -> Self:
        """Build a chain with the thresholds of the TRANSLATION configuration section."""
        return cls(
            providers,
            rate_limiter,
            re_rank_interval=config.TRANSLATION.RE_RANK_INTERVAL,
            failure_threshold=config.TRANSLATION.FAILURE_THRESHOLD,
            base_cooldown=config.TRANSLATION.BASE_COOLDOWN_MS / 1000,
            max_cooldown=config.TRANSLATION.MAX_COOLDOWN_MS / 1000,
        )

    @staticmethod
    def _to_entry(provider: ProviderEntry | Mapping[str, Any]) -> ProviderEntry:
        if isinstance(provider, ProviderEntry):
            return provider
        try:
            name: str = str(provider["name"])
            implementation: TransInterface = provider["implementation"]
        except KeyError as err:
            msg: str = f"Provider entry is missing the field {err}"
            raise ValueError(msg) from None
        return ProviderEntry(name=name, implementation=implementation)

    @property
    def provider_names(self) -> list[str]:
        """Provider names in current priority order."""
        return [entry.name for entry in self._providers]

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        options: dict[str, Any] | None = None,
        *,
        priority: int = 0,
    ) -> str:
        """Translate with the first provider that succeeds.

        Args:
            text (str): Text to translate.
            source_lang (str): Source language code.
            target_lang (str): Target language code.
            options (dict[str, Any] | None): Options forwarded to the provider.
            priority (int): Rate limiter priority of the attempts.

        Returns:
            str: The translated text.

        Raises:
            AllProvidersExhaustedError: If every eligible provider failed.
        """
        translated, _ = await self.translate_with_provider(text, source_lang, target_lang, options, priority=priority)
        return translated

    async def translate_with_provider(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        options: dict[str, Any] | None = None,
        *,
        priority: int = 0,
    ) -> tuple[str, str]:
        """Same as ``translate`` but also report which provider produced the result.

        Returns:
            tuple[str, str]: The translated text and the provider name.
        """

        def call(entry: ProviderEntry) -> Awaitable[str]:
            return entry.implementation.translate(text, source_lang, target_lang, options)

        return await self._run("translate", call, priority=priority)

    async def analyze(self, prompt: str, options: dict[str, Any] | None = None, *, priority: int = 0) -> str:
        """Run an analysis prompt on the first analysis-capable provider that succeeds.

        Providers without analysis support are skipped without being counted as failures.

        Raises:
            AllProvidersExhaustedError: If no capable provider succeeded.
        """

        def call(entry: ProviderEntry) -> Awaitable[str]:
            return entry.implementation.analyze(prompt, options)

        result, _ = await self._run(
            "analyze",
            call,
            priority=priority,
            eligible=lambda entry: entry.implementation.supports_analyze,
        )
        return result

    async def _run(
        self,
        operation: str,
        call: Callable[[ProviderEntry], Awaitable[str]],
        *,
        priority: int,
        eligible: Callable[[ProviderEntry], bool] | None = None,
    ) -> tuple[str, str]:
        """Attempt the candidates in ranking order. Each call, including the one after an exhaustion, starts again
        from the best ranked provider that is not in cooldown.
        """
        self._operation_count += 1
        if self._operation_count % self._re_rank_interval == 0:
            self._rerank()

        candidates: list[ProviderEntry] = [
            entry for entry in self._select_candidates() if eligible is None or eligible(entry)
        ]
        failures: list[ProviderFailure] = []

        for entry in candidates:
            try:
                result, elapsed = await self._attempt(entry, call, priority)
            except Exception as err:  # noqa: BLE001 - every provider failure advances the chain
                category: ErrorCategory = classify_error(err)
                self._record_failure(entry, err, category)
                failures.append(ProviderFailure(entry.name, category, str(err)))
                logger.warning(
                    "Provider '%s' failed to %s (%s%s), attempting next provider",
                    entry.name,
                    operation,
                    err,
                    "" if is_retryable(category) else ", not retryable",
                )
                continue

            self._record_success(entry, elapsed)
            return result, entry.name

        logger.error("All providers failed to %s: %s", operation, "; ".join(str(f) for f in failures))
        raise AllProvidersExhaustedError(failures)

    async def _attempt(
        self, entry: ProviderEntry, call: Callable[[ProviderEntry], Awaitable[str]], priority: int
    ) -> tuple[str, float]:
        """Run one provider call through the rate limiter and measure its execution time."""

        async def timed() -> tuple[str, float]:
            started: float = self._clock()
            result: str = await call(entry)
            return result, self._clock() - started

        return await self._rate_limiter.enqueue(entry.name, timed, priority)

    def _select_candidates(self) -> list[ProviderEntry]:
        """Providers in ranking order with disabled ones removed.

        If every provider is in cooldown, the one whose cooldown ends first is still returned so that
        a request never finds the chain empty.
        """
        now: float = self._clock()
        enabled: list[ProviderEntry] = [
            entry for entry in self._providers if not self._is_provider_disabled(entry, now)
        ]
        if enabled:
            return enabled
        soonest: ProviderEntry = min(self._providers, key=lambda entry: entry.stats.disabled_until)
        logger.warning("All providers are cooling down; trying '%s'", soonest.name)
        return [soonest]

    def _is_provider_disabled(self, entry: ProviderEntry, now: float | None = None) -> bool:
        now = self._clock() if now is None else now
        return entry.stats.disabled_until > now

    def _record_success(self, entry: ProviderEntry, elapsed: float) -> None:
        stats: ProviderStats = entry.stats
        stats.success += 1
        stats.consecutive_failures = 0
        stats.offenses = 0
        stats.total_time += elapsed
        stats.avg_response_time = stats.total_time / stats.success
        stats.last_success = time.time()
        logger.debug("Provider '%s' succeeded in %.3fs", entry.name, elapsed)

    def _record_failure(self, entry: ProviderEntry, err: BaseException, category: ErrorCategory) -> None:
        stats: ProviderStats = entry.stats
        stats.failure += 1
        stats.consecutive_failures += 1
        stats.last_error = {"time": time.time(), "message": str(err), "category": category.value}
        if stats.consecutive_failures >= self._failure_threshold:
            self._disable_provider(entry)

    def _disable_provider(self, entry: ProviderEntry) -> None:
        """Open the circuit for a provider, unless it is the last one still reachable."""
        now: float = self._clock()
        others_reachable: bool = any(
            not self._is_provider_disabled(other, now) for other in self._providers if other is not entry
        )
        if not others_reachable:
            logger.warning(
                "Provider '%s' reached %d consecutive failures but is the last reachable provider; "
                "keeping it enabled",
                entry.name,
                entry.stats.consecutive_failures,
            )
            return

        cooldown: float = min(self._base_cooldown * (2**entry.stats.offenses), self._max_cooldown)
        entry.stats.offenses += 1
        entry.stats.disabled_until = now + cooldown
        entry.stats.consecutive_failures = 0
        logger.warning("Provider '%s' disabled for %.1fs after repeated failures", entry.name, cooldown)

    def _calculate_priority(self, entry: ProviderEntry) -> float:
        """Ranking score: success rate plus a speed bonus, minus a consecutive-failure penalty."""
        stats: ProviderStats = entry.stats
        speed: float = 1.0 / (1.0 + stats.avg_response_time) if stats.success else 0.0
        return stats.success_rate + speed - self.CONSECUTIVE_FAILURE_PENALTY * stats.consecutive_failures

    def _rerank(self) -> None:
        before: list[str] = self.provider_names
        # sorted() is stable, so equal scores keep their previous relative order.
        self._providers = sorted(self._providers, key=self._calculate_priority, reverse=True)
        if self.provider_names != before:
            logger.info("Providers re-ranked: %s -> %s", before, self.provider_names)

    def get_stats(self) -> dict[str, dict[str, Any]]:
        """Statistics per provider, in current priority order.

        Returns:
            dict[str, dict[str, Any]]: Raw counters plus derived ``success_rate``, ``total_calls``,
                ``avg_response_time_ms``, ``is_disabled`` and ``enables_in_ms``.
        """
        now: float = self._clock()
        result: dict[str, dict[str, Any]] = {}
        for entry in self._providers:
            stats: ProviderStats = entry.stats
            disabled: bool = self._is_provider_disabled(entry, now)
            result[entry.name] = {
                "success": stats.success,
                "failure": stats.failure,
                "consecutive_failures": stats.consecutive_failures,
                "avg_response_time": stats.avg_response_time,
                "total_time": stats.total_time,
                "last_success": stats.last_success,
                "last_error": dict(stats.last_error) if stats.last_error else None,
                "disabled_until": stats.disabled_until if disabled else None,
                "success_rate": stats.success_rate,
                "total_calls": stats.total_calls,
                "avg_response_time_ms": round(stats.avg_response_time * 1000, 1),
                "is_disabled": disabled,
                "enables_in_ms": max(0.0, (stats.disabled_until - now) * 1000) if disabled else 0.0,
            }
        return result

    def reset_stats(self) -> None:
        """Forget every provider's statistics, including circuit breaker state."""
        for entry in self._providers:
            entry.stats = ProviderStats()
        self._operation_count = 0

    def reset(self) -> None:
        """Clear transient selection state: operation counter and disabled providers."""
        self._operation_count = 0
        for entry in self._providers:
            entry.stats.disabled_until = 0.0
            entry.stats.consecutive_failures = 0

    async def close(self) -> None:
        """Close every provider implementation."""
        for entry in self._providers:
            await entry.implementation.close()
