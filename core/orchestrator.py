"""Translation orchestrator.

Composes the response cache, in-flight coalescing, the fallback chain (gated by the rate limiter), context
detection and quality checks into per-item and per-batch translation pipelines. No failure escapes
``process_translation``: every problem becomes a failed TranslationResult that carries the original text.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, ClassVar, Final

import psutil

from core.cache.inflight_manager import InFlightManager
from core.cache.response_cache import ResponseCache
from core.trans.context import ContextProcessor
from core.trans.interface import ErrorCategory, KeyTooLongError, classify_error
from core.trans.validator import DefaultQualityValidator
from models.translation_models import ContextData, TranslationItem, TranslationResult
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Sequence

    from core.shutdown import ShutdownRegistry
    from core.trans.fallback import FallbackChain
    from core.trans.rate_limiter import RateLimiter
    from core.trans.validator import QualityValidator
    from models.config_models import Config
    from models.quality_models import FixResult

__all__: list[str] = ["Orchestrator"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

GIB: Final[int] = 1024**3
KEY_PREVIEW_LENGTH: Final[int] = 100


class Orchestrator:
    """Drives translation items through cache, fallback chain and validator.

    Attributes:
        CHUNK_PAUSE_SEC (float): Pause between two chunks of a batch.
        SHUTDOWN_HOOK_NAME (str): Name under which the cache flush is registered for shutdown.
    """

    CHUNK_PAUSE_SEC: ClassVar[float] = 0.05
    SHUTDOWN_HOOK_NAME: ClassVar[str] = "orchestrator"

    def __init__(
        self,
        config: Config,
        chain: FallbackChain,
        rate_limiter: RateLimiter,
        *,
        cache: ResponseCache | None = None,
        inflight: InFlightManager | None = None,
        context_processor: ContextProcessor | None = None,
        validator: QualityValidator | None = None,
        shutdown: ShutdownRegistry | None = None,
        concurrency_limit: int | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Collaborators that are not given are built from the configuration.

        Args:
            config (Config): Validated configuration.
            chain (FallbackChain): Provider chain used on cache misses.
            rate_limiter (RateLimiter): Limiter shared with the chain; reported by ``get_status``.
            cache (ResponseCache | None): Response cache.
            inflight (InFlightManager | None): Coalescing of identical concurrent requests.
            context_processor (ContextProcessor | None): Context detection for batch items.
            validator (QualityValidator | None): Quality checks applied to provider output.
            shutdown (ShutdownRegistry | None): Registry the cache flush is registered with.
            concurrency_limit (int | None): Explicit concurrency; takes precedence over auto-optimization.
        """
        self.config: Config = config
        self.source_lang: str = config.GENERAL.SOURCE
        self.max_key_length: int = config.ADVANCED.MAX_KEY_LENGTH
        self.max_batch_size: int = config.ADVANCED.MAX_BATCH_SIZE

        self._chain: FallbackChain | None = chain
        self._rate_limiter: RateLimiter = rate_limiter
        if cache is None:
            cache = ResponseCache.from_config(config)
        if inflight is None:
            inflight = InFlightManager.from_config(config)
        self._cache: ResponseCache | None = cache
        self._inflight: InFlightManager | None = inflight
        self._context_processor: ContextProcessor | None = (
            context_processor if context_processor is not None else ContextProcessor.from_config(config)
        )
        self._validator: QualityValidator | None = (
            validator if validator is not None else DefaultQualityValidator.from_config(config)
        )
        self._shutdown: ShutdownRegistry | None = shutdown
        self._destroyed: bool = False

        self.concurrency_limit: int = max(1, config.TRANSLATION.CONCURRENCY_LIMIT)
        if concurrency_limit is not None:
            self.concurrency_limit = max(1, concurrency_limit)
        elif config.ADVANCED.AUTO_OPTIMIZE:
            self.concurrency_limit = self.auto_concurrency()

        self.counters: dict[str, int] = {"processed": 0, "success": 0, "failed": 0, "from_cache": 0}

        if self._shutdown is not None:
            self._shutdown.register(self.SHUTDOWN_HOOK_NAME, self._flush_on_shutdown)

        logger.debug(
            "Orchestrator initialized: concurrency=%d max_batch=%d cache=%s",
            self.concurrency_limit,
            self.max_batch_size,
            cache.enabled,
        )

    @staticmethod
    def auto_concurrency() -> int:
        """Pick a concurrency tier from the host's CPU count and total memory.

        Returns:
            int: ``min(10, cpus)`` on hosts with at least 8 GiB and 4 CPUs, ``min(5, cpus)`` with at least
                4 GiB and 2 CPUs, otherwise 2.
        """
        try:
            cpu_count: int = psutil.cpu_count() or 1
            memory: int = psutil.virtual_memory().total
        except (OSError, RuntimeError) as err:
            logger.warning("Cannot inspect host resources (%s); using minimal concurrency", err)
            return 2

        if memory >= 8 * GIB and cpu_count >= 4:  # noqa: PLR2004
            limit: int = min(10, cpu_count)
        elif memory >= 4 * GIB and cpu_count >= 2:  # noqa: PLR2004
            limit = min(5, cpu_count)
        else:
            limit = 2
        logger.info("Auto-optimized concurrency: CPU=%d memory=%.1fGiB -> %d", cpu_count, memory / GIB, limit)
        return limit

    @property
    def batch_size(self) -> int:
        return max(1, min(self.concurrency_limit, self.max_batch_size))

    @property
    def chain(self) -> FallbackChain:
        if self._chain is None:
            msg = "Orchestrator has been destroyed"
            raise RuntimeError(msg)
        return self._chain

    @property
    def cache(self) -> ResponseCache:
        if self._cache is None:
            msg = "Orchestrator has been destroyed"
            raise RuntimeError(msg)
        return self._cache

    def _failure(
        self,
        key: str,
        text: str,
        err: BaseException,
        *,
        category: str = "unknown",
    ) -> TranslationResult:
        error_category: ErrorCategory = classify_error(err)
        self.counters["failed"] += 1
        return TranslationResult(
            key=key,
            translated=text,
            success=False,
            error=str(err),
            error_category=error_category.value,
            category=category,
        )

    async def process_translation(
        self,
        key: str,
        text: str,
        target_lang: str,
        context: ContextData | None = None,
        existing: str | None = None,
    ) -> TranslationResult:
        """Translate a single item.

        Never raises: failures are returned as ``success=False`` results whose ``translated`` field holds
        the original text.

        Args:
            key (str): Flattened key of the item.
            text (str): Source text.
            target_lang (str): Target language code.
            context (ContextData | None): Detected context; the fallback category is used when omitted.
            existing (str | None): Current translation in the target file, forwarded to the provider.

        Returns:
            TranslationResult: The outcome of the item.
        """
        self.counters["processed"] += 1
        if len(key) > self.max_key_length:
            preview: str = StringUtils.truncate(key, KEY_PREVIEW_LENGTH)
            err = KeyTooLongError(f"Key exceeds maximum length of {self.max_key_length} characters")
            logger.warning("Rejected key '%s': %s", preview, err)
            return self._failure(preview, text, err)

        if self._destroyed or self._chain is None or self._cache is None:
            return self._failure(key, text, RuntimeError("Orchestrator has been destroyed"))

        context = context or ContextData(category="general")
        category: str = context.category
        cache_key: str = ResponseCache.make_key(text, target_lang, category)

        cached: str | None = self._cache.get(cache_key)
        if cached is not None:
            self.counters["success"] += 1
            self.counters["from_cache"] += 1
            logger.debug("Cache hit for '%s' [%s]", key, target_lang)
            return TranslationResult(key=key, translated=cached, success=True, from_cache=True, category=category)

        owns_key: bool = False
        if self._inflight is not None:
            try:
                shared: str | None = await self._inflight.acquire(cache_key)
            except TimeoutError as err:
                # The producer is still running; send this item on its own.
                logger.warning("Shared request for '%s' [%s] still pending: %s", key, target_lang, err)
                shared = None
            except Exception as err:  # noqa: BLE001 - a failed shared request fails this item as well
                logger.warning("Shared request for '%s' [%s] failed: %s", key, target_lang, err)
                return self._failure(key, text, err, category=category)
            else:
                owns_key = shared is None
            if shared is not None:
                self.counters["success"] += 1
                return TranslationResult(key=key, translated=shared, success=True, category=category)

        options: dict[str, Any] = {"context": context, "key": key, "existing": existing}
        try:
            translated, provider = await self.chain.translate_with_provider(
                text, self.source_lang, target_lang, options
            )
            fixed: FixResult | None = self._fix(text, translated, target_lang, category)
        except asyncio.CancelledError:
            if owns_key and self._inflight is not None:
                await self._inflight.store_exception(cache_key, TimeoutError(f"Request for '{key}' was cancelled"))
            raise
        except Exception as err:  # noqa: BLE001 - failures become result objects
            if owns_key and self._inflight is not None:
                await self._inflight.store_exception(cache_key, err)
            logger.error("Translation error - key '%s' [%s]: %s", key, target_lang, err)
            return self._failure(key, text, err, category=category)

        final_text: str = fixed.fixed_text if fixed else translated
        self._cache.set(cache_key, final_text, refresher=self._make_refresher(text, target_lang, context))
        if owns_key and self._inflight is not None:
            await self._inflight.store_result(cache_key, final_text)

        self.counters["success"] += 1
        return TranslationResult(
            key=key,
            translated=final_text,
            success=True,
            category=category,
            provider=provider,
            fixes=list(fixed.fixes) if fixed else [],
            issues=[str(issue) for issue in fixed.issues] if fixed else [],
        )

    def _fix(self, source: str, translated: str, target_lang: str, category: str) -> FixResult | None:
        if self._validator is None:
            return None
        result: FixResult = self._validator.validate_and_fix(
            source, translated, {"target_lang": target_lang, "category": category}
        )
        for issue in result.issues:
            logger.debug("Quality issue [%s]: %s", target_lang, issue)
        return result

    def _make_refresher(self, text: str, target_lang: str, context: ContextData) -> Callable[[], Any]:
        """Build the coroutine factory the cache uses to recompute a stale entry."""

        async def refresh() -> str:
            translated: str = await self.chain.translate(text, self.source_lang, target_lang, {"context": context})
            fixed: FixResult | None = self._fix(text, translated, target_lang, context.category)
            return fixed.fixed_text if fixed else translated

        return refresh

    async def process_translations(
        self,
        items: Sequence[TranslationItem],
        *,
        on_result: Callable[[TranslationResult], None] | None = None,
    ) -> list[TranslationResult]:
        """Translate a batch of items in sequential chunks of concurrent requests.

        At most ``batch_size`` items are in flight at any time. Results are returned in item order.

        Args:
            items (Sequence[TranslationItem]): Items to translate.
            on_result (Callable[[TranslationResult], None] | None): Called once per finished item.

        Returns:
            list[TranslationResult]: One result per item.
        """
        size: int = self.batch_size
        chunks: list[Sequence[TranslationItem]] = [items[i : i + size] for i in range(0, len(items), size)]
        logger.info("Processing %d items in %d batches of max %d items", len(items), len(chunks), size)

        results: list[TranslationResult] = []
        for index, chunk in enumerate(chunks):
            logger.debug("Processing batch %d/%d (%d items)", index + 1, len(chunks), len(chunk))
            chunk_results: list[TranslationResult] = await asyncio.gather(
                *(self._process_item(item, on_result) for item in chunk)
            )
            results.extend(chunk_results)
            if index < len(chunks) - 1:
                await asyncio.sleep(self.CHUNK_PAUSE_SEC)
        return results

    async def _process_item(
        self,
        item: TranslationItem,
        on_result: Callable[[TranslationResult], None] | None,
    ) -> TranslationResult:
        if item.context is None and self._context_processor is not None:
            item.context = self._context_processor.analyze(item.text)
        result: TranslationResult = await self.process_translation(
            item.key, item.text, item.target_lang, item.context, item.existing
        )
        if on_result is not None:
            on_result(result)
        return result

    def get_cache_stats(self) -> dict[str, Any]:
        return self._cache.get_stats().to_dict() if self._cache is not None else {}

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def get_status(self) -> dict[str, Any]:
        """Snapshot of cache, rate limiter and provider statistics plus the item counters."""
        return {
            "cache": self.get_cache_stats(),
            "rate_limiter": {name: asdict(status) for name, status in self._rate_limiter.get_status().items()},
            "providers": self._chain.get_stats() if self._chain else {},
            "concurrency": self.concurrency_limit,
            "batch_size": self.batch_size,
            "counters": dict(self.counters),
        }

    async def _flush_on_shutdown(self) -> None:
        if self._cache is not None and len(self._cache):
            logger.info("Flushing %d cache entries", len(self._cache))
        await self.close()

    async def close(self) -> None:
        """Wait for background cache refreshes and release in-flight waiters, then destroy."""
        if self._cache is not None:
            await self._cache.close()
        if self._inflight is not None:
            await self._inflight.close()
        self.destroy()

    def destroy(self) -> None:
        """Clear the cache and statistics, detach the shutdown hook and drop references. Idempotent."""
        if self._destroyed:
            return
        self._destroyed = True
        if self._cache is not None:
            self._cache.clear()
            self._cache.reset_stats()
        if self._shutdown is not None:
            self._shutdown.unregister(self.SHUTDOWN_HOOK_NAME)
        self.counters = dict.fromkeys(self.counters, 0)
        self._cache = None
        self._inflight = None
        self._context_processor = None
        self._validator = None
        self._shutdown = None
        self._chain = None
        logger.debug("Orchestrator destroyed")
