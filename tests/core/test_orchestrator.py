"""Tests for Orchestrator, wired to scripted providers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from types import SimpleNamespace

import pytest

import core.orchestrator as orchestrator_module
from core.cache.inflight_manager import InFlightManager
from core.orchestrator import GIB, Orchestrator
from core.shutdown import ShutdownRegistry
from core.trans.fallback import FallbackChain
from core.trans.interface import ProviderAuthError, ProviderServerError
from core.trans.rate_limiter import RateLimiter
from models.config_models import Config
from models.provider_models import ProviderEntry
from models.translation_models import TranslationItem, TranslationResult
from tests.fakes import ScriptedProvider


@pytest.fixture
def config() -> Config:
    config = Config()
    config.GENERAL.SOURCE = "en"
    return config


@pytest.fixture
async def rate_limiter(config: Config) -> AsyncIterator[RateLimiter]:
    limiter: RateLimiter = RateLimiter.from_config(config)
    yield limiter
    limiter.destroy()


def make_orchestrator(
    config: Config,
    rate_limiter: RateLimiter,
    *providers: ScriptedProvider,
    **kwargs,
) -> Orchestrator:
    chain = FallbackChain(
        [ProviderEntry(name=provider.name, implementation=provider) for provider in providers],
        rate_limiter,
    )
    kwargs.setdefault("concurrency_limit", 4)
    return Orchestrator(config, chain, rate_limiter, **kwargs)


@pytest.mark.asyncio
async def test_translation_is_cached(config: Config, rate_limiter: RateLimiter) -> None:
    """The second identical request is answered from the cache."""
    provider = ScriptedProvider("p1")
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, provider)

    first: TranslationResult = await orchestrator.process_translation("home.title", "Hello", "fr")
    second: TranslationResult = await orchestrator.process_translation("home.title", "Hello", "fr")

    assert first.success is True
    assert first.translated == "[fr] Hello"
    assert first.provider == "p1"
    assert first.from_cache is False
    assert second.from_cache is True
    assert second.translated == "[fr] Hello"
    assert provider.calls == [("Hello", "fr")]
    assert orchestrator.counters == {"processed": 2, "success": 2, "failed": 0, "from_cache": 1}
    await orchestrator.close()


@pytest.mark.asyncio
async def test_cache_key_includes_language(config: Config, rate_limiter: RateLimiter) -> None:
    """The same text in another target language is translated again."""
    provider = ScriptedProvider("p1")
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, provider)

    await orchestrator.process_translation("a", "Hello", "fr")
    await orchestrator.process_translation("a", "Hello", "de")

    assert provider.calls == [("Hello", "fr"), ("Hello", "de")]
    await orchestrator.close()


@pytest.mark.asyncio
async def test_fallback_provider_is_reported(config: Config, rate_limiter: RateLimiter) -> None:
    """When the primary fails the backup's answer is used."""
    primary = ScriptedProvider("p1", [ProviderServerError("502")])
    backup = ScriptedProvider("p2")
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, primary, backup)

    result: TranslationResult = await orchestrator.process_translation("k", "Bye", "es")

    assert result.success is True
    assert result.provider == "p2"
    await orchestrator.close()


@pytest.mark.asyncio
async def test_failure_returns_original_text(config: Config, rate_limiter: RateLimiter) -> None:
    """Provider failures never escape; the result carries the source text."""
    provider = ScriptedProvider("p1", default=ProviderAuthError("bad key"))
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, provider)

    result: TranslationResult = await orchestrator.process_translation("k", "Hello", "fr")

    assert result.success is False
    assert result.translated == "Hello"
    assert result.error_category == "all_providers_exhausted"
    assert "bad key" in (result.error or "")
    assert len(orchestrator.cache) == 0
    assert orchestrator.counters["failed"] == 1
    await orchestrator.close()


@pytest.mark.asyncio
async def test_key_too_long_is_rejected(config: Config, rate_limiter: RateLimiter) -> None:
    """Oversized keys fail without reaching a provider."""
    config.ADVANCED.MAX_KEY_LENGTH = 10
    provider = ScriptedProvider("p1")
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, provider)

    result: TranslationResult = await orchestrator.process_translation("k" * 300, "Hello", "fr")

    assert result.success is False
    assert result.error_category == "key_too_long"
    assert result.translated == "Hello"
    assert len(result.key) < 300
    assert provider.calls == []
    await orchestrator.close()


@pytest.mark.asyncio
async def test_identical_concurrent_requests_are_coalesced(config: Config, rate_limiter: RateLimiter) -> None:
    """Only one provider call is made for concurrent identical requests."""
    provider = ScriptedProvider("p1", delay=0.05)
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, provider)

    results: list[TranslationResult] = await asyncio.gather(
        orchestrator.process_translation("a", "Save", "de"),
        orchestrator.process_translation("b", "Save", "de"),
    )

    assert [result.translated for result in results] == ["[de] Save", "[de] Save"]
    assert all(result.success for result in results)
    assert provider.calls == [("Save", "de")]
    await orchestrator.close()


@pytest.mark.asyncio
async def test_pending_shared_request_falls_back_to_own_call(config: Config, rate_limiter: RateLimiter) -> None:
    """A waiter whose producer outlasts the wait sends its own request instead of failing."""
    provider = ScriptedProvider("p1", delay=0.2)
    orchestrator: Orchestrator = make_orchestrator(
        config, rate_limiter, provider, inflight=InFlightManager(wait_timeout=0.05)
    )

    results: list[TranslationResult] = await asyncio.gather(
        orchestrator.process_translation("a.ok", "OK", "tr"),
        orchestrator.process_translation("b.ok", "OK", "tr"),
    )

    assert [result.success for result in results] == [True, True]
    assert [result.translated for result in results] == ["[tr] OK", "[tr] OK"]
    assert provider.calls == [("OK", "tr"), ("OK", "tr")]
    await orchestrator.close()


@pytest.mark.asyncio
async def test_cache_stats_are_reported_while_cache_is_empty(config: Config, rate_limiter: RateLimiter) -> None:
    """Misses are reported even when no entry has been stored yet."""
    provider = ScriptedProvider("p1", default=ProviderAuthError("bad key"))
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, provider)

    await orchestrator.process_translation("k", "Hello", "fr")

    assert len(orchestrator.cache) == 0
    assert orchestrator.get_cache_stats()["misses"] == 1
    await orchestrator.close()


@pytest.mark.asyncio
async def test_quality_fixes_are_applied(config: Config, rate_limiter: RateLimiter) -> None:
    """Missing placeholders are restored and reported."""
    provider = ScriptedProvider("p1", ["Bonjour"])
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, provider)

    result: TranslationResult = await orchestrator.process_translation("greet", "Hello {name}", "fr")

    assert result.translated == "Bonjour {name}"
    assert result.fixes == ["Added placeholder: {name}"]
    assert any("Missing placeholder" in issue for issue in result.issues)
    await orchestrator.close()


@pytest.mark.asyncio
async def test_context_is_forwarded_to_provider(config: Config, rate_limiter: RateLimiter) -> None:
    """Batch items get a detected context that reaches the provider options."""
    provider = ScriptedProvider("p1")
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, provider)
    item = TranslationItem(key="err", text="The API server is down", target_lang="de", existing="Alt")

    results: list[TranslationResult] = await orchestrator.process_translations([item])

    assert results[0].category == "technical"
    options = provider.options[0]
    assert options is not None
    assert options["context"].category == "technical"
    assert options["key"] == "err"
    assert options["existing"] == "Alt"
    await orchestrator.close()


@pytest.mark.asyncio
async def test_batch_results_keep_item_order(config: Config, rate_limiter: RateLimiter) -> None:
    """Results come back in item order and the callback sees every item."""
    provider = ScriptedProvider("p1")
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, provider, concurrency_limit=2)
    orchestrator.CHUNK_PAUSE_SEC = 0
    items: list[TranslationItem] = [
        TranslationItem(key=f"k{index}", text=f"Text {index}", target_lang="it") for index in range(5)
    ]
    seen: list[str] = []

    results: list[TranslationResult] = await orchestrator.process_translations(
        items, on_result=lambda result: seen.append(result.key)
    )

    assert [result.key for result in results] == ["k0", "k1", "k2", "k3", "k4"]
    assert [result.translated for result in results] == [f"[it] Text {index}" for index in range(5)]
    assert sorted(seen) == ["k0", "k1", "k2", "k3", "k4"]
    assert orchestrator.batch_size == 2
    await orchestrator.close()


@pytest.mark.asyncio
async def test_batch_size_is_capped_by_max_batch_size(config: Config, rate_limiter: RateLimiter) -> None:
    """Concurrency above MAX_BATCH_SIZE is capped."""
    config.ADVANCED.MAX_BATCH_SIZE = 3
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, ScriptedProvider("p1"), concurrency_limit=8)

    assert orchestrator.batch_size == 3
    await orchestrator.close()


def test_auto_concurrency_tiers(monkeypatch: pytest.MonkeyPatch) -> None:
    """The concurrency tier follows CPU count and memory."""
    monkeypatch.setattr(orchestrator_module.psutil, "cpu_count", lambda: 16)
    monkeypatch.setattr(orchestrator_module.psutil, "virtual_memory", lambda: SimpleNamespace(total=16 * GIB))
    assert Orchestrator.auto_concurrency() == 10

    monkeypatch.setattr(orchestrator_module.psutil, "cpu_count", lambda: 3)
    monkeypatch.setattr(orchestrator_module.psutil, "virtual_memory", lambda: SimpleNamespace(total=6 * GIB))
    assert Orchestrator.auto_concurrency() == 3

    monkeypatch.setattr(orchestrator_module.psutil, "virtual_memory", lambda: SimpleNamespace(total=2 * GIB))
    assert Orchestrator.auto_concurrency() == 2


@pytest.mark.asyncio
async def test_explicit_concurrency_overrides_auto_optimize(
    config: Config, rate_limiter: RateLimiter, monkeypatch: pytest.MonkeyPatch
) -> None:
    """An explicit limit wins; otherwise auto-optimization replaces the configured value."""
    monkeypatch.setattr(Orchestrator, "auto_concurrency", staticmethod(lambda: 7))
    config.ADVANCED.AUTO_OPTIMIZE = True

    explicit: Orchestrator = make_orchestrator(config, rate_limiter, ScriptedProvider("p1"), concurrency_limit=3)
    chain = FallbackChain([ProviderEntry(name="p1", implementation=ScriptedProvider("p1"))], rate_limiter)
    automatic = Orchestrator(config, chain, rate_limiter)

    assert explicit.concurrency_limit == 3
    assert automatic.concurrency_limit == 7
    await explicit.close()
    await automatic.close()


@pytest.mark.asyncio
async def test_status_snapshot(config: Config, rate_limiter: RateLimiter) -> None:
    """The status combines cache, limiter, providers and counters."""
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, ScriptedProvider("p1"))
    await orchestrator.process_translation("k", "Hi", "fr")

    status = orchestrator.get_status()

    assert set(status) == {"cache", "rate_limiter", "providers", "concurrency", "batch_size", "counters"}
    assert status["cache"]["stored"] == 1
    assert "p1" in status["rate_limiter"]
    assert status["providers"]["p1"]["success"] == 1
    assert status["counters"]["success"] == 1
    await orchestrator.close()


@pytest.mark.asyncio
async def test_shutdown_hook_flushes_and_destroys(config: Config, rate_limiter: RateLimiter) -> None:
    """The registered hook closes the orchestrator; later items fail cleanly."""
    shutdown = ShutdownRegistry()
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, ScriptedProvider("p1"), shutdown=shutdown)
    assert Orchestrator.SHUTDOWN_HOOK_NAME in shutdown

    await orchestrator.process_translation("k", "Hi", "fr")
    await shutdown.run()

    result: TranslationResult = await orchestrator.process_translation("k", "Hi", "fr")
    assert result.success is False
    assert result.translated == "Hi"
    assert orchestrator.get_cache_stats() == {}
    with pytest.raises(RuntimeError, match="destroyed"):
        _ = orchestrator.chain


@pytest.mark.asyncio
async def test_destroy_is_idempotent(config: Config, rate_limiter: RateLimiter) -> None:
    """Destroying twice is harmless and detaches the shutdown hook."""
    shutdown = ShutdownRegistry()
    orchestrator: Orchestrator = make_orchestrator(config, rate_limiter, ScriptedProvider("p1"), shutdown=shutdown)

    orchestrator.destroy()
    orchestrator.destroy()

    assert Orchestrator.SHUTDOWN_HOOK_NAME not in shutdown
    assert orchestrator.counters == {"processed": 0, "success": 0, "failed": 0, "from_cache": 0}
