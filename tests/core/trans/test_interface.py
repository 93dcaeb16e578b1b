"""Tests for the provider interface, its registry and the error taxonomy."""

from __future__ import annotations

import pytest

import core.trans.engines  # noqa: F401 - registers the provider classes
from core.trans.interface import (
    AllProvidersExhaustedError,
    EngineAttributes,
    ErrorCategory,
    KeyTooLongError,
    ProviderApiError,
    ProviderAuthError,
    ProviderFailure,
    ProviderRateLimitError,
    ProviderServerError,
    QueueTimeoutError,
    TransInterface,
    TranslateExceptionError,
    classify_error,
    is_retryable,
)
from tests.fakes import ScriptedProvider


@pytest.mark.parametrize(
    ("err", "expected"),
    [
        (ProviderRateLimitError("slow down"), ErrorCategory.RATE_LIMIT),
        (ProviderAuthError("bad key"), ErrorCategory.AUTH),
        (ProviderServerError("502"), ErrorCategory.SERVER),
        (TranslateExceptionError("boom"), ErrorCategory.UNKNOWN),
        (QueueTimeoutError("waited too long"), ErrorCategory.QUEUE_TIMEOUT),
        (KeyTooLongError("huge"), ErrorCategory.KEY_TOO_LONG),
        (TimeoutError(), ErrorCategory.TIMEOUT),
        (ConnectionResetError(), ErrorCategory.NETWORK),
        (ValueError("odd"), ErrorCategory.UNKNOWN),
    ],
)
def test_classify_error(err: BaseException, expected: ErrorCategory) -> None:
    """Every exception maps onto exactly one category."""
    assert classify_error(err) is expected


@pytest.mark.parametrize(
    ("category", "retryable"),
    [
        (ErrorCategory.RATE_LIMIT, True),
        (ErrorCategory.TIMEOUT, True),
        (ErrorCategory.NETWORK, True),
        (ErrorCategory.SERVER, True),
        (ErrorCategory.UNKNOWN, True),
        (ErrorCategory.QUEUE_TIMEOUT, True),
        (ErrorCategory.AUTH, False),
        (ErrorCategory.API, False),
        (ErrorCategory.KEY_TOO_LONG, False),
        (ErrorCategory.ALL_PROVIDERS_EXHAUSTED, False),
    ],
)
def test_is_retryable(category: ErrorCategory, retryable: bool) -> None:
    """Auth and API failures are provider-fatal; transient failures are retryable."""
    assert is_retryable(category) is retryable


def test_error_string_carries_category() -> None:
    """The category prefixes the message."""
    assert str(ProviderApiError("bad request")) == "api: bad request"


def test_rate_limit_error_keeps_retry_after() -> None:
    """Retry-After hints travel with the error."""
    err = ProviderRateLimitError("429", retry_after=2.5)

    assert err.retry_after == 2.5


def test_exhausted_error_lists_failures_in_order() -> None:
    """The message names every attempted provider."""
    failures: list[ProviderFailure] = [
        ProviderFailure("deepseek", ErrorCategory.TIMEOUT, "slow"),
        ProviderFailure("openai", ErrorCategory.AUTH, "bad key"),
    ]
    err = AllProvidersExhaustedError(failures)

    assert err.failures == failures
    assert str(err) == (
        "all_providers_exhausted: All providers failed: deepseek [timeout] slow; openai [auth] bad key"
    )
    assert "no provider available" in str(AllProvidersExhaustedError([]))


def test_builtin_providers_are_registered() -> None:
    """Importing the engines package registers every supported provider."""
    assert {"openai", "deepseek", "gemini", "dashscope", "xai"} <= set(TransInterface.registered)


def test_duplicate_provider_name_is_rejected() -> None:
    """Two providers cannot share a name."""
    with pytest.raises(ValueError, match="already registered"):

        class _Duplicate(ScriptedProvider):
            @staticmethod
            def fetch_engine_name() -> str:
                return "openai"


def test_empty_name_is_not_registered() -> None:
    """Intermediate classes with an empty name stay out of the registry."""
    before: int = len(TransInterface.registered)

    class _Intermediate(ScriptedProvider):
        pass

    assert len(TransInterface.registered) == before


def test_engine_attributes_are_set_once() -> None:
    """The attributes cannot be replaced after initialization."""
    provider = ScriptedProvider("p1")

    with pytest.raises(RuntimeError, match="only be set once"):
        provider.engine_attributes = EngineAttributes(name="other")


@pytest.mark.asyncio
async def test_analyze_unsupported_by_default() -> None:
    """Providers without analysis support raise an API error."""

    class _Plain(TransInterface):
        @staticmethod
        def fetch_engine_name() -> str:
            return ""

        @property
        def is_available(self) -> bool:
            return True

        def initialize(self, config) -> None:
            pass

        async def translate(self, text, source_lang, target_lang, options=None) -> str:
            return text

        async def close(self) -> None:
            pass

    with pytest.raises(ProviderApiError, match="does not support analysis"):
        await _Plain().analyze("classify this")


def test_api_key_is_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """The key comes from <NAME>_API_KEY."""
    provider: TransInterface = TransInterface.registered["deepseek"]()
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
    assert provider.get_api_key() == ""

    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")
    assert provider.get_api_key() == "sk-test"
    assert provider.is_available is True
