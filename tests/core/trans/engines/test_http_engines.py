"""Tests for the HTTP provider adapters, driven by a fake AsyncHttp client."""

from __future__ import annotations

from collections import deque
from typing import Any

import pytest

from core.trans.engines import (
    DeepSeekTranslation,
    GeminiTranslation,
    OpenAITranslation,
    build_system_prompt,
    sanitize_translation,
)
from core.trans.interface import (
    ProviderApiError,
    ProviderAuthError,
    ProviderNetworkError,
    ProviderRateLimitError,
    ProviderServerError,
    ProviderTimeoutError,
)
from handlers.async_comm import AsyncCommConnectionError, AsyncCommStatusError, AsyncCommTimeoutError
from models.config_models import Config
from models.translation_models import ContextData


class FakeHttp:
    """Replays scripted responses; exceptions are raised."""

    def __init__(self, *responses: Any) -> None:
        self.responses: deque[Any] = deque(responses)
        self.requests: list[dict[str, Any]] = []
        self.closed: bool = False

    async def post(self, **kwargs: Any) -> Any:
        self.requests.append(kwargs)
        response: Any = self.responses.popleft()
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


def chat_response(content: str) -> dict[str, Any]:
    return {"id": "x", "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def config() -> Config:
    config = Config()
    config.RETRY.MAX_RETRIES = 0
    config.RETRY.INITIAL_DELAY_MS = 0
    config.RETRY.MAX_DELAY_MS = 0
    config.RETRY.JITTER = False
    return config


@pytest.fixture(autouse=True)
def api_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
    monkeypatch.setenv("GEMINI_API_KEY", "gm-key")
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)


def make_openai(config: Config, *responses: Any) -> tuple[OpenAITranslation, FakeHttp]:
    http = FakeHttp(*responses)
    engine = OpenAITranslation(http=http)  # type: ignore[arg-type]
    engine.initialize(config)
    return engine, http


def test_system_prompt_mentions_languages_and_context() -> None:
    """Context prompts are embedded; placeholder rules are always present."""
    context = ContextData(category="button", confidence=0.9, prompt="Keep it short")
    prompt: str = build_system_prompt("en", "de", context)

    assert "from en to de" in prompt
    assert "Context (button): Keep it short." in prompt
    assert "{name}" in prompt
    assert "Context" not in build_system_prompt("en", "de")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("<think>reasoning</think>Hallo", "Hallo"),
        ("Translation: Bonjour", "Bonjour"),
        ("Here is the translation: Hola", "Hola"),
        ('"Merhaba"', "Merhaba"),
        ("「こんにちは」", "こんにちは"),
        ("Line one\nLine one\nLine two", "Line one\nLine two"),
        ("  plain  ", "plain"),
    ],
)
def test_sanitize_translation(raw: str, expected: str) -> None:
    """Model artefacts are stripped from the answer."""
    assert sanitize_translation(raw) == expected


@pytest.mark.asyncio
async def test_translate_posts_chat_completion(config: Config) -> None:
    """The request carries the model, both messages and the bearer token."""
    config.PROVIDERS.MODELS = {"openai": "gpt-test"}
    engine, http = make_openai(config, chat_response('"Hallo Welt"'))

    assert await engine.translate("Hello world", "en", "de") == "Hallo Welt"

    request: dict[str, Any] = http.requests[0]
    assert request["url"] == "https://api.openai.com/v1/chat/completions"
    assert request["headers"]["Authorization"] == "Bearer sk-openai"
    assert request["data"]["model"] == "gpt-test"
    assert [message["role"] for message in request["data"]["messages"]] == ["system", "user"]
    assert request["data"]["messages"][1]["content"] == "Hello world"
    assert request["total_timeout"] == config.ADVANCED.TIMEOUT_MS / 1000


@pytest.mark.asyncio
async def test_blank_text_is_not_sent(config: Config) -> None:
    """Whitespace-only text is returned unchanged without a request."""
    engine, http = make_openai(config)

    assert await engine.translate("   ", "en", "de") == "   "
    assert http.requests == []


@pytest.mark.asyncio
async def test_missing_api_key_raises_auth_error(config: Config) -> None:
    """A provider without a key fails fast and reports itself unavailable."""
    http = FakeHttp()
    engine = DeepSeekTranslation(http=http)  # type: ignore[arg-type]
    engine.initialize(config)

    assert engine.is_available is False
    with pytest.raises(ProviderAuthError, match="DEEPSEEK_API_KEY"):
        await engine.translate("Hello", "en", "de")
    assert http.requests == []


@pytest.mark.parametrize(
    ("failure", "expected"),
    [
        (AsyncCommStatusError("rejected", status=429), ProviderRateLimitError),
        (AsyncCommStatusError("rejected", status=401), ProviderAuthError),
        (AsyncCommStatusError("rejected", status=403), ProviderAuthError),
        (AsyncCommStatusError("rejected", status=503), ProviderServerError),
        (AsyncCommStatusError("rejected", status=400), ProviderApiError),
        (AsyncCommTimeoutError("slow"), ProviderTimeoutError),
        (AsyncCommConnectionError("down"), ProviderNetworkError),
    ],
)
@pytest.mark.asyncio
async def test_transport_errors_are_mapped(config: Config, failure: Exception, expected: type[Exception]) -> None:
    """HTTP failures surface as the matching provider error."""
    engine, _ = make_openai(config, failure)

    with pytest.raises(expected):
        await engine.translate("Hello", "en", "de")


@pytest.mark.asyncio
async def test_retryable_errors_are_retried(config: Config) -> None:
    """Server errors are retried up to MAX_RETRIES times."""
    config.RETRY.MAX_RETRIES = 1
    engine, http = make_openai(config, AsyncCommStatusError("rejected", status=502), chat_response("Hallo"))

    assert await engine.translate("Hello", "en", "de") == "Hallo"
    assert len(http.requests) == 2


@pytest.mark.asyncio
async def test_rate_limit_waits_for_retry_after(config: Config) -> None:
    """A 429 carrying Retry-After waits that long before the next attempt, capped at MAX_DELAY_MS."""
    config.RETRY.MAX_RETRIES = 2
    config.RETRY.MAX_DELAY_MS = 5000
    first = AsyncCommStatusError("rejected", status=429)
    first.retry_after = 3.0
    second = AsyncCommStatusError("rejected", status=429)
    second.retry_after = 60.0
    engine, http = make_openai(config, first, second, chat_response("Hallo"))
    waits: list[float] = []

    async def record_sleep(seconds: float) -> None:
        waits.append(seconds)

    engine.sleep = record_sleep

    assert await engine.translate("Hello", "en", "de") == "Hallo"
    assert len(http.requests) == 3
    assert waits == [3.0, 5.0]


@pytest.mark.asyncio
async def test_fatal_errors_are_not_retried(config: Config) -> None:
    """Authentication failures are raised on the first attempt."""
    config.RETRY.MAX_RETRIES = 3
    engine, http = make_openai(config, AsyncCommStatusError("rejected", status=401))

    with pytest.raises(ProviderAuthError):
        await engine.translate("Hello", "en", "de")
    assert len(http.requests) == 1


@pytest.mark.asyncio
async def test_empty_answer_is_an_api_error(config: Config) -> None:
    """A response without usable content is rejected."""
    engine, _ = make_openai(config, {"choices": []}, chat_response("  "), ["not", "a", "dict"])

    with pytest.raises(ProviderApiError, match="No completion choice"):
        await engine.translate("Hello", "en", "de")
    with pytest.raises(ProviderApiError, match="empty translation"):
        await engine.translate("Hello", "en", "de")
    with pytest.raises(ProviderApiError, match="Invalid response format"):
        await engine.translate("Hello", "en", "de")


@pytest.mark.asyncio
async def test_analyze_uses_its_own_instructions(config: Config) -> None:
    """Analysis prompts are sent as the user message."""
    engine, http = make_openai(config, chat_response("button"))

    assert engine.supports_analyze is True
    assert await engine.analyze("Classify: Save") == "button"
    assert http.requests[0]["data"]["messages"][1]["content"] == "Classify: Save"


@pytest.mark.asyncio
async def test_gemini_sends_key_as_query_parameter(config: Config) -> None:
    """Gemini uses generateContent with camelCase options."""
    http = FakeHttp({"candidates": [{"content": {"parts": [{"text": "Bonjour"}], "role": "model"}}]})
    engine = GeminiTranslation(http=http)  # type: ignore[arg-type]
    engine.initialize(config)

    assert await engine.translate("Hello", "en", "fr") == "Bonjour"

    request: dict[str, Any] = http.requests[0]
    assert request["url"].endswith("/models/gemini-1.5-flash:generateContent")
    assert request["params"] == {"key": "gm-key"}
    assert request["data"]["generationConfig"]["maxOutputTokens"] == config.PROVIDERS.MAX_TOKENS
    assert request["data"]["contents"][0]["parts"][0]["text"].endswith("Text:\nHello")


@pytest.mark.asyncio
async def test_gemini_without_candidates_fails(config: Config) -> None:
    """An empty candidate list is an API error."""
    engine = GeminiTranslation(http=FakeHttp({"candidates": []}))  # type: ignore[arg-type]
    engine.initialize(config)

    with pytest.raises(ProviderApiError, match="candidate"):
        await engine.translate("Hello", "en", "fr")


@pytest.mark.asyncio
async def test_close_closes_http_client(config: Config) -> None:
    """Closing the engine closes its HTTP session."""
    engine, http = make_openai(config)

    await engine.close()

    assert http.closed is True
