"""Shared plumbing of the HTTP based provider adapters.

``HttpEngine`` owns the AsyncHttp client, the retry policy and the mapping of transport failures onto the
error taxonomy. ``ChatCompletionsEngine`` implements the OpenAI-compatible chat completions API used by
most providers; concrete providers only declare their name, endpoint and default model.
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from core.trans.interface import (
    EngineAttributes,
    ProviderApiError,
    ProviderAuthError,
    ProviderNetworkError,
    ProviderRateLimitError,
    ProviderServerError,
    ProviderTimeoutError,
    TransInterface,
    TranslateExceptionError,
    is_retryable,
)
from handlers.async_comm import (
    AsyncCommConnectionError,
    AsyncCommError,
    AsyncCommStatusError,
    AsyncCommTimeoutError,
    AsyncHttp,
)
from models.provider_payload_models import ChatCompletionRequest, ChatCompletionResponse, ChatMessage
from models.re_models import PREAMBLE_PATTERN, THINK_BLOCK_PATTERN, WRAPPING_QUOTES_PATTERN
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

    from models.config_models import Config
    from models.translation_models import ContextData

__all__: list[str] = [
    "ChatCompletionsEngine",
    "HttpEngine",
    "build_system_prompt",
    "sanitize_translation",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


def build_system_prompt(source_lang: str, target_lang: str, context: ContextData | None = None) -> str:
    """Build the translation instructions sent along with the text.

    Args:
        source_lang (str): Source language code.
        target_lang (str): Target language code.
        context (ContextData | None): Detected context; its prompt is added when present.

    Returns:
        str: The instruction text.
    """
    lines: list[str] = [
        f"You are a professional translator. Translate the user's text from {source_lang} to {target_lang}.",
    ]
    if context is not None and context.prompt:
        lines.append(f"Context ({context.category}): {context.prompt}.")
    lines.extend(
        [
            "Keep placeholders such as {name}, {{count}}, %s, %d and $t(key) exactly as they appear.",
            "Keep HTML tags and their attributes unchanged.",
            "Reply with the translation only, without explanations, notes or surrounding quotes.",
        ]
    )
    return "\n".join(lines)


def sanitize_translation(text: str) -> str:
    """Remove artefacts chat models wrap around a translation.

    Strips reasoning blocks, "Translation:" style preambles, one pair of wrapping quotes and consecutive
    duplicate lines.
    """
    cleaned: str = THINK_BLOCK_PATTERN.sub("", text).strip()
    cleaned = PREAMBLE_PATTERN.sub("", cleaned, count=1).strip()

    if match := WRAPPING_QUOTES_PATTERN.match(cleaned):
        inner: str | None = next((group for group in match.groups() if group is not None), None)
        if inner is not None:
            cleaned = inner.strip()

    lines: list[str] = []
    for line in cleaned.splitlines():
        if lines and line.strip() and line.strip() == lines[-1].strip():
            continue
        lines.append(line)
    return "\n".join(lines).strip()


def _is_retryable_error(err: BaseException) -> bool:
    return isinstance(err, TranslateExceptionError) and is_retryable(err.category)


class HttpEngine(TransInterface):
    """Base class of providers reached over HTTP.

    Attributes:
        BASE_URL (str): API base URL.
        DEFAULT_MODEL (str): Model used when the configuration names none.
    """

    BASE_URL: ClassVar[str] = ""
    DEFAULT_MODEL: ClassVar[str] = ""
    SUPPORTS_ANALYZE: ClassVar[bool] = True

    def __init__(self, http: AsyncHttp | None = None) -> None:
        super().__init__()
        self.http: AsyncHttp = http or AsyncHttp(headers={"User-Agent": "localesync/1.0"})
        self.model: str = self.DEFAULT_MODEL
        self.temperature: float = 0.3
        self.max_tokens: int = 2000
        self.timeout: float = 30.0
        self.max_retries: int = 2
        self.initial_delay: float = 1.0
        self.max_delay: float = 10.0
        self.jitter: bool = True
        self.sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @staticmethod
    def fetch_engine_name() -> str:
        return ""

    @property
    def is_available(self) -> bool:
        return bool(self.get_api_key())

    def initialize(self, config: Config) -> None:
        name: str = self.fetch_engine_name()
        self.engine_attributes = EngineAttributes(
            name=name,
            supports_analyze=self.SUPPORTS_ANALYZE,
            default_model=self.DEFAULT_MODEL,
        )
        self.model = config.PROVIDERS.MODELS.get(name) or self.DEFAULT_MODEL
        self.temperature = config.PROVIDERS.TEMPERATURE
        self.max_tokens = config.PROVIDERS.MAX_TOKENS
        self.timeout = config.ADVANCED.TIMEOUT_MS / 1000
        self.max_retries = max(0, config.RETRY.MAX_RETRIES)
        self.initial_delay = config.RETRY.INITIAL_DELAY_MS / 1000
        self.max_delay = config.RETRY.MAX_DELAY_MS / 1000
        self.jitter = config.RETRY.JITTER
        logger.debug("'%s' initialized with model '%s'", name, self.model)

    def _require_api_key(self) -> str:
        api_key: str = self.get_api_key()
        if not api_key:
            name: str = self.fetch_engine_name()
            msg: str = f"API key not configured for '{name}' ({name.upper()}_API_KEY)"
            raise ProviderAuthError(msg)
        return api_key

    def _retrying(self) -> AsyncRetrying:
        backoff = wait_exponential(multiplier=self.initial_delay, max=self.max_delay)
        if self.jitter:
            backoff = backoff + wait_random(0, self.initial_delay)

        def wait(retry_state: RetryCallState) -> float:
            # A Retry-After hint replaces a shorter backoff, bounded by MAX_DELAY_MS.
            delay: float = backoff(retry_state)
            err: BaseException | None = retry_state.outcome.exception() if retry_state.outcome else None
            if isinstance(err, ProviderRateLimitError) and err.retry_after:
                delay = max(delay, min(err.retry_after, self.max_delay))
            return delay

        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait,
            sleep=self.sleep,
            retry=retry_if_exception(_is_retryable_error),
            before_sleep=self._log_retry,
            reraise=True,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        err: BaseException | None = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "'%s' attempt %d failed (%s); retrying",
            self.fetch_engine_name(),
            retry_state.attempt_number,
            err,
        )

    def _map_error(self, err: AsyncCommError) -> TranslateExceptionError:
        """Translate a transport failure into the provider error taxonomy."""
        name: str = self.fetch_engine_name()
        if isinstance(err, AsyncCommTimeoutError):
            return ProviderTimeoutError(f"{name} request timed out")
        if isinstance(err, AsyncCommConnectionError):
            return ProviderNetworkError(f"Cannot connect to {name} API")
        if isinstance(err, AsyncCommStatusError):
            status: int = err.status
            if status == 429:  # noqa: PLR2004
                return ProviderRateLimitError(f"{name} rate limit exceeded", retry_after=err.retry_after)
            if status in (401, 403):
                return ProviderAuthError(f"{name} authentication failed ({status})")
            if status >= 500:  # noqa: PLR2004
                return ProviderServerError(f"{name} server error ({status})")
            return ProviderApiError(f"{name} API error ({status})")
        return ProviderApiError(f"{name} invalid response: {err}")

    async def _post(self, url: str, payload: dict[str, Any], **kwargs: Any) -> Any:
        """POST with retries; transport errors leave this method as TranslateExceptionError subclasses."""
        async for attempt in self._retrying():
            with attempt:
                try:
                    return await self.http.post(url=url, data=payload, total_timeout=self.timeout, **kwargs)
                except AsyncCommError as err:
                    raise self._map_error(err) from err
        msg = f"Retry loop for '{self.fetch_engine_name()}' ended without a result"
        raise ProviderApiError(msg)

    @abstractmethod
    async def _complete(self, system_prompt: str, user_text: str, *, temperature: float, max_tokens: int) -> str:
        """Send one prompt to the provider and return the raw answer."""

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        options: dict[str, Any] | None = None,
    ) -> str:
        options = options or {}
        if not text.strip():
            return text
        self._require_api_key()
        system_prompt: str = build_system_prompt(source_lang, target_lang, options.get("context"))
        answer: str = await self._complete(
            system_prompt,
            text,
            temperature=float(options.get("temperature", self.temperature)),
            max_tokens=int(options.get("max_tokens", self.max_tokens)),
        )
        translated: str = sanitize_translation(answer)
        if not translated:
            msg: str = f"{self.fetch_engine_name()} returned an empty translation"
            raise ProviderApiError(msg)
        return translated

    async def analyze(self, prompt: str, options: dict[str, Any] | None = None) -> str:
        options = options or {}
        self._require_api_key()
        answer: str = await self._complete(
            "You are a precise text analysis assistant. Answer concisely.",
            prompt,
            temperature=float(options.get("temperature", 0.2)),
            max_tokens=int(options.get("max_tokens", 1000)),
        )
        return sanitize_translation(answer)

    async def close(self) -> None:
        await self.http.close()


class ChatCompletionsEngine(HttpEngine):
    """Provider speaking the OpenAI-compatible ``/chat/completions`` API."""

    @staticmethod
    def fetch_engine_name() -> str:
        return ""

    @property
    def endpoint(self) -> str:
        return f"{self.BASE_URL}/chat/completions"

    async def _complete(self, system_prompt: str, user_text: str, *, temperature: float, max_tokens: int) -> str:
        api_key: str = self._require_api_key()
        request = ChatCompletionRequest(
            model=self.model,
            messages=[ChatMessage("system", system_prompt), ChatMessage("user", user_text)],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        raw: Any = await self._post(
            self.endpoint,
            request.to_dict(),
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        )
        if not isinstance(raw, dict):
            msg: str = f"Invalid response format from {self.fetch_engine_name()}"
            raise ProviderApiError(msg)
        text: str | None = ChatCompletionResponse.from_dict(raw).text
        if text is None:
            msg = f"No completion choice in response from {self.fetch_engine_name()}"
            raise ProviderApiError(msg)
        return text
