"""This module defines the abstract base class for translation providers and the error taxonomy.

Providers register themselves in ``TransInterface.registered`` when their class is defined, so the
provider manager can resolve configured names by a typed lookup. Every failure a provider, the rate
limiter or the orchestrator can produce is an exception carrying an ``ErrorCategory``.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Final

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import Config

__all__: list[str] = [
    "AllProvidersExhaustedError",
    "CacheRefreshError",
    "EngineAttributes",
    "ErrorCategory",
    "KeyTooLongError",
    "OrchestrationError",
    "ProviderApiError",
    "ProviderAuthError",
    "ProviderFailure",
    "ProviderNetworkError",
    "ProviderRateLimitError",
    "ProviderServerError",
    "ProviderTimeoutError",
    "QueueTimeoutError",
    "StateCorruptError",
    "TransInterface",
    "TranslateExceptionError",
    "classify_error",
    "is_retryable",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class ErrorCategory(str, Enum):
    """Failure categories shared by providers, the fallback chain and the orchestrator."""

    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK = "network"
    SERVER = "server"
    AUTH = "auth"
    API = "api"
    UNKNOWN = "unknown"
    QUEUE_TIMEOUT = "queue_timeout"
    KEY_TOO_LONG = "key_too_long"
    ALL_PROVIDERS_EXHAUSTED = "all_providers_exhausted"
    STATE_CORRUPT = "state_corrupt"
    CACHE_REFRESH_FAILED = "cache_refresh_failed"


RETRYABLE_CATEGORIES: Final[frozenset[ErrorCategory]] = frozenset(
    {
        ErrorCategory.RATE_LIMIT,
        ErrorCategory.TIMEOUT,
        ErrorCategory.NETWORK,
        ErrorCategory.SERVER,
        ErrorCategory.UNKNOWN,
        ErrorCategory.QUEUE_TIMEOUT,
    }
)


class TranslateExceptionError(Exception):
    """An error occurred during the translation process.

    Subclasses set ``category``; a plain TranslateExceptionError is an ``unknown`` provider failure.
    """

    category: ClassVar[ErrorCategory] = ErrorCategory.UNKNOWN

    def __str__(self) -> str:
        return f"{self.category.value}: {super().__str__()}"


class ProviderRateLimitError(TranslateExceptionError):
    """The provider rejected the request because of rate limiting (HTTP 429)."""

    category = ErrorCategory.RATE_LIMIT

    def __init__(self, msg: str, *, retry_after: float | None = None) -> None:
        super().__init__(msg)
        self.retry_after: float | None = retry_after


class ProviderTimeoutError(TranslateExceptionError):
    """The provider did not answer within the request timeout."""

    category = ErrorCategory.TIMEOUT


class ProviderNetworkError(TranslateExceptionError):
    """The provider could not be reached."""

    category = ErrorCategory.NETWORK


class ProviderServerError(TranslateExceptionError):
    """The provider answered with a 5xx status."""

    category = ErrorCategory.SERVER


class ProviderAuthError(TranslateExceptionError):
    """The API key is missing or was rejected (HTTP 401/403)."""

    category = ErrorCategory.AUTH


class ProviderApiError(TranslateExceptionError):
    """The provider rejected the request or returned an unusable response."""

    category = ErrorCategory.API


class OrchestrationError(Exception):
    """Base class for failures raised by the orchestration layer rather than by a provider."""

    category: ClassVar[ErrorCategory] = ErrorCategory.UNKNOWN

    def __str__(self) -> str:
        return f"{self.category.value}: {super().__str__()}"


class QueueTimeoutError(OrchestrationError):
    """A queued task waited longer than the queue timeout and was rejected without running."""

    category = ErrorCategory.QUEUE_TIMEOUT


class KeyTooLongError(OrchestrationError):
    """A translation key exceeds the configured maximum key length."""

    category = ErrorCategory.KEY_TOO_LONG


@dataclass(frozen=True)
class ProviderFailure:
    """One provider failure collected while walking the fallback chain.

    Attributes:
        provider (str): Provider name.
        category (ErrorCategory): Failure category.
        message (str): Error message.
    """

    provider: str
    category: ErrorCategory
    message: str

    def __str__(self) -> str:
        return f"{self.provider} [{self.category.value}] {self.message}"


class AllProvidersExhaustedError(OrchestrationError):
    """Every provider of the fallback chain failed for one request.

    Attributes:
        failures (list[ProviderFailure]): The failure of each attempted provider, in attempt order.
    """

    category = ErrorCategory.ALL_PROVIDERS_EXHAUSTED

    def __init__(self, failures: list[ProviderFailure]) -> None:
        self.failures: list[ProviderFailure] = list(failures)
        details: str = "; ".join(str(f) for f in self.failures) or "no provider available"
        super().__init__(f"All providers failed: {details}")


class StateCorruptError(OrchestrationError):
    """The persisted state file could not be read or decoded."""

    category = ErrorCategory.STATE_CORRUPT


class CacheRefreshError(OrchestrationError):
    """A background cache refresh failed; the stale value stays authoritative."""

    category = ErrorCategory.CACHE_REFRESH_FAILED


def classify_error(err: BaseException) -> ErrorCategory:
    """Map any exception onto the error taxonomy.

    Args:
        err (BaseException): The exception to classify.

    Returns:
        ErrorCategory: The category carried by the exception, ``timeout`` for bare TimeoutError,
            ``network`` for OSError/ConnectionError, and ``unknown`` for anything else.
    """
    category: Any = getattr(err, "category", None)
    if isinstance(category, ErrorCategory):
        return category
    if isinstance(err, TimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(err, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


def is_retryable(category: ErrorCategory) -> bool:
    """Check whether a failure category is worth retrying (possibly on another provider).

    ``auth`` and ``api`` failures are provider-fatal: repeating the same request cannot succeed.

    Args:
        category (ErrorCategory): The failure category.

    Returns:
        bool: True for transient failures.
    """
    return category in RETRYABLE_CATEGORIES


@dataclass
class EngineAttributes:
    """Provider-specific capabilities.

    Attributes:
        name (str): Display name of the provider.
        supports_analyze (bool): Whether the provider implements ``analyze``.
        default_model (str): Model used when the configuration does not name one.
    """

    name: str
    supports_analyze: bool = False
    default_model: str = ""


class TransInterface(ABC):
    """Abstract base class for translation providers.

    Subclasses are registered automatically under the name returned by ``fetch_engine_name()``.
    Implementations signal failures by raising TranslateExceptionError subclasses.

    Attributes:
        registered (ClassVar[dict[str, type[TransInterface]]]): Registered provider classes keyed by name.
    """

    registered: ClassVar[dict[str, type[TransInterface]]] = {}

    def __init_subclass__(cls, **kwargs) -> None:
        """Register the subclass in the registered dictionary.

        Abstract intermediate classes return an empty name and are not registered.

        Args:
            **kwargs: Additional keyword arguments passed to parent class.

        Raises:
            TypeError: If the subclass does not provide fetch_engine_name().
            ValueError: If another provider already uses the same name.
        """
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, "fetch_engine_name") or not callable(cls.fetch_engine_name):
            msg = "Subclasses of TransInterface must implement the static method fetch_engine_name()."
            raise TypeError(msg)

        name: Any = cls.fetch_engine_name()
        if not isinstance(name, str) or name == "":
            return

        if name in cls.registered:
            msg: str = f"A translation provider with the name '{name}' is already registered."
            raise ValueError(msg)

        cls.registered[name] = cls

    def __init__(self) -> None:
        self._engine_attributes: EngineAttributes | None = None

    @property
    def engine_attributes(self) -> EngineAttributes:
        """Get the provider attributes.

        Raises:
            RuntimeError: If the attributes have not been set by the subclass.
        """
        if self._engine_attributes is None:
            msg = "Engine attributes have not been set."
            raise RuntimeError(msg)
        return self._engine_attributes

    @engine_attributes.setter
    def engine_attributes(self, attributes: EngineAttributes) -> None:
        if self._engine_attributes is not None:
            msg = "Engine attributes can only be set once during initialization."
            raise RuntimeError(msg)
        self._engine_attributes = attributes

    @property
    def engine_name(self) -> str:
        return self.fetch_engine_name()

    @property
    def supports_analyze(self) -> bool:
        return self._engine_attributes is not None and self._engine_attributes.supports_analyze

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider can be used (e.g. an API key is configured)."""
        raise NotImplementedError

    @staticmethod
    @abstractmethod
    def fetch_engine_name() -> str:
        """Fetch the distinguished name of the provider.

        Called during class registration in __init_subclass__, so the implementation must be
        available at subclass definition time.

        Returns:
            str: The provider name, or an empty string for abstract intermediate classes.
        """
        raise NotImplementedError

    @abstractmethod
    def initialize(self, config: Config) -> None:
        """Initialize the provider with the given configuration."""
        raise NotImplementedError

    @abstractmethod
    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        options: dict[str, Any] | None = None,
    ) -> str:
        """Translate text from the source language to the target language.

        Args:
            text (str): Text to be translated.
            source_lang (str): Source language code.
            target_lang (str): Target language code.
            options (dict[str, Any] | None): Request options such as ``context`` (ContextData) and ``key``.

        Returns:
            str: Translated text.

        Raises:
            TranslateExceptionError: A subclass matching the failure category.
        """
        raise NotImplementedError

    async def analyze(self, prompt: str, options: dict[str, Any] | None = None) -> str:
        """Run a free-form analysis prompt.

        Providers that support analysis override this and set ``supports_analyze``.

        Raises:
            ProviderApiError: If the provider does not support analysis.
        """
        _ = prompt, options
        msg = f"Provider '{self.fetch_engine_name()}' does not support analysis."
        raise ProviderApiError(msg)

    @abstractmethod
    async def close(self) -> None:
        """Release network resources held by the provider."""
        raise NotImplementedError

    def get_api_key(self) -> str:
        """Retrieve the API key from environment variables.

        The key is read from ``<NAME>_API_KEY``, for example ``DEEPSEEK_API_KEY`` for "deepseek".

        Returns:
            str: The API key, or an empty string if the environment variable is not set.
        """
        return os.getenv(f"{self.fetch_engine_name().upper()}_API_KEY", "")
