"""Translation provider management and request orchestration primitives.

This package provides the provider interface and error taxonomy, pluggable provider implementations,
the per-provider rate limiter, the self-reranking fallback chain, context detection and quality checks.
"""

from core.trans.context import ContextProcessor
from core.trans.fallback import FallbackChain
from core.trans.interface import (
    AllProvidersExhaustedError,
    ErrorCategory,
    KeyTooLongError,
    QueueTimeoutError,
    TransInterface,
    TranslateExceptionError,
    classify_error,
    is_retryable,
)
from core.trans.manager import ProviderManager
from core.trans.rate_limiter import RateLimiter
from core.trans.validator import DefaultQualityValidator, QualityValidator

__all__: list[str] = [
    "AllProvidersExhaustedError",
    "ContextProcessor",
    "DefaultQualityValidator",
    "ErrorCategory",
    "FallbackChain",
    "KeyTooLongError",
    "ProviderManager",
    "QualityValidator",
    "QueueTimeoutError",
    "RateLimiter",
    "TransInterface",
    "TranslateExceptionError",
    "classify_error",
    "is_retryable",
]
