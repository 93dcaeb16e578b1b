"""Data models for the locale synchronisation tool.

This package contains dataclass definitions for configuration, translation work items and statistics,
provider bookkeeping and payloads, cache entries, sync state, quality reports, and the regular
expression patterns used throughout the application.
"""

from __future__ import annotations

from models.cache_models import CacheEntry, CacheStatistics
from models.config_models import Config
from models.provider_models import ProviderEntry, ProviderLimit, ProviderStats, QueueTask, RateLimiterStatus
from models.provider_payload_models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    GeminiRequest,
    GeminiResponse,
)
from models.quality_models import FixResult, LengthBounds, QualityIssue, ValidationResult
from models.re_models import (
    HTML_TAG_PATTERN,
    PLACEHOLDER_PATTERN,
    PREAMBLE_PATTERN,
    THINK_BLOCK_PATTERN,
    WHITESPACE_PATTERN,
    WRAPPING_QUOTES_PATTERN,
)
from models.state_models import ComparisonResult, ComparisonStats, StateMetadata
from models.translation_models import ContextData, GlobalStats, LanguageStats, TranslationItem, TranslationResult

__all__: list[str] = [
    "HTML_TAG_PATTERN",
    "PLACEHOLDER_PATTERN",
    "PREAMBLE_PATTERN",
    "THINK_BLOCK_PATTERN",
    "WHITESPACE_PATTERN",
    "WRAPPING_QUOTES_PATTERN",
    "CacheEntry",
    "CacheStatistics",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "ComparisonResult",
    "ComparisonStats",
    "Config",
    "ContextData",
    "FixResult",
    "GeminiRequest",
    "GeminiResponse",
    "GlobalStats",
    "LanguageStats",
    "LengthBounds",
    "ProviderEntry",
    "ProviderLimit",
    "ProviderStats",
    "QualityIssue",
    "QueueTask",
    "RateLimiterStatus",
    "StateMetadata",
    "TranslationItem",
    "TranslationResult",
    "ValidationResult",
]
