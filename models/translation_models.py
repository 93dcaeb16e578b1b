"""Models for translation-related data.

Defines the per-item work unit, the per-item outcome and the run statistics aggregated by the sync driver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

__all__: list[str] = [
    "ContextData",
    "GlobalStats",
    "LanguageStats",
    "TranslationItem",
    "TranslationResult",
]


@dataclass
class ContextData:
    """Detected context of a source text.

    Attributes:
        category (str): Detected category name, or the fallback category.
        confidence (float): Share of the winning category in the total keyword score (0.0 to 1.0).
        prompt (str): Category-specific instruction forwarded to the provider.
        matched_keywords (list[str]): Keywords of the winning category found in the text.
    """

    category: str = "unknown"
    confidence: float = 0.0
    prompt: str = ""
    matched_keywords: list[str] = field(default_factory=list)


@dataclass
class TranslationItem:
    """A single key to translate into one target language.

    Attributes:
        key (str): Flattened dot-path key.
        text (str): Source text.
        target_lang (str): Target language code.
        existing (str | None): Translation already present in the target file, if any.
        is_new (bool): The key did not exist in the previous state.
        is_modified (bool): The key existed but its content hash changed.
        context (ContextData | None): Filled by the orchestrator before dispatch.
    """

    key: str
    text: str
    target_lang: str
    existing: str | None = None
    is_new: bool = False
    is_modified: bool = False
    context: ContextData | None = None


@dataclass
class TranslationResult:
    """Outcome of one translation item.

    On failure ``translated`` holds the original text so callers always have a safe value to write.

    Attributes:
        key (str): Flattened key (possibly truncated for key length violations).
        translated (str): Translated text, or the original text on failure.
        success (bool): Whether a translation was produced.
        from_cache (bool): Whether the value came from the response cache.
        error (str | None): Error description on failure.
        error_category (str | None): Taxonomy category of the failure.
        category (str): Context category used for the request.
        provider (str | None): Provider that produced the translation.
        fixes (list[str]): Fixes applied by the quality validator.
        issues (list[str]): Issues reported by the quality validator.
    """

    key: str
    translated: str
    success: bool
    from_cache: bool = False
    error: str | None = None
    error_category: str | None = None
    category: str = "unknown"
    provider: str | None = None
    fixes: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)


@dataclass
class LanguageStats:
    """Per-language counters of one run.

    Attributes:
        processed (int): Items dispatched to the orchestrator.
        added (int): Successful translations written to the target file.
        skipped (int): Keys left untouched because an up-to-date translation exists.
        failed (int): Items that fell back to the original text.
        time_ms (float): Wall clock time spent on the language.
        error (str | None): Fatal error for the whole language, if any.
    """

    processed: int = 0
    added: int = 0
    skipped: int = 0
    failed: int = 0
    time_ms: float = 0.0
    error: str | None = None


@dataclass
class GlobalStats:
    """Statistics of a whole sync run.

    Attributes:
        total (int): Items processed across all languages.
        success (int): Successful items.
        failed (int): Failed items.
        skipped (int): Skipped keys across all languages.
        by_category (dict[str, int]): Processed items per context category.
        details (dict[str, Any]): Free-form details such as the state comparison summary.
        languages (dict[str, LanguageStats]): Counters per target language.
        start_time (float): Run start (epoch seconds).
        end_time (float | None): Run end (epoch seconds).
        total_duration (float): Run duration in seconds.
        cache (dict[str, Any]): Final response cache statistics.
    """

    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    by_category: dict[str, int] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)
    languages: dict[str, LanguageStats] = field(default_factory=dict)
    start_time: float = 0.0
    end_time: float | None = None
    total_duration: float = 0.0
    cache: dict[str, Any] = field(default_factory=dict)
