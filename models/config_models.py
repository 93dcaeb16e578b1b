"""Configuration data models for the locale synchronisation tool.

This module defines data classes representing the sections of the INI configuration file,
such as translation provider selection, caching, rate limiting, retry behaviour and sync options.
Each data class encapsulates related configuration options, providing a structured way to manage
and access settings throughout the application. Defaults are applied here once; the loader only
overrides values that are present in the file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

__all__: list[str] = [
    "DEFAULT_PROVIDER_LIMITS",
    "Advanced",
    "Cache",
    "Config",
    "Context",
    "General",
    "ProviderLimits",
    "Providers",
    "Quality",
    "RateLimiter",
    "Retry",
    "Sync",
    "Translation",
]

DEFAULT_PROVIDER_LIMITS: Final[dict[str, dict[str, int]]] = {
    "openai": {"rpm": 300, "concurrency": 5},
    "deepseek": {"rpm": 30, "concurrency": 2},
    "gemini": {"rpm": 300, "concurrency": 5},
    "dashscope": {"rpm": 80, "concurrency": 6},
    "xai": {"rpm": 80, "concurrency": 8},
}


def _default_limits() -> dict[str, dict[str, int]]:
    return {name: dict(limits) for name, limits in DEFAULT_PROVIDER_LIMITS.items()}


def _default_categories() -> dict[str, dict[str, object]]:
    return {
        "technical": {
            "keywords": ["API", "backend", "database", "server"],
            "prompt": "Preserve technical terms",
            "weight": 1.3,
        },
        "marketing": {
            "keywords": ["brand", "campaign", "customer"],
            "prompt": "Use engaging language",
            "weight": 1.1,
        },
    }


@dataclass
class General:
    DEBUG: bool = False
    VERSION: str = ""
    SCRIPT_NAME: str = ""
    LOCALES_DIR: str = "./locales"
    SOURCE: str = "en"
    TARGETS: list[str] = field(default_factory=list)
    LOG_FILE: str = ""


@dataclass
class Translation:
    PROVIDER: str = "deepseek"
    USE_FALLBACK: bool = True
    FALLBACK_ORDER: list[str] = field(default_factory=lambda: ["deepseek", "openai", "gemini"])
    CONCURRENCY_LIMIT: int = 5
    LANGUAGE_CONCURRENCY: int = 1
    FORCE_UPDATE: bool = False
    RE_RANK_INTERVAL: int = 10
    FAILURE_THRESHOLD: int = 3
    BASE_COOLDOWN_MS: int = 30_000
    MAX_COOLDOWN_MS: int = 600_000


@dataclass
class Cache:
    ENABLED: bool = True
    MAX_SIZE: int = 1000
    TTL_MS: int = 24 * 60 * 60 * 1000
    STALE_WHILE_REVALIDATE: bool = True
    STALE_TTL_MS: int = 60 * 60 * 1000


@dataclass
class RateLimiter:
    ENABLED: bool = True
    QUEUE_STRATEGY: str = "priority"
    QUEUE_TIMEOUT_MS: int = 30_000
    ADAPTIVE_THROTTLING: bool = True


@dataclass
class ProviderLimits:
    LIMITS: dict[str, dict[str, int]] = field(default_factory=_default_limits)


@dataclass
class Retry:
    MAX_RETRIES: int = 2
    INITIAL_DELAY_MS: int = 1000
    MAX_DELAY_MS: int = 10_000
    JITTER: bool = True


@dataclass
class Advanced:
    TIMEOUT_MS: int = 30_000
    MAX_KEY_LENGTH: int = 10_000
    MAX_BATCH_SIZE: int = 50
    AUTO_OPTIMIZE: bool = True
    DEBUG: bool = False


@dataclass
class Sync:
    ENABLED: bool = True
    REMOVE_DELETED_KEYS: bool = True
    STATE_DIR: str = ".localize-cache"
    STATE_FILE: str = "localization.state.json"


@dataclass
class Context:
    ENABLED: bool = True
    THRESHOLD: int = 2
    MIN_CONFIDENCE: float = 0.6
    FALLBACK_CATEGORY: str = "general"
    FALLBACK_PROMPT: str = "Provide a natural translation"
    CATEGORIES: dict[str, dict[str, object]] = field(default_factory=_default_categories)


@dataclass
class Quality:
    ENABLED: bool = True
    PLACEHOLDER_CHECK: bool = True
    HTML_TAG_CHECK: bool = True
    LENGTH_CHECK: bool = True
    LENGTH_MODE: str = "smart"
    LENGTH_DEFAULT: float = 0.15
    LENGTH_BY_LANGUAGE: dict[str, dict[str, float]] = field(default_factory=dict)
    LENGTH_BY_CONTEXT: dict[str, dict[str, float]] = field(default_factory=dict)


@dataclass
class Providers:
    MODELS: dict[str, str] = field(default_factory=dict)
    TEMPERATURE: float = 0.3
    MAX_TOKENS: int = 2000


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    TRANSLATION: Translation = field(default_factory=Translation)
    CACHE: Cache = field(default_factory=Cache)
    RATE_LIMITER: RateLimiter = field(default_factory=RateLimiter)
    PROVIDER_LIMITS: ProviderLimits = field(default_factory=ProviderLimits)
    RETRY: Retry = field(default_factory=Retry)
    ADVANCED: Advanced = field(default_factory=Advanced)
    SYNC: Sync = field(default_factory=Sync)
    CONTEXT: Context = field(default_factory=Context)
    QUALITY: Quality = field(default_factory=Quality)
    PROVIDERS: Providers = field(default_factory=Providers)
