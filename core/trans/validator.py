"""Translation quality checks.

The orchestrator consumes validators through the ``QualityValidator`` contract. ``DefaultQualityValidator``
checks placeholder and HTML tag consistency and the relative length of a translation. Only missing
placeholders and source edge whitespace are repaired; everything else is reported.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from typing import TYPE_CHECKING, Any, ClassVar, Final, Self

from models.quality_models import FixResult, LengthBounds, QualityIssue, ValidationResult
from models.re_models import HTML_TAG_PATTERN, PLACEHOLDER_PATTERN, WHITESPACE_PATTERN
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Mapping

    from models.config_models import Config

__all__: list[str] = ["DefaultQualityValidator", "QualityValidator"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

SMART_MODE: Final[str] = "smart"
FIXED_MODES: Final[dict[str, float]] = {
    "strict": 0.1,
    "flexible": 0.3,
    "exact": 0.05,
    "relaxed": 0.5,
}


class QualityValidator(ABC):
    """Contract of translation validators.

    ``options`` may carry ``target_lang`` and ``category``; implementations ignore keys they do not use.
    """

    @abstractmethod
    def validate(self, source: str, translated: str, options: Mapping[str, Any] | None = None) -> ValidationResult:
        pass

    @abstractmethod
    def validate_and_fix(self, source: str, translated: str, options: Mapping[str, Any] | None = None) -> FixResult:
        pass


class DefaultQualityValidator(QualityValidator):
    """Placeholder, HTML tag and length checks.

    Attributes:
        CRITICAL_FACTOR (float): A length deviation this many times beyond the allowed bound is critical.
    """

    CRITICAL_FACTOR: ClassVar[float] = 1.5

    def __init__(
        self,
        *,
        enabled: bool = True,
        placeholder_check: bool = True,
        html_tag_check: bool = True,
        length_check: bool = True,
        length_mode: str = SMART_MODE,
        length_default: float = 0.15,
        length_by_language: Mapping[str, Mapping[str, float]] | None = None,
        length_by_context: Mapping[str, Mapping[str, float]] | None = None,
    ) -> None:
        if length_mode != SMART_MODE and length_mode not in FIXED_MODES:
            msg: str = f"Unknown length mode '{length_mode}'"
            raise ValueError(msg)

        self.enabled: bool = enabled
        self.placeholder_check: bool = placeholder_check
        self.html_tag_check: bool = html_tag_check
        self.length_check: bool = length_check
        self.length_mode: str = length_mode
        self.length_default: float = abs(length_default)
        self.length_by_language: dict[str, Mapping[str, float]] = dict(length_by_language or {})
        self.length_by_context: dict[str, Mapping[str, float]] = dict(length_by_context or {})

    @classmethod
    def from_config(cls, config: Config) -> Self:
        quality = config.QUALITY
        return cls(
            enabled=quality.ENABLED,
            placeholder_check=quality.PLACEHOLDER_CHECK,
            html_tag_check=quality.HTML_TAG_CHECK,
            length_check=quality.LENGTH_CHECK,
            length_mode=quality.LENGTH_MODE,
            length_default=quality.LENGTH_DEFAULT,
            length_by_language=quality.LENGTH_BY_LANGUAGE,
            length_by_context=quality.LENGTH_BY_CONTEXT,
        )

    @classmethod
    def length_only(cls, config: Config) -> Self:
        """Validator that only runs the length check, with the configured length rules."""
        quality = config.QUALITY
        return cls(
            placeholder_check=False,
            html_tag_check=False,
            length_mode=quality.LENGTH_MODE,
            length_default=quality.LENGTH_DEFAULT,
            length_by_language=quality.LENGTH_BY_LANGUAGE,
            length_by_context=quality.LENGTH_BY_CONTEXT,
        )

    def validate(self, source: str, translated: str, options: Mapping[str, Any] | None = None) -> ValidationResult:
        issues: list[QualityIssue] = self._collect_issues(source, translated, options or {})
        return ValidationResult(is_valid=not issues, issues=issues)

    def validate_and_fix(self, source: str, translated: str, options: Mapping[str, Any] | None = None) -> FixResult:
        """Check a translation and repair what can be repaired.

        Missing placeholders are appended and the leading/trailing whitespace of the source is restored.
        Issues are those of the original translation.

        Args:
            source (str): Source text.
            translated (str): Provider output.
            options (Mapping[str, Any] | None): ``target_lang`` and ``category``.

        Returns:
            FixResult: Fixed text, applied fixes and found issues.
        """
        options = options or {}
        issues: list[QualityIssue] = self._collect_issues(source, translated, options)
        if not self.enabled:
            return FixResult(fixed_text=translated, issues=issues)

        fixes: list[str] = []
        text: str = translated
        if self.placeholder_check:
            for placeholder in self._missing_placeholders(source, text):
                text = f"{text} {placeholder}" if text else placeholder
                fixes.append(f"Added placeholder: {placeholder}")

        restored: str = self._restore_edge_whitespace(source, text)
        if restored != text:
            fixes.append("Restored leading/trailing whitespace")
            text = restored

        if fixes:
            logger.debug("Applied %d quality fixes", len(fixes))
        return FixResult(fixed_text=text, fixes=fixes, issues=issues)

    def _collect_issues(self, source: str, translated: str, options: Mapping[str, Any]) -> list[QualityIssue]:
        if not self.enabled:
            return []
        issues: list[QualityIssue] = []
        if self.placeholder_check:
            issues.extend(self.check_placeholders(source, translated))
        if self.html_tag_check:
            issues.extend(self.check_html_tags(source, translated))
        if self.length_check:
            issues.extend(self.check_length(source, translated, options))
        return issues

    @staticmethod
    def _missing_placeholders(source: str, translated: str) -> list[str]:
        missing: Counter[str] = Counter(PLACEHOLDER_PATTERN.findall(source)) - Counter(
            PLACEHOLDER_PATTERN.findall(translated)
        )
        return list(missing.elements())

    def check_placeholders(self, source: str, translated: str) -> list[QualityIssue]:
        source_counts: Counter[str] = Counter(PLACEHOLDER_PATTERN.findall(source))
        translated_counts: Counter[str] = Counter(PLACEHOLDER_PATTERN.findall(translated))
        issues: list[QualityIssue] = [
            QualityIssue("placeholder", f"Missing placeholder: {placeholder}", "critical")
            for placeholder in (source_counts - translated_counts).elements()
        ]
        issues.extend(
            QualityIssue("placeholder", f"Unexpected placeholder: {placeholder}")
            for placeholder in (translated_counts - source_counts).elements()
        )
        return issues

    @staticmethod
    def _tags(text: str) -> Counter[str]:
        return Counter(
            ("/" if match.group(0).startswith("</") else "") + match.group("name").lower()
            for match in HTML_TAG_PATTERN.finditer(text)
        )

    def check_html_tags(self, source: str, translated: str) -> list[QualityIssue]:
        source_tags: Counter[str] = self._tags(source)
        translated_tags: Counter[str] = self._tags(translated)
        if source_tags == translated_tags:
            return []
        missing: list[str] = sorted((source_tags - translated_tags).elements())
        extra: list[str] = sorted((translated_tags - source_tags).elements())
        details: list[str] = []
        if missing:
            details.append(f"missing <{'>, <'.join(missing)}>")
        if extra:
            details.append(f"unexpected <{'>, <'.join(extra)}>")
        return [QualityIssue("html_tag", f"HTML tag mismatch: {'; '.join(details)}", "critical")]

    def length_bounds(self, target_lang: str, category: str) -> LengthBounds:
        """Resolve the allowed length deviation for a language and context category.

        Fixed modes use symmetric bounds. The smart mode takes the most restrictive combination of the
        per-language and per-context rules, each defaulting to plus or minus ``length_default``.
        """
        if self.length_mode != SMART_MODE:
            deviation: float = FIXED_MODES[self.length_mode]
            return LengthBounds(-deviation, deviation)

        default: float = self.length_default
        lang_rule: Mapping[str, float] = self.length_by_language.get(target_lang, {})
        context_rule: Mapping[str, float] = self.length_by_context.get(category, {})
        return LengthBounds(
            min_deviation=max(lang_rule.get("min", -default), context_rule.get("min", -default)),
            max_deviation=min(lang_rule.get("max", default), context_rule.get("max", default)),
        )

    def check_length(self, source: str, translated: str, options: Mapping[str, Any]) -> list[QualityIssue]:
        source_length: int = len(WHITESPACE_PATTERN.sub("", source))
        if source_length == 0:
            return []
        translated_length: int = len(WHITESPACE_PATTERN.sub("", translated))
        ratio: float = translated_length / source_length

        target_lang: str = str(options.get("target_lang", ""))
        category: str = str(options.get("category", "general"))
        bounds: LengthBounds = self.length_bounds(target_lang, category)
        if bounds.min_ratio <= ratio <= bounds.max_ratio:
            return []

        limit: float = max(abs(bounds.min_deviation), abs(bounds.max_deviation))
        severity: str = "critical" if abs(ratio - 1) > limit * self.CRITICAL_FACTOR else "warning"
        direction: str = "longer" if ratio > 1 else "shorter"
        message: str = (
            f"Translation is {abs(ratio - 1) * 100:.1f}% {direction} than source text "
            f"[{target_lang.upper() or '?'}, {category}]"
        )
        return [QualityIssue("length", message, severity)]

    @staticmethod
    def _restore_edge_whitespace(source: str, translated: str) -> str:
        core: str = translated.strip()
        if not core:
            return translated
        leading: str = source[: len(source) - len(source.lstrip())]
        trailing: str = source[len(source.rstrip()) :]
        return f"{leading}{core}{trailing}"
