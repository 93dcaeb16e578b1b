"""Keyword based context detection.

A source text is scored against the configured categories; the winning category's prompt is forwarded to the
provider and the category takes part in the response cache key.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass
from re import Pattern
from typing import TYPE_CHECKING, Any, ClassVar, Self

from models.translation_models import ContextData
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Mapping

    from models.config_models import Config

__all__: list[str] = ["ContextProcessor"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass(frozen=True)
class _Category:
    name: str
    pattern: Pattern[str]
    weight: float
    prompt: str


class ContextProcessor:
    """Detects the context category of a text from whole-word keyword matches.

    Each category scores ``matches * weight``; categories below the match threshold do not score. The best
    category wins when its share of the total score reaches the minimum confidence, otherwise the fallback
    category is returned.

    Attributes:
        RESULT_CACHE_SIZE (int): Number of memoised results.
    """

    RESULT_CACHE_SIZE: ClassVar[int] = 1000

    def __init__(
        self,
        categories: Mapping[str, Mapping[str, Any]] | None = None,
        *,
        enabled: bool = True,
        threshold: int = 2,
        min_confidence: float = 0.6,
        fallback_category: str = "general",
        fallback_prompt: str = "",
    ) -> None:
        self._enabled: bool = enabled
        self._threshold: int = max(1, threshold)
        self._min_confidence: float = min_confidence
        self._fallback_category: str = fallback_category
        self._fallback_prompt: str = fallback_prompt
        self._categories: list[_Category] = self._compile(categories or {})
        self._results: OrderedDict[str, ContextData] = OrderedDict()

    @classmethod
    def from_config(cls, config: Config) -> Self:
        return cls(
            config.CONTEXT.CATEGORIES,
            enabled=config.CONTEXT.ENABLED,
            threshold=config.CONTEXT.THRESHOLD,
            min_confidence=config.CONTEXT.MIN_CONFIDENCE,
            fallback_category=config.CONTEXT.FALLBACK_CATEGORY,
            fallback_prompt=config.CONTEXT.FALLBACK_PROMPT,
        )

    @staticmethod
    def _compile(categories: Mapping[str, Mapping[str, Any]]) -> list[_Category]:
        compiled: list[_Category] = []
        for name, settings in categories.items():
            keywords: list[str] = [str(word).lower() for word in settings.get("keywords", []) if str(word).strip()]
            if not keywords:
                logger.warning("Context category '%s' has no keywords and is ignored", name)
                continue
            alternatives: str = "|".join(re.escape(word) for word in keywords)
            compiled.append(
                _Category(
                    name=name,
                    pattern=re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE),
                    weight=float(settings.get("weight", 1.0)),
                    prompt=str(settings.get("prompt", "")),
                )
            )
        return compiled

    @property
    def fallback(self) -> ContextData:
        return ContextData(category=self._fallback_category, confidence=1.0, prompt=self._fallback_prompt)

    def analyze(self, text: str) -> ContextData:
        """Detect the context category of a text.

        Args:
            text (str): Source text.

        Returns:
            ContextData: The detected category, or the fallback category when detection is disabled or
                inconclusive.
        """
        if not self._enabled or not text or not self._categories:
            return self.fallback

        cached: ContextData | None = self._results.get(text)
        if cached is not None:
            self._results.move_to_end(text)
            return cached

        result: ContextData = self._score(text)
        self._results[text] = result
        if len(self._results) > self.RESULT_CACHE_SIZE:
            self._results.popitem(last=False)
        return result

    def _score(self, text: str) -> ContextData:
        scores: dict[str, float] = {}
        found: dict[str, list[str]] = {}
        for category in self._categories:
            matches: list[str] = [match.lower() for match in category.pattern.findall(text)]
            if len(matches) < self._threshold:
                continue
            scores[category.name] = len(matches) * category.weight
            found[category.name] = list(dict.fromkeys(matches))

        total: float = sum(scores.values())
        if total <= 0:
            return self.fallback

        best: str = max(scores, key=lambda name: scores[name])
        confidence: float = scores[best] / total
        if confidence < self._min_confidence:
            logger.debug("Context inconclusive (best '%s' at %.2f); using fallback", best, confidence)
            return self.fallback

        prompt: str = next(category.prompt for category in self._categories if category.name == best)
        logger.debug("Detected context '%s' (confidence %.2f)", best, confidence)
        return ContextData(category=best, confidence=confidence, prompt=prompt, matched_keywords=found[best])

    def clear(self) -> None:
        self._results.clear()
