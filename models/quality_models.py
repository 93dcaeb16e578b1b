"""Models for translation quality checks."""

from __future__ import annotations

from dataclasses import dataclass, field

__all__: list[str] = [
    "FixResult",
    "LengthBounds",
    "QualityIssue",
    "ValidationResult",
]


@dataclass(frozen=True)
class QualityIssue:
    """A single problem found in a translation.

    Attributes:
        type (str): Checker that reported the issue ("placeholder", "html_tag", "length").
        message (str): Human readable description.
        severity (str): "warning" or "critical".
    """

    type: str
    message: str
    severity: str = "warning"

    def __str__(self) -> str:
        return f"{self.type}: {self.message}"


@dataclass(frozen=True)
class LengthBounds:
    """Allowed relative length deviation of a translation (e.g. -0.15 to 0.15)."""

    min_deviation: float
    max_deviation: float

    @property
    def min_ratio(self) -> float:
        return 1 + self.min_deviation

    @property
    def max_ratio(self) -> float:
        return 1 + self.max_deviation


@dataclass
class ValidationResult:
    is_valid: bool = True
    issues: list[QualityIssue] = field(default_factory=list)


@dataclass
class FixResult:
    """Outcome of ``validate_and_fix``.

    Attributes:
        fixed_text (str): Translation after automatic fixes.
        fixes (list[str]): Descriptions of the applied fixes.
        issues (list[QualityIssue]): Issues found before fixing, including those that cannot be fixed.
    """

    fixed_text: str
    fixes: list[str] = field(default_factory=list)
    issues: list[QualityIssue] = field(default_factory=list)
