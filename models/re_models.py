"""Regular expressions for locale text inspection and provider output cleanup.

Patterns for interpolation placeholders, HTML tags and the artefacts chat models wrap around a translation.
"""

from __future__ import annotations

import re
from re import Pattern
from typing import Final

__all__: list[str] = [
    "HTML_TAG_PATTERN",
    "PLACEHOLDER_PATTERN",
    "PREAMBLE_PATTERN",
    "THINK_BLOCK_PATTERN",
    "WHITESPACE_PATTERN",
    "WRAPPING_QUOTES_PATTERN",
]

# Interpolation placeholders used by common i18n libraries
# Examples: "{name}", "{{count}}", "${value}", "%s", "%d", "$t(common.ok)"
PLACEHOLDER_PATTERN: Final[Pattern[str]] = re.compile(r"\{\{[^{}]+\}\}|\$\{[^{}]+\}|\{[^{}]+\}|%[sd]|\$t\([^()]+\)")

# Opening, closing and self-closing HTML tags; group "name" holds the tag name
# Examples: "<b>", "</a>", "<br/>", '<a href="/x">'
HTML_TAG_PATTERN: Final[Pattern[str]] = re.compile(r"</?(?P<name>[A-Za-z][A-Za-z0-9-]*)\b[^<>]*?/?>")

# Reasoning blocks emitted by some chat models before the answer
# Example: "<think>...</think>"
THINK_BLOCK_PATTERN: Final[Pattern[str]] = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)

# Leading labels such as "Translation:" or "Here is the translation:"
PREAMBLE_PATTERN: Final[Pattern[str]] = re.compile(
    r"^\s*(?:here\s+is\s+the\s+translation|translated\s+text|translation)\s*:\s*",
    re.IGNORECASE,
)

# A whole answer wrapped in one pair of quotes
# Examples: '"Merhaba"', "'Hola'", "«Bonjour»", "「こんにちは」"
WRAPPING_QUOTES_PATTERN: Final[Pattern[str]] = re.compile(
    r"^(?:\"(?P<dq>.*)\"|'(?P<sq>.*)'|«(?P<gq>.*)»|「(?P<jq>.*)」|“(?P<cq>.*)”)$",
    re.DOTALL,
)

# Any run of whitespace, used to measure text length without spacing
WHITESPACE_PATTERN: Final[Pattern[str]] = re.compile(r"\s+")
