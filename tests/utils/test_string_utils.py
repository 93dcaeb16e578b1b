"""Tests for StringUtils."""

from __future__ import annotations

import pytest

from utils.string_utils import StringUtils


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, ""),
        (12, "12"),
        ("  padded  ", "  padded  "),
    ],
)
def test_ensure_str(value: object, expected: str) -> None:
    """None becomes an empty string, other values are stringified without stripping."""
    assert StringUtils.ensure_str(value) == expected


def test_cache_key_normalizes_unicode() -> None:
    """Composed and decomposed forms of the same text share a key."""
    composed: str = "caf\u00e9"
    decomposed: str = "cafe\u0301"

    assert StringUtils.generate_cache_key(composed, "fr") == StringUtils.generate_cache_key(decomposed, "fr")


def test_short_texts_sharing_a_prefix_do_not_collide() -> None:
    """Short texts embed the whole text, so a common prefix does not produce the same key."""
    first: str = "Welcome to the dashboard, Alice"
    second: str = "Welcome to the dashboard, Bobby"

    assert StringUtils.generate_cache_key(first, "de") != StringUtils.generate_cache_key(second, "de")


def test_long_text_key_is_hashed() -> None:
    """Long texts use a fixed size digest and still depend on the category."""
    text: str = "lorem ipsum " * 20
    key: str = StringUtils.generate_cache_key(text, "ja", "technical")

    assert key.startswith(f"ja:technical:{len(text)}:#")
    assert len(key.rsplit("#", 1)[1]) == 32
    assert key != StringUtils.generate_cache_key(text, "ja", "marketing")


def test_missing_category_defaults_to_unknown() -> None:
    """None and the empty string both fall back to the 'unknown' category."""
    assert StringUtils.generate_cache_key("Hi", "fr") == "fr:unknown:2:Hi"
    assert StringUtils.generate_cache_key("Hi", "fr", "") == "fr:unknown:2:Hi"


def test_content_hash_is_stable_for_structures() -> None:
    """Equal structures hash equally regardless of key order; strings hash as UTF-8."""
    assert StringUtils.content_hash({"a": 1, "b": [1, 2]}) == StringUtils.content_hash({"b": [1, 2], "a": 1})
    assert len(StringUtils.content_hash("Hello")) == 64
    assert StringUtils.content_hash("Hello") != StringUtils.content_hash("Hello ")


def test_truncate() -> None:
    """Only strings longer than the limit are shortened."""
    assert StringUtils.truncate("short", 10) == "short"
    assert StringUtils.truncate("a" * 12, 10) == "a" * 10 + "..."


def test_content_hash_depends_on_value_type() -> None:
    """A leaf that only changes type gets a different digest."""
    assert StringUtils.content_hash(1) != StringUtils.content_hash("1")
    assert StringUtils.content_hash(True) != StringUtils.content_hash("true")
    assert StringUtils.content_hash(1) != StringUtils.content_hash(1.0)
