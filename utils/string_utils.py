from __future__ import annotations

import hashlib
import json
import unicodedata
from typing import Any, Final

__all__: list[str] = ["StringUtils"]

SHORT_TEXT_LENGTH_LIMIT: Final[int] = 50  # Texts shorter than this use a structural cache key.
CACHE_HASH_LENGTH: Final[int] = 32  # Hex characters kept from the SHA-256 digest of long texts.
DEFAULT_CATEGORY: Final[str] = "unknown"


class StringUtils:
    """Utility class for string manipulation and hashing.

    Provides static methods for text normalisation, response cache key derivation and
    content hashing of locale values.
    """

    @staticmethod
    def ensure_str(value: Any) -> str:
        """Ensure that the value is a string, returning an empty string if None.

        Note: Does not use strip(); leading and trailing whitespace of locale values is significant.

        Args:
            value (Any): The value to ensure as a string.

        Returns:
            str: The value as a string, or empty string if None.
        """
        if not isinstance(value, str):
            value = str(value) if value is not None else ""
        return value

    @staticmethod
    def normalize_text(text: str) -> str:
        """Normalize text using Unicode NFC normalization.

        Args:
            text (str): Text to normalize.

        Returns:
            str: Normalized text.
        """
        return unicodedata.normalize("NFC", text)

    @staticmethod
    def generate_cache_key(text: str, target_lang: str, category: str | None = None) -> str:
        """Derive the response cache key of a translation request.

        The key is a pure function of the normalised text, the target language and the context category.
        Short texts use a readable structural key that embeds the whole text; longer texts use a truncated
        SHA-256 digest of the text combined with language, category and length.

        Args:
            text (str): Source text.
            target_lang (str): Target language code.
            category (str | None): Context category. None or empty falls back to "unknown".

        Returns:
            str: The cache key.
        """
        normalized: str = StringUtils.normalize_text(StringUtils.ensure_str(text))
        category = category or DEFAULT_CATEGORY
        length: int = len(normalized)

        if length < SHORT_TEXT_LENGTH_LIMIT:
            return f"{target_lang}:{category}:{length}:{normalized}"

        key_data: str = f"{normalized}:{target_lang}:{category}:{length}"
        digest: str = hashlib.sha256(key_data.encode("utf-8")).hexdigest()[:CACHE_HASH_LENGTH]
        return f"{target_lang}:{category}:{length}:#{digest}"

    @staticmethod
    def content_hash(value: Any) -> str:
        """Compute the SHA-256 hex digest of a locale value.

        Strings are hashed as UTF-8. Any other value is serialised to canonical JSON and prefixed with its type
        name, so equal structures produce the same digest and ``1`` never hashes like ``"1"``.

        Args:
            value (Any): Leaf value of a flattened locale map.

        Returns:
            str: 64 character hexadecimal digest.
        """
        if isinstance(value, str):
            content: str = value
        else:
            serialised: str = json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
            content = f"{type(value).__name__}:{serialised}"
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    @staticmethod
    def truncate(value: str, limit: int, suffix: str = "...") -> str:
        """Shorten a string for log and error messages.

        Args:
            value (str): The string to shorten.
            limit (int): Maximum number of characters kept from the original.
            suffix (str): Appended when the string was shortened.

        Returns:
            str: The original string, or its first ``limit`` characters followed by ``suffix``.
        """
        value = StringUtils.ensure_str(value)
        if len(value) <= limit:
            return value
        return value[:limit] + suffix
