"""Conversion between nested locale documents and flat dot-path maps."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

__all__: list[str] = ["ObjectUtils"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

KEY_SEPARATOR: Final[str] = "."
MAX_DEPTH: Final[int] = 20


class ObjectUtils:
    """Flatten and unflatten nested dictionaries on dot-separated key paths.

    Only dictionaries are descended into; lists, strings, numbers, booleans and None are leaves.
    """

    @staticmethod
    def flatten(obj: Any, prefix: str = "", max_depth: int = MAX_DEPTH) -> dict[str, Any]:
        """Flatten a nested dictionary into ``{"a.b.c": value}`` form.

        Iterative, so very deep documents cannot exhaust the interpreter stack. A dictionary nested
        deeper than ``max_depth`` is kept as an opaque leaf.

        Args:
            obj (Any): Document to flatten. A non-dict value yields ``{prefix: obj}`` (or ``{}`` without prefix).
            prefix (str): Key path prepended to every key.
            max_depth (int): Maximum nesting level that is expanded.

        Returns:
            dict[str, Any]: Flat mapping of dot paths to leaf values.
        """
        if not isinstance(obj, dict):
            return {prefix: obj} if prefix else {}

        result: dict[str, Any] = {}
        stack: list[tuple[dict[str, Any], str, int]] = [(obj, prefix, 0)]
        while stack:
            current, current_prefix, depth = stack.pop()
            if depth > max_depth:
                logger.warning(
                    "Object nested deeper than %d levels at '%s'; kept as a single value", max_depth, current_prefix
                )
                result[current_prefix] = current
                continue

            for key, value in current.items():
                new_key: str = f"{current_prefix}{KEY_SEPARATOR}{key}" if current_prefix else str(key)
                if isinstance(value, dict) and value:
                    stack.append((value, new_key, depth + 1))
                else:
                    result[new_key] = value
        return result

    @staticmethod
    def unflatten(flat: dict[str, Any]) -> dict[str, Any]:
        """Rebuild a nested dictionary from dot-path keys.

        Keys are processed in sorted order, so the output is deterministic. Keys containing an empty
        segment (``"a..b"``, ``".a"``) are skipped. When a path runs through a non-dict value, that value
        is replaced by a dictionary.

        Args:
            flat (dict[str, Any]): Flat mapping of dot paths to values.

        Returns:
            dict[str, Any]: Nested document.
        """
        result: dict[str, Any] = {}
        for key in sorted(flat):
            parts: list[str] = key.split(KEY_SEPARATOR)
            if any(part == "" for part in parts):
                logger.warning("Skipping key with an empty path segment: '%s'", key)
                continue

            current: dict[str, Any] = result
            for part in parts[:-1]:
                node: Any = current.get(part)
                if not isinstance(node, dict):
                    node = {}
                    current[part] = node
                current = node
            current[parts[-1]] = flat[key]
        return result
