from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

__all__: list[str] = [
    "FileMissingError",
    "FileUtils",
    "FileUtilsError",
    "InvalidJsonFileError",
    "UnsupportedFileFormatError",
]


class FileUtils:
    """Utility class for locale file operations with safety checks.

    Provides methods to resolve paths, validate file types and read/write JSON documents.
    """

    @staticmethod
    def resolve_path(path: str | Path, *, strict: bool = False) -> Path:
        """Convert a user-input path to an absolute path safely.

        Expands environment variables (e.g., $HOME, %APPDATA%), expands ~ to the home directory,
        and resolves relative paths based on the current working directory.

        Args:
            path (str | Path): The input path (e.g., "~/project/$APP_ENV/locales").
            strict (bool): Whether to raise an exception if the path does not exist. Defaults to False.

        Returns:
            Path: The converted absolute `Path` object.
        """
        expanded: str = os.path.expandvars(str(path))
        user_expanded: Path = Path(expanded).expanduser()

        if user_expanded.is_absolute():
            return user_expanded.resolve(strict=strict)
        return (Path.cwd() / user_expanded).resolve(strict=strict)

    @staticmethod
    def validate_file_path(file_path: Path, suffix: list[str] | str) -> None:
        """Validate that a file exists and has an allowed suffix.

        Args:
            file_path (Path): The path to the file to validate.
            suffix (list[str] | str): Allowed file suffix(es) (e.g., [".json"] or ".json").

        Raises:
            FileMissingError: If the file does not exist.
            UnsupportedFileFormatError: If the file's suffix is not in the allowed list.
        """
        if isinstance(suffix, str):
            suffix = [suffix]

        if not file_path.exists():
            msg = f"File does not exist: {file_path}"
            raise FileMissingError(msg)
        if file_path.suffix.lower() not in [s.lower() for s in suffix]:
            msg = f"Unsupported file format: '{file_path.suffix}'. Supported formats are: {', '.join(suffix)}"
            raise UnsupportedFileFormatError(msg)

    @staticmethod
    def read_json(file_path: Path, *, default: dict[str, Any] | None = None) -> dict[str, Any]:
        """Read a JSON object from a file.

        Args:
            file_path (Path): File to read.
            default (dict[str, Any] | None): Returned when the file does not exist.
                If None, a missing file raises FileMissingError.

        Returns:
            dict[str, Any]: The decoded JSON object.

        Raises:
            FileMissingError: If the file does not exist and no default is given.
            InvalidJsonFileError: If the content is not a valid JSON object.
        """
        if not file_path.exists():
            if default is not None:
                return dict(default)
            msg = f"File does not exist: {file_path}"
            raise FileMissingError(msg)

        try:
            text: str = file_path.read_text(encoding="utf-8")
            data: Any = json.loads(text) if text.strip() else {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as err:
            msg = f"Failed to read JSON file '{file_path}': {err}"
            raise InvalidJsonFileError(msg) from err

        if not isinstance(data, dict):
            msg = f"JSON file '{file_path}' does not contain an object."
            raise InvalidJsonFileError(msg)
        return data

    @staticmethod
    def write_json(file_path: Path, data: dict[str, Any], *, sort_keys: bool = False) -> None:
        """Write a JSON object to a file atomically.

        The document is written to a temporary sibling and moved into place, so a crash never leaves
        a half-written locale or state file behind. Parent directories are created as needed.

        Args:
            file_path (Path): Destination file.
            data (dict[str, Any]): Object to serialise (2 space indent, UTF-8, trailing newline).
            sort_keys (bool): Whether to sort object keys.
        """
        file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path: Path = file_path.with_name(f".{file_path.name}.tmp")
        tmp_path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2, sort_keys=sort_keys) + "\n",
            encoding="utf-8",
        )
        tmp_path.replace(file_path)


class FileUtilsError(Exception):
    """Custom exception for FileUtils-related errors."""


class FileMissingError(FileUtilsError):
    """Custom exception for file missing errors."""


class UnsupportedFileFormatError(FileUtilsError):
    """Custom exception for unsupported file format errors."""


class InvalidJsonFileError(FileUtilsError):
    """Custom exception for unreadable or malformed JSON files."""
