"""Tests for FileUtils."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from utils.file_utils import FileMissingError, FileUtils, InvalidJsonFileError, UnsupportedFileFormatError

if TYPE_CHECKING:
    from pathlib import Path


def test_resolve_path_expands_relative_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Relative paths resolve against the working directory; environment variables are expanded."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOCALE_ROOT", "locales")

    assert FileUtils.resolve_path("$LOCALE_ROOT/en.json") == (tmp_path / "locales" / "en.json").resolve()


def test_validate_file_path(tmp_path: Path) -> None:
    """Missing files and unexpected suffixes are rejected."""
    json_file: Path = tmp_path / "en.json"
    json_file.write_text("{}", encoding="utf-8")
    yaml_file: Path = tmp_path / "en.yaml"
    yaml_file.write_text("", encoding="utf-8")

    FileUtils.validate_file_path(json_file, ".json")
    with pytest.raises(FileMissingError):
        FileUtils.validate_file_path(tmp_path / "missing.json", ".json")
    with pytest.raises(UnsupportedFileFormatError):
        FileUtils.validate_file_path(yaml_file, [".json"])


def test_read_json_default_and_errors(tmp_path: Path) -> None:
    """A missing file yields the default; invalid or non-object JSON raises."""
    assert FileUtils.read_json(tmp_path / "missing.json", default={}) == {}
    with pytest.raises(FileMissingError):
        FileUtils.read_json(tmp_path / "missing.json")

    broken: Path = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(InvalidJsonFileError):
        FileUtils.read_json(broken)

    array: Path = tmp_path / "array.json"
    array.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(InvalidJsonFileError):
        FileUtils.read_json(array)


def test_read_json_treats_blank_file_as_empty_object(tmp_path: Path) -> None:
    """An empty file reads as an empty object."""
    blank: Path = tmp_path / "blank.json"
    blank.write_text("  \n", encoding="utf-8")

    assert FileUtils.read_json(blank) == {}


def test_write_json_format(tmp_path: Path) -> None:
    """Output uses 2 space indent, keeps non-ASCII text, sorts keys and ends with a newline."""
    target: Path = tmp_path / "nested" / "fr.json"

    FileUtils.write_json(target, {"b": "é", "a": {"c": 1}}, sort_keys=True)

    content: str = target.read_text(encoding="utf-8")
    assert content == '{\n  "a": {\n    "c": 1\n  },\n  "b": "é"\n}\n'
    assert json.loads(content) == {"a": {"c": 1}, "b": "é"}
    assert not (target.parent / ".fr.json.tmp").exists()
