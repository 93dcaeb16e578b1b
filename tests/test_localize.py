"""Tests for the localize command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

import localize
from core.trans.interface import EngineAttributes, TransInterface
from models.config_models import Config
from models.translation_models import GlobalStats, LanguageStats


class EchoEngine(TransInterface):
    """Registered provider that upper-cases the text."""

    @property
    def is_available(self) -> bool:
        return True

    @staticmethod
    def fetch_engine_name() -> str:
        return "cli-echo"

    def initialize(self, config: Config) -> None:
        _ = config
        self.engine_attributes = EngineAttributes(name="cli-echo")

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        options: dict[str, Any] | None = None,
    ) -> str:
        return text.upper()

    async def close(self) -> None:
        pass


def test_parse_arguments() -> None:
    """Options map onto the override names the loader expects."""
    args = localize.parse_arguments(["--targets", "fr,de", "--provider", "openai", "--force", "--locales-dir", "i18n"])

    assert args.config == localize.CFG_FILE
    assert args.targets == "fr,de"
    assert args.provider == "openai"
    assert args.locales_dir == "i18n"
    assert args.force is True
    assert args.debug is False
    assert args.source is None


def test_parse_arguments_commands() -> None:
    """translate is the default command; fix takes a length mode and the concurrency is an integer."""
    assert localize.parse_arguments([]).command == "translate"

    args = localize.parse_arguments(["fix", "--length", "strict", "--concurrency", "3"])

    assert args.command == "fix"
    assert args.length == "strict"
    assert args.concurrency == 3


def test_parse_arguments_rejects_unknown_length_mode() -> None:
    """Length modes are limited to the known ones."""
    with pytest.raises(SystemExit) as exc_info:
        localize.parse_arguments(["fix", "--length", "loose"])

    assert exc_info.value.code == 2


def test_parse_arguments_rejects_unknown_option(capsys: pytest.CaptureFixture[str]) -> None:
    """Unknown options print the help and exit with status 2."""
    with pytest.raises(SystemExit) as exc_info:
        localize.parse_arguments(["--bogus"])

    assert exc_info.value.code == 2
    assert "usage:" in capsys.readouterr().err


def test_main_with_missing_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """A missing configuration file exits with status 1."""
    assert localize.main(["--config", str(tmp_path / "nope.ini")]) == 1
    assert "Failed to load configuration file" in capsys.readouterr().err


def test_print_summary(capsys: pytest.CaptureFixture[str]) -> None:
    """The summary lists every language and the totals."""
    stats = GlobalStats(total=3, success=2, failed=1, skipped=4, by_category={"general": 3})
    stats.languages["fr"] = LanguageStats(processed=3, added=2, failed=1, skipped=4, time_ms=12.0)
    stats.languages["de"] = LanguageStats(error="broken file")
    stats.cache = {"hit_rate": 0.5}

    localize.print_summary(stats)

    out: str = capsys.readouterr().out
    assert "fr: 2 added, 1 failed, 4 skipped (12 ms)" in out
    assert "de: ERROR broken file" in out
    assert "Total: 3, success: 2, failed: 1, skipped: 4" in out
    assert "Categories: general=3" in out
    assert "Cache hit rate: 50%" in out


@pytest.mark.asyncio
async def test_run_translates_source_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """A full run writes the target file and exits with status 0."""
    monkeypatch.chdir(tmp_path)
    locales: Path = tmp_path / "locales"
    locales.mkdir()
    (locales / "en.json").write_text(json.dumps({"greeting": {"hello": "Hello"}}), encoding="utf-8")
    config = Config()
    config.GENERAL.TARGETS = ["fr"]
    config.TRANSLATION.PROVIDER = "cli-echo"
    config.TRANSLATION.USE_FALLBACK = False
    config.ADVANCED.AUTO_OPTIMIZE = False

    assert await localize.run(config) == 0

    assert json.loads((locales / "fr.json").read_text(encoding="utf-8")) == {"greeting": {"hello": "HELLO"}}
    assert (tmp_path / ".localize-cache" / "localization.state.json").exists()


@pytest.mark.asyncio
async def test_run_fix_command(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """The fix command replaces translations that break the length rules and leaves the rest."""
    monkeypatch.chdir(tmp_path)
    locales: Path = tmp_path / "locales"
    locales.mkdir()
    (locales / "en.json").write_text(json.dumps({"greeting": {"hello": "Hello", "name": "World"}}), encoding="utf-8")
    (locales / "fr.json").write_text(
        json.dumps({"greeting": {"hello": "Bonjour tout le monde", "name": "Monde"}}), encoding="utf-8"
    )
    config = Config()
    config.GENERAL.TARGETS = ["fr"]
    config.TRANSLATION.PROVIDER = "cli-echo"
    config.TRANSLATION.USE_FALLBACK = False
    config.ADVANCED.AUTO_OPTIMIZE = False

    assert await localize.run(config, "fix") == 0

    assert json.loads((locales / "fr.json").read_text(encoding="utf-8")) == {
        "greeting": {"hello": "HELLO", "name": "Monde"}
    }
    assert not (tmp_path / ".localize-cache" / "localization.state.json").exists()
