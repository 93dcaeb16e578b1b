from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from config.loader import (
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigLoader,
    ConfigTypeError,
    ConfigValueError,
)


def _write_ini(tmp_path: Path, content: str) -> Path:
    ini_path: Path = tmp_path / "localize.ini"
    ini_path.write_text(dedent(content), encoding="utf-8")
    return ini_path


def _load(ini_path: Path, **overrides) -> ConfigLoader:
    return ConfigLoader(config_filename=str(ini_path), script_name="localize.py", **overrides)


def test_config_loader_raises_for_missing_file(tmp_path: Path) -> None:
    """A missing file names the expected location."""
    ini_path: Path = tmp_path / "missing.ini"
    with pytest.raises(ConfigFileNotFoundError, match="missing.ini"):
        _load(ini_path)


def test_config_loader_parses_typed_values(tmp_path: Path) -> None:
    """Values are coerced to the type of their default."""
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [GENERAL]
        SOURCE = "en"
        TARGETS = ["fr", "de"]
        DEBUG = yes

        [TRANSLATION]
        PROVIDER = "openai"
        FALLBACK_ORDER = ["openai", "gemini"]
        CONCURRENCY_LIMIT = 8
        BASE_COOLDOWN_MS = 15_000

        [QUALITY]
        LENGTH_DEFAULT = 0.2
        LENGTH_BY_LANGUAGE = {
            "de": {"min": -0.1, "max": 0.4},
            }

        [PROVIDER_LIMITS]
        LIMITS = {"openai": {"rpm": 100, "concurrency": 3}}
        """,
    )

    config = _load(ini_path).config

    assert config.GENERAL.SCRIPT_NAME == "localize.py"
    assert config.GENERAL.TARGETS == ["fr", "de"]
    assert config.GENERAL.DEBUG is True
    assert config.TRANSLATION.CONCURRENCY_LIMIT == 3
    assert config.ADVANCED.AUTO_OPTIMIZE is False
    assert config.QUALITY.LENGTH_MODE == "strict"
    assert config.TRANSLATION.PROVIDER == "openai"
    assert config.TRANSLATION.FALLBACK_ORDER == ["openai", "gemini"]
    assert config.TRANSLATION.CONCURRENCY_LIMIT == 8
    assert config.TRANSLATION.BASE_COOLDOWN_MS == 15_000
    assert config.QUALITY.LENGTH_DEFAULT == 0.2
    assert config.QUALITY.LENGTH_BY_LANGUAGE == {"de": {"min": -0.1, "max": 0.4}}
    assert config.PROVIDER_LIMITS.LIMITS == {"openai": {"rpm": 100, "concurrency": 3}}


def test_missing_sections_and_keys_keep_defaults(tmp_path: Path) -> None:
    """Only what the file defines is changed."""
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [CACHE]
        ENABLED = false
        """,
    )

    config = _load(ini_path).config

    assert config.CACHE.ENABLED is False
    assert config.CACHE.MAX_SIZE == 1000
    assert config.TRANSLATION.PROVIDER == "deepseek"
    assert config.SYNC.STATE_DIR == ".localize-cache"


def test_command_line_overrides(tmp_path: Path) -> None:
    """Overrides win over file values; targets accept a comma separated string."""
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [GENERAL]
        SOURCE = "en"
        TARGETS = ["fr"]
        """,
    )

    config = _load(
        ini_path,
        source="de",
        targets=" ja, ko ,,zh ",
        provider="gemini",
        locales_dir="i18n",
        force=True,
        debug=True,
        concurrency=3,
        length="strict",
    ).config

    assert config.GENERAL.SOURCE == "de"
    assert config.GENERAL.TARGETS == ["ja", "ko", "zh"]
    assert config.TRANSLATION.PROVIDER == "gemini"
    assert config.GENERAL.LOCALES_DIR == "i18n"
    assert config.TRANSLATION.FORCE_UPDATE is True
    assert config.GENERAL.DEBUG is True


def test_empty_overrides_are_ignored(tmp_path: Path) -> None:
    """None and empty values leave the file values alone."""
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [GENERAL]
        TARGETS = ["fr"]
        """,
    )

    config = _load(
        ini_path, source=None, targets="", provider=None, force=False, concurrency=None, length=None
    ).config

    assert config.GENERAL.TARGETS == ["fr"]
    assert config.ADVANCED.AUTO_OPTIMIZE is True
    assert config.QUALITY.LENGTH_MODE == "smart"
    assert config.GENERAL.SOURCE == "en"
    assert config.TRANSLATION.FORCE_UPDATE is False


def test_unknown_provider_only_warns(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """Unknown provider names are reported but accepted."""
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [TRANSLATION]
        PROVIDER = "mystery"
        """,
    )

    config = _load(ini_path).config

    assert config.TRANSLATION.PROVIDER == "mystery"
    assert "Unknown value 'mystery' is set for 'TRANSLATION.PROVIDER'" in caplog.text


@pytest.mark.parametrize(
    ("section", "line"),
    [
        ("RATE_LIMITER", 'QUEUE_STRATEGY = "random"'),
        ("QUALITY", 'LENGTH_MODE = "loose"'),
        ("TRANSLATION", "CONCURRENCY_LIMIT = 0"),
        ("ADVANCED", "MAX_BATCH_SIZE = -1"),
        ("CACHE", "MAX_SIZE = 0"),
        ("PROVIDER_LIMITS", 'LIMITS = {"openai": {"rpm": 0, "concurrency": 2}}'),
    ],
)
def test_invalid_values_are_rejected(tmp_path: Path, section: str, line: str) -> None:
    """Out-of-range settings fail validation."""
    ini_path: Path = _write_ini(tmp_path, f"[{section}]\n{line}\n")

    with pytest.raises(ConfigValueError, match=section):
        _load(ini_path)


def test_invalid_overrides_are_rejected(tmp_path: Path) -> None:
    """Command-line overrides go through the same validation as file values."""
    ini_path: Path = _write_ini(tmp_path, "[GENERAL]\n")

    with pytest.raises(ConfigValueError, match="TRANSLATION.CONCURRENCY_LIMIT"):
        _load(ini_path, concurrency=0)
    with pytest.raises(ConfigValueError, match="QUALITY.LENGTH_MODE"):
        _load(ini_path, length="loose")


def test_non_numeric_integer_raises_value_error(tmp_path: Path) -> None:
    """An integer field with text is a value error."""
    ini_path: Path = _write_ini(tmp_path, "[RETRY]\nMAX_RETRIES = many\n")

    with pytest.raises(ConfigValueError, match="RETRY.MAX_RETRIES"):
        _load(ini_path)


def test_wrong_literal_type_raises_type_error(tmp_path: Path) -> None:
    """A list field given a string literal is a type error."""
    ini_path: Path = _write_ini(tmp_path, '[GENERAL]\nTARGETS = "fr"\n')

    with pytest.raises(ConfigTypeError, match="Expected list for GENERAL.TARGETS"):
        _load(ini_path)


def test_unquoted_string_is_rejected(tmp_path: Path) -> None:
    """String values must be quoted literals."""
    ini_path: Path = _write_ini(tmp_path, "[GENERAL]\nSOURCE = en\n")

    with pytest.raises(ConfigValueError, match="Invalid literal for GENERAL.SOURCE"):
        _load(ini_path)


def test_broken_literal_is_a_format_error(tmp_path: Path) -> None:
    """Syntax errors in literals are format errors."""
    ini_path: Path = _write_ini(tmp_path, '[GENERAL]\nTARGETS = ["fr",\n')

    with pytest.raises(ConfigFormatError, match="Invalid literal for GENERAL.TARGETS"):
        _load(ini_path)


def test_sample_configuration_loads() -> None:
    """The shipped localize.ini is valid."""
    ini_path: Path = Path(__file__).resolve().parents[2] / "localize.ini"

    config = _load(ini_path).config

    assert config.GENERAL.SOURCE
    assert config.GENERAL.TARGETS
