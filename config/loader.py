"""Configuration file loader and validator.

Handles reading, formatting, and validating settings from the INI configuration file.
Raises exceptions for any issues encountered during loading.
"""

from __future__ import annotations

import ast
import configparser
from configparser import ConfigParser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any

from models.config_models import Config
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable
    from dataclasses import Field as DataclassField
else:
    from dataclasses import Field as DataclassField

__all__: list[str] = [
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

ALLOWED_PROVIDERS: list[str] = ["openai", "deepseek", "gemini", "dashscope", "xai"]

QUEUE_STRATEGIES: list[str] = ["priority", "fifo"]

LENGTH_MODES: list[str] = ["smart", "strict", "flexible", "exact", "relaxed"]


class ConfigLoaderError(Exception):
    """An error occurred while processing the configuration file."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The specified configuration file does not exist."""


class ConfigFormatError(ConfigLoaderError):
    """The configuration file is not formatted correctly."""


class ConfigValueError(ConfigFormatError):
    """The configuration file contains an invalid value."""


class ConfigTypeError(ConfigFormatError):
    """The configuration file contains an invalid type."""


class ConfigLoader:
    """Handles loading and validation of configuration settings.

    This class reads the configuration file, applies formatting rules, applies command-line overrides
    and validates settings. It raises exceptions for any issues encountered during the loading process.

    Args:
        config_filename (str): INI file name to load.
        script_name (str): Executing script name, used in error messaging.
        source (str | None): Optional override for the source language.
        targets (str | list[str] | None): Optional override for the target languages (comma separated).
        provider (str | None): Optional override for the primary provider.
        locales_dir (str | None): Optional override for the locale directory.
        concurrency (int | None): Optional override for the concurrent translation limit.
        length (str | None): Optional override for the length check mode.
        force (bool): Re-translate every key.
        debug (bool): Enable debug logging.

    Raises:
        ConfigFileNotFoundError: If the configuration file does not exist.
        ConfigFormatError: If the file cannot be parsed or contains invalid values/types.
    """

    def __init__(
        self,
        *,
        config_filename: str,
        script_name: str,
        **args,
    ) -> None:
        config_path = Path(config_filename)
        msg: str
        if not config_path.exists():
            msg = (
                f"Configuration file '{config_filename}' not found. "
                f"Please create '{config_filename}' in the same directory as '{script_name}'."
            )
            raise ConfigFileNotFoundError(msg)

        parser: ConfigParser = ConfigParser()

        try:
            parser.read(config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None

        self.config = Config()
        self.config.GENERAL.SCRIPT_NAME = script_name
        self._convert_settings(parser)
        self._apply_overrides(args)
        self._validate_settings()

    def _convert_settings(self, parser: ConfigParser) -> None:
        """Convert configuration settings from the parser to the Config object.

        This method iterates through each section and field in the Config object,
        applying the appropriate formatting based on the field type.

        Args:
            parser (ConfigParser): Parsed INI data.

        Raises:
            ConfigFormatError: If a value cannot be parsed or coerced to the expected type.
        """
        formatter = _ConfigFormatter(self.config, parser)
        for section in fields(self.config):
            if not parser.has_section(section.name):
                logger.debug("Section '%s' not defined; using defaults", section.name)
                continue
            self._convert_section_field(parser, formatter, section)

    def _convert_section_field(
        self, parser: ConfigParser, formatter: _ConfigFormatter, section: DataclassField[Any]
    ) -> None:
        """Convert all fields in a configuration section.

        Iterates through each field in the section, formats its value from the INI parser,
        and assigns it to the corresponding Config attribute.

        Args:
            parser (ConfigParser): Parsed INI data.
            formatter (_ConfigFormatter): Formatter used to coerce string values to typed values.
            section (Field[Any]): Target configuration section dataclass field.

        Raises:
            ConfigFormatError: If a value fails to format correctly.
        """
        for key in fields(getattr(self.config, section.name)):
            try:
                parser[section.name][key.name]
            except KeyError:
                logger.debug("Skipping undefined setting: '%s.%s'", section.name, key.name)
                continue

            formatted_value = formatter.apply_format(section, key)
            setattr(getattr(self.config, section.name), key.name, formatted_value)

    def _apply_overrides(self, args: dict[str, Any]) -> None:
        """Apply command-line argument overrides on top of the file values."""
        if args.get("source"):
            self.config.GENERAL.SOURCE = args["source"]
        targets: str | list[str] | None = args.get("targets")
        if targets:
            values: list[str] = targets.split(",") if isinstance(targets, str) else list(targets)
            self.config.GENERAL.TARGETS = [value.strip() for value in values if value.strip()]
        if args.get("provider"):
            self.config.TRANSLATION.PROVIDER = args["provider"]
        if args.get("locales_dir"):
            self.config.GENERAL.LOCALES_DIR = args["locales_dir"]
        if args.get("force", False):
            self.config.TRANSLATION.FORCE_UPDATE = True
        if args.get("concurrency") is not None:
            # An explicit limit replaces the auto-optimized one.
            self.config.TRANSLATION.CONCURRENCY_LIMIT = int(args["concurrency"])
            self.config.ADVANCED.AUTO_OPTIMIZE = False
        if args.get("length"):
            self.config.QUALITY.LENGTH_MODE = args["length"]
        if args.get("debug", False):
            self.config.GENERAL.DEBUG = True

    def _validate_settings(self) -> None:
        """Validate provider names, queue strategy, length mode and numeric limits.

        Raises:
            ConfigFormatError: If validation fails for any setting.
        """
        try:
            self._inspect_defined_item("TRANSLATION", "PROVIDER", ALLOWED_PROVIDERS)
            self._inspect_defined_item("TRANSLATION", "FALLBACK_ORDER", ALLOWED_PROVIDERS)
            self._inspect_defined_item("PROVIDER_LIMITS", "LIMITS", ALLOWED_PROVIDERS)
            self._require_choice("RATE_LIMITER", "QUEUE_STRATEGY", QUEUE_STRATEGIES)
            self._require_choice("QUALITY", "LENGTH_MODE", LENGTH_MODES)
            self._require_positive("TRANSLATION", "CONCURRENCY_LIMIT")
            self._require_positive("TRANSLATION", "LANGUAGE_CONCURRENCY")
            self._require_positive("ADVANCED", "MAX_BATCH_SIZE")
            self._require_positive("ADVANCED", "MAX_KEY_LENGTH")
            self._require_positive("CACHE", "MAX_SIZE")
            self._validate_provider_limits()
        except (NameError, SyntaxError, AttributeError, TypeError, ValueError) as err:
            msg: str = f"Invalid configuration value: {err}"
            raise ConfigFormatError(msg) from None

    def _inspect_defined_item(self, section_name: str, key_name: str, defined_list: list[str]) -> None:
        """Verify that configuration values match allowed options.

        Logs warnings for unrecognized values but does not raise exceptions.

        Args:
            section_name (str): Section name in the config model.
            key_name (str): Field name to inspect.
            defined_list (list[str]): Allowed values.

        Raises:
            ConfigTypeError: If the configured value is neither list, dict nor str.
        """
        value: str | list[str] | dict[str, Any] = getattr(getattr(self.config, section_name), key_name)
        field_name: str = f"{section_name}.{key_name}"

        if isinstance(value, (list, str, dict)):
            values: list[str] = [value] if isinstance(value, str) else list(value)
            for val in values:
                if val not in defined_list:
                    logger.warning("Unknown value '%s' is set for '%s'", val, field_name)
        else:
            msg: str = f"Unsupported type used for '{field_name}': {type(value)}"
            raise ConfigTypeError(msg)

    def _require_choice(self, section_name: str, key_name: str, choices: list[str]) -> None:
        """Raise ConfigValueError unless the value is one of ``choices``."""
        value: str = getattr(getattr(self.config, section_name), key_name)
        if value not in choices:
            msg: str = f"'{section_name}.{key_name}' must be one of {', '.join(choices)}; got '{value}'"
            raise ConfigValueError(msg)

    def _require_positive(self, section_name: str, key_name: str) -> None:
        value: int = getattr(getattr(self.config, section_name), key_name)
        if value <= 0:
            msg: str = f"'{section_name}.{key_name}' must be a positive integer; got {value}"
            raise ConfigValueError(msg)

    def _validate_provider_limits(self) -> None:
        """Every provider limit needs positive ``rpm`` and ``concurrency`` values."""
        for name, limits in self.config.PROVIDER_LIMITS.LIMITS.items():
            if not isinstance(limits, dict):
                msg: str = f"'PROVIDER_LIMITS.LIMITS.{name}' must be a dict; got {type(limits)}"
                raise ConfigTypeError(msg)
            for key in ("rpm", "concurrency"):
                if int(limits.get(key, 1)) <= 0:
                    msg = f"'PROVIDER_LIMITS.LIMITS.{name}.{key}' must be positive"
                    raise ConfigValueError(msg)


class _ConfigFormatter:
    """Converts INI string values to typed Python objects (bool, int, float, str, list, dict)."""

    def __init__(self, config: Config, parser: ConfigParser) -> None:
        self.config: Config = config
        self.parser: ConfigParser = parser

    def apply_format(self, section: DataclassField[Any], key: DataclassField[Any]) -> Any:
        """Convert INI value to the expected Python type based on the Config field type.

        Args:
            section (DataclassField[Any]): Configuration section field containing the key.
            key (DataclassField[Any]): Target field within the section.

        Returns:
            Any: Parsed value coerced to the type declared in the config dataclass.

        Raises:
            ConfigValueError: If a value cannot be coerced to the expected type.
            ConfigFormatError: If literal evaluation fails due to invalid syntax.
            ConfigTypeError: If an unexpected type is encountered during coercion.
        """
        formatters: dict[
            type[bool | int | float], Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float]
        ] = {
            bool: self.parse_as_boolean,
            int: self.parse_as_integer,
            float: self.parse_as_float,
        }

        default: Any = getattr(getattr(self.config, section.name), key.name)
        formatter: Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float] | None = formatters.get(
            type(default)
        )
        if formatter:
            try:
                return formatter(section, key)
            except ValueError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigValueError(msg) from err
            except TypeError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigTypeError(msg) from err

        value_str: str = self.parser[section.name][key.name]
        try:
            value: Any = ast.literal_eval(value_str)
        except ValueError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigValueError(msg) from err
        except SyntaxError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigFormatError(msg) from err

        if not isinstance(value, type(default)):
            msg = f"Expected {type(default).__name__} for {section.name}.{key.name}, got {type(value).__name__}"
            raise ConfigTypeError(msg)
        return value

    def parse_as_float(self, section: DataclassField[Any], key: DataclassField[Any]) -> float:
        """Convert INI string to float."""
        value: str = self.parser.get(section.name, key.name)
        for char in ("'", '"', "%"):
            value = value.removeprefix(char).removesuffix(char)
        return float(value)

    def parse_as_integer(self, section: DataclassField[Any], key: DataclassField[Any]) -> int:
        """Convert INI string to integer."""
        value: str = self.parser.get(section.name, key.name)
        for char in ("'", '"', "%"):
            value = value.removeprefix(char).removesuffix(char)
        return int(float(value))

    def parse_as_boolean(self, section: DataclassField[Any], key: DataclassField[Any]) -> bool:
        """Convert INI string to boolean."""
        return self.parser.getboolean(section.name, key.name)
