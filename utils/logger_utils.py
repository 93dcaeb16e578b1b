"""Logging setup shared by every module of the tool.

Console output is kept short (warnings and errors only, unless verbose output is requested) while the
optional log file receives the full DEBUG trace of a sync run, including per-provider failures and
throttling adjustments.
"""

from __future__ import annotations

import logging
import sys
import warnings
from logging import Formatter, NullHandler, StreamHandler
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, ClassVar, Final, Literal, NamedTuple, Self, TextIO, TypeAlias

if TYPE_CHECKING:
    from pathlib import Path

__all__: list[str] = ["LoggerUtils"]

LevelType: TypeAlias = Literal[
    "NOTSET",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

_LOG_FILE_SIZE: Final[int] = 2 * 1024 * 1024  # 2MB
_LOG_BACKUP_COUNT: Final[int] = 2

DEFAULT_LOG_LEVEL: Final[int] = logging.INFO
DEFAULT_CONSOLE_LEVEL: Final[int] = logging.WARNING
DEFAULT_NAMESPACE: Final[str] = "LocaleSync"


class LogLevel(NamedTuple):
    """Represents a logging level with both name and numeric value.

    Attributes:
        name (str): The name of the logging level (e.g., 'INFO', 'DEBUG').
        value (int): The numeric value of the logging level.
    """

    name: str
    value: int


class LoggerUtils:
    """Singleton that configures the ``LocaleSync`` logger hierarchy.

    Every module calls ``LoggerUtils.get_logger(__name__)`` at import time; handlers are attached
    once, by the entry script, when the singleton is constructed.

    Attributes:
        _LOGGER_NAMESPACE (str): The namespace for the logger.
        _configured (bool): Indicates whether the logger has been configured.
        _instance (LoggerUtils | None): The singleton instance of LoggerUtils.
    """

    _LOGGER_NAMESPACE: ClassVar[str] = DEFAULT_NAMESPACE
    _configured: ClassVar[bool] = False
    _instance: ClassVar[Self | None] = None

    def __new__(cls, *args, **kwargs) -> Self:
        """Create or reuse the singleton instance.

        Returns:
            Self: The singleton instance of LoggerUtils.
        """
        _ = args, kwargs
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(
        self,
        filename: str | Path = "",
        *,
        use_null_console: bool = False,
        verbose: bool = False,
    ) -> None:
        """Attach console and file handlers to the namespace logger.

        If the logger is already configured, this method does nothing.

        Args:
            filename (str | Path): Absolute path of the log file. If empty, logging to a file is not performed.
            use_null_console (bool): If True, uses NullHandler instead of StreamHandler for console output.
            verbose (bool): If True, the console also shows INFO messages.
        """
        if LoggerUtils._configured:
            return

        self.root_logger: logging.Logger = logging.getLogger(self._LOGGER_NAMESPACE)
        self._use_null_console: bool = bool(use_null_console) or sys.stderr is None
        self._console_handler: StreamHandler[TextIO] | None = None
        filename = str(filename)
        # The logger level must not be higher than the handler levels, otherwise nothing is emitted.
        self.root_logger.setLevel(DEFAULT_LOG_LEVEL)

        self._console_logging(logging.INFO if verbose else DEFAULT_CONSOLE_LEVEL)
        if filename.strip():
            self._file_logging(filename)
        else:
            self.root_logger.debug("Log file name is empty. Logging to the file is not performed.")

        warnings.showwarning = self.warning_to_log
        LoggerUtils._configured = True

    def warning_to_log(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: TextIO | None = None,
        line: str | None = None,
    ) -> None:
        """Redirect ``warnings.showwarning`` output to the logger.

        Args:
            message (Warning | str): The warning message or Warning instance.
            category (type[Warning]): The category (class) of the warning.
            filename (str): The name of the file where the warning occurred.
            lineno (int): The line number where the warning occurred.
            file (TextIO | None): Unused, required by the warnings module signature.
            line (str | None): Unused, required by the warnings module signature.
        """
        _ = file, line
        self.root_logger.warning("%s:%d: %s: %s", filename, lineno, category.__name__, message)

    def _console_logging(self, level: int) -> None:
        """Configure log output to stderr with a bare message format."""
        if self._use_null_console:
            if not self._has_handler(NullHandler):
                self.root_logger.addHandler(NullHandler())
            return

        if self._has_handler(StreamHandler):
            self.root_logger.warning("Console logging is already configured.")
            return

        console_handler: StreamHandler[TextIO] = StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(Formatter("%(message)s"))
        self.root_logger.addHandler(console_handler)
        self._console_handler = console_handler

    def _file_logging(self, filename: str) -> None:
        """Configure rotating UTF-8 log output to file at DEBUG level.

        Args:
            filename (str): Absolute path to the log file.
        """
        if self._has_handler(RotatingFileHandler):
            self.root_logger.warning("File logging is already configured.")
            return

        try:
            file_handler = RotatingFileHandler(
                filename=filename,
                maxBytes=_LOG_FILE_SIZE,
                backupCount=_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except (FileNotFoundError, PermissionError):
            self.root_logger.error("Incorrect log file name: %s\nLogging to the file is not performed.", filename)
            return

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            Formatter("%(asctime)s %(levelname)-8s %(lineno)4d %(name)-40s\t%(funcName)s\t%(message)s")
        )
        self.root_logger.addHandler(file_handler)

    def _has_handler(self, handler_type: type) -> bool:
        return any(isinstance(h, handler_type) for h in self.root_logger.handlers)

    def set_level(self, level: LevelType) -> None:
        """Set the logging level of the namespace logger.

        DEBUG also lowers the console handler so that per-item traces become visible.
        If an unknown level is specified, the logging level is set to 'INFO' and a warning is logged.

        Args:
            level (LevelType): The logging level to set.
        """
        level_map: dict[str, int] = logging.getLevelNamesMapping()
        try:
            value: int = level_map[level.upper()]
        except KeyError:
            self.root_logger.setLevel(DEFAULT_LOG_LEVEL)
            self.root_logger.warning("Unknown logging level '%s' specified.\nLogging level set to 'INFO'.", level)
            return

        self.root_logger.setLevel(value)
        if self._console_handler is not None and value <= logging.DEBUG:
            self._console_handler.setLevel(value)

    def get_level(self) -> LogLevel:
        """Get the current logging level of the namespace logger.

        Returns:
            LogLevel: A named tuple containing the logging level name and its numeric value.
        """
        level_value: int = self.root_logger.getEffectiveLevel()
        level_name: str = logging.getLevelName(level_value)
        return LogLevel(name=level_name, value=level_value)

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        """Get a logger below the ``LocaleSync`` namespace.

        Args:
            name (str | None): The name of the logger. If None, the namespace logger itself is returned.

        Returns:
            logging.Logger: The logger instance.
        """
        full_name: str | None
        if LoggerUtils._LOGGER_NAMESPACE:
            full_name = f"{LoggerUtils._LOGGER_NAMESPACE}.{name}" if name else LoggerUtils._LOGGER_NAMESPACE
        else:
            full_name = name or None
        return logging.getLogger(full_name)
