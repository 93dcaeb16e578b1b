"""Utility modules for the locale synchronisation tool.

This package provides utility functions for logging, file handling, string hashing
and conversion between nested and flattened locale documents.
"""

from utils.file_utils import FileUtils
from utils.logger_utils import LoggerUtils
from utils.object_utils import ObjectUtils
from utils.string_utils import StringUtils

__all__: list[str] = ["FileUtils", "LoggerUtils", "ObjectUtils", "StringUtils"]
