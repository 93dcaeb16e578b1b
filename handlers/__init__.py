"""Network communication handlers for the locale synchronisation tool.

This package provides the asynchronous HTTP client used by the translation provider adapters.
"""

from handlers.async_comm import (
    AsyncCommConnectionError,
    AsyncCommError,
    AsyncCommStatusError,
    AsyncCommTimeoutError,
    AsyncHttp,
)

__all__: list[str] = [
    "AsyncCommConnectionError",
    "AsyncCommError",
    "AsyncCommStatusError",
    "AsyncCommTimeoutError",
    "AsyncHttp",
]
