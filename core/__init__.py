"""Core orchestration for the locale synchronisation tool.

This package contains the translation orchestrator, graceful shutdown handling, provider management
and rate limiting (``core.trans``), response caching (``core.cache``) and file synchronisation
(``core.sync``).
"""

from core.orchestrator import Orchestrator
from core.shutdown import ShutdownRegistry
from core.version import VERSION

__all__: list[str] = [
    "VERSION",
    "Orchestrator",
    "ShutdownRegistry",
]
