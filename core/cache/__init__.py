"""Response cache package.

Provides the stale-while-revalidate response cache and the coalescing of concurrent identical requests.
"""

from __future__ import annotations

from core.cache.inflight_manager import InFlightManager
from core.cache.response_cache import ResponseCache

__all__: list[str] = ["InFlightManager", "ResponseCache"]
