"""Graceful shutdown hooks.

Components register a coroutine function under a name; ``run`` awaits every hook once in registration
order. Signal handlers can be installed so SIGINT/SIGTERM trigger the same cleanup.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, ClassVar, TypeAlias

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

__all__: list[str] = ["ShutdownRegistry"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

ShutdownHook: TypeAlias = "Callable[[], Awaitable[None]]"


class ShutdownRegistry:
    """Registry of cleanup coroutines run once on shutdown.

    Attributes:
        HOOK_TIMEOUT_SEC (float): Time granted to a single hook.
    """

    HOOK_TIMEOUT_SEC: ClassVar[float] = 10.0

    def __init__(self) -> None:
        self._hooks: dict[str, ShutdownHook] = {}
        self._done: bool = False
        self._finished: asyncio.Event = asyncio.Event()
        self._running: asyncio.Task[None] | None = None
        self._signals: list[signal.Signals] = []

    def __len__(self) -> int:
        return len(self._hooks)

    def __contains__(self, name: object) -> bool:
        return name in self._hooks

    @property
    def is_shut_down(self) -> bool:
        return self._done

    def register(self, name: str, hook: ShutdownHook) -> None:
        """Register a hook. Re-registering a name replaces the previous hook."""
        if name in self._hooks:
            logger.debug("Replacing shutdown hook '%s'", name)
        self._hooks[name] = hook

    def unregister(self, name: str) -> bool:
        return self._hooks.pop(name, None) is not None

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Run the hooks on SIGINT and SIGTERM.

        Platforms without ``add_signal_handler`` support (Windows) are skipped with a debug message.
        """
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError) as err:
                logger.debug("Cannot install handler for %s: %s", sig.name, err)
                continue
            self._signals.append(sig)

    def remove_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in self._signals:
            loop.remove_signal_handler(sig)
        self._signals.clear()

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.warning("Received %s; shutting down", sig.name)
        if self._running is None:
            self._running = asyncio.get_running_loop().create_task(self.run())

    async def run(self) -> None:
        """Await every registered hook once. Errors are logged and do not stop the remaining hooks.

        A second caller waits until the first run has finished.
        """
        if self._done:
            await self._finished.wait()
            return
        self._done = True
        hooks: list[tuple[str, ShutdownHook]] = list(self._hooks.items())
        self._hooks.clear()
        for name, hook in hooks:
            try:
                await asyncio.wait_for(hook(), timeout=self.HOOK_TIMEOUT_SEC)
                logger.debug("Shutdown hook '%s' completed", name)
            except TimeoutError:
                logger.error("Shutdown hook '%s' timed out", name)
            except Exception as err:  # noqa: BLE001 - remaining hooks must still run
                logger.error("Shutdown hook '%s' failed: %s", name, err)
        self._finished.set()
