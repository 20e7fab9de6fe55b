"""Signal-driven shutdown for the API server.

Usage:
    ```python
    async with GracefulShutdown() as shutdown:
        shutdown.register_cleanup(server.stop_http_server)
        shutdown.register_cleanup(engine.close)
        await server.start_http_server(port=8080)
        await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from contextlib import suppress
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

# Default time allowed for cleanup callbacks, in seconds
DEFAULT_SHUTDOWN_TIMEOUT = 30.0

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)

CleanupCallback = Callable[[], Awaitable[Any] | Any]


class GracefulShutdown:
    """Waits for SIGTERM/SIGINT, then runs cleanup callbacks in order.

    A second signal while shutting down exits immediately. Cleanup
    callbacks may be sync or async; each failure is logged and the
    remaining callbacks still run. The whole cleanup is bounded by
    ``timeout``.
    """

    def __init__(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        self._timeout = timeout
        self._event = asyncio.Event()
        self._requested = False
        self._callbacks: list[CleanupCallback] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_handlers: list[signal.Signals] = []
        self._previous_handlers: dict[signal.Signals, Any] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def is_shutdown_requested(self) -> bool:
        return self._requested

    def register_cleanup(self, callback: CleanupCallback) -> None:
        """Add a callback to run on shutdown (in registration order)."""
        self._callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Trigger shutdown from application code."""
        if not self._requested:
            self._requested = True
            logger.info("Shutdown requested")
            self._event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._event.wait()

    def _on_signal(self, sig: signal.Signals) -> None:
        if self._requested:
            logger.warning("Received %s during shutdown, exiting now", sig.name)
            sys.exit(128 + sig.value)
        logger.info("Received %s, shutting down", sig.name)
        self.request_shutdown()

    def _on_signal_sync(self, signum: int, _frame: FrameType | None) -> None:
        self._on_signal(signal.Signals(signum))

    def install_signal_handlers(self) -> None:
        """Trap shutdown signals on the running loop.

        Falls back to ``signal.signal`` where the loop cannot register
        handlers (Windows).
        """
        self._loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
                self._loop_handlers.append(sig)
            except NotImplementedError:
                self._previous_handlers[sig] = signal.signal(sig, self._on_signal_sync)
            except (ValueError, OSError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

    def remove_signal_handlers(self) -> None:
        """Restore the signal handling in place before installation."""
        if self._loop is not None:
            for sig in self._loop_handlers:
                with suppress(ValueError, OSError):
                    self._loop.remove_signal_handler(sig)
        for sig, previous in self._previous_handlers.items():
            with suppress(ValueError, OSError):
                signal.signal(sig, previous)
        self._loop_handlers.clear()
        self._previous_handlers.clear()

    async def _run_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def run_cleanup_callbacks(self) -> None:
        """Run cleanup callbacks, giving up after the timeout."""
        try:
            await asyncio.wait_for(self._run_callbacks(), timeout=self._timeout)
        except TimeoutError:
            logger.error("Cleanup did not finish within %.1fs", self._timeout)

    async def __aenter__(self) -> GracefulShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
