"""
Lifecycle manager: shutdown triggers, draining and exit codes.

Triggers:
- stdin end of stream (exit code 0)
- SIGINT / SIGTERM (exit code 0)
- stdin read error or a fatal error before initialization (exit code 1)

The first trigger starts the shutdown sequence. Later triggers are logged
and return the same task, so shutdown runs at most once:
1. Stop reading input
2. Wait for in-flight dispatches, bounded by the shutdown timeout
3. Run cleanup callbacks (output flush, skill cleanup hooks)
4. Record the exit code
"""

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable
from typing import Any

from context_manager.framework.skills._async import safe_await_if_needed

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1

ShutdownCallback = Callable[[], Awaitable[Any] | Any]


class LifecycleManager:
    """Coordinates at-most-once shutdown of the stdio server.

    Attributes:
        shutdown_timeout: Seconds to wait for in-flight requests before cancelling
    """

    def __init__(self, shutdown_timeout: float = 5.0) -> None:
        self.shutdown_timeout = shutdown_timeout
        self._pending: set[asyncio.Task] = set()
        self._stop_input: list[ShutdownCallback] = []
        self._cleanup: list[ShutdownCallback] = []
        self._shutdown_task: asyncio.Task | None = None
        self._exit_code: int | None = None
        self._reason: str | None = None
        self._done = asyncio.Event()
        self._signals: list[signal.Signals] = []

    @property
    def shutting_down(self) -> bool:
        return self._shutdown_task is not None

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    @property
    def reason(self) -> str | None:
        return self._reason

    @property
    def in_flight(self) -> int:
        return sum(1 for task in self._pending if not task.done())

    def track(self, task: asyncio.Task) -> asyncio.Task:
        """Track an in-flight dispatch task until it completes."""
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def on_stop_input(self, callback: ShutdownCallback) -> None:
        """Register a callback that stops reading input (runs first)."""
        self._stop_input.append(callback)

    def on_cleanup(self, callback: ShutdownCallback) -> None:
        """Register a cleanup callback (runs after draining, in registration order)."""
        self._cleanup.append(callback)

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Route SIGINT and SIGTERM to ``request_shutdown``."""
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                # Event loops without add_signal_handler (Windows)
                signal.signal(
                    sig, lambda signum, frame: loop.call_soon_threadsafe(self._on_signal, signum)
                )
            self._signals.append(sig)
        logger.debug("Installed signal handlers for SIGINT and SIGTERM")

    def remove_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in self._signals:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, signal.SIG_DFL)
        self._signals.clear()

    def _on_signal(self, signum: int) -> None:
        name = signal.Signals(signum).name
        self.request_shutdown(EXIT_OK, f"received {name}")

    def request_shutdown(self, exit_code: int = EXIT_OK, reason: str = "") -> asyncio.Task:
        """
        Start the shutdown sequence, or return the one already running.

        Args:
            exit_code: Process exit code to report (ignored on repeat calls)
            reason: Human-readable trigger, for the log

        Returns:
            The shutdown task
        """
        if self._shutdown_task is not None:
            logger.debug("Shutdown already in progress; ignoring trigger: %s", reason)
            return self._shutdown_task

        logger.info("Shutting down: %s", reason or "requested")
        self._exit_code = exit_code
        self._reason = reason
        self._shutdown_task = asyncio.get_running_loop().create_task(self._shutdown())
        return self._shutdown_task

    async def _run_callbacks(self, callbacks: list[ShutdownCallback], stage: str) -> None:
        for callback in callbacks:
            try:
                await safe_await_if_needed(callback())
            except Exception as e:
                logger.exception("Shutdown %s callback failed: %s", stage, e)

    async def _shutdown(self) -> None:
        try:
            await self._run_callbacks(self._stop_input, "stop-input")
            await self._drain()
            await self._run_callbacks(self._cleanup, "cleanup")
        finally:
            logger.info("Shutdown complete (exit code %s)", self._exit_code)
            self._done.set()

    async def _drain(self) -> None:
        current = asyncio.current_task()
        pending = {task for task in self._pending if not task.done() and task is not current}
        if not pending:
            return

        logger.info("Waiting for %s in-flight request(s)", len(pending))
        _, not_done = await asyncio.wait(pending, timeout=self.shutdown_timeout)
        if not_done:
            logger.warning(
                "%s request(s) still running after %ss; cancelling",
                len(not_done),
                self.shutdown_timeout,
            )
            for task in not_done:
                task.cancel()
            await asyncio.gather(*not_done, return_exceptions=True)

    async def wait(self) -> int:
        """Wait for shutdown to complete and return the exit code."""
        await self._done.wait()
        return EXIT_OK if self._exit_code is None else self._exit_code


__all__ = ["EXIT_ERROR", "EXIT_OK", "LifecycleManager", "ShutdownCallback"]
