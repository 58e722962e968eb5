"""
Tests for shutdown coordination.
"""

import asyncio
import os
import signal
import sys

import pytest

from context_manager.server.lifecycle import EXIT_ERROR, EXIT_OK, LifecycleManager


class TestRequestShutdown:
    """Test at-most-once shutdown."""

    @pytest.mark.asyncio
    async def test_repeated_triggers_share_one_shutdown(self) -> None:
        """Test that later triggers return the first task and keep its exit code."""
        lifecycle = LifecycleManager()
        cleanups: list[str] = []
        lifecycle.on_cleanup(lambda: cleanups.append("done"))

        first = lifecycle.request_shutdown(EXIT_OK, "stdin closed")
        second = lifecycle.request_shutdown(EXIT_ERROR, "stdin error")

        assert first is second
        assert await lifecycle.wait() == EXIT_OK
        assert cleanups == ["done"]
        assert lifecycle.reason == "stdin closed"

    @pytest.mark.asyncio
    async def test_sequence_order(self) -> None:
        """Test stop-input, drain, then cleanup."""
        lifecycle = LifecycleManager()
        events: list[str] = []

        async def in_flight() -> None:
            await asyncio.sleep(0.02)
            events.append("request finished")

        async def cleanup() -> None:
            events.append("cleanup")

        lifecycle.track(asyncio.create_task(in_flight()))
        lifecycle.on_stop_input(lambda: events.append("stop input"))
        lifecycle.on_cleanup(cleanup)

        lifecycle.request_shutdown(EXIT_OK, "test")
        await lifecycle.wait()

        assert events == ["stop input", "request finished", "cleanup"]
        assert lifecycle.in_flight == 0

    @pytest.mark.asyncio
    async def test_drain_timeout_cancels_stragglers(self) -> None:
        """Test that requests outliving the timeout are cancelled."""
        lifecycle = LifecycleManager(shutdown_timeout=0.05)
        task = lifecycle.track(asyncio.create_task(asyncio.sleep(10)))

        lifecycle.request_shutdown(EXIT_OK, "test")
        assert await lifecycle.wait() == EXIT_OK

        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_failing_cleanup_does_not_stop_others(self) -> None:
        """Test that one failing callback is logged and the rest still run."""
        lifecycle = LifecycleManager()
        ran: list[str] = []

        def broken() -> None:
            raise RuntimeError("flush failed")

        lifecycle.on_cleanup(broken)
        lifecycle.on_cleanup(lambda: ran.append("second"))

        lifecycle.request_shutdown(EXIT_ERROR, "test")

        assert await lifecycle.wait() == EXIT_ERROR
        assert ran == ["second"]


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
class TestSignals:
    """Test signal-triggered shutdown."""

    @pytest.mark.asyncio
    async def test_sigterm_triggers_clean_exit(self) -> None:
        """Test that SIGTERM starts shutdown with exit code 0."""
        lifecycle = LifecycleManager()
        lifecycle.install_signal_handlers()
        try:
            os.kill(os.getpid(), signal.SIGTERM)
            exit_code = await asyncio.wait_for(lifecycle.wait(), timeout=2)
        finally:
            lifecycle.remove_signal_handlers()

        assert exit_code == EXIT_OK
        assert lifecycle.reason == "received SIGTERM"
