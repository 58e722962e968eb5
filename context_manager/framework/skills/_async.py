"""
Internal module for async/sync execution bridging.

This module is not part of the public API - do not import directly.
Use context_manager.framework.skills instead.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from functools import partial
from typing import Any

logger = logging.getLogger(__name__)


async def run_callable_async(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Run a callable (sync or async) as an async operation.

    If the callable is already async, await it directly.
    If it's sync, run it in the default executor to avoid blocking the loop.
    A sync callable that returns an awaitable has it awaited as well.

    Args:
        func: Function to execute (sync or async)
        *args: Positional arguments
        **kwargs: Keyword arguments

    Returns:
        Result of the function
    """
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, partial(func, *args, **kwargs))
    return await safe_await_if_needed(result)


async def safe_await_if_needed(result: Any) -> Any:
    """
    Await a result if it's awaitable, otherwise return as-is.

    Args:
        result: Value that may or may not be awaitable

    Returns:
        Awaited result if awaitable, original value otherwise
    """
    if inspect.isawaitable(result):
        return await result
    return result


def elapsed_ms(start: float) -> float:
    """
    Milliseconds since ``start``, a ``time.perf_counter()`` reading.

    Args:
        start: perf_counter value captured before the operation

    Returns:
        Elapsed time in milliseconds
    """
    return (time.perf_counter() - start) * 1000
