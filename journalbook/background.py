"""Utilities for supervising background asyncio tasks.

Chapter compiles run as supervised tasks so a client that stops waiting
does not cancel a generation already paid for; the chapter is still stored.
Tasks are tracked so they are not garbage collected before completion.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from functools import partial
from typing import Awaitable, Callable, Optional, Any, Set, Tuple, Type

logger = logging.getLogger(__name__)

# Track tasks so they are not garbage collected before finishing.
_background_tasks: Set[asyncio.Task[Any]] = set()


def spawn(coro: Awaitable[Any], *, name: Optional[str] = None,
          expected: Tuple[Type[BaseException], ...] = ()) -> asyncio.Task[Any]:
    """Create and supervise a background task.

    Args:
        coro: Awaitable coroutine to run in the background.
        name: Optional name for the task.
        expected: Exception types the awaiting caller handles itself; these
            are logged at INFO instead of with a traceback.
    """
    task = asyncio.create_task(coro, name=name)  # type: ignore[arg-type]
    _background_tasks.add(task)

    def _finished(t: asyncio.Task[Any]) -> None:
        _background_tasks.discard(t)
        if t.cancelled():
            logger.debug("Background task %s cancelled", name or t)
            return
        exc = t.exception()
        if exc is None:
            return
        if expected and isinstance(exc, expected):
            logger.info("Background task %s ended with %s", name or t, type(exc).__name__)
            return
        logger.error("Background task %s failed", name or t, exc_info=exc)

    task.add_done_callback(_finished)
    return task


async def run_sync(func: Callable[..., Any], *args: Any, loop: Optional[asyncio.AbstractEventLoop] = None,
                   executor: Optional[Executor] = None, **kwargs: Any) -> Any:
    """Execute blocking code in the default executor and await the result."""
    event_loop = loop or asyncio.get_running_loop()
    bound = partial(func, *args, **kwargs)
    return await event_loop.run_in_executor(executor, bound)


__all__ = ["spawn", "run_sync"]
