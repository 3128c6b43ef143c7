"""Fire-and-forget work that must outlive the request, such as order emails.

The event loop keeps only weak references to tasks, so running ones are held
in ``_running`` until they finish. Shutdown waits for them briefly and cancels
whatever is left.
"""
import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

_running: dict[asyncio.Task[Any], str] = {}


def _on_done(task: asyncio.Task[Any]) -> None:
    label = _running.pop(task, task.get_name())
    if task.cancelled():
        logger.warning("Background task %s was cancelled", label)
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background task %s failed: %s", label, exc, exc_info=exc)


def create_background_task(
    coro: Coroutine[Any, Any, Any], *, name: str | None = None
) -> asyncio.Task[Any]:
    task = asyncio.create_task(coro, name=name)
    _running[task] = name or task.get_name()
    task.add_done_callback(_on_done)
    return task


def running_task_count() -> int:
    return len(_running)


async def drain_background_tasks(timeout: float = 10.0) -> int:
    """Wait up to ``timeout`` seconds, cancel stragglers, return how many were cut off."""
    if not _running:
        return 0
    _, pending = await asyncio.wait(list(_running), timeout=timeout)
    if not pending:
        return 0
    logger.warning(
        "Cancelling %d background task(s) at shutdown: %s",
        len(pending), ", ".join(sorted(_running.get(t, t.get_name()) for t in pending)),
    )
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    return len(pending)
