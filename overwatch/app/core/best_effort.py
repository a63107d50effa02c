"""Best-effort side effects.

Automation triggers, in-game replies and alert deliveries must never turn
into caller-visible failures. Every such call goes through this module so
its outcome is logged in one place instead of being silently dropped.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional, Set

from overwatch.app.core.logging import get_logger

logger = get_logger(__name__)

# Strong references to scheduled tasks so they are not garbage collected
_background_tasks: Set[asyncio.Task] = set()


async def run_best_effort(
    awaitable: Awaitable[Any],
    description: str,
    log: Optional[logging.Logger] = None,
    **context: Any,
) -> bool:
    """Await ``awaitable``, logging and swallowing any failure.

    Args:
        awaitable: The side effect to run
        description: Short label used in the failure log line
        log: Logger to report failures on (defaults to this module's)
        **context: Extra fields attached to the log record

    Returns:
        True if the side effect completed, False if it raised
    """
    try:
        await awaitable
        return True
    except Exception as e:
        (log or logger).warning(
            f"Best-effort {description} failed: {type(e).__name__}: {e}",
            extra=context,
        )
        return False


def fire_and_forget(
    awaitable: Awaitable[Any],
    description: str,
    log: Optional[logging.Logger] = None,
    **context: Any,
) -> asyncio.Task:
    """Schedule a best-effort side effect without waiting for it.

    Must be called from a running event loop.
    """
    task = asyncio.ensure_future(
        run_best_effort(awaitable, description, log, **context)
    )
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def pending_background_tasks() -> int:
    return len(_background_tasks)


async def drain_background_tasks(timeout: float | None = 5.0) -> None:
    """Wait for scheduled side effects to finish (used on shutdown)."""
    if not _background_tasks:
        return
    await asyncio.wait(set(_background_tasks), timeout=timeout)
