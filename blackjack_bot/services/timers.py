"""One-shot timers for blackjack sessions.

Timers are plain asyncio tasks that sleep and then run a synchronous
callback. The callback runs without awaiting, so it never interleaves
with a chat command being processed.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def start_timer(delay: float, callback: Callable[[], None], name: str) -> asyncio.Task:
    """Schedule ``callback`` to run once after ``delay`` seconds.

    Args:
        delay: Seconds to wait before firing.
        callback: Synchronous function to call when the timer fires.
        name: Task name, shows up in logs and debuggers.

    Returns:
        The asyncio task backing the timer. Cancel it with :func:`cancel_timer`.
    """
    async def _run() -> None:
        await asyncio.sleep(delay)
        try:
            callback()
        except Exception:
            logger.exception(f"Timer {name} failed")

    return asyncio.create_task(_run(), name=name)


def cancel_timer(task: Optional[asyncio.Task]) -> bool:
    """Cancel a pending timer.

    A timer whose callback is currently running is left alone: the callback
    may reset its own session, which would otherwise cancel the very task
    that is executing it.

    Returns:
        True if a pending task was cancelled.
    """
    if task is None or task.done():
        return False

    try:
        current = asyncio.current_task()
    except RuntimeError:
        current = None

    if task is current:
        return False

    task.cancel()
    return True
