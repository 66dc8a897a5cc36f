"""Virtual user shutdown helper used by the smoke session."""

from __future__ import annotations

import asyncio

from allowsmoke._internal.logging import get_logger

logger = get_logger("engine.user_utils")


async def shutdown_all_users(
    user_tasks: list[tuple[int, asyncio.Task[None]]],
    stop_event: asyncio.Event,
    grace_period: float = 5.0,
) -> None:
    """Gracefully shut down all virtual users.

    Sets the stop event so every user exits after its current iteration,
    waits up to ``grace_period`` seconds, then cancels whatever is still
    running and waits briefly for the cancellation to land.

    Args:
        user_tasks: List of (user_id, task) tuples to shut down.
        stop_event: Event watched by running users.
        grace_period: Seconds in-flight iterations get to finish.
    """
    stop_event.set()

    if user_tasks:
        tasks = [t for _, t in user_tasks]
        pending: set[asyncio.Task[None]] = set(tasks)
        if grace_period > 0:
            _done, pending = await asyncio.wait(tasks, timeout=grace_period)

        for task in pending:
            task.cancel()

        if pending:
            logger.debug("Cancelled %d virtual users after grace period", len(pending))
            await asyncio.wait(pending, timeout=2.0)

    user_tasks.clear()
    logger.debug("All virtual users shut down")
