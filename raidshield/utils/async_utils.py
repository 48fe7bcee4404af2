"""
RaidShield - Async Utilities
============================

Utilities for running async operations without silent failures.

Usage:
    from raidshield.utils.async_utils import gather_with_logging

    # Instead of:
    await asyncio.gather(op1(), op2(), return_exceptions=True)

    # Use:
    await gather_with_logging(
        ("Restore Role", restore_role()),
        ("Send Alert", send_alert()),
        context="Lockdown Revert",
    )
"""

import asyncio
from typing import Any, Awaitable, Coroutine, Iterable, List, Optional, Tuple

from raidshield.core.logger import logger


async def gather_with_logging(
    *operations: Tuple[str, Coroutine[Any, Any, Any]],
    context: Optional[str] = None,
) -> List[Any]:
    """
    Run multiple async operations concurrently with error logging.

    Unlike asyncio.gather with return_exceptions=True, this function
    logs any exceptions that occur so failures aren't silent.

    Args:
        *operations: Tuples of (operation_name, coroutine).
        context: Optional context string for error logs.

    Returns:
        List of results (including exceptions as values, not raised).
    """
    names = [name for name, _ in operations]
    coros = [coro for _, coro in operations]

    results = await asyncio.gather(*coros, return_exceptions=True)

    for i, result in enumerate(results):
        if isinstance(result, Exception):
            error_details = [
                ("Operation", names[i]),
                ("Error Type", type(result).__name__),
                ("Error", str(result)[:100]),
            ]
            if context:
                error_details.insert(0, ("Context", context))

            logger.warning("Async Operation Failed", error_details)

    return results


async def run_bounded(
    coros: Iterable[Awaitable[Any]],
    limit: int,
) -> List[Any]:
    """
    Await coroutines concurrently, at most `limit` at a time.

    Exceptions are returned as values, in input order.
    """
    semaphore = asyncio.Semaphore(max(limit, 1))

    async def run_one(coro: Awaitable[Any]) -> Any:
        async with semaphore:
            return await coro

    return await asyncio.gather(*(run_one(c) for c in coros), return_exceptions=True)


# =============================================================================
# Safe Background Tasks
# =============================================================================

def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> asyncio.Task:
    """
    Create a background task with automatic error logging.

    Unlike raw asyncio.create_task(), this catches and logs any exceptions
    instead of letting them silently disappear. Must be called with a
    running event loop.

    Args:
        coro: The coroutine to run as a background task.
        name: Name for logging purposes.

    Returns:
        The created asyncio.Task.
    """
    async def wrapped():
        try:
            await coro
        except asyncio.CancelledError:
            # Cancelled timers and shutdown
            pass
        except Exception as e:
            logger.error("Background Task Failed", [
                ("Task", name),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])

    return asyncio.create_task(wrapped(), name=name)


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "gather_with_logging",
    "run_bounded",
    "create_safe_task",
]
