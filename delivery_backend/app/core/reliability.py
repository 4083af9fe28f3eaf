"""
Reliability utilities.

Bounded retry for optimistic-concurrency conflicts. Retries are only safe
when the whole read-modify-write is re-run, so the unit retried is an
entire service operation, never a single statement.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from delivery_backend.app.core.config import settings
from delivery_backend.app.core.exceptions import ConcurrencyError

logger = logging.getLogger("delivery.reliability")

T = TypeVar("T")


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = None,
    on_conflict: Callable[[], Awaitable[None]] = None,
    backoff_seconds: float = 0.0,
) -> T:
    """
    Run `operation`, re-running it on ConcurrencyError.

    Args:
        operation: Zero-argument coroutine function performing load -> mutate -> save.
        max_attempts: Total attempts including the first (default from settings).
        on_conflict: Awaited between attempts, e.g. a session rollback.
        backoff_seconds: Linear backoff between attempts.

    Raises:
        ConcurrencyError: When the last attempt also conflicted.
    """
    attempts = max_attempts or settings.concurrency_max_attempts
    if attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except ConcurrencyError as e:
            if attempt == attempts:
                logger.warning("Giving up after %s conflicting attempts: %s", attempts, e.message)
                raise
            logger.warning("Conflict on attempt %s/%s, retrying: %s", attempt, attempts, e.message)
            if on_conflict is not None:
                await on_conflict()
            if backoff_seconds:
                await asyncio.sleep(backoff_seconds * attempt)
