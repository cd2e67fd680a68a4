"""
Retry helper for store calls.

Only TransientStoreError is retried, with exponential backoff
(base * 2 ** attempt). Everything else propagates on the first failure.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from storage_lifecycle.core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    backoff_seconds: float = 0.5,
    description: str = "store operation",
    on_retry: Optional[Callable[[int, Exception], None]] = None,
) -> T:
    """
    Await ``operation()`` until it succeeds or retries are exhausted.

    Args:
        operation: Zero-argument coroutine factory
        attempts: Total number of attempts (>= 1)
        backoff_seconds: Base delay; attempt N waits base * 2 ** (N - 1)
        description: Used in log messages
        on_retry: Called with (attempt, error) before each retry

    Returns:
        Result of the first successful attempt

    Raises:
        TransientStoreError: If every attempt failed transiently
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except TransientStoreError as e:
            if attempt == attempts:
                logger.error(f"{description} failed after {attempts} attempts: {e}")
                raise
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                f"{description} attempt {attempt}/{attempts} failed: {e}; retrying in {delay:.2f}s"
            )
            if on_retry is not None:
                on_retry(attempt, e)
            if delay:
                await asyncio.sleep(delay)
    raise TransientStoreError(f"{description} was not attempted")
