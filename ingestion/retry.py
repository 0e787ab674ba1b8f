"""
Bounded retry with linear backoff for store operations.

The executor knows nothing about what it is retrying: it is handed an
awaitable factory and a label used in log lines and error messages. Errors
marked as NonRetryableError propagate on the first occurrence; every other
error is treated as transient.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from core.exceptions import NonRetryableError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    label: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run an async operation, retrying failures with a linearly growing delay.

    Attempt k (1-based) that fails is followed by a wait of
    ``base_delay * k`` seconds, except after the last attempt.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        label: Human-readable operation name ("block batch insert", ...)
        max_attempts: Total number of attempts, including the first
        base_delay: Delay unit in seconds
        sleep: Awaitable sleep function (injectable for tests)

    Returns:
        Whatever the operation returns on its first successful attempt

    Raises:
        NonRetryableError: Re-raised immediately, without further attempts
        RetryExhaustedError: After max_attempts failures, chained to the last error
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    last_error: Optional[Exception] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except NonRetryableError:
            raise
        except Exception as e:
            last_error = e

        if attempt < max_attempts:
            delay = base_delay * attempt
            logger.warning(
                f"Retrying {label} (attempt {attempt}/{max_attempts}) "
                f"after {delay:.1f}s: {last_error}"
            )
            await sleep(delay)

    raise RetryExhaustedError(
        f"{label} failed after {max_attempts} attempts",
        context={"operation": label, "attempts": max_attempts},
        original_exception=last_error,
    )
