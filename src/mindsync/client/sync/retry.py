"""Retry logic with backoff.

This module provides:
- retry_with_backoff: Retry an async operation while a predicate says the
  error is retryable
- is_transient: Default predicate (transient provider failures only)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from mindsync.client.sync.types import ProviderTransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 30.0  # seconds


def is_transient(error: BaseException) -> bool:
    """Retry only transient provider failures."""
    return isinstance(error, ProviderTransientError)


def linear_backoff(attempt: int, base_delay: float) -> float:
    """Delay before retry number attempt: base, 2*base, 3*base..."""
    return base_delay * attempt


def exponential_backoff(attempt: int, base_delay: float) -> float:
    """Delay before retry number attempt: base, 2*base, 4*base..."""
    return base_delay * (2 ** (attempt - 1))


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    is_retryable: Callable[[BaseException], bool] = is_transient,
    backoff: Callable[[int, float], float] = exponential_backoff,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> T:
    """Execute an async function, retrying retryable failures with backoff.

    Args:
        func: Coroutine function to execute (no arguments).
        max_attempts: Total number of attempts, including the first one.
        base_delay: Base delay in seconds.
        is_retryable: Predicate deciding whether an error may be retried.
        backoff: Computes the delay before retry n from (n, base_delay).
        max_delay: Upper bound of a single delay.

    Returns:
        Result of the function.

    Raises:
        The last exception if all attempts fail, or the first
        non-retryable exception.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 1
    while True:
        try:
            return await func()
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt >= max_attempts:
                logger.error(f"All {max_attempts} attempts failed: {e}")
                raise

            delay = min(backoff(attempt, base_delay), max_delay)
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)
            attempt += 1
