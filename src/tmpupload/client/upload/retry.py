"""Retry logic with exponential backoff.

This module provides:
- retry_with_backoff: exponential backoff bounded by a total attempt count

Sleeps go through a CancellationToken, so an aborted upload stops
waiting immediately.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from tmpupload.client.upload.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0


def backoff_delays(
    attempts: int,
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
) -> list[float]:
    """Return the delays slept between ``attempts`` attempts."""
    delays = []
    backoff = initial_backoff
    for _ in range(max(attempts - 1, 0)):
        delays.append(min(backoff, max_backoff))
        backoff = min(backoff * backoff_multiplier, max_backoff)
    return delays


def retry_with_backoff(
    func: Callable[[], T],
    cancel: CancellationToken,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """Call ``func`` until it succeeds or the attempt budget is spent.

    Args:
        func: Zero-argument callable performing one attempt.
        cancel: Token checked before every attempt and used for sleeping.
        max_attempts: Total number of calls, the first one included.
        initial_backoff: Delay after the first failure, in seconds.
        max_backoff: Upper bound for any single delay.
        backoff_multiplier: Growth factor between consecutive delays.
        retryable_exceptions: Exception types that trigger another attempt.
        on_retry: Called with (failed attempt number, error, delay) before sleeping.

    Returns:
        Whatever ``func`` returned.

    Raises:
        The error of the last attempt once the budget is spent.
        UploadCancelledError: If cancelled between attempts.
    """
    delays = backoff_delays(max_attempts, initial_backoff, max_backoff, backoff_multiplier)

    for attempt in range(1, max_attempts + 1):
        cancel.raise_if_cancelled()
        try:
            return func()
        except retryable_exceptions as e:
            if attempt == max_attempts:
                logger.error(f"Giving up after {max_attempts} attempts: {e}")
                raise
            delay = delays[attempt - 1]
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed ({e}), next try in {delay:.1f}s"
            )
            if on_retry:
                on_retry(attempt, e, delay)
            cancel.sleep(delay)

    raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
