"""Retry helper for transient remote failures."""

import random
import time
from typing import Any, Callable

from .exceptions import RetryableError


def retry_with_backoff(
    func: Callable[[], Any],
    is_retryable: Callable[[Exception], bool],
    operation: str,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Execute a function with exponential backoff retry.

    Args:
        func: Callable to execute
        is_retryable: Predicate deciding whether an exception is transient
        operation: Name of the operation, used in the final error
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        sleep: Sleep function (injectable for tests)

    Returns:
        Result of successful function execution

    Raises:
        RetryableError: If all retries are exhausted
        Exception: Non-retryable exceptions propagate unchanged
    """
    last_error: Exception | None = None

    for attempt in range(max_retries + 1):
        try:
            return func()
        except Exception as e:
            if not is_retryable(e):
                raise

            last_error = e

            if attempt < max_retries:
                # Calculate delay with exponential backoff and jitter
                delay = min(base_delay * (2**attempt), max_delay)
                # Add jitter (±25%)
                delay *= 0.75 + random.random() * 0.5
                sleep(delay)

    raise RetryableError(
        f"Operation failed after {max_retries + 1} attempts",
        operation=operation,
        original_error=last_error,
    )
