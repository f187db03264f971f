"""
Retry with exponential backoff and jitter

Delay before retry n (1-based) is

    min(base_delay * 2^(n-1) + uniform[0, 1000ms), max_delay)

Errors whose kind is non-retryable (validation, authentication,
authorization, configuration) are re-raised on the spot. All loop state is
local to a single call.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from shipping_calculator.core.exceptions import ShippingError
from shipping_calculator.core.request_logger import RequestLogger, bind_logger

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_MS = 1000


@dataclass(frozen=True)
class RetryOptions:
    """Backoff settings (milliseconds)."""
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("retry delays must be non-negative")


def compute_backoff_delay(attempt: int, options: RetryOptions, jitter_ms: Optional[float] = None) -> float:
    """
    Delay in milliseconds before the retry that follows ``attempt``.

    Args:
        attempt: 1-based number of the attempt that just failed
        options: Backoff settings
        jitter_ms: Override for the random component (tests)
    """
    if jitter_ms is None:
        jitter_ms = random.random() * JITTER_MS
    exponential = options.base_delay_ms * (2 ** (attempt - 1))
    return min(exponential + jitter_ms, options.max_delay_ms)


def _should_retry(error: Exception) -> bool:
    if isinstance(error, ShippingError):
        return error.retryable
    return True


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions,
    operation_name: str,
    log: Optional[RequestLogger] = None,
) -> T:
    """
    Run ``operation`` until it succeeds, a non-retryable error occurs, or
    ``options.max_retries`` attempts have been made.

    Raises:
        The error from the last attempt
    """
    log = bind_logger(logger, log)

    for attempt in range(1, options.max_retries + 1):
        try:
            log.debug(f"{operation_name} - Attempt {attempt}/{options.max_retries}")
            result = await operation()
            if attempt > 1:
                log.info(f"{operation_name} succeeded on attempt {attempt}")
            return result
        except Exception as e:
            if not _should_retry(e):
                log.warning(f"{operation_name} failed with non-retryable error: {e}")
                raise

            if attempt == options.max_retries:
                log.error(f"{operation_name} failed after {attempt} attempts: {e}")
                raise

            delay_ms = compute_backoff_delay(attempt, options)
            log.warning(
                f"{operation_name} attempt {attempt} failed ({e}). "
                f"Retrying {operation_name} in {delay_ms:.0f}ms"
            )
            await asyncio.sleep(delay_ms / 1000)

    raise AssertionError("unreachable: retry loop exits via return or raise")
