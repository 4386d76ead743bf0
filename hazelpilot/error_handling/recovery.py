"""
Retry logic with exponential backoff.

Network-facing calls (the tie-breaker) and, when configured, step retries
go through ``with_backoff``. Only errors a classifier marks as retryable are
retried; everything else is re-raised on the first failure.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

import openai

from .exceptions import TransientError

logger = logging.getLogger(__name__)

T = TypeVar('T')

TRANSIENT_STATUS_CODES = {429}


class ExponentialBackoffStrategy:
    """Exponential backoff with bounded jitter."""

    def __init__(
        self,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 60000,
        multiplier: float = 2.0,
        jitter_ms: int = 250
    ):
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.multiplier = multiplier
        self.jitter_ms = jitter_ms

    def get_delay_ms(self, attempt: int) -> int:
        """Delay before the retry that follows ``attempt`` (1-based)."""
        delay = min(
            self.base_delay_ms * (self.multiplier ** (attempt - 1)),
            self.max_delay_ms
        )
        if self.jitter_ms:
            delay += random.uniform(0, self.jitter_ms)
        return int(delay)


def _status_code_of(error: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_transient(error: BaseException) -> bool:
    """Rate-limited or server-side failures are transient; nothing else is."""
    if isinstance(error, TransientError):
        return True

    if isinstance(
        error, (openai.RateLimitError, openai.InternalServerError)
    ):
        return True

    status = _status_code_of(error)
    if status is None:
        return False
    return status in TRANSIENT_STATUS_CODES or status >= 500


async def with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: int = 500,
    is_retryable: Callable[[BaseException], bool] = is_transient,
    operation_name: str = "operation",
    strategy: Optional[ExponentialBackoffStrategy] = None,
) -> T:
    """
    Await ``fn()`` retrying classified failures with exponential backoff.

    Args:
        fn: Zero-argument coroutine factory
        max_attempts: Total attempts including the first one
        base_delay_ms: Delay before the first retry
        is_retryable: Classifier deciding whether an error may be retried
        operation_name: Name used in log messages
        strategy: Custom delay strategy (defaults to exponential with jitter)

    Returns:
        The first successful result

    Raises:
        The last observed error, unchanged, once attempts are exhausted or
        as soon as a non-retryable error occurs.
    """
    strategy = strategy or ExponentialBackoffStrategy(base_delay_ms=base_delay_ms)
    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as error:
            if not is_retryable(error):
                raise
            if attempt >= max_attempts:
                logger.warning(
                    f"Max attempts ({max_attempts}) reached for {operation_name}"
                )
                raise
            delay_ms = strategy.get_delay_ms(attempt)
            logger.info(
                f"Retrying {operation_name} after {delay_ms}ms "
                f"(attempt {attempt + 1}/{max_attempts})",
                extra={"error": str(error)},
            )
            await asyncio.sleep(delay_ms / 1000)
            attempt += 1
