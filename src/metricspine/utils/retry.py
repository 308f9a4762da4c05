"""Retry utilities for MetricSpine.

Exponential backoff with jitter, used to reopen change streams that failed
when the scheduler is configured to do so.

Example:
    >>> from metricspine.utils.retry import with_retry, RetryConfig
    >>>
    >>> config = RetryConfig(max_attempts=5, base_delay=1.0)
    >>> await with_retry(lambda: consume_stream(namespace), config)
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger("metricspine.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum total attempts (including first try)
        base_delay: Initial delay in seconds before first retry
        max_delay: Maximum delay between retries
        exponential_base: Multiplier for exponential backoff
        jitter: Random jitter factor (0-1) to prevent thundering herd
        retry_on: Exception types that should trigger retry
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: float = 0.1
    retry_on: tuple[type[Exception], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts has to be at least 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay cannot be negative, got {self.base_delay}")

    def calculate_delay(self, attempt: int) -> float:
        """Delay in seconds after the given (1-indexed) failed attempt.

        Example:
            >>> RetryConfig(base_delay=1.0, jitter=0).calculate_delay(3)
            4.0
            >>> RetryConfig(base_delay=1.0, max_delay=3.0, jitter=0).calculate_delay(5)
            3.0
        """
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter > 0:
            jitter_amount = delay * self.jitter
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, delay)

    def should_retry(self, exc: Exception, attempt: int) -> bool:
        """Whether another attempt follows ``exc`` on ``attempt``."""
        if attempt >= self.max_attempts:
            return False
        return isinstance(exc, self.retry_on)


async def with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
) -> T:
    """Execute an async function with retry logic.

    The last exception is re-raised unchanged once no attempt is left or it
    is not one of ``config.retry_on``.

    Args:
        func: Async function to execute
        config: Retry configuration (default: 3 attempts)

    Returns:
        The result of the function
    """
    config = config or RetryConfig()
    attempt = 0

    while True:
        attempt += 1
        try:
            return await func()
        except Exception as e:
            if not config.should_retry(e, attempt):
                logger.debug("not retrying %s on attempt %d", type(e).__name__, attempt)
                raise

            delay = config.calculate_delay(attempt)
            logger.warning(
                "attempt %d/%d failed: %s. Retrying in %.1fs...",
                attempt,
                config.max_attempts,
                e,
                delay,
            )

            await asyncio.sleep(delay)


__all__ = [
    "RetryConfig",
    "with_retry",
]
