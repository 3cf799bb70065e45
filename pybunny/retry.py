"""Retry policy shared by the transfer scheduler, the remote fetcher and purges."""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .exceptions import BunnyAPIError, TransientNetworkError
from .utils import DEFAULT_MAX_ATTEMPTS, DEFAULT_MAX_RETRY_DELAY, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with jitter and a fixed attempt ceiling."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    """Total attempts, including the first one"""

    base_delay: float = DEFAULT_RETRY_DELAY
    """Delay after the first failed attempt, in seconds"""

    max_delay: float = DEFAULT_MAX_RETRY_DELAY
    """Upper bound for a single delay"""

    jitter: float = 0.25
    """Relative jitter, +/- this fraction of the computed delay"""

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """Determine if an operation should be attempted again.

        Args:
            error: The exception raised by the attempt
            attempt: Number of attempts made so far (1-based)

        Returns:
            True if the error is retryable and the ceiling is not reached
        """
        if attempt >= self.max_attempts:
            return False
        return isinstance(error, BunnyAPIError) and error.retryable

    def delay_for(self, attempt: int, error: Optional[Exception] = None) -> float:
        """Calculate delay before the next attempt.

        A ``Retry-After`` value carried by a throttling error takes
        precedence over the computed backoff.

        Args:
            attempt: Number of attempts made so far (1-based)
            error: The error that triggered the retry

        Returns:
            Delay in seconds
        """
        if isinstance(error, TransientNetworkError) and error.retry_after is not None:
            return min(error.retry_after, self.max_delay)

        base = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        # Add jitter to avoid thundering herd
        return max(0.0, base + base * self.jitter * (2 * random.random() - 1))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str = "request",
    sleep: Sleeper = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the policy gives up.

    Non-retryable errors propagate immediately; the last retryable error
    propagates once the attempt ceiling is reached.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except BunnyAPIError as e:
            if not policy.should_retry(e, attempt):
                raise
            delay = policy.delay_for(attempt, e)
            logger.debug(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                description,
                attempt,
                policy.max_attempts,
                delay,
                e,
            )
            await sleep(delay)
