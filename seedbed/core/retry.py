"""Bounded exponential backoff for provider calls."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from seedbed.core.exception import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for a provider call.

    Attributes:
        max_attempts: Attempts including the first try.
        base_delay: Delay before the second attempt, in seconds.
        multiplier: Backoff multiplier applied per attempt.
        max_delay: Upper bound for any single delay.
        jitter: Randomise each delay by +/-25%.
    """

    max_attempts: int = 3
    base_delay: float = 0.25
    multiplier: float = 2.0
    max_delay: float = 5.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds after the given 0-based failed attempt."""
        delay = min(self.base_delay * (self.multiplier**attempt), self.max_delay)
        if self.jitter:
            delay *= 0.75 + random.random() * 0.5
        return delay


class RetryExhaustedError(ProviderError):
    """All attempts of a retried call failed."""

    def __init__(self, message: str, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message, provider=getattr(last_error, "provider", None))


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    timeout: float | None = None,
    description: str = "call",
) -> T:
    """Await ``func()`` with a per-attempt timeout and backoff.

    Timeouts and ``ProviderError`` count as failed attempts; any other
    exception propagates immediately.

    Raises:
        RetryExhaustedError: When every attempt failed.
    """
    last_error: Exception | None = None
    attempts = max(1, policy.max_attempts)

    for attempt in range(attempts):
        try:
            if timeout is None:
                return await func()
            return await asyncio.wait_for(func(), timeout=timeout)
        except TimeoutError as e:
            last_error = ProviderError(f"{description} timed out after {timeout}s")
            last_error.__cause__ = e
        except ProviderError as e:
            last_error = e

        if attempt < attempts - 1:
            delay = policy.delay_for(attempt)
            logger.debug(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                description,
                attempt + 1,
                attempts,
                last_error,
                delay,
            )
            await asyncio.sleep(delay)

    raise RetryExhaustedError(
        f"{description} failed after {attempts} attempts: {last_error}",
        attempts=attempts,
        last_error=last_error,
    )
