"""Retry policy for per-reference network operations."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from mdassets.config.constants import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_BASE_DELAY

BackoffFunc = Callable[[int, float], float]
SleepFunc = Callable[[float], Awaitable[None]]


def linear_backoff(attempt: int, base_delay: float) -> float:
    """Delay after the given failed attempt (1-based): attempt x base delay."""
    return attempt * base_delay


async def _no_sleep(_seconds: float) -> None:
    return None


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts a reference gets and how long to wait between them.

    Both the backoff function and the sleep coroutine are injectable so tests
    can run the retry loop without real delays.
    """

    max_attempts: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_RETRY_BASE_DELAY
    backoff: BackoffFunc = linear_backoff
    sleep: SleepFunc = field(default=asyncio.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def delay_for(self, attempt: int) -> float:
        """Get the delay to wait after a failed attempt."""
        return max(0.0, self.backoff(attempt, self.base_delay))

    def should_retry(self, attempt: int) -> bool:
        """Whether another attempt is allowed after ``attempt`` failed."""
        return attempt < self.max_attempts

    async def wait(self, attempt: int) -> float:
        """Sleep for the backoff delay of ``attempt`` and return it."""
        delay = self.delay_for(attempt)
        if delay > 0:
            await self.sleep(delay)
        return delay

    @classmethod
    def immediate(cls, max_attempts: int = DEFAULT_MAX_RETRIES) -> "RetryPolicy":
        """A policy that never sleeps between attempts."""
        return cls(max_attempts=max_attempts, base_delay=0.0, sleep=_no_sleep)
