"""
Retry policy and cooperative cancellation for the polling loops.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

# Sleep implementation: (event, timeout) -> True if the event was set.
SleepFunc = Callable[[asyncio.Event, float], Awaitable[bool]]


async def _wait_event(event: asyncio.Event, timeout: float) -> bool:
    if timeout <= 0:
        # Still yield so tight loops let other tasks run.
        await asyncio.sleep(0)
        return event.is_set()
    try:
        await asyncio.wait_for(event.wait(), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        return False


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    Attributes:
        base_delay: Delay before the second attempt (seconds)
        max_delay: Upper bound for any single delay (seconds)
        multiplier: Growth factor per attempt (1.0 gives a fixed cadence)
    """
    base_delay: float = 0.5
    max_delay: float = 10.0
    multiplier: float = 2.0

    def delay(self, attempt: int) -> float:
        """Delay to wait after the given (zero-based) failed attempt."""
        try:
            delay = self.base_delay * (self.multiplier ** attempt)
        except OverflowError:
            return self.max_delay
        return min(delay, self.max_delay)


class CancelToken:
    """
    Cancellation signal passed through every suspension point of a session.

    Waiting on the token is interruptible: ``sleep()`` returns as soon as
    ``cancel()`` is called.
    """

    def __init__(self, sleep: Optional[SleepFunc] = None):
        self._event = asyncio.Event()
        self._sleep = sleep or _wait_event

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, delay: float) -> bool:
        """
        Wait for ``delay`` seconds or until cancelled.

        Returns:
            True if the token was cancelled before or during the wait
        """
        if self._event.is_set():
            return True
        return await self._sleep(self._event, delay)

    async def wait(self) -> None:
        await self._event.wait()
