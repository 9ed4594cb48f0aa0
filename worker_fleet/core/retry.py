"""
Retry policies used by the HTTP client and the account supervisor.

Two shapes are needed:
- LinearBackoff: bounded attempts with a linearly increasing delay
  (HTTP transport layer)
- RetryPolicy: fixed delay, unbounded by default (credential acquisition
  and the supervisor's outer cycle)

Both take an injectable sleep coroutine so tests can run without waiting.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .exceptions import WorkerFleetException


SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class LinearBackoff:
    """Bounded retries where the n-th retry waits n * delay seconds."""
    retries: int = 3
    delay: float = 1.0

    def delay_for(self, retry_number: int) -> float:
        return retry_number * self.delay

    def should_retry(self, retry_number: int) -> bool:
        """Whether retry number `retry_number` (1-based) is allowed."""
        return retry_number <= self.retries


class RetryPolicy:
    """
    Fixed-delay retry policy.

    With max_attempts=None the policy never gives up; failure is treated as
    recoverable flakiness rather than a fatal condition.
    """

    def __init__(
        self,
        delay: float,
        sleep: Optional[SleepFunc] = None,
        max_attempts: Optional[int] = None,
        name: str = "retry",
    ):
        self.delay = delay
        self.max_attempts = max_attempts
        self.name = name
        self._sleep = sleep or asyncio.sleep

    def exhausted(self, attempts: int) -> bool:
        return self.max_attempts is not None and attempts >= self.max_attempts

    async def wait(self) -> None:
        await self._sleep(self.delay)

    async def run(
        self,
        func: Callable[[], Awaitable[Any]],
        accept: Callable[[Any], bool] = lambda result: result is not None,
        on_retry: Optional[Callable[[int], None]] = None,
    ) -> Any:
        """
        Call `func` until `accept(result)` holds.

        Returns the first accepted result. Raises WorkerFleetException only
        when a bounded policy runs out of attempts.
        """
        attempts = 0
        while True:
            result = await func()
            attempts += 1
            if accept(result):
                return result

            if self.exhausted(attempts):
                raise WorkerFleetException(
                    f"{self.name} gave up after {attempts} attempts",
                    "RETRY_EXHAUSTED",
                    {"attempts": attempts},
                )

            if on_retry is not None:
                on_retry(attempts)
            await self.wait()
