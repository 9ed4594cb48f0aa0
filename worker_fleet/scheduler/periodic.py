"""
Cancellable periodic timers for the per-account poll loops.
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import structlog

from worker_fleet.core.retry import SleepFunc


logger = structlog.get_logger(__name__)


class PeriodicTask:
    """Runs `func` every `interval_seconds` until cancelled."""

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        sleep: Optional[SleepFunc] = None,
        log: Optional[Any] = None,
    ):
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self.last_run: Optional[datetime] = None
        self.run_count = 0
        self.error_count = 0
        self.last_error: Optional[str] = None
        self._sleep = sleep or asyncio.sleep
        self._task: Optional[asyncio.Task] = None
        self.logger = log or logger

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Schedule the timer; the first run happens one interval from now."""
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._loop(), name=f"periodic-{self.name}")
        return self._task

    async def _loop(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            await self.run_once()

    async def run_once(self) -> None:
        """Execute the task once; failures are logged and the timer keeps going."""
        start_time = datetime.utcnow()
        try:
            await self.func()
            self.run_count += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.error_count += 1
            self.last_error = str(e)
            self.logger.error(
                f"Task failed: {self.name}",
                error=str(e),
                error_count=self.error_count,
            )
        finally:
            self.last_run = start_time

    async def cancel(self) -> None:
        """Stop the timer and wait for it to unwind."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        # A task cancelling itself from inside func must not await itself
        if task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
