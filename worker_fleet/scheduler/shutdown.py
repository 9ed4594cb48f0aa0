"""
Process-wide shutdown coordination.

Supervisors register a teardown callback; an interrupt or termination
signal runs every registered callback exactly once.
"""

import asyncio
import signal
from typing import Awaitable, Callable, List, Optional

import structlog


logger = structlog.get_logger(__name__)

ShutdownCallback = Callable[[], Awaitable[None]]

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownCoordinator:
    """Single shutdown entry point shared by the whole fleet."""

    def __init__(self):
        self._callbacks: List[ShutdownCallback] = []
        self._triggered = False
        self._done: Optional[asyncio.Event] = None
        self._pending: Optional[asyncio.Task] = None
        self._signals_installed = False
        self.reason: Optional[str] = None

    def _done_event(self) -> asyncio.Event:
        if self._done is None:
            self._done = asyncio.Event()
        return self._done

    @property
    def triggered(self) -> bool:
        return self._triggered

    def register(self, callback: ShutdownCallback) -> None:
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister(self, callback: ShutdownCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def trigger(self, reason: str = "shutdown") -> None:
        """Run every registered callback. Later calls are no-ops."""
        done = self._done_event()
        if self._triggered:
            return
        self._triggered = True
        self.reason = reason

        logger.warning(f"Received {reason}. Exiting...", callbacks=len(self._callbacks))
        results = await asyncio.gather(
            *(callback() for callback in list(self._callbacks)),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                logger.error("Shutdown callback failed", error=str(result) or type(result).__name__)

        done.set()
        logger.info("Shutdown complete")

    def request(self, reason: str = "shutdown") -> None:
        """Schedule trigger() from synchronous code such as a signal handler."""
        if self._triggered or self._pending is not None:
            return
        self._pending = asyncio.get_running_loop().create_task(self.trigger(reason))

    async def wait(self) -> None:
        """Wait until every callback has finished."""
        await self._done_event().wait()

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Bind SIGINT and SIGTERM to a single shutdown, once per coordinator."""
        if self._signals_installed:
            return
        loop = loop or asyncio.get_running_loop()

        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request, sig.name)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                def signal_handler(signum, frame, loop=loop):
                    loop.call_soon_threadsafe(self.request, signal.Signals(signum).name)

                signal.signal(sig, signal_handler)

        self._signals_installed = True
