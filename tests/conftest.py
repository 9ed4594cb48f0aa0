"""
Shared fixtures and fakes for the fleet tests.
"""

import asyncio
import json
from typing import Any, Callable, List, Optional, Tuple

import pytest
from websockets.protocol import State

from worker_fleet.core.config import Settings
from worker_fleet.models import Account, ClaimResult, ClaimState, Credential, PointTotal


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until `predicate` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


class ManualSleep:
    """
    Sleep replacement driven by the test.

    Delays accepted by `instant` return right away (after yielding once);
    every other call blocks until released.
    """

    def __init__(self, instant: Callable[[float], bool] = lambda delay: False):
        self.calls: List[float] = []
        self._instant = instant
        self._waiters: List[Tuple[float, asyncio.Future]] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        if self._instant(delay):
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((delay, future))
        await future

    def pending(self, delay: Optional[float] = None) -> int:
        return sum(
            1 for d, f in self._waiters
            if not f.done() and (delay is None or d == delay)
        )

    def release(self, delay: Optional[float] = None) -> int:
        released = 0
        remaining = []
        for d, future in self._waiters:
            if future.done():
                continue
            if delay is None or d == delay:
                future.set_result(None)
                released += 1
            else:
                remaining.append((d, future))
        self._waiters = remaining
        return released


class FakeConnection:
    """In-memory stand-in for a websockets client connection."""

    _CLOSE = object()

    def __init__(self):
        self.state = State.OPEN
        self.sent: List[dict] = []
        self.close_calls = 0
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, payload: str) -> None:
        self.sent.append(json.loads(payload))

    async def close(self) -> None:
        self.close_calls += 1
        if self.state is not State.CLOSED:
            self.state = State.CLOSED
            self._inbox.put_nowait(self._CLOSE)

    def feed(self, raw: Any) -> None:
        """Deliver an inbound frame."""
        self._inbox.put_nowait(raw)

    def drop(self) -> None:
        """Simulate the remote side going away."""
        self.state = State.CLOSED
        self._inbox.put_nowait(self._CLOSE)

    def sent_types(self) -> List[str]:
        return [message["msgType"] for message in self.sent]

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbox.get()
        if item is self._CLOSE:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """Connect function that hands out FakeConnections."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.connections: List[FakeConnection] = []

    async def __call__(self, url: str, proxy: Optional[str] = None) -> FakeConnection:
        self.calls.append((url, proxy))
        if self.failures > 0:
            self.failures -= 1
            raise OSError("Connection refused")
        connection = FakeConnection()
        self.connections.append(connection)
        return connection


class FakeRewardsClient:
    """Scripted reward client; the last scripted value repeats."""

    def __init__(
        self,
        credentials: List[Optional[Credential]],
        claim_states: Optional[List[Any]] = None,
        point_results: Optional[List[Any]] = None,
    ):
        self.credentials = list(credentials)
        self.claim_states = list(claim_states or [ClaimState(claimed=True)])
        self.point_results = list(point_results or [PointTotal(total_heartbeats=1)])
        self.calls: List[str] = []
        self.closed = False

    @staticmethod
    def _next(values: List[Any]) -> Any:
        return values.pop(0) if len(values) > 1 else values[0]

    async def acquire_credential(self, address: str) -> Optional[Credential]:
        self.calls.append("acquire")
        return self._next(self.credentials)

    async def fetch_claim_state(self, credential: Credential) -> Optional[ClaimState]:
        self.calls.append("claim_state")
        value = self._next(self.claim_states)
        if isinstance(value, Exception):
            raise value
        return value

    async def trigger_claim(self, credential: Credential) -> Optional[ClaimResult]:
        self.calls.append("trigger_claim")
        return ClaimResult(payload={"claimed": True})

    async def fetch_point_total(self, credential: Credential) -> Optional[PointTotal]:
        self.calls.append("points")
        value = self._next(self.point_results)
        if isinstance(value, Exception):
            raise value
        return value

    async def close(self) -> None:
        self.closed = True


class FakeSession:
    """Session stand-in that stays open until closed."""

    def __init__(self, account: Account, credential: Credential):
        self.account = account
        self.credential = credential
        self.close_calls = 0
        self.started = False
        self._closed = asyncio.Event()

    async def run(self) -> None:
        self.started = True
        await self._closed.wait()

    async def close(self) -> None:
        self.close_calls += 1
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()


@pytest.fixture
def settings() -> Settings:
    """Settings with the production timings and local endpoints."""
    return Settings(
        api_endpoint="http://api.test",
        rewards_endpoint="http://rewards.test",
        ws_endpoint="wss://socket.test/ws/v1",
        log_file=None,
    )


@pytest.fixture
def account() -> Account:
    return Account(address="0xAAA", index=1)


@pytest.fixture
def credential() -> Credential:
    return Credential(token="t" * 40 + "SUFFIX99")
