"""
WebSocket session driver for one account.

WorkerSession feeds connection events into the pure state machine and does
the I/O each state calls for:
- CONNECTING: open the socket through the account's egress
- AWAITING_REGISTRATION: send exactly one REGISTER message
- HEARTBEATING: send HEARTBEAT on a fixed cadence, acknowledge JOB messages
- CLOSING: cancel the heartbeat timer; reconnect after a delay unless the
  owner asked for the close
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlencode

import structlog
from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from worker_fleet.core.config import Settings, settings as default_settings
from worker_fleet.core.retry import SleepFunc
from worker_fleet.models import Account, CapacityProfile, Credential
from worker_fleet.services.egress import Egress
from .messages import JobAssignment, OutboundMessage, SessionIdentity
from .state import SessionEvent, SessionSnapshot, SessionState, transition


logger = structlog.get_logger(__name__)

ConnectFunc = Callable[..., Awaitable[Any]]


class WorkerSession:
    """One persistent orchestration connection for one account."""

    def __init__(
        self,
        account: Account,
        credential: Credential,
        config: Optional[Settings] = None,
        connect: Optional[ConnectFunc] = None,
        sleep: Optional[SleepFunc] = None,
        capacity: Optional[CapacityProfile] = None,
    ):
        self.account = account
        self.credential = credential
        self.config = config or default_settings
        self.identity = SessionIdentity.for_address(
            account.address,
            host=self.config.worker_host,
            worker_type=self.config.worker_type,
        )
        self.capacity = capacity or CapacityProfile.generate()
        self.egress = Egress.parse(account.egress)

        self._connect = connect or websocket_connect
        self._sleep = sleep or asyncio.sleep
        self.snapshot = SessionSnapshot()
        self._connection: Optional[Any] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._close_requested = asyncio.Event()
        self._closed = asyncio.Event()
        self._running = False

        self.registrations_sent = 0
        self.heartbeats_sent = 0
        self.jobs_acknowledged = 0

        self.logger = logger.bind(account=account.index, worker_id=self.identity.worker_id)

    @property
    def state(self) -> SessionState:
        return self.snapshot.state

    @property
    def url(self) -> str:
        return f"{self.config.orchestrator_url}?{urlencode({'authToken': self.credential.token})}"

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def _apply(self, event: SessionEvent) -> SessionSnapshot:
        previous = self.snapshot.state
        self.snapshot = transition(self.snapshot, event)
        if self.snapshot.state is not previous:
            self.logger.debug(
                "Session state changed",
                session_event=event.value,
                previous=previous.value,
                state=self.snapshot.state.value,
            )
        return self.snapshot

    async def run(self) -> None:
        """Connect and keep reconnecting until close() is called."""
        if self.snapshot.is_terminal:
            self._closed.set()
            return

        self._running = True
        try:
            self._apply(SessionEvent.CONNECT)
            while True:
                await self._connect_and_serve()

                if not self.snapshot.should_reconnect:
                    self.logger.warning("WebSocket closed, no reconnect")
                    break

                self.logger.warning(
                    f"WebSocket closed, reconnecting in {self.config.reconnect_delay:g}s..."
                )
                await self._wait_before_reconnect()
                if self.snapshot.is_terminal:
                    self.logger.warning("WebSocket closed, no reconnect")
                    break
                self._apply(SessionEvent.RECONNECT_DUE)
        finally:
            self._running = False
            await self._cancel_heartbeat()
            self._closed.set()

    async def close(self) -> None:
        """Close the connection intentionally; the session will not reconnect."""
        if self.snapshot.is_terminal:
            return

        self.logger.info("Closing WebSocket session")
        self._apply(SessionEvent.CLOSE_REQUESTED)
        self._close_requested.set()

        connection = self._connection
        if connection is not None:
            await connection.close()

        if not self._running and self.snapshot.is_terminal:
            self._closed.set()

    async def wait_closed(self) -> None:
        """Wait until the session has closed for good."""
        await self._closed.wait()

    async def _wait_before_reconnect(self) -> None:
        sleeper = asyncio.ensure_future(self._sleep(self.config.reconnect_delay))
        closer = asyncio.ensure_future(self._close_requested.wait())
        try:
            await asyncio.wait({sleeper, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in (sleeper, closer):
                if not waiter.done():
                    waiter.cancel()

    async def _connect_and_serve(self) -> None:
        proxy = self.egress.websocket_proxy if self.egress else None
        try:
            connection = await self._connect(self.url, proxy=proxy)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error("WebSocket error", error=str(e) or type(e).__name__)
            self._apply(SessionEvent.CONNECTION_LOST)
            self._apply(SessionEvent.CLOSED)
            return

        self._connection = connection
        try:
            if self.snapshot.close_requested:
                await connection.close()
                return

            self.logger.info("WebSocket connection established")
            self._apply(SessionEvent.OPENED)

            self.logger.info("Trying to register worker ID...")
            if await self._send(self.identity.register_message()):
                self.registrations_sent += 1
            if self.snapshot.state is not SessionState.AWAITING_REGISTRATION:
                return
            self._apply(SessionEvent.REGISTERED)
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

            await self._receive_loop(connection)
        finally:
            await self._cancel_heartbeat()
            self._connection = None
            await connection.close()
            self._apply(SessionEvent.CONNECTION_LOST)
            self._apply(SessionEvent.CLOSED)

    async def _receive_loop(self, connection: Any) -> None:
        try:
            async for raw in connection:
                await self._handle_message(raw)
        except ConnectionClosed as e:
            self.logger.warning("WebSocket connection lost", code=e.rcvd.code if e.rcvd else None)
        except OSError as e:
            self.logger.error("WebSocket error", error=str(e))

    async def _handle_message(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Error parsing WebSocket message: {e}")
            return

        self.logger.info("Received message", message=message)

        job = JobAssignment.from_message(message)
        if job is None:
            return

        if await self._send(self.identity.job_assigned_message(job)):
            self.jobs_acknowledged += 1
            self.logger.info("Job acknowledged", ref=job.uuid)

    async def _heartbeat_loop(self) -> None:
        while self.snapshot.can_heartbeat:
            await self._sleep(self.config.heartbeat_interval)
            if not self.snapshot.can_heartbeat:
                return
            self.logger.info("Sending heartbeat...")
            if await self._send(self.identity.heartbeat_message(self.capacity)):
                self.heartbeats_sent += 1

    async def _cancel_heartbeat(self) -> None:
        task = self._heartbeat_task
        self._heartbeat_task = None
        if task is None:
            return
        if task.done():
            if not task.cancelled() and task.exception() is not None:
                error = task.exception()
                self.logger.error("Heartbeat loop failed", error=str(error) or type(error).__name__)
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _send(self, message: OutboundMessage) -> bool:
        """Send a message if the socket is open; log and drop it otherwise."""
        payload = message.to_json()
        connection = self._connection
        if connection is None or getattr(connection, "state", None) is not State.OPEN:
            self.logger.error("WebSocket not open, cannot send", message=payload)
            return False

        try:
            await connection.send(payload)
        except ConnectionClosed:
            self.logger.error("WebSocket closed while sending", message=payload)
            return False
        return True
