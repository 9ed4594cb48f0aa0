"""
Per-account control loop.

Each cycle:
1. acquire a credential (fixed-delay retry, unbounded)
2. bootstrap: claim the daily reward if available, log the point total
3. open the WebSocket session
4. poll points every 10 minutes; a 401 invalidates the credential and
   restarts the cycle
5. poll claim details every 60 minutes and claim when possible

Errors inside a cycle are logged and the cycle is retried after a fixed
delay. The loop only ends when the process shuts down.
"""

import asyncio
from typing import Callable, List, Optional

import structlog

from worker_fleet.core.config import Settings, settings as default_settings
from worker_fleet.core.exceptions import UnauthorizedError
from worker_fleet.core.retry import RetryPolicy, SleepFunc
from worker_fleet.models import Account, Credential
from worker_fleet.services.rewards_client import RewardsClient
from worker_fleet.session import WorkerSession
from .periodic import PeriodicTask


logger = structlog.get_logger(__name__)

SessionFactory = Callable[[Account, Credential], WorkerSession]


class AccountSupervisor:
    """Drives one account through credential, session and polling cycles."""

    def __init__(
        self,
        account: Account,
        config: Optional[Settings] = None,
        client: Optional[RewardsClient] = None,
        session_factory: Optional[SessionFactory] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.account = account
        self.config = config or default_settings
        self._sleep = sleep or asyncio.sleep
        self.client = client or RewardsClient(
            egress=account.egress,
            config=self.config,
            account_index=account.index,
        )
        self._session_factory = session_factory or self._default_session

        self.credential_retry = RetryPolicy(
            self.config.credential_retry_delay, sleep=self._sleep, name="credential"
        )
        self.cycle_retry = RetryPolicy(
            self.config.cycle_retry_delay, sleep=self._sleep, name="cycle"
        )

        self.credential: Optional[Credential] = None
        self.session: Optional[WorkerSession] = None
        self.connected = False
        self.cycles = 0

        self._session_task: Optional[asyncio.Task] = None
        self._timers: List[PeriodicTask] = []
        self._credential_invalid = asyncio.Event()
        self._stopping = asyncio.Event()

        self.logger = logger.bind(account=account.index)

    def _default_session(self, account: Account, credential: Credential) -> WorkerSession:
        return WorkerSession(account, credential, config=self.config)

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    async def run(self) -> None:
        """Run cycles until shutdown."""
        self.logger.info(
            f"Account #{self.account.index} => Address: {self.account.address} "
            f"| Proxy: {self.account.egress_label}"
        )
        try:
            while not self.stopping:
                try:
                    await self._run_cycle()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.logger.error("Main cycle error", error=str(e) or type(e).__name__)
                    self.connected = False
                    await self._teardown()
                    if self.stopping:
                        break
                    await self.cycle_retry.wait()
        finally:
            await self._teardown()
            await self.client.close()

    async def shutdown(self) -> None:
        """Stop timers and close the session for good."""
        if self.stopping:
            return
        self.logger.warning(f"Stopping account #{self.account.index}")
        self._stopping.set()
        await self._teardown()

    async def _run_cycle(self) -> None:
        self.cycles += 1
        self._credential_invalid.clear()

        credential = await self._acquire_credential()
        if self.stopping:
            return
        self.credential = credential
        self.logger.info(f"Login success. token={credential.display}")

        await self._bootstrap(credential)
        if self.stopping:
            return

        self._open_session(credential)
        self._start_timers(credential)

        await self._wait_for_cycle_end()
        await self._teardown()

    async def _acquire_credential(self) -> Optional[Credential]:
        """Retry until a token arrives; returns None only when shutting down."""
        return await self.credential_retry.run(
            lambda: self.client.acquire_credential(self.account.address),
            accept=lambda credential: credential is not None or self.stopping,
            on_retry=lambda attempts: self.logger.warning(
                f"Retry generating token in {self.credential_retry.delay:g}s...",
                attempts=attempts,
            ),
        )

    async def _bootstrap(self, credential: Credential) -> None:
        await self._check_claim(credential)

        try:
            await self.client.fetch_point_total(credential)
        except UnauthorizedError:
            self.logger.warning("Point total unavailable right after login")

    async def _check_claim(self, credential: Credential) -> None:
        claim_state = await self.client.fetch_claim_state(credential)
        if claim_state is not None and claim_state.should_claim:
            self.logger.info("Trying to claim daily rewards...")
            await self.client.trigger_claim(credential)

    def _open_session(self, credential: Credential) -> None:
        self.session = self._session_factory(self.account, credential)
        self._session_task = asyncio.create_task(
            self.session.run(), name=f"session-{self.account.index}"
        )
        self.connected = True

    def _start_timers(self, credential: Credential) -> None:
        async def poll_points() -> None:
            self.logger.info("Fetching total points...")
            try:
                await self.client.fetch_point_total(credential)
            except UnauthorizedError:
                self.logger.warning("Token expired/invalid, need re-login...")
                self._credential_invalid.set()

        async def poll_claim() -> None:
            self.logger.info("Checking daily rewards...")
            await self._check_claim(credential)

        self._timers = [
            PeriodicTask(
                "points",
                poll_points,
                self.config.points_poll_interval,
                sleep=self._sleep,
                log=self.logger,
            ),
            PeriodicTask(
                "claim",
                poll_claim,
                self.config.claim_poll_interval,
                sleep=self._sleep,
                log=self.logger,
            ),
        ]
        for timer in self._timers:
            timer.start()

    async def _wait_for_cycle_end(self) -> None:
        """Block until the credential is invalidated, shutdown starts or the session dies."""
        invalid = asyncio.ensure_future(self._credential_invalid.wait())
        stopping = asyncio.ensure_future(self._stopping.wait())
        waiters = {invalid, stopping}
        if self._session_task is not None:
            waiters.add(self._session_task)

        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in (invalid, stopping):
                if not waiter.done():
                    waiter.cancel()

        session_task = self._session_task
        if session_task is not None and session_task in done and not self.stopping:
            if not session_task.cancelled() and session_task.exception() is not None:
                raise session_task.exception()
            self.logger.warning("Session ended unexpectedly, starting a new cycle")

    async def _teardown(self) -> None:
        """Cancel timers and close the session; safe to call more than once."""
        timers, self._timers = self._timers, []
        for timer in timers:
            await timer.cancel()

        session, self.session = self.session, None
        session_task, self._session_task = self._session_task, None
        if session is not None:
            await session.close()
            if session_task is not None:
                await asyncio.gather(session_task, return_exceptions=True)
            else:
                await session.wait_closed()

        self.connected = False
