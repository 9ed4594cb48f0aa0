"""
Fleet orchestrator: one supervisor per account, all running concurrently.
"""

import asyncio
from typing import Callable, List, Optional, Sequence

import structlog

from worker_fleet.core.config import Settings, settings as default_settings
from worker_fleet.core.exceptions import ConfigurationError
from worker_fleet.models import Account
from worker_fleet.services.egress import Egress, assign_egress
from .shutdown import ShutdownCoordinator
from .supervisor import AccountSupervisor


logger = structlog.get_logger(__name__)

SupervisorFactory = Callable[[Account], AccountSupervisor]


def _resolve_egress(position: int, egresses: Sequence[str]) -> Optional[str]:
    uri = assign_egress(position, egresses)
    if uri is not None and Egress.parse(uri) is None:
        logger.warning("Unsupported proxy scheme, connecting directly", proxy=uri)
        return None
    return uri


def build_accounts(addresses: Sequence[str], egresses: Sequence[str]) -> List[Account]:
    """
    Accounts in input order, 1-based, with egress assigned round-robin.

    A proxy with an unrecognised scheme leaves its accounts on a direct
    connection.
    """
    return [
        Account(address=address, index=position + 1, egress=_resolve_egress(position, egresses))
        for position, address in enumerate(addresses)
    ]


class FleetOrchestrator:
    """Fans out account supervisors and propagates shutdown to all of them."""

    def __init__(
        self,
        addresses: Sequence[str],
        egresses: Sequence[str] = (),
        config: Optional[Settings] = None,
        coordinator: Optional[ShutdownCoordinator] = None,
        supervisor_factory: Optional[SupervisorFactory] = None,
    ):
        self.config = config or default_settings
        self.egresses = tuple(egresses)
        self.accounts = build_accounts(addresses, self.egresses)
        self.coordinator = coordinator or ShutdownCoordinator()
        self._supervisor_factory = supervisor_factory or self._default_supervisor
        self.supervisors: List[AccountSupervisor] = []
        self.tasks: List[asyncio.Task] = []

    def _default_supervisor(self, account: Account) -> AccountSupervisor:
        return AccountSupervisor(account, config=self.config)

    async def run(self) -> None:
        """
        Run every supervisor until shutdown.

        Raises:
            ConfigurationError: no accounts are configured
        """
        if not self.accounts:
            raise ConfigurationError("No wallets found in file!")

        logger.info(f"Starting program for all accounts. Count: {len(self.accounts)}")

        self.supervisors = [self._supervisor_factory(account) for account in self.accounts]
        for supervisor in self.supervisors:
            self.coordinator.register(supervisor.shutdown)

        self.tasks = [
            asyncio.create_task(supervisor.run(), name=f"account-{supervisor.account.index}")
            for supervisor in self.supervisors
        ]
        shutdown_waiter = asyncio.create_task(self.coordinator.wait())

        try:
            pending = set(self.tasks)
            while pending and not shutdown_waiter.done():
                done, _ = await asyncio.wait(
                    pending | {shutdown_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    if task is shutdown_waiter:
                        continue
                    pending.discard(task)
                    self._report_exit(task)
        finally:
            if not shutdown_waiter.done():
                shutdown_waiter.cancel()
            for task in self.tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*self.tasks, shutdown_waiter, return_exceptions=True)
            for supervisor in self.supervisors:
                self.coordinator.unregister(supervisor.shutdown)

        logger.info("All accounts stopped")

    def _report_exit(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Account supervisor cancelled", task=task.get_name())
        elif task.exception() is not None:
            logger.error(
                "Account supervisor crashed",
                task=task.get_name(),
                error=str(task.exception()),
            )
        else:
            logger.warning("Account supervisor exited", task=task.get_name())

    async def shutdown(self, reason: str = "shutdown") -> None:
        await self.coordinator.trigger(reason)
