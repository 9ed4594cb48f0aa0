"""
Account supervision, fleet orchestration and shutdown.
"""

from .orchestrator import FleetOrchestrator, build_accounts
from .periodic import PeriodicTask
from .shutdown import ShutdownCoordinator
from .supervisor import AccountSupervisor

__all__ = [
    "AccountSupervisor",
    "FleetOrchestrator",
    "PeriodicTask",
    "ShutdownCoordinator",
    "build_accounts",
]
