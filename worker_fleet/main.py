#!/usr/bin/env python3
"""
Command line entry point for the worker fleet.
"""

import asyncio
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from worker_fleet import __version__
from worker_fleet.core.config import Settings, get_settings
from worker_fleet.core.exceptions import ConfigurationError
from worker_fleet.core.logging import get_logger, setup_logging
from worker_fleet.scheduler import FleetOrchestrator, ShutdownCoordinator, build_accounts
from worker_fleet.utils.files import read_lines


console = Console()
logger = get_logger(__name__)
app = typer.Typer(help="Worker fleet commands")


def show_banner(config: Settings) -> None:
    """Print the startup banner."""
    console.print(
        Panel.fit(
            f"[bold cyan]{config.app_name}[/bold cyan] v{__version__}\n"
            f"API: {config.api_endpoint}\n"
            f"Rewards: {config.rewards_endpoint}\n"
            f"Socket: {config.ws_endpoint}",
            title="worker-fleet",
            border_style="cyan",
        )
    )


def load_config(
    wallets: Optional[str] = None,
    proxies: Optional[str] = None,
    log_level: Optional[str] = None,
) -> Settings:
    """Apply command line overrides on top of the environment settings."""
    overrides: Dict[str, str] = {}
    if wallets:
        overrides["wallets_file"] = wallets
    if proxies:
        overrides["proxy_file"] = proxies
    if log_level:
        overrides["log_level"] = log_level
    if not overrides:
        return get_settings()
    return Settings(**overrides)


async def run_fleet(addresses: List[str], egresses: List[str], config: Settings) -> None:
    """Run every account until SIGINT/SIGTERM."""
    coordinator = ShutdownCoordinator()
    coordinator.install_signal_handlers()

    orchestrator = FleetOrchestrator(
        addresses,
        egresses,
        config=config,
        coordinator=coordinator,
    )
    await orchestrator.run()


@app.command()
def run(
    wallets: Optional[str] = typer.Option(None, "--wallets", help="Path to the wallet list"),
    proxies: Optional[str] = typer.Option(None, "--proxies", help="Path to the proxy list"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level override"),
):
    """Run the fleet until interrupted."""
    config = load_config(wallets, proxies, log_level)
    setup_logging(config=config)
    show_banner(config)

    addresses = read_lines(config.wallets_file)
    egresses = read_lines(config.proxy_file)

    try:
        asyncio.run(run_fleet(addresses, egresses, config))
    except ConfigurationError as e:
        logger.error(e.message)
        raise typer.Exit(code=1)


@app.command()
def accounts(
    wallets: Optional[str] = typer.Option(None, "--wallets", help="Path to the wallet list"),
    proxies: Optional[str] = typer.Option(None, "--proxies", help="Path to the proxy list"),
):
    """Show the configured accounts and their proxy assignment."""
    config = load_config(wallets, proxies)
    fleet = build_accounts(read_lines(config.wallets_file), read_lines(config.proxy_file))

    if not fleet:
        console.print("❌ No wallets found in file!")
        raise typer.Exit(code=1)

    table = Table(title=f"Accounts ({len(fleet)})")
    table.add_column("#", justify="right")
    table.add_column("Address")
    table.add_column("Proxy")
    for account in fleet:
        table.add_row(str(account.index), account.address, account.egress_label)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
