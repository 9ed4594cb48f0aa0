"""
Test fleet fan-out, egress assignment and shutdown propagation.
"""

import asyncio

import pytest

from conftest import wait_until
from worker_fleet.core.exceptions import ConfigurationError
from worker_fleet.scheduler import FleetOrchestrator, ShutdownCoordinator, build_accounts


class FakeSupervisor:
    def __init__(self, account, exit_on_start=False):
        self.account = account
        self.started = False
        self.shutdown_calls = 0
        self._exit_on_start = exit_on_start
        self._stopped = asyncio.Event()

    async def run(self):
        self.started = True
        if self._exit_on_start:
            return
        await self._stopped.wait()

    async def shutdown(self):
        self.shutdown_calls += 1
        self._stopped.set()


class SupervisorRecorder:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.supervisors = []

    def __call__(self, account):
        supervisor = FakeSupervisor(account, **self.kwargs)
        self.supervisors.append(supervisor)
        return supervisor


@pytest.mark.parametrize("proxy_count", [0, 1, 2, 3, 4])
def test_egress_assignment_wraps(proxy_count):
    addresses = [f"0x{n:03d}" for n in range(7)]
    proxies = [f"http://p{n}" for n in range(proxy_count)]

    accounts = build_accounts(addresses, proxies)

    assert [a.index for a in accounts] == list(range(1, 8))
    assert [a.address for a in accounts] == addresses
    for position, account in enumerate(accounts):
        expected = proxies[position % proxy_count] if proxies else None
        assert account.egress == expected


def test_two_accounts_one_proxy():
    first, second = build_accounts(["0xAAA", "0xBBB"], ["http://p1"])

    assert (first.index, first.address, first.egress) == (1, "0xAAA", "http://p1")
    assert (second.index, second.address, second.egress) == (2, "0xBBB", "http://p1")


def test_accounts_without_proxies_go_direct():
    accounts = build_accounts(["0xAAA", "0xBBB"], [])
    assert [a.egress for a in accounts] == [None, None]
    assert accounts[0].egress_label == "No proxy"


@pytest.mark.asyncio
async def test_no_accounts_is_a_configuration_error(settings):
    recorder = SupervisorRecorder()
    orchestrator = FleetOrchestrator([], config=settings, supervisor_factory=recorder)

    with pytest.raises(ConfigurationError):
        await orchestrator.run()
    assert recorder.supervisors == []


@pytest.mark.asyncio
async def test_shutdown_reaches_every_supervisor_once(settings):
    recorder = SupervisorRecorder()
    coordinator = ShutdownCoordinator()
    orchestrator = FleetOrchestrator(
        ["0xAAA", "0xBBB", "0xCCC"],
        ["socks5://127.0.0.1:1080"],
        config=settings,
        coordinator=coordinator,
        supervisor_factory=recorder,
    )
    task = asyncio.create_task(orchestrator.run())

    await wait_until(lambda: len(recorder.supervisors) == 3
                     and all(s.started for s in recorder.supervisors))

    await orchestrator.shutdown("SIGINT")
    await coordinator.trigger("SIGTERM")
    await asyncio.wait_for(task, timeout=2)

    assert [s.shutdown_calls for s in recorder.supervisors] == [1, 1, 1]
    assert all(t.done() for t in orchestrator.tasks)


@pytest.mark.asyncio
async def test_run_returns_when_supervisors_exit(settings):
    recorder = SupervisorRecorder(exit_on_start=True)
    orchestrator = FleetOrchestrator(["0xAAA", "0xBBB"], config=settings, supervisor_factory=recorder)

    await asyncio.wait_for(orchestrator.run(), timeout=2)

    assert all(s.started for s in recorder.supervisors)
    assert not orchestrator.coordinator.triggered


def test_unsupported_proxy_scheme_goes_direct():
    accounts = build_accounts(["0xAAA", "0xBBB", "0xCCC"], ["ftp://x", "http://p1"])

    assert [a.egress for a in accounts] == [None, "http://p1", None]
    assert accounts[0].egress_label == "No proxy"
    assert accounts[2].egress_label == "No proxy"
