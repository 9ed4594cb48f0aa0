"""
Test process-wide shutdown coordination.
"""

import asyncio
import signal

import pytest

from conftest import wait_until
from worker_fleet.scheduler import ShutdownCoordinator


class RecordingLoop:
    """Event loop stand-in that records signal handler registrations."""

    def __init__(self):
        self.handlers = {}

    def add_signal_handler(self, sig, callback, *args):
        self.handlers[sig] = (callback, args)


@pytest.mark.asyncio
async def test_callbacks_run_exactly_once():
    coordinator = ShutdownCoordinator()
    calls = []

    async def teardown():
        calls.append("teardown")

    coordinator.register(teardown)
    coordinator.register(teardown)

    await coordinator.trigger("SIGINT")
    await coordinator.trigger("SIGTERM")

    assert calls == ["teardown"]
    assert coordinator.triggered
    assert coordinator.reason == "SIGINT"


@pytest.mark.asyncio
async def test_failing_callback_does_not_block_others():
    coordinator = ShutdownCoordinator()
    calls = []

    async def broken():
        raise RuntimeError("boom")

    async def healthy():
        calls.append("healthy")

    coordinator.register(broken)
    coordinator.register(healthy)

    await coordinator.trigger()
    await asyncio.wait_for(coordinator.wait(), timeout=1)

    assert calls == ["healthy"]


@pytest.mark.asyncio
async def test_unregistered_callback_is_skipped():
    coordinator = ShutdownCoordinator()
    calls = []

    async def teardown():
        calls.append("teardown")

    coordinator.register(teardown)
    coordinator.unregister(teardown)
    await coordinator.trigger()

    assert calls == []


@pytest.mark.asyncio
async def test_request_schedules_trigger():
    coordinator = ShutdownCoordinator()
    calls = []

    async def teardown():
        calls.append("teardown")

    coordinator.register(teardown)
    coordinator.request("SIGTERM")
    coordinator.request("SIGTERM")

    await asyncio.wait_for(coordinator.wait(), timeout=1)
    assert calls == ["teardown"]


@pytest.mark.asyncio
async def test_signal_handlers_installed_once():
    coordinator = ShutdownCoordinator()
    loop = RecordingLoop()
    calls = []

    async def teardown():
        calls.append("teardown")

    coordinator.register(teardown)
    coordinator.install_signal_handlers(loop)
    coordinator.install_signal_handlers(RecordingLoop())

    assert set(loop.handlers) == {signal.SIGINT, signal.SIGTERM}

    callback, args = loop.handlers[signal.SIGINT]
    callback(*args)
    callback, args = loop.handlers[signal.SIGTERM]
    callback(*args)

    await wait_until(lambda: coordinator.triggered and calls)
    await asyncio.wait_for(coordinator.wait(), timeout=1)
    assert calls == ["teardown"]
    assert coordinator.reason == "SIGINT"
