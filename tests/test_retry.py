"""
Test retry policies.
"""

import pytest

from worker_fleet.core.exceptions import WorkerFleetException
from worker_fleet.core.retry import LinearBackoff, RetryPolicy


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, delay):
        self.calls.append(delay)


def test_linear_backoff_delays():
    backoff = LinearBackoff(retries=3, delay=1.0)
    assert [backoff.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]
    assert backoff.should_retry(3)
    assert not backoff.should_retry(4)


@pytest.mark.asyncio
async def test_retry_policy_retries_until_accepted():
    """Failures are retried with the fixed delay until a result is accepted."""
    sleep = RecordingSleep()
    results = [None, None, None, "token"]

    async def attempt():
        return results.pop(0)

    retries = []
    policy = RetryPolicy(3, sleep=sleep)
    result = await policy.run(attempt, on_retry=retries.append)

    assert result == "token"
    assert sleep.calls == [3, 3, 3]
    assert retries == [1, 2, 3]


@pytest.mark.asyncio
async def test_retry_policy_no_retry_on_first_success():
    sleep = RecordingSleep()

    async def attempt():
        return "ok"

    assert await RetryPolicy(3, sleep=sleep).run(attempt) == "ok"
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_bounded_policy_gives_up():
    sleep = RecordingSleep()

    async def attempt():
        return None

    policy = RetryPolicy(1, sleep=sleep, max_attempts=3, name="login")
    with pytest.raises(WorkerFleetException) as exc_info:
        await policy.run(attempt)

    assert exc_info.value.code == "RETRY_EXHAUSTED"
    assert sleep.calls == [1, 1]
