import asyncio

import pytest

from scheduler.retry_policy import RetryPolicy, exponential_backoff, fixed_backoff
from scheduler.schedule_config import ScheduleConfig


class Flaky:
    """Fails the first `failures` calls, then returns "done"."""

    def __init__(self, failures=0, hang_first=False):
        self.failures = failures
        self.hang_first = hang_first
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.hang_first and self.calls == 1:
            await asyncio.sleep(3600)
        if self.calls <= self.failures:
            raise RuntimeError(f"failure {self.calls}")
        return "done"


@pytest.mark.asyncio
async def test_first_attempt_success():
    outcome = await RetryPolicy(max_attempts=3).run(Flaky())
    assert outcome.success
    assert outcome.value == "done"
    assert outcome.attempts == 1


@pytest.mark.asyncio
async def test_retries_until_success():
    operation = Flaky(failures=2)
    outcome = await RetryPolicy(max_attempts=3).run(operation)
    assert outcome.success
    assert outcome.attempts == 3
    assert outcome.error is None
    assert operation.calls == 3


@pytest.mark.asyncio
async def test_exhausted_attempts_report_last_error():
    outcome = await RetryPolicy(max_attempts=2).run(Flaky(failures=5))
    assert not outcome.success
    assert outcome.attempts == 2
    assert outcome.error == "failure 2"


@pytest.mark.asyncio
async def test_timeout_cancels_only_the_attempt():
    operation = Flaky(hang_first=True)
    outcome = await RetryPolicy(max_attempts=2, attempt_timeout=0.05).run(operation)
    assert outcome.success
    assert outcome.attempts == 2


@pytest.mark.asyncio
async def test_timeout_counts_as_failure():
    async def hang():
        await asyncio.sleep(3600)

    outcome = await RetryPolicy(max_attempts=1, attempt_timeout=0.05).run(hang)
    assert not outcome.success
    assert outcome.attempts == 1
    assert outcome.error == "Timed out after 0.05s"


@pytest.mark.asyncio
async def test_backoff_is_consulted_between_attempts():
    retries = []

    def backoff(retry_number):
        retries.append(retry_number)
        return 0

    await RetryPolicy(max_attempts=3, backoff=backoff).run(Flaky(failures=5))
    assert retries == [1, 2]


def test_exponential_backoff_is_capped():
    delay = exponential_backoff(base=1.0, factor=2.0, max_delay=30.0)
    assert [delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]
    assert delay(10) == 30.0


def test_fixed_backoff():
    assert fixed_backoff(2.5)(7) == 2.5


def test_policy_needs_an_attempt():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


def test_policy_from_config():
    policy = RetryPolicy.from_config(ScheduleConfig(retry_attempts=2, timeout=12.5))
    assert policy.max_attempts == 3
    assert policy.attempt_timeout == 12.5
