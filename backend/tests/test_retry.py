"""Tests for RetryPolicy."""

import asyncio

import pytest

from hyperedit.exceptions import UpstreamTimeoutError
from hyperedit.utils.retry import RetryPolicy


class Flaky:
    """Fails ``failures`` times with ``error`` before returning "ok"."""

    def __init__(self, failures: int, error: type[Exception] = ConnectionError):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        return "ok"


class TestRetryPolicy:

    @pytest.mark.asyncio
    async def test_succeeds_after_retries(self):
        fn = Flaky(failures=2)
        policy = RetryPolicy(max_attempts=3, interval_s=0, timeout_s=5)
        assert await policy.run(fn, retry_on=(ConnectionError,)) == "ok"
        assert fn.calls == 3

    @pytest.mark.asyncio
    async def test_exhausted_attempts_reraise_last_error(self):
        fn = Flaky(failures=5)
        policy = RetryPolicy(max_attempts=3, interval_s=0, timeout_s=5)
        with pytest.raises(ConnectionError, match="failure 3"):
            await policy.run(fn, retry_on=(ConnectionError,))
        assert fn.calls == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self):
        fn = Flaky(failures=1, error=ValueError)
        policy = RetryPolicy(max_attempts=3, interval_s=0, timeout_s=5)
        with pytest.raises(ValueError):
            await policy.run(fn, retry_on=(ConnectionError,))
        assert fn.calls == 1

    @pytest.mark.asyncio
    async def test_deadline_bounds_a_hung_call(self):
        async def hang():
            await asyncio.sleep(10)

        policy = RetryPolicy(max_attempts=3, interval_s=0, timeout_s=0.05)
        with pytest.raises(UpstreamTimeoutError, match="slow thing"):
            await policy.run(hang, what="slow thing")
