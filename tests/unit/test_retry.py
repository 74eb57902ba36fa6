"""
Tests for the retry combinator.
"""

import asyncio

import pytest

from chainsweep.utils.exceptions import RetryExhaustedError
from chainsweep.utils.retry import OperationTimeoutError, RetryPolicy, retry_async, with_timeout


class TestRetryPolicy:
    """Test backoff schedules."""

    def test_linear(self):
        """Linear delays grow by the base each attempt."""
        policy = RetryPolicy(max_attempts=5, base_delay=5.0, backoff="linear")
        assert [policy.delay_for(n) for n in range(1, 5)] == [5.0, 10.0, 15.0, 20.0]

    def test_exponential_capped(self):
        """Exponential delays double and stop at max_delay."""
        policy = RetryPolicy(base_delay=1.0, max_delay=4.0)
        assert [policy.delay_for(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 4.0]


class TestRetryAsync:
    """Test retry_async."""

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self, sleep_recorder):
        """Transient errors are retried until success."""
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("reset")
            return "ok"

        result = await retry_async(flaky, RetryPolicy(max_attempts=3), sleep=sleep_recorder)

        assert result == "ok"
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion(self, sleep_recorder):
        """The last error is attached to RetryExhaustedError."""

        async def failing():
            raise ConnectionError("refused")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_async(failing, RetryPolicy(max_attempts=2), sleep=sleep_recorder)

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_error, ConnectionError)

    @pytest.mark.asyncio
    async def test_non_retryable_propagates(self, sleep_recorder):
        """Errors outside retry_on are raised immediately."""

        async def failing():
            raise KeyError("bad")

        with pytest.raises(KeyError):
            await retry_async(failing, retry_on=(ConnectionError,), sleep=sleep_recorder)
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_per_attempt_timeout(self, sleep_recorder):
        """Slow attempts are cut off and retried."""

        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_async(
                slow, RetryPolicy(max_attempts=2), timeout=0.01, sleep=sleep_recorder
            )
        assert isinstance(exc_info.value.last_error, OperationTimeoutError)


class TestWithTimeout:
    """Test with_timeout."""

    @pytest.mark.asyncio
    async def test_returns_value(self):
        async def quick():
            return 42

        assert await with_timeout(quick(), timeout=1) == 42

    @pytest.mark.asyncio
    async def test_timeout_error(self):
        """OperationTimeoutError is still a TimeoutError."""
        with pytest.raises(TimeoutError):
            await with_timeout(asyncio.sleep(1), timeout=0.01)
