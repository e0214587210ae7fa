"""Tests for retry with backoff."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from seedbed.core import ProviderError, RetryExhaustedError, RetryPolicy, call_with_retry

NO_DELAY = RetryPolicy(max_attempts=3, base_delay=0.0, jitter=False)


class TestRetryPolicy:
    def test_exponential_delays(self):
        policy = RetryPolicy(base_delay=1.0, multiplier=2.0, max_delay=100.0, jitter=False)
        assert [policy.delay_for(i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_capped(self):
        policy = RetryPolicy(base_delay=1.0, multiplier=10.0, max_delay=5.0, jitter=False)
        assert policy.delay_for(3) == 5.0

    def test_jitter_stays_in_range(self):
        policy = RetryPolicy(base_delay=1.0, multiplier=1.0, max_delay=10.0, jitter=True)
        for _ in range(50):
            assert 0.75 <= policy.delay_for(0) <= 1.25


class TestCallWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        func = AsyncMock(return_value=[1.0])
        assert await call_with_retry(func, NO_DELAY) == [1.0]
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_provider_errors(self):
        func = AsyncMock(side_effect=[ProviderError("flaky"), ProviderError("flaky"), [2.0]])
        assert await call_with_retry(func, NO_DELAY) == [2.0]
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_exhaustion(self):
        func = AsyncMock(side_effect=ProviderError("down"))

        with pytest.raises(RetryExhaustedError) as exc_info:
            await call_with_retry(func, NO_DELAY, description="embed 'x'")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, ProviderError)
        assert isinstance(exc_info.value, ProviderError)
        assert "embed 'x'" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self):
        calls = 0

        async def slow():
            nonlocal calls
            calls += 1
            await asyncio.sleep(1.0)

        with pytest.raises(RetryExhaustedError):
            await call_with_retry(slow, RetryPolicy(max_attempts=2, base_delay=0.0), timeout=0.01)

        assert calls == 2

    @pytest.mark.asyncio
    async def test_other_errors_propagate_immediately(self):
        func = AsyncMock(side_effect=ValueError("bad input"))

        with pytest.raises(ValueError):
            await call_with_retry(func, NO_DELAY)

        assert func.await_count == 1
