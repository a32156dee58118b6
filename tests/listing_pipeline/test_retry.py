"""Tests for listing_pipeline/resilience/retry.py."""

import asyncio
from unittest.mock import MagicMock

import aiohttp
import pytest

from listing_pipeline.core.errors import (
    ClientError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from listing_pipeline.resilience import is_retryable


class TestIsRetryable:
    """Error classification."""

    def test_server_error_is_retryable(self):
        assert is_retryable(ServerError("boom", status=503))

    def test_rate_limit_is_retryable(self):
        assert is_retryable(RateLimitError("slow down"))

    def test_network_error_is_retryable(self):
        assert is_retryable(NetworkError("reset"))

    def test_client_error_is_fatal(self):
        """4xx other than 429 is fatal."""
        assert not is_retryable(ClientError("bad request", status=400))

    def test_malformed_response_is_fatal(self):
        assert not is_retryable(MalformedResponseError("not xml"))

    def test_foreign_timeouts_are_retryable(self):
        """asyncio and connection-level errors are transient."""
        assert is_retryable(asyncio.TimeoutError())
        assert is_retryable(ConnectionResetError())

    def test_aiohttp_status_errors(self):
        """aiohttp response errors follow the status rule."""
        def status_error(status: int) -> aiohttp.ClientResponseError:
            return aiohttp.ClientResponseError(MagicMock(), (), status=status)

        assert is_retryable(status_error(429))
        assert is_retryable(status_error(502))
        assert not is_retryable(status_error(404))

    def test_plain_exception_is_fatal(self):
        assert not is_retryable(ValueError("bug"))


class TestRetryTermination:
    """Retry counts and backoff."""

    @pytest.mark.asyncio
    async def test_retryable_error_attempted_three_times(self, executor, sleep_recorder):
        """An always-retryable failure is tried exactly 3 times, then surfaces."""
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise ServerError("unavailable", status=503)

        with pytest.raises(ServerError):
            await executor.execute(operation)

        assert calls == 3
        assert sleep_recorder.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_fatal_error_attempted_once(self, executor, sleep_recorder):
        """A fatal failure aborts immediately."""
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise ClientError("not found", status=404)

        with pytest.raises(ClientError):
            await executor.execute(operation)

        assert calls == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_success_after_transient_failure(self, executor):
        """A transient failure followed by success returns the result."""
        outcomes = [NetworkError("reset"), "ok"]

        async def operation():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        assert await executor.execute(operation) == "ok"

    @pytest.mark.asyncio
    async def test_arguments_are_forwarded(self, executor):
        async def operation(a, b=0):
            return a + b

        assert await executor.execute(operation, 2, b=3) == 5

    @pytest.mark.asyncio
    async def test_retry_after_overrides_shorter_backoff(self, executor, sleep_recorder):
        """A server-provided Retry-After longer than the backoff wins."""
        outcomes = [RateLimitError("slow down", retry_after=10.0), "ok"]

        async def operation():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        await executor.execute(operation)

        assert sleep_recorder.delays == [10.0]


class TestRequestStats:
    """Shared counters."""

    @pytest.mark.asyncio
    async def test_counts_attempts_errors_and_retries(self, executor):
        """Every attempt is counted; a terminal failure counts one error."""

        async def operation():
            raise RateLimitError("slow down")

        with pytest.raises(RateLimitError):
            await executor.execute(operation)

        stats = executor.stats
        assert stats.request_count == 3
        assert stats.retry_count == 2
        assert stats.error_count == 1
        assert stats.rate_limit_hits == 3

    @pytest.mark.asyncio
    async def test_each_attempt_acquires_a_slot(self, executor):
        """The limiter is consulted once per attempt."""

        async def operation():
            raise ServerError("unavailable", status=500)

        with pytest.raises(ServerError):
            await executor.execute(operation)

        assert executor.rate_limiter.grants == 3

    def test_rejects_zero_attempts(self, executor):
        from listing_pipeline.resilience import RetryingRequestExecutor

        with pytest.raises(ValueError):
            RetryingRequestExecutor(rate_limiter=executor.rate_limiter, max_attempts=0)
