"""Tests for listing_pipeline/resilience/rate_limiter.py."""

import asyncio

import pytest

from listing_pipeline.resilience import RateLimiter


class TestRateLimiterConfig:
    """Constructor validation."""

    def test_rejects_non_positive_rate(self):
        """Zero rate is rejected."""
        with pytest.raises(ValueError):
            RateLimiter(rate=0)

    def test_rejects_non_positive_window(self):
        """Zero window is rejected."""
        with pytest.raises(ValueError):
            RateLimiter(rate=5, window=0)

    @pytest.mark.parametrize("rate", [2.5, 0.5, 1.01])
    def test_rejects_fractional_rate(self, rate):
        """A fractional rate has no whole number of grants per window."""
        with pytest.raises(ValueError):
            RateLimiter(rate=rate)

    def test_integral_float_rate_is_accepted(self):
        limiter = RateLimiter(rate=2.0, window=0.5)

        assert limiter.rate == 2
        assert isinstance(limiter.rate, int)
        assert limiter.interval == 0.25

    def test_interval(self):
        """Queue checks are spaced window / rate apart."""
        assert RateLimiter(rate=4, window=1.0).interval == 0.25


class TestRateBound:
    """At most `rate` grants in any trailing window."""

    @pytest.mark.asyncio
    async def test_burst_never_exceeds_rate_in_window(self):
        """A burst of 20 callers at 5 per 0.2s keeps every window within bound."""
        rate, window = 5, 0.2
        limiter = RateLimiter(rate=rate, window=window)

        grants = await asyncio.gather(*(limiter.acquire() for _ in range(20)))

        assert len(grants) == 20
        assert limiter.grants == 20
        ordered = sorted(grants)
        for i in range(len(ordered) - rate):
            assert ordered[i + rate] - ordered[i] >= window

    @pytest.mark.asyncio
    async def test_busiest_trailing_window_holds_at_most_rate_grants(self):
        """Counting grants inside every trailing window of a 9-caller burst."""
        rate, window = 2, 0.5
        limiter = RateLimiter(rate=rate, window=window)

        grants = sorted(await asyncio.gather(*(limiter.acquire() for _ in range(9))))

        busiest = max(sum(1 for g in grants if start <= g < start + window) for start in grants)
        assert busiest <= rate

    @pytest.mark.asyncio
    async def test_first_caller_is_granted_immediately(self):
        """An idle limiter admits the first caller without waiting."""
        limiter = RateLimiter(rate=2, window=1.0)
        loop = asyncio.get_running_loop()

        start = loop.time()
        await limiter.acquire()

        assert loop.time() - start < 0.05


class TestFifoOrder:
    """Callers are served strictly in submission order."""

    @pytest.mark.asyncio
    async def test_grants_follow_submission_order(self):
        """Completion order equals submission order."""
        limiter = RateLimiter(rate=10, window=0.1)
        served: list[int] = []

        async def caller(n: int) -> None:
            await limiter.acquire()
            served.append(n)

        await asyncio.gather(*(caller(n) for n in range(15)))

        assert served == list(range(15))

    @pytest.mark.asyncio
    async def test_cancelled_caller_gives_up_its_place(self):
        """A cancelled waiter is skipped and later callers are still served."""
        limiter = RateLimiter(rate=1, window=0.05)
        await limiter.acquire()

        cancelled = asyncio.ensure_future(limiter.acquire())
        waiting = asyncio.ensure_future(limiter.acquire())
        await asyncio.sleep(0)
        cancelled.cancel()

        await asyncio.wait_for(waiting, timeout=1.0)

        assert waiting.done()
        assert limiter.pending == 0
