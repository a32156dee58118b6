"""Sliding-window rate limiter.

Bounds outbound requests to `rate` grants per trailing `window` seconds:
- Grant timestamps inside the window are kept in a deque
- Pending callers wait in a FIFO queue of futures
- One queue check runs per `window / rate` seconds and grants at most one caller
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Callable

from listing_pipeline.observability.logger import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """FIFO admission gate.

    Usage:
        limiter = RateLimiter(rate=2)

        # Acquire before making request
        await limiter.acquire()
        await make_request()

    Every queue check runs as a single synchronous loop callback, so the
    timestamp deque and the waiter queue are never mutated concurrently.
    """

    def __init__(
        self,
        rate: int,
        window: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        if rate != int(rate):
            raise ValueError(f"rate must be a whole number of grants per window, got {rate}")
        if window <= 0:
            raise ValueError("window must be positive")
        self.rate = int(rate)
        self.window = window
        self._interval = window / self.rate
        self._clock = clock
        self._stamps: deque[float] = deque()
        self._waiters: deque[asyncio.Future[float]] = deque()
        self._handle: asyncio.TimerHandle | None = None
        self.grants = 0

    @property
    def interval(self) -> float:
        """Seconds between queue checks."""
        return self._interval

    @property
    def pending(self) -> int:
        """Callers still waiting for a slot."""
        return sum(1 for f in self._waiters if not f.done())

    async def acquire(self) -> float:
        """Wait for an admission slot.

        Returns:
            Clock value at which the slot was granted
        """
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[float] = loop.create_future()
        self._waiters.append(waiter)
        if self._handle is None:
            self._process()
        return await waiter

    def _process(self) -> None:
        self._handle = None

        # Cancelled callers give up their place
        while self._waiters and self._waiters[0].done():
            self._waiters.popleft()
        if not self._waiters:
            return

        now = self._clock()
        while self._stamps and now - self._stamps[0] >= self.window:
            self._stamps.popleft()

        if len(self._stamps) < self.rate:
            waiter = self._waiters.popleft()
            self._stamps.append(now)
            self.grants += 1
            waiter.set_result(now)
        else:
            logger.debug(
                "Rate limit reached, waiting",
                extra={"in_window": len(self._stamps), "queued": len(self._waiters)},
            )

        # Next check is spaced by the interval even when the queue is empty
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._interval, self._process)
