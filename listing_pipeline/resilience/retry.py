"""Rate-limited request executor with bounded exponential backoff.

Provides the single path every remote call goes through:
- One rate limiter admission per attempt
- At most `max_attempts` attempts, delay before attempt k is base * 2**(k-1)
- Selective retry based on error class
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

import aiohttp

from listing_pipeline.config.constants import MAX_ATTEMPTS, RETRY_BASE_DELAY
from listing_pipeline.core.errors import PipelineError, RateLimitError
from listing_pipeline.core.types import RequestAttempt
from listing_pipeline.observability.logger import get_logger
from listing_pipeline.observability.metrics import RequestStats

from .rate_limiter import RateLimiter

logger = get_logger(__name__)

T = TypeVar("T")


def is_retryable(error: BaseException) -> bool:
    """Check if error is retryable.

    Connection resets, timeouts, HTTP 429 and HTTP 5xx are retryable.
    Everything else (other 4xx, malformed bodies, remote error envelopes)
    is fatal for the call.
    """
    # PipelineError has is_retryable property
    if isinstance(error, PipelineError):
        return error.is_retryable

    if isinstance(error, aiohttp.ClientResponseError):
        return error.status == 429 or error.status >= 500

    retryable_types = (
        asyncio.TimeoutError,
        aiohttp.ClientConnectionError,
        ConnectionError,
    )
    return isinstance(error, retryable_types)


@dataclass
class RetryingRequestExecutor:
    """Wraps one remote call with admission control and retries.

    Usage:
        executor = RetryingRequestExecutor(limiter, stats)

        result = await executor.execute(client.post, payload)
    """

    rate_limiter: RateLimiter
    stats: RequestStats = field(default_factory=RequestStats)
    max_attempts: int = MAX_ATTEMPTS
    base_delay: float = RETRY_BASE_DELAY
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    source: str | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def execute(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute operation with retries.

        Args:
            operation: Coroutine function performing exactly one remote call
            *args: Positional arguments
            **kwargs: Keyword arguments

        Returns:
            Operation result

        Raises:
            The last error once attempts are exhausted, or the first fatal error
        """
        attempt = RequestAttempt(number=1)

        while True:
            if attempt.delay > 0:
                await self.sleep(attempt.delay)

            await self.rate_limiter.acquire()
            self.stats.record_request()

            try:
                return await operation(*args, **kwargs)

            except Exception as e:
                if isinstance(e, RateLimitError):
                    self.stats.record_rate_limit()

                if not is_retryable(e):
                    self.stats.record_error()
                    logger.debug(
                        f"Non-retryable error: {type(e).__name__}",
                        extra={"attempt": attempt.number, "api": self.source},
                    )
                    raise

                if attempt.number >= self.max_attempts:
                    self.stats.record_error()
                    logger.warning(
                        f"Max attempts ({self.max_attempts}) exhausted",
                        extra={"error": str(e), "api": self.source},
                    )
                    raise

                next_number = attempt.number + 1
                attempt = RequestAttempt(
                    number=next_number,
                    previous_error=e,
                    delay=self._calculate_delay(next_number, e),
                )
                self.stats.record_retry()

                logger.info(
                    f"Retry {next_number}/{self.max_attempts} after {attempt.delay:.1f}s",
                    extra={"error": type(e).__name__, "api": self.source},
                )

    def _calculate_delay(self, attempt_number: int, error: Exception) -> float:
        """Backoff before `attempt_number` (2-based).

        With the default base of one second: 2s before attempt 2, 4s before
        attempt 3. A larger Retry-After from the server wins.
        """
        delay = self.base_delay * (2 ** (attempt_number - 1))
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = max(delay, error.retry_after)
        return delay
