"""Resilience components: admission control and retries."""

from .rate_limiter import RateLimiter
from .retry import RetryingRequestExecutor, is_retryable

__all__ = [
    "RateLimiter",
    "RetryingRequestExecutor",
    "is_retryable",
]
