"""Exceptions raised by the listing pipeline.

Everything derives from PipelineError. The retry executor consults
`is_retryable`; terminal conditions (invalid page, date range) carry
their own classes so crawlers can stop on them.
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp


class PipelineError(Exception):
    """Root of the pipeline's exception tree.

    Attributes:
        item: Related work item identity (if applicable)
        source: Remote API or component name (if applicable)
    """

    def __init__(
        self,
        message: str,
        *,
        item: str | None = None,
        source: str | None = None,
    ) -> None:
        self.item = item
        self.source = source
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        """Fields for a structured log line."""
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "item": self.item,
            "source": self.source,
            "is_retryable": self.is_retryable,
        }


class TimeoutError(PipelineError):
    """No response within the request timeout. Retryable."""

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        timeout_seconds: float | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.timeout_seconds = timeout_seconds

    @property
    def is_retryable(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["timeout_seconds"] = self.timeout_seconds
        return d


class NetworkError(PipelineError):
    """Connection reset, refused or dropped. Retryable."""

    def __init__(
        self,
        message: str = "Network error",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)

    @property
    def is_retryable(self) -> bool:
        return True


class HttpStatusError(PipelineError):
    """Remote answered with a non-success HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status = status
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["status"] = self.status
        d["errors"] = self.errors
        return d


class RateLimitError(HttpStatusError):
    """HTTP 429. Retryable; `retry_after` (seconds) comes from the Retry-After header."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        status: int = 429,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, status=status, **kwargs)
        self.retry_after = retry_after

    @property
    def is_retryable(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["retry_after"] = self.retry_after
        return d


class ServerError(HttpStatusError):
    """HTTP 5xx. Retryable."""

    @property
    def is_retryable(self) -> bool:
        return True


class ClientError(HttpStatusError):
    """HTTP 4xx other than 429.

    This is NOT retryable - the request itself is wrong.
    """


class MalformedResponseError(PipelineError):
    """Response body could not be parsed or lacks its root element.

    This is NOT retryable.
    """

    def __init__(
        self,
        message: str = "Malformed response",
        *,
        body: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.body = body[:500] if body else body


class RemoteApiError(PipelineError):
    """Remote reported failure inside a successful HTTP envelope.

    Carries the machine-readable error list (code + message).
    """

    def __init__(
        self,
        message: str,
        *,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.errors = errors or []

    @property
    def codes(self) -> list[str]:
        return [str(e.get("code")) for e in self.errors if e.get("code") is not None]

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["errors"] = self.errors
        return d


class InvalidPageError(RemoteApiError):
    """Requested page is past the end of the result set.

    Crawlers treat this as normal exhaustion, not as a failure.
    """


class DateRangeError(RemoteApiError):
    """Query falls outside the remote's supported history range.

    Stops a time-window crawl cleanly.
    """


class ConfigurationError(PipelineError):
    """Required configuration is missing or invalid.

    Fatal: raised before any work begins.
    """

    def __init__(
        self,
        message: str,
        *,
        missing: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.missing = missing or []


class SinkClosedError(PipelineError):
    """Write attempted on a sink that has been closed."""


def error_from_status(
    status: int,
    message: str,
    *,
    errors: list[dict[str, Any]] | None = None,
    retry_after: float | None = None,
    source: str | None = None,
) -> HttpStatusError:
    """Map a non-success HTTP status to the matching error class.

    Args:
        status: HTTP status code (>= 400)
        message: Error description (usually the response text)
        errors: Machine-readable error list from the body, if any
        retry_after: Parsed Retry-After header for 429 responses
        source: Remote API name

    Returns:
        RateLimitError, ServerError or ClientError
    """
    if status == 429:
        return RateLimitError(message, retry_after=retry_after, errors=errors, source=source)
    if status >= 500:
        return ServerError(message, status=status, errors=errors, source=source)
    return ClientError(message, status=status, errors=errors, source=source)


def classify_exception(error: Exception, source: str | None = None) -> PipelineError:
    """Wrap any exception raised during a call in the matching PipelineError.

    PipelineErrors pass through untouched. aiohttp and asyncio exceptions
    map by type; anything else is matched on its message, and falls back
    to a non-retryable PipelineError.
    """
    if isinstance(error, PipelineError):
        return error

    if isinstance(error, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return TimeoutError(str(error) or "Request timed out", source=source)

    if isinstance(error, (aiohttp.ClientConnectionError, ConnectionError)):
        return NetworkError(str(error) or type(error).__name__, source=source)

    if isinstance(error, aiohttp.ClientResponseError):
        return error_from_status(error.status, error.message, source=source)

    text = str(error)
    lowered = text.lower()
    for error_class, markers in _MESSAGE_MARKERS:
        if any(marker in lowered for marker in markers):
            return error_class(text, source=source)

    return PipelineError(text, source=source)


# checked in order against the lowercased message of unrecognised exceptions
_MESSAGE_MARKERS: tuple[tuple[type[PipelineError], tuple[str, ...]], ...] = (
    (RateLimitError, ("429", "rate limit", "too many requests")),
    (TimeoutError, ("timeout", "timed out")),
    (NetworkError, ("connection reset", "econnreset", "connection refused", "broken pipe")),
)
