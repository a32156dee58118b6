"""Shared types for the listing pipeline.

These types flow between the crawler, the worker pool and the sinks.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any


class SinkState(str, Enum):
    """Lifecycle of an incremental sink."""

    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


class OutputMode(str, Enum):
    """How results reach the output file."""

    AUTO = "auto"
    CSV = "csv"  # always stream
    BUFFERED = "buffered"


class StopReason(str, Enum):
    """Why a crawl stopped."""

    SHORT_PAGE = "short_page"
    NO_MORE = "no_more"
    INVALID_PAGE = "invalid_page"
    DATE_RANGE = "date_range"
    MAX_PAGES = "max_pages"
    MAX_WINDOWS = "max_windows"
    EMPTY_WINDOWS = "empty_windows"
    FAILURES = "failures"


@dataclass(frozen=True)
class WorkItem:
    """One unit of input driving one job through the worker pool.

    Attributes:
        index: Stable position in the input sequence
        payload: Arbitrary input fields (a CSV row, an item id, ...)
    """

    index: int
    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> str:
        """Human-readable identity used in logs."""
        for key in ("item_id", "Item ID", "sku", "SKU", "title", "Title"):
            value = self.payload.get(key)
            if value:
                return f"#{self.index} {value}"
        return f"#{self.index}"


@dataclass(frozen=True)
class ResultBatch:
    """Ordered output rows produced by one completed work item."""

    item: WorkItem
    rows: tuple[Mapping[str, Any], ...] = ()

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class RequestAttempt:
    """One attempt of a retried call.

    Attributes:
        number: 1-based attempt number
        previous_error: Error raised by the previous attempt, if any
        delay: Backoff waited before this attempt, in seconds
    """

    number: int
    previous_error: Exception | None = None
    delay: float = 0.0


@dataclass(frozen=True)
class TimeWindow:
    """Half-open date range [start, end) for date-bounded queries."""

    start: datetime
    end: datetime

    @classmethod
    def ending_at(cls, end: datetime, width: timedelta) -> TimeWindow:
        return cls(start=end - width, end=end)

    def shifted(self, width: timedelta) -> TimeWindow:
        """Next window back in time, contiguous with this one."""
        return TimeWindow.ending_at(self.start, width)

    @property
    def start_iso(self) -> str:
        return _iso(self.start)

    @property
    def end_iso(self) -> str:
        return _iso(self.end)

    def __str__(self) -> str:
        return f"{self.start.date().isoformat()}..{self.end.date().isoformat()}"


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{value.microsecond // 1000:03d}Z"
    )


@dataclass
class Page:
    """One bounded chunk of a larger result set."""

    items: list[Any] = field(default_factory=list)
    has_more: bool | None = None  # None = remote did not say

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class PageCursor:
    """Crawl position, owned by exactly one crawl."""

    page_number: int = 1
    window: TimeWindow | None = None
    has_more: bool = True
    item_count: int = 0
    pages_fetched: int = 0
    failures: int = 0
    stop_reason: StopReason | None = None

    def stop(self, reason: StopReason) -> None:
        self.has_more = False
        self.stop_reason = reason


@dataclass
class PoolStats:
    """Worker pool counters.

    `active` never exceeds the pool's max concurrency.
    """

    submitted: int = 0
    active: int = 0
    completed: int = 0
    succeeded: int = 0
    failed: int = 0
    peak_active: int = 0
    delivered: int = 0
    rows: int = 0
    failed_items: list[str] = field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.submitted == self.completed and self.active == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "submitted": self.submitted,
            "completed": self.completed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "peak_active": self.peak_active,
            "delivered": self.delivered,
            "rows": self.rows,
        }


@dataclass
class ExportResult:
    """Output file written by a sink or exporter."""

    filename: str
    record_count: int
    file_size: int = 0
    streamed: bool = False


@dataclass
class RunResult:
    """Result of a complete pipeline run.

    Per-item failures reduce counts but never flip `success`.
    """

    command: str
    started_at: datetime
    ended_at: datetime | None = None
    success: bool = False

    total_items: int = 0
    succeeded: int = 0
    failed: int = 0
    rows_written: int = 0
    streamed: bool = False
    output: str | None = None

    request_count: int = 0
    error_count: int = 0
    retry_count: int = 0

    errors: list[str] = field(default_factory=list)
    failed_items: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Total duration in seconds."""
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "command": self.command,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "success": self.success,
            "total_items": self.total_items,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "rows_written": self.rows_written,
            "streamed": self.streamed,
            "output": self.output,
            "request_count": self.request_count,
            "error_count": self.error_count,
            "retry_count": self.retry_count,
            "duration_seconds": round(self.duration_seconds, 2),
        }
