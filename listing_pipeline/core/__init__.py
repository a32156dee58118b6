"""Core infrastructure for the listing pipeline."""

from .errors import (
    ClientError,
    ConfigurationError,
    DateRangeError,
    InvalidPageError,
    MalformedResponseError,
    NetworkError,
    PipelineError,
    RateLimitError,
    RemoteApiError,
    ServerError,
    SinkClosedError,
    TimeoutError,
    classify_exception,
    error_from_status,
)
from .types import (
    ExportResult,
    OutputMode,
    Page,
    PageCursor,
    PoolStats,
    RequestAttempt,
    ResultBatch,
    RunResult,
    SinkState,
    StopReason,
    TimeWindow,
    WorkItem,
)

__all__ = [
    # Errors
    "PipelineError",
    "NetworkError",
    "TimeoutError",
    "RateLimitError",
    "ServerError",
    "ClientError",
    "MalformedResponseError",
    "RemoteApiError",
    "InvalidPageError",
    "DateRangeError",
    "ConfigurationError",
    "SinkClosedError",
    "error_from_status",
    "classify_exception",
    # Types
    "WorkItem",
    "ResultBatch",
    "RequestAttempt",
    "TimeWindow",
    "Page",
    "PageCursor",
    "PoolStats",
    "SinkState",
    "OutputMode",
    "StopReason",
    "ExportResult",
    "RunResult",
]
