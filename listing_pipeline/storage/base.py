"""Base protocol and row rendering shared by every CSV backend."""

import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from listing_pipeline.core.types import ExportResult, ResultBatch


@runtime_checkable
class RowSink(Protocol):
    """Protocol for streaming destinations.

    The protocol is runtime checkable, so you can use isinstance() to verify.
    """

    columns: list[str]

    async def open(self) -> None:
        """Create the destination and write the header."""
        ...

    async def append(self, rows: Iterable[Mapping[str, Any]]) -> int:
        """Append rows, returning how many were written."""
        ...

    async def append_batch(self, batch: ResultBatch) -> int:
        """`on_batch` adapter for the worker pool."""
        ...

    async def close(self) -> ExportResult:
        """Flush and release the destination."""
        ...


def render_value(value: Any) -> str:
    """Render one field the same way in every backend.

    None and NaN become an empty string, booleans are lower-case.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value)


def project_row(row: Mapping[str, Any], columns: Sequence[str]) -> list[str]:
    """Map a row onto the fixed column list; missing fields render empty."""
    return [render_value(row.get(column)) for column in columns]


def format_file_size(size: int) -> str:
    """Human-readable file size (e.g. '1.5 MB')."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"
