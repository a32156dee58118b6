"""Incremental CSV sink.

Header is written once when the sink opens; rows are appended as batches
arrive from the worker pool. Lifecycle: unopened -> open -> closed.
"""

from __future__ import annotations

import asyncio
import csv
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import IO, Any

from listing_pipeline.core.errors import SinkClosedError
from listing_pipeline.core.types import ExportResult, ResultBatch, SinkState
from listing_pipeline.observability.logger import get_logger

from .base import format_file_size, project_row

logger = get_logger(__name__)


class IncrementalCsvSink:
    """Append-only CSV writer safe for concurrent `append` calls.

    Every field is quoted and internal quotes are doubled. Writes are
    serialized by an asyncio lock and run in a worker thread, in the order
    `append` was called.

    Usage:
        async with IncrementalCsvSink(path, COMPETITOR_COLUMNS) as sink:
            await sink.append(rows)
    """

    def __init__(self, path: str | Path, columns: Sequence[str]) -> None:
        if not columns:
            raise ValueError("columns must not be empty")
        self.path = Path(path)
        self.columns = list(columns)
        self.rows_written = 0
        self._state = SinkState.UNOPENED
        self._file: IO[str] | None = None
        self._writer: Any = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> SinkState:
        return self._state

    async def open(self) -> None:
        """Create (truncate) the file and write the header.

        Idempotent while open.

        Raises:
            SinkClosedError: if the sink was already closed
        """
        async with self._lock:
            if self._state is SinkState.OPEN:
                return
            if self._state is SinkState.CLOSED:
                raise SinkClosedError(f"Cannot reopen closed sink {self.path}", source="csv")
            await asyncio.to_thread(self._open_file)
            self._state = SinkState.OPEN
            logger.info(f"Streaming rows to {self.path}")

    async def append(self, rows: Iterable[Mapping[str, Any]]) -> int:
        """Append rows, opening the sink first if needed.

        Returns:
            Number of rows written

        Raises:
            SinkClosedError: if the sink was closed; nothing is written
        """
        if self._state is SinkState.CLOSED:
            raise SinkClosedError(f"Write after close on {self.path}", source="csv")

        records = [project_row(row, self.columns) for row in rows]
        if self._state is SinkState.UNOPENED:
            await self.open()

        async with self._lock:
            if self._state is not SinkState.OPEN:
                raise SinkClosedError(f"Write after close on {self.path}", source="csv")
            if records:
                await asyncio.to_thread(self._write_rows, records)
                self.rows_written += len(records)

        return len(records)

    async def append_batch(self, batch: ResultBatch) -> int:
        return await self.append(batch.rows)

    async def close(self) -> ExportResult:
        """Flush and release the file.

        Closing a sink that was never opened just marks it closed.

        Raises:
            SinkClosedError: if the sink was already closed
        """
        async with self._lock:
            if self._state is SinkState.CLOSED:
                raise SinkClosedError(f"Sink {self.path} is already closed", source="csv")
            was_open = self._state is SinkState.OPEN
            if self._file is not None:
                await asyncio.to_thread(self._close_file)
            self._state = SinkState.CLOSED

        result = self.result()
        if was_open:
            logger.info(
                f"Closed {self.path}: {self.rows_written} rows ({format_file_size(result.file_size)})"
            )
        return result

    def result(self) -> ExportResult:
        size = self.path.stat().st_size if self.path.exists() else 0
        return ExportResult(
            filename=str(self.path),
            record_count=self.rows_written,
            file_size=size,
            streamed=True,
        )

    async def __aenter__(self) -> IncrementalCsvSink:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._state is SinkState.OPEN:
            await self.close()

    # Blocking helpers, run via asyncio.to_thread

    def _open_file(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w", encoding="utf-8", newline="")
        self._writer = csv.writer(self._file, quoting=csv.QUOTE_ALL, lineterminator="\n")
        self._writer.writerow(self.columns)
        self._file.flush()

    def _write_rows(self, records: list[list[str]]) -> None:
        assert self._file is not None
        self._writer.writerows(records)
        self._file.flush()

    def _close_file(self) -> None:
        assert self._file is not None
        self._file.flush()
        self._file.close()
        self._file = None
        self._writer = None
