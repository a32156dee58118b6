"""Single-shot CSV export for buffered runs."""

from __future__ import annotations

import csv
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pandas as pd

from listing_pipeline.core.types import ExportResult, ResultBatch
from listing_pipeline.observability.logger import get_logger

from .base import format_file_size, project_row

logger = get_logger(__name__)


class RowCollector:
    """In-memory `on_batch` accumulator.

    Keeps rows in completion order, the same order a streaming sink
    would have written them.
    """

    def __init__(self) -> None:
        self.rows: list[Mapping[str, Any]] = []
        self.batches = 0

    def __call__(self, batch: ResultBatch) -> None:
        self.rows.extend(batch.rows)
        self.batches += 1

    def __len__(self) -> int:
        return len(self.rows)


class BufferedCsvExporter:
    """Writes every row at once through pandas.

    Output is byte-identical to IncrementalCsvSink for the same rows.
    """

    def __init__(self, path: str | Path, columns: Sequence[str]) -> None:
        if not columns:
            raise ValueError("columns must not be empty")
        self.path = Path(path)
        self.columns = list(columns)

    def export(self, rows: Iterable[Mapping[str, Any]]) -> ExportResult:
        """Write header and rows, replacing any existing file."""
        records = [project_row(row, self.columns) for row in rows]
        df = pd.DataFrame(records, columns=self.columns, dtype=object)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(
            self.path,
            index=False,
            quoting=csv.QUOTE_ALL,
            lineterminator="\n",
            encoding="utf-8",
        )

        size = self.path.stat().st_size
        logger.info(f"Exported {len(df)} rows to {self.path} ({format_file_size(size)})")
        return ExportResult(
            filename=str(self.path),
            record_count=len(df),
            file_size=size,
            streamed=False,
        )
