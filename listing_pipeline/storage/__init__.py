"""Storage backends for pipeline output."""

from .base import RowSink, format_file_size, project_row, render_value
from .csv_sink import IncrementalCsvSink
from .export import BufferedCsvExporter, RowCollector

__all__ = [
    "RowSink",
    "IncrementalCsvSink",
    "BufferedCsvExporter",
    "RowCollector",
    "render_value",
    "project_row",
    "format_file_size",
]
