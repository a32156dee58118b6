"""Tests for listing_pipeline/observability (logging and metrics)."""

import io
import json
import logging

import pytest

from listing_pipeline.observability import (
    MetricsCollector,
    RequestStats,
    get_logger,
    log_context,
    setup_logging,
)
from listing_pipeline.observability.logger import (
    ROOT_LOGGER,
    PrettyFormatter,
    StructuredFormatter,
    current_context,
)


@pytest.fixture
def captured_logs():
    """Install a JSON handler writing to a buffer; restore afterwards."""
    stream = io.StringIO()
    setup_logging(level=logging.DEBUG, json_format=True, handler=logging.StreamHandler(stream))
    yield stream
    logging.getLogger(ROOT_LOGGER).handlers.clear()


class TestLogContext:
    """Context propagation."""

    def test_nested_contexts_merge(self):
        with log_context(source="browse"):
            with log_context(item="#1 SKU-1"):
                ctx = current_context()
                assert ctx.source == "browse"
                assert ctx.item == "#1 SKU-1"
            assert current_context().item is None
        assert current_context().source is None

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            log_context(market="us")

    def test_json_lines_include_context_and_extras(self, captured_logs):
        logger = get_logger("tests.context")

        with log_context(source="trading", window="2024-09-17..2025-01-15"):
            logger.info("Fetched page", extra={"items": 100})

        entry = json.loads(captured_logs.getvalue().strip().splitlines()[-1])
        assert entry["message"] == "Fetched page"
        assert entry["source"] == "trading"
        assert entry["window"] == "2024-09-17..2025-01-15"
        assert entry["items"] == 100
        assert entry["logger"] == "listing_pipeline.tests.context"


class TestFormatters:
    def _record(self, message: str, **extra) -> logging.LogRecord:
        record = logging.LogRecord("listing_pipeline.x", logging.WARNING, __file__, 1, message, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_pretty_prefix(self):
        formatter = PrettyFormatter(use_color=False)

        with log_context(source="browse", item="#3 Sheet Set"):
            line = formatter.format(self._record("No competitors found", attempt=2))

        assert "[BROWSE] [#3 Sheet Set] No competitors found" in line
        assert "attempt=2" in line
        assert "WARN" in line

    def test_structured_is_json(self):
        line = StructuredFormatter().format(self._record("hello"))
        assert json.loads(line)["level"] == "warning"

    def test_quiet_handler_only_shows_errors(self):
        stream = io.StringIO()
        setup_logging(level=logging.INFO, quiet=True, handler=logging.StreamHandler(stream))
        logger = get_logger("tests.quiet")

        logger.info("hidden")
        logger.error("shown")
        logging.getLogger(ROOT_LOGGER).handlers.clear()

        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()


class TestMetrics:
    """Request counters and run metrics."""

    def test_request_stats_snapshot(self):
        stats = RequestStats()
        stats.record_request()
        stats.record_request()
        stats.record_retry()
        stats.record_error()

        assert stats.snapshot() == {
            "request_count": 2,
            "error_count": 1,
            "retry_count": 1,
            "rate_limit_hits": 0,
        }

    def test_collection_summary(self):
        metrics = MetricsCollector()

        with metrics.collection("competitors", total=10) as m:
            with metrics.phase("analyze"):
                pass
            m.record_success(8)
            m.record_failure(2, error_type="ClientError")
            m.record_rows(120)

        summary = metrics.get_summary()
        assert "Run Summary (competitors)" in summary
        assert "Success: 8 (80.0%)" in summary
        assert "ClientError: 2" in summary
        assert "analyze" in metrics.history[-1].phase_durations
        assert metrics.history[-1].to_dict()["rows_written"] == 120

    def test_phase_requires_collection(self):
        with pytest.raises(RuntimeError):
            MetricsCollector().phase("analyze")
