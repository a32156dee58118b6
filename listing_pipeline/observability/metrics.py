"""Request counters and per-run metrics.

RequestStats is shared by every client of one pipeline and is mutated by
the retry executor. MetricsCollector records one CollectionMetrics per
run (items, rows, failures by error type, phase timings).

Usage:
    from listing_pipeline.observability import MetricsCollector

    metrics = MetricsCollector()

    with metrics.collection("competitors", total=120) as m:
        with metrics.phase("analyze"):
            ...
        m.record_success(118)
        m.record_failure(2, error_type="ClientError")

    print(metrics.get_summary())
"""

from __future__ import annotations

import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Iterator


@dataclass
class RequestStats:
    """Counters shared by every client in a run.

    `request_count` counts attempts (every call that reached the wire),
    `error_count` counts calls that finally failed, `retry_count` counts
    attempts beyond the first.
    """

    request_count: int = 0
    error_count: int = 0
    retry_count: int = 0
    rate_limit_hits: int = 0

    def record_request(self) -> None:
        self.request_count += 1

    def record_retry(self) -> None:
        self.retry_count += 1

    def record_error(self) -> None:
        self.error_count += 1

    def record_rate_limit(self) -> None:
        self.rate_limit_hits += 1

    def snapshot(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class CollectionMetrics:
    """Outcome of one run (a listings export or a competitor analysis)."""

    name: str
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: datetime | None = None

    total_items: int = 0
    successful: int = 0
    failed: int = 0
    rows_written: int = 0
    rate_limit_hits: int = 0

    phase_durations: dict[str, float] = field(default_factory=dict)
    errors_by_type: Counter[str] = field(default_factory=Counter)

    @property
    def success_rate(self) -> float:
        """Percentage of items that succeeded (0 when nothing was submitted)."""
        return self.successful / self.total_items * 100 if self.total_items else 0.0

    @property
    def duration_seconds(self) -> float:
        end = self.ended_at or datetime.now()
        return (end - self.started_at).total_seconds()

    @property
    def items_per_second(self) -> float:
        duration = self.duration_seconds
        return self.successful / duration if duration else 0.0

    def record_success(self, count: int = 1) -> None:
        self.successful += count

    def record_failure(self, count: int = 1, error_type: str = "unknown") -> None:
        self.failed += count
        self.errors_by_type[error_type] += count

    def record_rows(self, count: int) -> None:
        self.rows_written += count

    def complete(self) -> None:
        if self.ended_at is None:
            self.ended_at = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view for structured log lines."""
        return {
            "name": self.name,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "total_items": self.total_items,
            "successful": self.successful,
            "failed": self.failed,
            "rows_written": self.rows_written,
            "success_rate": round(self.success_rate, 2),
            "items_per_second": round(self.items_per_second, 2),
            "phase_durations": dict(self.phase_durations),
            "errors_by_type": dict(self.errors_by_type),
            "rate_limit_hits": self.rate_limit_hits,
        }

    def to_summary(self) -> str:
        title = f"Run Summary ({self.name})"
        out = [
            title,
            "=" * max(40, len(title)),
            f"Duration: {self.duration_seconds:.1f}s",
            f"Total: {self.total_items} items",
            f"Success: {self.successful} ({self.success_rate:.1f}%)",
            f"Failed: {self.failed}",
            f"Rows written: {self.rows_written}",
        ]
        sections = (
            ("Phase Durations:", [f"  {p}: {d:.1f}s" for p, d in self.phase_durations.items()]),
            ("Errors by Type:", [f"  {e}: {n}" for e, n in self.errors_by_type.most_common()]),
        )
        for heading, body in sections:
            if body:
                out += ["", heading, *body]
        if self.rate_limit_hits:
            out += ["", f"Rate Limit Hits: {self.rate_limit_hits}"]
        return "\n".join(out)


class PhaseTimer:
    """Times one named phase of a run; re-entering a phase overwrites it."""

    def __init__(self, metrics: CollectionMetrics, phase: str) -> None:
        self.metrics = metrics
        self.phase = phase
        self._started = 0.0

    def __enter__(self) -> PhaseTimer:
        self._started = time.monotonic()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.metrics.phase_durations[self.phase] = time.monotonic() - self._started


class MetricsCollector:
    """Keeps the active run and every finished one."""

    def __init__(self) -> None:
        self._active: CollectionMetrics | None = None
        self._finished: list[CollectionMetrics] = []

    @property
    def current(self) -> CollectionMetrics | None:
        return self._active

    @property
    def history(self) -> list[CollectionMetrics]:
        return list(self._finished)

    @contextmanager
    def collection(self, name: str, total: int = 0) -> Iterator[CollectionMetrics]:
        """Track one run; it is moved to `history` when the block exits."""
        run = CollectionMetrics(name=name, total_items=total)
        self._active = run
        try:
            yield run
        finally:
            run.complete()
            self._finished.append(run)
            self._active = None

    def phase(self, name: str) -> PhaseTimer:
        if self._active is None:
            raise RuntimeError("phase() needs an active collection() block")
        return PhaseTimer(self._active, name)

    def get_summary(self) -> str:
        """Summary of the active run, else the last finished one."""
        run = self._active or (self._finished[-1] if self._finished else None)
        return run.to_summary() if run else "No runs recorded."
