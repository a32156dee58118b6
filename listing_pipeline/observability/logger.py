"""Logging for the listing pipeline.

Every logger lives under the ``listing_pipeline`` namespace. Fields set with
``log_context`` (source, phase, item, window, page) are attached to each
record emitted inside the block, either as a bracketed prefix (pretty mode)
or as top-level JSON keys (``json_format=True``).

Usage:
    from listing_pipeline.observability import get_logger, log_context

    logger = get_logger(__name__)

    with log_context(source="trading", phase="crawl"):
        logger.info("Fetched page", extra={"page": 3, "items": 100})
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "listing_pipeline"

# attributes every LogRecord carries; anything else came in through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


@dataclass(frozen=True)
class LogContext:
    """Fields stamped onto every record emitted inside a `log_context` block."""

    source: str | None = None
    phase: str | None = None
    item: str | None = None
    window: str | None = None
    page: int | None = None
    correlation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    def labels(self) -> list[str]:
        """Bracketed labels for the pretty formatter, outermost first."""
        out = []
        if self.source:
            out.append(f"[{self.source.upper()}]")
        out.extend(f"[{value}]" for value in (self.phase, self.item, self.window) if value)
        return out


_CONTEXT_FIELDS = frozenset(f.name for f in fields(LogContext))

_current: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "listing_pipeline_log_context", default=LogContext()
)


class _ContextScope:
    def __init__(self, updates: dict[str, Any]) -> None:
        unknown = sorted(set(updates) - _CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {', '.join(unknown)}")
        self.updates = updates
        self._token: contextvars.Token[LogContext] | None = None

    def __enter__(self) -> LogContext:
        merged = replace(_current.get(), **self.updates)
        self._token = _current.set(merged)
        return merged

    def __exit__(self, *exc: Any) -> None:
        if self._token is not None:
            _current.reset(self._token)
            self._token = None


def log_context(**updates: Any) -> _ContextScope:
    """Layer context fields over the current ones for the duration of a block.

    Example:
        with log_context(source="browse", item="#3 Cotton Sheet Set"):
            logger.warning("No competitors found")

    The context is a ContextVar, so asyncio tasks inherit whatever was
    active when they were created. Unknown field names raise TypeError.
    """
    return _ContextScope(updates)


def current_context() -> LogContext:
    return _current.get()


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        entry: dict[str, Any] = {
            "timestamp": now.replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            **_current.get().to_dict(),
            **_extras(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class PrettyFormatter(logging.Formatter):
    """Single-line console output: time, level, context labels, message, extras."""

    LEVEL_COLORS = {
        "DEBUG": "36",
        "INFO": "32",
        "WARNING": "33",
        "ERROR": "31",
        "CRITICAL": "35",
    }

    def __init__(self, use_color: bool = True) -> None:
        super().__init__()
        self.use_color = use_color

    def _level(self, record: logging.LogRecord) -> str:
        short = record.levelname[:4]
        color = self.LEVEL_COLORS.get(record.levelname)
        if self.use_color and color:
            return f"\033[{color}m{short}\033[0m"
        return short

    def format(self, record: logging.LogRecord) -> str:
        parts = [datetime.now().strftime("%H:%M:%S"), self._level(record)]
        parts.extend(_current.get().labels())
        parts.append(record.getMessage())
        line = " ".join(parts)

        extras = _extras(record)
        if extras:
            line += " | " + ", ".join(f"{key}={value}" for key, value in extras.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    quiet: bool = False,
    handler: logging.Handler | None = None,
) -> None:
    """Install a single handler on the ``listing_pipeline`` logger.

    Args:
        level: threshold for the package loggers
        json_format: emit JSON lines instead of pretty console lines
        quiet: only let errors through the handler
        handler: handler to use instead of a stderr stream handler; the
            CLI passes a RichHandler. Its formatter is replaced only when
            `json_format` is set.

    Repeated calls replace the previous handler.
    """
    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.handlers.clear()
    package_logger.setLevel(level)

    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(PrettyFormatter(use_color=sys.stderr.isatty()))
    if json_format:
        handler.setFormatter(StructuredFormatter())
    handler.setLevel(logging.ERROR if quiet else level)
    package_logger.addHandler(handler)

    for noisy in ("aiohttp", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for `name`, placed under the package namespace if it is not already."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
