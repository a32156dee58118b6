"""Configuration module for the listing pipeline."""

from .settings import Settings, get_settings
from .constants import (
    # Directories
    DATA_DIR,
    # Scale
    DEFAULT_CONCURRENCY,
    STREAM_THRESHOLD,
    # Retry
    MAX_ATTEMPTS,
    RETRY_BASE_DELAY,
    # Crawl
    MAX_WINDOWS,
    WINDOW_DAYS,
)

__all__ = [
    "Settings",
    "get_settings",
    "DATA_DIR",
    "DEFAULT_CONCURRENCY",
    "STREAM_THRESHOLD",
    "MAX_ATTEMPTS",
    "RETRY_BASE_DELAY",
    "MAX_WINDOWS",
    "WINDOW_DAYS",
]
