"""Page-number and time-window crawlers.

Both crawlers are async generators over raw items and both have a hard
iteration ceiling. A crawl never requests the same page or window twice.

Usage:
    async for item in crawl(source, page_size=100):
        ...

    # date-bounded resources
    async for item in crawl(source, page_size=100, window_width=timedelta(days=120)):
        ...
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol, runtime_checkable

from listing_pipeline.config.constants import (
    MAX_EMPTY_WINDOWS,
    MAX_PAGES,
    MAX_WINDOWS,
    WINDOW_DAYS,
)
from listing_pipeline.core.errors import DateRangeError, InvalidPageError
from listing_pipeline.core.types import Page, PageCursor, StopReason, TimeWindow
from listing_pipeline.observability.logger import get_logger, log_context

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]
FetchPage = Callable[[int], Awaitable[Page]]


@runtime_checkable
class PageSource(Protocol):
    """A remote resource that can be fetched one bounded page at a time."""

    async def fetch_page(
        self,
        page_number: int,
        page_size: int,
        window: TimeWindow | None = None,
    ) -> Page:
        ...


@dataclass
class PageNumberCrawler:
    """Requests page 1, 2, 3, ... until the result set is exhausted.

    Stops on a short page, an explicit no-more signal, an invalid page
    number, `max_pages` pages, or `max_consecutive_failures` failed pages
    in a row. With `tolerate_failures` a failed page is logged and skipped;
    without it the error propagates to the caller.
    """

    page_size: int
    max_pages: int = MAX_PAGES
    page_delay: float = 0.0
    tolerate_failures: bool = True
    max_consecutive_failures: int = 3
    sleep: Sleep = asyncio.sleep

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        if self.max_pages < 1:
            raise ValueError("max_pages must be at least 1")

    async def crawl(
        self,
        fetch_page: FetchPage,
        cursor: PageCursor | None = None,
    ) -> AsyncIterator[Any]:
        """Yield items page by page.

        Args:
            fetch_page: Coroutine function taking a 1-based page number
            cursor: Optional cursor to observe progress and the stop reason
        """
        cursor = cursor if cursor is not None else PageCursor()
        consecutive_failures = 0

        while cursor.has_more:
            if cursor.pages_fetched + cursor.failures >= self.max_pages:
                logger.warning(f"Page ceiling reached ({self.max_pages}), stopping crawl")
                cursor.stop(StopReason.MAX_PAGES)
                break

            page_number = cursor.page_number
            cursor.page_number += 1

            try:
                with log_context(page=page_number):
                    page = await fetch_page(page_number)

            except InvalidPageError:
                logger.debug(f"Page {page_number} is past the end of the results")
                cursor.stop(StopReason.INVALID_PAGE)
                break

            except DateRangeError:
                if not self.tolerate_failures:
                    raise
                logger.info("Reached the limit of searchable history")
                cursor.stop(StopReason.DATE_RANGE)
                break

            except Exception as e:
                if not self.tolerate_failures:
                    raise
                cursor.failures += 1
                consecutive_failures += 1
                logger.warning(
                    f"Page {page_number} failed: {e}",
                    extra={"error_type": type(e).__name__},
                )
                if consecutive_failures >= self.max_consecutive_failures:
                    logger.error(f"{consecutive_failures} consecutive page failures, stopping crawl")
                    cursor.stop(StopReason.FAILURES)
                    break
                continue

            consecutive_failures = 0
            cursor.pages_fetched += 1
            cursor.item_count += len(page.items)

            logger.debug(
                f"Page {page_number}: {len(page.items)} items (total: {cursor.item_count})"
            )

            for item in page.items:
                yield item

            if len(page.items) < self.page_size:
                cursor.stop(StopReason.SHORT_PAGE)
            elif page.has_more is False:
                cursor.stop(StopReason.NO_MORE)
            elif self.page_delay > 0:
                await self.sleep(self.page_delay)


@dataclass
class TimeWindowCrawler:
    """Walks fixed-width date windows backward from `now`.

    Each window is page-crawled with failures surfacing to the window
    level. A failed window is logged and skipped; a date-range error ends
    the crawl. Stops after `max_windows` windows or `max_empty_windows`
    consecutive windows with no items. A failed window counts as neither
    empty nor non-empty.
    """

    window_days: int = WINDOW_DAYS
    max_windows: int = MAX_WINDOWS
    max_empty_windows: int = MAX_EMPTY_WINDOWS
    window_delay: float = 0.0
    now: Callable[[], datetime] | None = None
    sleep: Sleep = asyncio.sleep

    def __post_init__(self) -> None:
        if self.window_days < 1:
            raise ValueError("window_days must be at least 1")
        if self.max_windows < 1:
            raise ValueError("max_windows must be at least 1")

    @property
    def width(self) -> timedelta:
        return timedelta(days=self.window_days)

    def first_window(self) -> TimeWindow:
        end = self.now() if self.now is not None else datetime.now(timezone.utc)
        return TimeWindow.ending_at(end, self.width)

    async def crawl(
        self,
        fetch_window: Callable[[TimeWindow], AsyncIterator[Any]],
        cursor: PageCursor | None = None,
    ) -> AsyncIterator[Any]:
        """Yield items window by window.

        Args:
            fetch_window: Returns an async iterator over one window's items.
                Items of a window are yielded only once the whole window
                succeeded.
            cursor: Optional cursor to observe progress and the stop reason
        """
        cursor = cursor if cursor is not None else PageCursor()
        window = self.first_window()
        windows_tried = 0
        empty_streak = 0

        while cursor.has_more:
            if windows_tried >= self.max_windows:
                logger.info(f"Window ceiling reached ({self.max_windows}), stopping crawl")
                cursor.stop(StopReason.MAX_WINDOWS)
                break

            windows_tried += 1
            cursor.window = window

            with log_context(window=str(window)):
                logger.info(f"Searching window {windows_tried}: {window}")
                try:
                    items = [item async for item in fetch_window(window)]

                except DateRangeError as e:
                    logger.info(f"Reached the limit of searchable history: {e}")
                    cursor.stop(StopReason.DATE_RANGE)
                    break

                except Exception as e:
                    cursor.failures += 1
                    logger.warning(
                        f"Error in time window {windows_tried}: {e}",
                        extra={"error_type": type(e).__name__},
                    )
                    items = None

            if items is not None:
                cursor.pages_fetched += 1
                if items:
                    empty_streak = 0
                    cursor.item_count += len(items)
                    logger.info(
                        f"Found {len(items)} listings in this window (total: {cursor.item_count})"
                    )
                    for item in items:
                        yield item
                else:
                    empty_streak += 1
                    logger.info("No listings found in this window")
                    if empty_streak >= self.max_empty_windows:
                        logger.info(f"{empty_streak} empty windows in a row, stopping crawl")
                        cursor.stop(StopReason.EMPTY_WINDOWS)
                        break

            window = window.shifted(self.width)
            if self.window_delay > 0 and windows_tried < self.max_windows:
                await self.sleep(self.window_delay)


def crawl(
    source: PageSource,
    page_size: int,
    window_width: timedelta | int | None = None,
    *,
    max_pages: int = MAX_PAGES,
    max_windows: int = MAX_WINDOWS,
    max_empty_windows: int = MAX_EMPTY_WINDOWS,
    page_delay: float = 0.0,
    window_delay: float = 0.0,
    now: Callable[[], datetime] | None = None,
    cursor: PageCursor | None = None,
    sleep: Sleep = asyncio.sleep,
) -> AsyncIterator[Any]:
    """Lazily crawl every item of `source`.

    Args:
        source: Object with `async fetch_page(page_number, page_size, window)`
        page_size: Items requested per page
        window_width: None for a plain page crawl; a timedelta (or a number
            of days) for a backward time-window crawl
        cursor: Optional cursor to observe progress and the stop reason

    Returns:
        Async iterator over raw items
    """
    if window_width is None:
        pages = PageNumberCrawler(
            page_size=page_size,
            max_pages=max_pages,
            page_delay=page_delay,
            sleep=sleep,
        )
        return pages.crawl(lambda n: source.fetch_page(n, page_size, None), cursor)

    days = window_width.days if isinstance(window_width, timedelta) else int(window_width)
    windows = TimeWindowCrawler(
        window_days=days,
        max_windows=max_windows,
        max_empty_windows=max_empty_windows,
        window_delay=window_delay,
        now=now,
        sleep=sleep,
    )

    def fetch_window(window: TimeWindow) -> AsyncIterator[Any]:
        pages = PageNumberCrawler(
            page_size=page_size,
            max_pages=max_pages,
            page_delay=page_delay,
            tolerate_failures=False,
            sleep=sleep,
        )
        return pages.crawl(lambda n: source.fetch_page(n, page_size, window))

    return windows.crawl(fetch_window, cursor)
