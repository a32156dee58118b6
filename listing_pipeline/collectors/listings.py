"""Seller listings collector.

Reads the seller's own listings through the Trading API:

1. Active listings via a GetMyeBaySelling page crawl.
2. When fewer than `historical_fallback_min` active listings turn up,
   listing history via a backward GetSellerList time-window crawl.

Rows are yielded as they are normalized, so the caller can stream them.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any, Callable

from listing_pipeline.config.constants import (
    HISTORICAL_FALLBACK_MIN,
    MAX_WINDOWS,
    MY_EBAY_PAGE_DELAY,
    SELLER_LIST_PAGE_DELAY,
    WINDOW_DAYS,
    WINDOW_DELAY,
)
from listing_pipeline.core.types import PageCursor
from listing_pipeline.crawl.pagination import crawl
from listing_pipeline.observability.logger import get_logger
from listing_pipeline.records.listings import SellerListing
from listing_pipeline.sources.trading import MyEbaySellingSource, SellerListSource, TradingApiClient
from listing_pipeline.sources.xml import text_of

logger = get_logger(__name__)


class SellerListingsCollector:
    """Collects and normalizes the seller's listings."""

    def __init__(
        self,
        client: TradingApiClient,
        *,
        historical_fallback_min: int = HISTORICAL_FALLBACK_MIN,
        window_days: int = WINDOW_DAYS,
        max_windows: int = MAX_WINDOWS,
        page_delay: float | None = None,
        window_delay: float = WINDOW_DELAY,
        now: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.historical_fallback_min = historical_fallback_min
        self.window_days = window_days
        self.max_windows = max_windows
        self.page_delay = page_delay
        self.window_delay = window_delay
        self.now = now
        self.sleep = sleep

        self.active_count = 0
        self.historical_count = 0
        self.active_cursor = PageCursor()
        self.history_cursor = PageCursor()

    async def collect(self) -> AsyncIterator[dict[str, Any]]:
        """Yield one normalized row per listing, active listings first.

        A listing seen among active listings is not repeated from history.
        """
        seen: set[str] = set()

        logger.info("Fetching active listings using GetMyeBaySelling...")
        active_source = MyEbaySellingSource(self.client)
        active = crawl(
            active_source,
            active_source.default_page_size,
            page_delay=MY_EBAY_PAGE_DELAY if self.page_delay is None else self.page_delay,
            cursor=self.active_cursor,
            sleep=self.sleep,
        )
        async for item in active:
            listing = SellerListing.from_trading_item(item, status_category="Active")
            if listing.item_id:
                seen.add(listing.item_id)
            self.active_count += 1
            yield listing.to_row()

        logger.info(
            f"Found {self.active_count} active listings",
            extra={"stop_reason": _reason(self.active_cursor)},
        )

        if self.active_count >= self.historical_fallback_min:
            return

        logger.info(f"Searching historical listings in {self.window_days}-day windows...")
        history_source = SellerListSource(self.client)
        history = crawl(
            history_source,
            history_source.default_page_size,
            window_width=self.window_days,
            max_windows=self.max_windows,
            page_delay=SELLER_LIST_PAGE_DELAY if self.page_delay is None else self.page_delay,
            window_delay=self.window_delay,
            now=self.now,
            cursor=self.history_cursor,
            sleep=self.sleep,
        )
        async for item in history:
            item_id = text_of(item.get("ItemID"))
            if item_id and item_id in seen:
                continue
            if item_id:
                seen.add(item_id)
            self.historical_count += 1
            yield SellerListing.from_trading_item(item, status_category="Historical").to_row()

        logger.info(
            f"Found {self.historical_count} historical listings",
            extra={"stop_reason": _reason(self.history_cursor)},
        )

    @property
    def total(self) -> int:
        return self.active_count + self.historical_count


def _reason(cursor: PageCursor) -> str | None:
    return cursor.stop_reason.value if cursor.stop_reason else None
