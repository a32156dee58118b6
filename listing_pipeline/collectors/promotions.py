"""Expiring promotions collector.

Pages through every promotion of the seller's marketplace and keeps the
running, scheduled or paused ones that end within the alert window,
soonest first. Sorting needs the whole set, so rows are produced only
after the crawl has finished.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from listing_pipeline.config.constants import (
    ALERT_WINDOW_HOURS,
    PROMOTION_PAGE_DELAY,
    PROMOTION_STATUSES,
)
from listing_pipeline.core.types import PageCursor
from listing_pipeline.crawl.pagination import crawl
from listing_pipeline.observability.logger import get_logger
from listing_pipeline.records.promotions import ExpiringPromotion, parse_timestamp
from listing_pipeline.sources.marketing import MarketingApiClient, PromotionSource

logger = get_logger(__name__)


class ExpiringPromotionsCollector:
    """Finds promotions about to end."""

    def __init__(
        self,
        client: MarketingApiClient,
        marketplace_id: str,
        *,
        alert_window_hours: int = ALERT_WINDOW_HOURS,
        page_delay: float = PROMOTION_PAGE_DELAY,
        now: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.marketplace_id = marketplace_id
        self.alert_window_hours = alert_window_hours
        self.page_delay = page_delay
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.sleep = sleep

        self.scanned = 0
        self.expiring = 0
        self.cursor = PageCursor()

    def is_expiring(self, promotion: dict[str, Any], end: datetime | None, threshold: datetime) -> bool:
        return (
            end is not None
            and promotion.get("promotionStatus") in PROMOTION_STATUSES
            and end <= threshold
        )

    async def collect(self) -> AsyncIterator[dict[str, Any]]:
        """Yield one row per expiring promotion, ordered by end date."""
        now = self.now()
        threshold = now + timedelta(hours=self.alert_window_hours)
        logger.info(f"Looking for promotions ending before {threshold.isoformat()}")

        source = PromotionSource(self.client, self.marketplace_id)
        promotions = crawl(
            source,
            source.default_page_size,
            page_delay=self.page_delay,
            cursor=self.cursor,
            sleep=self.sleep,
        )

        matches: list[tuple[datetime, dict[str, Any]]] = []
        async for promotion in promotions:
            self.scanned += 1
            end = parse_timestamp(promotion.get("endDate"))
            if end is None:
                logger.debug(f"Skipping promotion {promotion.get('promotionId')} without a usable end date")
            if self.is_expiring(promotion, end, threshold):
                matches.append((end, promotion))

        matches.sort(key=lambda match: match[0])
        self.expiring = len(matches)
        logger.info(
            f"Found {self.scanned} promotions, {self.expiring} ending within "
            f"{self.alert_window_hours} hours",
            extra={"stop_reason": self.cursor.stop_reason.value if self.cursor.stop_reason else None},
        )

        for end, promotion in matches:
            yield ExpiringPromotion.from_promotion(promotion, end, now).to_row()
