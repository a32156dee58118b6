"""
eBay Marketing API Client

Read-only access to the seller's promotions (markdown sales, order and
volume discounts). Promotions are paged by offset.

Usage:
    client = MarketingApiClient(token_provider, executor, host="api.ebay.com")
    async for promotion in crawl(PromotionSource(client, "EBAY_US"), page_size=50):
        ...
"""

from __future__ import annotations

from typing import Any

from listing_pipeline.config.constants import MARKETING_PROMOTION_PATH, PROMOTION_PAGE_SIZE
from listing_pipeline.core.types import Page, TimeWindow

from .http import JsonApiClient


class MarketingApiClient(JsonApiClient):
    """eBay Marketing API client (bearer token auth)."""

    source = "marketing"
    label = "Marketing"

    async def get_promotions(
        self,
        marketplace_id: str,
        limit: int = PROMOTION_PAGE_SIZE,
        offset: int = 0,
    ) -> dict[str, Any]:
        """One page of promotions for `marketplace_id`, newest first."""
        params = [
            ("marketplace_id", marketplace_id),
            ("limit", str(limit)),
            ("offset", str(offset)),
        ]
        return await self.executor.execute(self._get, MARKETING_PROMOTION_PATH, params)


class PromotionSource:
    """Offset-paged /promotion listing."""

    default_page_size = PROMOTION_PAGE_SIZE

    def __init__(self, client: MarketingApiClient, marketplace_id: str) -> None:
        self.client = client
        self.marketplace_id = marketplace_id

    async def fetch_page(
        self,
        page_number: int,
        page_size: int,
        window: TimeWindow | None = None,
    ) -> Page:
        offset = (page_number - 1) * page_size
        data = await self.client.get_promotions(self.marketplace_id, page_size, offset)

        promotions = [p for p in (data.get("promotions") or []) if isinstance(p, dict)]
        total = data.get("total")
        has_more = offset + len(promotions) < total if isinstance(total, int) else None
        return Page(items=promotions, has_more=has_more)
