"""
eBay Browse API Client

JSON API used to look up competing listings.
Supports: item_summary/search, item details (batches of 20 ids)

Usage:
    client = BrowseApiClient(token_provider, executor, host="api.ebay.com")
    results = await client.search("microfiber sheet set queen", price_range=(10, 40))
    details = await client.get_item_details([s["itemId"] for s in results["itemSummaries"]])
"""

from __future__ import annotations

from typing import Any

from listing_pipeline.config.constants import (
    BROWSE_ITEM_PATH,
    BROWSE_SEARCH_PATH,
    ITEM_DETAILS_BATCH_SIZE,
    SEARCH_PAGE_SIZE,
)
from listing_pipeline.core.errors import PipelineError
from listing_pipeline.observability.logger import get_logger

from .http import JsonApiClient

logger = get_logger(__name__)


class BrowseApiClient(JsonApiClient):
    """eBay Browse API client (bearer token auth)."""

    source = "browse"
    label = "Browse"

    # ==================== Search ====================

    @staticmethod
    def search_params(
        query: str,
        price_range: tuple[float, float] | None = None,
        limit: int = SEARCH_PAGE_SIZE,
        category_ids: str | None = None,
        offset: int = 0,
    ) -> list[tuple[str, str]]:
        params = [("q", query), ("limit", str(limit))]
        if offset:
            params.append(("offset", str(offset)))
        if category_ids:
            params.append(("category_ids", category_ids))

        filters = []
        if price_range:
            low, high = price_range
            filters.append(f"price:[{low:.2f}..{high:.2f}]")
            filters.append("priceCurrency:USD")
        filters.append("buyingOptions:{FIXED_PRICE}")
        filters.append("conditions:{NEW}")
        params.append(("filter", ",".join(filters)))

        params.append(("sort", "price"))
        params.append(("fieldgroups", "EXTENDED"))
        return params

    async def search(
        self,
        query: str,
        price_range: tuple[float, float] | None = None,
        limit: int = SEARCH_PAGE_SIZE,
        category_ids: str | None = None,
    ) -> dict[str, Any]:
        """Search fixed-price, new-condition listings sorted by price.

        Errors propagate: a failed search fails the work item.
        """
        params = self.search_params(query, price_range, limit, category_ids)
        return await self.executor.execute(self._get, BROWSE_SEARCH_PATH, params)

    # ==================== Item details ====================

    async def get_item_details(self, item_ids: list[str]) -> list[dict[str, Any]]:
        """
        Fetch detail records for up to ITEM_DETAILS_BATCH_SIZE ids per call.

        Details only enrich a row, so a failed batch is logged and
        contributes no items instead of failing the caller.

        Args:
            item_ids: Browse item ids (v1|...|0 format)

        Returns:
            Detail records in response order
        """
        details: list[dict[str, Any]] = []
        for start in range(0, len(item_ids), ITEM_DETAILS_BATCH_SIZE):
            batch = [i for i in item_ids[start : start + ITEM_DETAILS_BATCH_SIZE] if i]
            if not batch:
                continue
            try:
                data = await self.executor.execute(
                    self._get, BROWSE_ITEM_PATH, [("item_ids", ",".join(batch))]
                )
            except PipelineError as e:
                logger.warning(f"Could not get details for {len(batch)} items: {e}")
                continue
            details.extend(d for d in (data.get("items") or []) if isinstance(d, dict))
        return details
