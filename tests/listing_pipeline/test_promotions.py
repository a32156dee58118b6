"""Tests for listing_pipeline/records/promotions.py and collectors/promotions.py."""

import copy
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from listing_pipeline.collectors import ExpiringPromotionsCollector
from listing_pipeline.core.errors import ServerError
from listing_pipeline.core.types import StopReason
from listing_pipeline.records import PROMOTION_COLUMNS
from listing_pipeline.records.promotions import (
    ExpiringPromotion,
    describe_discount,
    describe_inventory,
    format_time_left,
    parse_timestamp,
    urgency_level,
)

from .fixtures.ebay_responses import MARKETING_PROMOTIONS_RESPONSE

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def promotions_by_id() -> dict[str, dict]:
    return {p["promotionId"]: p for p in copy.deepcopy(MARKETING_PROMOTIONS_RESPONSE)["promotions"]}


def marketing_client(*pages) -> MagicMock:
    client = MagicMock()
    client.get_promotions = AsyncMock(side_effect=list(pages))
    return client


# =============================================================================
# Records
# =============================================================================


class TestTimeLeft:
    """Countdown formatting and urgency levels."""

    @pytest.mark.parametrize(
        "hours,expected",
        [
            (4.5, "4h 30m"),
            (20, "20h 0m"),
            (26.5, "1d 2h 30m"),
            (48, "2d 0m"),
            (0.25, "15m"),
            (0, "ended"),
            (-3, "ended"),
        ],
    )
    def test_format_time_left(self, hours, expected):
        assert format_time_left(hours) == expected

    @pytest.mark.parametrize(
        "hours,expected",
        [(2, "[!!!]"), (6, "[!!!]"), (6.1, "[!!]"), (12, "[!!]"), (20, "[!]"), (24, "[!]"), (30, "[*]")],
    )
    def test_urgency_level(self, hours, expected):
        assert urgency_level(hours) == expected

    def test_parse_timestamp(self):
        assert parse_timestamp("2025-01-16T10:00:00.000Z") == datetime(2025, 1, 16, 10, tzinfo=timezone.utc)
        assert parse_timestamp("2025-01-16T10:00:00") == datetime(2025, 1, 16, 10, tzinfo=timezone.utc)
        assert parse_timestamp("next week") is None
        assert parse_timestamp(None) is None


class TestDiscountTerms:
    """Discount and inventory descriptions."""

    def test_markdown_percentage(self):
        promotion = promotions_by_id()["5001"]

        assert describe_discount(promotion) == "20% off items"
        assert describe_inventory(promotion) == "3 specific listings"

    def test_order_discount_with_minimum(self):
        promotion = promotions_by_id()["5002"]

        assert describe_discount(promotion) == "$5.00 off order (min purchase $50.00)"
        assert describe_inventory(promotion) == "Rule-based selection"

    def test_legacy_markdown_shape(self):
        promotion = {
            "selectedInventoryDiscounts": [{"discountPercentage": "15"}, {"discountAmount": {"value": "2.5"}}],
            "inventoryCriterion": {"inventoryItems": [{"inventoryReferenceId": "SKU-1"}]},
        }

        assert describe_discount(promotion) == "15% off; $2.50 off"
        assert describe_inventory(promotion) == "1 specific items"

    def test_summary_without_terms(self):
        promotion = promotions_by_id()["5005"]

        assert describe_discount(promotion) == ""
        assert describe_inventory(promotion) == ""


class TestExpiringPromotion:
    """ExpiringPromotion.from_promotion()."""

    def test_row(self):
        promotion = promotions_by_id()["5002"]
        end = parse_timestamp(promotion["endDate"])

        row = ExpiringPromotion.from_promotion(promotion, end, NOW).to_row()

        assert row["Promotion ID"] == "5002"
        assert row["Type"] == "ORDER_DISCOUNT"
        assert row["Status"] == "SCHEDULED"
        assert row["Hours Left"] == 4.5
        assert row["Time Remaining"] == "4h 30m"
        assert row["Urgency"] == "[!!!]"
        assert row["End Date"] == "2025-01-15T16:30:00.000Z"
        assert list(row) == PROMOTION_COLUMNS

    def test_defaults_for_sparse_promotion(self):
        promotion = {"endDate": "2025-01-16T08:00:00.000Z", "promotionStatus": "PAUSED"}

        row = ExpiringPromotion.from_promotion(promotion, parse_timestamp(promotion["endDate"]), NOW).to_row()

        assert row["Name"] == "Unnamed Promotion"
        assert row["Type"] == "Unknown"
        assert row["Promotion ID"] == ""
        assert row["Urgency"] == "[!]"


# =============================================================================
# Collector
# =============================================================================


class TestExpiringPromotionsCollector:
    """Filtering and ordering of expiring promotions."""

    @pytest.mark.asyncio
    async def test_expiring_promotions_sorted_by_end_date(self, sleep_recorder):
        client = marketing_client(copy.deepcopy(MARKETING_PROMOTIONS_RESPONSE))
        collector = ExpiringPromotionsCollector(client, "EBAY_US", now=lambda: NOW, sleep=sleep_recorder)

        rows = [row async for row in collector.collect()]

        # 5003 ends after the window, 5004 has already ended
        assert [row["Promotion ID"] for row in rows] == ["5002", "5005", "5001"]
        assert [row["Urgency"] for row in rows] == ["[!!!]", "[!]", "[!]"]
        assert collector.scanned == 5
        assert collector.expiring == 3
        assert collector.cursor.stop_reason is StopReason.SHORT_PAGE
        client.get_promotions.assert_awaited_once_with("EBAY_US", 50, 0)

    @pytest.mark.asyncio
    async def test_alert_window_is_configurable(self, sleep_recorder):
        client = marketing_client(copy.deepcopy(MARKETING_PROMOTIONS_RESPONSE))
        collector = ExpiringPromotionsCollector(
            client, "EBAY_US", alert_window_hours=6, now=lambda: NOW, sleep=sleep_recorder
        )

        rows = [row async for row in collector.collect()]

        assert [row["Promotion ID"] for row in rows] == ["5002"]

    @pytest.mark.asyncio
    async def test_pages_through_every_promotion(self, sleep_recorder):
        """A full page of 50 is followed by the next offset."""
        first = {
            "promotions": [
                {"promotionId": f"A{i}", "promotionStatus": "ENDED", "endDate": "2025-01-01T00:00:00Z"}
                for i in range(50)
            ]
        }
        client = marketing_client(first, copy.deepcopy(MARKETING_PROMOTIONS_RESPONSE))
        collector = ExpiringPromotionsCollector(
            client, "EBAY_US", page_delay=0.2, now=lambda: NOW, sleep=sleep_recorder
        )

        rows = [row async for row in collector.collect()]

        assert len(rows) == 3
        assert collector.scanned == 55
        assert [c.args for c in client.get_promotions.await_args_list] == [("EBAY_US", 50, 0), ("EBAY_US", 50, 50)]
        assert sleep_recorder.delays == [0.2]

    @pytest.mark.asyncio
    async def test_unusable_end_dates_are_skipped(self, sleep_recorder):
        page = {
            "promotions": [
                {"promotionId": "X", "promotionStatus": "RUNNING", "endDate": "soon"},
                {"promotionId": "Y", "promotionStatus": "RUNNING"},
                {"promotionId": "Z", "promotionStatus": "RUNNING", "endDate": "2025-01-15T13:00:00Z"},
            ]
        }
        collector = ExpiringPromotionsCollector(
            marketing_client(page), "EBAY_US", now=lambda: NOW, sleep=sleep_recorder
        )

        rows = [row async for row in collector.collect()]

        assert [row["Promotion ID"] for row in rows] == ["Z"]
        assert collector.scanned == 3

    @pytest.mark.asyncio
    async def test_failed_pages_stop_the_crawl(self, sleep_recorder):
        """Three failed pages in a row end the crawl with nothing to export."""
        client = marketing_client(*(ServerError("Service Unavailable", status=503) for _ in range(3)))
        collector = ExpiringPromotionsCollector(client, "EBAY_US", now=lambda: NOW, sleep=sleep_recorder)

        rows = [row async for row in collector.collect()]

        assert rows == []
        assert collector.cursor.failures == 3
        assert collector.cursor.stop_reason is StopReason.FAILURES
