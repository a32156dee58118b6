"""Promotion rows for the expiring-discounts export.

Marketing API promotions arrive as JSON objects. Only the fields shown
below are read; missing ones become empty cells.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import Field

from listing_pipeline.sources.xml import dig

from .listings import _parse_float, _Record

URGENCY_LEVELS = ((6, "[!!!]"), (12, "[!!]"), (24, "[!]"))


def parse_timestamp(value: Any) -> datetime | None:
    """Timezone-aware UTC datetime from an ISO-8601 string, else None."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def hours_until(end: datetime, now: datetime) -> float:
    return (end - now).total_seconds() / 3600


def format_time_left(hours: float) -> str:
    """'1d 4h 30m' style countdown; 'ended' once the end date has passed."""
    if hours <= 0:
        return "ended"
    total_minutes = math.floor(hours * 60)
    days, rest = divmod(total_minutes, 24 * 60)
    whole_hours, minutes = divmod(rest, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if whole_hours:
        parts.append(f"{whole_hours}h")
    parts.append(f"{minutes}m")
    return " ".join(parts)


def urgency_level(hours: float) -> str:
    for limit, label in URGENCY_LEVELS:
        if hours <= limit:
            return label
    return "[*]"


def _money(amount: Any) -> str:
    value = _parse_float(dig(amount, "value"))
    return f"${value:.2f}" if value is not None else ""


def _benefit(benefit: Any) -> str:
    if not isinstance(benefit, dict):
        return ""
    if benefit.get("percentageOffOrder"):
        return f"{benefit['percentageOffOrder']}% off order"
    if benefit.get("amountOffOrder"):
        return f"{_money(benefit['amountOffOrder'])} off order"
    if benefit.get("percentageOffItem"):
        return f"{benefit['percentageOffItem']}% off items"
    if benefit.get("amountOffItem"):
        return f"{_money(benefit['amountOffItem'])} off items"
    return ""


def describe_discount(promotion: dict[str, Any]) -> str:
    """Human-readable discount terms of a markdown or threshold promotion."""
    terms: list[str] = []

    for selected in promotion.get("selectedInventoryDiscounts") or []:
        if not isinstance(selected, dict):
            continue
        discount = selected.get("discountBenefit") or selected
        if discount.get("percentageOffItem") or discount.get("amountOffItem"):
            terms.append(_benefit(discount))
        elif selected.get("discountPercentage"):
            terms.append(f"{selected['discountPercentage']}% off")
        elif selected.get("discountAmount"):
            terms.append(f"{_money(selected['discountAmount'])} off")

    rules = promotion.get("discountRules") or []
    if promotion.get("discountBenefit"):
        rules = [promotion]
    for rule in rules:
        if not isinstance(rule, dict):
            continue
        benefit = _benefit(rule.get("discountBenefit"))
        if not benefit:
            continue
        minimum = rule.get("discountSpecification") or {}
        if minimum.get("minAmount") or minimum.get("minimumPurchaseAmount"):
            benefit += f" (min purchase {_money(minimum.get('minAmount') or minimum.get('minimumPurchaseAmount'))})"
        elif minimum.get("minQuantity") or minimum.get("minimumQuantity"):
            benefit += f" (min quantity {minimum.get('minQuantity') or minimum.get('minimumQuantity')})"
        terms.append(benefit)

    return "; ".join(t for t in terms if t)


def describe_inventory(promotion: dict[str, Any]) -> str:
    criterion = promotion.get("inventoryCriterion") or {}
    if criterion.get("inventoryItems"):
        return f"{len(criterion['inventoryItems'])} specific items"
    if criterion.get("listingIds"):
        return f"{len(criterion['listingIds'])} specific listings"
    if criterion.get("ruleCriteria"):
        return "Rule-based selection"
    return ""


class ExpiringPromotion(_Record):
    """A promotion that ends inside the alert window (Marketing API)."""

    kind: Literal["expiring_promotion"] = "expiring_promotion"

    promotion_id: str = Field("", alias="Promotion ID")
    name: str = Field("Unnamed Promotion", alias="Name")
    promotion_type: str = Field("Unknown", alias="Type")
    status: str = Field("", alias="Status")
    marketplace: str = Field("", alias="Marketplace")
    start_date: str = Field("", alias="Start Date")
    end_date: str = Field("", alias="End Date")
    hours_left: float = Field(alias="Hours Left")
    time_remaining: str = Field(alias="Time Remaining")
    urgency: str = Field(alias="Urgency")
    discount: str = Field("", alias="Discount")
    items: str = Field("", alias="Items")
    description: str = Field("", alias="Description")
    promotion_url: str = Field("", alias="Promotion URL")

    @classmethod
    def from_promotion(cls, promotion: dict[str, Any], end: datetime, now: datetime) -> ExpiringPromotion:
        """Normalize a /promotion entry whose end date has already been parsed."""

        def s(key: str) -> str:
            value = promotion.get(key)
            return "" if value is None else str(value)

        hours = hours_until(end, now)
        return cls(
            promotion_id=s("promotionId"),
            name=s("name") or "Unnamed Promotion",
            promotion_type=s("promotionType") or "Unknown",
            status=s("promotionStatus"),
            marketplace=s("marketplaceId"),
            start_date=s("startDate"),
            end_date=s("endDate"),
            hours_left=round(hours, 1),
            time_remaining=format_time_left(hours),
            urgency=urgency_level(hours),
            discount=describe_discount(promotion),
            items=describe_inventory(promotion),
            description=s("description"),
            promotion_url=s("promotionHref"),
        )


PROMOTION_COLUMNS: list[str] = ExpiringPromotion.columns()
