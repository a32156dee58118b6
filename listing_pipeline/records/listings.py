"""Tagged record types for exported rows.

Each remote resource gets one model. Field aliases are the CSV column
names, so the column order of an export is the field order of its model.
Raw remote shapes are normalized in exactly one place: the `from_*`
constructors, which fill in defaults for absent fields.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from listing_pipeline.sources.xml import as_list, dig, text_of


def _parse_float(value: Any) -> float | None:
    """Parse float from string, handling empty/invalid values."""
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(",", "").replace("$", "").strip())
    except (ValueError, TypeError):
        return None


def _parse_int(value: Any) -> int | None:
    number = _parse_float(value)
    return int(number) if number is not None else None


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def columns(cls) -> list[str]:
        """CSV columns in field order."""
        return [
            info.alias or name for name, info in cls.model_fields.items() if name != "kind"
        ]

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"kind"})


# ==================== Seller listings ====================


def clean_description(description: Any, limit: int = 500) -> str:
    """Strip HTML tags and truncate."""
    text = text_of(description)
    if not text:
        return ""
    return re.sub(r"<[^>]*>", "", text).strip()[:limit]


def extract_payment_methods(payment_methods: Any) -> str:
    if not payment_methods:
        return ""
    if isinstance(payment_methods, str):
        return payment_methods
    if isinstance(payment_methods, list):
        return ", ".join(text_of(p) for p in payment_methods)
    if isinstance(payment_methods, dict) and payment_methods.get("Payment"):
        return ", ".join(text_of(p) for p in as_list(payment_methods["Payment"]))
    return ""


def extract_item_specific(item_specifics: Any, name: str) -> str:
    """Value of one NameValueList entry, case-insensitive on the name."""
    for entry in as_list(dig(item_specifics, "NameValueList")):
        if not isinstance(entry, dict):
            continue
        if text_of(entry.get("Name")).lower() == name.lower():
            values = as_list(entry.get("Value"))
            return ", ".join(text_of(v) for v in values)
    return ""


_DURATION = re.compile(r"P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def days_left(time_left: Any) -> float | int | str | None:
    """Days from an ISO-8601 duration such as P5DT12H30M45S -> 5.5.

    Unparseable values are returned unchanged.
    """
    text = text_of(time_left)
    if not text:
        return None
    match = _DURATION.match(text)
    if not match:
        return text
    days = int(match.group(1) or 0)
    hours = int(match.group(2) or 0)
    result = days + round(hours / 24 * 10) / 10
    return int(result) if float(result).is_integer() else result


def total_fees(item: dict[str, Any]) -> str:
    listing_fee = _parse_float(text_of(dig(item, "ListingDetails", "ListingFee"))) or 0.0
    final_value_fee = _parse_float(text_of(dig(item, "SellingStatus", "FinalValueFee"))) or 0.0
    total = listing_fee + final_value_fee
    return f"{total:.2f}" if total > 0 else ""


def format_date(value: Any) -> str:
    """YYYY-MM-DD from an ISO timestamp; unparseable values pass through."""
    text = text_of(value)
    if not text:
        return ""
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return text


def _has_enhancement(item: dict[str, Any], name: str) -> bool:
    return name in [text_of(e) for e in as_list(item.get("ListingEnhancement"))]


class SellerListing(_Record):
    """One of the seller's own listings (Trading API Item)."""

    kind: Literal["seller_listing"] = "seller_listing"

    # Basic Item Info
    item_id: str = Field(alias="Item ID")
    sku: str = Field("", alias="SKU")
    title: str = Field("", alias="Title")
    subtitle: str = Field("", alias="Subtitle")
    description: str = Field("", alias="Description")

    # Category & Classification
    category_id: str = Field("", alias="Category ID")
    category_name: str = Field("", alias="Category Name")
    secondary_category_id: str = Field("", alias="Secondary Category ID")
    secondary_category_name: str = Field("", alias="Secondary Category Name")

    # Condition
    condition_id: str = Field("", alias="Condition ID")
    condition_name: str = Field("", alias="Condition Name")
    condition_description: str = Field("", alias="Condition Description")

    # Listing Format & Duration
    listing_type: str = Field("", alias="Listing Type")
    listing_duration: str = Field("", alias="Listing Duration")

    # Pricing
    start_price: str = Field("", alias="Start Price")
    current_price: str = Field("", alias="Current Price")
    buy_it_now_price: str = Field("", alias="Buy It Now Price")
    reserve_price: str = Field("", alias="Reserve Price")
    currency: str = Field("", alias="Currency")

    # Quantity & Sales
    quantity: str = Field("", alias="Quantity")
    quantity_sold: str = Field("", alias="Quantity Sold")
    quantity_available: str = Field("", alias="Quantity Available")

    # Bidding & Offers
    bid_count: str = Field("", alias="Bid Count")
    high_bidder: str = Field("", alias="High Bidder")
    best_offer_enabled: str = Field("false", alias="Best Offer Enabled")
    auto_accept_price: str = Field("", alias="Auto Accept Price")
    min_accept_price: str = Field("", alias="Min Accept Price")

    # Status & Timing
    listing_status: str = Field("", alias="Listing Status")
    time_left: str = Field("", alias="Time Left")
    start_time: str = Field("", alias="Start Time")
    end_time: str = Field("", alias="End Time")
    time_left_days: float | int | str | None = Field(None, alias="Time Left (Days)")

    # Location & Shipping
    site: str = Field("", alias="Site")
    country: str = Field("", alias="Country")
    location: str = Field("", alias="Location")
    postal_code: str = Field("", alias="Postal Code")
    shipping_type: str = Field("", alias="Shipping Type")
    shipping_cost: str = Field("", alias="Shipping Cost")
    free_shipping: str = Field("false", alias="Free Shipping")

    # Payment & Returns
    payment_methods: str = Field("", alias="Payment Methods")
    returns_accepted: str = Field("", alias="Returns Accepted")
    return_period: str = Field("", alias="Return Period")
    return_policy_description: str = Field("", alias="Return Policy Description")

    # Images & Media
    gallery_url: str = Field("", alias="Gallery URL")
    picture_count: int = Field(0, alias="Picture Count")
    has_pictures: bool = Field(False, alias="Has Pictures")

    # URLs & Links
    view_item_url: str = Field("", alias="View Item URL")
    natural_search_url: str = Field("", alias="View Item URL For Natural Search")

    # Performance Metrics
    watch_count: str = Field("", alias="Watch Count")
    hit_count: str = Field("", alias="Hit Count")
    question_count: str = Field("", alias="Question Count")

    # Listing Features
    private_listing: str = Field("false", alias="Private Listing")
    bold_title: bool = Field(False, alias="Bold Title")
    featured: bool = Field(False, alias="Featured")
    highlight: bool = Field(False, alias="Highlight")
    gallery_plus: bool = Field(False, alias="Gallery Plus")

    # Business Policies
    payment_policy_id: str = Field("", alias="Payment Policy ID")
    shipping_policy_id: str = Field("", alias="Shipping Policy ID")
    return_policy_id: str = Field("", alias="Return Policy ID")

    # Item Specifics
    brand: str = Field("", alias="Brand")
    model: str = Field("", alias="Model")
    size: str = Field("", alias="Size")
    color: str = Field("", alias="Color")
    material: str = Field("", alias="Material")

    # Seller Info
    seller_id: str = Field("", alias="Seller ID")
    feedback_score: str = Field("", alias="Feedback Score")
    positive_feedback_percent: str = Field("", alias="Positive Feedback %")

    # Fees
    listing_fee: str = Field("", alias="Listing Fee")
    final_value_fee: str = Field("", alias="Final Value Fee")
    total_fees: str = Field("", alias="Total Fees")

    # Technical Details
    revised: str = Field("false", alias="Revision")
    uuid: str = Field("", alias="UUID")
    application_data: str = Field("", alias="Application Data")

    # Dates
    created_date: str = Field("", alias="Created Date")
    end_date: str = Field("", alias="End Date")

    status_category: str = Field("", alias="Listing Status Category")

    @classmethod
    def from_trading_item(cls, item: dict[str, Any], status_category: str = "") -> SellerListing:
        """Normalize a parsed Trading API <Item>."""

        def t(*path: str | int) -> str:
            return text_of(dig(item, *path))

        def flag(*path: str | int) -> str:
            return t(*path) or "false"

        shipping = ("ShippingDetails", "ShippingServiceOptions", 0)
        pictures = item.get("PictureDetails")

        return cls(
            item_id=t("ItemID"),
            sku=t("SKU"),
            title=t("Title"),
            subtitle=t("SubTitle"),
            description=clean_description(item.get("Description")),
            category_id=t("PrimaryCategory", "CategoryID"),
            category_name=t("PrimaryCategory", "CategoryName"),
            secondary_category_id=t("SecondaryCategory", "CategoryID"),
            secondary_category_name=t("SecondaryCategory", "CategoryName"),
            condition_id=t("ConditionID"),
            condition_name=t("ConditionDisplayName"),
            condition_description=t("ConditionDescription"),
            listing_type=t("ListingType"),
            listing_duration=t("ListingDuration"),
            start_price=t("StartPrice"),
            current_price=t("SellingStatus", "CurrentPrice"),
            buy_it_now_price=t("BuyItNowPrice"),
            reserve_price=t("ReservePrice"),
            currency=t("SellingStatus", "CurrentPrice", "currencyID"),
            quantity=t("Quantity"),
            quantity_sold=t("SellingStatus", "QuantitySold"),
            quantity_available=t("QuantityAvailable"),
            bid_count=t("SellingStatus", "BidCount"),
            high_bidder=t("SellingStatus", "HighBidder", "UserID"),
            best_offer_enabled=flag("BestOfferDetails", "BestOfferEnabled"),
            auto_accept_price=t("ListingDetails", "BestOfferAutoAcceptPrice"),
            min_accept_price=t("ListingDetails", "MinimumBestOfferPrice"),
            listing_status=t("SellingStatus", "ListingStatus"),
            time_left=t("SellingStatus", "TimeLeft") or t("TimeLeft"),
            start_time=t("ListingDetails", "StartTime"),
            end_time=t("ListingDetails", "EndTime"),
            time_left_days=days_left(t("SellingStatus", "TimeLeft") or t("TimeLeft")),
            site=t("Site"),
            country=t("Country"),
            location=t("Location"),
            postal_code=t("PostalCode"),
            shipping_type=t("ShippingDetails", "ShippingType"),
            shipping_cost=t(*shipping, "ShippingServiceCost"),
            free_shipping=flag(*shipping, "FreeShipping"),
            payment_methods=extract_payment_methods(item.get("PaymentMethods")),
            returns_accepted=t("ReturnPolicy", "ReturnsAcceptedOption"),
            return_period=t("ReturnPolicy", "ReturnsWithinOption"),
            return_policy_description=t("ReturnPolicy", "Description"),
            gallery_url=t("PictureDetails", "GalleryURL") or t("GalleryURL"),
            picture_count=len(as_list(dig(pictures, "PictureURL"))),
            has_pictures=bool(pictures),
            view_item_url=t("ListingDetails", "ViewItemURL"),
            natural_search_url=t("ListingDetails", "ViewItemURLForNaturalSearch"),
            watch_count=t("WatchCount"),
            hit_count=t("HitCount"),
            question_count=t("QuestionCount"),
            private_listing=flag("PrivateListing"),
            bold_title=_has_enhancement(item, "BoldTitle"),
            featured=_has_enhancement(item, "Featured"),
            highlight=_has_enhancement(item, "Highlight"),
            gallery_plus=_has_enhancement(item, "GalleryPlus"),
            payment_policy_id=t("SellerProfiles", "SellerPaymentProfile", "PaymentProfileID"),
            shipping_policy_id=t("SellerProfiles", "SellerShippingProfile", "ShippingProfileID"),
            return_policy_id=t("SellerProfiles", "SellerReturnProfile", "ReturnProfileID"),
            brand=extract_item_specific(item.get("ItemSpecifics"), "Brand"),
            model=extract_item_specific(item.get("ItemSpecifics"), "Model"),
            size=extract_item_specific(item.get("ItemSpecifics"), "Size"),
            color=extract_item_specific(item.get("ItemSpecifics"), "Color"),
            material=extract_item_specific(item.get("ItemSpecifics"), "Material"),
            seller_id=t("Seller", "UserID"),
            feedback_score=t("Seller", "FeedbackScore"),
            positive_feedback_percent=t("Seller", "PositiveFeedbackPercent"),
            listing_fee=t("ListingDetails", "ListingFee"),
            final_value_fee=t("SellingStatus", "FinalValueFee"),
            total_fees=total_fees(item),
            revised=flag("ReviseStatus", "ItemRevised"),
            uuid=t("UUID"),
            application_data=t("ApplicationData"),
            created_date=format_date(t("ListingDetails", "StartTime")),
            end_date=format_date(t("ListingDetails", "EndTime")),
            status_category=status_category,
        )


# ==================== Competitor listings ====================


def calculate_total_price(summary: dict[str, Any]) -> str:
    price = _parse_float(dig(summary, "price", "value")) or 0.0
    shipping = _parse_float(dig(summary, "shippingOptions", 0, "shippingCost", "value")) or 0.0
    return f"{price + shipping:.2f}"


def price_comparison(my_price: float | None, comp_price: float | None) -> tuple[str, str, str]:
    """(difference $, difference %, position) of a competitor against my price.

    Position is from the seller's point of view: a competitor more than 10%
    above my price means I am UNDERPRICED.
    """
    if not my_price or not comp_price:
        return "", "", ""
    diff = comp_price - my_price
    percent = f"{diff / my_price * 100:.1f}%"
    if comp_price > my_price * 1.1:
        position = "UNDERPRICED"
    elif comp_price < my_price * 0.9:
        position = "OVERPRICED"
    else:
        position = "COMPETITIVE"
    return f"{diff:.2f}", percent, position


def compare_feedback(my_score: int | None, comp_score: int | None) -> str:
    mine = my_score or 0
    theirs = comp_score or 0
    if mine > theirs * 2:
        return "STRONG"
    if mine > theirs:
        return "BETTER"
    if mine < theirs / 2:
        return "WEAK"
    return "SIMILAR"


def _yes(flag: bool) -> str:
    return "YES" if flag else "NO"


class CompetitorListing(_Record):
    """A competing listing found for one of my products (Browse API)."""

    kind: Literal["competitor_listing"] = "competitor_listing"

    # My item
    my_product: str = Field(alias="My Product")
    my_category: str = Field("", alias="My Category")
    my_item_id: str = Field("", alias="My Item ID")
    my_sku: str = Field("", alias="My SKU")
    my_price: str = Field("", alias="My Price")
    my_quantity: str = Field("", alias="My Quantity")
    my_watchers: str = Field("", alias="My Watchers")
    my_views: str = Field("", alias="My Views")
    my_sold: str = Field("", alias="My Sold")
    my_url: str = Field("", alias="My URL")

    # Competitor
    comp_title: str = Field("", alias="Comp Title")
    comp_price: str = Field("", alias="Comp Price")
    comp_shipping: str = Field("0", alias="Comp Shipping")
    comp_total_price: str = Field("", alias="Comp Total Price")
    comp_seller: str = Field("", alias="Comp Seller")
    comp_feedback_percent: str = Field("", alias="Comp Feedback %")
    comp_feedback_score: str = Field("", alias="Comp Feedback Score")
    comp_location: str = Field("", alias="Comp Location")
    comp_available: str = Field("", alias="Comp Available")
    comp_sold: str = Field("", alias="Comp Sold")
    comp_url: str = Field("", alias="Comp URL")
    comp_item_id: str = Field(alias="Comp Item ID")

    # Comparison metrics
    price_diff: str = Field("", alias="Price Diff ($)")
    price_diff_percent: str = Field("", alias="Price Diff (%)")
    price_position: str = Field("", alias="Price Position")
    feedback_advantage: str = Field("", alias="Feedback Advantage")
    search_rank: int = Field(0, alias="Search Rank")

    # Selling signals
    fast_selling: str = Field("NO", alias="Fast Selling")
    low_stock: str = Field("NO", alias="Low Stock")
    top_rated: str = Field("NO", alias="Top Rated")
    free_shipping: str = Field("NO", alias="Free Shipping")

    @classmethod
    def from_summary(
        cls,
        summary: dict[str, Any],
        *,
        product_name: str,
        category: str = "",
        search_rank: int = 0,
        detail: dict[str, Any] | None = None,
        my_listing: dict[str, Any] | None = None,
    ) -> CompetitorListing:
        """Normalize a Browse item summary (plus optional detail record)."""
        detail = detail or {}
        mine = my_listing or {}

        def m(column: str) -> str:
            value = mine.get(column)
            return "" if value is None else str(value)

        def s(*path: str | int) -> str:
            value = dig(summary, *path)
            return "" if value is None else str(value)

        availability = dig(detail, "estimatedAvailabilities", 0) or {}
        available = availability.get("availabilityThreshold", availability.get("estimatedAvailableQuantity"))
        sold = availability.get("estimatedSoldQuantity", detail.get("quantitySold"))
        shipping_cost = s("shippingOptions", 0, "shippingCost", "value")

        my_price = _parse_float(mine.get("Current Price"))
        comp_price = _parse_float(s("price", "value"))
        diff, diff_percent, position = price_comparison(my_price, comp_price)

        available_count = _parse_int(available)
        sold_count = _parse_int(sold)
        feedback_percent = _parse_float(s("seller", "feedbackPercentage"))
        shipping_value = _parse_float(shipping_cost)

        return cls(
            my_product=product_name,
            my_category=category,
            my_item_id=m("Item ID"),
            my_sku=m("SKU"),
            my_price=m("Current Price"),
            my_quantity=m("Quantity Available"),
            my_watchers=m("Watch Count"),
            my_views=m("Hit Count"),
            my_sold=m("Quantity Sold"),
            my_url=m("View Item URL"),
            comp_title=s("title"),
            comp_price=s("price", "value"),
            comp_shipping=shipping_cost or "0",
            comp_total_price=calculate_total_price(summary),
            comp_seller=s("seller", "username"),
            comp_feedback_percent=s("seller", "feedbackPercentage"),
            comp_feedback_score=s("seller", "feedbackScore"),
            comp_location=s("itemLocation", "country"),
            comp_available="" if available is None else str(available),
            comp_sold="" if sold is None else str(sold),
            comp_url=s("itemWebUrl"),
            comp_item_id=s("itemId"),
            price_diff=diff,
            price_diff_percent=diff_percent,
            price_position=position,
            feedback_advantage=compare_feedback(
                _parse_int(mine.get("Feedback Score")),
                _parse_int(s("seller", "feedbackScore")),
            ),
            search_rank=search_rank,
            fast_selling=_yes(sold_count is not None and sold_count > 10),
            low_stock=_yes(available_count is not None and available_count < 5),
            top_rated=_yes(feedback_percent is not None and feedback_percent >= 99.5),
            free_shipping=_yes(shipping_value is not None and shipping_value == 0),
        )


LISTING_COLUMNS: list[str] = SellerListing.columns()
COMPETITOR_COLUMNS: list[str] = CompetitorListing.columns()
