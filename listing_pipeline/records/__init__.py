"""Record types for exported rows."""

from .listings import (
    COMPETITOR_COLUMNS,
    LISTING_COLUMNS,
    CompetitorListing,
    SellerListing,
)
from .promotions import PROMOTION_COLUMNS, ExpiringPromotion

__all__ = [
    "SellerListing",
    "CompetitorListing",
    "ExpiringPromotion",
    "LISTING_COLUMNS",
    "COMPETITOR_COLUMNS",
    "PROMOTION_COLUMNS",
]
