"""eBay API adapters."""

from .auth import AccessToken, StaticTokenProvider, is_token_expired
from .browse import BrowseApiClient
from .marketing import MarketingApiClient, PromotionSource
from .trading import MyEbaySellingSource, SellerListSource, TradingApiClient
from .xml import parse_xml

__all__ = [
    "AccessToken",
    "StaticTokenProvider",
    "is_token_expired",
    "BrowseApiClient",
    "MarketingApiClient",
    "PromotionSource",
    "TradingApiClient",
    "SellerListSource",
    "MyEbaySellingSource",
    "parse_xml",
]
