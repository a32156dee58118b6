"""Collectors turning remote data into exportable rows."""

from .competitors import (
    CompetitorAnalyzer,
    MyListingsIndex,
    build_search_query,
    extract_search_terms,
    get_target_tokens,
    get_target_types,
    load_my_listings,
    load_work_items,
)
from .listings import SellerListingsCollector
from .promotions import ExpiringPromotionsCollector

__all__ = [
    "SellerListingsCollector",
    "ExpiringPromotionsCollector",
    "CompetitorAnalyzer",
    "MyListingsIndex",
    "build_search_query",
    "extract_search_terms",
    "get_target_tokens",
    "get_target_types",
    "load_my_listings",
    "load_work_items",
]
