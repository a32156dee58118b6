"""Competitor analysis.

For each input product the analyzer builds a search query from the product
name, narrows it by price when the seller's own listing is known, filters
the results by seller quality and title relevance, enriches the top results
with item details, and emits one row per competitor.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import pandas as pd

from listing_pipeline.config.constants import (
    MAX_RESULTS_PER_ITEM,
    MIN_SELLER_FEEDBACK_PERCENT,
    MIN_SELLER_FEEDBACK_SCORE,
    MIN_TYPE_TOKEN_MATCHES,
)
from listing_pipeline.core.types import WorkItem
from listing_pipeline.observability.logger import get_logger
from listing_pipeline.records.listings import CompetitorListing
from listing_pipeline.sources.browse import BrowseApiClient

logger = get_logger(__name__)

MATERIALS = ["microfiber", "cotton", "bamboo", "velvet", "linen"]
PRODUCT_TYPES = [
    "sheet set",
    "duvet cover",
    "coverlet",
    "bedspread",
    "pillowcase",
    "curtain",
    "valance",
    "quilt",
    "comforter",
    "blackout curtain",
    "sheer valance",
]
TARGET_TYPES = [
    "sheet set",
    "duvet cover",
    "coverlet",
    "bedspread",
    "pillowcase",
    "pillow case",
    "pillowcase set",
    "pillow sham",
    "fitted sheet",
    "flat sheet",
    "sham",
    "curtain",
    "valance",
    "quilt",
    "comforter",
]
SIZES = ["king", "queen", "full", "twin", "california king"]

_BRAND_PREFIX = re.compile(r"^[A-Z][a-z]+\s")
_PIECE_COUNT = re.compile(r"(\d+)[\s-]?(piece|pc|pcs)", re.I)
_THREAD_COUNT = re.compile(r"(\d+)\s?(thread count|TC)", re.I)
_TITLE_STOP_WORDS = re.compile(r"\b(the|and|or|for|with|set|pc|piece|pieces)\b")


# ==================== Search terms ====================


def extract_search_terms(product_name: str) -> str:
    """Search phrase from piece/thread counts, materials, types and sizes.

    A leading capitalized word is treated as a brand and dropped.
    """
    cleaned = _BRAND_PREFIX.sub("", product_name or "", count=1)
    lowered = cleaned.lower()
    terms: list[str] = []

    piece = _PIECE_COUNT.search(cleaned)
    if piece:
        terms.append(piece.group(0))

    thread = _THREAD_COUNT.search(cleaned)
    if thread:
        terms.append(f"{thread.group(1)} thread count")

    for vocabulary in (MATERIALS, PRODUCT_TYPES, SIZES):
        terms.extend(term for term in vocabulary if term in lowered)

    return " ".join(terms)[:100]


def get_target_types(product_name: str) -> list[str]:
    """Product types the name likely describes, including plural/compound variants."""
    lowered = (product_name or "").lower()
    matches: list[str] = []
    for product_type in TARGET_TYPES:
        first = product_type.split(" ")[0]
        if (
            product_type in lowered
            or first in lowered
            or f"{first}s" in lowered
            or f"{first}case" in lowered
        ):
            if product_type not in matches:
                matches.append(product_type)
    return matches


def get_target_tokens(product_name: str) -> list[str]:
    """Deduplicated single-word tokens a relevant competitor title should contain."""
    phrase = extract_search_terms(product_name or "")
    tokens = [t for t in re.sub(r"[^\w\s]", " ", phrase.lower()).split() if len(t) > 1]
    explicit = [word for t in get_target_types(product_name or "") for word in t.split(" ")]

    unique: list[str] = []
    for token in tokens + explicit:
        token = token.strip()
        if token and token not in unique:
            unique.append(token)
    return unique


def build_search_query(product_name: str) -> str:
    """Search terms plus the top two target tokens."""
    query = extract_search_terms(product_name)
    tokens = get_target_tokens(product_name)
    if tokens:
        query = f"{query} {' '.join(tokens[:2])}".strip()
    return query


# ==================== My listings ====================


def simplify_title(title: str) -> str:
    """Normalize a title for fuzzy matching."""
    text = re.sub(r"[^\w\s]", "", (title or "").lower())
    return _TITLE_STOP_WORDS.sub("", text).strip()[:50]


class MyListingsIndex:
    """Lookup of the seller's listings by simplified title and SKU."""

    def __init__(self, listings: list[dict[str, Any]] | None = None) -> None:
        self.listings = listings or []
        self._index: dict[str, dict[str, Any]] = {}
        for listing in self.listings:
            key = simplify_title(str(listing.get("Title") or ""))
            if key:
                self._index[key] = listing
            sku = listing.get("SKU")
            if sku:
                self._index[str(sku)] = listing

    def __len__(self) -> int:
        return len(self.listings)

    def find(self, product_name: str) -> dict[str, Any] | None:
        """Exact simplified-title match first, then a 20-character prefix overlap."""
        simplified = simplify_title(product_name)
        if not simplified:
            return None
        if simplified in self._index:
            return self._index[simplified]

        prefix = simplified[:20]
        for key, listing in self._index.items():
            if prefix in key or key[:20] in simplified:
                return listing
        return None


def load_my_listings(path: str | Path | None) -> MyListingsIndex:
    """Load a previous listings export; a missing file yields an empty index."""
    if path is None:
        return MyListingsIndex()
    path = Path(path)
    if not path.exists():
        logger.warning(f"Could not load your listings: {path} not found")
        logger.warning("Proceeding without your listing data")
        return MyListingsIndex()

    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    listings = df.to_dict("records")
    logger.info(f"Loaded {len(listings)} of your listings from {path}")
    return MyListingsIndex(listings)


def load_work_items(path: str | Path, limit: int | None = None) -> list[WorkItem]:
    """Load input products from CSV as WorkItems (blank rows skipped).

    Raises:
        FileNotFoundError: if the input file does not exist
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    records = [r for r in df.to_dict("records") if any(str(v).strip() for v in r.values())]
    logger.info(f"Loaded {len(records)} items from CSV: {path}")

    if limit is not None and limit < len(records):
        records = records[:limit]
        logger.info(f"Limiting analysis to {limit} items")

    return [WorkItem(index=i, payload=record) for i, record in enumerate(records)]


# ==================== Analyzer ====================


class CompetitorAnalyzer:
    """Worker-pool processor: one WorkItem in, competitor rows out.

    Search failures propagate so the pool logs and counts the item;
    missing item details only leave the detail columns empty.
    """

    def __init__(
        self,
        client: BrowseApiClient,
        my_listings: MyListingsIndex | None = None,
        *,
        min_feedback_percent: float = MIN_SELLER_FEEDBACK_PERCENT,
        min_feedback_score: int = MIN_SELLER_FEEDBACK_SCORE,
        min_token_matches: int = MIN_TYPE_TOKEN_MATCHES,
        max_results: int = MAX_RESULTS_PER_ITEM,
    ) -> None:
        self.client = client
        self.my_listings = my_listings or MyListingsIndex()
        self.min_feedback_percent = min_feedback_percent
        self.min_feedback_score = min_feedback_score
        self.min_token_matches = min_token_matches
        self.max_results = max_results

    @staticmethod
    def price_range(my_listing: dict[str, Any] | None) -> tuple[float, float] | None:
        """0.5x to 2x of my current price (floor of 1), when known."""
        if not my_listing:
            return None
        try:
            my_price = float(str(my_listing.get("Current Price") or "").replace(",", ""))
        except ValueError:
            return None
        if my_price <= 0:
            return None
        return max(1.0, my_price * 0.5), my_price * 2

    def filter_by_seller(self, summaries: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Keep well-rated sellers; fall back to all results when none qualify."""

        def qualifies(summary: dict[str, Any]) -> bool:
            seller = summary.get("seller") or {}
            try:
                percent = float(seller.get("feedbackPercentage") or 0)
                score = int(float(seller.get("feedbackScore") or 0))
            except (TypeError, ValueError):
                return False
            return percent >= self.min_feedback_percent and score >= self.min_feedback_score

        filtered = [s for s in summaries if qualifies(s)]
        if not filtered:
            logger.info(
                f"No competitors met seller thresholds (>= {self.min_feedback_percent}% & "
                f">= {self.min_feedback_score}). Falling back to top {self.max_results} results."
            )
            return summaries
        return filtered

    def filter_by_tokens(
        self, summaries: list[dict[str, Any]], tokens: list[str]
    ) -> list[dict[str, Any]]:
        """Keep titles containing enough target tokens; keep input when none do."""
        if not tokens:
            return summaries

        def matches(summary: dict[str, Any]) -> bool:
            title = str(summary.get("title") or "").lower()
            return sum(1 for t in tokens if t in title) >= self.min_token_matches

        filtered = [s for s in summaries if matches(s)]
        if not filtered:
            logger.info(
                f"No competitors matched >= {self.min_token_matches} tokens "
                f"({', '.join(tokens[:6])}). Keeping previous filtered set ({len(summaries)})."
            )
            return summaries
        return filtered

    async def process(self, item: WorkItem) -> list[dict[str, Any]]:
        """Find competitors for one input product."""
        payload = item.payload
        product_name = str(payload.get("Product Name") or payload.get("Title") or "")
        category = str(payload.get("Category") or "")

        query = build_search_query(product_name)
        if not query:
            logger.warning(f"Could not extract search terms from: {product_name!r}")
            return []

        my_listing = self.my_listings.find(product_name)
        if my_listing:
            logger.debug(f"Matched with your listing: {my_listing.get('Title')}")

        logger.info(f"Search query: {query}")
        results = await self.client.search(query, price_range=self.price_range(my_listing))
        summaries = [s for s in (results.get("itemSummaries") or []) if isinstance(s, dict)]
        if not summaries:
            logger.warning("No competitors found")
            return []

        ranks = {id(s): rank for rank, s in enumerate(summaries, start=1)}
        candidates = self.filter_by_seller(summaries)
        candidates = self.filter_by_tokens(candidates, get_target_tokens(product_name))
        top = candidates[: self.max_results]

        details = await self.client.get_item_details([str(s.get("itemId") or "") for s in top])
        details_by_id = {d.get("itemId"): d for d in details}

        rows = [
            CompetitorListing.from_summary(
                summary,
                product_name=product_name,
                category=category,
                search_rank=ranks[id(summary)],
                detail=details_by_id.get(summary.get("itemId")),
                my_listing=my_listing,
            ).to_row()
            for summary in top
        ]
        logger.info(f"Found {len(rows)} competitors with details")
        return rows
