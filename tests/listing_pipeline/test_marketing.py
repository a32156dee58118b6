"""Tests for listing_pipeline/sources/marketing.py."""

import pytest

from listing_pipeline.core.errors import ClientError, ServerError
from listing_pipeline.core.types import PageCursor, StopReason
from listing_pipeline.crawl import crawl
from listing_pipeline.sources.marketing import MarketingApiClient, PromotionSource

from .conftest import json_response, make_response, make_session
from .fixtures.ebay_responses import BROWSE_ERROR_RESPONSE, MARKETING_PROMOTIONS_RESPONSE


@pytest.fixture
def client_factory(token_provider, executor):
    def _factory(*responses):
        session = make_session(*responses)
        return MarketingApiClient(token_provider, executor, "api.ebay.com", session=session), session

    return _factory


def promotions_page(count: int, start: int = 0, total: int | None = None) -> dict:
    page = {"promotions": [{"promotionId": str(start + i)} for i in range(count)]}
    if total is not None:
        page["total"] = total
    return page


class TestGetPromotions:
    """Tests for get_promotions()."""

    @pytest.mark.asyncio
    async def test_request_shape(self, client_factory):
        client, session = client_factory(json_response(200, MARKETING_PROMOTIONS_RESPONSE))

        data = await client.get_promotions("EBAY_AT", limit=50, offset=100)

        assert len(data["promotions"]) == 5
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "GET"
        assert url == "https://api.ebay.com/sell/marketing/v1/promotion"
        assert dict(kwargs["params"]) == {"marketplace_id": "EBAY_AT", "limit": "50", "offset": "100"}
        assert kwargs["headers"]["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_error_list_is_mapped(self, client_factory):
        client, session = client_factory(json_response(400, BROWSE_ERROR_RESPONSE))

        with pytest.raises(ClientError) as exc_info:
            await client.get_promotions("EBAY_US")

        assert str(exc_info.value).startswith("Marketing HTTP 400")
        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, client_factory, sleep_recorder):
        client, session = client_factory(
            make_response(503, "Service Unavailable"),
            json_response(200, MARKETING_PROMOTIONS_RESPONSE),
        )

        await client.get_promotions("EBAY_US")

        assert session.request.call_count == 2
        assert sleep_recorder.delays == [2.0]

    @pytest.mark.asyncio
    async def test_persistent_server_error_surfaces(self, client_factory):
        client, session = client_factory(*(make_response(500, "") for _ in range(3)))

        with pytest.raises(ServerError):
            await client.get_promotions("EBAY_US")

        assert session.request.call_count == 3


class TestPromotionSource:
    """Offset paging over /promotion."""

    @pytest.mark.asyncio
    async def test_page_number_maps_to_offset(self, client_factory):
        client, session = client_factory(json_response(200, promotions_page(50, 50, total=120)))
        source = PromotionSource(client, "EBAY_US")

        page = await source.fetch_page(2, 50)

        assert dict(session.request.call_args.kwargs["params"])["offset"] == "50"
        assert len(page) == 50
        assert page.has_more is True

    @pytest.mark.asyncio
    async def test_total_reached_means_no_more(self, client_factory):
        client, _ = client_factory(json_response(200, promotions_page(50, 50, total=100)))

        page = await PromotionSource(client, "EBAY_US").fetch_page(2, 50)

        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_missing_promotions_is_empty_page(self, client_factory):
        client, _ = client_factory(json_response(200, {"total": 0}))

        page = await PromotionSource(client, "EBAY_US").fetch_page(1, 50)

        assert page.items == []

    @pytest.mark.asyncio
    async def test_crawl_stops_on_short_page(self, client_factory):
        """50 + 3 promotions take two requests, at offsets 0 and 50."""
        client, session = client_factory(
            json_response(200, promotions_page(50)),
            json_response(200, promotions_page(3, 50)),
        )
        source = PromotionSource(client, "EBAY_US")
        cursor = PageCursor()

        ids = [p["promotionId"] async for p in crawl(source, source.default_page_size, cursor=cursor)]

        assert len(ids) == 53
        assert ids[-1] == "52"
        offsets = [dict(c.kwargs["params"])["offset"] for c in session.request.call_args_list]
        assert offsets == ["0", "50"]
        assert cursor.stop_reason is StopReason.SHORT_PAGE
