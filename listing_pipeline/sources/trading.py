"""
eBay Trading API Client

XML API used to read the seller's own listings.
Supports: GetMyeBaySelling (active listings), GetSellerList (time-windowed history)

Usage:
    client = TradingApiClient(token_provider, executor, host="api.ebay.com")
    source = SellerListSource(client)
    async for item in crawl(source, page_size=100, window_width=120):
        ...

Rate Limits:
    - 5000 calls per day; the pipeline runs at 2 requests/second
    - GetSellerList spans at most 121 days per query
"""

from __future__ import annotations

import re
from typing import Any

import aiohttp

from listing_pipeline.config.constants import (
    MY_EBAY_PAGE_SIZE,
    SELLER_LIST_PAGE_SIZE,
    TRADING_API_VERSION,
    TRADING_ENDPOINT_PATH,
)
from listing_pipeline.core.errors import (
    DateRangeError,
    InvalidPageError,
    MalformedResponseError,
    RemoteApiError,
    error_from_status,
)
from listing_pipeline.core.types import Page, TimeWindow
from listing_pipeline.observability.logger import get_logger
from listing_pipeline.resilience.retry import RetryingRequestExecutor

from .auth import StaticTokenProvider
from .http import ApiClient
from .xml import as_list, dig, parse_xml

logger = get_logger(__name__)

XML_NAMESPACE = "urn:ebay:apis:eBLBaseComponents"

# eBay error 340: "Page number is out of range"
_INVALID_PAGE_CODES = {"340"}
_INVALID_PAGE_PATTERN = re.compile(r"invalid page number|page number is out of range", re.I)
_DATE_RANGE_PATTERN = re.compile(r"\b(date|time)\b", re.I)


class TradingApiClient(ApiClient):
    """eBay Trading API client (XML over HTTPS, IAF token auth)."""

    source = "trading"

    def __init__(
        self,
        token_provider: StaticTokenProvider,
        executor: RetryingRequestExecutor,
        host: str,
        site_id: str = "0",
        app_id: str | None = None,
        version: str = TRADING_API_VERSION,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__(token_provider, executor, host, session=session)
        self.site_id = site_id
        self.app_id = app_id or ""
        self.version = version

    def build_request(self, call_name: str, body: str) -> str:
        return (
            '<?xml version="1.0" encoding="utf-8"?>\n'
            f'<{call_name}Request xmlns="{XML_NAMESPACE}">\n'
            f"  <Version>{self.version}</Version>\n"
            f"  {body.strip()}\n"
            f"</{call_name}Request>"
        )

    def _headers(self, call_name: str, token: str) -> dict[str, str]:
        return {
            "Content-Type": "text/xml",
            "X-EBAY-API-CALL-NAME": call_name,
            "X-EBAY-API-SITEID": self.site_id,
            "X-EBAY-API-APP-NAME": self.app_id,
            "X-EBAY-API-VERSION": self.version,
            "X-EBAY-API-COMPATIBILITY-LEVEL": self.version,
            "X-EBAY-API-REQUEST-ENCODING": "XML",
            "X-EBAY-API-IAF-TOKEN": token,
        }

    async def call(self, call_name: str, body: str) -> dict[str, Any]:
        """Make one rate-limited, retried Trading API call.

        Returns:
            The `<CallName>Response` element as a dict
        """
        return await self.executor.execute(self._post, call_name, body)

    async def _post(self, call_name: str, body: str) -> dict[str, Any]:
        token = await self.token_provider.get_token()
        payload = self.build_request(call_name, body).encode("utf-8")
        status, text, headers = await self._send(
            "POST",
            TRADING_ENDPOINT_PATH,
            data=payload,
            headers=self._headers(call_name, token),
        )
        return self._handle_response(call_name, status, text, headers)

    def _handle_response(
        self,
        call_name: str,
        status: int,
        text: str,
        headers: Any = None,
    ) -> dict[str, Any]:
        """Map HTTP status and Ack envelopes into the error hierarchy."""
        if status >= 400:
            raise error_from_status(
                status,
                f"{call_name} HTTP {status}: {text[:200]}",
                retry_after=self._parse_retry_after(headers),
                source=self.source,
            )

        parsed = parse_xml(text)
        root = parsed.get(f"{call_name}Response")
        if not isinstance(root, dict):
            raise MalformedResponseError(
                f"Invalid response format for {call_name}", body=text, source=self.source
            )

        ack = root.get("Ack")
        if ack in ("Failure", "PartialFailure"):
            raise self._api_error(call_name, root)

        return root

    def _api_error(self, call_name: str, root: dict[str, Any]) -> RemoteApiError:
        errors = [
            {
                "code": str(err.get("ErrorCode", "")),
                "message": err.get("LongMessage") or err.get("ShortMessage") or "",
                "severity": err.get("SeverityCode", ""),
            }
            for err in as_list(root.get("Errors"))
            if isinstance(err, dict)
        ]
        message = "; ".join(f"{e['code']}: {e['message']}" for e in errors) or "Unknown error"
        message = f"eBay API Error ({call_name}): {message}"

        codes = {e["code"] for e in errors}
        if codes & _INVALID_PAGE_CODES or _INVALID_PAGE_PATTERN.search(message):
            return InvalidPageError(message, errors=errors, source=self.source)
        if _DATE_RANGE_PATTERN.search(message):
            return DateRangeError(message, errors=errors, source=self.source)
        return RemoteApiError(message, errors=errors, source=self.source)


def _items_of(container: Any) -> list[dict[str, Any]]:
    return [i for i in as_list(dig(container, "ItemArray", "Item")) if isinstance(i, dict)]


class SellerListSource:
    """GetSellerList as a windowed page source."""

    call_name = "GetSellerList"
    default_page_size = SELLER_LIST_PAGE_SIZE

    def __init__(self, client: TradingApiClient) -> None:
        self.client = client

    def request_body(self, page_number: int, page_size: int, window: TimeWindow) -> str:
        return f"""
          <DetailLevel>ReturnAll</DetailLevel>
          <Pagination>
            <EntriesPerPage>{page_size}</EntriesPerPage>
            <PageNumber>{page_number}</PageNumber>
          </Pagination>
          <StartTimeFrom>{window.start_iso}</StartTimeFrom>
          <StartTimeTo>{window.end_iso}</StartTimeTo>
          <GranularityLevel>Coarse</GranularityLevel>
        """

    async def fetch_page(
        self,
        page_number: int,
        page_size: int,
        window: TimeWindow | None = None,
    ) -> Page:
        if window is None:
            raise ValueError("GetSellerList requires a time window")
        root = await self.client.call(self.call_name, self.request_body(page_number, page_size, window))
        items = _items_of(root)
        return Page(items=items, has_more=root.get("HasMoreItems") == "true")


class MyEbaySellingSource:
    """GetMyeBaySelling list (ActiveList by default) as a page source."""

    call_name = "GetMyeBaySelling"
    default_page_size = MY_EBAY_PAGE_SIZE

    def __init__(self, client: TradingApiClient, list_type: str = "ActiveList") -> None:
        self.client = client
        self.list_type = list_type

    def request_body(self, page_number: int, page_size: int) -> str:
        return f"""
          <{self.list_type}>
            <Include>true</Include>
            <Sort>TimeLeft</Sort>
            <Pagination>
              <EntriesPerPage>{page_size}</EntriesPerPage>
              <PageNumber>{page_number}</PageNumber>
            </Pagination>
          </{self.list_type}>
        """

    async def fetch_page(
        self,
        page_number: int,
        page_size: int,
        window: TimeWindow | None = None,
    ) -> Page:
        root = await self.client.call(self.call_name, self.request_body(page_number, page_size))
        container = root.get(self.list_type)
        items = _items_of(container)
        # GetMyeBaySelling rarely reports HasMoreItems; a full page means "maybe more"
        has_more = True if dig(container, "HasMoreItems") == "true" else None
        return Page(items=items, has_more=has_more)
