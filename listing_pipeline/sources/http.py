"""Shared aiohttp plumbing for eBay API clients."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import aiohttp

from listing_pipeline.config.constants import BROWSE_MARKETPLACE_ID, REQUEST_TIMEOUT
from listing_pipeline.core.errors import MalformedResponseError, classify_exception, error_from_status
from listing_pipeline.observability.logger import get_logger
from listing_pipeline.resilience.retry import RetryingRequestExecutor

from .auth import StaticTokenProvider

logger = get_logger(__name__)


class ApiClient:
    """Base client owning one aiohttp session.

    Every request goes through `executor`, which applies the API's rate
    limiter and the retry policy.
    """

    source = "ebay"

    def __init__(
        self,
        token_provider: StaticTokenProvider,
        executor: RetryingRequestExecutor,
        host: str,
        timeout: float = REQUEST_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.token_provider = token_provider
        self.executor = executor
        self.base_url = f"https://{host}"
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _send(self, method: str, path: str, **kwargs: Any) -> tuple[int, str, Any]:
        """Perform one HTTP exchange.

        Returns:
            (status, body text, response headers)

        Raises:
            NetworkError / TimeoutError for transport failures
        """
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.request(method, url, **kwargs) as resp:
                text = await resp.text()
                return resp.status, text, resp.headers
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"{self.source} transport error: {type(e).__name__}: {e}")
            raise classify_exception(e, source=self.source) from e

    @staticmethod
    def _parse_retry_after(headers: Any) -> float | None:
        """Parse a numeric Retry-After header."""
        if not headers:
            return None
        value = headers.get("Retry-After")
        if not value:
            return None
        try:
            return max(0.0, float(value))
        except (ValueError, TypeError):
            return None


class JsonApiClient(ApiClient):
    """Bearer-token client for eBay's REST (JSON) APIs."""

    label = "eBay"

    def __init__(
        self,
        token_provider: StaticTokenProvider,
        executor: RetryingRequestExecutor,
        host: str,
        marketplace_id: str = BROWSE_MARKETPLACE_ID,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__(token_provider, executor, host, session=session)
        self.marketplace_id = marketplace_id

    async def _headers(self) -> dict[str, str]:
        token = await self.token_provider.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "X-EBAY-C-MARKETPLACE-ID": self.marketplace_id,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _get(self, path: str, params: list[tuple[str, str]]) -> dict[str, Any]:
        status, text, headers = await self._send(
            "GET", path, params=params, headers=await self._headers()
        )
        return self._handle_response(status, text, headers)

    def _handle_response(self, status: int, text: str, headers: Any = None) -> dict[str, Any]:
        """Parse JSON and map error statuses (with eBay's error list) to exceptions."""
        try:
            data = json.loads(text) if text else {}
        except json.JSONDecodeError as e:
            if status >= 400:
                raise error_from_status(
                    status,
                    f"{self.label} HTTP {status}: {text[:200]}",
                    retry_after=self._parse_retry_after(headers),
                    source=self.source,
                ) from e
            raise MalformedResponseError(f"Failed to parse response: {e}", body=text, source=self.source) from e

        if status >= 400:
            errors = [
                {
                    "code": str(err.get("errorId", "")),
                    "message": err.get("longMessage") or err.get("message") or "",
                }
                for err in (data.get("errors") or [])
                if isinstance(err, dict)
            ]
            message = (errors[0]["message"] if errors else "") or data.get("message") or text[:200]
            raise error_from_status(
                status,
                f"{self.label} HTTP {status}: {message}",
                errors=errors,
                retry_after=self._parse_retry_after(headers),
                source=self.source,
            )

        if not isinstance(data, dict):
            raise MalformedResponseError("Expected a JSON object", body=text, source=self.source)
        return data
