"""Pytest fixtures for listing pipeline tests."""

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from listing_pipeline.core.types import Page, TimeWindow
from listing_pipeline.observability.metrics import RequestStats
from listing_pipeline.resilience import RateLimiter, RetryingRequestExecutor
from listing_pipeline.sources.auth import AccessToken, StaticTokenProvider


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedPageSource:
    """Page source returning pre-scripted pages (or raising scripted errors).

    `script` maps a page number to a Page or an exception. Unscripted
    pages are empty.
    """

    def __init__(self, script: dict[int, Any]) -> None:
        self.script = script
        self.calls: list[tuple[int, int, TimeWindow | None]] = []

    async def fetch_page(self, page_number: int, page_size: int, window: TimeWindow | None = None) -> Page:
        self.calls.append((page_number, page_size, window))
        result = self.script.get(page_number, Page(items=[]))
        if isinstance(result, Exception):
            raise result
        return result


def make_response(status: int = 200, text: str = "", headers: dict | None = None) -> AsyncMock:
    """Mock aiohttp response usable as `async with session.request(...)`."""
    response = AsyncMock()
    response.status = status
    response.text = AsyncMock(return_value=text)
    response.headers = headers or {}
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


def make_session(*responses: AsyncMock) -> MagicMock:
    """Mock aiohttp session returning `responses` in order."""
    session = MagicMock()
    session.closed = False
    session.request = MagicMock(side_effect=list(responses))
    return session


def json_response(status: int, payload: Any, headers: dict | None = None) -> AsyncMock:
    return make_response(status, json.dumps(payload), headers)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider(AccessToken("test-token"))


@pytest.fixture
def executor(sleep_recorder: SleepRecorder) -> RetryingRequestExecutor:
    """Executor with a fast limiter and recorded (not real) backoff sleeps."""
    return RetryingRequestExecutor(
        rate_limiter=RateLimiter(rate=1000),
        stats=RequestStats(),
        sleep=sleep_recorder,
    )


@pytest.fixture
def page_of():
    """Factory for pages of numbered items."""

    def _page_of(count: int, start: int = 0, has_more: bool | None = None) -> Page:
        return Page(items=[{"n": start + i} for i in range(count)], has_more=has_more)

    return _page_of
