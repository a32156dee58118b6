"""Access token handling.

Tokens are obtained outside this tool (eBay's OAuth consent flow) and
supplied via EBAY_ACCESS_TOKEN / EBAY_TOKEN_EXPIRY. This module only
checks that the configured bearer is present and not about to expire.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from listing_pipeline.config.constants import TOKEN_EXPIRY_BUFFER
from listing_pipeline.config.settings import Settings
from listing_pipeline.core.errors import ConfigurationError
from listing_pipeline.observability.logger import get_logger

logger = get_logger(__name__)


def is_token_expired(
    expiry: int | str | None,
    buffer_seconds: int = TOKEN_EXPIRY_BUFFER,
    now: float | None = None,
) -> bool:
    """Check whether a token expires within `buffer_seconds`.

    Args:
        expiry: Unix timestamp (seconds) of the token expiry; missing means expired
        buffer_seconds: Safety margin before the actual expiry
        now: Current Unix time, defaults to time.time()
    """
    if not expiry:
        return True
    current = int(now if now is not None else time.time())
    return current + buffer_seconds > int(expiry)


@dataclass(frozen=True)
class AccessToken:
    """Opaque bearer string with an optional expiry (Unix seconds)."""

    value: str
    expires_at: int | None = None

    def expired(self, buffer_seconds: int = TOKEN_EXPIRY_BUFFER) -> bool:
        if self.expires_at is None:
            return False
        return is_token_expired(self.expires_at, buffer_seconds)

    def __repr__(self) -> str:
        return f"AccessToken(value='***', expires_at={self.expires_at})"


class StaticTokenProvider:
    """Serves the configured access token to API clients."""

    def __init__(self, token: AccessToken | None, buffer_seconds: int = TOKEN_EXPIRY_BUFFER) -> None:
        self._token = token
        self.buffer_seconds = buffer_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> StaticTokenProvider:
        if not settings.ebay_access_token:
            return cls(None)
        return cls(AccessToken(settings.ebay_access_token, settings.ebay_token_expiry))

    def validate(self) -> None:
        """Fail fast before any work begins.

        Raises:
            ConfigurationError: if the token is missing or expired
        """
        if self._token is None:
            raise ConfigurationError(
                "Missing required environment variables: EBAY_ACCESS_TOKEN",
                missing=["EBAY_ACCESS_TOKEN"],
            )
        if self._token.expires_at is None:
            logger.debug("Token expiry unknown, assuming the token is valid")
        elif self._token.expired(self.buffer_seconds):
            raise ConfigurationError(
                "EBAY_ACCESS_TOKEN is expired or expires within "
                f"{self.buffer_seconds}s; refresh it and update EBAY_TOKEN_EXPIRY"
            )

    async def get_token(self) -> str:
        self.validate()
        assert self._token is not None
        return self._token.value
