"""Application settings using Pydantic. No side effects at import time."""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from listing_pipeline.core.errors import ConfigurationError

from .constants import (
    ALERT_WINDOW_HOURS,
    BROWSE_MARKETPLACE_ID,
    BROWSE_REQUESTS_PER_SECOND,
    DATA_DIR,
    DEFAULT_CONCURRENCY,
    MARKETING_REQUESTS_PER_SECOND,
    MIN_SELLER_FEEDBACK_PERCENT,
    MIN_SELLER_FEEDBACK_SCORE,
    MIN_TYPE_TOKEN_MATCHES,
    PRODUCTION_HOST,
    SANDBOX_HOST,
    SANDBOX_PROMOTION_MARKETPLACE_ID,
    STREAM_THRESHOLD,
    TRADING_REQUESTS_PER_SECOND,
)


class Settings(BaseSettings):
    """Application settings with validation.

    Settings are loaded from environment variables and .env file.
    No side effects at class definition time - .env is loaded only when
    Settings() is instantiated.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars
    )

    # === eBay credentials ===
    ebay_client_id: str | None = None
    ebay_client_secret: str | None = None
    ebay_access_token: str | None = None
    ebay_token_expiry: int | None = Field(default=None, description="Unix timestamp")
    ebay_environment: Literal["sandbox", "production"] = "sandbox"
    ebay_site_id: str = "0"  # 0 = US

    # === Rate Limits (whole requests per second) ===
    trading_requests_per_second: Annotated[int, Field(gt=0)] = TRADING_REQUESTS_PER_SECOND
    browse_requests_per_second: Annotated[int, Field(gt=0)] = BROWSE_REQUESTS_PER_SECOND
    marketing_requests_per_second: Annotated[int, Field(gt=0)] = MARKETING_REQUESTS_PER_SECOND

    # === Promotions ===
    alert_window_hours: Annotated[int, Field(gt=0)] = ALERT_WINDOW_HOURS

    # === Scale ===
    concurrency: Annotated[int, Field(gt=0)] = DEFAULT_CONCURRENCY
    stream_threshold: Annotated[int, Field(ge=0)] = STREAM_THRESHOLD
    output_mode: Literal["auto", "csv", "buffered"] = "auto"
    max_items: Annotated[int, Field(gt=0)] | None = None

    # === Competitor filters ===
    min_seller_feedback_percent: Annotated[float, Field(ge=0, le=100)] = MIN_SELLER_FEEDBACK_PERCENT
    min_seller_feedback_score: Annotated[int, Field(ge=0)] = MIN_SELLER_FEEDBACK_SCORE
    min_type_token_matches: Annotated[int, Field(ge=0)] = MIN_TYPE_TOKEN_MATCHES

    # === Paths ===
    data_dir: Path = DATA_DIR

    @property
    def api_host(self) -> str:
        """eBay API host for the configured environment."""
        return SANDBOX_HOST if self.ebay_environment == "sandbox" else PRODUCTION_HOST

    @property
    def promotion_marketplace_id(self) -> str:
        """Marketplace queried for promotions; the sandbox only carries EBAY_AT data."""
        return SANDBOX_PROMOTION_MARKETPLACE_ID if self.ebay_environment == "sandbox" else BROWSE_MARKETPLACE_ID

    def require(self, *names: str) -> None:
        """Fail fast when required settings are missing.

        Raises:
            ConfigurationError: listing every missing setting by env var name
        """
        missing = [name.upper() for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing=missing,
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This is the recommended way to access settings to avoid
    repeated .env file parsing.
    """
    return Settings()
