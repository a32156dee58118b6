"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from listing_pipeline.config.settings import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with credentials and a temporary data directory.

    Built without reading a .env file.
    """
    return Settings(
        _env_file=None,
        ebay_client_id="test-app-id",
        ebay_access_token="test-token",
        ebay_token_expiry=None,
        data_dir=tmp_path,
    )


@pytest.fixture
def sample_product() -> dict:
    """Sample input row for competitor analysis."""
    return {
        "Product Name": "Luxe 4 Piece Microfiber Sheet Set Queen",
        "Category": "Bedding",
    }
