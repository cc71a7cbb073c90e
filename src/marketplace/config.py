"""Connection settings for the marketplace API."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from src.common.config import PROJECT_ROOT

# Load .env from project root
load_dotenv(PROJECT_ROOT / ".env")


@dataclass
class MarketplaceConfig:
    """Central marketplace configuration loaded from environment variables."""

    # Endpoints
    sales_base_url: str = "https://mpapi.tcgplayer.com"
    search_base_url: str = "https://mp-search-api.tcgplayer.com"
    gateway_base_url: str = "https://mpgateway.tcgplayer.com"

    # HTTP
    request_timeout: int = 30
    rate_limit_rpm: int = 120
    max_retries: int = 3
    user_agent: str = "card-pricer/0.1"

    # Paging
    sales_page_size: int = 25
    listings_page_size: int = 50
    price_point_chunk_size: int = 100

    def __post_init__(self) -> None:
        """Load overrides from environment."""
        if url := os.getenv("MARKETPLACE_SALES_BASE_URL"):
            self.sales_base_url = url
        if url := os.getenv("MARKETPLACE_SEARCH_BASE_URL"):
            self.search_base_url = url
        if url := os.getenv("MARKETPLACE_GATEWAY_BASE_URL"):
            self.gateway_base_url = url
        if timeout := os.getenv("MARKETPLACE_REQUEST_TIMEOUT"):
            self.request_timeout = int(timeout)
        if rpm := os.getenv("MARKETPLACE_REQUESTS_PER_MINUTE"):
            self.rate_limit_rpm = int(rpm)
        if retries := os.getenv("MARKETPLACE_MAX_RETRIES"):
            self.max_retries = int(retries)
