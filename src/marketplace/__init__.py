"""Marketplace adapters: HTTP client, caches and the async API facade."""

from .cache import MarketplaceCache, ReadThroughCache
from .client import MarketplaceClient
from .config import MarketplaceConfig
from .http_client import HTTPClient
from .rate_limiter import RateLimiter

__all__ = [
    "HTTPClient",
    "MarketplaceCache",
    "MarketplaceClient",
    "MarketplaceConfig",
    "RateLimiter",
    "ReadThroughCache",
]
