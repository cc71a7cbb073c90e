"""Async facade over the marketplace API.

Every call runs the blocking HTTP request on a worker thread so several SKUs
can wait on the network at once. Payloads are flattened into the shared
pydantic models; anything the pricing engine does not need is dropped here.

Usage:
    client = MarketplaceClient()
    sales = await client.fetch_sales(product_id, languages=[1], limit=100)
    listings = await client.fetch_listings(product_id, condition="Near Mint", ...)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import ValidationError

from src.common.exceptions import ExternalFetchError
from src.common.models import (
    CategoryFilter,
    Condition,
    FilterEntry,
    ListingObservation,
    PricePoint,
    SaleObservation,
)

from .cache import MarketplaceCache
from .config import MarketplaceConfig
from .http_client import HTTPClient

logger = logging.getLogger(__name__)

_CONDITIONS_BY_NAME = {c.value: c for c in Condition}


class MarketplaceClient:
    """Fetches sales, listings, market prices and filter vocabularies."""

    def __init__(
        self,
        config: MarketplaceConfig | None = None,
        cache: MarketplaceCache | None = None,
        http_client: HTTPClient | None = None,
    ) -> None:
        self.config = config or MarketplaceConfig()
        self.cache = cache or MarketplaceCache()
        self._http = http_client or HTTPClient(self.config)

    # --- Sales ---

    async def fetch_sales(
        self,
        product_id: int,
        *,
        conditions: list[int] | None = None,
        languages: list[int] | None = None,
        variants: list[int] | None = None,
        limit: int = 100,
    ) -> list[SaleObservation]:
        """Fetch up to ``limit`` latest sales, following pagination.

        Args:
            product_id: Marketplace product id.
            conditions: Condition filter ids; empty or None for all conditions.
            languages: Language filter ids.
            variants: Variant filter ids.
            limit: Maximum number of sales to return.

        Returns:
            Sales, newest first as the marketplace orders them.
        """
        url = f"{self.config.sales_base_url}/v2/product/{product_id}/latestsales"
        sales: list[SaleObservation] = []
        offset = 0

        while len(sales) < limit:
            page_limit = min(self.config.sales_page_size, limit - len(sales))
            body = {
                "conditions": conditions or [],
                "languages": languages or [],
                "variants": variants or [],
                "listingType": "ListingWithoutPhotos",
                "offset": offset,
                "limit": page_limit,
            }
            payload = await asyncio.to_thread(self._http.post_json, url, body)
            page = payload.get("data") or []
            sales.extend(s for s in (parse_sale(raw) for raw in page) if s is not None)

            if payload.get("nextPage") != "Yes" or not page:
                break
            offset += page_limit

        logger.debug("Fetched %d sales for product %d", len(sales), product_id)
        return sales[:limit]

    # --- Listings ---

    async def fetch_listings(
        self,
        product_id: int,
        *,
        condition: str,
        language: str,
        variant: str,
        include_unverified: bool = False,
        max_listings: int = 200,
        max_price: float | None = None,
    ) -> list[ListingObservation]:
        """Fetch active listings sorted by price plus shipping.

        Paging stops early once listings exceed ``max_price``; anything
        pricier than every normalized sale cannot compete with a new listing.
        """
        url = f"{self.config.search_base_url}/v1/product/{product_id}/listings"
        term: dict[str, Any] = {
            "listingType": ["standard"],
            "condition": [condition],
            "language": [language],
            "printing": [variant],
        }
        if not include_unverified:
            term["verified-seller"] = True

        listings: list[ListingObservation] = []
        start = 0
        while len(listings) < max_listings:
            size = min(self.config.listings_page_size, max_listings - len(listings))
            body = {
                "filters": {"term": term},
                "from": start,
                "size": size,
                "sort": {"field": "price+shipping", "order": "asc"},
            }
            payload = await asyncio.to_thread(self._http.post_json, url, body)
            results = payload.get("results") or []
            if not results or not results[0].get("results"):
                break

            page = results[0]
            exceeded = False
            for raw in page["results"]:
                listing = parse_listing(raw)
                if listing is None:
                    continue
                if max_price is not None and listing.total_price > max_price:
                    exceeded = True
                    break
                listings.append(listing)

            total = int(page.get("totalResults") or 0)
            start += size
            if exceeded or start >= total:
                break

        return listings[:max_listings]

    # --- Market price reference ---

    async def fetch_market_prices(self, sku_ids: Iterable[int]) -> dict[int, PricePoint]:
        """Market price points for ``sku_ids``, fetched in chunks through the cache."""
        requested = list(dict.fromkeys(sku_ids))
        missing = [sku_id for sku_id in requested if sku_id not in self.cache.price_points]

        chunk_size = max(1, self.config.price_point_chunk_size)
        url = f"{self.config.gateway_base_url}/v1/pricepoints/marketprice/skus/search"
        for i in range(0, len(missing), chunk_size):
            chunk = missing[i:i + chunk_size]
            payload = await asyncio.to_thread(self._http.post_json, url, {"skuIds": chunk})
            found = {}
            for raw in payload or []:
                point = parse_price_point(raw)
                if point is not None:
                    found[point.sku_id] = point
            for sku_id in chunk:
                self.cache.price_points.put(sku_id, found.get(sku_id))

        points = {}
        for sku_id in requested:
            point = self.cache.price_points.get(sku_id)
            if point is not None:
                points[sku_id] = point
        return points

    async def fetch_market_price(self, sku_id: int) -> PricePoint | None:
        points = await self.fetch_market_prices([sku_id])
        return points.get(sku_id)

    # --- Filter vocabulary ---

    async def fetch_category_filters(self, category_id: int) -> CategoryFilter:
        """Filter vocabulary (conditions, languages, variants) for a category."""
        return await self.cache.category_filters.get_or_load(
            category_id, self._load_category_filters
        )

    async def _load_category_filters(self, category_id: int) -> CategoryFilter:
        url = f"{self.config.search_base_url}/v1/product/categoryfilters"
        payload = await asyncio.to_thread(
            self._http.get_json, url, {"categoryId": category_id}
        )
        if not isinstance(payload, dict):
            raise ExternalFetchError(
                f"Unexpected category filter payload for category {category_id}",
                url=url,
            )
        try:
            return CategoryFilter(
                category_id=category_id,
                conditions=_filter_entries(payload.get("conditions")),
                languages=_filter_entries(payload.get("languages")),
                variants=_filter_entries(payload.get("variants")),
            )
        except (KeyError, TypeError, ValidationError) as exc:
            raise ExternalFetchError(
                f"Malformed category filters for category {category_id}", url=url
            ) from exc

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> MarketplaceClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


# --- Payload parsing ---

def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_sale(raw: dict) -> SaleObservation | None:
    """Convert a latest-sales entry; unknown conditions and bad rows are dropped."""
    condition = _CONDITIONS_BY_NAME.get(raw.get("condition", ""))
    if condition is None:
        logger.debug("Skipping sale with unknown condition: %r", raw.get("condition"))
        return None
    try:
        return SaleObservation(
            condition=condition,
            price=raw.get("purchasePrice") or 0,
            quantity=raw.get("quantity") or 1,
            timestamp=parse_timestamp(raw["orderDate"]),
            shipping_price=raw.get("shippingPrice") or 0,
            language=raw.get("language") or "",
            variant=raw.get("variant") or "",
        )
    except (KeyError, ValueError, ValidationError):
        logger.debug("Skipping malformed sale: %r", raw)
        return None


def parse_listing(raw: dict) -> ListingObservation | None:
    try:
        return ListingObservation(
            price=raw.get("price") or 0,
            shipping_price=raw.get("sellerShippingPrice") or 0,
            quantity=raw.get("quantity") or 0,
            is_verified_seller=bool(raw.get("verifiedSeller") or raw.get("isVerifiedSeller")),
            seller_id=str(raw.get("sellerId") or ""),
            listing_id=int(raw.get("listingId") or 0),
        )
    except (ValueError, ValidationError):
        logger.debug("Skipping malformed listing: %r", raw)
        return None


def parse_price_point(raw: dict) -> PricePoint | None:
    try:
        calculated_at = raw.get("calculatedAt")
        return PricePoint(
            sku_id=int(raw["skuId"]),
            market_price=raw.get("marketPrice") or 0,
            lowest_price=raw.get("lowestPrice") or 0,
            highest_price=raw.get("highestPrice") or 0,
            sample_count=raw.get("priceCount") or 0,
            calculated_at=parse_timestamp(calculated_at) if calculated_at else None,
        )
    except (KeyError, TypeError, ValueError, ValidationError):
        logger.debug("Skipping malformed price point: %r", raw)
        return None


def _filter_entries(raw: list[dict] | None) -> list[FilterEntry]:
    return [FilterEntry(id=entry["id"], name=entry["name"]) for entry in raw or []]
