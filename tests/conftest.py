"""Shared test fixtures for the card pricer."""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure src is importable
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.common.exceptions import ExternalFetchError
from src.common.models import (
    CategoryFilter,
    Condition,
    FilterEntry,
    ListingObservation,
    PricePoint,
    SaleObservation,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_sale(
    price: float,
    days_ago: float,
    condition: Condition = Condition.NEAR_MINT,
    quantity: int = 1,
) -> SaleObservation:
    return SaleObservation(
        condition=condition,
        price=price,
        quantity=quantity,
        timestamp=NOW - timedelta(days=days_ago),
    )


def make_listing(price: float, quantity: int = 1, shipping: float = 0.0, verified: bool = True):
    return ListingObservation(
        price=price,
        shipping_price=shipping,
        quantity=quantity,
        is_verified_seller=verified,
    )


class FakeMarketplaceClient:
    """In-memory stand-in for MarketplaceClient, keyed by product id."""

    def __init__(
        self,
        category_filter: CategoryFilter,
        exact_sales: dict | None = None,
        all_sales: dict | None = None,
        listings: dict | None = None,
        market_prices: dict | None = None,
        failing_products: set | None = None,
        listing_error: bool = False,
        delay: float = 0.0,
    ):
        self.category_filter = category_filter
        self.exact_sales = exact_sales or {}
        self.all_sales = all_sales or {}
        self.listings = listings or {}
        self.market_prices = market_prices or {}
        self.failing_products = failing_products or set()
        self.listing_error = listing_error
        self.delay = delay

        self.sales_calls: list[dict] = []
        self.listing_calls: list[dict] = []
        self.market_price_calls: list[list[int]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _io(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

    async def fetch_category_filters(self, category_id: int) -> CategoryFilter:
        await self._io()
        return self.category_filter

    async def fetch_sales(
        self, product_id, *, conditions=None, languages=None, variants=None, limit=100
    ):
        self.sales_calls.append({
            "product_id": product_id,
            "conditions": conditions,
            "languages": languages,
            "variants": variants,
            "limit": limit,
        })
        await self._io()
        if product_id in self.failing_products:
            raise ExternalFetchError(f"sales request failed for {product_id}", status_code=500)
        source = self.exact_sales if conditions else self.all_sales
        return list(source.get(product_id, []))[:limit]

    async def fetch_listings(self, product_id, **kwargs):
        self.listing_calls.append({"product_id": product_id, **kwargs})
        await self._io()
        if self.listing_error:
            raise ExternalFetchError("listings request failed", status_code=503)
        return list(self.listings.get(product_id, []))

    async def fetch_market_prices(self, sku_ids):
        ids = list(sku_ids)
        self.market_price_calls.append(ids)
        return {i: self.market_prices[i] for i in ids if i in self.market_prices}

    async def fetch_market_price(self, sku_id):
        return self.market_prices.get(sku_id)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def category_filter() -> CategoryFilter:
    """Filter vocabulary for a single-language card game."""
    return CategoryFilter(
        category_id=1,
        conditions=[
            FilterEntry(id=1, name="Near Mint"),
            FilterEntry(id=2, name="Lightly Played"),
            FilterEntry(id=3, name="Moderately Played"),
            FilterEntry(id=4, name="Heavily Played"),
            FilterEntry(id=5, name="Damaged"),
        ],
        languages=[FilterEntry(id=1, name="English"), FilterEntry(id=7, name="Japanese")],
        variants=[FilterEntry(id=1, name="Normal"), FilterEntry(id=2, name="Foil")],
    )


@pytest.fixture
def dense_sales() -> list[SaleObservation]:
    """Twelve Near Mint sales, one every two days, prices 1.00 to 12.00."""
    return [make_sale(float(i + 1), days_ago=2 * i) for i in range(12)]


@pytest.fixture
def market_price() -> PricePoint:
    return PricePoint(sku_id=1001, market_price=10.0, lowest_price=8.0, highest_price=14.0)


@pytest.fixture
def fake_client_factory(category_filter):
    """Build a FakeMarketplaceClient sharing the default category filter."""
    def factory(**kwargs) -> FakeMarketplaceClient:
        return FakeMarketplaceClient(category_filter, **kwargs)
    return factory
