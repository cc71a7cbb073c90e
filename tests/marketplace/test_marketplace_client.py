"""Tests for the async marketplace client and payload parsing."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from src.common.exceptions import ExternalFetchError
from src.common.models import Condition
from src.marketplace.cache import MarketplaceCache
from src.marketplace.client import (
    MarketplaceClient,
    parse_listing,
    parse_price_point,
    parse_sale,
    parse_timestamp,
)
from src.marketplace.config import MarketplaceConfig


def raw_sale(price: float, condition: str = "Near Mint", quantity: int = 1) -> dict:
    return {
        "condition": condition,
        "purchasePrice": price,
        "shippingPrice": 0.99,
        "quantity": quantity,
        "orderDate": "2024-05-30T18:22:10.000+00:00",
        "language": "English",
        "variant": "Normal",
    }


def raw_listing(price: float, quantity: int = 1, shipping: float = 0.0) -> dict:
    return {
        "price": price,
        "sellerShippingPrice": shipping,
        "quantity": quantity,
        "verifiedSeller": True,
        "sellerId": "abc123",
        "listingId": 42,
    }


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def client(http):
    config = MarketplaceConfig(sales_page_size=2, listings_page_size=2, price_point_chunk_size=2)
    return MarketplaceClient(config=config, cache=MarketplaceCache(), http_client=http)


class TestFetchSales:
    def test_follows_pagination(self, client, http):
        http.post_json.side_effect = [
            {"nextPage": "Yes", "data": [raw_sale(1.0), raw_sale(2.0)]},
            {"nextPage": "", "data": [raw_sale(3.0)]},
        ]
        sales = asyncio.run(client.fetch_sales(100, conditions=[1], languages=[1], limit=10))

        assert [s.price for s in sales] == [1.0, 2.0, 3.0]
        assert http.post_json.call_count == 2
        url, body = http.post_json.call_args_list[1].args
        assert url == "https://mpapi.tcgplayer.com/v2/product/100/latestsales"
        assert body["offset"] == 2
        assert body["conditions"] == [1]
        assert body["variants"] == []

    def test_stops_at_limit(self, client, http):
        http.post_json.return_value = {"nextPage": "Yes", "data": [raw_sale(1.0), raw_sale(2.0)]}
        sales = asyncio.run(client.fetch_sales(100, limit=3))
        assert len(sales) == 3
        last_body = http.post_json.call_args_list[-1].args[1]
        assert last_body["limit"] == 1

    def test_drops_unknown_conditions(self, client, http):
        http.post_json.return_value = {
            "nextPage": "",
            "data": [raw_sale(1.0), raw_sale(2.0, condition="Graded 10")],
        }
        sales = asyncio.run(client.fetch_sales(100))
        assert len(sales) == 1

    def test_fetch_errors_propagate(self, client, http):
        http.post_json.side_effect = ExternalFetchError("boom", status_code=500)
        with pytest.raises(ExternalFetchError):
            asyncio.run(client.fetch_sales(100))


class TestFetchListings:
    def test_pages_until_total(self, client, http):
        http.post_json.side_effect = [
            {"results": [{"totalResults": 3, "results": [raw_listing(1.0), raw_listing(2.0)]}]},
            {"results": [{"totalResults": 3, "results": [raw_listing(3.0)]}]},
        ]
        listings = asyncio.run(client.fetch_listings(
            100, condition="Near Mint", language="English", variant="Normal"
        ))
        assert [listing.price for listing in listings] == [1.0, 2.0, 3.0]

        body = http.post_json.call_args_list[0].args[1]
        assert body["sort"] == {"field": "price+shipping", "order": "asc"}
        assert body["filters"]["term"]["verified-seller"] is True

    def test_stops_once_past_max_price(self, client, http):
        http.post_json.side_effect = [
            {"results": [{"totalResults": 10, "results": [
                raw_listing(1.0), raw_listing(4.0, shipping=1.5),
            ]}]},
        ]
        listings = asyncio.run(client.fetch_listings(
            100, condition="Near Mint", language="English", variant="Normal", max_price=5.0
        ))
        assert [listing.price for listing in listings] == [1.0]
        assert http.post_json.call_count == 1

    def test_unverified_sellers_not_filtered_when_included(self, client, http):
        http.post_json.return_value = {"results": []}
        asyncio.run(client.fetch_listings(
            100, condition="Near Mint", language="English", variant="Normal",
            include_unverified=True,
        ))
        term = http.post_json.call_args.args[1]["filters"]["term"]
        assert "verified-seller" not in term


class TestFetchMarketPrices:
    def test_chunks_requests_and_caches(self, client, http):
        http.post_json.side_effect = [
            [{"skuId": 1, "marketPrice": 1.5}, {"skuId": 2, "marketPrice": 2.5}],
            [{"skuId": 3, "marketPrice": 3.5}],
        ]
        points = asyncio.run(client.fetch_market_prices([1, 2, 3]))

        assert {k: v.market_price for k, v in points.items()} == {1: 1.5, 2: 2.5, 3: 3.5}
        assert [c.args[1] for c in http.post_json.call_args_list] == [
            {"skuIds": [1, 2]},
            {"skuIds": [3]},
        ]

        # Second lookup is served from the cache
        point = asyncio.run(client.fetch_market_price(2))
        assert point.market_price == 2.5
        assert http.post_json.call_count == 2

    def test_missing_price_cached_as_absent(self, client, http):
        http.post_json.return_value = []
        assert asyncio.run(client.fetch_market_price(9)) is None
        assert asyncio.run(client.fetch_market_price(9)) is None
        assert http.post_json.call_count == 1


class TestFetchCategoryFilters:
    def test_loads_once_per_category(self, client, http):
        http.get_json.return_value = {
            "conditions": [{"id": 1, "name": "Near Mint"}],
            "languages": [{"id": 1, "name": "English"}],
            "variants": [{"id": 1, "name": "Normal"}],
        }
        first = asyncio.run(client.fetch_category_filters(3))
        second = asyncio.run(client.fetch_category_filters(3))

        assert first is second
        assert first.condition_id("Near Mint") == 1
        http.get_json.assert_called_once()
        assert http.get_json.call_args.args[1] == {"categoryId": 3}

    def test_malformed_payload_raises(self, client, http):
        http.get_json.return_value = {"conditions": [{"name": "Near Mint"}]}
        with pytest.raises(ExternalFetchError):
            asyncio.run(client.fetch_category_filters(3))

    def test_non_object_payload_raises(self, client, http):
        http.get_json.return_value = ["unexpected"]
        with pytest.raises(ExternalFetchError):
            asyncio.run(client.fetch_category_filters(3))


class TestParsing:
    def test_parse_timestamp_with_zulu_suffix(self):
        assert parse_timestamp("2024-05-30T18:22:10Z") == datetime(
            2024, 5, 30, 18, 22, 10, tzinfo=timezone.utc
        )

    def test_naive_timestamp_taken_as_utc(self):
        assert parse_timestamp("2024-05-30T18:22:10").tzinfo == timezone.utc

    def test_parse_sale(self):
        sale = parse_sale(raw_sale(4.25, condition="Lightly Played", quantity=3))
        assert sale.condition == Condition.LIGHTLY_PLAYED
        assert sale.price == 4.25
        assert sale.quantity == 3
        assert sale.shipping_price == 0.99

    def test_parse_sale_without_date_dropped(self):
        raw = raw_sale(1.0)
        del raw["orderDate"]
        assert parse_sale(raw) is None

    def test_parse_listing_total_price(self):
        listing = parse_listing(raw_listing(2.0, quantity=4, shipping=0.5))
        assert listing.total_price == 2.5
        assert listing.is_verified_seller
        assert listing.seller_id == "abc123"

    def test_parse_price_point_requires_sku(self):
        assert parse_price_point({"marketPrice": 1.0}) is None
