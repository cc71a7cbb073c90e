"""Price a single SKU from its recent sales.

Pipeline:
    1. Translate the SKU's condition/language/variant into filter ids
    2. Fetch exact-condition sales; when sparse, fetch every condition and
       normalize prices onto the SKU's grade with a Zipf fit
    3. Pick a decay half-life
    4. Compute decayed percentiles with time-to-sell figures
    5. Select the configured percentile and enforce the market-price floor
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Sequence

from src.common.exceptions import ExternalFetchError, InsufficientDataError, PricingCancelled
from src.common.models import CategoryFilter, ListingObservation, PricePoint, Sku
from src.engine.half_life import estimate_half_life
from src.engine.models import ConditionMultipliers, Observation, PercentilePoint, WeightingMode
from src.engine.percentile import percentile_list, weighted_percentiles
from src.engine.time_to_sell import (
    DEFAULT_CONFIDENCE_WEIGHT,
    historical_time_to_sell,
    supply_adjusted_time_to_sell,
)
from src.engine.zipf import fit_condition_multipliers
from src.marketplace.client import MarketplaceClient

from .models import PricingConfig, PricingResult
from .price_floor import apply_price_floor

logger = logging.getLogger(__name__)

LISTING_FETCH_WARNING = "Listing fetch failed. Time-to-sell is not supply adjusted."


def compute_percentile_points(
    observations: Sequence[Observation],
    half_life_days: float,
    percentiles: Sequence[float],
    *,
    weighting: WeightingMode = WeightingMode.QUANTITY,
    listings: Sequence[ListingObservation] | None = None,
    confidence_weight: float = DEFAULT_CONFIDENCE_WEIGHT,
    include_unverified: bool = True,
    now: datetime | None = None,
) -> list[PercentilePoint]:
    """Decayed percentile prices, each with its time-to-sell figures.

    ``supply_adjusted_velocity`` stays None when ``listings`` is None, i.e.
    supply analysis was not requested.
    """
    prices = weighted_percentiles(
        observations, half_life_days, percentiles, weighting=weighting, now=now
    )

    points = []
    for percentile, price in prices:
        historical, sales_count = historical_time_to_sell(observations, price)
        supply_adjusted = None
        listings_count = 0
        if listings is not None:
            supply_adjusted, listings_count = supply_adjusted_time_to_sell(
                observations,
                listings,
                price,
                historical,
                confidence_weight=confidence_weight,
                include_unverified=include_unverified,
            )
        points.append(PercentilePoint(
            percentile=percentile,
            price=price,
            historical_velocity=historical,
            supply_adjusted_velocity=supply_adjusted,
            sales_count=sales_count,
            listings_count=listings_count,
        ))
    return points


class SkuPricer:
    """Runs the per-SKU pricing pipeline against a marketplace client."""

    def __init__(self, client: MarketplaceClient) -> None:
        self.client = client

    async def price_one_sku(
        self,
        sku: Sku,
        config: PricingConfig,
        *,
        market_price: PricePoint | None = None,
        listings: Sequence[ListingObservation] | None = None,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> PricingResult:
        """Suggest a price for one SKU.

        Args:
            sku: SKU to price.
            config: Pricing run configuration.
            market_price: Market-price reference; fetched through the client
                cache when omitted.
            listings: Competing listings to use instead of fetching them.
            is_cancelled: Polled between pipeline steps.

        Returns:
            PricingResult. Too few usable sales yields a result with no
            suggested price and an error annotation rather than an exception.

        Raises:
            ExternalFetchError: A required marketplace fetch failed.
            PricingCancelled: ``is_cancelled`` returned True mid-pipeline.
        """
        _check_cancelled(is_cancelled, sku)
        category_filter = await self.client.fetch_category_filters(sku.product_line_id)
        language_ids = _ids(
            category_filter.language_id(sku.language), "language", sku.language, category_filter
        )
        variant_ids = _ids(
            category_filter.variant_id(sku.variant), "variant", sku.variant, category_filter
        )
        condition_id = category_filter.condition_id(sku.condition.value)

        # Steps 1-2: sales on the SKU's price scale
        try:
            usable, multipliers = await self._collect_observations(
                sku, config, condition_id, language_ids, variant_ids, is_cancelled
            )
        except InsufficientDataError as exc:
            logger.info("SKU %d: %s", sku.sku_id, exc)
            return _insufficient_result(sku, exc)

        # Step 3: half-life
        half_life = config.half_life_days or estimate_half_life(
            [o.timestamp for o in usable], config.half_life_policy
        )

        warnings: list[str] = []
        if multipliers is not None and multipliers.fallback_used:
            warnings.append("Condition curve fit failed. Using mean price ratios.")

        # Step 4: competing supply and percentiles
        if config.enable_supply_analysis and listings is None:
            _check_cancelled(is_cancelled, sku)
            listings = await self._fetch_listings_or_none(
                sku, config, max_price=max(o.price for o in usable)
            )
            if listings is None:
                warnings.append(LISTING_FETCH_WARNING)
                listings = []
        elif not config.enable_supply_analysis:
            listings = None

        points = compute_percentile_points(
            usable,
            half_life,
            percentile_list(config.percentile),
            weighting=config.weighting,
            listings=listings,
            confidence_weight=config.confidence_weight,
            include_unverified=config.include_unverified_sellers,
            now=config.now,
        )
        if not points:
            # Every weight underflowed: the sales are far older than the half-life
            return _insufficient_result(sku, InsufficientDataError(
                "All sale weights decayed to zero", sale_count=len(usable), sku_id=sku.sku_id
            ))

        # Step 5: select and bound
        selected = next(p for p in points if p.percentile == config.percentile)

        _check_cancelled(is_cancelled, sku)
        if market_price is None:
            market_price = await self.client.fetch_market_price(sku.sku_id)
        reference = market_price.market_price if market_price is not None else None
        lowest = market_price.lowest_price if market_price is not None else None
        highest = market_price.highest_price if market_price is not None else None

        floor = apply_price_floor(
            selected.price,
            reference,
            min_multiplier=config.min_price_multiplier,
            min_constant=config.min_price_constant,
        )
        if floor.warning:
            warnings.append(floor.warning)

        return PricingResult(
            sku_id=sku.sku_id,
            quantity=sku.quantity,
            add_to_quantity=sku.add_to_quantity,
            previous_price=sku.current_price,
            suggested_price=selected.price,
            bounded_price=floor.price,
            market_price=reference,
            lowest_price=lowest or None,
            highest_price=highest or None,
            floor_applied=floor.applied,
            historical_velocity=selected.historical_velocity,
            supply_adjusted_velocity=selected.supply_adjusted_velocity,
            sales_count=selected.sales_count,
            listings_count=selected.listings_count if listings is not None else None,
            sale_count=len(usable),
            total_quantity=sum(o.quantity for o in usable),
            half_life_days=half_life,
            used_cross_condition=multipliers is not None,
            condition_multipliers=multipliers,
            percentiles=points,
            warnings=warnings,
        )

    async def _collect_observations(
        self,
        sku: Sku,
        config: PricingConfig,
        condition_id: int | None,
        language_ids: list[int],
        variant_ids: list[int],
        is_cancelled: Callable[[], bool] | None,
    ) -> tuple[list[Observation], ConditionMultipliers | None]:
        """Sales on the SKU's own price scale, borrowing other grades when sparse.

        Raises:
            InsufficientDataError: Fewer than ``config.min_sales`` usable sales.
        """
        exact_sales = []
        if condition_id is not None:
            exact_sales = await self.client.fetch_sales(
                sku.product_id,
                conditions=[condition_id],
                languages=language_ids,
                variants=variant_ids,
                limit=config.exact_sale_limit,
            )

        multipliers: ConditionMultipliers | None = None
        priced_exact = [s for s in exact_sales if s.price > 0]
        if len(priced_exact) >= config.sparse_sale_threshold:
            observations = [
                Observation(price=s.price, quantity=s.quantity or 1, timestamp=s.timestamp)
                for s in priced_exact
            ]
        else:
            _check_cancelled(is_cancelled, sku)
            all_sales = await self.client.fetch_sales(
                sku.product_id,
                languages=language_ids,
                variants=variant_ids,
                limit=config.cross_condition_sale_limit,
            )
            logger.debug(
                "SKU %d: %d priced exact sales, normalizing %d cross-condition sales",
                sku.sku_id, len(priced_exact), len(all_sales),
            )
            multipliers = fit_condition_multipliers(all_sales, sku.condition)
            observations = [multipliers.apply(s) for s in all_sales]

        usable = [o for o in observations if o.price > 0]
        if len(usable) < config.min_sales:
            raise InsufficientDataError(
                f"Insufficient sales data for pricing ({len(usable)} usable sales, "
                f"need {config.min_sales})",
                sale_count=len(usable),
                sku_id=sku.sku_id,
            )
        return usable, multipliers

    async def _fetch_listings_or_none(
        self, sku: Sku, config: PricingConfig, *, max_price: float
    ) -> list[ListingObservation] | None:
        try:
            return await self.client.fetch_listings(
                sku.product_id,
                condition=sku.condition.value,
                language=sku.language,
                variant=sku.variant,
                include_unverified=config.include_unverified_sellers,
                max_listings=config.max_listings_per_sku,
                max_price=max_price,
            )
        except ExternalFetchError as exc:
            logger.warning("Listing fetch failed for SKU %d: %s", sku.sku_id, exc)
            return None


def _check_cancelled(is_cancelled: Callable[[], bool] | None, sku: Sku) -> None:
    if is_cancelled is not None and is_cancelled():
        raise PricingCancelled(f"Pricing cancelled for SKU {sku.sku_id}", {"sku_id": sku.sku_id})


def _ids(
    filter_id: int | None, field: str, name: str, category_filter: CategoryFilter
) -> list[int]:
    """Filter ids for one SKU attribute; unknown names leave the attribute unfiltered."""
    if filter_id is None:
        logger.warning(
            "No %s filter named %r for category %d, fetching sales without it",
            field, name, category_filter.category_id,
        )
        return []
    return [filter_id]


def _insufficient_result(sku: Sku, exc: InsufficientDataError) -> PricingResult:
    return PricingResult(
        sku_id=sku.sku_id,
        quantity=sku.quantity,
        add_to_quantity=sku.add_to_quantity,
        previous_price=sku.current_price,
        errors=[exc.message],
    )
