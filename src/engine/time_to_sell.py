"""Time-to-sell estimation.

Historical velocity is the median gap between consecutive sales at or above
a price. The supply-adjusted estimate places a new listing at the back of the
queue of cheaper competing listings and drains that queue at the historical
sales rate, then blends the result with the historical figure.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from statistics import median
from typing import Sequence

from src.common.models import ListingObservation

from .models import Observation

# Estimate for a price reached by exactly one historical sale
THIN_DATA_ESTIMATE = timedelta(days=90)

DEFAULT_CONFIDENCE_WEIGHT = 0.7
MIN_ESTIMATE_DAYS = 1.0
MAX_ESTIMATE_DAYS = 365.0


@dataclass
class SupplyQueue:
    """Competing supply priced at or below a target price."""

    total_supply_below: int
    competitor_count: int
    average_queue_price: float

    @property
    def queue_position(self) -> int:
        """Units ahead of a new listing, plus the new listing itself."""
        return self.total_supply_below + 1


def historical_time_to_sell(
    observations: Sequence[Observation],
    target_price: float,
) -> tuple[timedelta | None, int]:
    """Median interval between sales at or above ``target_price``.

    Returns:
        ``(interval, supporting_sale_count)``. The interval is None when no
        sale qualifies and ``THIN_DATA_ESTIMATE`` when exactly one does.
    """
    relevant = sorted(
        (o for o in observations if o.price >= target_price),
        key=lambda o: o.timestamp,
    )
    if not relevant:
        return None, 0
    if len(relevant) == 1:
        return THIN_DATA_ESTIMATE, 1

    gaps = [
        (later.timestamp - earlier.timestamp).total_seconds()
        for earlier, later in zip(relevant, relevant[1:])
    ]
    return timedelta(seconds=median(gaps)), len(relevant)


def analyze_supply_queue(
    listings: Sequence[ListingObservation],
    target_price: float,
    *,
    include_unverified: bool = True,
) -> SupplyQueue:
    """Summarize listings whose price plus shipping is at or below target."""
    below = [
        listing for listing in listings
        if listing.total_price <= target_price
        and (include_unverified or listing.is_verified_seller)
    ]
    total_supply = sum(listing.quantity for listing in below)

    average_price = 0.0
    if below:
        total_value = sum(listing.total_price * listing.quantity for listing in below)
        average_price = total_value / max(1, total_supply)

    return SupplyQueue(
        total_supply_below=total_supply,
        competitor_count=len(below),
        average_queue_price=average_price,
    )


def sales_velocity_per_day(
    observations: Sequence[Observation],
    target_price: float,
) -> float | None:
    """Units sold per day at or above ``target_price``.

    Sales that all share one instant count as a single day's volume.
    """
    relevant = [o for o in observations if o.price >= target_price]
    if not relevant:
        return None

    total_quantity = sum(o.quantity for o in relevant)
    timestamps = sorted(o.timestamp for o in relevant)
    span_days = (timestamps[-1] - timestamps[0]).total_seconds() / 86400
    if span_days <= 0:
        return float(total_quantity)
    return total_quantity / span_days


def supply_adjusted_time_to_sell(
    observations: Sequence[Observation],
    listings: Sequence[ListingObservation],
    target_price: float,
    historical: timedelta | None,
    *,
    confidence_weight: float = DEFAULT_CONFIDENCE_WEIGHT,
    include_unverified: bool = True,
) -> tuple[timedelta | None, int]:
    """Blend historical velocity with the depth of cheaper competing supply.

    Args:
        observations: Normalized sales.
        listings: Current competing listings.
        target_price: Candidate price.
        historical: Historical time to sell at ``target_price``.
        confidence_weight: Weight of the supply-queue estimate in the blend.
        include_unverified: Count listings from unverified sellers.

    Returns:
        ``(estimate, competing_listing_count)``. Falls back to ``historical``
        unchanged when there are no listings or no sales velocity.
    """
    if not listings:
        return historical, 0

    queue = analyze_supply_queue(
        listings, target_price, include_unverified=include_unverified
    )
    velocity = sales_velocity_per_day(observations, target_price)
    if velocity is None or velocity <= 0:
        return historical, queue.competitor_count

    supply_days = queue.queue_position / velocity

    if historical is None:
        return timedelta(days=min(MAX_ESTIMATE_DAYS, supply_days)), queue.competitor_count

    historical_days = historical.total_seconds() / 86400
    blended = historical_days * (1 - confidence_weight) + supply_days * confidence_weight
    # A sub-day history is never raised to the one-day minimum
    lower = min(MIN_ESTIMATE_DAYS, historical_days)
    blended = max(lower, min(MAX_ESTIMATE_DAYS, blended))

    # Competing supply only ever lengthens the wait
    if queue.total_supply_below > 0:
        blended = max(blended, MIN_ESTIMATE_DAYS, historical_days)

    return timedelta(days=blended), queue.competitor_count
