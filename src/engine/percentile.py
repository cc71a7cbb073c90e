"""Time-decay weighted percentile engine.

Each observation is weighted by an exponential decay on its age
(``0.5 ** (age_days / half_life_days)``), optionally multiplied by its
quantity. Observations are sorted by price and a percentile price is read off
the cumulative weight curve with linear interpolation between neighbouring
observations.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

from .models import Observation, WeightingMode

SECONDS_PER_DAY = 86400.0

STANDARD_PERCENTILES: list[float] = [10, 20, 30, 40, 50, 60, 70, 80, 90]


@dataclass(frozen=True)
class _CumulativePoint:
    price: float
    cumulative_weight: float


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def decay_weight(age_days: float, half_life_days: float) -> float:
    """Exponential decay weight for an observation ``age_days`` old."""
    if math.isinf(half_life_days):
        return 1.0
    return 0.5 ** (age_days / half_life_days)


def observation_weights(
    observations: Sequence[Observation],
    half_life_days: float,
    *,
    weighting: WeightingMode = WeightingMode.QUANTITY,
    now: datetime | None = None,
) -> list[float]:
    """Weight of each observation, in input order."""
    if half_life_days <= 0:
        raise ValueError("half_life_days must be positive")

    now = now or utcnow()
    weights = []
    for obs in observations:
        age_days = (now - obs.timestamp).total_seconds() / SECONDS_PER_DAY
        weight = decay_weight(age_days, half_life_days)
        if weighting == WeightingMode.QUANTITY:
            weight *= obs.quantity or 1
        weights.append(weight)
    return weights


def percentile_list(
    selected: float, standard: Iterable[float] = STANDARD_PERCENTILES
) -> list[float]:
    """Standard decile steps plus ``selected``, sorted and deduplicated."""
    return sorted(set(standard) | {selected})


def weighted_percentiles(
    observations: Sequence[Observation],
    half_life_days: float,
    percentiles: Sequence[float],
    *,
    weighting: WeightingMode = WeightingMode.QUANTITY,
    now: datetime | None = None,
) -> list[tuple[float, float]]:
    """Interpolated price for each requested percentile.

    Args:
        observations: Price observations (price, quantity, timestamp).
        half_life_days: Decay half-life in days; ``math.inf`` disables decay.
        percentiles: Requested percentiles in [0, 100].
        weighting: Quantity-weighted (default) or decay-only weighting.
        now: Reference instant for ages. Defaults to the current UTC time.

    Returns:
        ``(percentile, price)`` pairs in the requested order, or an empty list
        when there are no observations or every weight underflowed to zero.

    Raises:
        ValueError: If a percentile lies outside [0, 100].
    """
    for p in percentiles:
        if not 0 <= p <= 100:
            raise ValueError(f"percentile out of range: {p}")

    if not observations:
        return []

    weights = observation_weights(
        observations, half_life_days, weighting=weighting, now=now
    )
    weighted = sorted(zip(observations, weights), key=lambda pair: pair[0].price)
    total_weight = sum(w for _, w in weighted)
    if total_weight == 0:
        return []

    cumulative = 0.0
    curve: list[_CumulativePoint] = []
    for obs, weight in weighted:
        cumulative += weight
        curve.append(_CumulativePoint(obs.price, cumulative))

    return [(p, _price_at(curve, p, total_weight)) for p in percentiles]


def _price_at(curve: list[_CumulativePoint], percentile: float, total_weight: float) -> float:
    if percentile == 0:
        return curve[0].price
    if percentile == 100:
        return curve[-1].price

    target_weight = percentile / 100 * total_weight
    for i, point in enumerate(curve):
        if point.cumulative_weight >= target_weight:
            if i == 0:
                return point.price
            lower = curve[i - 1]
            gap = point.cumulative_weight - lower.cumulative_weight
            ratio = 0.0 if gap == 0 else (target_weight - lower.cumulative_weight) / gap
            return lower.price + (point.price - lower.price) * ratio

    # Floating-point shortfall: target weight above the final cumulative weight
    return curve[-1].price
