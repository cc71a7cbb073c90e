"""Dynamic half-life estimation from the timing of observed sales."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Sequence

DEFAULT_HALF_LIFE_DAYS = 7.0

# SPAN_QUARTER bounds (days)
MIN_HALF_LIFE_DAYS = 1.0
MAX_HALF_LIFE_DAYS = 90.0

# INTERVAL_MULTIPLE: half-life as a multiple of the average inter-sale interval
INTERVAL_MULTIPLE = 24


class HalfLifePolicy(str, Enum):
    """How the half-life is derived when none is configured."""
    SPAN_QUARTER = "span_quarter"
    INTERVAL_MULTIPLE = "interval_multiple"


def estimate_half_life(
    timestamps: Sequence[datetime],
    policy: HalfLifePolicy = HalfLifePolicy.SPAN_QUARTER,
) -> float:
    """Pick a decay half-life (days) from the sales timeline.

    SPAN_QUARTER sets the half-life to a quarter of the span between the
    oldest and newest sale, so the oldest sale keeps 1/16 of its weight;
    clamped to [1, 90] days and rounded to one decimal.

    INTERVAL_MULTIPLE sets it to 24x the average gap between sales, floored
    at one day and uncapped.

    Args:
        timestamps: Sale timestamps in any order.
        policy: Estimation policy.

    Returns:
        Half-life in days. ``DEFAULT_HALF_LIFE_DAYS`` for fewer than two sales.
    """
    if len(timestamps) <= 1:
        return DEFAULT_HALF_LIFE_DAYS

    ordered = sorted(timestamps)
    span_days = (ordered[-1] - ordered[0]).total_seconds() / 86400

    if policy == HalfLifePolicy.INTERVAL_MULTIPLE:
        avg_interval_days = span_days / (len(ordered) - 1)
        return max(MIN_HALF_LIFE_DAYS, avg_interval_days * INTERVAL_MULTIPLE)

    half_life = span_days / 4
    half_life = min(MAX_HALF_LIFE_DAYS, max(MIN_HALF_LIFE_DAYS, half_life))
    return round(half_life, 1)
