"""Pricing Engine - pure numeric building blocks (no I/O)."""

from .half_life import HalfLifePolicy, estimate_half_life
from .models import ConditionMultipliers, Observation, PercentilePoint, WeightingMode
from .percentile import STANDARD_PERCENTILES, percentile_list, weighted_percentiles
from .time_to_sell import (
    SupplyQueue,
    analyze_supply_queue,
    historical_time_to_sell,
    supply_adjusted_time_to_sell,
)
from .zipf import fit_condition_multipliers, ratio_multipliers

__all__ = [
    "ConditionMultipliers",
    "HalfLifePolicy",
    "Observation",
    "PercentilePoint",
    "STANDARD_PERCENTILES",
    "SupplyQueue",
    "WeightingMode",
    "analyze_supply_queue",
    "estimate_half_life",
    "fit_condition_multipliers",
    "historical_time_to_sell",
    "percentile_list",
    "ratio_multipliers",
    "supply_adjusted_time_to_sell",
    "weighted_percentiles",
]
