"""Pricer - per-SKU orchestration and batch aggregation."""

from .batch import BatchPricer, aggregate_results, validate_sku
from .concurrency import process_with_concurrency
from .models import (
    BatchAggregate,
    BatchProgress,
    BatchResult,
    BatchStats,
    PricingConfig,
    PricingResult,
)
from .price_floor import apply_price_floor
from .sku_pricer import SkuPricer, compute_percentile_points

__all__ = [
    "BatchAggregate",
    "BatchPricer",
    "BatchProgress",
    "BatchResult",
    "BatchStats",
    "PricingConfig",
    "PricingResult",
    "SkuPricer",
    "aggregate_results",
    "apply_price_floor",
    "compute_percentile_points",
    "process_with_concurrency",
    "validate_sku",
]
