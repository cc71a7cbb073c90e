"""Data models for SKU and batch pricing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from src.common.config import Settings
from src.common.exceptions import ConfigurationError
from src.engine.half_life import HalfLifePolicy
from src.engine.models import ConditionMultipliers, PercentilePoint, WeightingMode


@dataclass
class PricingConfig:
    """Configuration for one pricing run.

    Every optional behaviour is an explicit field; callers never rely on
    argument count to switch features on.
    """

    percentile: float = 80
    half_life_days: float | None = None
    half_life_policy: HalfLifePolicy = HalfLifePolicy.SPAN_QUARTER
    weighting: WeightingMode = WeightingMode.QUANTITY

    # Sampling
    sparse_sale_threshold: int = 5
    exact_sale_limit: int = 50
    cross_condition_sale_limit: int = 100
    min_sales: int = 2

    # Price floor: max(suggested, market * multiplier - constant)
    min_price_multiplier: float = 0.8
    min_price_constant: float = 0.1

    # Supply analysis
    enable_supply_analysis: bool = False
    max_listings_per_sku: int = 200
    include_unverified_sellers: bool = False
    confidence_weight: float = 0.7

    concurrency: int = 10

    # Reference instant for sale ages; None means "now"
    now: datetime | None = None

    def validate(self) -> None:
        """Raise ConfigurationError for settings no run could use."""
        if not 0 <= self.percentile <= 100:
            raise ConfigurationError(f"percentile must be within 0-100, got {self.percentile}")
        if self.half_life_days is not None and self.half_life_days <= 0:
            raise ConfigurationError(f"half_life_days must be positive, got {self.half_life_days}")
        if self.concurrency < 1:
            raise ConfigurationError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.min_sales < 1:
            raise ConfigurationError(f"min_sales must be at least 1, got {self.min_sales}")
        if not 0 <= self.confidence_weight <= 1:
            raise ConfigurationError(
                f"confidence_weight must be within 0-1, got {self.confidence_weight}"
            )
        if self.exact_sale_limit < 1 or self.cross_condition_sale_limit < 1:
            raise ConfigurationError("sale limits must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> PricingConfig:
        """Build a config from loaded settings, then apply keyword overrides."""
        pricing = settings.pricing
        supply = pricing.supply_analysis
        try:
            config = cls(
                percentile=pricing.percentile,
                half_life_days=pricing.half_life_days,
                half_life_policy=HalfLifePolicy(pricing.half_life_policy),
                weighting=WeightingMode(pricing.weighting_mode),
                sparse_sale_threshold=pricing.sparse_sale_threshold,
                exact_sale_limit=pricing.exact_sale_limit,
                cross_condition_sale_limit=pricing.cross_condition_sale_limit,
                min_sales=pricing.min_sales,
                min_price_multiplier=pricing.min_price_multiplier,
                min_price_constant=pricing.min_price_constant,
                enable_supply_analysis=supply.enabled,
                max_listings_per_sku=supply.max_listings_per_sku,
                include_unverified_sellers=supply.include_unverified_sellers,
                confidence_weight=supply.confidence_weight,
                concurrency=settings.concurrency.sku_concurrency,
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        for key, value in overrides.items():
            if not hasattr(config, key):
                raise ConfigurationError(f"Unknown pricing option: {key}")
            setattr(config, key, value)
        return config


@dataclass(frozen=True)
class PricingResult:
    """Outcome of pricing one SKU. Built once by the orchestrator."""

    sku_id: int
    quantity: int = 0
    add_to_quantity: int = 0
    previous_price: float | None = None

    suggested_price: float | None = None
    bounded_price: float | None = None
    market_price: float | None = None
    lowest_price: float | None = None
    highest_price: float | None = None
    floor_applied: bool = False

    # Selected percentile's figures
    historical_velocity: timedelta | None = None
    supply_adjusted_velocity: timedelta | None = None
    sales_count: int | None = None
    listings_count: int | None = None

    sale_count: int = 0
    total_quantity: int = 0
    half_life_days: float | None = None
    used_cross_condition: bool = False
    condition_multipliers: ConditionMultipliers | None = None
    percentiles: list[PercentilePoint] = field(default_factory=list)

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def price(self) -> float | None:
        """Price to list at: the bounded price."""
        return self.bounded_price

    @property
    def inventory_quantity(self) -> int:
        return self.quantity + self.add_to_quantity

    def to_dict(self) -> dict:
        return {
            "sku_id": self.sku_id,
            "quantity": self.quantity,
            "add_to_quantity": self.add_to_quantity,
            "previous_price": self.previous_price,
            "suggested_price": _round(self.suggested_price),
            "price": _round(self.bounded_price),
            "market_price": self.market_price,
            "lowest_price": self.lowest_price,
            "highest_price": self.highest_price,
            "floor_applied": self.floor_applied,
            "historical_days_to_sell": _days(self.historical_velocity),
            "estimated_days_to_sell": _days(self.supply_adjusted_velocity),
            "sales_count": self.sales_count,
            "listings_count": self.listings_count,
            "sale_count": self.sale_count,
            "total_quantity": self.total_quantity,
            "half_life_days": self.half_life_days,
            "used_cross_condition": self.used_cross_condition,
            "condition_multipliers": (
                self.condition_multipliers.to_dict() if self.condition_multipliers else None
            ),
            "percentiles": [p.to_dict() for p in self.percentiles],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class BatchProgress:
    """Progress snapshot passed to batch callbacks."""

    current: int
    total: int
    status: str
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    warnings: int = 0


@dataclass
class BatchStats:
    """Counters for a batch run."""

    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    warnings: int = 0
    elapsed_seconds: float = 0.0

    @property
    def success_rate(self) -> float:
        """Processed SKUs as a percentage of SKUs that were eligible for pricing."""
        eligible = self.total - self.skipped
        if eligible <= 0:
            return 0.0
        return round(self.processed / eligible * 100, 1)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": self.errors,
            "warnings": self.warnings,
            "success_rate": self.success_rate,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass
class BatchAggregate:
    """Portfolio totals for a batch.

    ``total_value[p]`` is what the whole batch is worth if every SKU is
    priced at percentile ``p``: the sum of price x quantity, not an average.
    The reference totals weight each SKU's market, lowest and bounded price
    by its inventory quantity, skipping SKUs without that price.
    """

    total_value: dict[float, float] = field(default_factory=dict)
    median_historical_days: dict[float, float] = field(default_factory=dict)
    median_supply_adjusted_days: dict[float, float] = field(default_factory=dict)

    total_quantity: int = 0
    total_add_quantity: int = 0
    market_price_total: float = 0.0
    low_price_total: float = 0.0
    marketplace_price_total: float = 0.0
    # Inventory quantity of SKUs that had a market price
    quantity_with_market: int = 0

    def to_dict(self) -> dict:
        return {
            "total_quantity": self.total_quantity,
            "total_add_quantity": self.total_add_quantity,
            "totals": {
                "market_price": round(self.market_price_total, 2),
                "low_price": round(self.low_price_total, 2),
                "marketplace_price": round(self.marketplace_price_total, 2),
            },
            "quantity_with_market": self.quantity_with_market,
            "market_price": {_label(p): round(v, 2) for p, v in sorted(self.total_value.items())},
            "historical_days_to_sell": {
                _label(p): round(v, 2) for p, v in sorted(self.median_historical_days.items())
            },
            "estimated_days_to_sell": {
                _label(p): round(v, 2) for p, v in sorted(self.median_supply_adjusted_days.items())
            },
        }


@dataclass
class BatchResult:
    """Results, counters and portfolio totals of a batch run."""

    results: list[PricingResult]
    stats: BatchStats
    aggregate: BatchAggregate
    cancelled: bool = False

    def to_dict(self) -> dict:
        return {
            "cancelled": self.cancelled,
            "stats": self.stats.to_dict(),
            "aggregated_percentiles": self.aggregate.to_dict(),
            "results": [r.to_dict() for r in self.results],
        }


def _label(percentile: float) -> str:
    return f"{percentile:g}th"


def _round(value: float | None) -> float | None:
    return round(value, 2) if value is not None else None


def _days(value: timedelta | None) -> float | None:
    if value is None:
        return None
    return round(value.total_seconds() / 86400, 2)
