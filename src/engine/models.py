"""Data models for the pricing engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from src.common.models import CONDITION_ORDER, Condition, SaleObservation


class WeightingMode(str, Enum):
    """How each sale contributes to the weighted price distribution."""
    QUANTITY = "quantity"  # decay x quantity, bulk-purchase aware
    DECAY_ONLY = "decay_only"  # decay only, per-unit price discovery


@dataclass(frozen=True)
class Observation:
    """A price observation on the target condition's price scale."""

    price: float
    quantity: int
    timestamp: datetime


@dataclass
class PercentilePoint:
    """One point of the price distribution with its time-to-sell figures."""

    percentile: float
    price: float
    historical_velocity: timedelta | None = None
    supply_adjusted_velocity: timedelta | None = None
    sales_count: int = 0
    listings_count: int = 0

    def to_dict(self) -> dict:
        return {
            "percentile": self.percentile,
            "price": round(self.price, 2),
            "historical_velocity_days": _days(self.historical_velocity),
            "supply_adjusted_velocity_days": _days(self.supply_adjusted_velocity),
            "sales_count": self.sales_count,
            "listings_count": self.listings_count,
        }


@dataclass
class ConditionMultipliers:
    """Per-condition scale factors onto the target condition's price level.

    ``method`` is ``zipf`` when the power-law fit was used and ``ratio`` when
    the simple mean-ratio method produced the table. ``fallback_used`` is set
    only when a fit was attempted and failed.
    """

    target_condition: Condition
    multipliers: dict[Condition, float] = field(default_factory=dict)
    method: str = "ratio"
    fallback_used: bool = False
    a: float | None = None
    b: float | None = None

    def get(self, condition: Condition) -> float:
        return self.multipliers.get(condition, 1.0)

    def apply(self, sale: SaleObservation) -> Observation:
        """Rescale a sale onto the target condition's price level."""
        return Observation(
            price=sale.price * self.get(sale.condition),
            quantity=sale.quantity or 1,
            timestamp=sale.timestamp,
        )

    def to_dict(self) -> dict:
        return {
            "target_condition": self.target_condition.value,
            "method": self.method,
            "fallback_used": self.fallback_used,
            "multipliers": {c.value: round(self.get(c), 4) for c in CONDITION_ORDER},
        }


def _days(value: timedelta | None) -> float | None:
    if value is None:
        return None
    return round(value.total_seconds() / 86400, 2)
