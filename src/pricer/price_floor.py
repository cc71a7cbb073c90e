"""Lower bound on suggested prices from a market-price reference."""

from __future__ import annotations

from dataclasses import dataclass

NO_MARKET_PRICE_WARNING = "No market price available. Using suggested price directly."
FLOOR_APPLIED_WARNING = "Suggested price below minimum. Using minimum price."


@dataclass(frozen=True)
class FloorOutcome:
    price: float
    floor: float | None = None
    applied: bool = False
    warning: str | None = None


def minimum_price(market_price: float, min_multiplier: float, min_constant: float) -> float:
    return market_price * min_multiplier - min_constant


def apply_price_floor(
    suggested_price: float,
    market_price: float | None,
    *,
    min_multiplier: float,
    min_constant: float,
) -> FloorOutcome:
    """Enforce ``max(suggested, market * min_multiplier - min_constant)``.

    The floor applies only when the suggested price is strictly below it; a
    suggested price equal to the floor is kept as is. Without a positive
    market price the suggested price is accepted with a warning.
    """
    if not market_price or market_price <= 0:
        return FloorOutcome(price=suggested_price, warning=NO_MARKET_PRICE_WARNING)

    floor = minimum_price(market_price, min_multiplier, min_constant)
    if suggested_price < floor:
        return FloorOutcome(price=floor, floor=floor, applied=True, warning=FLOOR_APPLIED_WARNING)
    return FloorOutcome(price=suggested_price, floor=floor)
