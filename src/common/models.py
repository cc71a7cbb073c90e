"""Shared Pydantic data models for the card pricer.

These models define the data contracts between the marketplace adapters
and the pricing engine. All modules import from here.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


# === Enums ===

class Condition(str, Enum):
    """Card condition grades, ordered best to worst."""
    NEAR_MINT = "Near Mint"
    LIGHTLY_PLAYED = "Lightly Played"
    MODERATELY_PLAYED = "Moderately Played"
    HEAVILY_PLAYED = "Heavily Played"
    DAMAGED = "Damaged"

    @property
    def rank(self) -> int:
        """1-based rank, best condition = 1."""
        return CONDITION_ORDER.index(self) + 1


CONDITION_ORDER: list[Condition] = [
    Condition.NEAR_MINT,
    Condition.LIGHTLY_PLAYED,
    Condition.MODERATELY_PLAYED,
    Condition.HEAVILY_PLAYED,
    Condition.DAMAGED,
]


# === Marketplace observations ===

class SaleObservation(BaseModel):
    """A completed sale reported by the marketplace."""
    condition: Condition
    price: float = Field(ge=0, description="Purchase price per unit")
    quantity: int = Field(default=1, ge=1)
    timestamp: datetime
    shipping_price: float = Field(default=0.0, ge=0)
    language: str = ""
    variant: str = ""


class ListingObservation(BaseModel):
    """An active listing competing for the same buyers."""
    price: float = Field(ge=0)
    shipping_price: float = Field(default=0.0, ge=0)
    quantity: int = Field(default=0, ge=0)
    is_verified_seller: bool = False
    seller_id: str = ""
    listing_id: int = 0

    @property
    def total_price(self) -> float:
        return self.price + self.shipping_price


class PricePoint(BaseModel):
    """Market price reference for a SKU."""
    sku_id: int
    market_price: float = 0.0
    lowest_price: float = 0.0
    highest_price: float = 0.0
    sample_count: int = 0
    calculated_at: datetime | None = None


class FilterEntry(BaseModel):
    """One human-readable filter value and its external id."""
    id: int
    name: str


class CategoryFilter(BaseModel):
    """Filter vocabulary for one marketplace category."""
    category_id: int
    conditions: list[FilterEntry] = []
    languages: list[FilterEntry] = []
    variants: list[FilterEntry] = []

    @staticmethod
    def _lookup(entries: list[FilterEntry], name: str) -> int | None:
        return next((e.id for e in entries if e.name == name), None)

    def condition_id(self, name: str) -> int | None:
        return self._lookup(self.conditions, name)

    def language_id(self, name: str) -> int | None:
        return self._lookup(self.languages, name)

    def variant_id(self, name: str) -> int | None:
        return self._lookup(self.variants, name)


# === Inventory ===

class Sku(BaseModel):
    """A SKU to price: one card in one condition, language and variant."""
    sku_id: int
    product_id: int = 0
    product_line_id: int = 0
    condition: Condition = Condition.NEAR_MINT
    language: str = "English"
    variant: str = "Normal"
    quantity: int = 0
    add_to_quantity: int = 0
    current_price: float | None = None

    @property
    def total_quantity(self) -> int:
        return self.quantity + self.add_to_quantity
