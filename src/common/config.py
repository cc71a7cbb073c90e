"""Project configuration and paths.

Loads pricing settings from config/settings.yaml and environment variables.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

# === Paths ===
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"
DATA_EXPORTS_DIR = DATA_DIR / "exports"

# Load .env from project root
load_dotenv(PROJECT_ROOT / ".env")


class SupplyAnalysisSettings(BaseModel):
    """Settings for supply-adjusted time-to-sell."""
    enabled: bool = False
    max_listings_per_sku: int = Field(default=200, ge=1)
    include_unverified_sellers: bool = False
    confidence_weight: float = Field(default=0.7, ge=0, le=1)


class PricingSettings(BaseModel):
    """Settings for the pricing engine."""
    percentile: float = Field(default=80, ge=0, le=100)
    half_life_days: float | None = Field(default=None, gt=0)
    half_life_policy: str = "span_quarter"  # span_quarter | interval_multiple
    weighting_mode: str = "quantity"  # quantity | decay_only
    sparse_sale_threshold: int = 5
    exact_sale_limit: int = 50
    cross_condition_sale_limit: int = 100
    min_sales: int = 2
    min_price_multiplier: float = 0.8
    min_price_constant: float = 0.1
    supply_analysis: SupplyAnalysisSettings = Field(default_factory=SupplyAnalysisSettings)


class ConcurrencySettings(BaseModel):
    """Bounded-concurrency limits for marketplace calls."""
    sku_concurrency: int = Field(default=10, ge=1)
    price_point_chunk_size: int = Field(default=100, ge=1)


class LoggingSettings(BaseModel):
    """Log level and third-party loggers held at WARNING."""
    level: str = "INFO"
    quiet_loggers: list[str] = Field(default_factory=lambda: ["urllib3"])


class Settings(BaseModel):
    """Top-level application settings."""
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> Settings:
        """Load settings from config/settings.yaml, falling back to defaults."""
        settings_path = path or CONFIG_DIR / "settings.yaml"
        if settings_path.exists():
            with open(settings_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        return cls()


# Singleton settings instance
settings = Settings.load()
