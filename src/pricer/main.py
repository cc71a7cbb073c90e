"""CLI entry point for batch SKU pricing.

Usage:
    python -m src.pricer.main --input data/skus.json --output data/exports/prices.json
    python -m src.pricer.main --input data/skus.json --percentile 65 --supply-analysis

The input file holds a JSON array of SKU objects:
    [{"sku_id": 1234, "product_id": 5678, "product_line_id": 1,
      "condition": "Near Mint", "language": "English", "variant": "Normal",
      "quantity": 2, "add_to_quantity": 1, "current_price": 3.49}]

Ctrl-C stops new SKUs from starting; SKUs already running finish and the
partial results are still written.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
import threading
from pathlib import Path

from pydantic import ValidationError

from src.common.config import settings
from src.common.exceptions import ConfigurationError
from src.common.logging import setup_logging
from src.common.models import Sku
from src.marketplace.client import MarketplaceClient
from src.marketplace.config import MarketplaceConfig

from .batch import BatchPricer
from .models import BatchProgress, BatchResult, PricingConfig

logger = logging.getLogger(__name__)


def load_skus(path: str | Path) -> list[Sku]:
    """Read SKUs from a JSON array file."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Expected a JSON array of SKUs in {path}")
    return [Sku.model_validate(entry) for entry in raw]


def build_config(args: argparse.Namespace) -> PricingConfig:
    overrides = {}
    if args.percentile is not None:
        overrides["percentile"] = args.percentile
    if args.half_life is not None:
        overrides["half_life_days"] = args.half_life
    if args.supply_analysis:
        overrides["enable_supply_analysis"] = True
    if args.concurrency is not None:
        overrides["concurrency"] = args.concurrency
    return PricingConfig.from_settings(settings, **overrides)


def _log_progress(progress: BatchProgress) -> None:
    if progress.current and progress.current % 25 == 0:
        logger.info(
            "Progress %d/%d (processed=%d, errors=%d, skipped=%d)",
            progress.current, progress.total,
            progress.processed, progress.errors, progress.skipped,
        )


def _print_summary(result: BatchResult) -> None:
    stats = result.stats
    print("\n=== Pricing Summary ===")
    print(f"SKUs: {stats.total}  processed: {stats.processed}  skipped: {stats.skipped}")
    print(f"errors: {stats.errors}  warnings: {stats.warnings}  success: {stats.success_rate}%")
    if result.cancelled:
        print("Batch was cancelled; results are partial.")

    aggregate = result.aggregate
    print(
        f"\nInventory: {aggregate.total_quantity} on hand + {aggregate.total_add_quantity} to add"
        f"  ({aggregate.quantity_with_market} with a market price)"
    )
    print(f"Market price total:       ${aggregate.market_price_total:>12,.2f}")
    print(f"Lowest price total:       ${aggregate.low_price_total:>12,.2f}")
    print(f"Marketplace price total:  ${aggregate.marketplace_price_total:>12,.2f}")

    if aggregate.total_value:
        print("\nPortfolio value by percentile:")
        for percentile in sorted(aggregate.total_value):
            days = aggregate.median_historical_days.get(percentile)
            days_text = f"{days:.1f}d" if days is not None else "n/a"
            print(
                f"  {percentile:>5g}th  ${aggregate.total_value[percentile]:>12,.2f}"
                f"  median time to sell {days_text}"
            )


async def _run(skus: list[Sku], config: PricingConfig, stop: threading.Event) -> BatchResult:
    marketplace_config = MarketplaceConfig(
        price_point_chunk_size=settings.concurrency.price_point_chunk_size,
    )
    with MarketplaceClient(marketplace_config) as client:
        pricer = BatchPricer(client)
        return await pricer.price_batch(
            skus,
            config,
            on_progress=_log_progress,
            is_cancelled=stop.is_set,
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Trading Card SKU Pricer")
    parser.add_argument(
        "--input",
        type=str,
        required=True,
        help="JSON file with an array of SKUs to price",
    )
    parser.add_argument(
        "--percentile",
        type=float,
        help="Target percentile 0-100 (default: from config/settings.yaml)",
    )
    parser.add_argument(
        "--half-life",
        type=float,
        help="Decay half-life in days (default: estimated per SKU)",
    )
    parser.add_argument(
        "--supply-analysis",
        action="store_true",
        help="Adjust time-to-sell for competing listings",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        help="SKUs priced at once (default: from config/settings.yaml)",
    )
    parser.add_argument(
        "--output",
        type=str,
        help="Output JSON file path",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()
    setup_logging(
        logging.DEBUG if args.verbose else settings.logging.level,
        quiet_loggers=settings.logging.quiet_loggers,
    )

    try:
        skus = load_skus(args.input)
        config = build_config(args)
        config.validate()
    except (OSError, ValueError, ValidationError) as exc:
        # ConfigurationError is a ValueError
        logger.error("Cannot start pricing: %s", exc)
        sys.exit(1)

    logger.info("Loaded %d SKUs from %s", len(skus), args.input)

    stop = threading.Event()

    def _request_stop(signum, frame) -> None:
        logger.warning("Interrupt received, finishing in-flight SKUs")
        stop.set()

    signal.signal(signal.SIGINT, _request_stop)

    try:
        result = asyncio.run(_run(skus, config, stop))
    except ConfigurationError as exc:
        logger.error("Invalid pricing configuration: %s", exc)
        sys.exit(1)

    _print_summary(result)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            json.dumps(result.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        logger.info("Results saved to %s", args.output)


if __name__ == "__main__":
    main()
