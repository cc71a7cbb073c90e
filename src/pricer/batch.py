"""Price a batch of SKUs with bounded concurrency and portfolio totals."""

from __future__ import annotations

import logging
import math
import time
from collections import defaultdict
from datetime import timedelta
from statistics import median
from typing import Callable, Sequence

from src.common.exceptions import ExternalFetchError, PricingCancelled, SkuValidationError
from src.common.models import Sku
from src.marketplace.client import MarketplaceClient

from .concurrency import process_with_concurrency
from .models import (
    BatchAggregate,
    BatchProgress,
    BatchResult,
    BatchStats,
    PricingConfig,
    PricingResult,
)
from .sku_pricer import SkuPricer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


def validate_sku(sku: Sku) -> None:
    """Raise SkuValidationError when a SKU cannot be priced."""
    if sku.sku_id <= 0:
        raise SkuValidationError("SKU id must be positive", field="sku_id", value=sku.sku_id)
    if sku.product_id <= 0:
        raise SkuValidationError(
            "SKU has no product id", field="product_id", value=sku.product_id
        )
    if sku.quantity < 0:
        raise SkuValidationError(
            "Quantity cannot be negative", field="quantity", value=sku.quantity
        )
    if sku.add_to_quantity < 0:
        raise SkuValidationError(
            "Add-to quantity cannot be negative",
            field="add_to_quantity",
            value=sku.add_to_quantity,
        )


def aggregate_results(results: Sequence[PricingResult]) -> BatchAggregate:
    """Reduce priced SKUs to portfolio totals.

    Total value at a percentile sums price x inventory quantity over every
    SKU priced without errors. Median time-to-sell pools skip missing and
    non-finite durations. Quantities and the market, lowest and bounded
    price totals cover every result that carries the figure.
    """
    totals: dict[float, float] = defaultdict(float)
    historical: dict[float, list[float]] = defaultdict(list)
    supply_adjusted: dict[float, list[float]] = defaultdict(list)
    aggregate = BatchAggregate()

    for result in results:
        quantity = result.inventory_quantity
        aggregate.total_quantity += result.quantity
        aggregate.total_add_quantity += result.add_to_quantity
        if result.market_price:
            aggregate.market_price_total += result.market_price * quantity
            aggregate.quantity_with_market += quantity
        if result.lowest_price:
            aggregate.low_price_total += result.lowest_price * quantity
        if result.bounded_price:
            aggregate.marketplace_price_total += result.bounded_price * quantity

        if result.errors:
            continue
        for point in result.percentiles:
            totals[point.percentile] += point.price * quantity
            _collect_days(historical[point.percentile], point.historical_velocity)
            _collect_days(supply_adjusted[point.percentile], point.supply_adjusted_velocity)

    aggregate.total_value = dict(totals)
    aggregate.median_historical_days = {p: median(v) for p, v in historical.items() if v}
    aggregate.median_supply_adjusted_days = {
        p: median(v) for p, v in supply_adjusted.items() if v
    }
    return aggregate


def _collect_days(pool: list[float], value: timedelta | None) -> None:
    if value is None:
        return
    days = value.total_seconds() / 86400
    if math.isfinite(days):
        pool.append(days)


class BatchPricer:
    """Prices many SKUs against one marketplace client."""

    def __init__(self, client: MarketplaceClient, sku_pricer: SkuPricer | None = None) -> None:
        self.client = client
        self.sku_pricer = sku_pricer or SkuPricer(client)

    async def price_batch(
        self,
        skus: Sequence[Sku],
        config: PricingConfig,
        on_progress: ProgressCallback | None = None,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> BatchResult:
        """Price every valid SKU, at most ``config.concurrency`` at a time.

        Invalid SKUs are skipped and counted. A SKU whose pricing fails
        becomes an error result; the batch carries on. When ``is_cancelled``
        turns True no further SKU starts, SKUs already running finish, and
        the partial result comes back with ``cancelled=True``.

        Raises:
            ConfigurationError: ``config`` is invalid. Nothing is priced.
        """
        config.validate()
        started = time.monotonic()

        def cancelled() -> bool:
            return is_cancelled is not None and is_cancelled()

        stats = BatchStats(total=len(skus))
        valid: list[Sku] = []
        for sku in skus:
            try:
                validate_sku(sku)
            except SkuValidationError as exc:
                stats.skipped += 1
                logger.info("Skipping SKU %d: %s", sku.sku_id, exc)
                continue
            valid.append(sku)

        _report(on_progress, stats, current=0, status="Validated SKUs")

        if valid and not cancelled():
            try:
                await self.client.fetch_market_prices([sku.sku_id for sku in valid])
            except ExternalFetchError as exc:
                # Each SKU retries its own lookup
                logger.warning("Market price prefetch failed: %s", exc)

        async def run(item: tuple[int, Sku]) -> tuple[int, PricingResult | None]:
            index, sku = item
            return index, await self._price_safely(sku, config, cancelled)

        collected: list[tuple[int, PricingResult]] = []
        async for index, result in process_with_concurrency(
            list(enumerate(valid)),
            config.concurrency,
            run,
            should_continue=lambda: not cancelled(),
        ):
            if result is None:
                continue
            collected.append((index, result))
            _count(stats, result)
            _report(
                on_progress,
                stats,
                current=len(collected),
                status=f"Priced SKU {result.sku_id}",
            )

        collected.sort(key=lambda pair: pair[0])
        results = [result for _, result in collected]
        was_cancelled = len(results) < len(valid)

        aggregate = aggregate_results(results)
        stats.elapsed_seconds = time.monotonic() - started

        if was_cancelled:
            logger.info(
                "Batch cancelled after %d of %d SKUs", len(results), len(valid)
            )
        logger.info(
            "Batch complete: %d processed, %d skipped, %d errors, %d warnings "
            "(%.1f%% success, %.2fs)",
            stats.processed, stats.skipped, stats.errors, stats.warnings,
            stats.success_rate, stats.elapsed_seconds,
        )
        return BatchResult(
            results=results,
            stats=stats,
            aggregate=aggregate,
            cancelled=was_cancelled,
        )

    async def _price_safely(
        self,
        sku: Sku,
        config: PricingConfig,
        is_cancelled: Callable[[], bool],
    ) -> PricingResult | None:
        """Price one SKU; failures become error results, cancellation None."""
        try:
            return await self.sku_pricer.price_one_sku(sku, config, is_cancelled=is_cancelled)
        except PricingCancelled:
            logger.debug("SKU %d cancelled mid-pipeline", sku.sku_id)
            return None
        except ExternalFetchError as exc:
            logger.warning("Failed to fetch data for SKU %d: %s", sku.sku_id, exc)
            return _error_result(sku, str(exc))
        except Exception as exc:
            logger.warning("Failed to price SKU %d", sku.sku_id, exc_info=True)
            return _error_result(sku, f"Processing error: {exc}")


def _error_result(sku: Sku, message: str) -> PricingResult:
    return PricingResult(
        sku_id=sku.sku_id,
        quantity=sku.quantity,
        add_to_quantity=sku.add_to_quantity,
        previous_price=sku.current_price,
        errors=[message],
    )


def _count(stats: BatchStats, result: PricingResult) -> None:
    if result.errors:
        stats.errors += 1
    elif result.warnings:
        stats.warnings += 1
        stats.processed += 1
    else:
        stats.processed += 1


def _report(
    on_progress: ProgressCallback | None,
    stats: BatchStats,
    *,
    current: int,
    status: str,
) -> None:
    if on_progress is None:
        return
    on_progress(BatchProgress(
        current=current,
        total=stats.total - stats.skipped,
        status=status,
        processed=stats.processed,
        skipped=stats.skipped,
        errors=stats.errors,
        warnings=stats.warnings,
    ))
