"""Condition normalization via a Zipf (power-law) curve.

Prices across condition grades are modelled as ``price = a / rank**b`` where
rank 1 is the best condition. The fitted curve gives a multiplier per grade
that rescales that grade's prices onto the target grade's price level. With
too few points, or when the fit fails, per-grade mean prices are used
instead.
"""

from __future__ import annotations

import logging
import math
import warnings
from collections import defaultdict
from statistics import mean
from typing import Sequence

import numpy as np
from scipy.optimize import OptimizeWarning, curve_fit

from src.common.exceptions import CurveFitError
from src.common.models import CONDITION_ORDER, Condition, SaleObservation

from .models import ConditionMultipliers

logger = logging.getLogger(__name__)

MIN_FIT_POINTS = 3
MAX_FUNCTION_EVALS = 2000


def zipf_curve(rank: np.ndarray, a: float, b: float) -> np.ndarray:
    return a / np.power(rank, b)


def fit_condition_multipliers(
    sales: Sequence[SaleObservation],
    target_condition: Condition,
) -> ConditionMultipliers:
    """Build a multiplier table normalizing every grade onto ``target_condition``.

    Never raises: a failed fit falls back to the mean-ratio method and the
    returned table has ``fallback_used=True``.

    Args:
        sales: Sales across any mix of conditions.
        target_condition: Grade whose price level the table maps onto.

    Returns:
        ConditionMultipliers with exactly one entry per known grade.
    """
    ranks: list[float] = []
    prices: list[float] = []
    for sale in sales:
        if sale.price > 0 and sale.condition in CONDITION_ORDER:
            ranks.append(float(sale.condition.rank))
            prices.append(sale.price)

    if len(ranks) < MIN_FIT_POINTS:
        return ratio_multipliers(sales, target_condition)

    try:
        a, b = _fit_zipf(ranks, prices)
    except CurveFitError as exc:
        logger.warning(
            "Zipf fit failed for %d sales (%s), falling back to mean ratios",
            len(ranks),
            exc,
        )
        table = ratio_multipliers(sales, target_condition)
        table.fallback_used = True
        return table

    target_predicted = a / target_condition.rank ** b
    multipliers: dict[Condition, float] = {}
    for condition in CONDITION_ORDER:
        predicted = a / condition.rank ** b
        if predicted > 0 and target_predicted > 0 and math.isfinite(predicted):
            multipliers[condition] = target_predicted / predicted
        else:
            multipliers[condition] = 1.0

    logger.debug(
        "Zipf fit a=%.4f b=%.4f over %d sales (target %s)",
        a, b, len(ranks), target_condition.value,
    )
    return ConditionMultipliers(
        target_condition=target_condition,
        multipliers=multipliers,
        method="zipf",
        a=a,
        b=b,
    )


def _fit_zipf(ranks: list[float], prices: list[float]) -> tuple[float, float]:
    """Nonlinear least-squares fit of ``a / rank**b`` with a, b >= 0."""
    best_prices = sorted(p for r, p in zip(ranks, prices) if r == 1)
    initial_a = best_prices[len(best_prices) // 2] if best_prices else prices[0]

    x = np.asarray(ranks, dtype=float)
    y = np.asarray(prices, dtype=float)

    try:
        with warnings.catch_warnings():
            # Single-grade data leaves b unidentifiable; covariance is unused
            warnings.simplefilter("ignore", OptimizeWarning)
            params, _ = curve_fit(
                zipf_curve,
                x,
                y,
                p0=[initial_a, 0.0],
                bounds=([0.0, 0.0], [np.inf, np.inf]),
                maxfev=MAX_FUNCTION_EVALS,
            )
    except (RuntimeError, ValueError, FloatingPointError, np.linalg.LinAlgError) as exc:
        raise CurveFitError(str(exc)) from exc

    a, b = float(params[0]), float(params[1])
    if not (math.isfinite(a) and math.isfinite(b)):
        raise CurveFitError(f"non-finite parameters a={a} b={b}")
    return a, b


def condition_mean_prices(sales: Sequence[SaleObservation]) -> dict[Condition, float]:
    """Mean positive price per condition."""
    by_condition: dict[Condition, list[float]] = defaultdict(list)
    for sale in sales:
        if sale.price > 0:
            by_condition[sale.condition].append(sale.price)
    return {condition: mean(prices) for condition, prices in by_condition.items()}


def ratio_multipliers(
    sales: Sequence[SaleObservation],
    target_condition: Condition,
) -> ConditionMultipliers:
    """Multiplier = target mean price / grade mean price, 1.0 when unknown."""
    means = condition_mean_prices(sales)
    target_price = means.get(target_condition)

    multipliers: dict[Condition, float] = {}
    for condition in CONDITION_ORDER:
        price = means.get(condition)
        if price and target_price and price > 0:
            multipliers[condition] = target_price / price
        else:
            multipliers[condition] = 1.0

    return ConditionMultipliers(
        target_condition=target_condition,
        multipliers=multipliers,
        method="ratio",
    )
