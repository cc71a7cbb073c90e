"""Tests for Zipf condition normalization."""

from unittest.mock import patch

import pytest

from conftest import make_sale
from src.common.models import CONDITION_ORDER, Condition
from src.engine.zipf import (
    condition_mean_prices,
    fit_condition_multipliers,
    ratio_multipliers,
)


def power_law_sales(a: float = 10.0, b: float = 1.0, per_grade: int = 3):
    """Sales priced exactly on a / rank**b for every grade."""
    sales = []
    for condition in CONDITION_ORDER:
        for i in range(per_grade):
            sales.append(make_sale(a / condition.rank ** b, days_ago=i, condition=condition))
    return sales


class TestZipfFit:
    def test_recovers_power_law(self):
        table = fit_condition_multipliers(power_law_sales(10.0, 1.0), Condition.NEAR_MINT)
        assert table.method == "zipf"
        assert not table.fallback_used
        assert table.a == pytest.approx(10.0, rel=1e-3)
        assert table.b == pytest.approx(1.0, rel=1e-3)

    def test_multipliers_map_onto_target_grade(self):
        table = fit_condition_multipliers(power_law_sales(10.0, 1.0), Condition.NEAR_MINT)
        assert table.get(Condition.NEAR_MINT) == pytest.approx(1.0)
        assert table.get(Condition.LIGHTLY_PLAYED) == pytest.approx(2.0, rel=1e-3)
        assert table.get(Condition.DAMAGED) == pytest.approx(5.0, rel=1e-3)

    def test_lower_target_scales_better_grades_down(self):
        table = fit_condition_multipliers(power_law_sales(10.0, 1.0), Condition.MODERATELY_PLAYED)
        assert table.get(Condition.MODERATELY_PLAYED) == pytest.approx(1.0)
        assert table.get(Condition.NEAR_MINT) == pytest.approx(1 / 3, rel=1e-3)

    def test_one_entry_per_grade(self):
        table = fit_condition_multipliers(power_law_sales(), Condition.NEAR_MINT)
        assert set(table.multipliers) == set(CONDITION_ORDER)

    def test_apply_rescales_sale(self):
        table = fit_condition_multipliers(power_law_sales(10.0, 1.0), Condition.NEAR_MINT)
        sale = make_sale(5.0, days_ago=1, condition=Condition.LIGHTLY_PLAYED, quantity=2)
        observation = table.apply(sale)
        assert observation.price == pytest.approx(10.0, rel=1e-3)
        assert observation.quantity == 2
        assert observation.timestamp == sale.timestamp

    def test_failed_fit_falls_back_to_ratios(self):
        sales = power_law_sales()
        with patch("src.engine.zipf.curve_fit", side_effect=RuntimeError("no convergence")):
            table = fit_condition_multipliers(sales, Condition.NEAR_MINT)
        assert table.method == "ratio"
        assert table.fallback_used
        assert table.get(Condition.LIGHTLY_PLAYED) == pytest.approx(2.0)

    def test_non_finite_parameters_fall_back(self):
        with patch(
            "src.engine.zipf.curve_fit",
            return_value=([float("nan"), 1.0], None),
        ):
            table = fit_condition_multipliers(power_law_sales(), Condition.NEAR_MINT)
        assert table.fallback_used

    def test_too_few_points_use_ratios_without_fit(self):
        sales = [
            make_sale(10.0, 1, Condition.NEAR_MINT),
            make_sale(5.0, 1, Condition.LIGHTLY_PLAYED),
        ]
        with patch("src.engine.zipf.curve_fit") as mock_fit:
            table = fit_condition_multipliers(sales, Condition.NEAR_MINT)
        mock_fit.assert_not_called()
        assert table.method == "ratio"
        assert not table.fallback_used


class TestRatioMultipliers:
    @pytest.mark.parametrize("build", [fit_condition_multipliers, ratio_multipliers])
    def test_both_methods_scale_toward_a_middle_target(self, build):
        table = build(power_law_sales(10.0, 1.0), Condition.MODERATELY_PLAYED)
        assert table.get(Condition.MODERATELY_PLAYED) == pytest.approx(1.0)
        assert table.get(Condition.NEAR_MINT) < 1
        assert table.get(Condition.LIGHTLY_PLAYED) < 1
        assert table.get(Condition.HEAVILY_PLAYED) > 1
        assert table.get(Condition.DAMAGED) > 1

    def test_ratio_and_fit_agree_on_power_law(self):
        sales = power_law_sales(10.0, 1.0)
        fitted = fit_condition_multipliers(sales, Condition.MODERATELY_PLAYED)
        ratios = ratio_multipliers(sales, Condition.MODERATELY_PLAYED)
        assert fitted.method == "zipf"
        assert ratios.method == "ratio"
        for condition in CONDITION_ORDER:
            assert fitted.get(condition) == pytest.approx(ratios.get(condition), rel=1e-3)

    def test_mean_price_per_condition(self):
        sales = [
            make_sale(10.0, 1, Condition.NEAR_MINT),
            make_sale(12.0, 2, Condition.NEAR_MINT),
            make_sale(6.0, 1, Condition.HEAVILY_PLAYED),
        ]
        means = condition_mean_prices(sales)
        assert means == {Condition.NEAR_MINT: 11.0, Condition.HEAVILY_PLAYED: 6.0}

    def test_unknown_grades_default_to_one(self):
        sales = [make_sale(10.0, 1, Condition.NEAR_MINT), make_sale(4.0, 1, Condition.DAMAGED)]
        table = ratio_multipliers(sales, Condition.NEAR_MINT)
        assert table.get(Condition.DAMAGED) == pytest.approx(2.5)
        assert table.get(Condition.LIGHTLY_PLAYED) == 1.0

    def test_missing_target_grade_leaves_prices_unscaled(self):
        sales = [make_sale(4.0, 1, Condition.DAMAGED)]
        table = ratio_multipliers(sales, Condition.NEAR_MINT)
        assert all(table.get(c) == 1.0 for c in CONDITION_ORDER)

    def test_zero_prices_ignored(self):
        sales = [make_sale(0.0, 1, Condition.NEAR_MINT), make_sale(8.0, 1, Condition.NEAR_MINT)]
        assert condition_mean_prices(sales) == {Condition.NEAR_MINT: 8.0}
