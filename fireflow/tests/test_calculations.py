"""
Tests for the calculation engines (fireflow/services/calculations.py).
Pure functions, no database.
"""

from datetime import date
from decimal import Decimal
from itertools import permutations

import pytest

from fireflow.constants import GRAMS_PER_UNIT, PERIODS_PER_YEAR
from fireflow.services import calculations

TOLERANCE = Decimal("0.000001")


# =============================================================================
# INTEREST
# =============================================================================

class TestInterest:

    def test_monthly_payment_annualizes_with_compounding(self):
        period_rate, annual = calculations.annualize_interest(Decimal("40"), Decimal("10000"), "monthly")
        assert period_rate == Decimal("0.004")
        expected = Decimal("1.004") ** 12 - 1
        assert abs(annual - expected) < TOLERANCE
        assert abs(annual - Decimal("0.04907")) < Decimal("0.00001")

    def test_projection_inverts_annualization(self):
        for period in PERIODS_PER_YEAR:
            _, annual = calculations.annualize_interest(Decimal("25"), Decimal("5000"), period)
            projected = calculations.project_period_amount(annual, Decimal("5000"), period)
            assert abs(projected - Decimal("25")) < TOLERANCE, period

    def test_multi_year_periods(self):
        assert calculations.periods_per_year("triennial") == Decimal(1) / Decimal(3)
        assert calculations.periods_per_year("quinquennial") == Decimal("0.2")
        _, annual = calculations.annualize_interest(Decimal("100"), Decimal("1000"), "biennial")
        # 10% over two years is a little under 5% a year
        assert Decimal("0.048") < annual < Decimal("0.049")

    def test_unknown_period_counts_as_monthly(self):
        assert calculations.periods_per_year("fortnightly") == Decimal(12)

    def test_zero_principal_rejected(self):
        with pytest.raises(ValueError):
            calculations.annualize_interest(Decimal("40"), Decimal("0"), "monthly")


# =============================================================================
# COST BASIS / P&L
# =============================================================================

class TestCostBasis:

    def test_weighted_average_cost(self):
        pairs = [(Decimal("1000"), Decimal("10")), (Decimal("1500"), Decimal("10"))]
        assert calculations.weighted_average_cost(pairs) == Decimal("125")

    def test_no_acquisitions_is_undefined(self):
        assert calculations.weighted_average_cost([]) is None

    def test_zero_cumulative_shares_is_undefined(self):
        pairs = [(Decimal("500"), Decimal("5")), (Decimal("0"), Decimal("-5"))]
        assert calculations.weighted_average_cost(pairs) is None

    def test_realized_pl(self):
        assert calculations.realized_pl(Decimal("120"), Decimal("100"), Decimal("20")) == Decimal("400")
        assert calculations.realized_pl(Decimal("90"), Decimal("100"), Decimal("10")) == Decimal("-100")


# =============================================================================
# DIVIDENDS
# =============================================================================

class TestDividends:

    def test_us_market_uses_default_rate(self):
        split = calculations.dividend_withholding(Decimal("100"), "US", Decimal("0.30"), Decimal("0"))
        assert split.rate == Decimal("0.30")
        assert split.withheld == Decimal("30")
        assert split.net == Decimal("70")
        assert split.gross == Decimal("100")

    def test_sg_market_overrides(self):
        split = calculations.dividend_withholding(Decimal("100"), "sg", Decimal("0.30"), Decimal("0"))
        assert split.net == Decimal("100")

    def test_unknown_market_falls_back_to_default(self):
        assert calculations.withholding_rate(None, Decimal("0.15"), Decimal("0")) == Decimal("0.15")
        assert calculations.withholding_rate("HK", Decimal("0.15"), Decimal("0")) == Decimal("0.15")


# =============================================================================
# METALS
# =============================================================================

class TestMetals:

    def test_ounce_to_grams(self):
        assert calculations.convert_metal_weight(Decimal("1"), "ounce", "gram") == Decimal("31.1035")

    def test_weight_round_trip(self):
        grams = calculations.convert_metal_weight(Decimal("5"), "tael", "gram")
        assert calculations.convert_metal_weight(grams, "gram", "tael") == Decimal("5")
        for from_unit, to_unit in permutations(GRAMS_PER_UNIT, 2):
            converted = calculations.convert_metal_weight(Decimal("2"), from_unit, to_unit)
            back = calculations.convert_metal_weight(converted, to_unit, from_unit)
            assert abs(back - Decimal("2")) < TOLERANCE, (from_unit, to_unit)

    def test_price_round_trip(self):
        for from_unit, to_unit in permutations(GRAMS_PER_UNIT, 2):
            converted = calculations.convert_metal_price(Decimal("80"), from_unit, to_unit)
            back = calculations.convert_metal_price(converted, to_unit, from_unit)
            assert abs(back - Decimal("80")) < TOLERANCE, (from_unit, to_unit)

    def test_price_per_troy_ounce_to_gram(self):
        price = calculations.convert_metal_price(Decimal("3110.35"), "troy_oz", "gram")
        assert price == Decimal("100")

    def test_price_to_kg(self):
        price = calculations.convert_metal_price(Decimal("100"), "gram", "kg")
        assert price == Decimal("100000")

    def test_unknown_unit(self):
        with pytest.raises(ValueError):
            calculations.to_grams(Decimal("1"), "stone")

    def test_asset_name(self):
        assert calculations.metal_asset_name("gold", "gram") == "Gold (g)"
        assert calculations.metal_asset_name("silver", "ounce") == "Silver (oz)"


# =============================================================================
# DEBTS / SCHEDULES
# =============================================================================

class TestDebtsAndSchedules:

    def test_amortized_payment(self):
        payment = calculations.amortized_payment(Decimal("100000"), Decimal("0.06"), 360)
        assert payment == Decimal("599.55")

    def test_amortized_payment_needs_all_inputs(self):
        assert calculations.amortized_payment(Decimal("1000"), Decimal("0"), 12) is None
        assert calculations.amortized_payment(Decimal("1000"), None, 12) is None
        assert calculations.amortized_payment(Decimal("1000"), Decimal("0.05"), None) is None

    def test_next_occurrence(self):
        start = date(2024, 1, 31)
        assert calculations.next_occurrence(start, "weekly") == date(2024, 2, 7)
        assert calculations.next_occurrence(start, "biweekly") == date(2024, 2, 14)
        assert calculations.next_occurrence(start, "monthly") == date(2024, 2, 29)
        assert calculations.next_occurrence(date(2024, 11, 30), "quarterly") == date(2025, 2, 28)
        assert calculations.next_occurrence(date(2024, 2, 29), "yearly") == date(2025, 2, 28)

    def test_unknown_frequency(self):
        with pytest.raises(ValueError):
            calculations.next_occurrence(date(2024, 1, 1), "daily")
