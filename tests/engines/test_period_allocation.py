"""
Tests for the Period Allocator.

Covers:
- equal / front_loaded / back_loaded / custom splits
- remainder absorption by fiscal month 12
- fiscal-to-calendar month mapping
- period table derivation (monthly and YTD figures)
- reallocation keeping recorded actuals
"""

from decimal import Decimal

import pytest

from budget_config.schema import AllocationPolicy
from budget_engines.allocation import (
    allocate_amounts,
    allocate_periods,
    build_period_table,
    reallocate_periods,
    with_period_actual,
)
from budget_engines.types import AllocationMethod
from budget_kernel.exceptions import InvalidAllocationError, InvalidFiscalMonthError

MILLION = Decimal("1000000")


class TestEqualAllocation:

    def test_one_million_equal(self):
        amounts = allocate_amounts(annual_amount=MILLION, method=AllocationMethod.EQUAL)

        assert amounts[:11] == (Decimal("83333"),) * 11
        assert amounts[11] == Decimal("83337")
        assert sum(amounts) == MILLION

    def test_evenly_divisible(self):
        amounts = allocate_amounts(
            annual_amount=Decimal("1200000"), method=AllocationMethod.EQUAL,
        )
        assert set(amounts) == {Decimal("100000")}

    def test_amount_smaller_than_twelve_lands_in_last_month(self):
        amounts = allocate_amounts(annual_amount=Decimal("5"), method=AllocationMethod.EQUAL)
        assert amounts[:11] == (Decimal("0"),) * 11
        assert amounts[11] == Decimal("5")

    def test_zero_amount(self):
        amounts = allocate_amounts(annual_amount=Decimal("0"), method=AllocationMethod.EQUAL)
        assert all(a == 0 for a in amounts)

    def test_cents_quantum(self):
        amounts = allocate_amounts(
            annual_amount=Decimal("1000"),
            method=AllocationMethod.EQUAL,
            policy=AllocationPolicy(decimal_places=2),
        )
        assert amounts[0] == Decimal("83.33")
        assert amounts[11] == Decimal("83.37")
        assert sum(amounts) == Decimal("1000")


class TestLoadedAllocation:

    def test_front_loaded(self):
        amounts = allocate_amounts(annual_amount=MILLION, method=AllocationMethod.FRONT_LOADED)

        assert amounts[:6] == (Decimal("100000"),) * 6
        assert amounts[6:11] == (Decimal("66666"),) * 5
        assert amounts[11] == Decimal("66670")
        assert sum(amounts) == MILLION

    def test_back_loaded_mirrors_front_loaded(self):
        amounts = allocate_amounts(annual_amount=MILLION, method=AllocationMethod.BACK_LOADED)

        assert amounts[:6] == (Decimal("66666"),) * 6
        assert amounts[6:11] == (Decimal("100000"),) * 5
        assert amounts[11] == Decimal("100004")
        assert sum(amounts) == MILLION

    def test_share_comes_from_policy(self):
        amounts = allocate_amounts(
            annual_amount=Decimal("1200"),
            method=AllocationMethod.FRONT_LOADED,
            policy=AllocationPolicy(front_loaded_share=Decimal("0.75")),
        )
        assert amounts[0] == Decimal("150")
        assert amounts[6] == Decimal("50")
        assert sum(amounts) == Decimal("1200")

    def test_method_accepts_string_value(self):
        amounts = allocate_amounts(annual_amount=MILLION, method="front_loaded")
        assert amounts[0] == Decimal("100000")


class TestCustomAllocation:

    def test_custom_amounts_used_verbatim(self):
        custom = [Decimal("10")] * 6 + [Decimal("20")] * 6
        amounts = allocate_amounts(
            annual_amount=Decimal("180"),
            method=AllocationMethod.CUSTOM,
            custom_amounts=custom,
        )
        assert list(amounts) == custom

    def test_custom_without_amounts_falls_back_to_equal(self):
        custom = allocate_amounts(annual_amount=MILLION, method=AllocationMethod.CUSTOM)
        equal = allocate_amounts(annual_amount=MILLION, method=AllocationMethod.EQUAL)
        assert custom == equal

    def test_wrong_length_rejected(self):
        with pytest.raises(InvalidAllocationError) as exc_info:
            allocate_amounts(
                annual_amount=Decimal("110"),
                method=AllocationMethod.CUSTOM,
                custom_amounts=[Decimal("10")] * 11,
            )
        assert exc_info.value.code == "INVALID_ALLOCATION"

    def test_wrong_sum_rejected(self):
        with pytest.raises(InvalidAllocationError):
            allocate_amounts(
                annual_amount=Decimal("100"),
                method=AllocationMethod.CUSTOM,
                custom_amounts=[Decimal("10")] * 12,
            )


class TestPeriodTable:

    def test_calendar_mapping_for_fiscal_year(self):
        periods = allocate_periods(
            annual_amount=MILLION, method=AllocationMethod.EQUAL, fiscal_year=2026,
        )

        assert [p.fiscal_month for p in periods] == list(range(1, 13))
        assert (periods[0].calendar_month, periods[0].calendar_year) == (7, 2025)
        assert (periods[5].calendar_month, periods[5].calendar_year) == (12, 2025)
        assert (periods[6].calendar_month, periods[6].calendar_year) == (1, 2026)
        assert (periods[11].calendar_month, periods[11].calendar_year) == (6, 2026)

    def test_fresh_table_has_zero_actuals_and_running_ytd(self):
        periods = allocate_periods(
            annual_amount=Decimal("1200000"), method=AllocationMethod.EQUAL, fiscal_year=2026,
        )

        assert all(p.actual_amount == 0 and p.committed_amount == 0 for p in periods)
        assert periods[0].ytd_budget == Decimal("100000")
        assert periods[5].ytd_budget == Decimal("600000")
        assert periods[11].ytd_budget == Decimal("1200000")
        assert periods[0].variance_percent == Decimal("100")

    def test_table_needs_twelve_amounts(self):
        with pytest.raises(InvalidAllocationError):
            build_period_table(2026, [Decimal("1")] * 6)

    def test_with_period_actual_rederives_month_and_ytd(self):
        periods = allocate_periods(
            annual_amount=Decimal("1200000"), method=AllocationMethod.EQUAL, fiscal_year=2026,
        )
        periods = with_period_actual(
            periods,
            fiscal_year=2026,
            fiscal_month=3,
            actual_amount=Decimal("120000"),
            committed_amount=Decimal("5000"),
        )

        month = periods[2]
        assert month.actual_amount == Decimal("120000")
        assert month.committed_amount == Decimal("5000")
        assert month.variance == Decimal("-20000")
        assert month.variance_percent == Decimal("-20")
        assert month.available_amount == Decimal("-25000")
        assert month.ytd_actual == Decimal("120000")
        assert month.ytd_variance == Decimal("180000")
        assert periods[11].ytd_actual == Decimal("120000")
        assert periods[1].ytd_actual == Decimal("0")

    def test_with_period_actual_keeps_committed_when_omitted(self):
        periods = allocate_periods(
            annual_amount=Decimal("1200"), method=AllocationMethod.EQUAL, fiscal_year=2026,
        )
        periods = with_period_actual(
            periods, fiscal_year=2026, fiscal_month=1,
            actual_amount=Decimal("50"), committed_amount=Decimal("25"),
        )
        periods = with_period_actual(
            periods, fiscal_year=2026, fiscal_month=1, actual_amount=Decimal("80"),
        )
        assert periods[0].actual_amount == Decimal("80")
        assert periods[0].committed_amount == Decimal("25")

    def test_with_period_actual_rejects_bad_month(self):
        periods = allocate_periods(
            annual_amount=Decimal("1200"), method=AllocationMethod.EQUAL, fiscal_year=2026,
        )
        with pytest.raises(InvalidFiscalMonthError) as exc_info:
            with_period_actual(
                periods, fiscal_year=2026, fiscal_month=13, actual_amount=Decimal("1"),
            )
        assert exc_info.value.code == "INVALID_FISCAL_MONTH"


class TestReallocation:

    def test_reallocation_keeps_actuals(self):
        periods = allocate_periods(
            annual_amount=Decimal("1200"), method=AllocationMethod.EQUAL, fiscal_year=2026,
        )
        periods = with_period_actual(
            periods, fiscal_year=2026, fiscal_month=2, actual_amount=Decimal("150"),
        )

        revised = reallocate_periods(
            periods,
            annual_amount=Decimal("2400"),
            method=AllocationMethod.EQUAL,
            fiscal_year=2026,
        )

        assert revised[1].budget_amount == Decimal("200")
        assert revised[1].actual_amount == Decimal("150")
        assert revised[1].variance == Decimal("50")
        assert sum(p.budget_amount for p in revised) == Decimal("2400")
