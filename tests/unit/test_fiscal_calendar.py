"""
Tests for the July-to-June fiscal calendar helpers.
"""

from datetime import date

import pytest

from budget_kernel.domain.fiscal import (
    calendar_month_for,
    calendar_year_for,
    elapsed_fiscal_months,
    fiscal_month_of,
    fiscal_year_bounds,
    fiscal_year_of,
)


class TestFiscalYearBounds:

    def test_fy2026_spans_july_2025_to_june_2026(self):
        start, end = fiscal_year_bounds(2026)
        assert start == date(2025, 7, 1)
        assert end == date(2026, 6, 30)

    def test_fiscal_year_of_date(self):
        assert fiscal_year_of(date(2025, 7, 1)) == 2026
        assert fiscal_year_of(date(2025, 12, 31)) == 2026
        assert fiscal_year_of(date(2026, 6, 30)) == 2026
        assert fiscal_year_of(date(2026, 7, 1)) == 2027


class TestFiscalMonthMapping:

    @pytest.mark.parametrize(
        "calendar_month,fiscal_month",
        [(7, 1), (8, 2), (12, 6), (1, 7), (3, 9), (6, 12)],
    )
    def test_fiscal_month_of(self, calendar_month, fiscal_month):
        assert fiscal_month_of(date(2025, calendar_month, 10)) == fiscal_month

    def test_calendar_month_inverts_fiscal_month(self):
        for month in range(1, 13):
            assert fiscal_month_of(date(2025, calendar_month_for(month), 1)) == month

    def test_calendar_year_for_first_and_second_half(self):
        assert calendar_year_for(2026, 1) == 2025
        assert calendar_year_for(2026, 6) == 2025
        assert calendar_year_for(2026, 7) == 2026
        assert calendar_year_for(2026, 12) == 2026

    @pytest.mark.parametrize("bad", [0, 13, -1])
    def test_out_of_range_fiscal_month_rejected(self, bad):
        with pytest.raises(ValueError):
            calendar_month_for(bad)


class TestElapsedFiscalMonths:

    def test_before_fiscal_year_is_zero(self):
        assert elapsed_fiscal_months(2026, date(2025, 6, 30)) == 0

    def test_first_day_counts_first_month(self):
        assert elapsed_fiscal_months(2026, date(2025, 7, 1)) == 1

    def test_mid_year(self):
        assert elapsed_fiscal_months(2026, date(2025, 12, 31)) == 6
        assert elapsed_fiscal_months(2026, date(2026, 1, 1)) == 7

    def test_after_fiscal_year_is_twelve(self):
        assert elapsed_fiscal_months(2026, date(2026, 6, 30)) == 12
        assert elapsed_fiscal_months(2026, date(2027, 3, 1)) == 12
