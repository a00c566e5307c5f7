"""
Tests for the Variance Analyzer.

Covers:
- sign-then-magnitude severity classification
- per-line current-period and YTD figures
- grouping by account type and sub-type
- top over/under-budget outliers
"""

from datetime import date
from decimal import Decimal

import pytest

from budget_config.schema import VariancePolicy
from budget_engines.variance import (
    UNSPECIFIED_SUB_TYPE,
    VarianceAnalyzer,
    VarianceStatus,
    classify_variance,
)


class TestClassification:

    @pytest.mark.parametrize(
        "percent,expected",
        [
            ("0", VarianceStatus.FAVORABLE),
            ("5", VarianceStatus.FAVORABLE),
            ("250", VarianceStatus.FAVORABLE),
            ("-5", VarianceStatus.MINOR),
            ("-10", VarianceStatus.MINOR),
            ("-10.01", VarianceStatus.MODERATE),
            ("-25", VarianceStatus.MODERATE),
            ("-30", VarianceStatus.SIGNIFICANT),
            ("-50", VarianceStatus.SIGNIFICANT),
            ("-50.01", VarianceStatus.CRITICAL),
            ("-400", VarianceStatus.CRITICAL),
        ],
    )
    def test_default_thresholds(self, percent, expected):
        assert classify_variance(Decimal(percent)) == expected

    def test_thresholds_come_from_policy(self):
        policy = VariancePolicy(
            minor_percent=Decimal("1"),
            moderate_percent=Decimal("2"),
            significant_percent=Decimal("3"),
        )
        assert classify_variance(Decimal("-5"), policy) == VarianceStatus.CRITICAL


class TestLineVariance:

    def test_thirty_percent_overrun_is_significant(self, make_line, make_budget):
        line = make_line("100000", {1: "130000"})
        report = VarianceAnalyzer().analyze(
            make_budget([line]), [line], as_of=date(2025, 9, 15),
        )

        lv = report.line_variances[0]
        assert lv.variance == Decimal("-30000")
        assert lv.variance_percent == Decimal("-30")
        assert lv.variance_status == VarianceStatus.SIGNIFICANT
        assert lv.is_over_budget is True
        assert report.variance_status == VarianceStatus.SIGNIFICANT

    def test_overrun_just_past_threshold_is_not_rounded_down(self, make_line, make_budget):
        line = make_line("100000", {1: "110000.003"})
        report = VarianceAnalyzer().analyze(
            make_budget([line]), [line], as_of=date(2025, 9, 15),
        )

        lv = report.line_variances[0]
        assert lv.variance_percent == Decimal("-10")
        assert lv.variance_status == VarianceStatus.MODERATE
        assert report.variance_status == VarianceStatus.MODERATE

    def test_tiny_overrun_is_not_favorable(self, make_line, make_budget):
        line = make_line("100000", {1: "100000.00001"})
        report = VarianceAnalyzer().analyze(
            make_budget([line]), [line], as_of=date(2025, 9, 15),
        )

        lv = report.line_variances[0]
        assert lv.variance_percent == Decimal("0")
        assert lv.variance_status == VarianceStatus.MINOR

    def test_current_period_and_ytd(self, make_line, make_budget):
        line = make_line("1200000", {1: "90000", 2: "110000", 3: "95000"})
        report = VarianceAnalyzer().analyze(
            make_budget([line]), [line], as_of=date(2025, 9, 15),
        )

        assert report.current_fiscal_month == 3
        lv = report.line_variances[0]
        assert lv.current_period_budget == Decimal("100000")
        assert lv.current_period_actual == Decimal("95000")
        assert lv.current_period_variance == Decimal("5000")
        assert lv.ytd_budget == Decimal("300000")
        assert lv.ytd_actual == Decimal("295000")
        assert lv.ytd_variance == Decimal("5000")
        assert lv.ytd_variance_percent == Decimal("1.6667")

    def test_before_fiscal_year_has_no_current_period(self, make_line, make_budget):
        line = make_line("1200")
        report = VarianceAnalyzer().analyze(
            make_budget([line]), [line], as_of=date(2025, 1, 1),
        )

        lv = report.line_variances[0]
        assert report.current_fiscal_month == 0
        assert lv.current_period_budget == Decimal("0")
        assert lv.ytd_budget == Decimal("0")

    def test_after_fiscal_year_covers_whole_year(self, make_line, make_budget):
        line = make_line("1200")
        report = VarianceAnalyzer().analyze(
            make_budget([line]), [line], as_of=date(2026, 8, 1),
        )
        assert report.current_fiscal_month == 12
        assert report.line_variances[0].ytd_budget == Decimal("1200")


class TestGrouping:

    def test_groups_by_type_and_sub_type(self, make_line, make_budget):
        lines = [
            make_line("1000", {1: "1200"}, account_code="6000", account_sub_type="facilities"),
            make_line("1000", {1: "600"}, account_code="6100", account_sub_type="facilities"),
            make_line("2000", {1: "500"}, account_code="6200", account_sub_type=None),
            make_line(
                "5000", {1: "1000"},
                account_code="4000", account_type="revenue", account_sub_type="operating",
            ),
        ]
        report = VarianceAnalyzer().analyze(make_budget(lines), lines, as_of=date(2025, 7, 31))

        assert list(report.by_account_type) == ["expense", "revenue"]
        expense = report.by_account_type["expense"]
        assert expense.budget == Decimal("4000")
        assert expense.actual == Decimal("2300")
        assert expense.variance == Decimal("1700")
        assert expense.variance_percent == Decimal("42.5")
        assert expense.line_count == 3

        facilities = report.by_sub_type["facilities"]
        assert facilities.budget == Decimal("2000")
        assert facilities.variance == Decimal("200")
        assert facilities.variance_percent == Decimal("10")
        assert report.by_sub_type[UNSPECIFIED_SUB_TYPE].line_count == 1


class TestOutliers:

    @pytest.fixture
    def lines(self, make_line):
        actuals = ["20000", "15000", "13000", "12000", "6000", "0", "11000"]
        return [
            make_line("12000", {1: actual}, account_code=str(6000 + idx))
            for idx, actual in enumerate(actuals)
        ]

    def test_over_and_under_budget_ordering(self, lines, make_budget):
        report = VarianceAnalyzer().analyze(make_budget(lines), lines, as_of=date(2025, 7, 31))

        assert [lv.variance for lv in report.top_over_budget] == [
            Decimal("-8000"), Decimal("-3000"), Decimal("-1000"),
        ]
        assert [lv.variance for lv in report.top_under_budget] == [
            Decimal("12000"), Decimal("6000"), Decimal("1000"),
        ]

    def test_on_budget_line_is_in_neither_list(self, lines, make_budget):
        report = VarianceAnalyzer().analyze(make_budget(lines), lines, as_of=date(2025, 7, 31))
        on_budget = {lv.line_id for lv in report.line_variances if lv.variance == 0}
        listed = {lv.line_id for lv in report.top_over_budget + report.top_under_budget}
        assert on_budget and not (on_budget & listed)

    def test_top_n_from_policy(self, lines, make_budget):
        analyzer = VarianceAnalyzer(VariancePolicy(top_n=2))
        report = analyzer.analyze(make_budget(lines), lines, as_of=date(2025, 7, 31))

        assert len(report.top_over_budget) == 2
        assert report.top_over_budget[0].variance == Decimal("-8000")
        assert len(report.top_under_budget) == 2

    def test_favorable_iff_non_negative_variance(self, lines, make_budget):
        report = VarianceAnalyzer().analyze(make_budget(lines), lines, as_of=date(2025, 7, 31))
        for lv in report.line_variances:
            assert (lv.variance >= 0) == (lv.variance_status == VarianceStatus.FAVORABLE)
