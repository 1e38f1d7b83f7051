"""
Unit tests for profitability / ROI metrics and tabular aggregation.
"""

from __future__ import annotations

from datetime import date

import pytest

from venture_planner.metrics import (
    aggregate_by_year, compute_cash_metrics, compute_metrics, month_or_horizon,
)
from venture_planner.model import MonthlySnapshot


def series(revenues, costs, initial_reserve=0.0) -> list[MonthlySnapshot]:
    snaps = []
    cum_rev = cum_cost = 0.0
    for month, (rev, cost) in enumerate(zip(revenues, costs)):
        cum_rev += rev
        cum_cost += cost
        snaps.append(MonthlySnapshot(
            month=month,
            revenue=rev,
            costs=cost,
            profit=rev - cost,
            cash=initial_reserve + cum_rev - cum_cost,
            cumulative_revenue=cum_rev,
            cumulative_costs=cum_cost,
            units_by_stream={"RS1": float(month)},
            blended_cac=0.0,
        ))
    return snaps


class TestVentureMetrics:

    def test_profitability_and_roi(self):
        # cumulative profit: -100, -150, -120, 80
        snaps = series([0, 0, 30, 200], [100, 50, 0, 0])
        metrics = compute_metrics(snaps)
        assert metrics.profitable_month == 3
        assert metrics.invested_capital == 150
        assert metrics.roi_5_year == pytest.approx(80 / 150 * 100)
        assert metrics.roi_breakeven_month == 3

    def test_breakeven_when_costs_recovered(self):
        # cumulative profit: -100, -150, 50, 350
        snaps = series([0, 0, 200, 300], [100, 50, 0, 0])
        metrics = compute_metrics(snaps)
        assert metrics.profitable_month == 2
        assert metrics.roi_breakeven_month == 2

    def test_breakeven_needs_spending(self):
        metrics = compute_metrics(series([0, 0, 10], [0, 5, 0]))
        assert metrics.roi_breakeven_month == 2

    def test_never_profitable(self):
        metrics = compute_metrics(series([0] * 5, [10] * 5))
        assert metrics.profitable_month is None
        assert metrics.roi_breakeven_month is None
        assert metrics.profitable_month_or_horizon() == 5
        assert metrics.roi_5_year == pytest.approx(-100)

    def test_invested_capital_is_total_costs(self):
        metrics = compute_metrics(series([50, 50], [10, 10]))
        assert metrics.invested_capital == 20
        assert metrics.roi_5_year == pytest.approx(400)
        assert metrics.roi_breakeven_month == 0

    def test_roi_window_limits_investment(self):
        snaps = series([0, 100, 0], [50, 0, 500])
        metrics = compute_metrics(snaps, roi_horizon=2)
        assert metrics.invested_capital == 50
        assert metrics.roi_5_year == pytest.approx(100)

    def test_roi_continuous_across_zero_dip(self):
        # cumulative profit bottoms out at -10 versus +10 in the first month
        costs = [1000] + [0] * 59
        dips = compute_metrics(series([990] * 60, costs))
        never_dips = compute_metrics(series([1010] * 60, costs))
        assert dips.invested_capital == never_dips.invested_capital == 1000
        assert never_dips.roi_5_year > dips.roi_5_year
        assert never_dips.roi_5_year - dips.roi_5_year == pytest.approx(60 * 20 / 1000 * 100)

    def test_empty_series(self):
        metrics = compute_metrics([])
        assert metrics.profitable_month is None
        assert metrics.roi_5_year == 0

    def test_month_or_horizon(self):
        assert month_or_horizon(None, 60) == 60
        assert month_or_horizon(7, 60) == 7

    def test_to_dict_rounds(self):
        metrics = compute_metrics(series([0, 0, 30, 200], [100, 50, 0, 0]))
        assert metrics.to_dict()["roi_5_year"] == 53.33


class TestCashMetrics:

    def test_burn_and_cash_out(self):
        snaps = series([0, 0, 0, 100], [40, 60, 20, 0], initial_reserve=100)
        cash = compute_cash_metrics(snaps, initial_reserve=100)
        assert cash.average_burn == pytest.approx(40)
        assert cash.peak_burn == 60
        assert cash.lowest_cash == -20
        assert cash.lowest_cash_month == 2
        assert cash.cash_out_month == 2
        assert cash.break_even_month == 3
        assert cash.runway_months == pytest.approx(2.5)

    def test_no_burn(self):
        cash = compute_cash_metrics(series([10], [5]))
        assert cash.average_burn == 0
        assert cash.runway_months is None
        assert cash.cash_out_month is None


class TestTabularViews:

    def test_aggregate_by_calendar_year(self):
        snaps = series([10] * 12, [4] * 12)
        yearly = aggregate_by_year(snaps, date(2025, 7, 1))
        assert list(yearly.index) == [2025, 2026]
        assert yearly.loc[2025, "revenue"] == 60
        assert yearly.loc[2026, "profit"] == 36
        assert yearly.loc[2026, "cumulative_profit"] == 72

    def test_aggregate_empty(self):
        assert aggregate_by_year([], date(2025, 1, 1)).empty
