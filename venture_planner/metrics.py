"""
PURPOSE: Summary metrics and tabular views of a simulated series.

RESPONSIBILITIES:
- Profitability month, ROI break-even month and 5-year ROI
- Cash metrics: burn, lowest cash, cash-out and break-even months
- Export snapshots to pandas, aggregate them by calendar year
- Works on any sequence of MonthlySnapshot; never runs a simulation

Definitions:
    profitable_month     first month where cumulative profit > 0
    invested_capital     cumulative costs at the last month of the ROI window
    roi_5_year           cumulative profit at the last month of the window
                         / invested_capital, in percent
    roi_breakeven_month  first month where cumulative revenue covers the costs
                         spent so far
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Sequence

import numpy as np
import pandas as pd

from .config import ROI_HORIZON_MONTHS, ROUND_MONEY, ROUND_PERCENT
from .grammar import add_months
from .model import MonthlySnapshot


@dataclass(frozen=True)
class VentureMetrics:
    profitable_month: int | None
    roi_breakeven_month: int | None
    roi_5_year: float
    invested_capital: float
    horizon_months: int

    def profitable_month_or_horizon(self) -> int:
        """Unreached milestones count as the full horizon."""
        return month_or_horizon(self.profitable_month, self.horizon_months)

    def to_dict(self) -> dict[str, Any]:
        return {
            "profitable_month": self.profitable_month,
            "roi_breakeven_month": self.roi_breakeven_month,
            "roi_5_year": round(self.roi_5_year, ROUND_PERCENT),
            "invested_capital": round(self.invested_capital, ROUND_MONEY),
        }


@dataclass(frozen=True)
class CashMetrics:
    average_burn: float             # mean monthly loss over loss-making months
    peak_burn: float
    lowest_cash: float
    lowest_cash_month: int | None
    cash_out_month: int | None      # first month cash goes negative
    break_even_month: int | None    # first month with non-negative monthly profit after revenue starts
    runway_months: float | None     # starting cash / average burn; None without burn

    def to_dict(self) -> dict[str, Any]:
        return {
            "average_burn": round(self.average_burn, ROUND_MONEY),
            "peak_burn": round(self.peak_burn, ROUND_MONEY),
            "lowest_cash": round(self.lowest_cash, ROUND_MONEY),
            "lowest_cash_month": self.lowest_cash_month,
            "cash_out_month": self.cash_out_month,
            "break_even_month": self.break_even_month,
            "runway_months": None if self.runway_months is None else round(self.runway_months, 1),
        }


def month_or_horizon(month: int | None, horizon: int) -> int:
    return horizon if month is None else month


def _first_month(mask: np.ndarray) -> int | None:
    hits = np.flatnonzero(mask)
    return int(hits[0]) if hits.size else None


def compute_metrics(
    snapshots: Sequence[MonthlySnapshot],
    roi_horizon: int = ROI_HORIZON_MONTHS,
) -> VentureMetrics:
    """Profitability and ROI metrics of a simulated series."""
    n = len(snapshots)
    if n == 0:
        return VentureMetrics(None, None, 0.0, 0.0, 0)

    cumulative = np.array([s.cumulative_profit for s in snapshots], dtype=float)
    window = cumulative[: min(roi_horizon, n)]

    profitable_month = _first_month(cumulative > 0)

    invested = float(snapshots[len(window) - 1].cumulative_costs)
    roi = float(window[-1]) / invested * 100 if invested > 0 else 0.0

    costs = np.array([s.cumulative_costs for s in snapshots], dtype=float)
    breakeven = _first_month((costs > 0) & (cumulative >= 0))

    return VentureMetrics(
        profitable_month=profitable_month,
        roi_breakeven_month=breakeven,
        roi_5_year=roi,
        invested_capital=invested,
        horizon_months=n,
    )


def compute_cash_metrics(snapshots: Sequence[MonthlySnapshot], initial_reserve: float = 0.0) -> CashMetrics:
    if not snapshots:
        return CashMetrics(0.0, 0.0, initial_reserve, None, None, None, None)

    profit = np.array([s.profit for s in snapshots], dtype=float)
    revenue = np.array([s.revenue for s in snapshots], dtype=float)
    cash = np.array([s.cash for s in snapshots], dtype=float)

    losses = -profit[profit < 0]
    average_burn = float(losses.mean()) if losses.size else 0.0
    peak_burn = float(losses.max()) if losses.size else 0.0

    lowest = int(np.argmin(cash))
    runway = initial_reserve / average_burn if average_burn > 0 and initial_reserve > 0 else None

    return CashMetrics(
        average_burn=average_burn,
        peak_burn=peak_burn,
        lowest_cash=float(cash[lowest]),
        lowest_cash_month=lowest,
        cash_out_month=_first_month(cash < 0),
        break_even_month=_first_month((revenue > 0) & (profit >= 0)),
        runway_months=runway,
    )


# ──────────────────────────────────────────────────────────────────────
# Tabular views
# ──────────────────────────────────────────────────────────────────────

def series_to_dataframe(snapshots: Sequence[MonthlySnapshot]) -> pd.DataFrame:
    """One row per month; per-stream units become `units_<stream id>` columns."""
    rows = []
    for snap in snapshots:
        row = snap.to_dict()
        units = row.pop("units_by_stream")
        row["cumulative_profit"] = snap.cumulative_profit
        for stream_id, value in units.items():
            row[f"units_{stream_id}"] = value
        rows.append(row)
    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.set_index("month")
    return df


def aggregate_by_year(snapshots: Sequence[MonthlySnapshot], start: date) -> pd.DataFrame:
    """
    Calendar-year totals: revenue, costs and profit summed, cash and
    cumulative profit taken at the last month of each year.
    """
    df = series_to_dataframe(snapshots)
    if df.empty:
        return pd.DataFrame(columns=["revenue", "costs", "profit", "cash", "cumulative_profit"])
    df["year"] = [add_months(start, int(m)).year for m in df.index]
    yearly = df.groupby("year").agg(
        revenue=("revenue", "sum"),
        costs=("costs", "sum"),
        profit=("profit", "sum"),
        cash=("cash", "last"),
        cumulative_profit=("cumulative_profit", "last"),
    )
    return yearly.round(ROUND_MONEY)
