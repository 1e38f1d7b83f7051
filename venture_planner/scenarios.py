"""
Venture Planner — named scenario runs and cross-scenario comparison.

Bear / expected / bull map to the min / mode / max scenario selections.
Per-stream overrides and multipliers from the base controls are carried
into every run; only the global selection changes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

import numpy as np

from .metrics import CashMetrics, VentureMetrics, compute_cash_metrics, compute_metrics
from .model import ScenarioControls, ScenarioSelection, Venture
from .simulator import SimulationResult, simulate

SCENARIOS = {
    "Bear": ScenarioSelection.MIN,
    "Expected": ScenarioSelection.MODE,
    "Bull": ScenarioSelection.MAX,
}


@dataclass
class ScenarioOutcome:
    name: str
    selection: ScenarioSelection
    result: SimulationResult
    metrics: VentureMetrics
    initial_reserve: float = 0.0

    def cash_metrics(self) -> CashMetrics:
        return compute_cash_metrics(self.result.snapshots, self.initial_reserve)

    def summary(self) -> dict[str, Any]:
        snaps = self.result.snapshots
        return {
            "total_revenue": float(snaps[-1].cumulative_revenue) if snaps else 0.0,
            "total_costs": float(snaps[-1].cumulative_costs) if snaps else 0.0,
            "final_cash": float(snaps[-1].cash) if snaps else 0.0,
            "roi_5_year": self.metrics.roi_5_year,
            "profitable_month": self.metrics.profitable_month_or_horizon(),
        }


def run_scenarios(
    venture: Venture,
    controls: ScenarioControls | None = None,
) -> dict[str, ScenarioOutcome]:
    """Run 3 scenarios: Bear, Expected, Bull."""
    base = controls or ScenarioControls()
    outcomes = {}
    for name, selection in SCENARIOS.items():
        result = simulate(venture, replace(base, selection=selection))
        outcomes[name] = ScenarioOutcome(
            name, selection, result, compute_metrics(result), venture.meta.initial_reserve
        )
    return outcomes


def compare_scenarios(outcomes: dict[str, ScenarioOutcome]) -> dict[str, Any]:
    """
    Compare the summary metrics of several scenario runs.

    For `profitable_month` lower is better, so best/worst are swapped.
    """
    if not outcomes:
        return {}

    names = list(outcomes.keys())
    summaries = {name: outcomes[name].summary() for name in names}
    lower_is_better = {"profitable_month", "total_costs"}

    comparison = {}
    for metric in summaries[names[0]]:
        values = {name: summaries[name][metric] for name in names}
        vals = list(values.values())
        best, worst = max(values, key=values.get), min(values, key=values.get)
        if metric in lower_is_better:
            best, worst = worst, best
        comparison[metric] = {
            "per_scenario": values,
            "mean": float(np.mean(vals)),
            "std": float(np.std(vals)),
            "min": float(np.min(vals)),
            "max": float(np.max(vals)),
            "best_scenario": best,
            "worst_scenario": worst,
        }

    # Spread of the cash curves against the first scenario
    divergence = {}
    ref = np.array([s.cash for s in outcomes[names[0]].result])
    for name in names[1:]:
        other = np.array([s.cash for s in outcomes[name].result])
        n = min(len(ref), len(other))
        if n > 0:
            diff = np.abs(ref[:n] - other[:n])
            divergence[f"{names[0]} vs {name}"] = {
                "mean_divergence": float(np.mean(diff)),
                "max_divergence": float(np.max(diff)),
                "final_divergence": float(diff[-1]),
            }

    return {
        "scenario_count": len(outcomes),
        "scenario_names": names,
        "comparison": comparison,
        "divergence": divergence,
        "cash": {name: outcomes[name].cash_metrics().to_dict() for name in names},
    }
