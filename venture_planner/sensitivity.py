"""
PURPOSE: One-at-a-time sensitivity analysis of venture parameters.

Each tunable lever is perturbed once, in its favourable direction, and the
full simulator is re-run. Impacts are measured against the unperturbed
baseline:

    profitability_impact  change in profitable month (negative = sooner);
                          a month never reached counts as the horizon
    roi_impact            percentage-point change of 5-year ROI

SRP: no ranking policy beyond the convenience helpers; callers filter.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Sequence

import pandas as pd

from .config import MAX_WORKERS, ROI_HORIZON_MONTHS, ROUND_PERCENT, SENSITIVITY_PERTURBATION_PERCENT
from .metrics import VentureMetrics, compute_metrics
from .model import ScenarioControls, ScenarioSelection, Venture
from .parameters import TunableParameter, list_parameters
from .simulator import coerce_controls, simulate

logger = logging.getLogger(__name__)


@dataclass
class SensitivityResult:
    """Impact of perturbing one parameter of one stream or fixed cost."""
    entity_id: str
    entity_name: str
    parameter: str
    group: str | None
    baseline_value: float
    perturbed_value: float
    perturbation_percent: float
    profitability_impact: int
    roi_impact: float

    @property
    def key(self) -> tuple[str, str]:
        return self.entity_name, self.parameter

    def to_dict(self) -> dict[str, Any]:
        return {
            "stream_or_cost_name": self.entity_name,
            "parameter": self.parameter,
            "profitability_impact": self.profitability_impact,
            "roi_impact": round(self.roi_impact, ROUND_PERCENT),
        }

    def to_dataframe_compatible(self) -> dict[str, Any]:
        """Flat row with every field, for pandas export."""
        return {
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "parameter": self.parameter,
            "group": self.group,
            "baseline_value": self.baseline_value,
            "perturbed_value": self.perturbed_value,
            "perturbation_percent": self.perturbation_percent,
            "profitability_impact": self.profitability_impact,
            "roi_impact": self.roi_impact,
        }


def evaluate_venture(
    venture: Venture,
    controls: ScenarioControls,
    roi_horizon: int = ROI_HORIZON_MONTHS,
) -> VentureMetrics:
    return compute_metrics(simulate(venture, controls), roi_horizon)


class SensitivityAnalyzer:
    """
    Perturbs every tunable parameter and re-simulates.

    Simulations are independent and fanned out over a thread pool; results
    are stored by catalog index so the output order never depends on
    completion order.
    """

    def __init__(
        self,
        perturbation_percent: float = SENSITIVITY_PERTURBATION_PERCENT,
        max_workers: int = MAX_WORKERS,
        roi_horizon: int = ROI_HORIZON_MONTHS,
    ):
        self.perturbation_percent = perturbation_percent
        self.max_workers = max_workers
        self.roi_horizon = roi_horizon

    def analyze(
        self,
        venture: Venture,
        controls: ScenarioControls | ScenarioSelection | None = None,
    ) -> list[SensitivityResult]:
        controls = coerce_controls(controls)
        params = list_parameters(venture)
        logger.info("Starting sensitivity analysis of %d parameters (%.1f%%)",
                    len(params), self.perturbation_percent)

        baseline = evaluate_venture(venture, controls, self.roi_horizon)
        results: list[SensitivityResult | None] = [None] * len(params)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {
                executor.submit(self._analyze_parameter, venture, controls, param, baseline): i
                for i, param in enumerate(params)
            }
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()

        logger.info("Sensitivity analysis completed: %d results", len(results))
        return results

    def _analyze_parameter(
        self,
        venture: Venture,
        controls: ScenarioControls,
        param: TunableParameter,
        baseline: VentureMetrics,
    ) -> SensitivityResult:
        factor = 1 + param.favorable_sign * self.perturbation_percent / 100
        perturbed = param.scaled(venture, factor)
        metrics = evaluate_venture(perturbed, controls, self.roi_horizon)

        return SensitivityResult(
            entity_id=param.entity_id,
            entity_name=param.entity_name,
            parameter=param.kind.value,
            group=param.group.value if param.group else None,
            baseline_value=param.current_value(venture, controls),
            perturbed_value=param.current_value(perturbed, controls),
            perturbation_percent=param.favorable_sign * self.perturbation_percent,
            profitability_impact=(metrics.profitable_month_or_horizon()
                                  - baseline.profitable_month_or_horizon()),
            roi_impact=metrics.roi_5_year - baseline.roi_5_year,
        )


def analyze(
    venture: Venture,
    controls: ScenarioControls | ScenarioSelection | None = None,
    perturbation_percent: float = SENSITIVITY_PERTURBATION_PERCENT,
) -> list[SensitivityResult]:
    return SensitivityAnalyzer(perturbation_percent).analyze(venture, controls)


def rank_results(results: Sequence[SensitivityResult]) -> list[SensitivityResult]:
    """Most influential first: by |profitability impact|, then |ROI impact|."""
    return sorted(
        results,
        key=lambda r: (abs(r.profitability_impact), abs(r.roi_impact)),
        reverse=True,
    )


def results_to_dataframe(results: Sequence[SensitivityResult]) -> pd.DataFrame:
    return pd.DataFrame([r.to_dataframe_compatible() for r in results])
