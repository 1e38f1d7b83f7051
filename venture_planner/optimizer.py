"""
Venture Planner — bounded local parameter optimizer.

For every enabled lever, a handful of candidate adjustments within
±max_adjustment_percent are simulated independently; the best strictly
improving candidate per lever becomes a recommendation. Recommendations
are then applied jointly to report the optimized metrics.

Greedy and explainable: no cross-parameter interaction solving.

Objectives:
    maximize_roi                 roi_5_year
    minimize_profitability_time  -profitable_month
    balanced                     w_roi * roi_5_year - w_month * profitable_month
"""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .config import (
    DEFAULT_MAX_ADJUSTMENT_PERCENT, MAX_WORKERS, OPTIMIZER_STEP_PERCENTS,
    ROI_HORIZON_MONTHS, ROUND_MONEY, ROUND_PERCENT, get_balanced_weights,
)
from .errors import OptimizationError
from .metrics import VentureMetrics
from .model import ScenarioControls, ScenarioSelection, Venture
from .parameters import ParameterGroup, TunableParameter, apply_adjustments, list_parameters
from .sensitivity import SensitivityAnalyzer, SensitivityResult, evaluate_venture
from .simulator import coerce_controls

logger = logging.getLogger(__name__)


class OptimizationGoal(Enum):
    MAXIMIZE_ROI = "maximize_roi"
    MINIMIZE_PROFITABILITY_TIME = "minimize_profitability_time"
    BALANCED = "balanced"


@dataclass(frozen=True)
class ParameterGroups:
    """Which lever categories may be adjusted."""
    stream_prices: bool = True
    stream_cac: bool = True
    stream_acquisition_rate: bool = True
    stream_churn: bool = True
    fixed_costs: bool = True

    def allows(self, group: ParameterGroup | None) -> bool:
        if group is None:
            return False
        return getattr(self, group.value)


class CancellationToken:
    """Thread-safe flag a caller sets to stop a running optimization."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class Recommendation:
    parameter: str
    entity_id: str
    current_value: float
    suggested_value: float
    change_percent: float
    impact: float           # objective gain of this adjustment on its own

    def to_dict(self) -> dict[str, Any]:
        return {
            "parameter": self.parameter,
            "current_value": round(self.current_value, ROUND_MONEY),
            "suggested_value": round(self.suggested_value, ROUND_MONEY),
            "change_percent": self.change_percent,
            "impact": round(self.impact, ROUND_PERCENT),
        }


@dataclass
class OptimizationResult:
    goal: OptimizationGoal
    current_metrics: VentureMetrics
    optimized_metrics: VentureMetrics
    recommendations: list[Recommendation] = field(default_factory=list)
    sensitivity: list[SensitivityResult] = field(default_factory=list)
    cancelled: bool = False
    evaluations: int = 0

    @property
    def improvements(self) -> dict[str, Any]:
        """Positive numbers are improvements (higher ROI, earlier months)."""
        cur, opt = self.current_metrics, self.optimized_metrics
        horizon = cur.horizon_months

        def months_gained(before: int | None, after: int | None) -> int:
            return (horizon if before is None else before) - (horizon if after is None else after)

        return {
            "roi_5_year": opt.roi_5_year - cur.roi_5_year,
            "profitable_month": months_gained(cur.profitable_month, opt.profitable_month),
            "roi_breakeven_month": months_gained(cur.roi_breakeven_month, opt.roi_breakeven_month),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal": self.goal.value,
            "current_metrics": self.current_metrics.to_dict(),
            "optimized_metrics": self.optimized_metrics.to_dict(),
            "improvements": {k: round(v, ROUND_PERCENT) for k, v in self.improvements.items()},
            "recommendations": [r.to_dict() for r in self.recommendations],
            "sensitivity": [s.to_dict() for s in self.sensitivity],
            "cancelled": self.cancelled,
        }


def objective(metrics: VentureMetrics, goal: OptimizationGoal) -> float:
    """Score to maximize; unreached profitability counts as the horizon."""
    month = metrics.profitable_month_or_horizon()
    if goal is OptimizationGoal.MAXIMIZE_ROI:
        return metrics.roi_5_year
    if goal is OptimizationGoal.MINIMIZE_PROFITABILITY_TIME:
        return -float(month)
    weights = get_balanced_weights()
    return weights["roi"] * metrics.roi_5_year - weights["profitability"] * month


def candidate_percents(
    max_adjustment_percent: float,
    steps: tuple[float, ...] = OPTIMIZER_STEP_PERCENTS,
) -> list[float]:
    """Signed adjustments to try: each step within the bound, plus the bound itself."""
    if not math.isfinite(max_adjustment_percent) or max_adjustment_percent < 0:
        raise OptimizationError(
            f"max_adjustment_percent must be a non-negative number, got {max_adjustment_percent}"
        )
    if max_adjustment_percent == 0:
        return []
    magnitudes = sorted({s for s in steps if 0 < s <= max_adjustment_percent} | {max_adjustment_percent})
    # a lever cannot be scaled past zero
    return [sign * m for m in magnitudes for sign in (-1, 1) if sign * m >= -100]


class Optimizer:
    """
    Per-parameter bounded search.

    Features:
     - thread-pool fan-out of candidate simulations
     - cooperative cancellation and timeout; partial results are returned
     - sensitivity analysis of the unmodified venture attached to the result
    """

    def __init__(
        self,
        max_workers: int = MAX_WORKERS,
        steps: tuple[float, ...] = OPTIMIZER_STEP_PERCENTS,
        roi_horizon: int = ROI_HORIZON_MONTHS,
        include_sensitivity: bool = True,
    ):
        self.max_workers = max_workers
        self.steps = steps
        self.roi_horizon = roi_horizon
        self.include_sensitivity = include_sensitivity

    def optimize(
        self,
        venture: Venture,
        goal: OptimizationGoal | str = OptimizationGoal.BALANCED,
        groups: ParameterGroups | None = None,
        max_adjustment_percent: float = DEFAULT_MAX_ADJUSTMENT_PERCENT,
        controls: ScenarioControls | ScenarioSelection | None = None,
        cancel_token: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> OptimizationResult:
        goal = OptimizationGoal(goal)
        groups = groups or ParameterGroups()
        controls = coerce_controls(controls)
        percents = candidate_percents(max_adjustment_percent, self.steps)
        deadline = time.monotonic() + timeout if timeout is not None else None

        def should_stop() -> bool:
            if cancel_token is not None and cancel_token.cancelled:
                return True
            return deadline is not None and time.monotonic() >= deadline

        params = [p for p in list_parameters(venture) if groups.allows(p.group)]
        logger.info("Optimizing %s: %d parameters x %d candidates (bound %.1f%%)",
                    goal.value, len(params), len(percents), max_adjustment_percent)

        current = evaluate_venture(venture, controls, self.roi_horizon)
        baseline_score = objective(current, goal)

        jobs = [(i, pct) for i in range(len(params)) for pct in percents]
        scores: dict[tuple[int, float], float] = {}
        cancelled = False

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_job = {}
            for i, pct in jobs:
                if should_stop():
                    cancelled = True
                    break
                future = executor.submit(self._score_candidate, venture, controls, params[i], pct, goal, should_stop)
                future_to_job[future] = (i, pct)

            for future in as_completed(future_to_job):
                if future.cancelled():
                    continue
                score = future.result()
                if score is None:
                    cancelled = True
                    continue
                scores[future_to_job[future]] = score
                if should_stop() and not cancelled:
                    cancelled = True
                    for pending in future_to_job:
                        pending.cancel()

        recommendations, adjustments = self._select(venture, controls, params, percents, scores, baseline_score)

        optimized_venture = apply_adjustments(venture, adjustments)
        optimized = evaluate_venture(optimized_venture, controls, self.roi_horizon) if adjustments else current

        sensitivity = []
        if self.include_sensitivity and not cancelled:
            sensitivity = SensitivityAnalyzer(max_workers=self.max_workers,
                                              roi_horizon=self.roi_horizon).analyze(venture, controls)

        if cancelled:
            logger.info("Optimization cancelled after %d of %d evaluations", len(scores), len(jobs))
        else:
            logger.info("Optimization completed: %d recommendations", len(recommendations))

        return OptimizationResult(
            goal=goal,
            current_metrics=current,
            optimized_metrics=optimized,
            recommendations=recommendations,
            sensitivity=sensitivity,
            cancelled=cancelled,
            evaluations=len(scores),
        )

    def _score_candidate(
        self,
        venture: Venture,
        controls: ScenarioControls,
        param: TunableParameter,
        pct: float,
        goal: OptimizationGoal,
        should_stop,
    ) -> float | None:
        if should_stop():
            return None
        adjusted = param.scaled(venture, 1 + pct / 100)
        return objective(evaluate_venture(adjusted, controls, self.roi_horizon), goal)

    def _select(
        self,
        venture: Venture,
        controls: ScenarioControls,
        params: list[TunableParameter],
        percents: list[float],
        scores: dict[tuple[int, float], float],
        baseline_score: float,
    ) -> tuple[list[Recommendation], list[tuple[TunableParameter, float]]]:
        """Best strictly improving candidate per parameter; smaller moves win ties."""
        recommendations = []
        adjustments = []
        for i, param in enumerate(params):
            evaluated = [(scores[(i, pct)], pct) for pct in percents if (i, pct) in scores]
            improving = [(score, pct) for score, pct in evaluated if score > baseline_score]
            if not improving:
                continue
            score, pct = max(improving, key=lambda c: (c[0], -abs(c[1]), c[1]))
            factor = 1 + pct / 100
            current_value = param.current_value(venture, controls)
            recommendations.append(Recommendation(
                parameter=param.label,
                entity_id=param.entity_id,
                current_value=current_value,
                suggested_value=param.current_value(param.scaled(venture, factor), controls),
                change_percent=pct,
                impact=score - baseline_score,
            ))
            adjustments.append((param, factor))
        return recommendations, adjustments


def optimize(
    venture: Venture,
    goal: OptimizationGoal | str = OptimizationGoal.BALANCED,
    groups: ParameterGroups | None = None,
    max_adjustment_percent: float = DEFAULT_MAX_ADJUSTMENT_PERCENT,
    **kwargs,
) -> OptimizationResult:
    return Optimizer().optimize(venture, goal, groups, max_adjustment_percent, **kwargs)
