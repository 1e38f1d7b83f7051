"""
Venture Planner — simulation and optimization engine for venture plans.

PURPOSE:
    Turn a venture definition (tasks, revenue streams, fixed costs, timeline
    events) into month-by-month projections, min/mode/max scenarios,
    sensitivity rankings and bounded parameter-tuning recommendations.

RESPONSIBILITIES:
    - scheduler.py: task dependency dates
    - distributions.py: scenario evaluation of uncertainty ranges
    - simulator.py: monthly financial series
    - metrics.py: profitability, ROI and cash metrics, pandas views
    - scenarios.py: bear / expected / bull runs and comparison
    - sensitivity.py: one-at-a-time parameter perturbation
    - optimizer.py: per-parameter bounded local search
    - loader.py: payload validation and the default venture
"""

from .distributions import evaluate, expected_value
from .errors import (
    CycleError, DependencySyntaxError, OptimizationError, SchedulingError,
    ValidationWarning, VentureLoadError, VenturePlannerError,
)
from .loader import LoadResult, default_venture, load_venture, load_venture_or_default
from .metrics import VentureMetrics, aggregate_by_year, compute_cash_metrics, compute_metrics
from .model import ScenarioControls, ScenarioSelection, Venture
from .optimizer import (
    CancellationToken, OptimizationGoal, OptimizationResult, Optimizer, ParameterGroups, optimize,
)
from .scenarios import compare_scenarios, run_scenarios
from .scheduler import Schedule, phase_windows, schedule_tasks
from .sensitivity import SensitivityAnalyzer, SensitivityResult, analyze
from .simulator import SimulationResult, simulate

__version__ = "0.1.0"

__all__ = [
    "evaluate",
    "expected_value",
    "CycleError",
    "DependencySyntaxError",
    "OptimizationError",
    "SchedulingError",
    "ValidationWarning",
    "VentureLoadError",
    "VenturePlannerError",
    "LoadResult",
    "default_venture",
    "load_venture",
    "load_venture_or_default",
    "VentureMetrics",
    "aggregate_by_year",
    "compute_cash_metrics",
    "compute_metrics",
    "ScenarioControls",
    "ScenarioSelection",
    "Venture",
    "CancellationToken",
    "OptimizationGoal",
    "OptimizationResult",
    "Optimizer",
    "ParameterGroups",
    "optimize",
    "compare_scenarios",
    "run_scenarios",
    "Schedule",
    "phase_windows",
    "schedule_tasks",
    "SensitivityAnalyzer",
    "SensitivityResult",
    "analyze",
    "SimulationResult",
    "simulate",
]
