"""
PURPOSE: Collapse uncertainty ranges to scalars for a chosen scenario.

RESPONSIBILITIES:
- Evaluate triangular / normal / lognormal ranges at min, mode or max
- Expected value for summary displays
- Detect and clamp malformed ranges (min <= mode <= max)
- Proportional scaling used by sensitivity and optimization
- Single responsibility: no simulation, no I/O

Evaluation rules:
    Triangular  min -> min, max -> max, mode -> mode (midpoint when absent)
    LogNormal   same as triangular on its declared bounds
    Normal      mode -> mean, min/max -> mean -/+ NORMAL_SIGMA_RANGE * std_dev
"""

from __future__ import annotations

import logging
from dataclasses import replace
from numbers import Real

from .config import MULTIPLIER_MAX, MULTIPLIER_MIN, NORMAL_SIGMA_RANGE
from .errors import ValidationWarning, report
from .model import (
    Distribution, LogNormal, Normal, ScenarioSelection, Triangular, ZERO,
)

logger = logging.getLogger(__name__)

DistributionLike = Distribution | float | int | None


def as_distribution(value: DistributionLike) -> Distribution:
    """Numbers become degenerate triangulars; None becomes zero."""
    if value is None:
        return ZERO
    if isinstance(value, (Triangular, Normal, LogNormal)):
        return value
    if isinstance(value, Real):
        return Triangular.point(float(value))
    raise TypeError(f"Not a distribution: {value!r}")


def _mode_of(dist: Triangular | LogNormal) -> float:
    return dist.mode if dist.mode is not None else (dist.min + dist.max) / 2


def is_well_formed(dist: Distribution) -> bool:
    if isinstance(dist, Normal):
        return dist.std_dev >= 0
    return dist.min <= _mode_of(dist) <= dist.max


def normalize(dist: Distribution) -> Distribution:
    """Clamp a malformed range into a valid ordering; well-formed input is returned as is."""
    if is_well_formed(dist):
        return dist
    if isinstance(dist, Normal):
        return replace(dist, std_dev=abs(dist.std_dev))
    low, high = min(dist.min, dist.max), max(dist.min, dist.max)
    mode = min(max(_mode_of(dist), low), high)
    return replace(dist, min=low, mode=mode, max=high)


def evaluate(
    dist: DistributionLike,
    selection: ScenarioSelection = ScenarioSelection.MODE,
    multiplier: float = 1.0,
) -> float:
    """Scalar value of `dist` under `selection`, times `multiplier`."""
    d = normalize(as_distribution(dist))

    if isinstance(d, Normal):
        spread = NORMAL_SIGMA_RANGE * d.std_dev
        value = {
            ScenarioSelection.MIN: d.mean - spread,
            ScenarioSelection.MODE: d.mean,
            ScenarioSelection.MAX: d.mean + spread,
        }[selection]
    elif selection is ScenarioSelection.MIN:
        value = d.min
    elif selection is ScenarioSelection.MAX:
        value = d.max
    else:
        value = _mode_of(d)

    return value * multiplier


def expected_value(dist: DistributionLike) -> float:
    """Mean of the range: (min + mode + max) / 3, or the normal's mean."""
    d = normalize(as_distribution(dist))
    if isinstance(d, Normal):
        return d.mean
    return (d.min + _mode_of(d) + d.max) / 3


def scale_distribution(dist: Distribution, factor: float) -> Distribution:
    """Scale every field proportionally, keeping the range's shape."""
    if factor == 1.0:
        return dist
    if isinstance(dist, Normal):
        return replace(dist, mean=dist.mean * factor, std_dev=abs(dist.std_dev * factor))
    mode = None if dist.mode is None else dist.mode * factor
    low, high = sorted((dist.min * factor, dist.max * factor))
    return replace(dist, min=low, mode=mode, max=high)


def clamp_multiplier(value: float) -> float:
    return min(max(float(value), MULTIPLIER_MIN), MULTIPLIER_MAX)


class DistributionEvaluator:
    """
    Evaluator bound to one simulation run.

    Collects a warning the first time a malformed range or an out-of-range
    multiplier is seen for a given entity field, then keeps evaluating the
    clamped value so the run completes.
    """

    def __init__(self, warnings: list[ValidationWarning] | None = None):
        self.warnings: list[ValidationWarning] = warnings if warnings is not None else []
        self._reported: set[tuple[str, str]] = set()

    def evaluate(
        self,
        dist: DistributionLike,
        selection: ScenarioSelection,
        entity_id: str,
        field_name: str,
        multiplier: float = 1.0,
    ) -> float:
        d = as_distribution(dist)
        if not is_well_formed(d):
            self._report_once(
                entity_id, field_name, "malformed_distribution",
                f"{entity_id}.{field_name}: range {d} violates min <= mode <= max; clamped",
            )
        return evaluate(d, selection, self.multiplier(multiplier, entity_id))

    def multiplier(self, value: float, entity_id: str) -> float:
        clamped = clamp_multiplier(value)
        if clamped != value:
            self._report_once(
                entity_id, "multiplier", "multiplier_out_of_range",
                f"{entity_id}: multiplier {value} outside "
                f"[{MULTIPLIER_MIN}, {MULTIPLIER_MAX}]; clamped to {clamped}",
            )
        return clamped

    def _report_once(self, entity_id: str, field_name: str, code: str, message: str):
        key = (entity_id, field_name)
        if key in self._reported:
            return
        self._reported.add(key)
        report(self.warnings, logger, code, message, entity_id)
