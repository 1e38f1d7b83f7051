"""
PURPOSE: Catalog of tunable numeric parameters of a venture.

RESPONSIBILITIES:
- Enumerate per-stream and per-fixed-cost levers in a stable order
- Know each lever's favourable direction and optimizer group
- Derive modified ventures by scaling a lever (the input is never mutated)

Shared by the sensitivity analyzer and the optimizer.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable

from .distributions import as_distribution, evaluate, scale_distribution
from .model import (
    DeliveryCostType, Distribution, FixedCost, RevenueStream, ScenarioControls, Venture,
)


class ParameterKind(Enum):
    PRICE = "price_per_unit"
    CAC = "cac_per_unit"
    ONBOARDING = "onboarding_cost_per_unit"
    ACQUISITION_RATE = "acquisition_rate"
    CHURN = "churn_rate"
    EXPANSION = "expansion_rate"
    GROSS_MARGIN = "margin_pct"
    COST_PER_UNIT = "cost_per_unit"
    FIXED_COST = "monthly_cost"


class ParameterGroup(Enum):
    STREAM_PRICES = "stream_prices"
    STREAM_CAC = "stream_cac"
    STREAM_ACQUISITION_RATE = "stream_acquisition_rate"
    STREAM_CHURN = "stream_churn"
    FIXED_COSTS = "fixed_costs"


# kind -> (attribute path on the entity, favourable sign, optimizer group)
_CATALOG: dict[ParameterKind, tuple[tuple[str, ...], int, ParameterGroup | None]] = {
    ParameterKind.PRICE: (("unit_economics", "price_per_unit"), +1, ParameterGroup.STREAM_PRICES),
    ParameterKind.CAC: (("acquisition_costs", "cac_per_unit"), -1, ParameterGroup.STREAM_CAC),
    ParameterKind.ONBOARDING: (("acquisition_costs", "onboarding_cost_per_unit"), -1, None),
    ParameterKind.ACQUISITION_RATE: (("adoption_model", "acquisition_rate"), +1,
                                     ParameterGroup.STREAM_ACQUISITION_RATE),
    ParameterKind.CHURN: (("adoption_model", "churn_rate"), -1, ParameterGroup.STREAM_CHURN),
    ParameterKind.EXPANSION: (("adoption_model", "expansion_rate"), +1, None),
    ParameterKind.GROSS_MARGIN: (("unit_economics", "delivery_cost_model", "margin_pct"), +1, None),
    ParameterKind.COST_PER_UNIT: (("unit_economics", "delivery_cost_model", "cost_per_unit"), -1, None),
    ParameterKind.FIXED_COST: (("monthly_cost",), -1, ParameterGroup.FIXED_COSTS),
}

_STREAM_KINDS = [k for k in ParameterKind if k is not ParameterKind.FIXED_COST]


def _get_path(obj: Any, path: tuple[str, ...]) -> Any:
    for attr in path:
        obj = getattr(obj, attr)
    return obj


def _replace_path(obj: Any, path: tuple[str, ...], value: Any) -> Any:
    head, rest = path[0], path[1:]
    if not rest:
        return replace(obj, **{head: value})
    return replace(obj, **{head: _replace_path(getattr(obj, head), rest, value)})


@dataclass(frozen=True)
class TunableParameter:
    """One lever: a distribution-valued field of a revenue stream or fixed cost."""
    entity_id: str
    entity_name: str
    kind: ParameterKind
    is_fixed_cost: bool = False

    @property
    def path(self) -> tuple[str, ...]:
        return _CATALOG[self.kind][0]

    @property
    def favorable_sign(self) -> int:
        """+1 when raising the value helps the venture, -1 when lowering it does."""
        return _CATALOG[self.kind][1]

    @property
    def group(self) -> ParameterGroup | None:
        return _CATALOG[self.kind][2]

    @property
    def key(self) -> tuple[str, str]:
        return self.entity_name, self.kind.value

    @property
    def label(self) -> str:
        return f"{self.entity_name}: {self.kind.value}"

    def _entity(self, venture: Venture) -> RevenueStream | FixedCost:
        if self.is_fixed_cost:
            return venture.fixed_cost(self.entity_id)
        return venture.stream(self.entity_id)

    def distribution(self, venture: Venture) -> Distribution:
        return as_distribution(_get_path(self._entity(venture), self.path))

    def current_value(self, venture: Venture, controls: ScenarioControls | None = None) -> float:
        """Scalar the simulator would use for this lever under `controls`."""
        controls = controls or ScenarioControls()
        if self.is_fixed_cost:
            selection = controls.selection
        else:
            selection = controls.selection_for_stream(self.entity_id)
        if self.kind is ParameterKind.CHURN:
            selection = selection.inverted()
        return evaluate(self.distribution(venture), selection)

    def scaled(self, venture: Venture, factor: float) -> Venture:
        """Copy of `venture` with this lever's distribution scaled by `factor`."""
        if factor == 1.0:
            return venture
        entity = self._entity(venture)
        updated = _replace_path(entity, self.path, scale_distribution(self.distribution(venture), factor))
        if self.is_fixed_cost:
            costs = tuple(updated if c.id == self.entity_id else c for c in venture.fixed_costs)
            return replace(venture, fixed_costs=costs)
        streams = tuple(updated if s.id == self.entity_id else s for s in venture.revenue_streams)
        return replace(venture, revenue_streams=streams)


def _stream_has(stream: RevenueStream, kind: ParameterKind) -> bool:
    delivery = stream.unit_economics.delivery_cost_model
    if kind is ParameterKind.GROSS_MARGIN:
        return delivery.type is DeliveryCostType.GROSS_MARGIN and delivery.margin_pct is not None
    if kind is ParameterKind.COST_PER_UNIT:
        return delivery.type is DeliveryCostType.PER_UNIT and delivery.cost_per_unit is not None
    return _get_path(stream, _CATALOG[kind][0]) is not None


def list_parameters(venture: Venture) -> list[TunableParameter]:
    """Every tunable lever: streams first (in definition order), then fixed costs."""
    params = []
    for stream in venture.revenue_streams:
        for kind in _STREAM_KINDS:
            if _stream_has(stream, kind):
                params.append(TunableParameter(stream.id, stream.name, kind))
    for cost in venture.fixed_costs:
        params.append(TunableParameter(cost.id, cost.name, ParameterKind.FIXED_COST, is_fixed_cost=True))
    return params


def apply_adjustments(venture: Venture, adjustments: Iterable[tuple[TunableParameter, float]]) -> Venture:
    """Apply several (parameter, factor) scalings in sequence."""
    for param, factor in adjustments:
        venture = param.scaled(venture, factor)
    return venture
