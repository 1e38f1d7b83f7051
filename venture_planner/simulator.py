"""
Venture Planner — monthly series simulator.

Turns a venture definition plus explicit scenario controls into one
MonthlySnapshot per month of the horizon.

Each month is processed through a small stage DAG (resolved once with
DependencyGraph, like the task schedule):

    revenue_streams ─┐
    legacy_segments ─┤
    task_costs ──────┼──> aggregate
    fixed_costs ─────┤
    opex ────────────┘

Deterministic: the same venture and controls always produce bit-identical
snapshots. Scalars are evaluated once per run, never per month.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterator, Sequence

import pandas as pd

from .config import DEFAULT_CONTRACT_LENGTH_MONTHS
from .distributions import DistributionEvaluator
from .errors import DependencySyntaxError, ValidationWarning, report
from .grammar import add_months, month_index, parse_dependency
from .graph import DependencyGraph
from .metrics import series_to_dataframe
from .model import (
    BillingFrequency, DeliveryCostType, MonthlySnapshot, RevenueStream,
    ScenarioControls, ScenarioSelection, Segment, Venture,
)
from .scheduler import Schedule, anchor_date, schedule_tasks, task_month_span

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────
# 1. Result
# ──────────────────────────────────────────────────────────────────────

@dataclass
class SimulationResult(Sequence[MonthlySnapshot]):
    """Snapshots for months 0..N-1, plus warnings and the task schedule."""
    snapshots: list[MonthlySnapshot]
    warnings: list[ValidationWarning] = field(default_factory=list)
    schedule: Schedule | None = None

    def __getitem__(self, index):
        return self.snapshots[index]

    def __len__(self) -> int:
        return len(self.snapshots)

    def __iter__(self) -> Iterator[MonthlySnapshot]:
        return iter(self.snapshots)

    def to_dataframe(self) -> pd.DataFrame:
        return series_to_dataframe(self.snapshots)

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshots": [s.to_dict() for s in self.snapshots],
            "warnings": [w.to_dict() for w in self.warnings],
        }


# ──────────────────────────────────────────────────────────────────────
# 2. Per-run working state
# ──────────────────────────────────────────────────────────────────────

@dataclass
class _Cohort:
    joined: int
    size: float


@dataclass
class _StreamState:
    """Evaluated scalars and cohort book for one revenue stream."""
    stream: RevenueStream
    first_month: int | None         # None = never unlocked
    stop_month: int | None          # None = active to the horizon
    multiplier: float
    price: float
    acquisition: float
    churn_pct: float
    expansion_pct: float
    max_units: float | None
    cac: float
    onboarding: float
    margin_pct: float
    cost_per_unit: float
    contract_length: int
    cohorts: list[_Cohort] = field(default_factory=list)

    def is_active(self, month: int) -> bool:
        if self.first_month is None or month < self.first_month:
            return False
        return self.stop_month is None or month < self.stop_month

    @property
    def units(self) -> float:
        return sum(c.size for c in self.cohorts)


@dataclass
class _TaskCost:
    task_id: str
    first_month: int
    stop_month: int | None
    one_off: float
    monthly: float


@dataclass
class _MonthTotals:
    stream_revenue: float = 0.0
    delivery: float = 0.0
    acquisition: float = 0.0
    new_units: float = 0.0
    task_one_off: float = 0.0
    task_monthly: float = 0.0
    fixed: float = 0.0
    legacy_revenue: float = 0.0
    legacy_cac: float = 0.0
    legacy_new_units: float = 0.0
    opex: float = 0.0
    units_by_stream: dict[str, float] = field(default_factory=dict)


# ──────────────────────────────────────────────────────────────────────
# 3. Simulator
# ──────────────────────────────────────────────────────────────────────

class SeriesSimulator:
    """
    Month-by-month financial simulation of a venture.

    Pure with respect to its inputs: the venture is only read, and all
    state lives on this instance for the duration of one run().
    """

    NODE_PROCESSORS = {
        "revenue_streams": "_process_revenue_streams",
        "legacy_segments": "_process_legacy_segments",
        "task_costs": "_process_task_costs",
        "fixed_costs": "_process_fixed_costs",
        "opex": "_process_opex",
        "aggregate": "_process_aggregate",
    }

    def __init__(self, venture: Venture, controls: ScenarioControls | None = None):
        self.venture = venture
        self.controls = controls or ScenarioControls()
        self.meta = venture.meta
        self.warnings: list[ValidationWarning] = []
        self.evaluator = DistributionEvaluator(self.warnings)

        self.schedule = schedule_tasks(venture.tasks, self.meta.start)
        self.warnings.extend(self.schedule.warnings)

        self.pipeline = self._build_pipeline()
        self.execution_order = self.pipeline.resolve_order()

        self._events = venture.events_by_id()
        self._computed_tasks = self.schedule.by_id()
        self._month_dates = [add_months(self.meta.start, m) for m in range(self.meta.horizon_months)]

        self._streams = [self._prepare_stream(s) for s in venture.revenue_streams]
        self._tasks = [self._prepare_task(t) for t in self.schedule]
        self._fixed = self._prepare_fixed_costs()
        self._segment_prev_units = {seg.id: 0.0 for seg in venture.segments}

        self._month = _MonthTotals()
        self._cum_revenue = 0.0
        self._cum_costs = 0.0
        self._snapshots: list[MonthlySnapshot] = []

    def _build_pipeline(self) -> DependencyGraph:
        graph = DependencyGraph()
        stages = ["revenue_streams", "legacy_segments", "task_costs", "fixed_costs", "opex"]
        for stage in stages:
            graph.add_node(stage)
        graph.add_node("aggregate", dependencies=stages)
        return graph

    # ── Activation references ──

    def _activation_month(self, ref: str | None, owner_id: str) -> int | None:
        """
        Month an unlock/start reference becomes active.

        Timeline events are looked up first, then tasks: a bare task id
        activates when the task starts, anchors such as "T1e" or "T2s+1m"
        follow the dependency grammar. Unresolvable references never activate.
        """
        if not ref:
            return 0
        event = self._events.get(ref)
        if event is not None:
            return max(0, event.month)
        if ref in self._computed_tasks:
            return month_index(self.meta.start, self._computed_tasks[ref].computed_start)
        try:
            dep = parse_dependency(ref, owner_id)
        except DependencySyntaxError:
            dep = None
        if dep is not None and dep.task_id in self._computed_tasks:
            when = anchor_date(self._computed_tasks[dep.task_id], dep, self.warnings, owner_id)
            return month_index(self.meta.start, when)
        report(self.warnings, logger, "unresolved_event",
               f"{owner_id} references unknown event {ref!r}; never activated", owner_id)
        return None

    # ── Preparation (evaluated once per run) ──

    def _prepare_stream(self, stream: RevenueStream) -> _StreamState:
        sel = self.controls.selection_for_stream(stream.id)
        ev = self.evaluator.evaluate
        sid = stream.id
        unit_econ = stream.unit_economics
        adoption = stream.adoption_model
        costs = stream.acquisition_costs
        delivery = unit_econ.delivery_cost_model

        multiplier = self.evaluator.multiplier(self.controls.stream_multipliers.get(sid, 1.0), sid)
        first = self._activation_month(stream.unlock_event_id, sid)
        stop = None
        if first is not None and stream.duration is not None:
            stop = first + max(1, math.ceil(stream.duration.months))

        contract = DEFAULT_CONTRACT_LENGTH_MONTHS
        if unit_econ.contract_length_months is not None:
            contract = max(1, int(round(ev(unit_econ.contract_length_months, sel, sid, "contract_length_months"))))

        margin_pct = 0.0
        cost_per_unit = 0.0
        if delivery.type is DeliveryCostType.GROSS_MARGIN:
            margin_pct = ev(delivery.margin_pct, sel, sid, "margin_pct") if delivery.margin_pct else 100.0
        else:
            cost_per_unit = ev(delivery.cost_per_unit, sel, sid, "cost_per_unit")

        return _StreamState(
            stream=stream,
            first_month=first,
            stop_month=stop,
            multiplier=multiplier,
            price=ev(unit_econ.price_per_unit, sel, sid, "price_per_unit"),
            acquisition=max(0.0, ev(adoption.acquisition_rate, sel, sid, "acquisition_rate")),
            # churn hurts: the optimistic end of the scenario is the low end of its range
            churn_pct=ev(adoption.churn_rate, sel.inverted(), sid, "churn_rate"),
            expansion_pct=ev(adoption.expansion_rate, sel, sid, "expansion_rate"),
            max_units=(ev(adoption.max_units, sel, sid, "max_units")
                       if adoption.max_units is not None else None),
            cac=ev(costs.cac_per_unit, sel, sid, "cac_per_unit"),
            onboarding=ev(costs.onboarding_cost_per_unit, sel, sid, "onboarding_cost_per_unit"),
            margin_pct=margin_pct,
            cost_per_unit=cost_per_unit,
            contract_length=contract,
        )

    def _prepare_task(self, task) -> _TaskCost:
        sel = self.controls.selection
        mult = self.controls.task_multipliers.get(task.id, 1.0)
        first, stop = task_month_span(task, self.meta.start)
        return _TaskCost(
            task_id=task.id,
            first_month=first,
            stop_month=stop,
            one_off=self.evaluator.evaluate(task.cost_one_off, sel, task.id, "cost_one_off", mult),
            monthly=self.evaluator.evaluate(task.cost_monthly, sel, task.id, "cost_monthly", mult),
        )

    def _prepare_fixed_costs(self) -> list[tuple[str, int | None, float]]:
        sel = self.controls.selection
        prepared = []
        for cost in self.venture.fixed_costs:
            mult = self.controls.fixed_cost_multipliers.get(cost.id, 1.0)
            amount = self.evaluator.evaluate(cost.monthly_cost, sel, cost.id, "monthly_cost", mult)
            prepared.append((cost.id, self._activation_month(cost.start_event_id, cost.id), amount))
        return prepared

    # ── Monthly Node Processors ──

    def _process_revenue_streams(self, month: int):
        for state in self._streams:
            sid = state.stream.id
            if not state.is_active(month):
                state.cohorts = []
                self._month.units_by_stream[sid] = 0.0
                continue
            if month == state.first_month:
                initial = state.stream.adoption_model.initial_units
                state.cohorts = [_Cohort(month, initial)] if initial > 0 else []

            retention = 1 - state.churn_pct / 100 + state.expansion_pct / 100
            for cohort in state.cohorts:
                cohort.size = max(0.0, cohort.size * retention)

            new_units = state.acquisition
            if state.max_units is not None:
                retained = state.units
                if retained > state.max_units:
                    scale = state.max_units / retained
                    for cohort in state.cohorts:
                        cohort.size *= scale
                    retained = state.max_units
                new_units = min(new_units, max(0.0, state.max_units - retained))
            if new_units > 0:
                state.cohorts.append(_Cohort(month, new_units))

            units = state.units
            if state.stream.unit_economics.billing_frequency is BillingFrequency.ANNUAL:
                # lump sum: each cohort pays a full contract up front and at every renewal
                billed = sum(
                    c.size for c in state.cohorts
                    if (month - c.joined) % state.contract_length == 0
                )
                revenue = billed * state.price * state.contract_length
            else:
                revenue = units * state.price
            revenue *= state.multiplier

            if state.stream.unit_economics.delivery_cost_model.type is DeliveryCostType.GROSS_MARGIN:
                delivery = revenue * (1 - state.margin_pct / 100)
            else:
                # per-unit cost follows units, not the stream multiplier
                delivery = units * state.cost_per_unit

            self._month.stream_revenue += revenue
            self._month.delivery += delivery
            self._month.acquisition += new_units * (state.cac + state.onboarding) * state.multiplier
            self._month.new_units += new_units
            self._month.units_by_stream[sid] = units

    def _process_legacy_segments(self, month: int):
        for seg in self.venture.segments:
            units = segment_units_at_month(seg, self.meta.start, month)
            prev = self._segment_prev_units[seg.id]
            delta = max(0.0, units - prev)
            self._month.legacy_revenue += units * seg.price_per_unit
            self._month.legacy_cac += delta * seg.cac_per_unit
            self._month.legacy_new_units += delta
            self._segment_prev_units[seg.id] = units

    def _process_task_costs(self, month: int):
        for task in self._tasks:
            if month == task.first_month:
                self._month.task_one_off += task.one_off
            if month >= task.first_month and (task.stop_month is None or month < task.stop_month):
                self._month.task_monthly += task.monthly

    def _process_fixed_costs(self, month: int):
        for _, start, amount in self._fixed:
            if start is not None and month >= start:
                self._month.fixed += amount

    def _process_opex(self, month: int):
        month_date = self._month_dates[month]
        for line in self.venture.opex:
            if line.start <= month_date and (line.end is None or month_date <= line.end):
                self._month.opex += line.monthly

    def _process_aggregate(self, month: int):
        t = self._month
        revenue = t.stream_revenue + t.legacy_revenue
        costs = (t.delivery + t.acquisition + t.task_one_off + t.task_monthly
                 + t.fixed + t.legacy_cac + t.opex)
        profit = revenue - costs
        self._cum_revenue += revenue
        self._cum_costs += costs

        new_units = t.new_units + t.legacy_new_units
        acquisition_spend = t.acquisition + t.legacy_cac
        blended_cac = acquisition_spend / new_units if new_units > 0 else 0.0

        self._snapshots.append(MonthlySnapshot(
            month=month,
            revenue=revenue,
            costs=costs,
            profit=profit,
            cash=self.meta.initial_reserve + self._cum_revenue - self._cum_costs,
            cumulative_revenue=self._cum_revenue,
            cumulative_costs=self._cum_costs,
            units_by_stream=dict(t.units_by_stream),
            blended_cac=blended_cac,
            delivery_costs=t.delivery,
            acquisition_costs=t.acquisition,
            task_one_off_costs=t.task_one_off,
            task_monthly_costs=t.task_monthly,
            fixed_costs=t.fixed,
            legacy_revenue=t.legacy_revenue,
            legacy_cac=t.legacy_cac,
            opex=t.opex,
        ))

    def _step(self, month: int):
        """Process one month through the stage DAG in topological order."""
        self._month = _MonthTotals()
        for node_name in self.execution_order:
            getattr(self, self.NODE_PROCESSORS[node_name])(month)

    def run(self) -> SimulationResult:
        """Execute the full horizon and return the snapshots."""
        for month in range(self.meta.horizon_months):
            self._step(month)
        logger.debug("Simulated %s: %d months, %d warnings",
                     self.meta.name, len(self._snapshots), len(self.warnings))
        return SimulationResult(self._snapshots, self.warnings, self.schedule)


# ──────────────────────────────────────────────────────────────────────
# 4. Legacy segment ramp & public entry point
# ──────────────────────────────────────────────────────────────────────

def segment_units_at_month(seg: Segment, venture_start: date, month: int) -> float:
    """Active units of a TAM/SAM/SOM segment: ease-in-out ramp after entry, zero after exit."""
    entry = month_index(venture_start, seg.entry)
    if month < entry:
        return 0.0
    if seg.exit is not None and month > month_index(venture_start, seg.exit):
        return 0.0

    clamp01 = lambda x: min(max(x, 0.0), 1.0)  # noqa: E731
    target = seg.tam * clamp01(seg.sam_pct) * clamp01(seg.som_pct)
    progress = clamp01((month - entry) / max(1, seg.ramp_months))
    if progress < 0.5:
        eased = 2 * progress * progress
    else:
        eased = 1 - (-2 * progress + 2) ** 2 / 2
    return target * eased


def coerce_controls(controls: ScenarioControls | ScenarioSelection | None) -> ScenarioControls:
    """A bare ScenarioSelection is shorthand for ScenarioControls(selection=...)."""
    if controls is None:
        return ScenarioControls()
    if isinstance(controls, ScenarioSelection):
        return ScenarioControls(selection=controls)
    return controls


def simulate(
    venture: Venture,
    controls: ScenarioControls | ScenarioSelection | None = None,
) -> SimulationResult:
    """
    Simulate `venture` under the given scenario controls.

    Raises:
        CycleError: if the venture's task dependencies are cyclic.
    """
    return SeriesSimulator(venture, coerce_controls(controls)).run()
