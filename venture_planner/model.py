"""
Venture Planner — in-memory venture definition and derived value types.

Every type here is a frozen dataclass. The engine never mutates a venture;
sensitivity and optimization derive modified copies with
dataclasses.replace().
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping, Union


# ──────────────────────────────────────────────────────────────────────
# 1. Scenario selection & distributions
# ──────────────────────────────────────────────────────────────────────

class ScenarioSelection(Enum):
    MIN = "min"
    MODE = "mode"
    MAX = "max"

    def inverted(self) -> ScenarioSelection:
        """Opposite side of the range, used for adverse parameters."""
        if self is ScenarioSelection.MIN:
            return ScenarioSelection.MAX
        if self is ScenarioSelection.MAX:
            return ScenarioSelection.MIN
        return self


class DistributionType(Enum):
    TRIANGULAR = "triangular"
    NORMAL = "normal"
    LOGNORMAL = "lognormal"


@dataclass(frozen=True)
class Triangular:
    """Uncertainty range: minimum, most likely (mode) and maximum."""
    min: float
    mode: float | None
    max: float

    type = DistributionType.TRIANGULAR

    @classmethod
    def point(cls, value: float) -> Triangular:
        """Degenerate range for a plain number."""
        return cls(value, value, value)


@dataclass(frozen=True)
class Normal:
    mean: float
    std_dev: float

    type = DistributionType.NORMAL


@dataclass(frozen=True)
class LogNormal:
    """Right-skewed range declared by its bounds and mode."""
    min: float
    mode: float | None
    max: float

    type = DistributionType.LOGNORMAL


Distribution = Union[Triangular, Normal, LogNormal]

ZERO = Triangular.point(0.0)


# ──────────────────────────────────────────────────────────────────────
# 2. Durations & dependency references
# ──────────────────────────────────────────────────────────────────────

class DurationUnit(Enum):
    DAY = "d"
    WEEK = "w"
    MONTH = "m"
    YEAR = "y"


MONTHS_PER_UNIT: dict[DurationUnit, float] = {
    DurationUnit.DAY: 1 / 30,
    DurationUnit.WEEK: 1 / 4,
    DurationUnit.MONTH: 1.0,
    DurationUnit.YEAR: 12.0,
}


@dataclass(frozen=True)
class Duration:
    value: int
    unit: DurationUnit

    @property
    def months(self) -> float:
        return self.value * MONTHS_PER_UNIT[self.unit]

    def negated(self) -> Duration:
        return Duration(-self.value, self.unit)

    def __str__(self) -> str:
        return f"{self.value}{self.unit.value}"


class Anchor(Enum):
    START = "start"
    END = "end"


@dataclass(frozen=True)
class DependencyRef:
    """Lower bound on a task's start: anchor of `task_id` shifted by `offset`."""
    task_id: str
    anchor: Anchor = Anchor.END
    offset: Duration | None = None

    def __str__(self) -> str:
        text = self.task_id + ("s" if self.anchor is Anchor.START else "e")
        if self.offset is not None:
            sign = "-" if self.offset.value < 0 else "+"
            text += f"{sign}{abs(self.offset.value)}{self.offset.unit.value}"
        return text


# ──────────────────────────────────────────────────────────────────────
# 3. Tasks & timeline
# ──────────────────────────────────────────────────────────────────────

class Phase(Enum):
    INCEPTION = "Inception"
    BUILD = "Build"
    DEPLOY = "Deploy"
    GO_TO_MARKET = "GoToMarket"
    OTHER = "Other"


@dataclass(frozen=True)
class Task:
    id: str
    name: str
    phase: Phase = Phase.OTHER
    start: date | None = None           # only honoured without dependencies
    duration: Duration | None = None    # None = ongoing
    cost_one_off: Distribution = ZERO
    cost_monthly: Distribution = ZERO
    depends_on: tuple[DependencyRef, ...] = ()


@dataclass(frozen=True)
class ComputedTask(Task):
    computed_start: date | None = None
    computed_end: date | None = None    # None while ongoing

    @property
    def is_ongoing(self) -> bool:
        return self.computed_end is None


@dataclass(frozen=True)
class TimelineEvent:
    id: str
    name: str
    month: int
    description: str = ""


# ──────────────────────────────────────────────────────────────────────
# 4. Revenue streams & costs
# ──────────────────────────────────────────────────────────────────────

class BillingFrequency(Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


class DeliveryCostType(Enum):
    GROSS_MARGIN = "grossMargin"
    PER_UNIT = "perUnitCost"


@dataclass(frozen=True)
class DeliveryCostModel:
    type: DeliveryCostType = DeliveryCostType.GROSS_MARGIN
    margin_pct: Distribution | None = None      # percent, 80 = 80 %
    cost_per_unit: Distribution | None = None


@dataclass(frozen=True)
class UnitEconomics:
    price_per_unit: Distribution
    billing_frequency: BillingFrequency = BillingFrequency.MONTHLY
    delivery_cost_model: DeliveryCostModel = field(default_factory=DeliveryCostModel)
    contract_length_months: Distribution | None = None


@dataclass(frozen=True)
class AdoptionModel:
    acquisition_rate: Distribution              # new units per month
    initial_units: float = 0.0
    churn_rate: Distribution | None = None      # percent of units lost per month
    expansion_rate: Distribution | None = None  # percent of units gained per month
    max_units: Distribution | None = None       # SOM cap


@dataclass(frozen=True)
class AcquisitionCosts:
    cac_per_unit: Distribution = ZERO
    onboarding_cost_per_unit: Distribution | None = None


@dataclass(frozen=True)
class RevenueStream:
    id: str
    name: str
    unit_economics: UnitEconomics
    adoption_model: AdoptionModel
    acquisition_costs: AcquisitionCosts = field(default_factory=AcquisitionCosts)
    market_id: str | None = None
    pricing_model: str = "subscription"
    unlock_event_id: str | None = None
    duration: Duration | None = None    # None = active until the horizon


@dataclass(frozen=True)
class FixedCost:
    id: str
    name: str
    monthly_cost: Distribution
    start_event_id: str | None = None


# ── Descriptive entities (no simulation effect) ──

@dataclass(frozen=True)
class Market:
    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class Assumption:
    id: str
    description: str
    category: str = ""


@dataclass(frozen=True)
class Risk:
    id: str
    description: str
    likelihood: str = ""
    impact: str = ""


# ── Legacy model (pre revenue-stream payloads) ──

@dataclass(frozen=True)
class Segment:
    id: str
    name: str
    entry: date
    tam: float
    sam_pct: float          # 0..1
    som_pct: float          # 0..1
    price_per_unit: float
    cac_per_unit: float
    ramp_months: int
    exit: date | None = None
    notes: str = ""


@dataclass(frozen=True)
class Opex:
    id: str
    category: str
    start: date
    monthly: float
    end: date | None = None


# ──────────────────────────────────────────────────────────────────────
# 5. Venture root
# ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VentureMeta:
    name: str
    start: date
    horizon_months: int
    currency: str = "USD"
    initial_reserve: float = 0.0


@dataclass(frozen=True)
class Venture:
    meta: VentureMeta
    tasks: tuple[Task, ...] = ()
    revenue_streams: tuple[RevenueStream, ...] = ()
    fixed_costs: tuple[FixedCost, ...] = ()
    timeline: tuple[TimelineEvent, ...] = ()
    markets: tuple[Market, ...] = ()
    assumptions: tuple[Assumption, ...] = ()
    risks: tuple[Risk, ...] = ()
    segments: tuple[Segment, ...] = ()
    opex: tuple[Opex, ...] = ()

    def events_by_id(self) -> dict[str, TimelineEvent]:
        return {e.id: e for e in self.timeline}

    def stream(self, stream_id: str) -> RevenueStream:
        return next(s for s in self.revenue_streams if s.id == stream_id)

    def fixed_cost(self, cost_id: str) -> FixedCost:
        return next(c for c in self.fixed_costs if c.id == cost_id)


# ──────────────────────────────────────────────────────────────────────
# 6. Scenario controls & simulator output
# ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScenarioControls:
    """Explicit what-if knobs threaded into every simulator call."""
    selection: ScenarioSelection = ScenarioSelection.MODE
    stream_selections: Mapping[str, ScenarioSelection] = field(default_factory=dict)
    task_multipliers: Mapping[str, float] = field(default_factory=dict)
    fixed_cost_multipliers: Mapping[str, float] = field(default_factory=dict)
    stream_multipliers: Mapping[str, float] = field(default_factory=dict)

    def selection_for_stream(self, stream_id: str) -> ScenarioSelection:
        return self.stream_selections.get(stream_id, self.selection)


@dataclass(frozen=True)
class MonthlySnapshot:
    """One month of the projection."""
    month: int
    revenue: float
    costs: float
    profit: float                 # EBITDA
    cash: float                   # initial reserve + cumulative profit
    cumulative_revenue: float
    cumulative_costs: float
    units_by_stream: dict[str, float]
    blended_cac: float
    delivery_costs: float = 0.0
    acquisition_costs: float = 0.0
    task_one_off_costs: float = 0.0
    task_monthly_costs: float = 0.0
    fixed_costs: float = 0.0
    legacy_revenue: float = 0.0
    legacy_cac: float = 0.0
    opex: float = 0.0

    @property
    def cumulative_profit(self) -> float:
        return self.cumulative_revenue - self.cumulative_costs

    @property
    def burn(self) -> float:
        return max(0.0, self.costs - self.revenue)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
