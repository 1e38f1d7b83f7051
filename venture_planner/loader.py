"""
Venture Planner — venture definition loader.

Turns a structured payload (camelCase keys, as saved by the planner UI)
into a validated, immutable Venture:

    - meta.start must exist and tasks must be a list, else VentureLoadError
    - duration and dependency strings are parsed once, here
    - cross-entity references (stream -> market, stream/cost -> event)
      are checked against lookup tables and reported when dangling
    - recoverable problems become ValidationWarning values on LoadResult

load_venture_or_default() falls back to a built-in sample venture when
the payload is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

from .distributions import as_distribution
from .errors import DependencySyntaxError, ValidationWarning, VentureLoadError, report
from .grammar import add_months, parse_dependency, try_parse_duration
from .model import (
    AcquisitionCosts, AdoptionModel, Assumption, BillingFrequency, DeliveryCostModel,
    DeliveryCostType, Distribution, FixedCost, LogNormal, Market, Normal, Opex, Phase,
    RevenueStream, Risk, Segment, Task, TimelineEvent, Triangular, UnitEconomics,
    Venture, VentureMeta,
)

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_MONTHS = 36


@dataclass
class LoadResult:
    venture: Venture
    warnings: list[ValidationWarning] = field(default_factory=list)


# ──────────────────────────────────────────────────────────────────────
# 1. Scalar parsing helpers
# ──────────────────────────────────────────────────────────────────────

def parse_date(value: Any, what: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise VentureLoadError(f"{what}: invalid ISO date {value!r}") from None


def _optional_date(value: Any, what: str) -> date | None:
    return parse_date(value, what) if value else None


def parse_distribution(value: Any) -> Distribution | None:
    """
    Accepts a number, or a mapping tagged with `type`:

        {"type": "triangular", "min": 1, "mode": 2, "max": 4}
        {"type": "normal", "mean": 10, "stdDev": 2}
        {"type": "normal", "min": 4, "mode": 10, "max": 16}   (3-sigma bounds)
        {"type": "lognormal", "min": 1, "mode": 2, "max": 9}
    """
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return as_distribution(float(value))
    if not isinstance(value, Mapping):
        raise VentureLoadError(f"Not a distribution: {value!r}")

    kind = value.get("type", "triangular")
    try:
        if kind == "normal":
            if "mean" in value:
                return Normal(float(value["mean"]), float(value.get("stdDev", 0.0)))
            low, high = float(value["min"]), float(value["max"])
            mean = float(value["mode"]) if value.get("mode") is not None else (low + high) / 2
            return Normal(mean, (high - low) / 6)
        mode = float(value["mode"]) if value.get("mode") is not None else None
        if kind == "lognormal":
            return LogNormal(float(value["min"]), mode, float(value["max"]))
        if kind == "triangular":
            return Triangular(float(value["min"]), mode, float(value["max"]))
    except (KeyError, TypeError, ValueError) as e:
        raise VentureLoadError(f"Malformed {kind} distribution {dict(value)!r}: {e}") from None
    raise VentureLoadError(f"Unknown distribution type {kind!r}")


def _enum(enum_cls, value: Any, default, warnings, what: str):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        report(warnings, logger, "unknown_value", f"{what}: unknown value {value!r}; using {default.value}")
        return default


# ──────────────────────────────────────────────────────────────────────
# 2. Entity parsers
# ──────────────────────────────────────────────────────────────────────

def _parse_meta(raw: Mapping[str, Any]) -> VentureMeta:
    return VentureMeta(
        name=raw.get("name", "Untitled Venture"),
        start=parse_date(raw["start"], "meta.start"),
        horizon_months=int(raw.get("horizonMonths", DEFAULT_HORIZON_MONTHS)),
        currency=raw.get("currency", "USD"),
        initial_reserve=float(raw.get("initialReserve", 0.0)),
    )


def _parse_task(raw: Mapping[str, Any], warnings: list[ValidationWarning]) -> Task:
    task_id = str(raw["id"])
    duration_text = raw.get("duration")
    duration = try_parse_duration(duration_text)
    if duration_text and duration is None:
        report(warnings, logger, "invalid_duration",
               f"Task {task_id}: unparseable duration {duration_text!r}; treated as ongoing", task_id)

    return Task(
        id=task_id,
        name=raw.get("name", task_id),
        phase=_enum(Phase, raw.get("phase"), Phase.OTHER, warnings, f"Task {task_id} phase"),
        start=_optional_date(raw.get("start"), f"Task {task_id} start"),
        duration=duration,
        cost_one_off=parse_distribution(raw.get("costOneOff")) or as_distribution(0.0),
        cost_monthly=parse_distribution(raw.get("costMonthly")) or as_distribution(0.0),
        # DependencySyntaxError propagates: a malformed reference is structural
        depends_on=tuple(parse_dependency(ref, task_id) for ref in raw.get("dependsOn") or ()),
    )


def _parse_stream(raw: Mapping[str, Any], warnings: list[ValidationWarning]) -> RevenueStream:
    stream_id = str(raw["id"])
    ue = raw.get("unitEconomics") or {}
    am = raw.get("adoptionModel") or {}
    ac = raw.get("acquisitionCosts") or {}
    dcm = ue.get("deliveryCostModel") or {}

    if "pricePerUnit" not in ue or "acquisitionRate" not in am:
        raise VentureLoadError(f"Revenue stream {stream_id}: pricePerUnit and acquisitionRate are required")

    duration_text = raw.get("duration")
    duration = try_parse_duration(duration_text)
    if duration_text and duration is None:
        report(warnings, logger, "invalid_duration",
               f"Revenue stream {stream_id}: unparseable duration {duration_text!r}; runs to the horizon",
               stream_id)

    # older payloads keep churn on the unit economics
    churn = am.get("churnRate", ue.get("churnRate"))
    max_units = parse_distribution(am.get("maxUnits"))

    return RevenueStream(
        id=stream_id,
        name=raw.get("name", stream_id),
        unit_economics=UnitEconomics(
            price_per_unit=parse_distribution(ue["pricePerUnit"]),
            billing_frequency=_enum(BillingFrequency, ue.get("billingFrequency"), BillingFrequency.MONTHLY,
                                    warnings, f"Revenue stream {stream_id} billingFrequency"),
            delivery_cost_model=DeliveryCostModel(
                type=_enum(DeliveryCostType, dcm.get("type"), DeliveryCostType.GROSS_MARGIN,
                           warnings, f"Revenue stream {stream_id} deliveryCostModel"),
                margin_pct=parse_distribution(dcm.get("marginPct")),
                cost_per_unit=parse_distribution(dcm.get("costPerUnit")),
            ),
            contract_length_months=parse_distribution(ue.get("contractLengthMonths")),
        ),
        adoption_model=AdoptionModel(
            acquisition_rate=parse_distribution(am["acquisitionRate"]),
            initial_units=float(am.get("initialUnits", 0.0)),
            churn_rate=parse_distribution(churn),
            expansion_rate=parse_distribution(am.get("expansionRate")),
            max_units=max_units,
        ),
        acquisition_costs=AcquisitionCosts(
            cac_per_unit=parse_distribution(ac.get("cacPerUnit")) or as_distribution(0.0),
            onboarding_cost_per_unit=parse_distribution(ac.get("onboardingCostPerUnit")),
        ),
        market_id=raw.get("marketId"),
        pricing_model=raw.get("pricingModel", "subscription"),
        unlock_event_id=raw.get("unlockEventId"),
        duration=duration,
    )


def _parse_fixed_cost(raw: Mapping[str, Any]) -> FixedCost:
    cost_id = str(raw["id"])
    return FixedCost(
        id=cost_id,
        name=raw.get("name", cost_id),
        monthly_cost=parse_distribution(raw.get("monthlyCost")) or as_distribution(0.0),
        start_event_id=raw.get("startEventId"),
    )


def _parse_segment(raw: Mapping[str, Any]) -> Segment:
    seg_id = str(raw["id"])
    return Segment(
        id=seg_id,
        name=raw.get("name", seg_id),
        entry=parse_date(raw["entry"], f"Segment {seg_id} entry"),
        exit=_optional_date(raw.get("exit"), f"Segment {seg_id} exit"),
        tam=float(raw.get("tam", 0)),
        sam_pct=float(raw.get("samPct", 0)),
        som_pct=float(raw.get("somPct", 0)),
        price_per_unit=float(raw.get("pricePerUnit", 0)),
        cac_per_unit=float(raw.get("cacPerUnit", 0)),
        ramp_months=int(raw.get("rampMonths", 1)),
        notes=raw.get("notes", ""),
    )


def _parse_opex(raw: Mapping[str, Any]) -> Opex:
    opex_id = str(raw["id"])
    return Opex(
        id=opex_id,
        category=raw.get("category", ""),
        start=parse_date(raw["start"], f"Opex {opex_id} start"),
        end=_optional_date(raw.get("end"), f"Opex {opex_id} end"),
        monthly=float(raw.get("monthly", 0)),
    )


def _dedupe(items: list, kind: str, warnings: list[ValidationWarning]) -> tuple:
    seen: set[str] = set()
    unique = []
    for item in items:
        if item.id in seen:
            report(warnings, logger, f"duplicate_{kind}",
                   f"Duplicate {kind} id {item.id!r}; later definition ignored", item.id)
            continue
        seen.add(item.id)
        unique.append(item)
    return tuple(unique)


def _list(payload: Mapping[str, Any], key: str) -> list:
    value = payload.get(key) or []
    if not isinstance(value, list):
        raise VentureLoadError(f"{key} must be a list")
    return value


# ──────────────────────────────────────────────────────────────────────
# 3. Public API
# ──────────────────────────────────────────────────────────────────────

def load_venture(payload: Mapping[str, Any]) -> LoadResult:
    """
    Validate and convert a venture payload.

    Raises:
        VentureLoadError: payload is structurally invalid (no meta.start,
            tasks not a list, malformed dates or distributions, non-numeric
            values).
        DependencySyntaxError: a task dependency reference is malformed.
    """
    if not isinstance(payload, Mapping):
        raise VentureLoadError("Venture payload must be a mapping")
    meta_raw = payload.get("meta")
    if not isinstance(meta_raw, Mapping) or not meta_raw.get("start"):
        raise VentureLoadError("meta.start is required")
    if not isinstance(payload.get("tasks"), list):
        raise VentureLoadError("tasks must be a list")

    warnings: list[ValidationWarning] = []
    try:
        meta = _parse_meta(meta_raw)
        tasks = _dedupe([_parse_task(t, warnings) for t in payload["tasks"]], "task", warnings)
        streams = _dedupe([_parse_stream(s, warnings) for s in _list(payload, "revenueStreams")],
                          "revenue_stream", warnings)
        cost_model = payload.get("costModel") or {}
        fixed_costs = _dedupe([_parse_fixed_cost(c) for c in _list(cost_model, "fixedMonthlyCosts")],
                              "fixed_cost", warnings)
        timeline = _dedupe([
            TimelineEvent(str(e["id"]), e.get("name", str(e["id"])), int(e.get("month", 0)),
                          e.get("description", ""))
            for e in _list(payload, "timeline")
        ], "event", warnings)
        markets = tuple(Market(str(m["id"]), m.get("name", str(m["id"])), m.get("description", ""))
                        for m in _list(payload, "markets"))
        assumptions = tuple(Assumption(str(a["id"]), a.get("description", ""), a.get("category", ""))
                            for a in _list(payload, "assumptions"))
        risks = tuple(Risk(str(r["id"]), r.get("description", ""), str(r.get("likelihood", "")),
                           str(r.get("impact", "")))
                      for r in _list(payload, "risks"))
        segments = tuple(_parse_segment(s) for s in _list(payload, "segments"))
        opex = tuple(_parse_opex(o) for o in _list(payload, "opex"))
    except DependencySyntaxError:
        raise
    except KeyError as e:
        raise VentureLoadError(f"Missing required field {e}") from None
    except (TypeError, ValueError) as e:
        raise VentureLoadError(f"Invalid field value: {e}") from e

    venture = Venture(
        meta=meta,
        tasks=tasks,
        revenue_streams=streams,
        fixed_costs=fixed_costs,
        timeline=timeline,
        markets=markets,
        assumptions=assumptions,
        risks=risks,
        segments=segments,
        opex=opex,
    )
    warnings.extend(check_references(venture))
    logger.debug("Loaded venture %r: %d tasks, %d streams, %d fixed costs",
                 meta.name, len(tasks), len(streams), len(fixed_costs))
    return LoadResult(venture, warnings)


def check_references(venture: Venture) -> list[ValidationWarning]:
    """Report stream -> market and stream/cost -> event references that resolve to nothing."""
    warnings: list[ValidationWarning] = []
    market_ids = {m.id for m in venture.markets}
    event_ids = {e.id for e in venture.timeline}
    task_ids = {t.id for t in venture.tasks}

    def resolvable(ref: str) -> bool:
        if ref in event_ids or ref in task_ids:
            return True
        try:
            return parse_dependency(ref).task_id in task_ids
        except ValueError:
            return False

    for stream in venture.revenue_streams:
        if stream.market_id and market_ids and stream.market_id not in market_ids:
            report(warnings, logger, "unknown_market",
                   f"Revenue stream {stream.id} references unknown market {stream.market_id!r}", stream.id)
        if stream.unlock_event_id and not resolvable(stream.unlock_event_id):
            report(warnings, logger, "unresolved_event",
                   f"Revenue stream {stream.id} unlock event {stream.unlock_event_id!r} not found; "
                   f"stream never activates", stream.id)
    for cost in venture.fixed_costs:
        if cost.start_event_id and not resolvable(cost.start_event_id):
            report(warnings, logger, "unresolved_event",
                   f"Fixed cost {cost.id} start event {cost.start_event_id!r} not found; "
                   f"cost never activates", cost.id)
    return warnings


def load_venture_or_default(payload: Any) -> LoadResult:
    """Load `payload`, falling back to the sample venture when it is rejected."""
    try:
        return load_venture(payload)
    except VentureLoadError as e:
        logger.warning("Venture payload rejected (%s); using default venture", e)
        return LoadResult(default_venture())


def default_venture(start: date | None = None) -> Venture:
    """
    Sample venture: licensing, MVP build and deployment tasks, one
    subscription stream unlocked at launch, two legacy segments and a core
    team opex line.
    """
    start = start or date.today()
    return Venture(
        meta=VentureMeta(name="New Venture", start=start, horizon_months=36, currency="GBP"),
        tasks=(
            Task("T1", "Licensing & Legal", Phase.INCEPTION, start=start,
                 duration=try_parse_duration("3m"), cost_one_off=as_distribution(35000)),
            Task("T2", "Build MVP", Phase.BUILD, duration=try_parse_duration("5m"),
                 cost_monthly=as_distribution(45000), depends_on=(parse_dependency("T1"),)),
            Task("T3", "Deploy & Ops", Phase.DEPLOY, duration=try_parse_duration("1m"),
                 cost_one_off=as_distribution(12000), cost_monthly=as_distribution(8000),
                 depends_on=(parse_dependency("T2"),)),
        ),
        revenue_streams=(
            RevenueStream(
                id="RS1",
                name="Core Subscription",
                unit_economics=UnitEconomics(
                    price_per_unit=Triangular(22.5, 25, 27.5),
                    delivery_cost_model=DeliveryCostModel(margin_pct=Triangular(60, 75, 85)),
                ),
                adoption_model=AdoptionModel(acquisition_rate=Triangular(1, 3, 6), max_units=as_distribution(250)),
                acquisition_costs=AcquisitionCosts(cac_per_unit=Triangular(270, 300, 330)),
                market_id="MK1",
                unlock_event_id="T3e",
            ),
        ),
        timeline=(TimelineEvent("E1", "Launch", 9, "Product available to customers"),),
        markets=(Market("MK1", "UK SMEs"),),
        segments=(
            Segment("M1", "Market Segment 1 (UK SMEs)", add_months(start, 7), tam=500000, sam_pct=0.2,
                    som_pct=0.05, price_per_unit=40, cac_per_unit=25, ramp_months=12,
                    notes="Early adoption via partner channels"),
            Segment("M2", "Market Segment 2 (EU Enterprise)", add_months(start, 14), tam=200000,
                    sam_pct=0.15, som_pct=0.03, price_per_unit=120, cac_per_unit=80, ramp_months=18,
                    notes="Staggered rollout; higher CAC"),
        ),
        opex=(Opex("O1", "Core Team", start, 60000),),
    )
