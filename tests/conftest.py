"""
Shared fixtures for the venture planner test suite.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from venture_planner.grammar import parse_dependency, parse_duration
from venture_planner.model import (
    AcquisitionCosts, AdoptionModel, DeliveryCostModel, FixedCost, Phase,
    RevenueStream, Task, TimelineEvent, Triangular, UnitEconomics, Venture, VentureMeta,
)


PROJECT_START = date(2025, 1, 1)


def make_task(task_id, duration=None, depends_on=(), **kwargs) -> Task:
    return Task(
        id=task_id,
        name=kwargs.pop("name", task_id),
        duration=parse_duration(duration) if duration else None,
        depends_on=tuple(parse_dependency(ref, task_id) for ref in depends_on),
        **kwargs,
    )


def make_stream(
    stream_id="RS1",
    price=Triangular(40, 50, 60),
    acquisition=Triangular(20, 30, 40),
    churn=Triangular(2, 5, 8),
    margin=Triangular(70, 80, 90),
    **kwargs,
) -> RevenueStream:
    """Monthly subscription stream; override any RevenueStream field by keyword."""
    fields = dict(
        id=stream_id,
        name=f"Stream {stream_id}",
        unit_economics=UnitEconomics(
            price_per_unit=price,
            delivery_cost_model=DeliveryCostModel(margin_pct=margin),
        ),
        adoption_model=AdoptionModel(acquisition_rate=acquisition, churn_rate=churn),
        acquisition_costs=AcquisitionCosts(),
    )
    fields.update(kwargs)
    return RevenueStream(**fields)


def make_venture(horizon=60, **kwargs) -> Venture:
    meta = VentureMeta(
        name=kwargs.pop("name", "Test Venture"),
        start=PROJECT_START,
        horizon_months=horizon,
        initial_reserve=kwargs.pop("initial_reserve", 0.0),
    )
    return Venture(meta=meta, **kwargs)


@pytest.fixture
def project_start() -> date:
    return PROJECT_START


@pytest.fixture
def chain_tasks() -> list[Task]:
    """T1 (3m) -> T2 (5m) -> T3 (1m)."""
    return [
        make_task("T1", "3m", phase=Phase.INCEPTION, start=PROJECT_START),
        make_task("T2", "5m", ["T1"], phase=Phase.BUILD),
        make_task("T3", "1m", ["T2"], phase=Phase.DEPLOY),
    ]


@pytest.fixture
def launch_venture() -> Venture:
    """
    One build task ($50k one-off + $10k/month for 6 months) and one
    subscription stream unlocked by a launch event at month 9.
    """
    return make_venture(
        tasks=(
            make_task("T1", "6m", cost_one_off=Triangular.point(50_000),
                      cost_monthly=Triangular.point(10_000)),
        ),
        revenue_streams=(make_stream(unlock_event_id="E1"),),
        timeline=(TimelineEvent("E1", "Launch", 9),),
    )


@pytest.fixture
def costed_venture(launch_venture) -> Venture:
    """launch_venture plus CAC and a fixed cost from launch."""
    stream = replace(
        launch_venture.revenue_streams[0],
        acquisition_costs=AcquisitionCosts(cac_per_unit=Triangular(80, 100, 120)),
    )
    return replace(
        launch_venture,
        revenue_streams=(stream,),
        fixed_costs=(FixedCost("FC1", "Support team", Triangular(2_000, 3_000, 4_000), "E1"),),
    )


def make_thin_margin_venture(price: float) -> Venture:
    """$1000 one-off build cost, then 10 new units a month at 100% margin from month 0."""
    point = Triangular.point
    return make_venture(
        tasks=(make_task("T1", "1m", start=PROJECT_START, cost_one_off=point(1000)),),
        revenue_streams=(make_stream(price=point(price), acquisition=point(10),
                                     churn=point(0), margin=point(100)),),
    )
