"""
Unit tests for the task dependency scheduler and the dependency graph.
"""

from __future__ import annotations

from datetime import date

import pytest

from conftest import make_task
from venture_planner.errors import CycleError
from venture_planner.grammar import add_months
from venture_planner.graph import DependencyGraph
from venture_planner.model import Phase
from venture_planner.scheduler import phase_windows, schedule_tasks, task_month_span


class TestDependencyGraph:

    def test_order_is_stable_and_topological(self):
        graph = DependencyGraph()
        graph.add_node("b", ["a"])
        graph.add_node("c")
        graph.add_node("a")
        order = graph.resolve_order()
        assert order.index("a") < order.index("b")
        assert order == ["c", "a", "b"]

    def test_cycle_is_reported_with_path(self):
        graph = DependencyGraph()
        graph.add_node("x", ["y"])
        graph.add_node("y", ["x"])
        assert set(graph.find_cycle()) == {"x", "y"}
        with pytest.raises(CycleError, match="->"):
            graph.resolve_order()

    def test_missing_dependencies(self):
        graph = DependencyGraph()
        graph.add_node("a", ["ghost"])
        assert graph.missing_dependencies() == {"a": ["ghost"]}
        assert not graph.validate()


class TestScheduleChain:
    """Test T1 -> T2 -> T3 date resolution"""

    def test_dependent_starts_at_dependency_end(self, chain_tasks, project_start):
        schedule = schedule_tasks(chain_tasks, project_start).by_id()
        assert schedule["T1"].computed_start == project_start
        assert schedule["T2"].computed_start == schedule["T1"].computed_end
        assert schedule["T3"].computed_start == schedule["T2"].computed_end

    def test_chain_end_is_nine_months_out(self, chain_tasks, project_start):
        schedule = schedule_tasks(chain_tasks, project_start).by_id()
        assert schedule["T3"].computed_end == add_months(project_start, 9)

    def test_output_preserves_input_order(self, chain_tasks, project_start):
        reversed_tasks = list(reversed(chain_tasks))
        schedule = schedule_tasks(reversed_tasks, project_start)
        assert [t.id for t in schedule] == ["T3", "T2", "T1"]
        assert schedule.by_id()["T3"].computed_end == add_months(project_start, 9)

    def test_rescheduling_output_is_idempotent(self, chain_tasks, project_start):
        first = schedule_tasks(chain_tasks, project_start)
        second = schedule_tasks(first.tasks, project_start)
        assert [(t.computed_start, t.computed_end) for t in first] == \
               [(t.computed_start, t.computed_end) for t in second]


class TestDependencyRules:

    def test_latest_dependency_wins(self, project_start):
        tasks = [
            make_task("T1", "2m"),
            make_task("T2", "6m"),
            make_task("T3", "1m", ["T1", "T2"]),
        ]
        schedule = schedule_tasks(tasks, project_start).by_id()
        assert schedule["T3"].computed_start == add_months(project_start, 6)

    def test_start_anchor_and_offset(self, project_start):
        tasks = [
            make_task("T1", "3m"),
            make_task("T2", "1m", ["T1s+2w"]),
            make_task("T3", "1m", ["T1e-1m"]),
        ]
        schedule = schedule_tasks(tasks, project_start).by_id()
        assert schedule["T2"].computed_start == date(2025, 1, 15)
        assert schedule["T3"].computed_start == date(2025, 3, 1)

    def test_manual_start_without_dependencies(self, project_start):
        task = make_task("T1", "1m", start=date(2025, 4, 10))
        schedule = schedule_tasks([task], project_start)
        assert schedule.tasks[0].computed_start == date(2025, 4, 10)

    def test_ongoing_task_has_no_end(self, project_start):
        schedule = schedule_tasks([make_task("T1")], project_start)
        assert schedule.tasks[0].is_ongoing

    def test_end_anchor_on_ongoing_task_uses_its_start(self, project_start):
        tasks = [make_task("T1", start=date(2025, 2, 1)), make_task("T2", "1m", ["T1"])]
        schedule = schedule_tasks(tasks, project_start)
        assert schedule.by_id()["T2"].computed_start == date(2025, 2, 1)
        assert [w.code for w in schedule.warnings] == ["ongoing_anchor"]


class TestSchedulingFailures:

    def test_two_task_cycle_raises(self, project_start):
        tasks = [make_task("T1", "1m", ["T2"]), make_task("T2", "1m", ["T1"])]
        with pytest.raises(CycleError) as exc:
            schedule_tasks(tasks, project_start)
        assert set(exc.value.cycle) == {"T1", "T2"}

    def test_self_dependency_raises(self, project_start):
        with pytest.raises(CycleError):
            schedule_tasks([make_task("T1", "1m", ["T1"])], project_start)

    def test_transitive_cycle_raises(self, project_start):
        tasks = [
            make_task("T1", "1m", ["T3"]),
            make_task("T2", "1m", ["T1"]),
            make_task("T3", "1m", ["T2"]),
        ]
        with pytest.raises(CycleError):
            schedule_tasks(tasks, project_start)

    def test_unknown_dependency_is_reported_not_fatal(self, project_start):
        tasks = [make_task("T1", "1m", ["T99"]), make_task("T2", "2m")]
        schedule = schedule_tasks(tasks, project_start)
        assert schedule.by_id()["T1"].computed_start == project_start
        assert [w.code for w in schedule.warnings] == ["unknown_dependency"]

    def test_duplicate_ids_keep_first_definition(self, project_start):
        tasks = [make_task("T1", "1m"), make_task("T1", "9m")]
        schedule = schedule_tasks(tasks, project_start)
        assert len(schedule) == 1
        assert schedule.tasks[0].computed_end == add_months(project_start, 1)
        assert schedule.warnings[0].code == "duplicate_task"


class TestMonthWindows:

    def test_task_month_span(self, chain_tasks, project_start):
        schedule = schedule_tasks(chain_tasks, project_start).by_id()
        assert task_month_span(schedule["T1"], project_start) == (0, 3)
        assert task_month_span(schedule["T3"], project_start) == (8, 9)

    def test_partial_month_counts_as_active(self, project_start):
        schedule = schedule_tasks([make_task("T1", "10d")], project_start)
        assert task_month_span(schedule.tasks[0], project_start) == (0, 1)

    def test_phase_windows_extend_ongoing_to_horizon(self, chain_tasks, project_start):
        tasks = chain_tasks + [make_task("T4", None, ["T3"], phase=Phase.GO_TO_MARKET)]
        windows = phase_windows(schedule_tasks(tasks, project_start), project_start, 36)
        assert windows[Phase.INCEPTION] == (0, 3)
        assert windows[Phase.BUILD] == (3, 8)
        assert windows[Phase.GO_TO_MARKET] == (9, 36)
