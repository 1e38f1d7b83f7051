"""
Venture Planner — task dependency scheduler.

Resolves tasks with free-form durations and dependency references into
concrete dates:

    start(task) = max over refs of (anchor date of ref.task + ref.offset)
                  or the manual start / project start without dependencies
    end(task)   = start + duration, absent for ongoing tasks

Tasks are visited in topological order; cycles raise CycleError, unknown
task ids are reported and ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Iterable, Iterator

from .errors import ValidationWarning, report
from .grammar import month_index, month_index_ceil, shift_date
from .graph import DependencyGraph
from .model import Anchor, ComputedTask, DependencyRef, Phase, Task

logger = logging.getLogger(__name__)

_TASK_FIELDS = [f.name for f in fields(Task)]


@dataclass
class Schedule:
    """Computed tasks in input order plus the warnings raised while scheduling."""
    tasks: list[ComputedTask]
    warnings: list[ValidationWarning] = field(default_factory=list)

    def __iter__(self) -> Iterator[ComputedTask]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    def by_id(self) -> dict[str, ComputedTask]:
        return {t.id: t for t in self.tasks}

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [
                {
                    "id": t.id,
                    "name": t.name,
                    "phase": t.phase.value,
                    "computed_start": t.computed_start.isoformat(),
                    "computed_end": t.computed_end.isoformat() if t.computed_end else None,
                }
                for t in self.tasks
            ],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def schedule_tasks(tasks: Iterable[Task], project_start: date) -> Schedule:
    """
    Compute start/end dates for every task.

    Accepts Task or ComputedTask values; computed fields of the input are
    ignored, so scheduling a schedule's own output yields the same dates.

    Raises:
        CycleError: if the dependency references form a cycle.
    """
    warnings: list[ValidationWarning] = []
    by_id: dict[str, Task] = {}
    for task in tasks:
        if task.id in by_id:
            report(warnings, logger, "duplicate_task",
                   f"Task id {task.id!r} appears more than once; later definition ignored",
                   task.id)
            continue
        by_id[task.id] = task

    graph = DependencyGraph()
    for task in by_id.values():
        deps = []
        for ref in task.depends_on:
            if ref.task_id not in by_id:
                report(warnings, logger, "unknown_dependency",
                       f"Task {task.id} depends on unknown task {ref.task_id!r}; ignored",
                       task.id)
                continue
            deps.append(ref.task_id)
        graph.add_node(task.id, deps)

    computed: dict[str, ComputedTask] = {}
    for task_id in graph.resolve_order():
        task = by_id[task_id]
        start = _resolve_start(task, computed, project_start, warnings)
        end = shift_date(start, task.duration) if task.duration is not None else None
        computed[task_id] = _to_computed(task, start, end)

    logger.debug("Scheduled %d tasks from %s", len(computed), project_start)
    return Schedule([computed[task_id] for task_id in by_id], warnings)


def _resolve_start(
    task: Task,
    computed: dict[str, ComputedTask],
    project_start: date,
    warnings: list[ValidationWarning],
) -> date:
    latest: date | None = None
    for ref in task.depends_on:
        dep = computed.get(ref.task_id)
        if dep is None:
            continue  # unknown id, already reported
        candidate = anchor_date(dep, ref, warnings, task.id)
        if latest is None or candidate > latest:
            latest = candidate
    if latest is not None:
        return latest
    return task.start or project_start


def anchor_date(
    dep: ComputedTask,
    ref: DependencyRef,
    warnings: list[ValidationWarning] | None = None,
    owner_id: str | None = None,
) -> date:
    """Date a reference points at: the dependency's start or end, shifted by the offset."""
    if ref.anchor is Anchor.START:
        anchor = dep.computed_start
    elif dep.computed_end is not None:
        anchor = dep.computed_end
    else:
        anchor = dep.computed_start
        if warnings is not None:
            report(warnings, logger, "ongoing_anchor",
                   f"{owner_id or 'reference'} anchors on the end of ongoing task "
                   f"{dep.id}; using its start", owner_id)
    if ref.offset is not None:
        anchor = shift_date(anchor, ref.offset)
    return anchor


def _to_computed(task: Task, start: date, end: date | None) -> ComputedTask:
    values = {name: getattr(task, name) for name in _TASK_FIELDS}
    return ComputedTask(**values, computed_start=start, computed_end=end)


# ──────────────────────────────────────────────────────────────────────
# Month windows
# ──────────────────────────────────────────────────────────────────────

def task_month_span(task: ComputedTask, project_start: date) -> tuple[int, int | None]:
    """
    Half-open month window [first, stop) in which the task is active.

    A partially covered final month counts as active; `stop` is None for
    ongoing tasks.
    """
    first = month_index(project_start, task.computed_start)
    if task.computed_end is None:
        return first, None
    return first, max(first, month_index_ceil(project_start, task.computed_end))


def phase_windows(
    schedule: Schedule | Iterable[ComputedTask],
    project_start: date,
    horizon_months: int,
) -> dict[Phase, tuple[int, int]]:
    """Month window [first, stop) of each phase; ongoing tasks run to the horizon."""
    windows: dict[Phase, tuple[int, int]] = {}
    for task in schedule:
        first, stop = task_month_span(task, project_start)
        stop = horizon_months if stop is None else stop
        if task.phase in windows:
            lo, hi = windows[task.phase]
            windows[task.phase] = (min(lo, first), max(hi, stop))
        else:
            windows[task.phase] = (first, stop)
    return windows
