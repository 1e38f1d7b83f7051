"""
Venture Planner — error hierarchy and reportable warnings.

Fatal conditions raise; recoverable ones become ValidationWarning values
attached to results so callers can surface them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any


class VenturePlannerError(Exception):
    """Base class for every error raised by the engine."""


class VentureLoadError(VenturePlannerError):
    """The payload is not a structurally valid venture definition."""


class SchedulingError(VenturePlannerError):
    """The task list cannot be turned into a consistent schedule."""


class CycleError(SchedulingError):
    """Task dependencies form a cycle (direct or transitive)."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        path = " -> ".join(cycle + cycle[:1])
        super().__init__(f"Circular task dependency: {path}")


class DependencySyntaxError(SchedulingError, ValueError):
    """A dependency reference string does not match the grammar."""

    def __init__(self, text: str, task_id: str | None = None):
        self.text = text
        self.task_id = task_id
        where = f" on task {task_id}" if task_id else ""
        super().__init__(f"Unparseable dependency reference {text!r}{where}")


class OptimizationError(VenturePlannerError, ValueError):
    """Invalid optimizer arguments."""


@dataclass(frozen=True)
class ValidationWarning:
    """A recovered problem: reported, never silently dropped."""
    code: str
    message: str
    entity_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "entity_id": self.entity_id}


def report(warnings: list[ValidationWarning], logger: logging.Logger,
           code: str, message: str, entity_id: str | None = None) -> ValidationWarning:
    """Append a warning to `warnings` and log it."""
    warning = ValidationWarning(code, message, entity_id)
    warnings.append(warning)
    logger.warning("%s: %s", code, message)
    return warning
