"""
Venture Planner — duration and dependency-reference grammar.

    duration    := <integer><unit>          unit in d, w, m, y      e.g. "3m"
    dependency  := <taskId>[s|e][(+|-)<duration>]                    e.g. "T1e+2w"

Strings are parsed once, at load time, into Duration / DependencyRef values.
Date arithmetic goes through pandas offsets so months and years follow the
calendar (end-of-month clamping included).
"""

from __future__ import annotations

import re
from datetime import date

import pandas as pd

from .errors import DependencySyntaxError
from .model import Anchor, DependencyRef, Duration, DurationUnit

_DURATION_RE = re.compile(r"^(\d+)([dwmy])$")
# Task ids are letters followed by digits (T1, FC12, RS3), so a trailing
# s/e is always read as the anchor.
_DEPENDENCY_RE = re.compile(
    r"^(?P<task_id>[A-Za-z_]+\d+)(?P<anchor>[se])?(?:(?P<sign>[+-])(?P<offset>.+))?$"
)

_OFFSET_KWARG = {
    DurationUnit.DAY: "days",
    DurationUnit.WEEK: "weeks",
    DurationUnit.MONTH: "months",
    DurationUnit.YEAR: "years",
}


def parse_duration(text: str) -> Duration:
    """Parse "<integer><unit>"; raises ValueError when the text does not match."""
    match = _DURATION_RE.match(text.strip()) if text else None
    if not match:
        raise ValueError(f"Invalid duration {text!r}; expected e.g. 5d, 2w, 3m, 1y")
    return Duration(int(match.group(1)), DurationUnit(match.group(2)))


def try_parse_duration(text: str | None) -> Duration | None:
    """Lenient variant: None for empty or malformed text (an ongoing task)."""
    if not text:
        return None
    try:
        return parse_duration(text)
    except ValueError:
        return None


def is_valid_duration(text: str | None) -> bool:
    return not text or try_parse_duration(text) is not None


def parse_dependency(text: str, task_id: str | None = None) -> DependencyRef:
    """
    Parse a dependency reference such as "T1", "T1s", "T2e+3m" or "T3-2w".

    The anchor defaults to the referenced task's end. Raises
    DependencySyntaxError when the reference or its offset is malformed.
    """
    match = _DEPENDENCY_RE.match(text.strip()) if text else None
    if not match:
        raise DependencySyntaxError(text, task_id)

    anchor = Anchor.START if match.group("anchor") == "s" else Anchor.END
    offset = None
    if match.group("offset") is not None:
        try:
            offset = parse_duration(match.group("offset"))
        except ValueError:
            raise DependencySyntaxError(text, task_id) from None
        if match.group("sign") == "-":
            offset = offset.negated()

    return DependencyRef(match.group("task_id"), anchor, offset)


# ──────────────────────────────────────────────────────────────────────
# Date arithmetic
# ──────────────────────────────────────────────────────────────────────

def shift_date(day: date, duration: Duration) -> date:
    """Move `day` by a (possibly negative) duration."""
    offset = pd.DateOffset(**{_OFFSET_KWARG[duration.unit]: duration.value})
    return (pd.Timestamp(day) + offset).date()


def add_months(day: date, months: int) -> date:
    return (pd.Timestamp(day) + pd.DateOffset(months=months)).date()


def month_index(start: date, day: date) -> int:
    """Whole months elapsed from `start` to `day`, floored at 0."""
    months = (day.year - start.year) * 12 + (day.month - start.month)
    if day.day < start.day:
        months -= 1
    return max(0, months)


def month_index_ceil(start: date, day: date) -> int:
    """Like month_index but a partially elapsed month counts as a whole one."""
    months = month_index(start, day)
    if add_months(start, months) < day:
        months += 1
    return months
