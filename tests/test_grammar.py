"""
Unit tests for the duration / dependency grammar and month arithmetic.
"""

from __future__ import annotations

from datetime import date

import pytest

from venture_planner.errors import DependencySyntaxError
from venture_planner.grammar import (
    add_months, is_valid_duration, month_index, month_index_ceil,
    parse_dependency, parse_duration, shift_date, try_parse_duration,
)
from venture_planner.model import Anchor, Duration, DurationUnit


class TestDuration:
    """Test <integer><unit> durations"""

    @pytest.mark.parametrize("text,months", [
        ("3m", 3.0),
        ("2w", 0.5),
        ("1y", 12.0),
        ("30d", 1.0),
    ])
    def test_months_conversion(self, text, months):
        assert parse_duration(text).months == pytest.approx(months)

    def test_invalid_duration_raises(self):
        with pytest.raises(ValueError):
            parse_duration("three months")

    def test_lenient_parse(self):
        assert try_parse_duration("") is None
        assert try_parse_duration(None) is None
        assert try_parse_duration("5x") is None
        assert try_parse_duration("5d") == Duration(5, DurationUnit.DAY)

    def test_is_valid_duration(self):
        assert is_valid_duration("4w")
        assert is_valid_duration(None)
        assert not is_valid_duration("4 weeks")

    def test_str_round_trip(self):
        assert str(parse_duration("18m")) == "18m"


class TestDependencyReference:
    """Test <taskId>[s|e][(+|-)<duration>] references"""

    def test_bare_id_anchors_on_end(self):
        ref = parse_dependency("T1")
        assert ref.task_id == "T1"
        assert ref.anchor is Anchor.END
        assert ref.offset is None

    def test_start_anchor_with_offset(self):
        ref = parse_dependency("T12s+2w")
        assert ref.task_id == "T12"
        assert ref.anchor is Anchor.START
        assert ref.offset == Duration(2, DurationUnit.WEEK)

    def test_negative_offset(self):
        ref = parse_dependency("T3e-1m")
        assert ref.offset == Duration(-1, DurationUnit.MONTH)
        assert str(ref) == "T3e-1m"

    @pytest.mark.parametrize("text", ["", "T1x", "T1+3q", "1T", "T1e+"])
    def test_malformed_reference_raises(self, text):
        with pytest.raises(DependencySyntaxError):
            parse_dependency(text, "T9")

    def test_error_names_owning_task(self):
        with pytest.raises(DependencySyntaxError, match="T9"):
            parse_dependency("??", "T9")


class TestDateArithmetic:
    """Test calendar shifts and month indexing"""

    def test_shift_by_months_clamps_month_end(self):
        assert shift_date(date(2025, 1, 31), parse_duration("1m")) == date(2025, 2, 28)

    def test_shift_by_weeks_and_negative_days(self):
        assert shift_date(date(2025, 1, 1), parse_duration("2w")) == date(2025, 1, 15)
        assert shift_date(date(2025, 1, 10), Duration(-10, DurationUnit.DAY)) == date(2024, 12, 31)

    def test_add_months(self):
        assert add_months(date(2025, 11, 1), 3) == date(2026, 2, 1)

    def test_month_index(self):
        start = date(2025, 1, 15)
        assert month_index(start, date(2025, 3, 14)) == 1
        assert month_index(start, date(2025, 3, 15)) == 2
        assert month_index(start, date(2024, 12, 1)) == 0

    def test_month_index_ceil(self):
        start = date(2025, 1, 1)
        assert month_index_ceil(start, date(2025, 2, 15)) == 2
        assert month_index_ceil(start, date(2025, 3, 1)) == 2
