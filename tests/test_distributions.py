"""
Unit tests for scenario evaluation of uncertainty ranges.
"""

from __future__ import annotations

import pytest

from venture_planner.distributions import (
    DistributionEvaluator, as_distribution, evaluate, expected_value,
    is_well_formed, normalize, scale_distribution,
)
from venture_planner.model import LogNormal, Normal, ScenarioSelection, Triangular

MIN, MODE, MAX = ScenarioSelection.MIN, ScenarioSelection.MODE, ScenarioSelection.MAX


class TestEvaluate:
    """Test min / mode / max evaluation"""

    def test_triangular_selects_its_fields(self):
        d = Triangular(10, 15, 30)
        assert evaluate(d, MIN) == 10
        assert evaluate(d, MODE) == 15
        assert evaluate(d, MAX) == 30

    def test_missing_mode_falls_back_to_midpoint(self):
        assert evaluate(Triangular(10, None, 30), MODE) == 20

    def test_number_is_degenerate_range(self):
        for selection in ScenarioSelection:
            assert evaluate(42, selection) == 42
        assert evaluate(None) == 0

    def test_normal_uses_three_sigma(self):
        d = Normal(mean=100, std_dev=5)
        assert evaluate(d, MIN) == 85
        assert evaluate(d, MODE) == 100
        assert evaluate(d, MAX) == 115

    def test_lognormal_uses_declared_bounds(self):
        d = LogNormal(1, 2, 9)
        assert evaluate(d, MIN) == 1
        assert evaluate(d, MODE) == 2
        assert evaluate(d, MAX) == 9

    def test_multiplier_scales_result(self):
        assert evaluate(Triangular(1, 2, 3), MAX, multiplier=1.5) == 4.5

    def test_rejects_non_distribution(self):
        with pytest.raises(TypeError):
            as_distribution("12")


class TestExpectedValue:

    def test_triangular_mean(self):
        assert expected_value(Triangular(0, 3, 6)) == 3

    def test_normal_mean(self):
        assert expected_value(Normal(7, 2)) == 7


class TestMalformedRanges:
    """Test clamping of min <= mode <= max violations"""

    def test_normalize_orders_bounds(self):
        d = Triangular(30, 50, 10)
        assert not is_well_formed(d)
        assert normalize(d) == Triangular(10, 30, 30)

    def test_evaluator_reports_once_and_clamps(self):
        evaluator = DistributionEvaluator()
        d = Triangular(10, 5, 20)
        assert evaluator.evaluate(d, MODE, "RS1", "price_per_unit") == 10
        assert evaluator.evaluate(d, MAX, "RS1", "price_per_unit") == 20

        assert [w.code for w in evaluator.warnings] == ["malformed_distribution"]
        assert evaluator.warnings[0].entity_id == "RS1"

    def test_well_formed_range_has_no_warning(self):
        evaluator = DistributionEvaluator()
        evaluator.evaluate(Triangular(1, 2, 3), MODE, "RS1", "price_per_unit")
        assert evaluator.warnings == []

    def test_out_of_range_multiplier_is_clamped(self):
        evaluator = DistributionEvaluator()
        assert evaluator.evaluate(10, MODE, "FC1", "monthly_cost", multiplier=8.0) == 50
        assert evaluator.evaluate(10, MODE, "FC2", "monthly_cost", multiplier=-1.0) == 0
        assert {w.code for w in evaluator.warnings} == {"multiplier_out_of_range"}
        assert len(evaluator.warnings) == 2


class TestScaleDistribution:

    def test_identity_factor_returns_same_object(self):
        d = Triangular(1, 2, 3)
        assert scale_distribution(d, 1.0) is d

    def test_scales_every_field(self):
        assert scale_distribution(Triangular(10, 20, 40), 0.5) == Triangular(5, 10, 20)
        assert scale_distribution(LogNormal(1, None, 3), 2.0) == LogNormal(2, None, 6)

    def test_negative_factor_keeps_ordering(self):
        scaled = scale_distribution(Triangular(1, 2, 3), -1.0)
        assert scaled.min == -3 and scaled.max == -1
        assert is_well_formed(scaled)

    def test_normal_scaling(self):
        assert scale_distribution(Normal(10, 2), 2.0) == Normal(20, 4)
