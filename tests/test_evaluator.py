"""
tests/test_evaluator.py
───────────────────────
FitnessEvaluator: objective scoring, constraint penalties, feasibility.

Every objective and constraint value is the weighted sum of the position,
so the tests build tiny problems where that sum is easy to compute by hand.
"""

from __future__ import annotations

import math

import pytest

from aco_core.evaluator import (
    MAXIMIZE_SCALE,
    MINIMIZE_NUMERATOR,
    NON_FINITE_VIOLATION,
    PENALTY_SCALE,
    FitnessEvaluator,
)
from optimizer.shared.models import (
    Constraint,
    ConstraintType,
    Domain,
    Objective,
    ObjectiveType,
    OptimizationProblem,
    Variable,
    VariableType,
)


def _make_variable(vid="x", lo=0.0, hi=10.0, vtype=VariableType.CONTINUOUS, weight=1.0):
    return Variable(id=vid, type=vtype, domain=Domain(min=lo, max=hi), weight=weight)


def _make_problem(variables=None, objectives=None, constraints=None) -> OptimizationProblem:
    return OptimizationProblem(
        id="p-eval",
        variables=variables or [_make_variable("x"), _make_variable("y")],
        objectives=objectives or [Objective(id="o1")],
        constraints=constraints or [],
    )


class TestObjectives:

    def test_weighted_sum_uses_variable_weights(self):
        problem = _make_problem(variables=[
            _make_variable("x", weight=2.0),
            _make_variable("y", weight=-1.0),
        ])
        evaluator = FitnessEvaluator(problem)
        assert evaluator.weighted_sum({"x": 3.0, "y": 4.0}) == pytest.approx(2.0)

    def test_maximize_contribution(self):
        evaluator = FitnessEvaluator(_make_problem())
        evaluation = evaluator.evaluate({"x": 2.0, "y": 3.0})
        assert evaluation.objective_values == {"o1": 5.0}
        assert evaluation.fitness == pytest.approx(5.0 * MAXIMIZE_SCALE)

    def test_minimize_contribution(self):
        problem = _make_problem(objectives=[Objective(id="o1", type=ObjectiveType.MINIMIZE)])
        evaluation = FitnessEvaluator(problem).evaluate({"x": 1.0, "y": 3.0})
        assert evaluation.fitness == pytest.approx(MINIMIZE_NUMERATOR / 5.0)

    def test_weight_and_priority_scale_contribution(self):
        problem = _make_problem(objectives=[Objective(id="o1", weight=0.5, priority=4)])
        evaluation = FitnessEvaluator(problem).evaluate({"x": 1.0, "y": 1.0})
        assert evaluation.fitness == pytest.approx(2.0 * MAXIMIZE_SCALE * 0.5 * 4)

    def test_objectives_add_up(self):
        problem = _make_problem(objectives=[
            Objective(id="max"),
            Objective(id="min", type=ObjectiveType.MINIMIZE),
        ])
        evaluation = FitnessEvaluator(problem).evaluate({"x": 1.0, "y": 0.0})
        assert evaluation.fitness == pytest.approx(100.0 + 500.0)

    def test_evaluation_is_pure(self):
        evaluator = FitnessEvaluator(_make_problem())
        position = {"x": 1.5, "y": 2.5}
        assert evaluator.evaluate(position) == evaluator.evaluate(position)
        assert position == {"x": 1.5, "y": 2.5}


class TestConstraints:

    def test_binary_equality_violation(self):
        """Binary variable at 0 with an equality constraint bound 1 → infeasible."""
        problem = _make_problem(
            variables=[_make_variable("b", 0.0, 1.0, VariableType.BINARY)],
            constraints=[Constraint(id="c1", type=ConstraintType.EQUALITY, bound=1.0)],
        )
        evaluation = FitnessEvaluator(problem).evaluate({"b": 0.0})

        assert evaluation.feasible is False
        assert len(evaluation.violations) == 1
        assert evaluation.violations[0].startswith("Equality constraint c1 violated")

    def test_equality_within_tolerance_is_feasible(self):
        problem = _make_problem(
            variables=[_make_variable("x")],
            constraints=[Constraint(id="c1", type=ConstraintType.EQUALITY, bound=2.0)],
        )
        assert FitnessEvaluator(problem).evaluate({"x": 2.0005}).feasible is True

    def test_inequality_violation_penalised(self):
        problem = _make_problem(
            constraints=[Constraint(id="cap", name="capacity", bound=4.0, weight=2.0)],
        )
        evaluation = FitnessEvaluator(problem).evaluate({"x": 3.0, "y": 3.0})

        expected = 6.0 * MAXIMIZE_SCALE - (6.0 - 4.0) * 2.0 * PENALTY_SCALE
        assert evaluation.fitness == pytest.approx(expected)
        assert evaluation.feasible is False
        assert "capacity" in evaluation.violations[0], "name is used in the message"

    def test_satisfied_inequality_has_no_penalty(self):
        problem = _make_problem(constraints=[Constraint(id="cap", bound=10.0)])
        evaluation = FitnessEvaluator(problem).evaluate({"x": 1.0, "y": 2.0})
        assert evaluation.fitness == pytest.approx(3.0 * MAXIMIZE_SCALE)
        assert evaluation.feasible is True
        assert evaluation.constraint_values == {"cap": 3.0}

    @pytest.mark.parametrize("ctype", [ConstraintType.BOUND, ConstraintType.LOGICAL])
    def test_bound_and_logical_only_penalise(self, ctype):
        problem = _make_problem(constraints=[Constraint(id="c", type=ctype, bound=1.0)])
        evaluation = FitnessEvaluator(problem).evaluate({"x": 2.0, "y": 2.0})
        assert evaluation.feasible is True
        assert evaluation.fitness < 4.0 * MAXIMIZE_SCALE


class TestNonFinite:

    def test_overflow_becomes_negative_infinity(self):
        problem = _make_problem(variables=[_make_variable("x", 0.0, 1e308, weight=10.0)])
        evaluation = FitnessEvaluator(problem).evaluate({"x": 1e308})

        assert evaluation.fitness == float("-inf")
        assert evaluation.feasible is False
        assert NON_FINITE_VIOLATION in evaluation.violations

    def test_finite_fitness_unchanged(self):
        evaluation = FitnessEvaluator(_make_problem()).evaluate({"x": 0.0, "y": 0.0})
        assert math.isfinite(evaluation.fitness)
