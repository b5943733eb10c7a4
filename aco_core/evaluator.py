"""
aco_core/evaluator.py
─────────────────────
Fitness and feasibility scoring for one position.

The evaluator is pure: same problem + same position → same Evaluation,
with no side effects. Initialisation, construction and local search all
call evaluate() so their fitness values are directly comparable.

Value model
───────────
Objectives and constraints carry an `expression` field, but values are not
parsed from it. Every objective value and every constraint value is the
weighted sum of the position:

    value = Σ_v position[v] × v.weight

Fitness
───────
    fitness = Σ_objectives contribution(o) × o.weight × o.priority
            − Σ_constraints max(0, value − bound) × c.weight × PENALTY_SCALE

    contribution(o) = MINIMIZE_NUMERATOR / (|value| + 1)   for MINIMIZE
                    = value × MAXIMIZE_SCALE                for MAXIMIZE

A non-finite result (overflowing weights, NaN inputs) is replaced by −inf:
such a candidate can never become the colony's best and is flagged
infeasible.
"""

from __future__ import annotations

import math
from typing import Dict, List, Mapping, NamedTuple, Optional

from optimizer.shared.models import (
    Constraint,
    ConstraintId,
    ConstraintType,
    ObjectiveId,
    ObjectiveType,
    OptimizationProblem,
    VariableId,
)

# ── Scoring constants ──────────────────────────────────────────────────────────

EQUALITY_TOLERANCE: float = 0.001
"""|value − bound| at or below this satisfies an equality constraint."""

PENALTY_SCALE: float = 100.0
"""Fitness lost per unit of constraint excess, before the constraint weight."""

MINIMIZE_NUMERATOR: float = 1000.0
"""A MINIMIZE objective contributes MINIMIZE_NUMERATOR / (|value| + 1)."""

MAXIMIZE_SCALE: float = 100.0
"""A MAXIMIZE objective contributes value × MAXIMIZE_SCALE."""

NON_FINITE_VIOLATION: str = "Fitness is not a finite number"


class Evaluation(NamedTuple):
    """Everything derived from a position."""
    objective_values: Dict[ObjectiveId, float]
    constraint_values: Dict[ConstraintId, float]
    fitness: float
    feasible: bool
    violations: List[str]


class FitnessEvaluator:
    """
    Scores positions against one problem's objectives and constraints.

    Usage:
        evaluator  = FitnessEvaluator(problem)
        evaluation = evaluator.evaluate(position)
    """

    def __init__(self, problem: OptimizationProblem) -> None:
        self._problem = problem
        # (id, weight) pairs in problem order. The weighted sum is the same
        # for every objective and constraint, so it is computed once per call.
        self._weights = [(v.id, v.weight) for v in problem.variables]

    def weighted_sum(self, position: Mapping[VariableId, float]) -> float:
        """Σ position[v] × v.weight over every variable of the problem."""
        return sum(position[vid] * weight for vid, weight in self._weights)

    def evaluate(self, position: Mapping[VariableId, float]) -> Evaluation:
        """
        Score one position.

        Returns:
            Evaluation with objective values, constraint values, fitness,
            feasibility and one violation line per failed constraint.
        """
        value = self.weighted_sum(position)

        objective_values = {o.id: value for o in self._problem.objectives}
        constraint_values = {c.id: value for c in self._problem.constraints}

        fitness = self.fitness(objective_values, constraint_values)
        violations = self.violations(constraint_values)

        if not math.isfinite(fitness):
            fitness = float("-inf")
            violations.append(NON_FINITE_VIOLATION)

        return Evaluation(
            objective_values=objective_values,
            constraint_values=constraint_values,
            fitness=fitness,
            feasible=not violations,
            violations=violations,
        )

    def fitness(
        self,
        objective_values: Mapping[ObjectiveId, float],
        constraint_values: Mapping[ConstraintId, float],
    ) -> float:
        total = 0.0

        for objective in self._problem.objectives:
            value = objective_values[objective.id]
            if objective.type == ObjectiveType.MINIMIZE:
                contribution = MINIMIZE_NUMERATOR / (abs(value) + 1.0)
            else:
                contribution = value * MAXIMIZE_SCALE
            total += contribution * objective.weight * objective.priority

        for constraint in self._problem.constraints:
            excess = max(0.0, constraint_values[constraint.id] - constraint.bound)
            total -= excess * constraint.weight * PENALTY_SCALE

        return total

    def violations(self, constraint_values: Mapping[ConstraintId, float]) -> List[str]:
        """One message per failed EQUALITY or INEQUALITY constraint."""
        messages: List[str] = []
        for constraint in self._problem.constraints:
            message = _violation(constraint, constraint_values[constraint.id])
            if message is not None:
                messages.append(message)
        return messages


def _violation(constraint: Constraint, value: float) -> Optional[str]:
    if constraint.type == ConstraintType.EQUALITY:
        if not abs(value - constraint.bound) <= EQUALITY_TOLERANCE:
            return (
                f"Equality constraint {constraint.label} violated: "
                f"value {value:g} != bound {constraint.bound:g}"
            )
    elif constraint.type == ConstraintType.INEQUALITY:
        if not value <= constraint.bound:
            return (
                f"Inequality constraint {constraint.label} violated: "
                f"value {value:g} > bound {constraint.bound:g}"
            )
    return None
