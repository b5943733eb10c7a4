"""
aco_core/transition.py
──────────────────────
Pheromone + heuristic weighted choice of a variable's next value.

The selection formula
──────────────────────
For the current value of a variable, a bounded neighbourhood of candidate
next-values is generated. Each neighbour v gets

    desirability(v) = τ(variable)^α × η(variable, v)^β

  τ(variable): the variable's pheromone level (PheromoneField.level).
  η(variable, v): heuristic desirability of the value itself.

Desirabilities are normalised to probabilities. Then:

  • with probability q0 → take the arg-max (exploitation),
  • otherwise           → roulette-wheel over the probabilities (exploration).

Neighbourhoods
───────────────
  continuous → current ± k × (10% of range),  k = 0…5
  discrete   → current ± k × step,            k = 0…2
  integer    → current ± k,                   k = 0…2
  binary     → {0, 1}

Continuous values past a bound are clamped onto it, so the bounds
themselves are reachable. Lattice values outside the domain are dropped,
which keeps them on the lattice. Duplicates collapse.

Heuristics
───────────
Both built-in heuristics are an inverse distance on the normalised [0, 1]
scale:

    η(v) = 1 / (|normalised(v) − target| + 0.1)

  midpoint_heuristic   target = 0.5 for every variable, a generic bias
                       towards the domain midpoint (10 at the target,
                       ~1.67 at either end).
  objective_heuristic  target = the end of the domain the problem's
                       fitness rises towards (0.5 when it has no slope).

The sampler defaults to midpoint_heuristic. The driver builds an
objective_heuristic for its problem unless the caller injects one.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

import numpy as np
from numpy.typing import NDArray

from optimizer.shared.models import (
    ACOParameters,
    ObjectiveType,
    OptimizationProblem,
    Variable,
    VariableId,
    VariableType,
)
from aco_core.evaluator import (
    MAXIMIZE_SCALE,
    MINIMIZE_NUMERATOR,
    PENALTY_SCALE,
    FitnessEvaluator,
)
from aco_core.pheromone import PheromoneField

logger = logging.getLogger(__name__)

Heuristic = Callable[[Variable, float], float]
"""(variable, candidate value) → non-negative desirability."""

# ── Neighbourhood constants ────────────────────────────────────────────────────

CONTINUOUS_STEP_FRACTION: float = 0.1
"""Continuous step size as a fraction of the domain range."""

CONTINUOUS_RADIUS: int = 5
"""Continuous neighbourhood reaches ±5 steps."""

LATTICE_RADIUS: int = 2
"""Discrete and integer neighbourhoods reach ±2 steps."""

HEURISTIC_OFFSET: float = 0.1
"""Added to the target distance so η stays finite at the target."""

MIDPOINT_TARGET: float = 0.5
"""Normalised target of a variable nothing pulls either way."""

BOUND_TOLERANCE: float = 1e-9
"""Relative slack when testing lattice neighbours against the domain bounds."""


def _inverse_distance(variable: Variable, value: float, target: float) -> float:
    span = variable.domain.span
    if span <= 0.0:
        return 1.0
    normalised = (value - variable.domain.min) / span
    return 1.0 / (abs(normalised - target) + HEURISTIC_OFFSET)


def midpoint_heuristic(variable: Variable, value: float) -> float:
    """
    Inverse distance from the domain midpoint, on the normalised [0, 1] scale.

    A degenerate domain (min == max) has no midpoint to move towards → 1.0.
    """
    return _inverse_distance(variable, value, MIDPOINT_TARGET)


def fitness_slope(problem: OptimizationProblem) -> float:
    """
    d(fitness) / d(weighted sum), taken with every variable at its midpoint.

    Every objective and constraint value is the same weighted sum, so one
    slope covers the whole problem:

        MAXIMIZE             + MAXIMIZE_SCALE
        MINIMIZE             − MINIMIZE_NUMERATOR × sign(s) / (|s| + 1)²
        constraint s > bound − weight × PENALTY_SCALE

    Objective terms are scaled by weight × priority, as in the evaluator.
    """
    midpoint = {
        v.id: v.domain.min + v.domain.span / 2.0 for v in problem.variables
    }
    total = FitnessEvaluator(problem).weighted_sum(midpoint)

    slope = 0.0
    for objective in problem.objectives:
        if objective.type == ObjectiveType.MINIMIZE:
            term = -MINIMIZE_NUMERATOR * float(np.sign(total)) / (abs(total) + 1.0) ** 2
        else:
            term = MAXIMIZE_SCALE
        slope += term * objective.weight * objective.priority
    for constraint in problem.constraints:
        if total > constraint.bound:
            slope -= constraint.weight * PENALTY_SCALE
    return slope


def objective_heuristic(problem: OptimizationProblem) -> Heuristic:
    """
    Heuristic that pulls each variable towards the end of its domain where
    the problem's fitness is higher.

    A variable's pull is fitness_slope(problem) × variable.weight:
        pull > 0 → target the domain max
        pull < 0 → target the domain min
        else     → target the midpoint (same as midpoint_heuristic)
    """
    slope = fitness_slope(problem)
    targets: Dict[VariableId, float] = {}
    for variable in problem.variables:
        pull = slope * variable.weight
        if pull > 0.0:
            targets[variable.id] = 1.0
        elif pull < 0.0:
            targets[variable.id] = 0.0
        else:
            targets[variable.id] = MIDPOINT_TARGET

    def heuristic(variable: Variable, value: float) -> float:
        target = targets.get(variable.id, MIDPOINT_TARGET)
        return _inverse_distance(variable, value, target)

    return heuristic


class TransitionSampler:
    """
    Stateless next-value chooser shared by every ant of a run.

    The random generator is passed per call, so one sampler can serve ants
    running on different threads.
    """

    def __init__(self, heuristic: Optional[Heuristic] = None) -> None:
        self._heuristic: Heuristic = heuristic or midpoint_heuristic

    # ── Neighbourhood ─────────────────────────────────────────────────────────

    def neighbours(self, variable: Variable, current: float) -> NDArray[np.float64]:
        """
        Sorted, duplicate-free candidate next-values inside the domain.

        Never empty: if every lattice value falls outside the domain (only
        possible for a current value that is itself out of range), the
        current value snapped into the domain is returned alone.
        """
        lo, hi = variable.domain.min, variable.domain.max

        if variable.type == VariableType.BINARY:
            return np.array([0.0, 1.0], dtype=np.float64)

        if variable.type == VariableType.CONTINUOUS:
            step = variable.domain.span * CONTINUOUS_STEP_FRACTION
            offsets = np.arange(-CONTINUOUS_RADIUS, CONTINUOUS_RADIUS + 1, dtype=np.float64)
            return np.unique(np.clip(current + offsets * step, lo, hi))

        step = variable.domain.effective_step if variable.type == VariableType.DISCRETE else 1.0
        offsets = np.arange(-LATTICE_RADIUS, LATTICE_RADIUS + 1, dtype=np.float64)
        values = current + offsets * step

        slack = BOUND_TOLERANCE * max(1.0, abs(variable.domain.span))
        inside = (values >= lo - slack) & (values <= hi + slack)
        values = np.clip(values[inside], lo, hi)

        if values.size == 0:
            return np.array([variable.snap(current)], dtype=np.float64)
        return np.unique(values)

    # ── Probabilities ─────────────────────────────────────────────────────────

    def probabilities(
        self,
        variable: Variable,
        values: NDArray[np.float64],
        field: PheromoneField,
        parameters: ACOParameters,
    ) -> NDArray[np.float64]:
        """
        Normalised selection probabilities for a neighbourhood.

        Guards:
            Negative or non-finite desirabilities are treated as 0.0.
            An all-zero vector falls back to uniform over the neighbours:
            np.cumsum over zeros would otherwise select index 0 every time.
        """
        tau = field.level(variable.id)
        eta = np.array(
            [self._heuristic(variable, float(v)) for v in values],
            dtype=np.float64,
        )

        with np.errstate(over="ignore", invalid="ignore"):
            desirability = (tau ** parameters.alpha) * (eta ** parameters.beta)
        desirability = np.where(
            np.isfinite(desirability) & (desirability > 0.0), desirability, 0.0
        )

        total = float(desirability.sum())
        if total <= 0.0 or not np.isfinite(total):
            logger.debug(
                "Zero desirability for variable %s over %d neighbours; "
                "falling back to uniform choice.",
                variable.id, values.size,
            )
            return np.full(values.size, 1.0 / values.size, dtype=np.float64)

        return desirability / total

    # ── Selection ─────────────────────────────────────────────────────────────

    @staticmethod
    def select(
        values: NDArray[np.float64],
        probabilities: NDArray[np.float64],
        q0: float,
        rng: np.random.Generator,
    ) -> float:
        """
        Exploit with probability q0, otherwise roulette-wheel.

        Roulette-wheel via cumulative sum + searchsorted:
            cumsum = [0.05, 0.35, 0.55, 0.80, 1.00]
            u      = 0.42 → first index with cumsum[i] >= u → index 2
        The index is clamped because rounding can leave cumsum[-1] a hair
        below 1.0.
        """
        if rng.random() < q0:
            return float(values[int(np.argmax(probabilities))])

        cumsum = np.cumsum(probabilities)
        chosen = int(np.searchsorted(cumsum, rng.random()))
        chosen = min(chosen, values.size - 1)
        return float(values[chosen])

    def next_value(
        self,
        variable: Variable,
        current: float,
        field: PheromoneField,
        parameters: ACOParameters,
        rng: np.random.Generator,
    ) -> float:
        """One construction step for one variable."""
        values = self.neighbours(variable, current)
        probabilities = self.probabilities(variable, values, field, parameters)
        return self.select(values, probabilities, parameters.q0, rng)
