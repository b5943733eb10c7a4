"""
aco_core/local_search.py
────────────────────────
Hill-climbing refinement of a single candidate.

Each step perturbs one randomly chosen variable by

    (U(0, 1) − 0.5) × PERTURBATION_FRACTION × range

clamps it into the domain, snaps it onto the variable's lattice, and
re-scores the position with the same evaluator the colony uses. The move is
kept only if fitness strictly improves. The climb stops at the first
non-improving move or after `max_steps` moves. Worse moves are never
accepted.

Snapping means small perturbations of discrete, integer and binary
variables often land back on the current value; such a move does not
improve fitness and ends the climb.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from optimizer.shared.models import ACOParameters, Candidate, OptimizationProblem, Variable
from aco_core.ant import Ant

PERTURBATION_FRACTION: float = 0.1
"""Maximum perturbation is ±half of this fraction of the domain range."""


class Refinement(NamedTuple):
    candidate: Candidate
    improvements: int


class LocalSearchRefiner:
    """
    Usage:
        refiner = LocalSearchRefiner(problem)
        if refiner.should_refine(parameters, ant.rng):
            candidate, accepted = refiner.refine(candidate, ant, parameters.local_search_steps)
    """

    def __init__(self, problem: OptimizationProblem) -> None:
        self._variables = list(problem.variables)

    @staticmethod
    def should_refine(parameters: ACOParameters, rng: np.random.Generator) -> bool:
        return bool(rng.random() < parameters.local_search_rate)

    @staticmethod
    def perturb(variable: Variable, value: float, rng: np.random.Generator) -> float:
        delta = (rng.random() - 0.5) * variable.domain.span * PERTURBATION_FRACTION
        return variable.snap(value + delta)

    def refine(self, candidate: Candidate, ant: Ant, max_steps: int) -> Refinement:
        best = candidate
        improvements = 0

        for _ in range(max_steps):
            variable = self._variables[int(ant.rng.integers(len(self._variables)))]
            position = dict(best.position)
            position[variable.id] = self.perturb(variable, position[variable.id], ant.rng)

            neighbour = ant.candidate(position, metadata=best.metadata)
            if not neighbour.fitness > best.fitness:
                break
            best = neighbour
            improvements += 1

        return Refinement(best, improvements)
