"""
aco_core/ant.py
───────────────
One ant: owns one colony slot and builds that slot's candidates.

What does an ant do?
─────────────────────
An ant is the stateful part of a candidate's life:

  1. spawn()      — samples a fresh random position (initialisation and
                    every colony restart) and scores it.
  2. construct()  — rebuilds the position variable by variable, asking the
                    TransitionSampler for each next value, then scores it.
  3. candidate()  — explicit builder that turns a position into a scored
                    Candidate. Local search uses it too, so every Candidate
                    the engine produces comes through one constructor.

Each ant draws randomness from its own numpy Generator. Generators are
spawned from one SeedSequence per run, so a slot's random stream does not
depend on which thread built it or in which order.

Initial sampling by type
─────────────────────────
  continuous → U(min, max)
  discrete   → uniform over {min, min+step, …, max}
  binary     → uniform over {0, 1}
  integer    → uniform over [ceil(min), floor(max)]
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from optimizer.shared.models import (
    ACOParameters,
    Candidate,
    CandidateMetadata,
    OptimizationProblem,
    Position,
    Variable,
    VariableType,
)
from aco_core.evaluator import FitnessEvaluator
from aco_core.pheromone import PheromoneField
from aco_core.transition import TransitionSampler


class ConfigurationError(ValueError):
    """
    Raised when a problem cannot be searched at all.

    When is this raised?
        • No variables, or no objectives.
        • colony_size ≤ 0.
        • A variable whose domain is inverted (max < min), a discrete
          variable with an empty lattice, or an integer variable whose
          domain contains no whole number.
        • Duplicate variable, constraint or objective ids.

    Raised before the first iteration. A degenerate colony is never built.

    Attributes:
        problem_id: Id of the offending problem (None when unknown).
        reasons:    Every problem found, one line each.
    """

    def __init__(self, reasons: List[str], problem_id: Optional[str] = None) -> None:
        self.problem_id = problem_id
        self.reasons = list(reasons)
        prefix = f"Problem {problem_id!r} " if problem_id else "Problem "
        super().__init__(prefix + "is not searchable: " + "; ".join(self.reasons))


def domain_error(variable: Variable) -> Optional[str]:
    """
    Describe why a variable's domain cannot be sampled, or None if it can.
    """
    domain = variable.domain
    if not domain.min <= domain.max:
        return (
            f"variable {variable.id!r} has an inverted domain "
            f"[{domain.min:g}, {domain.max:g}]"
        )
    if variable.type == VariableType.INTEGER:
        first, last = variable.integer_bounds
        if first > last:
            return (
                f"integer variable {variable.id!r} has no whole number in "
                f"[{domain.min:g}, {domain.max:g}]"
            )
    if variable.type == VariableType.BINARY and not (domain.min <= 0.0 and domain.max >= 1.0):
        return (
            f"binary variable {variable.id!r} domain "
            f"[{domain.min:g}, {domain.max:g}] does not contain both 0 and 1"
        )
    return None


def sample_value(variable: Variable, rng: np.random.Generator) -> float:
    """
    Draw one value uniformly from a variable's domain.

    Raises:
        ConfigurationError: the domain cannot be sampled (see domain_error).
    """
    problem = domain_error(variable)
    if problem is not None:
        raise ConfigurationError([problem])

    lo, hi = variable.domain.min, variable.domain.max

    if variable.type == VariableType.CONTINUOUS:
        return float(rng.uniform(lo, hi))
    if variable.type == VariableType.BINARY:
        return float(rng.integers(0, 2))
    if variable.type == VariableType.INTEGER:
        first, last = variable.integer_bounds
        return float(rng.integers(first, last + 1))

    index = int(rng.integers(0, variable.lattice_size))
    return lo + index * variable.domain.effective_step


class Ant:
    """
    Builds every Candidate for one colony slot.

    Usage:
        ant       = Ant(slot=3, problem=problem, evaluator=evaluator, rng=rng)
        first     = ant.spawn()
        next_one  = ant.construct(first, sampler, field, parameters, iteration=1)

    Attributes:
        slot:       Index of this ant in the colony (stable for the run).
        generation: Incremented on every spawn(); part of candidate ids.
    """

    def __init__(
        self,
        slot: int,
        problem: OptimizationProblem,
        evaluator: FitnessEvaluator,
        rng: np.random.Generator,
    ) -> None:
        self.slot = slot
        self.generation = -1
        self._problem = problem
        self._evaluator = evaluator
        self.rng = rng

    # ── Candidate builders ─────────────────────────────────────────────────────

    def spawn(self, iteration: int = 0) -> Candidate:
        """Sample a brand-new position and score it."""
        self.generation += 1
        position: Position = {
            variable.id: sample_value(variable, self.rng)
            for variable in self._problem.variables
        }
        return self.candidate(
            position,
            metadata=CandidateMetadata(iteration=iteration),
        )

    def construct(
        self,
        current: Candidate,
        sampler: TransitionSampler,
        field: PheromoneField,
        parameters: ACOParameters,
        iteration: int,
    ) -> Candidate:
        """
        Rebuild the position one variable at a time and score the result.

        Reads only the committed pheromone field and the iteration's
        parameters. The path records one snapshot per construction step.
        """
        position: Position = {}
        for variable in self._problem.variables:
            position[variable.id] = sampler.next_value(
                variable,
                current.position[variable.id],
                field,
                parameters,
                self.rng,
            )
        return self.candidate(
            position,
            metadata=current.metadata.model_copy(update={"iteration": iteration}),
        )

    def candidate(
        self,
        position: Position,
        metadata: Optional[CandidateMetadata] = None,
    ) -> Candidate:
        """
        Explicit builder: score a position and wrap it as a new Candidate.

        The position dict is copied, so the caller may keep mutating its own.
        """
        owned: Position = dict(position)
        evaluation = self._evaluator.evaluate(owned)
        return Candidate(
            id=f"ant-{self.slot}-{max(self.generation, 0)}",
            position=owned,
            fitness=evaluation.fitness,
            objective_values=evaluation.objective_values,
            constraint_values=evaluation.constraint_values,
            feasible=evaluation.feasible,
            violations=evaluation.violations,
            path=[{vid: value} for vid, value in owned.items()],
            metadata=metadata if metadata is not None else CandidateMetadata(),
        )

    def __repr__(self) -> str:
        return f"Ant(slot={self.slot}, generation={self.generation})"
