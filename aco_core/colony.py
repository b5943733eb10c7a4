"""
aco_core/colony.py
──────────────────
The Colony: candidates + shared pheromone field + aggregate metrics.

What the colony owns
─────────────────────
  • One Ant per slot (colony_size slots), each with its own random stream.
  • The current population: one Candidate per slot.
  • The best candidate ever observed. Its fitness never decreases, not even
    across restarts.
  • The PheromoneField.
  • The latest ColonyMetrics.

A colony is created once per run and discarded when the run ends. Two runs
never share a colony, so nothing here needs locking: the driver builds new
candidates in parallel, then calls commit() from a single thread.

The update barrier (commit)
────────────────────────────
  1. Evaporate the field (ρ from the iteration's parameters).
  2. Deposit from every new candidate.
  3. Linear scan for a new best (strict improvement; ties keep the incumbent).
  4. Elitist deposit from the best-so-far candidate (if elitism is on).
  5. Recompute metrics and annotate each candidate's metadata.

Index management
─────────────────
The pheromone field is keyed by VariableId in problem order; metrics stack
positions in the same order. _variable_ids is built once in __init__.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from optimizer.shared.models import (
    ACOParameters,
    Candidate,
    OptimizationProblem,
    VariableId,
)
from optimizer.shared.results import ColonySnapshot
from aco_core.ant import Ant
from aco_core.evaluator import FitnessEvaluator
from aco_core.metrics import ColonyMetrics, compute_metrics, search_rates
from aco_core.pheromone import PheromoneField

logger = logging.getLogger(__name__)

STAGNATION_GAP: float = 0.01
"""The colony is stagnant when best − average fitness falls below this."""


class Colony:
    """
    Population state of one optimisation run.

    Usage:
        colony = Colony(problem, parameters, seed_sequence)
        ...build new candidates from colony.ants / colony.candidates...
        colony.commit(new_candidates, parameters, stagnation_count)

    Attributes:
        ants:              List[Ant]        — one per slot.
        candidates:        List[Candidate]  — current population, slot order.
        best_candidate:    Candidate        — best ever observed.
        field:             PheromoneField
        metrics:           ColonyMetrics    — of the current population.
        improvement_count: int              — best-candidate improvements so far.
        initial_fitness:   float            — best fitness after initialisation.
    """

    def __init__(
        self,
        problem: OptimizationProblem,
        parameters: ACOParameters,
        seed_sequence: np.random.SeedSequence,
        evaluator: Optional[FitnessEvaluator] = None,
    ) -> None:
        """
        Spawn every ant, seed the pheromone field, find the initial best.

        Assumes a validated problem (see driver.check_configuration): at
        least one variable, one objective and a positive colony_size.
        """
        self._problem = problem
        self._variable_ids: List[VariableId] = problem.variable_ids
        self.evaluator = evaluator or FitnessEvaluator(problem)

        streams = seed_sequence.spawn(parameters.colony_size)
        self.ants: List[Ant] = [
            Ant(slot, problem, self.evaluator, np.random.default_rng(stream))
            for slot, stream in enumerate(streams)
        ]

        self.field = PheromoneField(
            self._variable_ids,
            init=parameters.pheromone_init,
            minimum=parameters.pheromone_min,
            maximum=parameters.pheromone_max,
        )

        self.candidates: List[Candidate] = [ant.spawn() for ant in self.ants]
        self.best_candidate: Candidate = self.candidates[0]
        for candidate in self.candidates[1:]:
            if candidate.fitness > self.best_candidate.fitness:
                self.best_candidate = candidate

        self.improvement_count = 0
        self.initial_fitness = self.best_candidate.fitness
        self.metrics: ColonyMetrics = compute_metrics(self.candidates, self._variable_ids)

    # ── Update barrier ────────────────────────────────────────────────────────

    def commit(
        self,
        new_candidates: Sequence[Candidate],
        parameters: ACOParameters,
        stagnation_count: int = 0,
    ) -> int:
        """
        Install one iteration's candidates and run the serialised update.

        Args:
            new_candidates:   One candidate per slot, slot order.
            parameters:       The parameters the iteration was built with.
            stagnation_count: Consecutive stagnant iterations so far (recorded
                              in candidate metadata).

        Returns:
            Number of best-candidate improvements found in this population.
        """
        if len(new_candidates) != len(self.ants):
            raise ValueError(
                f"commit() expects {len(self.ants)} candidates, "
                f"got {len(new_candidates)}"
            )

        # 1–2. Evaporate, then deposit.
        self.field.evaporate(parameters.rho)
        self.field.deposit_all((c.position, c.fitness) for c in new_candidates)

        # 3. Best-candidate scan.
        improvements, best_slot = self._scan_for_best(new_candidates)
        self.improvement_count += improvements
        provisional_best = (
            new_candidates[best_slot] if best_slot is not None else self.best_candidate
        )

        # 5 (part). Annotate metadata, producing the committed candidate values.
        rates = search_rates(new_candidates, provisional_best, self._variable_ids)
        self.candidates = [
            candidate.with_metadata(
                improvement_count=self.improvement_count,
                stagnation_count=stagnation_count,
                exploration_rate=exploration,
                exploitation_rate=exploitation,
            )
            for candidate, (exploration, exploitation) in zip(new_candidates, rates)
        ]
        if best_slot is not None:
            self.best_candidate = self.candidates[best_slot]

        # 4. Elitist reinforcement of the best-so-far trail.
        if parameters.elitism:
            self.field.deposit_elite(
                self.best_candidate.position,
                self.best_candidate.fitness,
                parameters.elitism_rate * len(self.ants),
            )

        # 5. Metrics.
        self.metrics = compute_metrics(self.candidates, self._variable_ids)
        return improvements

    def _scan_for_best(self, candidates: Sequence[Candidate]) -> tuple[int, Optional[int]]:
        best_fitness = self.best_candidate.fitness
        best_slot: Optional[int] = None
        improvements = 0
        for slot, candidate in enumerate(candidates):
            if candidate.fitness > best_fitness:
                best_fitness = candidate.fitness
                best_slot = slot
                improvements += 1
        return improvements, best_slot

    # ── Stagnation & restart ──────────────────────────────────────────────────

    def is_stagnant(self) -> bool:
        """
        True when the population's best is within STAGNATION_GAP of its mean.

        Uses the current population's best, not the best ever: a colony that
        has collapsed onto one point is stagnant even if it once did better.
        """
        finite = [c.fitness for c in self.candidates if math.isfinite(c.fitness)]
        if not finite:
            return False
        return (max(finite) - self.metrics.average_fitness) < STAGNATION_GAP

    def restart(self, iteration: int) -> None:
        """
        Reinitialise every candidate from scratch.

        The pheromone field and the best-ever candidate are kept: a restart
        throws away the population, not what the colony has learned.
        """
        self.candidates = [ant.spawn(iteration) for ant in self.ants]
        improvements, best_slot = self._scan_for_best(self.candidates)
        if best_slot is not None:
            self.improvement_count += improvements
            self.best_candidate = self.candidates[best_slot]
        self.metrics = compute_metrics(self.candidates, self._variable_ids)
        logger.info(
            "Colony restarted at iteration %d (best fitness %.4f kept).",
            iteration, self.best_candidate.fitness,
        )

    # ── Output ────────────────────────────────────────────────────────────────

    def snapshot(self) -> ColonySnapshot:
        return ColonySnapshot(
            candidates=list(self.candidates),
            best_candidate=self.best_candidate,
            pheromone=self.field.as_dict(),
            average_fitness=self.metrics.average_fitness,
            diversity=self.metrics.diversity,
            convergence=self.metrics.convergence,
            stability=self.metrics.stability,
        )

    @property
    def size(self) -> int:
        return len(self.ants)

    def __repr__(self) -> str:
        return (
            f"Colony(size={self.size}, best={self.best_candidate.fitness:.4f}, "
            f"average={self.metrics.average_fitness:.4f}, "
            f"diversity={self.metrics.diversity:.4f})"
        )
