"""
aco_core/driver.py
──────────────────
OptimizationDriver: the main loop that turns a problem into a result.

State machine
──────────────
    INITIALIZING → ITERATING → {CONVERGED
                               | STAGNATING → RESTARTING → ITERATING
                               | EXHAUSTED
                               | CANCELLED} → TERMINATED

One iteration
──────────────
  1. Boundary checks: cancelled? iteration budget or wall-clock exhausted?
  2. Build: every slot constructs a new candidate from the committed
     pheromone field, optionally refined by local search. Slots are
     independent, so with workers > 1 they run on a ThreadPoolExecutor.
  3. Barrier: colony.commit() (evaporate, deposit, best, elite, metrics).
  4. Adaptive control of ρ/α/β when any adaptive flag is set.
  5. Convergence check (convergence > threshold), else stagnation check.
  6. Record: fitness_history entry, IterationRecord, on_iteration callback.

Termination is checked at iteration boundaries only. A cancel() that lands
while candidates are being built discards that partial iteration: the
result always reflects the last committed colony.

Determinism
────────────
The seed builds one numpy SeedSequence. The colony spawns one child
generator per slot and each slot only ever draws from its own generator,
so a seeded run produces the same result for any worker count.

Usage
──────
    driver = OptimizationDriver(problem, seed=42)
    result = driver.run()
    result.best_candidate.position
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import numpy as np

from optimizer.shared.models import (
    ACOParameters,
    Candidate,
    OptimizationProblem,
)
from optimizer.shared.results import (
    IterationRecord,
    OptimizationResult,
    RunState,
    RunSummary,
)
from aco_core.adaptive import AdaptiveController
from aco_core.ant import ConfigurationError, domain_error
from aco_core.colony import Colony
from aco_core.local_search import LocalSearchRefiner
from aco_core.reporting import PerformanceAnalyzer
from aco_core.transition import Heuristic, TransitionSampler, objective_heuristic

logger = logging.getLogger(__name__)

IterationCallback = Callable[[IterationRecord], None]
Clock = Callable[[], float]


def _duplicates(ids: List[str]) -> List[str]:
    seen: set = set()
    repeated: List[str] = []
    for item in ids:
        if item in seen and item not in repeated:
            repeated.append(item)
        seen.add(item)
    return repeated


def check_configuration(problem: OptimizationProblem) -> None:
    """
    Fail fast on a problem the colony cannot search.

    Collects every issue before raising, so the caller sees all of them at
    once rather than fixing one per attempt.

    Raises:
        ConfigurationError: with one reason per issue found.
    """
    reasons: List[str] = []

    if not problem.variables:
        reasons.append("no variables")
    if not problem.objectives:
        reasons.append("no objectives")
    if problem.parameters.colony_size <= 0:
        reasons.append(
            f"colony_size must be positive, got {problem.parameters.colony_size}"
        )

    for variable in problem.variables:
        error = domain_error(variable)
        if error is not None:
            reasons.append(error)

    for kind, ids in (
        ("variable", [v.id for v in problem.variables]),
        ("constraint", [c.id for c in problem.constraints]),
        ("objective", [o.id for o in problem.objectives]),
    ):
        for duplicate in _duplicates(ids):
            reasons.append(f"duplicate {kind} id {duplicate!r}")

    if reasons:
        raise ConfigurationError(reasons, problem_id=problem.id)


class OptimizationDriver:
    """
    Runs one optimisation. Single-use: build a new driver per run.

    Args:
        problem:      The problem to search. Validated on construction.
        seed:         Seed for the run's SeedSequence. None draws fresh
                      entropy from the OS.
        heuristic:    Desirability η(variable, value) for the transition
                      rule. Defaults to objective_heuristic(problem).
        on_iteration: Called with each IterationRecord after the barrier,
                      on the thread that called run().
        clock:        Monotonic seconds source. Tests inject a fake one.

    Raises:
        ConfigurationError: problem cannot be searched (see check_configuration).
    """

    def __init__(
        self,
        problem: OptimizationProblem,
        seed: Optional[int] = None,
        heuristic: Optional[Heuristic] = None,
        on_iteration: Optional[IterationCallback] = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        check_configuration(problem)
        self._problem = problem
        self._seed = seed
        self._sampler = TransitionSampler(heuristic or objective_heuristic(problem))
        self._refiner = LocalSearchRefiner(problem)
        self._controller = AdaptiveController()
        self._analyzer = PerformanceAnalyzer()
        self._on_iteration = on_iteration
        self._clock = clock
        self._cancel_event = threading.Event()
        self._started = False
        self._state = RunState.INITIALIZING
        self.colony: Optional[Colony] = None

    # ── Control ───────────────────────────────────────────────────────────────

    def cancel(self) -> None:
        """Ask the run to stop at the next iteration boundary. Thread-safe."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def state(self) -> RunState:
        return self._state

    # ── Main loop ─────────────────────────────────────────────────────────────

    def run(self) -> OptimizationResult:
        if self._started:
            raise RuntimeError("OptimizationDriver.run() may only be called once")
        self._started = True

        problem = self._problem
        parameters: ACOParameters = problem.parameters
        started_at = self._clock()
        time_budget_s = parameters.max_time_minutes * 60.0

        self._state = RunState.INITIALIZING
        colony = Colony(problem, parameters, np.random.SeedSequence(self._seed))
        self.colony = colony

        logger.info(
            "Starting ACO run for problem %s: %d variables, colony %d, "
            "max %d iterations, initial best %.4f.",
            problem.id, len(problem.variables), colony.size,
            parameters.max_iterations, colony.best_candidate.fitness,
        )

        fitness_history: List[float] = [colony.best_candidate.fitness]
        history: List[IterationRecord] = []
        iteration = 0
        stagnation_count = 0
        restarts = 0
        local_search_total = 0
        termination = RunState.EXHAUSTED

        executor = (
            ThreadPoolExecutor(max_workers=parameters.workers)
            if parameters.workers > 1 else None
        )
        self._state = RunState.ITERATING
        try:
            while True:
                if self._cancel_event.is_set():
                    termination = RunState.CANCELLED
                    break
                elapsed_s = self._clock() - started_at
                if iteration >= parameters.max_iterations or elapsed_s >= time_budget_s:
                    termination = RunState.EXHAUSTED
                    break

                built = self._build_population(colony, parameters, iteration + 1, executor)
                if self._cancel_event.is_set():
                    termination = RunState.CANCELLED
                    break

                iteration += 1
                local_search_improvements = sum(accepted for _, accepted in built)
                local_search_total += local_search_improvements
                improvements = colony.commit(
                    [candidate for candidate, _ in built],
                    parameters,
                    stagnation_count,
                )

                if AdaptiveController.enabled(parameters):
                    parameters = self._controller.adjust(parameters, colony.metrics)

                converged = colony.metrics.convergence > parameters.convergence_threshold
                restarted = False
                if not converged:
                    if colony.is_stagnant():
                        self._state = RunState.STAGNATING
                        stagnation_count += 1
                        if stagnation_count >= parameters.stagnation_limit:
                            self._state = RunState.RESTARTING
                            colony.restart(iteration)
                            restarts += 1
                            stagnation_count = 0
                            restarted = True
                        self._state = RunState.ITERATING
                    else:
                        stagnation_count = 0

                fitness_history.append(colony.best_candidate.fitness)
                record = self._record(
                    colony, parameters, iteration, improvements,
                    local_search_improvements, stagnation_count, restarted,
                    self._clock() - started_at,
                )
                history.append(record)
                logger.debug(
                    "Iteration %d: best=%.4f avg=%.4f diversity=%.4f "
                    "convergence=%.4f stagnation=%d",
                    iteration, record.best_fitness, record.average_fitness,
                    record.diversity, record.convergence, stagnation_count,
                )
                if self._on_iteration is not None:
                    self._on_iteration(record)

                if converged:
                    termination = RunState.CONVERGED
                    break
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        self._state = termination
        elapsed_minutes = (self._clock() - started_at) / 60.0
        result = self._assemble(
            colony, parameters, termination, iteration, elapsed_minutes,
            restarts, local_search_total, fitness_history, history,
        )
        self._state = RunState.TERMINATED

        logger.info(
            "ACO run for problem %s %s after %d iterations (%.3f min): "
            "best %.4f, feasible=%s, restarts=%d.",
            problem.id, termination.value, iteration, elapsed_minutes,
            result.best_candidate.fitness, result.best_candidate.feasible, restarts,
        )
        return result

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _build_population(
        self,
        colony: Colony,
        parameters: ACOParameters,
        iteration: int,
        executor: Optional[ThreadPoolExecutor],
    ) -> List[Tuple[Candidate, int]]:
        """New candidate per slot, in slot order, with local-search move counts."""

        def build(slot: int) -> Tuple[Candidate, int]:
            ant = colony.ants[slot]
            candidate = ant.construct(
                colony.candidates[slot],
                self._sampler,
                colony.field,
                parameters,
                iteration,
            )
            accepted = 0
            if parameters.local_search and self._refiner.should_refine(parameters, ant.rng):
                candidate, accepted = self._refiner.refine(
                    candidate, ant, parameters.local_search_steps,
                )
            return candidate, accepted

        slots = range(colony.size)
        if executor is None:
            return [build(slot) for slot in slots]
        return list(executor.map(build, slots))

    @staticmethod
    def _record(
        colony: Colony,
        parameters: ACOParameters,
        iteration: int,
        improvements: int,
        local_search_improvements: int,
        stagnation_count: int,
        restarted: bool,
        elapsed_s: float,
    ) -> IterationRecord:
        matrix = colony.field.snapshot()
        metrics = colony.metrics
        return IterationRecord(
            iteration=iteration,
            best_fitness=colony.best_candidate.fitness,
            average_fitness=metrics.average_fitness,
            diversity=metrics.diversity,
            convergence=metrics.convergence,
            stability=metrics.stability,
            rho=parameters.rho,
            alpha=parameters.alpha,
            beta=parameters.beta,
            pheromone_min=float(matrix.min()),
            pheromone_max=float(matrix.max()),
            improvements=improvements,
            local_search_improvements=local_search_improvements,
            stagnation_count=stagnation_count,
            restarted=restarted,
            elapsed_s=max(elapsed_s, 0.0),
        )

    def _assemble(
        self,
        colony: Colony,
        parameters: ACOParameters,
        termination: RunState,
        iterations: int,
        elapsed_minutes: float,
        restarts: int,
        local_search_improvements: int,
        fitness_history: List[float],
        history: List[IterationRecord],
    ) -> OptimizationResult:
        problem = self._problem
        best = colony.best_candidate
        metrics = colony.metrics

        evaluated = iterations * colony.size
        summary = RunSummary(
            total_iterations=iterations,
            total_time_minutes=max(elapsed_minutes, 0.0),
            initial_fitness=colony.initial_fitness,
            final_fitness=best.fitness,
            average_fitness=metrics.average_fitness,
            improvement_rate=colony.improvement_count / evaluated if evaluated else 0.0,
            convergence_rate=metrics.convergence,
            diversity=metrics.diversity,
            stability=metrics.stability,
            restarts=restarts,
            local_search_improvements=local_search_improvements,
            termination=termination,
            feasible=best.feasible,
        )
        performance = self._analyzer.performance(colony, problem, parameters)
        recommendations = self._analyzer.recommend(
            performance, problem, parameters, best.feasible,
        )
        return OptimizationResult(
            problem_id=problem.id,
            problem_name=problem.name,
            problem_type=problem.type,
            best_candidate=best,
            colony=colony.snapshot(),
            summary=summary,
            performance=performance,
            recommendations=recommendations,
            parameters=parameters,
            fitness_history=fitness_history,
            history=history,
        )


def optimize(
    problem: OptimizationProblem,
    seed: Optional[int] = None,
    heuristic: Optional[Heuristic] = None,
) -> OptimizationResult:
    """One-shot convenience wrapper around OptimizationDriver."""
    return OptimizationDriver(problem, seed=seed, heuristic=heuristic).run()
