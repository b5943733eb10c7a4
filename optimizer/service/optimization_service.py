"""
optimizer/service/optimization_service.py
──────────────────────────────────────────
OptimizationService: the caller side of the engine.

The engine (aco_core) performs no I/O and keeps nothing after a run. This
service is the thin in-process layer that does:

  1. Validate   → validate_problem() (ProblemRejectedError)
  2. Run        → OptimizationDriver (ConfigurationError propagates)
  3. Record     → bounded history of completed runs and run durations
  4. Notify     → completion listeners, called after each run

Listeners are where a caller persists results or publishes "run completed"
events. A listener that raises is logged with its traceback and skipped;
it never changes the result returned to the caller.

Thread safety
──────────────
optimize() may be called from several threads at once: every run owns its
own driver and colony. The shared bookkeeping (history, active drivers,
listeners) is guarded by a single lock. Listeners run on the thread that
called optimize(), outside the lock.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from typing import Callable, Dict, List, Optional

from optimizer.shared.models import OptimizationProblem
from optimizer.shared.results import IterationRecord, OptimizationResult, RunState
from optimizer.service.validation import ProblemRejectedError, validate_problem
from aco_core.driver import OptimizationDriver
from aco_core.transition import Heuristic

logger = logging.getLogger(__name__)

CompletionListener = Callable[[OptimizationResult], None]

HISTORY_SIZE: int = 100
"""Completed runs kept for get_result() / get_completed_runs()."""


class OptimizationService:
    """
    Validates, runs, records and announces optimisation runs.

    Public API:
        optimize(problem, seed, heuristic)  → OptimizationResult
        cancel(problem_id)                  → bool
        add_listener(callback)              → None
        get_result(problem_id)              → Optional[OptimizationResult]
        get_completed_runs(limit)           → List[OptimizationResult]
        get_service_metrics()               → Dict

    Attributes:
        completed_runs : deque(maxlen=history_size) — newest first
        rejected_count : problems refused by validation
    """

    def __init__(self, history_size: int = HISTORY_SIZE) -> None:
        self.completed_runs: deque = deque(maxlen=history_size)
        self.rejected_count = 0
        self._listeners: List[CompletionListener] = []
        self._active: Dict[str, OptimizationDriver] = {}
        self._lock = threading.Lock()

    # ── Runs ──────────────────────────────────────────────────────────────────

    def optimize(
        self,
        problem: OptimizationProblem,
        seed: Optional[int] = None,
        heuristic: Optional[Heuristic] = None,
        on_iteration: Optional[Callable[[IterationRecord], None]] = None,
    ) -> OptimizationResult:
        """
        Validate and run one problem, then record and announce the result.

        Raises:
            ProblemRejectedError: the problem failed service validation.
            ConfigurationError:   the colony cannot search the problem.
            ValueError:           a run for the same problem id is in progress.
        """
        try:
            validate_problem(problem)
        except ProblemRejectedError as exc:
            with self._lock:
                self.rejected_count += 1
            logger.warning("Problem %s rejected: %s", problem.id, exc.reason)
            raise

        driver = OptimizationDriver(
            problem, seed=seed, heuristic=heuristic, on_iteration=on_iteration,
        )
        with self._lock:
            if problem.id in self._active:
                raise ValueError(f"Problem {problem.id!r} is already running")
            self._active[problem.id] = driver

        try:
            result = driver.run()
        finally:
            with self._lock:
                self._active.pop(problem.id, None)

        with self._lock:
            self.completed_runs.appendleft(result)
            listeners = list(self._listeners)

        self._notify(listeners, result)
        return result

    def cancel(self, problem_id: str) -> bool:
        """
        Ask a running problem to stop at its next iteration boundary.

        Returns False when no run for problem_id is in progress.
        """
        with self._lock:
            driver = self._active.get(problem_id)
        if driver is None:
            return False
        driver.cancel()
        logger.info("Cancellation requested for problem %s.", problem_id)
        return True

    # ── Listeners ─────────────────────────────────────────────────────────────

    def add_listener(self, callback: CompletionListener) -> None:
        with self._lock:
            self._listeners.append(callback)

    def _notify(self, listeners: List[CompletionListener], result: OptimizationResult) -> None:
        for listener in listeners:
            try:
                listener(result)
            except Exception:
                logger.exception(
                    "Completion listener %r failed for problem %s.",
                    listener, result.problem_id,
                )

    # ── Queries ───────────────────────────────────────────────────────────────

    def get_result(self, problem_id: str) -> Optional[OptimizationResult]:
        """Most recent completed result for a problem. None if not found."""
        with self._lock:
            for result in self.completed_runs:
                if result.problem_id == problem_id:
                    return result
        return None

    def get_completed_runs(self, limit: int = 50) -> List[OptimizationResult]:
        """Recently completed runs (newest first, up to limit)."""
        with self._lock:
            return list(self.completed_runs)[:limit]

    def get_service_metrics(self) -> dict:
        """
        Aggregate numbers over the retained history.

        Metrics:
            completed_runs:      Runs in history.
            active_runs:         Runs in progress.
            rejected_problems:   Problems refused by validation.
            avg_run_minutes:     Mean wall-clock duration.
            avg_final_fitness:   Mean best fitness (finite values only).
            feasible_rate:       Share of runs whose best candidate is feasible.
            terminations:        Count per termination state.
        """
        with self._lock:
            runs = list(self.completed_runs)
            active = len(self._active)
            rejected = self.rejected_count

        durations = [r.summary.total_time_minutes for r in runs]
        finals = [
            r.summary.final_fitness for r in runs if math.isfinite(r.summary.final_fitness)
        ]
        terminations: Dict[str, int] = {state.value: 0 for state in (
            RunState.CONVERGED, RunState.EXHAUSTED, RunState.CANCELLED,
        )}
        for run in runs:
            terminations[run.summary.termination.value] = (
                terminations.get(run.summary.termination.value, 0) + 1
            )

        return {
            "completed_runs": len(runs),
            "active_runs": active,
            "rejected_problems": rejected,
            "avg_run_minutes": round(sum(durations) / len(durations), 4) if durations else 0.0,
            "avg_final_fitness": round(sum(finals) / len(finals), 4) if finals else 0.0,
            "feasible_rate": (
                round(sum(1 for r in runs if r.summary.feasible) / len(runs), 4)
                if runs else 0.0
            ),
            "terminations": terminations,
        }
