"""
optimizer/shared/results.py
───────────────────────────
What a run produces: the durable output of an optimisation.

Why this is a separate file from models.py
------------------------------------------
models.py defines what the caller *asks for* (a problem and its
parameters) and the engine's working values (candidates).
results.py defines what the caller *gets back* once the colony is gone.

  models.py  → "What are we searching?"
  results.py → "What did we find, and how well did the search go?"

Every model here is plain pydantic: callers persist a run with
`result.model_dump()` / `result.model_dump_json()` and publish their own
"run completed" events. The engine itself does no I/O.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field

from optimizer.shared.models import (
    ACOParameters,
    Candidate,
    ProblemType,
    VariableId,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunState(str, Enum):
    """
    Driver lifecycle.

    INITIALIZING → ITERATING → {CONVERGED | STAGNATING → RESTARTING → ITERATING
                               | EXHAUSTED | CANCELLED} → TERMINATED

    The summary's `termination` field holds the state the run left the
    iteration loop through: CONVERGED, EXHAUSTED or CANCELLED.
    """
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    STAGNATING = "stagnating"
    RESTARTING = "restarting"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    TERMINATED = "terminated"


class IterationRecord(BaseModel):
    """
    One row of a run's history, captured after the iteration's update barrier.

    Fields:
        iteration           → 1-based iteration number.
        best_fitness        → Best-ever fitness after this iteration.
        average_fitness     → Mean fitness of the current population.
        diversity / convergence / stability → Colony metrics.
        rho / alpha / beta  → Parameters in force for the *next* iteration
                              (after adaptive control).
        pheromone_min / pheromone_max → Smallest and largest entry of the
                              pheromone field after the update.
        improvements        → Best-candidate improvements found this iteration.
        local_search_improvements → Hill-climbing moves accepted this iteration.
        stagnation_count    → Consecutive stagnant iterations, after the check.
        restarted           → True if the colony was reinitialised.
        elapsed_s           → Wall-clock seconds since the run started.
    """
    iteration: int = Field(..., ge=1)
    best_fitness: float
    average_fitness: float
    diversity: float = Field(..., ge=0)
    convergence: float
    stability: float
    rho: float
    alpha: float
    beta: float
    pheromone_min: float
    pheromone_max: float
    improvements: int = Field(0, ge=0)
    local_search_improvements: int = Field(0, ge=0)
    stagnation_count: int = Field(0, ge=0)
    restarted: bool = False
    elapsed_s: float = Field(0.0, ge=0)


class ColonySnapshot(BaseModel):
    """The colony as it stood when the run terminated."""
    candidates: List[Candidate] = Field(default_factory=list)
    best_candidate: Candidate
    pheromone: Dict[VariableId, Dict[VariableId, float]] = Field(default_factory=dict)
    average_fitness: float
    diversity: float
    convergence: float
    stability: float


class RunSummary(BaseModel):
    """
    Headline numbers of a run.

    Fields:
        total_iterations   → Fully committed iterations.
        total_time_minutes → Wall-clock duration.
        initial_fitness    → Best fitness right after initialisation.
        final_fitness      → Best-ever fitness (the returned candidate's).
        average_fitness    → Final population mean.
        improvement_rate   → improvements / (iterations × colony_size).
                             0.0 when no iteration ran.
        convergence_rate   → Final colony convergence.
        restarts           → Stagnation restarts performed.
        termination        → CONVERGED, EXHAUSTED or CANCELLED.
        feasible           → Feasibility of the returned candidate.
    """
    total_iterations: int = Field(..., ge=0)
    total_time_minutes: float = Field(..., ge=0)
    initial_fitness: float
    final_fitness: float
    average_fitness: float
    improvement_rate: float = Field(..., ge=0)
    convergence_rate: float
    diversity: float
    stability: float
    restarts: int = Field(0, ge=0)
    local_search_improvements: int = Field(0, ge=0)
    termination: RunState
    feasible: bool


class PerformanceMetrics(BaseModel):
    """
    Quality scores derived from the final colony.

        converged  → convergence exceeded the run's threshold.
        efficiency → best / (population mean + 1).
        quality    → best / (n_objectives × 1000 + 1).
    """
    converged: bool
    convergence: float
    stability: float
    diversity: float
    efficiency: float
    quality: float


class Recommendations(BaseModel):
    """Actionable text, grouped by how soon it is worth acting on."""
    immediate: List[str] = Field(default_factory=list)
    short_term: List[str] = Field(default_factory=list)
    long_term: List[str] = Field(default_factory=list)


class OptimizationResult(BaseModel):
    """
    Everything a caller needs after a run.

    fitness_history[0] is the best fitness after initialisation; entry k is
    the best-ever fitness after iteration k. It never decreases.
    """
    problem_id: str
    problem_name: str = ""
    problem_type: ProblemType
    best_candidate: Candidate
    colony: ColonySnapshot
    summary: RunSummary
    performance: PerformanceMetrics
    recommendations: Recommendations
    parameters: ACOParameters
    fitness_history: List[float] = Field(default_factory=list)
    history: List[IterationRecord] = Field(default_factory=list)
    completed_at: datetime = Field(default_factory=_utcnow)
