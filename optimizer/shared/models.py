"""
optimizer/shared/models.py
──────────────────────────
The single source of truth for every data structure the optimiser uses.

Design philosophy
-----------------
Every model answers one question: "What does the colony *need to know*
about this thing in order to search, score, or report?"

The problem definition (variables, constraints, objectives, parameters) is
immutable once a run starts. Candidates are owned values: the engine builds
a fresh Candidate for every construction or refinement step instead of
editing one that another structure may already reference.

Reading guide
-------------
Read top-to-bottom. Each model builds on the ones above it.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, List, NewType, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: IDENTIFIERS
# Distinct aliases so a constraint id is never used to index a position.
# ─────────────────────────────────────────────────────────────────────────────

VariableId = NewType("VariableId", str)
ConstraintId = NewType("ConstraintId", str)
ObjectiveId = NewType("ObjectiveId", str)

# A position maps every variable to its current value.
# e.g., {"trucks": 4.0, "shift_hours": 7.5}
Position = Dict[VariableId, float]


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: ENUMERATIONS
# ─────────────────────────────────────────────────────────────────────────────

class ProblemType(str, Enum):
    """
    The business problem a run is solving.

    Informational only — the engine treats every problem type identically.
    Kept on the result so callers can group stored runs.
    """
    ROUTE_OPTIMIZATION = "route_optimization"
    VEHICLE_ASSIGNMENT = "vehicle_assignment"
    DOCK_SCHEDULING = "dock_scheduling"
    EQUIPMENT_UTILIZATION = "equipment_utilization"
    INVENTORY_OPTIMIZATION = "inventory_optimization"
    WORKFORCE_SCHEDULING = "workforce_scheduling"
    DEMAND_FORECASTING = "demand_forecasting"
    PRICING_OPTIMIZATION = "pricing_optimization"


class VariableType(str, Enum):
    """
    How a decision variable moves through its domain.

    CONTINUOUS → any real value in [min, max].
    DISCRETE   → the lattice {min, min+step, …, max}.
    BINARY     → 0 or 1.
    INTEGER    → any whole number in [min, max].
    """
    CONTINUOUS = "continuous"
    DISCRETE = "discrete"
    BINARY = "binary"
    INTEGER = "integer"


class ConstraintType(str, Enum):
    """
    EQUALITY    → satisfied iff |value − bound| ≤ EQUALITY_TOLERANCE.
    INEQUALITY  → satisfied iff value ≤ bound.
    BOUND       → penalty term only; never flips feasibility.
    LOGICAL     → penalty term only; never flips feasibility.
    """
    EQUALITY = "equality"
    INEQUALITY = "inequality"
    BOUND = "bound"
    LOGICAL = "logical"


class ObjectiveType(str, Enum):
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: PROBLEM DEFINITION
# What the caller hands to the engine. Frozen: a running colony must never
# see its search space change underneath it.
# ─────────────────────────────────────────────────────────────────────────────

class Domain(BaseModel):
    """
    The admissible range of one variable.

    Fields:
        min  → Lower bound (inclusive).
        max  → Upper bound (inclusive).
        step → Lattice spacing for DISCRETE variables. Ignored by other types.
               None means 1.0.

    An inverted domain (max < min) is accepted here on purpose: rejecting it
    is the job of problem validation, which reports every problem at once
    instead of failing on the first field.
    """
    model_config = ConfigDict(frozen=True)

    min: float
    max: float
    step: Optional[float] = Field(
        None, gt=0,
        description="Lattice spacing for discrete variables. Defaults to 1.0."
    )

    @property
    def span(self) -> float:
        """max − min. Negative for an inverted domain."""
        return self.max - self.min

    @property
    def effective_step(self) -> float:
        return self.step if self.step is not None else 1.0


class Variable(BaseModel):
    """
    One decision variable of the problem.

    Fields:
        id     → Unique key used in every position dict.
        name   → Human-readable label. Defaults to the id.
        type   → How the variable moves (see VariableType).
        domain → Admissible range.
        weight → Coefficient of this variable in every objective and
                 constraint value (value = Σ position[v] × v.weight).
    """
    model_config = ConfigDict(frozen=True)

    id: VariableId
    name: str = ""
    type: VariableType = VariableType.CONTINUOUS
    domain: Domain
    weight: float = Field(1.0, description="Coefficient in the weighted-sum evaluation")

    @property
    def label(self) -> str:
        """name when given, otherwise the id."""
        return self.name or self.id

    @property
    def integer_bounds(self) -> tuple[int, int]:
        """Smallest and largest whole numbers inside the domain."""
        return math.ceil(self.domain.min), math.floor(self.domain.max)

    @property
    def lattice_size(self) -> int:
        """
        Number of admissible values for DISCRETE variables.

        The 1e-9 slack keeps max itself on the lattice when (max − min) / step
        lands a hair below a whole number in floating point.
        """
        if self.domain.span < 0:
            return 0
        return int(math.floor(self.domain.span / self.domain.effective_step + 1e-9)) + 1

    def snap(self, value: float) -> float:
        """
        Clamp a value into the domain and onto the variable's lattice.

        CONTINUOUS → clamp only.
        DISCRETE   → nearest lattice point.
        BINARY     → 0.0 or 1.0, whichever is nearer.
        INTEGER    → nearest whole number inside the domain.
        """
        lo, hi = self.domain.min, self.domain.max
        clamped = min(max(value, lo), hi)

        if self.type == VariableType.CONTINUOUS:
            return clamped
        if self.type == VariableType.BINARY:
            return 1.0 if clamped >= 0.5 else 0.0
        if self.type == VariableType.INTEGER:
            first, last = self.integer_bounds
            return float(min(max(round(clamped), first), last))

        step = self.domain.effective_step
        index = round((clamped - lo) / step)
        index = min(max(index, 0), self.lattice_size - 1)
        return lo + index * step


class Constraint(BaseModel):
    """
    A soft-penalised, feasibility-checked restriction on a position.

    Fields:
        id         → Unique key in Candidate.constraint_values.
        name       → Used in violation messages. Defaults to the id.
        type       → See ConstraintType.
        expression → Informational. Values are computed as the weighted sum
                     of all variables, never by parsing this string.
        bound      → Threshold the value is compared against.
        weight     → Penalty multiplier for violations.
    """
    model_config = ConfigDict(frozen=True)

    id: ConstraintId
    name: str = ""
    type: ConstraintType = ConstraintType.INEQUALITY
    expression: str = ""
    bound: float
    weight: float = Field(1.0, ge=0, description="Penalty multiplier")

    @property
    def label(self) -> str:
        """name when given, otherwise the id."""
        return self.name or self.id


class Objective(BaseModel):
    """
    One goal the colony optimises.

    Fields:
        id         → Unique key in Candidate.objective_values.
        type       → MINIMIZE or MAXIMIZE.
        expression → Informational (see Constraint.expression).
        weight     → Relative importance across objectives.
        priority   → 1–10, higher is more important. Multiplies weight.
    """
    model_config = ConfigDict(frozen=True)

    id: ObjectiveId
    name: str = ""
    type: ObjectiveType = ObjectiveType.MAXIMIZE
    expression: str = ""
    weight: float = Field(1.0, ge=0, description="Objective weight")
    priority: int = Field(1, ge=1, le=10, description="1-10, higher is more important")

    @property
    def label(self) -> str:
        """name when given, otherwise the id."""
        return self.name or self.id


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 4: RUN CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

class ACOParameters(BaseModel):
    """
    Every tunable of one optimisation run.

    Only the AdaptiveController changes these during a run, and it does so
    by returning an updated copy. The instance the caller supplied is never
    mutated, so one parameter set can be reused across runs.

    colony_size is deliberately not bounded here: a non-positive colony is a
    configuration error reported by problem validation and by the driver.
    """
    colony_size: int = Field(20, description="Candidates per iteration")
    max_iterations: int = Field(100, ge=0, description="Iteration cap")
    max_time_minutes: float = Field(5.0, gt=0, description="Wall-clock budget")
    convergence_threshold: float = Field(
        0.999, ge=0.0, le=1.0,
        description="Stop once colony convergence exceeds this value"
    )

    alpha: float = Field(1.0, ge=0, description="Pheromone exponent")
    beta: float = Field(2.0, ge=0, description="Heuristic exponent")
    rho: float = Field(0.1, ge=0.0, le=1.0, description="Evaporation rate")
    q0: float = Field(0.9, ge=0.0, le=1.0, description="Exploitation probability")

    pheromone_init: float = Field(1.0, ge=0)
    pheromone_min: float = Field(0.01, ge=0)
    pheromone_max: float = Field(10.0, ge=0)

    adaptive_rho: bool = False
    adaptive_alpha: bool = False
    adaptive_beta: bool = False

    local_search: bool = False
    local_search_rate: float = Field(
        0.1, ge=0.0, le=1.0,
        description="Probability that a candidate is refined in an iteration"
    )
    max_local_search: Optional[int] = Field(
        None, ge=1,
        description="Hill-climbing step cap. None means max_iterations."
    )

    elitism: bool = False
    elitism_rate: float = Field(
        0.1, ge=0.0, le=1.0,
        description="Elite weight as a fraction of colony_size"
    )

    stagnation_limit: int = Field(
        10, ge=1,
        description="Consecutive stagnant iterations before a restart"
    )
    workers: int = Field(
        1, ge=1,
        description="Threads used to build candidates. 1 = sequential."
    )

    @model_validator(mode="after")
    def _pheromone_bounds_ordered(self) -> "ACOParameters":
        if not (self.pheromone_min <= self.pheromone_init <= self.pheromone_max):
            raise ValueError(
                "pheromone bounds must satisfy min <= init <= max, got "
                f"min={self.pheromone_min}, init={self.pheromone_init}, "
                f"max={self.pheromone_max}"
            )
        return self

    @property
    def local_search_steps(self) -> int:
        if self.max_local_search is not None:
            return self.max_local_search
        return max(self.max_iterations, 1)


class OptimizationProblem(BaseModel):
    """
    The complete input of one run.

    Fields:
        id          → Caller's key for this problem. Used to look up results.
        type        → Business problem class (informational).
        variables   → Search space. Order is stable and defines the pheromone
                      matrix indices.
        constraints → May be empty.
        objectives  → At least one is required to run.
        parameters  → Run configuration.
        data        → Opaque problem data for caller-supplied heuristics.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    type: ProblemType = ProblemType.VEHICLE_ASSIGNMENT
    description: str = ""
    variables: List[Variable] = Field(default_factory=list)
    constraints: List[Constraint] = Field(default_factory=list)
    objectives: List[Objective] = Field(default_factory=list)
    parameters: ACOParameters = Field(default_factory=ACOParameters)
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def variable_ids(self) -> List[VariableId]:
        return [v.id for v in self.variables]


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 5: CANDIDATE ("ANT")
# One point in the search space plus everything derived from it.
# ─────────────────────────────────────────────────────────────────────────────

class CandidateMetadata(BaseModel):
    """
    Search bookkeeping attached to a candidate.

    iteration         → Iteration that produced this candidate state.
    improvement_count → Run-wide count of best-candidate improvements so far.
    stagnation_count  → Consecutive stagnant iterations when this state was built.
    exploration_rate  → distance_to_best / (distance_to_mean_position + 1).
    exploitation_rate → distance_to_mean_position / (distance_to_best + 1).
    """
    iteration: int = 0
    improvement_count: int = 0
    stagnation_count: int = 0
    exploration_rate: float = 0.0
    exploitation_rate: float = 0.0


class Candidate(BaseModel):
    """
    One trial solution.

    Fields:
        id                → "ant-<slot>-<generation>", stable per colony slot.
        position          → Value of every variable.
        fitness           → Scalar score; higher is better. −inf if scoring
                            produced a non-finite number.
        objective_values  → Raw value per objective (before weighting).
        constraint_values → Raw value per constraint (before comparison).
        feasible          → True iff no equality/inequality constraint fails.
        violations        → One human-readable line per failed constraint.
        path              → Ordered construction steps: one single-entry
                            {variable_id: value} snapshot per variable.
        metadata          → See CandidateMetadata.
    """
    id: str
    position: Position
    fitness: float = float("-inf")
    objective_values: Dict[ObjectiveId, float] = Field(default_factory=dict)
    constraint_values: Dict[ConstraintId, float] = Field(default_factory=dict)
    feasible: bool = True
    violations: List[str] = Field(default_factory=list)
    path: List[Position] = Field(default_factory=list)
    metadata: CandidateMetadata = Field(default_factory=CandidateMetadata)

    def with_metadata(self, **changes: Any) -> "Candidate":
        """Return a copy of this candidate with some metadata fields replaced."""
        return self.model_copy(
            update={"metadata": self.metadata.model_copy(update=changes)}
        )
