"""
aco_core/pheromone.py
─────────────────────
The pheromone field: the colony's shared, persistent memory.

What is pheromone here?
───────────────────────
  • "Trail"  = a pair of decision variables (i, j) that appeared together in
               a candidate's position.
  • "Better" = higher candidate fitness.
  • τ[i][j]  = pheromone on the ordered pair (variable i, variable j).

Two forces balance each other every iteration:
  1. Evaporation — every entry decays by (1 − ρ). Keeps an early lucky
                   colony from locking the search in place.
  2. Deposit     — every candidate adds fitness / DEPOSIT_SCALE to each
                   ordered pair of distinct variables in its position.

Evaporation always runs first. Depositing first and then evaporating would
erode the reinforcement the colony just earned.

Bounds
──────
Every entry stays inside [pheromone_min, pheromone_max] after every
operation. A negative-fitness candidate therefore lowers a trail at most to
the floor, and no trail can grow without limit.

Matrix layout
─────────────
  Shape : (n_variables, n_variables), float64.
  The field is keyed by VariableId; the integer index of each variable is
  its position in the problem's variable list (built once in __init__).
  The diagonal never receives deposits (pairs are distinct) but evaporates
  like every other entry.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping

import numpy as np
from numpy.typing import NDArray

from optimizer.shared.models import Position, VariableId

# ── Pheromone constants ────────────────────────────────────────────────────────
# Module-level so tests can import and assert against them directly.

TAU_INITIAL: float = 1.0
"""Default starting pheromone on every pair.
All pairs equal at iteration 0 → the colony starts with no bias.
"""

TAU_MIN: float = 0.01
"""Default floor. Keeps every trail rediscoverable."""

TAU_MAX: float = 10.0
"""Default ceiling. Keeps one early candidate from crowding out exploration."""

EVAPORATION_RATE: float = 0.1
"""Default ρ (rho): fraction of pheromone that evaporates each iteration.

τ_new = τ_old × (1 − ρ)
"""

DEPOSIT_SCALE: float = 1000.0
"""Deposit divisor: a candidate adds fitness / DEPOSIT_SCALE to each pair.

Fitness values are on the order of hundreds to thousands (objective
contributions are scaled by 100 or 1000), so a typical deposit lands in the
same range as TAU_INITIAL.
"""


class PheromoneField:
    """
    A dense τ matrix over ordered variable pairs.

    Used by:
        TransitionSampler   → reads level() for the variable being sampled.
        Colony              → calls evaporate(), deposit() and deposit_elite()
                              once per iteration, inside the update barrier.
        Tests               → snapshot() and pair() to inspect state.

    Thread safety:
        Reads are safe while no update runs. The driver only updates between
        iterations, after every candidate of the iteration has been built.
    """

    def __init__(
        self,
        variable_ids: List[VariableId],
        init: float = TAU_INITIAL,
        minimum: float = TAU_MIN,
        maximum: float = TAU_MAX,
    ) -> None:
        """
        Initialise a uniform field.

        Args:
            variable_ids: Ordered, non-empty, duplicate-free variable ids.
            init:         Starting value of every entry.
            minimum:      Floor applied after every update.
            maximum:      Ceiling applied after every update.

        Raises:
            ValueError: empty id list, duplicate ids, or min > init > max
                        ordering broken.
        """
        if not variable_ids:
            raise ValueError("PheromoneField requires at least one variable.")
        if len(set(variable_ids)) != len(variable_ids):
            raise ValueError("PheromoneField requires unique variable ids.")
        if not (minimum <= init <= maximum):
            raise ValueError(
                f"PheromoneField requires min <= init <= max, "
                f"got min={minimum}, init={init}, max={maximum}"
            )

        self._ids: List[VariableId] = list(variable_ids)
        self._index: Dict[VariableId, int] = {
            vid: i for i, vid in enumerate(self._ids)
        }
        self._n = len(self._ids)
        self._min = float(minimum)
        self._max = float(maximum)
        self._matrix: NDArray[np.float64] = np.full(
            (self._n, self._n), float(init), dtype=np.float64
        )

        # Off-diagonal mask: deposits and per-variable levels use distinct pairs.
        self._off_diagonal: NDArray[np.bool_] = ~np.eye(self._n, dtype=bool)

    # ── Core operations ────────────────────────────────────────────────────────

    def evaporate(self, rho: float) -> None:
        """
        Decay every entry in place, then re-clamp.

            τ[i][j] = clip( τ[i][j] × (1 − ρ),  min,  max )
        """
        self._matrix *= (1.0 - rho)
        np.clip(self._matrix, self._min, self._max, out=self._matrix)

    def deposit(self, position: Mapping[VariableId, float], fitness: float) -> None:
        """
        Reinforce every ordered pair of distinct variables present in a position.

        Amount per pair: fitness / DEPOSIT_SCALE. Negative fitness weakens the
        pairs (down to the floor).

        Guards:
            • Non-finite fitness → skip. A −inf candidate must not wipe the
              field down to the floor.
            • Fewer than two known variables in the position → nothing to do.
        """
        if not math.isfinite(fitness):
            return

        rows = self._indices(position)
        if len(rows) < 2:
            return

        amount = fitness / DEPOSIT_SCALE
        block = np.ix_(rows, rows)
        self._matrix[block] += amount * self._off_diagonal[block]
        np.clip(self._matrix, self._min, self._max, out=self._matrix)

    def deposit_all(self, deposits: Iterable[tuple[Position, float]]) -> None:
        """deposit() for each (position, fitness) pair, in order."""
        for position, fitness in deposits:
            self.deposit(position, fitness)

    def deposit_elite(
        self,
        position: Mapping[VariableId, float],
        fitness: float,
        elite_weight: float,
    ) -> None:
        """
        Elitist reinforcement of the best-so-far position.

        Deposits elite_weight × fitness / DEPOSIT_SCALE on the position's pairs,
        as if elite_weight extra candidates had walked the same trail.
        """
        if elite_weight <= 0.0 or not math.isfinite(fitness):
            return
        self.deposit(position, fitness * elite_weight)

    # ── Reads ─────────────────────────────────────────────────────────────────

    def level(self, variable_id: VariableId) -> float:
        """
        Pheromone strength of one variable.

        Mean of τ[i][j] over every other variable j. A single-variable field
        has no pairs, so its diagonal entry is used instead.
        """
        i = self._index[variable_id]
        if self._n == 1:
            return float(self._matrix[0, 0])
        return float(self._matrix[i, self._off_diagonal[i]].mean())

    def pair(self, first: VariableId, second: VariableId) -> float:
        return float(self._matrix[self._index[first], self._index[second]])

    def snapshot(self) -> NDArray[np.float64]:
        """Deep copy of the matrix. Mutating it does not affect the field."""
        return self._matrix.copy()

    def as_dict(self) -> Dict[VariableId, Dict[VariableId, float]]:
        """Nested {variable: {variable: τ}} view for serialised results."""
        return {
            row_id: {
                col_id: float(self._matrix[i, j])
                for j, col_id in enumerate(self._ids)
            }
            for i, row_id in enumerate(self._ids)
        }

    def _indices(self, position: Mapping[VariableId, float]) -> List[int]:
        return [self._index[vid] for vid in position if vid in self._index]

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def variable_ids(self) -> List[VariableId]:
        return list(self._ids)

    @property
    def minimum(self) -> float:
        return self._min

    @property
    def maximum(self) -> float:
        return self._max

    @property
    def shape(self) -> tuple[int, int]:
        return (self._n, self._n)

    def __repr__(self) -> str:
        return (
            f"PheromoneField(n_variables={self._n}, "
            f"min={self._matrix.min():.4f}, max={self._matrix.max():.4f}, "
            f"mean={self._matrix.mean():.4f})"
        )
