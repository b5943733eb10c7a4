"""
aco_core/metrics.py
───────────────────
Colony-wide aggregate statistics, recomputed once per iteration.

  average_fitness → mean fitness of the current candidates.
  diversity       → mean pairwise Euclidean distance between positions,
                    over all C(n, 2) pairs.
  convergence     → 1 − var(fitness) / (mean(fitness)² + 1).
  stability       → same formula as convergence. Both rise towards 1.0 as the
                    colony's fitness distribution tightens.

Non-finite fitness values (candidates scored −inf) are left out of the
fitness statistics. With no finite fitness at all, average_fitness is −inf
and convergence/stability are 0.0.

Positions are stacked into an (n_candidates, n_variables) array in problem
variable order, so every distance is computed over the same dimensions.
"""

from __future__ import annotations

from typing import List, NamedTuple, Sequence

import numpy as np
from numpy.typing import NDArray

from optimizer.shared.models import Candidate, Position, VariableId


class ColonyMetrics(NamedTuple):
    average_fitness: float
    diversity: float
    convergence: float
    stability: float


def position_matrix(
    candidates: Sequence[Candidate],
    variable_ids: Sequence[VariableId],
) -> NDArray[np.float64]:
    """Stack candidate positions into an (n_candidates, n_variables) array."""
    return np.array(
        [[c.position[vid] for vid in variable_ids] for c in candidates],
        dtype=np.float64,
    ).reshape(len(candidates), len(variable_ids))


def diversity(points: NDArray[np.float64]) -> float:
    """
    Mean Euclidean distance over every unordered pair of rows.

    Fewer than two candidates → 0.0 (there is no pair to measure).

    Walks one row at a time against the rows after it, so memory stays at
    one (n, n_variables) block however large the colony is. Identical rows
    give exactly 0.0.
    """
    n = points.shape[0]
    if n < 2:
        return 0.0
    total = 0.0
    for i in range(n - 1):
        deltas = points[i + 1:] - points[i]
        total += float(np.sqrt((deltas * deltas).sum(axis=1)).sum())
    return total / (n * (n - 1) / 2)


def tightness(fitness: NDArray[np.float64]) -> float:
    """1 − var / (mean² + 1). Population variance (ddof=0)."""
    if fitness.size == 0:
        return 0.0
    mean = float(fitness.mean())
    variance = float(fitness.var())
    return 1.0 - variance / (mean * mean + 1.0)


def compute_metrics(
    candidates: Sequence[Candidate],
    variable_ids: Sequence[VariableId],
) -> ColonyMetrics:
    """All four aggregates for one population."""
    values = np.array([c.fitness for c in candidates], dtype=np.float64)
    finite = values[np.isfinite(values)]

    average = float(finite.mean()) if finite.size else float("-inf")
    tight = tightness(finite)

    return ColonyMetrics(
        average_fitness=average,
        diversity=diversity(position_matrix(candidates, variable_ids)),
        convergence=tight,
        stability=tight,
    )


def mean_position(
    candidates: Sequence[Candidate],
    variable_ids: Sequence[VariableId],
) -> Position:
    points = position_matrix(candidates, variable_ids)
    centre = points.mean(axis=0)
    return {vid: float(centre[i]) for i, vid in enumerate(variable_ids)}


def distance(first: Position, second: Position) -> float:
    """Euclidean distance over the variables of `first`."""
    return float(np.sqrt(sum((first[vid] - second[vid]) ** 2 for vid in first)))


def search_rates(
    candidates: Sequence[Candidate],
    best: Candidate,
    variable_ids: Sequence[VariableId],
) -> List[tuple[float, float]]:
    """
    (exploration_rate, exploitation_rate) for every candidate.

        exploration  = d(candidate, best) / (d(candidate, mean position) + 1)
        exploitation = d(candidate, mean position) / (d(candidate, best) + 1)

    A candidate far from the best but close to the crowd is exploring; one
    close to the best is exploiting.
    """
    centre = mean_position(candidates, variable_ids)
    rates = []
    for candidate in candidates:
        to_best = distance(candidate.position, best.position)
        to_centre = distance(candidate.position, centre)
        rates.append((to_best / (to_centre + 1.0), to_centre / (to_best + 1.0)))
    return rates
