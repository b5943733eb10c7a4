"""
tests/test_metrics_adaptive.py
──────────────────────────────
Colony aggregate metrics and the adaptive ρ/α/β controller.
"""

from __future__ import annotations

import numpy as np
import pytest

from aco_core.adaptive import (
    EXPONENT_CEILING,
    RHO_CEILING,
    AdaptiveController,
)
from aco_core.metrics import (
    ColonyMetrics,
    compute_metrics,
    diversity,
    search_rates,
    tightness,
)
from optimizer.shared.models import ACOParameters, Candidate


def _make_candidate(cid, x, y, fitness) -> Candidate:
    return Candidate(id=cid, position={"x": x, "y": y}, fitness=fitness)


def _metrics(diversity_value=0.3, convergence=0.5) -> ColonyMetrics:
    return ColonyMetrics(
        average_fitness=100.0,
        diversity=diversity_value,
        convergence=convergence,
        stability=convergence,
    )


class TestMetrics:

    def test_diversity_of_one_pair(self):
        points = np.array([[0.0, 0.0], [3.0, 4.0]])
        assert diversity(points) == pytest.approx(5.0)

    def test_diversity_needs_two_points(self):
        assert diversity(np.array([[1.0, 2.0]])) == 0.0

    def test_diversity_is_mean_over_all_pairs(self):
        points = np.array([[0.0], [1.0], [3.0]])
        # |0-1| + |0-3| + |1-3| = 6 over 3 pairs
        assert diversity(points) == pytest.approx(2.0)

    def test_diversity_matches_pairwise_distances(self):
        rng = np.random.default_rng(3)
        points = rng.uniform(-50.0, 50.0, size=(60, 7))
        pairs = [
            np.linalg.norm(points[i] - points[j])
            for i in range(len(points))
            for j in range(i + 1, len(points))
        ]
        assert diversity(points) == pytest.approx(np.mean(pairs), rel=1e-12)

    def test_identical_fractional_rows_have_zero_diversity(self):
        points = np.tile([[0.1, 7.3, 2.9]], (5, 1))
        assert diversity(points) == 0.0

    def test_large_colony_diversity(self):
        # 1000 × 100: a pairwise (n, n, d) array would need ~800 MB
        rng = np.random.default_rng(0)
        points = rng.uniform(0.0, 1.0, size=(1000, 100))
        value = diversity(points)
        # mean distance of uniform points in [0, 1]^100 ≈ sqrt(100 / 6)
        assert value == pytest.approx(np.sqrt(100.0 / 6.0), rel=0.02)

    def test_identical_fitness_is_fully_converged(self):
        assert tightness(np.array([5.0, 5.0, 5.0])) == pytest.approx(1.0)

    def test_tightness_formula(self):
        values = np.array([1.0, 3.0])
        # mean 2, var 1 → 1 − 1 / 5
        assert tightness(values) == pytest.approx(0.8)

    def test_compute_metrics_ignores_non_finite_fitness(self):
        candidates = [
            _make_candidate("a", 0.0, 0.0, 10.0),
            _make_candidate("b", 1.0, 0.0, 20.0),
            _make_candidate("c", 2.0, 0.0, float("-inf")),
        ]
        metrics = compute_metrics(candidates, ["x", "y"])
        assert metrics.average_fitness == pytest.approx(15.0)
        assert metrics.convergence == metrics.stability
        assert metrics.diversity == pytest.approx(4.0 / 3.0)

    def test_no_finite_fitness(self):
        candidates = [_make_candidate("a", 0.0, 0.0, float("-inf"))]
        metrics = compute_metrics(candidates, ["x", "y"])
        assert metrics.average_fitness == float("-inf")
        assert metrics.convergence == 0.0

    def test_search_rates_for_the_best_itself(self):
        best = _make_candidate("a", 0.0, 0.0, 10.0)
        other = _make_candidate("b", 2.0, 0.0, 5.0)
        rates = search_rates([best, other], best, ["x", "y"])
        exploration, exploitation = rates[0]
        assert exploration == 0.0
        assert exploitation == pytest.approx(1.0)


class TestAdaptiveController:

    def test_disabled_returns_same_instance(self):
        parameters = ACOParameters()
        assert not AdaptiveController.enabled(parameters)
        assert AdaptiveController().adjust(parameters, _metrics(0.0, 0.99)) is parameters

    def test_low_diversity_raises_rho(self):
        parameters = ACOParameters(adaptive_rho=True, rho=0.2)
        adjusted = AdaptiveController().adjust(parameters, _metrics(diversity_value=0.05))
        assert adjusted.rho == pytest.approx(0.22)
        assert parameters.rho == 0.2, "caller's parameters are not mutated"

    def test_high_diversity_lowers_rho_to_floor(self):
        parameters = ACOParameters(adaptive_rho=True, rho=0.1)
        adjusted = AdaptiveController().adjust(parameters, _metrics(diversity_value=0.9))
        assert adjusted.rho == pytest.approx(0.1)

    def test_rho_capped(self):
        parameters = ACOParameters(adaptive_rho=True, rho=0.85)
        adjusted = AdaptiveController().adjust(parameters, _metrics(diversity_value=0.0))
        assert adjusted.rho == pytest.approx(RHO_CEILING)

    def test_high_convergence_shifts_to_heuristic(self):
        parameters = ACOParameters(adaptive_alpha=True, adaptive_beta=True)
        adjusted = AdaptiveController().adjust(parameters, _metrics(convergence=0.95))
        assert adjusted.alpha == pytest.approx(0.9)
        assert adjusted.beta == pytest.approx(2.2)

    def test_low_convergence_shifts_to_pheromone(self):
        parameters = ACOParameters(adaptive_alpha=True, adaptive_beta=True)
        adjusted = AdaptiveController().adjust(parameters, _metrics(convergence=0.1))
        assert adjusted.alpha == pytest.approx(1.1)
        assert adjusted.beta == pytest.approx(1.8)

    def test_exponents_capped(self):
        parameters = ACOParameters(adaptive_beta=True, beta=3.9)
        adjusted = AdaptiveController().adjust(parameters, _metrics(convergence=0.95))
        assert adjusted.beta == pytest.approx(EXPONENT_CEILING)

    def test_only_flagged_parameters_move(self):
        parameters = ACOParameters(adaptive_alpha=True)
        adjusted = AdaptiveController().adjust(parameters, _metrics(0.0, 0.95))
        assert adjusted.rho == parameters.rho
        assert adjusted.beta == parameters.beta
        assert adjusted.alpha < parameters.alpha
