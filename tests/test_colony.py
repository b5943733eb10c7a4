"""
tests/test_colony.py
────────────────────
Colony: initialisation, the commit barrier, stagnation and restart.

Helpers
───────
_make_problem() builds a two-variable maximisation problem on [0, 10]².
Fitness is (x + y) × 100, so "better" simply means "further up-right".
_fixed_problem() pins every variable to one value: every candidate scores
the same and the colony is stagnant from the start.
"""

from __future__ import annotations

import numpy as np
import pytest

from aco_core.colony import Colony
from optimizer.shared.models import (
    ACOParameters,
    Domain,
    Objective,
    OptimizationProblem,
    Variable,
)


def _make_problem(colony_size=10, **parameters) -> OptimizationProblem:
    return OptimizationProblem(
        id="p-colony",
        variables=[
            Variable(id="x", domain=Domain(min=0.0, max=10.0)),
            Variable(id="y", domain=Domain(min=0.0, max=10.0)),
        ],
        objectives=[Objective(id="o1")],
        parameters=ACOParameters(colony_size=colony_size, **parameters),
    )


def _fixed_problem(colony_size=5) -> OptimizationProblem:
    return OptimizationProblem(
        id="p-fixed",
        variables=[
            Variable(id="x", domain=Domain(min=2.0, max=2.0)),
            Variable(id="y", domain=Domain(min=3.0, max=3.0)),
        ],
        objectives=[Objective(id="o1")],
        parameters=ACOParameters(colony_size=colony_size),
    )


def _make_colony(problem, seed=0) -> Colony:
    return Colony(problem, problem.parameters, np.random.SeedSequence(seed))


def _fixed_candidates(colony, x, y):
    return [ant.candidate({"x": x, "y": y}) for ant in colony.ants]


class TestInitialisation:

    def test_one_ant_and_candidate_per_slot(self):
        colony = _make_colony(_make_problem(colony_size=7))
        assert colony.size == 7
        assert len(colony.candidates) == 7
        assert [c.id for c in colony.candidates] == [f"ant-{i}-0" for i in range(7)]

    def test_best_is_the_fittest_initial_candidate(self):
        colony = _make_colony(_make_problem())
        assert colony.best_candidate.fitness == max(c.fitness for c in colony.candidates)
        assert colony.initial_fitness == colony.best_candidate.fitness

    def test_field_starts_uniform(self):
        colony = _make_colony(_make_problem(pheromone_init=2.0))
        assert np.all(colony.field.snapshot() == 2.0)

    def test_same_seed_same_colony(self):
        one = _make_colony(_make_problem(), seed=5)
        two = _make_colony(_make_problem(), seed=5)
        assert [c.position for c in one.candidates] == [c.position for c in two.candidates]


class TestCommit:

    def test_wrong_candidate_count_rejected(self):
        colony = _make_colony(_make_problem(colony_size=4))
        with pytest.raises(ValueError):
            colony.commit(_fixed_candidates(colony, 1.0, 1.0)[:3], ACOParameters(colony_size=4))

    def test_better_candidates_become_best(self):
        problem = _make_problem(colony_size=4)
        colony = _make_colony(problem)
        improvements = colony.commit(_fixed_candidates(colony, 10.0, 10.0), problem.parameters)

        assert colony.best_candidate.fitness == pytest.approx(2000.0)
        assert improvements == 1, "ties after the first improvement keep the incumbent"
        assert colony.improvement_count == 1

    def test_worse_candidates_never_replace_best(self):
        problem = _make_problem(colony_size=4)
        colony = _make_colony(problem)
        best_before = colony.best_candidate.fitness
        improvements = colony.commit(_fixed_candidates(colony, 0.0, 0.0), problem.parameters)

        assert improvements == 0
        assert colony.best_candidate.fitness == best_before

    def test_commit_evaporates_then_deposits(self):
        problem = _make_problem(colony_size=2, rho=0.5)
        colony = _make_colony(problem)
        colony.commit(_fixed_candidates(colony, 1.0, 1.0), problem.parameters)
        # 1.0 × 0.5 + 2 × (200 / 1000)
        assert np.isclose(colony.field.pair("x", "y"), 0.9)

    def test_metadata_is_annotated(self):
        problem = _make_problem(colony_size=3)
        colony = _make_colony(problem)
        colony.commit(_fixed_candidates(colony, 10.0, 10.0), problem.parameters, stagnation_count=2)
        for candidate in colony.candidates:
            assert candidate.metadata.stagnation_count == 2
            assert candidate.metadata.improvement_count == 1

    def test_elitism_adds_extra_deposit(self):
        plain = _make_problem(colony_size=4)
        elite = _make_problem(colony_size=4, elitism=True, elitism_rate=0.5)
        plain_colony = _make_colony(plain, seed=9)
        elite_colony = _make_colony(elite, seed=9)

        plain_colony.commit(_fixed_candidates(plain_colony, 5.0, 5.0), plain.parameters)
        elite_colony.commit(_fixed_candidates(elite_colony, 5.0, 5.0), elite.parameters)

        assert elite_colony.field.pair("x", "y") > plain_colony.field.pair("x", "y")

    def test_metrics_follow_committed_population(self):
        problem = _make_problem(colony_size=4)
        colony = _make_colony(problem)
        colony.commit(_fixed_candidates(colony, 3.0, 3.0), problem.parameters)
        assert colony.metrics.diversity == 0.0
        assert colony.metrics.average_fitness == pytest.approx(600.0)
        assert colony.metrics.convergence == pytest.approx(1.0)


class TestStagnationAndRestart:

    def test_identical_fitness_is_stagnant(self):
        assert _make_colony(_fixed_problem()).is_stagnant()

    def test_spread_colony_is_not_stagnant(self):
        assert not _make_colony(_make_problem(colony_size=20)).is_stagnant()

    def test_restart_resamples_every_candidate(self):
        colony = _make_colony(_make_problem(colony_size=6))
        before = [c.position for c in colony.candidates]
        colony.restart(iteration=12)

        after = colony.candidates
        assert all(a.position != b for a, b in zip(after, before))
        assert [c.id for c in after] == [f"ant-{i}-1" for i in range(6)]
        assert all(c.metadata.iteration == 12 for c in after)

    def test_restart_keeps_best_and_pheromone(self):
        problem = _make_problem(colony_size=4)
        colony = _make_colony(problem)
        colony.commit(_fixed_candidates(colony, 10.0, 10.0), problem.parameters)
        field_before = colony.field.snapshot()

        colony.restart(iteration=1)

        assert colony.best_candidate.fitness == pytest.approx(2000.0)
        np.testing.assert_array_equal(colony.field.snapshot(), field_before)

    def test_snapshot_mirrors_colony(self):
        colony = _make_colony(_make_problem(colony_size=3))
        snapshot = colony.snapshot()
        assert len(snapshot.candidates) == 3
        assert snapshot.best_candidate == colony.best_candidate
        assert snapshot.pheromone["x"]["y"] == pytest.approx(1.0)
