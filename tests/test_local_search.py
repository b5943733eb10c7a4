"""
tests/test_local_search.py
──────────────────────────
LocalSearchRefiner: hill climbing never accepts a worse move.
"""

from __future__ import annotations

import numpy as np
import pytest

from aco_core.ant import Ant
from aco_core.evaluator import FitnessEvaluator
from aco_core.local_search import LocalSearchRefiner
from optimizer.shared.models import (
    ACOParameters,
    Domain,
    Objective,
    OptimizationProblem,
    Variable,
    VariableType,
)


def _make_problem(vtype=VariableType.CONTINUOUS) -> OptimizationProblem:
    return OptimizationProblem(
        id="p-ls",
        variables=[
            Variable(id="x", type=vtype, domain=Domain(min=0.0, max=10.0)),
            Variable(id="y", type=vtype, domain=Domain(min=0.0, max=10.0)),
        ],
        objectives=[Objective(id="o1")],
    )


def _make_ant(problem, seed=0) -> Ant:
    return Ant(0, problem, FitnessEvaluator(problem), np.random.default_rng(seed))


class TestRefine:

    @pytest.mark.parametrize("seed", range(10))
    def test_never_worse(self, seed):
        problem = _make_problem()
        ant = _make_ant(problem, seed)
        start = ant.candidate({"x": 5.0, "y": 5.0})

        refined, improvements = LocalSearchRefiner(problem).refine(start, ant, max_steps=25)

        assert refined.fitness >= start.fitness
        assert 0 <= improvements <= 25
        assert (improvements == 0) == (refined.fitness == start.fitness)

    def test_refined_position_stays_in_domain(self):
        problem = _make_problem()
        ant = _make_ant(problem, 3)
        start = ant.candidate({"x": 9.99, "y": 9.99})
        refined, _ = LocalSearchRefiner(problem).refine(start, ant, max_steps=50)
        assert all(0.0 <= v <= 10.0 for v in refined.position.values())

    def test_zero_steps_returns_input(self):
        problem = _make_problem()
        ant = _make_ant(problem)
        start = ant.candidate({"x": 1.0, "y": 1.0})
        refined, improvements = LocalSearchRefiner(problem).refine(start, ant, max_steps=0)
        assert refined is start
        assert improvements == 0

    def test_metadata_carried_over(self):
        problem = _make_problem()
        ant = _make_ant(problem)
        start = ant.candidate({"x": 5.0, "y": 5.0}).with_metadata(iteration=4)
        refined, _ = LocalSearchRefiner(problem).refine(start, ant, max_steps=10)
        assert refined.metadata.iteration == 4


class TestPerturb:

    def test_integer_perturbation_snaps_to_whole_number(self):
        variable = Variable(id="n", type=VariableType.INTEGER, domain=Domain(min=0, max=100))
        rng = np.random.default_rng(0)
        for _ in range(100):
            value = LocalSearchRefiner.perturb(variable, 50.0, rng)
            assert value == int(value)
            assert 45.0 <= value <= 55.0

    def test_should_refine_follows_rate(self):
        rng = np.random.default_rng(0)
        assert not LocalSearchRefiner.should_refine(ACOParameters(local_search_rate=0.0), rng)
        assert LocalSearchRefiner.should_refine(ACOParameters(local_search_rate=1.0), rng)
