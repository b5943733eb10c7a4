"""
aco_core — Adaptive Ant Colony Optimisation engine.

Public API:
    OptimizationDriver  — run one problem, returns OptimizationResult
    optimize            — one-shot wrapper around OptimizationDriver
    ConfigurationError  — raised before the first iteration when a problem
                          cannot be searched

Usage:
    from aco_core import OptimizationDriver, ConfigurationError

    try:
        result = OptimizationDriver(problem, seed=7).run()
    except ConfigurationError as exc:
        print(exc.reasons)
"""

from aco_core.ant import ConfigurationError
from aco_core.colony import Colony
from aco_core.driver import OptimizationDriver, check_configuration, optimize
from aco_core.pheromone import PheromoneField

__all__ = [
    "Colony",
    "ConfigurationError",
    "OptimizationDriver",
    "PheromoneField",
    "check_configuration",
    "optimize",
]
