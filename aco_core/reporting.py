"""
aco_core/reporting.py
─────────────────────
Performance scores and recommendations for a finished run.

Non-convergence, low diversity or a poor best candidate are not errors: the
run still returns its best candidate with an honest feasibility flag. This
module turns those conditions into text the caller can act on.

Performance scores
───────────────────
  efficiency = best_fitness / (average_fitness + 1)
  quality    = best_fitness / (n_objectives × QUALITY_REFERENCE + 1)

Both are left unbounded: fitness scales with weights and priorities, so a
value above 1.0 simply means "better than the reference".
"""

from __future__ import annotations

import math
from typing import List

from optimizer.shared.models import ACOParameters, OptimizationProblem
from optimizer.shared.results import (
    PerformanceMetrics,
    Recommendations,
)
from aco_core.adaptive import AdaptiveController
from aco_core.colony import Colony

# ── Thresholds ─────────────────────────────────────────────────────────────────

QUALITY_REFERENCE: float = 1000.0
"""Per-objective fitness regarded as a good result."""

LOW_CONVERGENCE: float = 0.8
LOW_STABILITY: float = 0.7
LOW_DIVERSITY: float = 0.5
LOW_EFFICIENCY: float = 0.6
LOW_QUALITY: float = 0.8


def _ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, 0.0 when either side is non-finite or the divisor is 0."""
    if not (math.isfinite(numerator) and math.isfinite(denominator)) or denominator == 0.0:
        return 0.0
    return numerator / denominator


class PerformanceAnalyzer:
    """Scores a finished colony and turns weak scores into recommendations."""

    def performance(
        self,
        colony: Colony,
        problem: OptimizationProblem,
        parameters: ACOParameters,
    ) -> PerformanceMetrics:
        best = colony.best_candidate.fitness
        metrics = colony.metrics
        return PerformanceMetrics(
            converged=metrics.convergence > parameters.convergence_threshold,
            convergence=metrics.convergence,
            stability=metrics.stability,
            diversity=metrics.diversity,
            efficiency=_ratio(best, metrics.average_fitness + 1.0),
            quality=_ratio(best, len(problem.objectives) * QUALITY_REFERENCE + 1.0),
        )

    def recommend(
        self,
        performance: PerformanceMetrics,
        problem: OptimizationProblem,
        parameters: ACOParameters,
        feasible: bool,
    ) -> Recommendations:
        immediate: List[str] = []
        short_term: List[str] = []
        long_term: List[str] = []

        if not feasible:
            immediate.append(
                "Best candidate violates constraints - raise constraint weights "
                "or relax bounds"
            )
        if performance.convergence < LOW_CONVERGENCE:
            immediate.append(
                "Low convergence - increase colony size or adjust parameters"
            )
        if performance.stability < LOW_STABILITY:
            immediate.append("Low stability - adjust pheromone parameters")

        if performance.diversity < LOW_DIVERSITY:
            short_term.append("Low diversity - increase exploration rate (lower q0)")
        if performance.efficiency < LOW_EFFICIENCY:
            short_term.append("Low efficiency - optimize objective weights")
        if performance.quality < LOW_QUALITY:
            short_term.append("Low quality - improve constraint handling")

        if not parameters.local_search:
            long_term.append("Enable local search hybridization")
        if not AdaptiveController.enabled(parameters):
            long_term.append("Enable adaptive parameter tuning")
        if len(problem.objectives) > 1:
            long_term.append(
                "Objectives are combined as a weighted sum - consider a "
                "dedicated multi-objective method"
            )

        return Recommendations(
            immediate=immediate,
            short_term=short_term,
            long_term=long_term,
        )
