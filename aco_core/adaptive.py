"""
aco_core/adaptive.py
────────────────────
Adaptive control of ρ, α and β from the colony's state.

Rules (each gated by its ACOParameters flag)
─────────────────────────────────────────────
  diversity   < LOW_DIVERSITY      → ρ = min(RHO_CEILING, ρ × 1.1)
  diversity   > HIGH_DIVERSITY     → ρ = max(RHO_FLOOR,   ρ × 0.9)
  convergence > HIGH_CONVERGENCE   → α = max(EXPONENT_FLOOR,   α × 0.9)
                                     β = min(EXPONENT_CEILING, β × 1.1)
  convergence < LOW_CONVERGENCE    → α = min(EXPONENT_CEILING, α × 1.1)
                                     β = max(EXPONENT_FLOOR,   β × 0.9)

A collapsed colony evaporates faster and leans on the heuristic; a scattered
one keeps its trails longer and leans on pheromone.

Applied once per iteration, after metrics are recomputed and before the
convergence/stagnation check. adjust() returns a new ACOParameters; the
instance it was given is left untouched.
"""

from __future__ import annotations

import logging

from optimizer.shared.models import ACOParameters
from aco_core.metrics import ColonyMetrics

logger = logging.getLogger(__name__)

LOW_DIVERSITY: float = 0.1
HIGH_DIVERSITY: float = 0.5
LOW_CONVERGENCE: float = 0.3
HIGH_CONVERGENCE: float = 0.8

RHO_FLOOR: float = 0.1
RHO_CEILING: float = 0.9
EXPONENT_FLOOR: float = 0.1
EXPONENT_CEILING: float = 4.0

INCREASE: float = 1.1
DECREASE: float = 0.9


class AdaptiveController:
    """Stateless: the next parameters depend only on the current ones."""

    @staticmethod
    def enabled(parameters: ACOParameters) -> bool:
        return (
            parameters.adaptive_rho
            or parameters.adaptive_alpha
            or parameters.adaptive_beta
        )

    def adjust(self, parameters: ACOParameters, metrics: ColonyMetrics) -> ACOParameters:
        rho = parameters.rho
        alpha = parameters.alpha
        beta = parameters.beta

        if parameters.adaptive_rho:
            if metrics.diversity < LOW_DIVERSITY:
                rho = min(RHO_CEILING, rho * INCREASE)
            elif metrics.diversity > HIGH_DIVERSITY:
                rho = max(RHO_FLOOR, rho * DECREASE)

        if metrics.convergence > HIGH_CONVERGENCE:
            if parameters.adaptive_alpha:
                alpha = max(EXPONENT_FLOOR, alpha * DECREASE)
            if parameters.adaptive_beta:
                beta = min(EXPONENT_CEILING, beta * INCREASE)
        elif metrics.convergence < LOW_CONVERGENCE:
            if parameters.adaptive_alpha:
                alpha = min(EXPONENT_CEILING, alpha * INCREASE)
            if parameters.adaptive_beta:
                beta = max(EXPONENT_FLOOR, beta * DECREASE)

        if (rho, alpha, beta) == (parameters.rho, parameters.alpha, parameters.beta):
            return parameters

        logger.debug(
            "Adaptive update: rho %.4f→%.4f alpha %.4f→%.4f beta %.4f→%.4f "
            "(diversity=%.4f, convergence=%.4f)",
            parameters.rho, rho, parameters.alpha, alpha, parameters.beta, beta,
            metrics.diversity, metrics.convergence,
        )
        return parameters.model_copy(update={"rho": rho, "alpha": alpha, "beta": beta})
