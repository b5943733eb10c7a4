"""
optimizer/service — the caller side of the optimisation engine.

Public API:
    OptimizationService   — validate → run → record → notify
    ProblemRejectedError  — raised by problem validation
    validate_problem()    — validation check function
"""

from optimizer.service.validation import ProblemRejectedError, validate_problem
from optimizer.service.optimization_service import OptimizationService

__all__ = [
    "OptimizationService",
    "ProblemRejectedError",
    "validate_problem",
]
