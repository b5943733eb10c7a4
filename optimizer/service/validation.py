"""
optimizer/service/validation.py
────────────────────────────────
Problem validation: semantic checks before the engine is invoked.

Validation is the first gate in the service pipeline. It runs AFTER
pydantic validation (which handles schema correctness: negative rho,
priority outside 1–10, ...) and BEFORE the driver (which raises
ConfigurationError for problems the colony cannot search at all).

What it checks
───────────────
  1. Objective signal: at least one objective must carry a non-zero
     weight. With every weight at 0 all candidates score the same and the
     colony has nothing to follow.

  2. Search space: at least one variable must have a domain wider than a
     single point. A problem whose variables are all fixed has exactly one
     solution; running a colony over it is a caller bug.

  3. Local search coherence: max_local_search set while local_search is
     off is a copy-paste misconfiguration.

What it does NOT check
───────────────────────
  • Empty variables/objectives, inverted domains, duplicate ids. Those are
    ConfigurationError territory (aco_core.driver.check_configuration).
  • Whether the problem is feasible at all. An infeasible best candidate is
    reported through its feasible flag and the recommendations.
"""

from __future__ import annotations

from optimizer.shared.models import OptimizationProblem


class ProblemRejectedError(Exception):
    """
    Raised when a problem fails service-level validation.

    Attributes:
        reason: Human-readable explanation of why the problem was rejected.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


def validate_problem(problem: OptimizationProblem) -> None:
    """
    Run all validation checks on an OptimizationProblem.

    Returns None on success (caller proceeds to the driver).

    Raises:
        ProblemRejectedError: with a descriptive reason string.
    """
    _check_objective_weights(problem)
    _check_search_space(problem)
    _check_local_search(problem)


# ── Individual checks ─────────────────────────────────────────────────────────

def _check_objective_weights(problem: OptimizationProblem) -> None:
    if problem.objectives and all(o.weight == 0.0 for o in problem.objectives):
        raise ProblemRejectedError(
            f"Problem {problem.id!r} has {len(problem.objectives)} objective(s), "
            f"all with weight 0. Give at least one objective a positive weight."
        )


def _check_search_space(problem: OptimizationProblem) -> None:
    if problem.variables and all(v.domain.span == 0.0 for v in problem.variables):
        raise ProblemRejectedError(
            f"Problem {problem.id!r} has no free variable: every domain is a "
            f"single point. Widen at least one domain."
        )


def _check_local_search(problem: OptimizationProblem) -> None:
    parameters = problem.parameters
    if parameters.max_local_search is not None and not parameters.local_search:
        raise ProblemRejectedError(
            f"Problem {problem.id!r} sets max_local_search="
            f"{parameters.max_local_search} but local_search=False. "
            f"Set local_search=True or drop max_local_search."
        )
