"""lbfgsb.py
Bound-constrained quasi-Newton solver for :class:`IkProblem`.

The heavy lifting is done by SciPy's L-BFGS-B implementation
(``scipy.optimize.minimize(method="L-BFGS-B")``); this module configures it,
feeds it the problem's gradient strategy and turns the raw
``OptimizeResult`` into an :class:`IkResult` that tells the caller whether
the returned joint angles are a real solution or only a best effort.
"""
from __future__ import annotations

from typing import Callable, NamedTuple, Optional

import numpy as np
from scipy.optimize import minimize

from . import utils
from .errors import InvalidArgumentError, NumericalFailureError
from .ik_problem import IkProblem

__all__ = ["IkResult", "LbfgsbSolver"]

# scipy L-BFGS-B termination codes
STATUS_CONVERGED = 0
STATUS_LIMIT_REACHED = 1   # max iterations or max function evaluations
STATUS_ABNORMAL = 2        # line search failure, usually at a kink of the cost


class IkResult(NamedTuple):
    """Outcome of one IK solve.

    Attributes
    ----------
    solution
        Joint angles *(N,)* in radians, always within the problem bounds.
    final_cost
        Tip-to-target distance at ``solution`` (metres).
    converged
        ``False`` means ``solution`` is only the best vector found before the
        iteration cap; callers may still use it.
    iterations, evaluations
        Optimiser iterations and cost evaluations it requested.
    status, message
        Raw termination code and text from L-BFGS-B.
    """

    solution: np.ndarray
    final_cost: float
    converged: bool
    iterations: int
    evaluations: int
    status: int
    message: str


class LbfgsbSolver:
    """Minimises an :class:`IkProblem` from an initial guess.

    All keyword arguments default to the constants in
    :mod:`numeric_solver.utils`.
    """

    def __init__(
        self,
        *,
        max_iterations: int = utils.LBFGSB_MAX_ITERATIONS,
        max_function_evaluations: int = utils.LBFGSB_MAX_FUNCTION_EVALUATIONS,
        gradient_tolerance: float = utils.LBFGSB_GRADIENT_TOLERANCE,
        function_tolerance: float = utils.LBFGSB_FUNCTION_TOLERANCE,
        history_size: int = utils.LBFGSB_HISTORY_SIZE,
        max_line_search_steps: int = utils.LBFGSB_MAX_LINE_SEARCH_STEPS,
        cost_tolerance: float = utils.CONVERGED_COST_TOLERANCE,
    ) -> None:
        if max_iterations < 1 or max_function_evaluations < 1:
            raise InvalidArgumentError("Iteration and evaluation limits must be at least 1")
        self.max_iterations = int(max_iterations)
        self.max_function_evaluations = int(max_function_evaluations)
        self.gradient_tolerance = float(gradient_tolerance)
        self.function_tolerance = float(function_tolerance)
        self.history_size = int(history_size)
        self.max_line_search_steps = int(max_line_search_steps)
        self.cost_tolerance = float(cost_tolerance)

    def options(self) -> dict:
        """The ``options`` mapping handed to ``scipy.optimize.minimize``."""
        return {
            "maxiter": self.max_iterations,
            "maxfun": self.max_function_evaluations,
            "gtol": self.gradient_tolerance,
            "ftol": self.function_tolerance,
            "maxcor": self.history_size,
            "maxls": self.max_line_search_steps,
        }

    def minimize(self, problem: IkProblem, initial_joint_angles, callback: Optional[Callable] = None) -> IkResult:
        """Run L-BFGS-B from *initial_joint_angles* and return an :class:`IkResult`.

        The initial guess is first projected into the bounds so every iterate,
        not only the final answer, is feasible.

        Raises
        ------
        InvalidArgumentError
            Initial guess has the wrong length.
        NumericalFailureError
            Initial cost, final cost or solution is NaN/Inf.
        """
        x0 = np.asarray(initial_joint_angles, dtype=float).ravel()
        if x0.size != problem.num_links:
            raise InvalidArgumentError(
                f"Initial guess must have {problem.num_links} joint angles, got {x0.size}"
            )
        x0 = problem.clip(x0)
        initial_cost = problem.value(x0)
        if not np.isfinite(initial_cost):
            raise NumericalFailureError(
                f"Cost evaluated to {initial_cost} at the initial guess – check the DH parameters and target"
            )

        raw = minimize(
            problem.value,
            x0,
            jac=problem.gradient,
            method="L-BFGS-B",
            bounds=problem.bounds(),
            callback=callback,
            options=self.options(),
        )

        solution = problem.clip(raw.x)
        if not np.all(np.isfinite(solution)):
            raise NumericalFailureError(f"L-BFGS-B returned non-finite joint angles: {solution}")
        final_cost = problem.value(solution)
        if not np.isfinite(final_cost):
            raise NumericalFailureError(
                f"Cost evaluated to {final_cost} at the solution – check the DH parameters and target"
            )

        # With every joint fixed by its bounds scipy skips the optimiser and
        # returns a result without status / nit.
        status = int(raw.get("status", STATUS_CONVERGED))
        converged = status == STATUS_CONVERGED or final_cost <= self.cost_tolerance

        return IkResult(
            solution=solution,
            final_cost=final_cost,
            converged=bool(converged),
            iterations=int(raw.get("nit", 0)),
            evaluations=int(raw.get("nfev", 0)),
            status=status,
            message=str(raw.message),
        )
