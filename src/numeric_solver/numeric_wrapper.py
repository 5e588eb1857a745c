"""numeric_wrapper.py
Flat-array entry point to the numeric IK solver.

Callers on the other side of a language or process boundary rarely hold
NumPy objects – they hand over plain numeric buffers.  This module turns
those buffers into validated domain objects (``DhParam`` list, limit vectors,
4×4 target) *before* anything reaches the optimiser, runs exactly one solve
and hands a plain vector back:

    solve(number_of_links,
          dh_params,             # [d0, θ0, r0, α0, d1, θ1, r1, α1, ...]
          upper_limits,          # (N,)
          lower_limits,          # (N,)
          initial_joint_angles,  # (N,)
          target)                # 16 values, row-major 4×4 pose
        -> ndarray (N,)

Nothing is cached between calls: every call builds its own links, problem
and solver, so concurrent callers never share state.
"""
from __future__ import annotations

import numbers
from typing import Optional

import numpy as np

from . import utils
from .dh_param import dh_params_from_flat
from .errors import InvalidArgumentError
from .ik_problem import IkProblem, as_target_matrix
from .lbfgsb import IkResult, LbfgsbSolver

__all__ = ["solve", "solve_detailed"]


def _vector(values, n: int, label: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1 or arr.size != n:
        raise InvalidArgumentError(f"{label} must be a flat array of {n} values, got shape {arr.shape}")
    return arr


def _link_count(number_of_links) -> int:
    # bool is an Integral too – reject it explicitly
    if isinstance(number_of_links, bool) or not isinstance(number_of_links, numbers.Integral):
        raise InvalidArgumentError(f"number_of_links must be an integer, got {number_of_links!r}")
    if number_of_links <= 0:
        raise InvalidArgumentError(f"number_of_links must be positive, got {number_of_links}")
    return int(number_of_links)


def solve_detailed(
    number_of_links,
    dh_params,
    upper_limits,
    lower_limits,
    initial_joint_angles,
    target,
    *,
    gradient=None,
    solver_kwargs: Optional[dict] = None,
) -> IkResult:
    """Same inputs as :func:`solve` but returns the full :class:`IkResult`.

    Parameters
    ----------
    gradient
        ``"finite"`` (default), ``"analytic"`` or a strategy object.
    solver_kwargs
        Forwarded verbatim to :class:`LbfgsbSolver`.
    """
    n = _link_count(number_of_links)
    flat_dh = _vector(dh_params, utils.DH_VALUES_PER_LINK * n, "dh_params")
    upper = _vector(upper_limits, n, "upper_limits")
    lower = _vector(lower_limits, n, "lower_limits")
    q0 = _vector(initial_joint_angles, n, "initial_joint_angles")
    target_matrix = as_target_matrix(target)

    problem = IkProblem(dh_params_from_flat(flat_dh), target_matrix, lower, upper, gradient=gradient)
    solver = LbfgsbSolver(**(solver_kwargs or {}))
    return solver.minimize(problem, q0)


def solve(number_of_links, dh_params, upper_limits, lower_limits, initial_joint_angles, target) -> np.ndarray:
    """Solve IK and return only the joint angles *(number_of_links,)*."""
    result = solve_detailed(
        number_of_links, dh_params, upper_limits, lower_limits, initial_joint_angles, target
    )
    return result.solution
