"""ik_problem.py
The bounded optimisation problem solved for inverse kinematics.

Cost
----
Euclidean distance between the computed tip position and the target
position::

    cost(q) = ‖ tip(q)[:3, 3] − target[:3, 3] ‖

Only the translation column of the target is used; its rotation block is
accepted and carried along but does not enter the cost.

Gradient
--------
The gradient is provided by a *strategy* object, anything exposing
``gradient(problem, joint_angles) -> ndarray``.  Two are shipped:

* :class:`FiniteDifferenceGradient` – central difference stencils (default).
* :class:`AnalyticJacobianGradient` – closed-form geometric Jacobian of the
  revolute DH chain.

The solver only ever calls :py:meth:`IkProblem.gradient`, so strategies can
be swapped without touching the solver invocation.
"""
from __future__ import annotations

from typing import List, Sequence, Tuple, Union

import numpy as np

from . import utils
from .chain import forward_kinematics, link_frames
from .dh_param import DhParam
from .errors import InvalidArgumentError

__all__ = [
    "AnalyticJacobianGradient",
    "FiniteDifferenceGradient",
    "IkProblem",
    "as_target_matrix",
    "make_gradient",
]


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------

def as_target_matrix(target) -> np.ndarray:
    """Accept a 4×4 pose or 16 row-major values and return a 4×4 array."""
    target = np.asarray(target, dtype=float)
    if target.shape == (4, 4):
        return target.copy()
    if target.ndim == 1 and target.size == utils.TARGET_MATRIX_SIZE:
        return target.reshape(4, 4).copy()
    raise InvalidArgumentError(
        f"Target must be a 4x4 matrix or {utils.TARGET_MATRIX_SIZE} row-major values, got shape {target.shape}"
    )


def _as_limits(values, n: int, label: str) -> np.ndarray:
    values = np.asarray(values, dtype=float).ravel()
    if values.size != n:
        raise InvalidArgumentError(f"{label} must have {n} entries (one per link), got {values.size}")
    if np.isnan(values).any():
        raise InvalidArgumentError(f"{label} contains NaN")
    return values


# ---------------------------------------------------------------------------
# Gradient strategies
# ---------------------------------------------------------------------------

# Central-difference stencils: (offsets in units of the step, weights, divisor)
_STENCILS = (
    ((1, -1), (1, -1), 2.0),
    ((-2, -1, 1, 2), (1, -8, 8, -1), 12.0),
    ((-3, -2, -1, 1, 2, 3), (-1, 9, -45, 45, -9, 1), 60.0),
    ((-4, -3, -2, -1, 1, 2, 3, 4), (3, -32, 168, -672, 672, -168, 32, -3), 840.0),
)


class FiniteDifferenceGradient:
    """Numerical gradient of ``problem.value`` by central differences.

    Parameters
    ----------
    step
        Perturbation applied to one joint at a time (rad).
    accuracy
        ``0``–``3``: selects the 2, 4, 6 or 8 point stencil.
    """

    name = "finite"

    def __init__(self, step: float = utils.FINITE_DIFFERENCE_STEP,
                 accuracy: int = utils.FINITE_DIFFERENCE_ACCURACY) -> None:
        if not 0 <= accuracy < len(_STENCILS):
            raise InvalidArgumentError(f"accuracy must be in 0..{len(_STENCILS) - 1}, got {accuracy}")
        if not step > 0.0:
            raise InvalidArgumentError(f"step must be positive, got {step}")
        self.step = float(step)
        self.accuracy = int(accuracy)

    def gradient(self, problem: "IkProblem", joint_angles) -> np.ndarray:
        offsets, weights, divisor = _STENCILS[self.accuracy]
        x = np.array(joint_angles, dtype=float)
        grad = np.zeros_like(x)
        for d in range(x.size):
            original = x[d]
            total = 0.0
            for offset, weight in zip(offsets, weights):
                x[d] = original + offset * self.step
                total += weight * problem.value(x)
            x[d] = original
            grad[d] = total / (divisor * self.step)
        return grad

    def __repr__(self) -> str:
        return f"FiniteDifferenceGradient(step={self.step}, accuracy={self.accuracy})"


class AnalyticJacobianGradient:
    """Exact gradient from the positional geometric Jacobian.

    For a revolute joint *i* rotating about ``z_i`` located at ``o_i`` the tip
    velocity is ``z_i × (p − o_i)``; chaining with ``∂‖e‖/∂p = e/‖e‖`` gives the
    cost gradient.  At zero cost the distance is not differentiable and a zero
    vector is returned.
    """

    name = "analytic"

    def gradient(self, problem: "IkProblem", joint_angles) -> np.ndarray:
        frames = link_frames(problem.dh_params, joint_angles)
        tip = frames[-1, :3, 3]
        error = tip - problem.target_position
        distance = float(np.linalg.norm(error))
        if distance == 0.0:
            return np.zeros(len(problem.dh_params), dtype=float)
        axes = frames[:-1, :3, 2]
        origins = frames[:-1, :3, 3]
        jacobian = np.cross(axes, tip - origins)  # (N, 3)
        return jacobian @ error / distance

    def __repr__(self) -> str:
        return "AnalyticJacobianGradient()"


_GRADIENT_STRATEGIES = {
    FiniteDifferenceGradient.name: FiniteDifferenceGradient,
    AnalyticJacobianGradient.name: AnalyticJacobianGradient,
}


def make_gradient(strategy: Union[str, object, None] = None):
    """Resolve ``"finite"`` / ``"analytic"`` (or an existing strategy object)."""
    if strategy is None:
        return FiniteDifferenceGradient()
    if isinstance(strategy, str):
        try:
            return _GRADIENT_STRATEGIES[strategy.lower()]()
        except KeyError:
            raise InvalidArgumentError(
                f"Unknown gradient strategy '{strategy}' (expected one of {sorted(_GRADIENT_STRATEGIES)})"
            ) from None
    if not callable(getattr(strategy, "gradient", None)):
        raise InvalidArgumentError("Gradient strategy must expose gradient(problem, joint_angles)")
    return strategy


# ---------------------------------------------------------------------------
# Problem
# ---------------------------------------------------------------------------

class IkProblem:
    """Position-only IK posed as a bound-constrained minimisation.

    A problem owns copies of its link list and target for one solve; build a
    new one per solve instead of sharing instances.
    """

    def __init__(self, dh_params: Sequence[DhParam], target, lower, upper, gradient=None) -> None:
        self.dh_params: List[DhParam] = list(dh_params)
        n = len(self.dh_params)
        if n == 0:
            raise InvalidArgumentError("An IK problem needs at least one link")

        self.target = as_target_matrix(target)
        self.target_position = self.target[:3, 3].copy()

        self.lower = _as_limits(lower, n, "Lower limits")
        self.upper = _as_limits(upper, n, "Upper limits")
        inverted = np.flatnonzero(self.lower > self.upper)
        if inverted.size:
            i = int(inverted[0])
            raise InvalidArgumentError(
                f"Lower limit exceeds upper limit for joint {i}: {self.lower[i]} > {self.upper[i]}"
            )

        self.gradient_strategy = make_gradient(gradient)

    @property
    def num_links(self) -> int:
        return len(self.dh_params)

    def tip_pose(self, joint_angles) -> np.ndarray:
        return forward_kinematics(self.dh_params, joint_angles)

    def value(self, joint_angles) -> float:
        """Distance from the tip to the target position (metres)."""
        tip = self.tip_pose(joint_angles)
        return float(np.sqrt(np.sum((tip[:3, 3] - self.target_position) ** 2)))

    def gradient(self, joint_angles) -> np.ndarray:
        return np.asarray(self.gradient_strategy.gradient(self, joint_angles), dtype=float)

    def value_and_gradient(self, joint_angles) -> Tuple[float, np.ndarray]:
        return self.value(joint_angles), self.gradient(joint_angles)

    def bounds(self) -> List[Tuple[float, float]]:
        return list(zip(self.lower.tolist(), self.upper.tolist()))

    def within_bounds(self, joint_angles) -> bool:
        q = np.asarray(joint_angles, dtype=float)
        return bool(np.all(q >= self.lower) and np.all(q <= self.upper))

    def clip(self, joint_angles) -> np.ndarray:
        """Project *joint_angles* onto the box ``[lower, upper]``."""
        return np.clip(np.asarray(joint_angles, dtype=float), self.lower, self.upper)

    def __repr__(self) -> str:
        return f"IkProblem(links={self.num_links}, target={self.target_position.tolist()}, gradient={self.gradient_strategy!r})"
