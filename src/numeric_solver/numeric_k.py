"""numeric_k.py
A high-level façade around the numeric IK core.  You feed it a DH table
(directly or from a CSV file next to the arm description) and then call
`fk()` / `ik()`.

Every `ik()` call builds a fresh :class:`IkProblem`, so a single
`DhArmKinematics` instance can serve several threads at once.
"""
from __future__ import annotations

import csv
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from . import utils
from .chain import forward_kinematics, link_frames
from .dh_param import DhParam
from .errors import InvalidArgumentError
from .ik_problem import IkProblem, make_gradient
from .lbfgsb import IkResult, LbfgsbSolver

ArrayF = np.ndarray  # shorthand

_DH_COLUMNS = ("d", "theta", "r", "alpha")
_LIMIT_COLUMNS = ("lower", "upper")


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def load_dh_csv(csv_path) -> Tuple[ArrayF, ArrayF, ArrayF]:
    """Read a DH table from CSV.

    The first row is a header naming the columns; ``d``, ``theta``, ``r`` and
    ``alpha`` are required, ``lower`` / ``upper`` (joint limits in radians)
    are optional.  Any other column (e.g. a ``joint`` label) is ignored.

    Returns
    -------
    dh
        *(N×4)* array ``[d, theta, r, alpha]``.
    lower, upper
        *(N,)* joint limits, defaulting to
        :data:`numeric_solver.utils.DEFAULT_JOINT_LIMITS_RAD`.
    """
    csv_path = Path(csv_path)
    if not csv_path.is_file():
        raise FileNotFoundError(f"DH CSV not found at {csv_path}")

    with csv_path.open(newline="") as csvfile:
        reader = csv.reader(csvfile)
        header = [name.strip().lower() for name in next(reader)]

    missing = [name for name in _DH_COLUMNS if name not in header]
    if missing:
        raise InvalidArgumentError(f"{csv_path} is missing DH column(s): {', '.join(missing)}")

    has_limits = all(name in header for name in _LIMIT_COLUMNS)
    wanted = _DH_COLUMNS + (_LIMIT_COLUMNS if has_limits else ())
    usecols = tuple(header.index(name) for name in wanted)

    table = np.genfromtxt(csv_path, delimiter=",", skip_header=1, usecols=usecols, dtype=float)
    table = np.atleast_2d(table)
    if table.size == 0:
        raise InvalidArgumentError(f"{csv_path} contains no DH rows")

    dh = table[:, :4]
    if has_limits:
        lower, upper = table[:, 4], table[:, 5]
    else:
        lower = np.full(dh.shape[0], utils.DEFAULT_JOINT_LIMITS_RAD[0])
        upper = np.full(dh.shape[0], utils.DEFAULT_JOINT_LIMITS_RAD[1])
    return dh, lower, upper


# ---------------------------------------------------------------------------
# Main façade
# ---------------------------------------------------------------------------

class DhArmKinematics:
    """FK / IK for one serial arm in numpy-land."""

    def __init__(
        self,
        *,
        dh: ArrayF,
        lower_limits: Optional[Sequence[float]] = None,
        upper_limits: Optional[Sequence[float]] = None,
        gradient=None,
        solver_kwargs: Optional[dict] = None,
    ) -> None:
        """Create the arm model.

        Parameters
        ----------
        dh
            *(dof×4)* array of DH parameters `[d, θ, r, α]` in **metres** and
            **radians**.
        lower_limits, upper_limits
            Per-joint limits in radians.  Default to `[-π, π]`.
        gradient
            `"finite"` (default) or `"analytic"` – see
            :func:`numeric_solver.ik_problem.make_gradient`.
        solver_kwargs
            Extra settings forwarded verbatim to :class:`LbfgsbSolver`.
        """
        dh = np.asarray(dh, dtype=float)
        if dh.ndim != 2 or dh.shape[1] != utils.DH_VALUES_PER_LINK or dh.shape[0] == 0:
            raise InvalidArgumentError(f"DH array must be (dof×4) with dof >= 1, got shape {dh.shape}")

        dof = dh.shape[0]
        lower = np.full(dof, utils.DEFAULT_JOINT_LIMITS_RAD[0]) if lower_limits is None else lower_limits
        upper = np.full(dof, utils.DEFAULT_JOINT_LIMITS_RAD[1]) if upper_limits is None else upper_limits

        self._links: List[DhParam] = [DhParam.from_row(row) for row in dh]
        # Building a throw-away problem validates the limits once, up front.
        probe = IkProblem(self._links, np.identity(4), lower, upper, gradient=gradient)
        self._lower = probe.lower
        self._upper = probe.upper
        self._gradient = make_gradient(gradient)
        self._solver = LbfgsbSolver(**(solver_kwargs or {}))

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    @property
    def dof(self) -> int:
        return len(self._links)

    @property
    def num_joints(self) -> int:
        return self.dof

    @property
    def links(self) -> Tuple[DhParam, ...]:
        return tuple(self._links)

    @property
    def limits(self) -> Tuple[ArrayF, ArrayF]:
        return self._lower.copy(), self._upper.copy()

    def fk(self, q: ArrayF) -> ArrayF:
        """Return the *4×4* tool transform for given joint configuration."""
        q = np.asarray(q, dtype=float)
        if q.size != self.dof:
            raise InvalidArgumentError(f"FK expects {self.dof} joint values, got {q.size}")
        return forward_kinematics(self._links, q)

    def frames(self, q: ArrayF) -> ArrayF:
        """Base frame plus the frame after every link, *(dof+1, 4, 4)*."""
        return link_frames(self._links, q)

    def problem(self, target: ArrayF) -> IkProblem:
        """A fresh bounded problem for *target* (4×4 pose or xyz)."""
        return IkProblem(self._links, _as_pose(target), self._lower, self._upper, gradient=self._gradient)

    def cost(self, q: ArrayF, target: ArrayF) -> float:
        return self.problem(target).value(q)

    def ik(self, target: ArrayF, q0: Optional[ArrayF] = None) -> IkResult:
        """Solve inverse kinematics.

        Parameters
        ----------
        target
            Either a *4×4* pose (only its translation is used) or a
            position `[x, y, z]`.
        q0
            Initial joint guess.  Defaults to zeros (projected into the
            limits).

        Returns
        -------
        IkResult
            Joint angles plus final cost, convergence flag and iteration
            metadata.
        """
        if q0 is None:
            q0 = np.zeros(self.dof, float)
        return self._solver.minimize(self.problem(target), q0)

    # ------------------------------------------------------------------
    # Convenience constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_dh(cls, dh: ArrayF, lower_limits=None, upper_limits=None, **kwargs) -> "DhArmKinematics":
        return cls(dh=dh, lower_limits=lower_limits, upper_limits=upper_limits, **kwargs)

    @classmethod
    def from_csv(cls, csv_path, **kwargs) -> "DhArmKinematics":
        dh, lower, upper = load_dh_csv(csv_path)
        return cls(dh=dh, lower_limits=lower, upper_limits=upper, **kwargs)

    def __repr__(self) -> str:
        return f"<DhArmKinematics dof={self.dof}>"


def _as_pose(target) -> ArrayF:
    target = np.asarray(target, dtype=float)
    if target.shape == (3,):
        return utils.translation_matrix(*target)
    return target
