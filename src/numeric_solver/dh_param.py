"""dh_param.py
One link of a serial manipulator in the *standard* Denavit–Hartenberg
convention.

Each link is described by four numbers ``(d, theta, r, alpha)``:

1. **d**     – offset along the previous z axis (metres)
2. **theta** – joint angle offset about the previous z axis (radians)
3. **r**     – link length along the new x axis (metres)
4. **alpha** – link twist about the new x axis (radians)

The joint variable *q* is added to ``theta``.  Transforms are computed on
demand and returned as fresh arrays, so a link can be shared freely between
problems and threads.
"""
from __future__ import annotations

import math
from typing import List, NamedTuple, Sequence

import numpy as np

from .errors import InvalidArgumentError
from .utils import DH_VALUES_PER_LINK


def dh_transform(d: float, theta: float, r: float, alpha: float, joint_angle: float = 0.0) -> np.ndarray:
    """Return the 4×4 link transform for joint angle *joint_angle* (rad)."""
    ct = math.cos(theta + joint_angle)
    st = math.sin(theta + joint_angle)
    ca = math.cos(alpha)
    sa = math.sin(alpha)
    return np.array([
        [ct, -st * ca,  st * sa, r * ct],
        [st,  ct * ca, -ct * sa, r * st],
        [0.,  sa,       ca,      d     ],
        [0.,  0.,       0.,      1.    ],
    ], dtype=float)


class DhParam(NamedTuple):
    """Immutable DH parameters of a single link."""

    d: float
    theta: float
    r: float
    alpha: float

    def compute_ft(self, joint_angle: float) -> np.ndarray:
        """Homogeneous transform of this link with *joint_angle* applied."""
        return dh_transform(self.d, self.theta, self.r, self.alpha, joint_angle)

    @classmethod
    def from_row(cls, row: Sequence[float]) -> "DhParam":
        values = np.asarray(row, dtype=float).ravel()
        if values.size != DH_VALUES_PER_LINK:
            raise InvalidArgumentError(
                f"A DH row needs {DH_VALUES_PER_LINK} values (d, theta, r, alpha), got {values.size}"
            )
        return cls(*(float(v) for v in values))


def dh_params_from_flat(values: Sequence[float]) -> List[DhParam]:
    """Split a flat ``[d0, θ0, r0, α0, d1, ...]`` buffer into links."""
    flat = np.asarray(values, dtype=float).ravel()
    if flat.size % DH_VALUES_PER_LINK != 0:
        raise InvalidArgumentError(
            f"Flat DH buffer length must be a multiple of {DH_VALUES_PER_LINK}, got {flat.size}"
        )
    return [DhParam.from_row(row) for row in flat.reshape(-1, DH_VALUES_PER_LINK)]
