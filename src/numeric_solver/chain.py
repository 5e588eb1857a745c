"""chain.py
Forward kinematics for a chain of DH links.

The tip pose is the left-to-right product of every link transform, starting
from the identity (base frame):

    tip = T_0(q_0) · T_1(q_1) · … · T_{N-1}(q_{N-1})
"""
from __future__ import annotations

from typing import Sequence

import numpy as np

from .dh_param import DhParam
from .errors import InvalidArgumentError


def _check_lengths(dh_params: Sequence[DhParam], joint_angles) -> np.ndarray:
    joint_angles = np.asarray(joint_angles, dtype=float).ravel()
    if joint_angles.size != len(dh_params):
        raise InvalidArgumentError(
            f"Chain has {len(dh_params)} links but {joint_angles.size} joint angles were given"
        )
    return joint_angles


def forward_kinematics(dh_params: Sequence[DhParam], joint_angles) -> np.ndarray:
    """Return the 4×4 tip pose (base frame) for *joint_angles*."""
    joint_angles = _check_lengths(dh_params, joint_angles)
    tip = np.identity(4, dtype=float)
    for link, q in zip(dh_params, joint_angles):
        tip = tip @ link.compute_ft(q)
    return tip


def link_frames(dh_params: Sequence[DhParam], joint_angles) -> np.ndarray:
    """
    Return every cumulative frame along the chain as an ``(N+1, 4, 4)`` array.

    ``frames[0]`` is the base (identity), ``frames[i]`` the pose after link
    ``i-1`` and ``frames[-1]`` the tip.  Joint *i* rotates about the z axis of
    ``frames[i]``.
    """
    joint_angles = _check_lengths(dh_params, joint_angles)
    frames = np.empty((len(dh_params) + 1, 4, 4), dtype=float)
    frames[0] = np.identity(4)
    for i, (link, q) in enumerate(zip(dh_params, joint_angles)):
        frames[i + 1] = frames[i] @ link.compute_ft(q)
    return frames


def tip_position(dh_params: Sequence[DhParam], joint_angles) -> np.ndarray:
    """Convenience: only the tip XYZ."""
    return forward_kinematics(dh_params, joint_angles)[:3, 3]
