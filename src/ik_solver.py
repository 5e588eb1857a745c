"""ik_solver.py – High-level kinematics API

This module exposes **arm-agnostic** helper functions:
    solve_ik(...)                 – inverse kinematics (position target)
    solve_ik_detailed(...)        – same, but returns the full IkResult
    solve_ik_path_sequential(...) – IK along a list of points
    solve_ik_multi_start(...)     – several seeds, best solution wins
    get_fk_matrix(...)            – full 4×4 pose of the tool tip
    get_fk(...)                   – convenience: only tool-tip XYZ

The arm is loaded lazily, on the first FK/IK call, from the DH table named by
the environment variable ``DH_IK_ARM_CSV`` (default
``arms/mini-4dof/dh_params.csv`` relative to the repository root).  The
gradient strategy is picked with ``DH_IK_GRADIENT``:

    "finite"    – central finite differences (default)
    "analytic"  – closed-form positional Jacobian

Call ``set_arm()`` to use an arm built in code instead.  Setting
``DH_IK_LOG=1`` writes a CSV of every path solve to ``diagnostics/ik_plans``.
"""

from __future__ import annotations

import csv
import datetime
import os
from pathlib import Path

import numpy as np

from numeric_solver import utils
from numeric_solver.errors import InvalidArgumentError, NumericalFailureError
from numeric_solver.numeric_k import DhArmKinematics

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ARM_CSV = "arms/mini-4dof/dh_params.csv"
IK_LOG_DIR = Path("diagnostics/ik_plans")

# Filled by _ensure_loaded() / set_arm().
_ARM: DhArmKinematics | None = None
NUM_JOINTS = 0


# -----------------------------------------------------------
# Arm loading
# -----------------------------------------------------------

def _resolve_csv(path_str: str) -> Path:
    path = Path(path_str)
    if not path.is_file():
        path = REPO_ROOT / path_str
    if not path.is_file():
        raise FileNotFoundError(f"DH CSV not found at {path_str} or {path}")
    return path


def set_arm(arm: DhArmKinematics | None) -> None:
    """Install *arm* as the module-wide model (``None`` resets to lazy loading)."""
    global _ARM, NUM_JOINTS
    _ARM = arm
    NUM_JOINTS = arm.dof if arm is not None else 0


def _ensure_loaded() -> DhArmKinematics:
    """Internal helper – lazily load the arm from the configured CSV (idempotent)."""
    if _ARM is not None:
        return _ARM

    csv_path = _resolve_csv(os.getenv("DH_IK_ARM_CSV", DEFAULT_ARM_CSV))
    gradient = os.getenv("DH_IK_GRADIENT", "finite").lower()
    arm = DhArmKinematics.from_csv(csv_path, gradient=gradient)
    set_arm(arm)
    print(f"[IK Solver] Loaded {csv_path.name} ({NUM_JOINTS} joints, {gradient} gradient).")
    return arm


def get_arm() -> DhArmKinematics:
    return _ensure_loaded()


def _target_pose(target_position, target_orientation_matrix=None) -> np.ndarray:
    position = np.asarray(target_position, dtype=float).ravel()
    if position.size != 3:
        raise InvalidArgumentError(f"target_position must have 3 values, got {position.size}")
    pose = utils.translation_matrix(*position)
    # Orientation is stored with the target but the cost only uses position.
    if target_orientation_matrix is not None:
        pose[:3, :3] = np.asarray(target_orientation_matrix, dtype=float).reshape(3, 3)
    return pose


def _initial_guess(arm: DhArmKinematics, initial_joint_angles) -> np.ndarray:
    if initial_joint_angles is None:
        return np.zeros(arm.dof, dtype=float)
    return np.asarray(initial_joint_angles, dtype=float)


# -----------------------------------------------------------
# Public API
# -----------------------------------------------------------

def solve_ik_detailed(*, target_position, target_orientation_matrix=None, initial_joint_angles=None):
    """Run one solve and return the full ``IkResult`` (raises on bad input or NaN)."""
    arm = _ensure_loaded()
    pose = _target_pose(target_position, target_orientation_matrix)
    return arm.ik(pose, _initial_guess(arm, initial_joint_angles))


def solve_ik(*, target_position, target_orientation_matrix=None, initial_joint_angles=None, verbose=False):
    """
    Returns joint angles for *target_position*, or None when the solve failed
    numerically.  A solution that did not converge is still returned (it is
    the best vector found); pass ``verbose=True`` to get a warning about it.
    """
    try:
        result = solve_ik_detailed(
            target_position=target_position,
            target_orientation_matrix=target_orientation_matrix,
            initial_joint_angles=initial_joint_angles,
        )
    except NumericalFailureError as e:
        print(f"[IK Solver] ERROR: {e}")
        return None

    if verbose and not result.converged:
        print(f"[IK Solver] WARNING: not converged after {result.iterations} iterations "
              f"(residual {result.final_cost:.6f} m, {result.message})")
    return result.solution


def get_fk_matrix(active_joint_angles):
    """Return 4×4 tool-tip pose (base frame) for *active_joint_angles*."""
    return _ensure_loaded().fk(active_joint_angles)


def get_fk(active_joint_angles):
    """Convenience: return just XYZ position from ``get_fk_matrix``."""
    return get_fk_matrix(active_joint_angles)[:3, 3]


def solve_ik_multi_start(target_position, seeds, *, target_orientation_matrix=None):
    """
    Solves IK once per seed and keeps the lowest-cost result.  Each solve owns
    its own problem instance, so seeds never influence one another.

    Args:
        target_position (list): Target [x, y, z].
        seeds (list): Initial joint-angle vectors to try.
        target_orientation_matrix (np.array, optional): 3x3 rotation stored with the target.

    Returns:
        IkResult: The best result; ties keep the earliest seed.
    """
    if len(seeds) == 0:
        raise InvalidArgumentError("solve_ik_multi_start needs at least one seed")

    best = None
    for seed in seeds:
        result = solve_ik_detailed(
            target_position=target_position,
            target_orientation_matrix=target_orientation_matrix,
            initial_joint_angles=seed,
        )
        if best is None or result.final_cost < best.final_cost:
            best = result
    return best


# ----------------------------------------------------------------------------------
# Path IK (Sequential) helper – supports a `verbose` flag to silence prints
# ----------------------------------------------------------------------------------

def solve_ik_path_sequential(path_points, initial_joint_angles=None, target_orientations=None, *, verbose=True):
    """
    Solves IK for a sequence of points, using the previous solution as the
    initial guess for the next. This is ideal for smooth, connected paths.

    Args:
        path_points (list): A sequence of [x, y, z] target positions.
        initial_joint_angles (list, optional): Starting joint angles for the first point.
        target_orientations (list, optional): A list of 3x3 rotation matrices.
                                             Can be flat (9,) or (3,3).
        verbose (bool, optional): Whether to print debug information.

    Returns:
        list or None: A list of joint angle solutions for the path, or None if
        any point failed numerically.
    """
    if target_orientations and len(target_orientations) != len(path_points):
        raise ValueError("The number of target orientations must match the number of path points.")

    arm = _ensure_loaded()
    current_joint_angles = _initial_guess(arm, initial_joint_angles).copy()

    all_solutions = []
    for i, position in enumerate(path_points):
        if verbose:
            print(f"\n--- Path Point {i+1}/{len(path_points)} ---")

        orientation = target_orientations[i] if target_orientations else None

        try:
            result = solve_ik_detailed(
                target_position=position,
                target_orientation_matrix=orientation,
                initial_joint_angles=current_joint_angles,
            )
        except NumericalFailureError as e:
            if verbose:
                print(f"IK failed for point {i} at position {position}: {e}. Aborting path calculation.")
            return None

        if verbose:
            status = "converged" if result.converged else "NOT converged"
            print(f"{status} in {result.iterations} iterations, residual {result.final_cost:.6f} m")

        all_solutions.append(result.solution)
        current_joint_angles[:] = result.solution

    if all_solutions and os.environ.get("DH_IK_LOG", "0") == "1":
        _write_path_log(path_points, all_solutions)

    return all_solutions


def _write_path_log(path_points, joint_solutions):
    session_id = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    IK_LOG_DIR.mkdir(parents=True, exist_ok=True)
    csv_file = IK_LOG_DIR / f"ik_plan_{session_id}.csv"
    with open(csv_file, "w", newline="") as fp:
        writer = csv.writer(fp)
        header = ["idx", "target_x", "target_y", "target_z", *[f"J{i+1}_rad" for i in range(len(joint_solutions[0]))]]
        writer.writerow(header)
        for idx, (pt, q) in enumerate(zip(path_points, joint_solutions)):
            writer.writerow([idx, *pt, *q])
    print(f"[IK Solver] Diagnostics CSV saved -> {csv_file}")
    return csv_file


if __name__ == '__main__':
    import time

    zero_angles = np.zeros(get_arm().dof)
    start = get_fk(zero_angles)
    print(f"Tool tip at zero pose: {np.round(start, 4)}")

    points = 200
    path = [start + np.array([0.0, 0.0, -0.05 * (i / (points - 1))]) for i in range(points)]

    t0 = time.perf_counter()
    solutions = solve_ik_path_sequential(path, zero_angles, verbose=False)
    t1 = time.perf_counter()

    if solutions is not None:
        print(f"Solved {points} poses in {t1 - t0:.3f} s  (avg {(t1 - t0) / points * 1e3:.2f} ms per pose)")
    else:
        print("Path IK failed (numerical failure on at least one pose)")
