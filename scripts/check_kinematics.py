#!/usr/bin/env python3
"""Simple command-line utility to sanity-check the forward and inverse
kinematics (FK / IK) functions provided by *src/ik_solver.py*.

This **does not** command any hardware – it only runs the mathematical
solver to verify that an IK solution fed through FK reproduces the
original tool-tip position.

Usage examples
--------------
1) Run 10 random round-trip tests (default)
   $ python scripts/check_kinematics.py

2) Increase to 100 random tests with a fixed RNG seed
   $ python scripts/check_kinematics.py -n 100 --seed 42

3) Query IK for a specific position on another arm
   $ python scripts/check_kinematics.py --arm my-arm/dh_params.csv --ik-pos 0.3 0.1 0.25

Random tests pick joint angles inside the limits, run FK to get a
reachable position, then solve IK for that position from the zero pose.
A final summary shows how many tests landed within tolerance.
"""

import argparse
import sys
from pathlib import Path

import numpy as np
from scipy.spatial.transform import Rotation as R

# Make sure the repo root is on sys.path so that `import ik_solver` works
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

import ik_solver  # noqa: E402
from numeric_solver.errors import IkError  # noqa: E402
from numeric_solver.numeric_k import DhArmKinematics  # noqa: E402

# --------------------------- Helpers -----------------------------------------

def _print_vec(label, vec, precision=4):
    formatted = ", ".join(f"{float(v):.{precision}f}" for v in np.asarray(vec).ravel())
    print(f"{label}: [{formatted}]")


def _parse_orientation(values):
    """9 numbers (row-major matrix), 4 (quaternion xyzw) or 3 (roll pitch yaw rad)."""
    if values is None:
        return None
    arr = np.asarray(values, dtype=float)
    if arr.size == 9:
        return arr.reshape(3, 3)
    if arr.size == 4:
        return R.from_quat(arr).as_matrix()
    if arr.size == 3:
        return R.from_euler('xyz', arr).as_matrix()
    raise ValueError("--ik-orient expects 3 (rpy), 4 (quat xyzw) or 9 (matrix) numbers.")

# --------------------------- Main routine ------------------------------------

def run_tests(num, tol, rng):
    arm = ik_solver.get_arm()
    lower, upper = arm.limits
    failures = 0

    for idx in range(1, num + 1):
        q_true = rng.uniform(lower, upper)
        target = ik_solver.get_fk(q_true)

        print(f"\n=== Test {idx}/{num} ===")
        _print_vec("Target position", target)

        result = ik_solver.solve_ik_detailed(target_position=target)
        _print_vec("IK joint angles (rad)", result.solution)

        fk_pos = ik_solver.get_fk(result.solution)
        _print_vec("FK position", fk_pos)

        err = np.linalg.norm(fk_pos - target)
        print(f"Position error: {err:.6f} m  ({result.iterations} iterations, {result.message})")

        if err > tol:
            print(f"FAIL: error exceeds tolerance ({tol} m)")
            failures += 1
        else:
            print("OK: within tolerance")

    print("\n================ Summary ================")
    print(f"Tests run       : {num}")
    print(f"Passed          : {num - failures}")
    print(f"Failed          : {failures}")
    return failures

# --------------------------- CLI --------------------------------------------

def main(argv=None):
    parser = argparse.ArgumentParser(
        description="DH arm kinematics utility – run random validation tests, or query FK / IK directly.")

    parser.add_argument("--arm", type=Path,
                        help="DH table CSV (defaults to $DH_IK_ARM_CSV or the bundled mini-4dof arm).")
    parser.add_argument("--gradient", choices=("finite", "analytic"), default="finite",
                        help="Gradient strategy used by the IK solver.")

    # Mutually-exclusive high-level modes
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--fk", nargs='+', type=float, metavar="J",
                      help="Compute forward kinematics for the provided joint angles (rad).")
    mode.add_argument("--ik-pos", nargs=3, type=float, metavar=("X", "Y", "Z"),
                      help="Target tool-tip position (metres) for inverse kinematics query.")

    parser.add_argument("--ik-orient", nargs='+', type=float, metavar='R',
                        help="Target orientation, stored with the target but not part of the cost.\n"
                             "Provide 9 numbers (row-major rotation matrix), 4 (xyzw quaternion)\n"
                             "or 3 (roll pitch yaw rad).")
    parser.add_argument("--q0", nargs='+', type=float, metavar="J",
                        help="Initial joint guess for --ik-pos (defaults to zeros).")

    # Random test options (only if neither FK nor IK explicit query is given)
    parser.add_argument("-n", "--num", type=int, default=10,
                        help="Number of random tests to run (ignored for explicit FK/IK query).")
    parser.add_argument("--seed", type=int, help="RNG seed for reproducibility (random tests).")
    parser.add_argument("--tol", type=float, default=1e-3,
                        help="Acceptable position error when validating random tests (m).")

    args = parser.parse_args(argv)
    np.set_printoptions(precision=4, suppress=True)

    try:
        if args.arm is not None or args.gradient != "finite":
            csv_path = args.arm if args.arm is not None else ik_solver._resolve_csv(ik_solver.DEFAULT_ARM_CSV)
            ik_solver.set_arm(DhArmKinematics.from_csv(csv_path, gradient=args.gradient))

        # FK query ----------------------------------------------------------
        if args.fk is not None:
            fk_mat = ik_solver.get_fk_matrix(np.array(args.fk, dtype=float))
            _print_vec("Position", fk_mat[:3, 3])
            print("Rotation matrix:\n", np.array2string(fk_mat[:3, :3], formatter={'float': lambda x: f"{x: .4f}"}))
            return

        # IK query ----------------------------------------------------------
        if args.ik_pos is not None:
            result = ik_solver.solve_ik_detailed(
                target_position=np.array(args.ik_pos, dtype=float),
                target_orientation_matrix=_parse_orientation(args.ik_orient),
                initial_joint_angles=args.q0,
            )
            _print_vec("IK joint angles (rad)", result.solution)
            print(f"Residual: {result.final_cost:.6f} m  converged={result.converged}  "
                  f"iterations={result.iterations}")
            return

        # Otherwise run random validation tests ----------------------------
        failures = run_tests(args.num, args.tol, np.random.default_rng(args.seed))
    except (IkError, ValueError, FileNotFoundError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if failures:
        sys.exit(1)
    print("\nAll tests passed!")


if __name__ == "__main__":
    main()
