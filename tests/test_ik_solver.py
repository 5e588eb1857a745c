import contextlib
import csv
import io
import math
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import numpy as np

# Add the 'src' directory to the Python path to allow importing ik_solver
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

import ik_solver
from numeric_solver.errors import InvalidArgumentError, NumericalFailureError
from numeric_solver.lbfgsb import IkResult
from numeric_solver.numeric_k import DhArmKinematics

PLANAR_2R = np.array([[0.0, 0.0, 1.0, 0.0], [0.0, 0.0, 1.0, 0.0]])


class TestIkSolverApi(unittest.TestCase):
    """
    Tests for the module-level FK / IK helpers, using a two-link planar arm
    installed with set_arm().
    """

    def setUp(self) -> None:
        self.arm = DhArmKinematics.from_dh(PLANAR_2R)
        ik_solver.set_arm(self.arm)

    def tearDown(self) -> None:
        ik_solver.set_arm(None)

    def test_num_joints_follows_arm(self) -> None:
        self.assertEqual(ik_solver.NUM_JOINTS, 2)

    def test_fk_helpers(self) -> None:
        np.testing.assert_allclose(ik_solver.get_fk([0.0, math.pi / 2]), [1.0, 1.0, 0.0], atol=1e-12)
        self.assertEqual(ik_solver.get_fk_matrix([0.0, 0.0]).shape, (4, 4))

    def test_solve_ik_stretched_arm(self) -> None:
        q = ik_solver.solve_ik(target_position=[2.0, 0.0, 0.0], initial_joint_angles=[0.0, 0.0])
        np.testing.assert_allclose(q, [0.0, 0.0], atol=1e-6)

    def test_orientation_does_not_change_solution(self) -> None:
        rotation = [[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]]
        plain = ik_solver.solve_ik(target_position=[1.0, 1.0, 0.0], initial_joint_angles=[0.3, 0.3])
        rotated = ik_solver.solve_ik(target_position=[1.0, 1.0, 0.0], target_orientation_matrix=rotation,
                                     initial_joint_angles=[0.3, 0.3])
        np.testing.assert_array_equal(plain, rotated)

    def test_bad_target_position(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            ik_solver.solve_ik(target_position=[1.0, 1.0])

    def test_numerical_failure_returns_none(self) -> None:
        with mock.patch.object(DhArmKinematics, 'ik', side_effect=NumericalFailureError("NaN cost")):
            with contextlib.redirect_stdout(io.StringIO()) as out:
                q = ik_solver.solve_ik(target_position=[1.0, 1.0, 0.0])
        self.assertIsNone(q)
        self.assertIn("NaN cost", out.getvalue())

    def test_non_convergence_warning(self) -> None:
        """
        A non-converged solve still returns its best vector; with verbose on,
        a warning is printed.
        """
        best_effort = IkResult(np.array([0.1, 0.2]), 0.05, False, 3, 7, 1, "STOP: TOTAL NO. OF ITERATIONS REACHED LIMIT")
        with mock.patch.object(DhArmKinematics, 'ik', return_value=best_effort):
            with contextlib.redirect_stdout(io.StringIO()) as out:
                q = ik_solver.solve_ik(target_position=[1.0, 1.0, 0.0], verbose=True)

        np.testing.assert_array_equal(q, [0.1, 0.2])
        self.assertIn("WARNING", out.getvalue())

    def test_multi_start_keeps_lowest_cost(self) -> None:
        result = ik_solver.solve_ik_multi_start([1.0, 1.0, 0.0], [[0.0, 0.0], [0.3, 0.3]])
        self.assertLess(result.final_cost, 1e-3)

    def test_multi_start_needs_seeds(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            ik_solver.solve_ik_multi_start([1.0, 1.0, 0.0], [])


class TestPathSolve(unittest.TestCase):
    """
    Tests for sequential path IK.
    """

    def setUp(self) -> None:
        ik_solver.set_arm(DhArmKinematics.from_dh(PLANAR_2R))
        self.path = [[1.8 - 0.6 * t, 0.6 * t, 0.0] for t in np.linspace(0.0, 1.0, 6)]

    def tearDown(self) -> None:
        ik_solver.set_arm(None)

    def test_path_is_tracked(self) -> None:
        solutions = ik_solver.solve_ik_path_sequential(self.path, [0.2, 0.4], verbose=False)

        self.assertEqual(len(solutions), len(self.path))
        for point, q in zip(self.path, solutions):
            np.testing.assert_allclose(ik_solver.get_fk(q), point, atol=1e-3)

    def test_orientation_count_must_match(self) -> None:
        with self.assertRaises(ValueError):
            ik_solver.solve_ik_path_sequential(self.path, target_orientations=[np.identity(3)], verbose=False)

    def test_numerical_failure_aborts_path(self) -> None:
        with mock.patch.object(DhArmKinematics, 'ik', side_effect=NumericalFailureError("NaN")):
            self.assertIsNone(ik_solver.solve_ik_path_sequential(self.path, verbose=False))

    def test_log_csv_written_when_enabled(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch.dict(os.environ, {"DH_IK_LOG": "1"}), \
                    mock.patch.object(ik_solver, "IK_LOG_DIR", Path(tmp)), \
                    contextlib.redirect_stdout(io.StringIO()):
                ik_solver.solve_ik_path_sequential(self.path, [0.2, 0.4], verbose=False)

            files = list(Path(tmp).glob("ik_plan_*.csv"))
            self.assertEqual(len(files), 1)
            with open(files[0], newline="") as fp:
                rows = list(csv.reader(fp))
            self.assertEqual(rows[0], ["idx", "target_x", "target_y", "target_z", "J1_rad", "J2_rad"])
            self.assertEqual(len(rows), len(self.path) + 1)


class TestLazyLoading(unittest.TestCase):
    """
    The arm is loaded on first use from the CSV named in the environment.
    """

    def setUp(self) -> None:
        ik_solver.set_arm(None)

    def tearDown(self) -> None:
        ik_solver.set_arm(None)

    def test_loads_configured_csv(self) -> None:
        csv_path = Path(__file__).resolve().parents[1] / "arms" / "mini-4dof" / "dh_params.csv"
        with mock.patch.dict(os.environ, {"DH_IK_ARM_CSV": str(csv_path), "DH_IK_GRADIENT": "analytic"}), \
                contextlib.redirect_stdout(io.StringIO()):
            arm = ik_solver.get_arm()

        self.assertEqual(arm.dof, 4)
        self.assertEqual(ik_solver.NUM_JOINTS, 4)
        self.assertIs(ik_solver.get_arm(), arm)

    def test_missing_csv(self) -> None:
        with mock.patch.dict(os.environ, {"DH_IK_ARM_CSV": "no/such/arm.csv"}):
            with self.assertRaises(FileNotFoundError):
                ik_solver.get_fk([0.0])


if __name__ == '__main__':
    unittest.main()
