import contextlib
import csv
import io
import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np

REPO_ROOT = Path(__file__).resolve().parents[1]
# Add 'src', 'scripts' and 'diagnostics' to the Python path so the command-line tools can be imported
for sub in ("src", "scripts", "diagnostics"):
    sys.path.append(str(REPO_ROOT / sub))

import check_kinematics
import ik_path_diagnostics
import ik_solver
from numeric_solver.numeric_k import DhArmKinematics

ARM_CSV = REPO_ROOT / "arms" / "mini-4dof" / "dh_params.csv"
PLANAR_2R = np.array([[0.0, 0.0, 1.0, 0.0], [0.0, 0.0, 1.0, 0.0]])


class TestCheckKinematics(unittest.TestCase):
    """
    Tests for the FK / IK command-line utility.
    """

    def tearDown(self) -> None:
        ik_solver.set_arm(None)

    def _run(self, *argv) -> str:
        with contextlib.redirect_stdout(io.StringIO()) as out:
            check_kinematics.main(["--arm", str(ARM_CSV), *argv])
        return out.getvalue()

    def test_fk_query(self) -> None:
        output = self._run("--fk", "0", "0", "0", "0")
        self.assertIn("Position: [0.4400, 0.0000, 0.1000]", output)
        self.assertIn("Rotation matrix:", output)

    def test_ik_query(self) -> None:
        output = self._run("--ik-pos", "0.44", "0", "0.1", "--ik-orient", "0", "0", "0")
        self.assertIn("IK joint angles (rad):", output)
        self.assertIn("Residual:", output)

    def test_wrong_joint_count_exits(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            self._run("--fk", "0")
        self.assertEqual(ctx.exception.code, 1)

    def test_random_round_trips(self) -> None:
        ik_solver.set_arm(DhArmKinematics.from_dh(PLANAR_2R, [-0.5, 0.5], [0.5, 1.5]))
        with contextlib.redirect_stdout(io.StringIO()) as out:
            failures = check_kinematics.run_tests(3, 1e-3, np.random.default_rng(7))
        self.assertEqual(failures, 0, out.getvalue())

    def test_parse_orientation(self) -> None:
        self.assertIsNone(check_kinematics._parse_orientation(None))
        np.testing.assert_allclose(check_kinematics._parse_orientation([0.0, 0.0, 0.0, 1.0]), np.identity(3))
        np.testing.assert_allclose(check_kinematics._parse_orientation(np.identity(3).ravel()), np.identity(3))
        with self.assertRaises(ValueError):
            check_kinematics._parse_orientation([1.0, 2.0])


class TestPathDiagnostics(unittest.TestCase):
    """
    Tests for the path diagnostics helper (CSV + plots).
    """

    def setUp(self) -> None:
        ik_solver.set_arm(DhArmKinematics.from_dh(PLANAR_2R))

    def tearDown(self) -> None:
        ik_solver.set_arm(None)

    def test_generate_line(self) -> None:
        points = ik_path_diagnostics._generate_line(np.array([1.0, 0.0, 0.0]), np.array([0.0, 0.5, 0.0]), 3)
        np.testing.assert_allclose(points, [[1.0, 0.0, 0.0], [1.0, 0.25, 0.0], [1.0, 0.5, 0.0]])
        with self.assertRaises(ValueError):
            ik_path_diagnostics._generate_line(np.zeros(3), np.ones(3), 1)

    def test_run_writes_csv_and_plots(self) -> None:
        path = ik_path_diagnostics._generate_line(np.array([1.8, 0.0, 0.0]), np.array([-0.6, 0.6, 0.0]), 5)

        with tempfile.TemporaryDirectory() as tmp, contextlib.redirect_stdout(io.StringIO()):
            report = ik_path_diagnostics.run(path, [0.2, 0.4], Path(tmp))

            self.assertTrue(report["csv"].is_file())
            self.assertTrue(report["angles_png"].is_file())
            self.assertTrue(report["error_png"].is_file())
            with open(report["csv"], newline="") as fp:
                rows = list(csv.reader(fp))

        self.assertEqual(rows[0][-1], "pos_error_m")
        self.assertEqual(len(rows), len(path) + 1)
        self.assertLess(max(report["errors"]), 1e-3)

    def test_load_json_points(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            good = Path(tmp) / "points.json"
            good.write_text("[[0, 0, 1], [0.5, 0, 1]]")
            bad = Path(tmp) / "bad.json"
            bad.write_text("[[0, 1]]")

            self.assertEqual(ik_path_diagnostics._load_json_points(good), [[0.0, 0.0, 1.0], [0.5, 0.0, 1.0]])
            with self.assertRaises(ValueError):
                ik_path_diagnostics._load_json_points(bad)
            with self.assertRaises(FileNotFoundError):
                ik_path_diagnostics._load_json_points(Path(tmp) / "missing.json")


if __name__ == '__main__':
    unittest.main()
