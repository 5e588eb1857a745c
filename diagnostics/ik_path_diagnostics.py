"""ik_path_diagnostics.py
Solve IK along a Cartesian path and report how well the tool tip follows it.

Each target is seeded with the previous solution, so the report shows what
a smooth move would look like: targets outside the reachable workspace or
the joint limits appear as residual error and as joint traces pinned
against their limit lines.

Examples
--------
Straight line of 200 points, 10 cm down from the zero-pose tip::

    python diagnostics/ik_path_diagnostics.py --line 0 0 -0.1 200

Points from a JSON list of [x, y, z]::

    python diagnostics/ik_path_diagnostics.py --json points.json --arm my-arm/dh_params.csv

Results go to ``--out`` (default ``diagnostics/ik_path``): one CSV with
targets, joint angles and error per point, plus two PNG plots.
"""

from __future__ import annotations

import argparse
import csv
import datetime as _dt
import json
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import ik_solver  # noqa: E402
from numeric_solver.numeric_k import DhArmKinematics  # noqa: E402


def _load_json_points(path: Path) -> List[List[float]]:
    with open(path) as fp:
        points = np.asarray(json.load(fp), dtype=float)
    if points.ndim != 2 or points.shape[1] != 3 or len(points) == 0:
        raise ValueError(f"{path} must hold a non-empty list of [x, y, z] points")
    return points.tolist()


def _generate_line(start_pos: np.ndarray, offset: np.ndarray, n: int) -> List[List[float]]:
    if n < 2:
        raise ValueError("A line needs at least 2 points")
    fractions = np.linspace(0.0, 1.0, n)[:, None]
    return (np.asarray(start_pos, dtype=float) + fractions * np.asarray(offset, dtype=float)).tolist()


def tracking_errors(path_points, joint_path) -> List[float]:
    """Distance between each target and the FK position of its solution (m)."""
    return [
        float(np.linalg.norm(ik_solver.get_fk(q) - np.asarray(target, dtype=float)))
        for target, q in zip(path_points, joint_path)
    ]


def write_csv(csv_path: Path, path_points, joint_path, errors) -> Path:
    joint_cols = [f"J{i+1}_rad" for i in range(len(joint_path[0]))]
    with open(csv_path, "w", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(["index", "target_x", "target_y", "target_z", *joint_cols, "pos_error_m"])
        for idx, (target, q, err) in enumerate(zip(path_points, joint_path, errors)):
            writer.writerow([idx, *target, *q, err])
    return csv_path


def _save_figure(fig, png_path: Path) -> Path:
    fig.tight_layout()
    fig.savefig(png_path)
    plt.close(fig)
    return png_path


def save_plots(out_dir: Path, ts: str, joint_path, errors, limits: Optional[Sequence[np.ndarray]] = None,
               tolerance: float = 1e-3):
    """Joint traces (with their limits, when given) and tracking error vs. path index."""
    q = np.asarray(joint_path)
    steps = np.arange(len(q))

    fig, ax = plt.subplots(figsize=(10, 4))
    for j, trace in enumerate(q.T):
        (line,) = ax.plot(steps, trace, label=f"J{j+1}")
        if limits is not None:
            for bound in (limits[0][j], limits[1][j]):
                if np.isfinite(bound):
                    ax.axhline(bound, color=line.get_color(), linestyle=":", linewidth=0.8)
    ax.set(title="Joint angles along the path", xlabel="Path index", ylabel="rad")
    ax.legend(ncol=min(len(q.T), 6), fontsize="small")
    angles_png = _save_figure(fig, out_dir / f"ik_angles_{ts}.png")

    fig, ax = plt.subplots(figsize=(10, 3))
    ax.plot(steps, errors, marker=".", linewidth=1)
    ax.axhline(tolerance, color="red", linestyle="--", linewidth=0.8, label=f"{tolerance:g} m")
    ax.set(title="Tip tracking error", xlabel="Path index", ylabel="m")
    ax.legend(loc="upper right")
    error_png = _save_figure(fig, out_dir / f"ik_error_{ts}.png")

    return angles_png, error_png


def run(path_points, start_q, out_dir: Path) -> dict:
    """Solve IK along *path_points*, then write the CSV and plots into *out_dir*."""
    joint_path = ik_solver.solve_ik_path_sequential(path_points, initial_joint_angles=start_q, verbose=False)
    if joint_path is None:
        raise RuntimeError("IK solver failed on provided path")

    errors = tracking_errors(path_points, joint_path)

    ts = _dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    out_dir.mkdir(exist_ok=True, parents=True)
    csv_path = write_csv(out_dir / f"ik_log_{ts}.csv", path_points, joint_path, errors)
    angles_png, error_png = save_plots(out_dir, ts, joint_path, errors, limits=ik_solver.get_arm().limits)
    print(f"[Diag] Wrote {csv_path}, {angles_png.name}, {error_png.name}")

    return {"csv": csv_path, "angles_png": angles_png, "error_png": error_png, "errors": errors}


def main(argv=None) -> None:
    ap = argparse.ArgumentParser(description="IK path diagnostics")
    source = ap.add_mutually_exclusive_group(required=True)
    source.add_argument("--line", nargs=4, type=float, metavar=("DX", "DY", "DZ", "N"),
                        help="N-point straight line from the zero-pose tip, offset by (DX, DY, DZ) metres")
    source.add_argument("--json", type=Path, help="JSON file with a list of [x, y, z] points")
    ap.add_argument("--arm", type=Path, help="DH table CSV (defaults to the ik_solver configuration)")
    ap.add_argument("--out", type=Path, default=Path("diagnostics/ik_path"), help="Output directory")
    args = ap.parse_args(argv)

    if args.arm is not None:
        ik_solver.set_arm(DhArmKinematics.from_csv(args.arm))

    start_q = np.zeros(ik_solver.get_arm().dof)
    if args.line:
        dx, dy, dz, n = args.line
        path_points = _generate_line(ik_solver.get_fk(start_q), np.array([dx, dy, dz]), int(n))
    else:
        path_points = _load_json_points(args.json)

    print(f"[Diag] Solving IK for {len(path_points)} points")
    report = run(path_points, start_q, args.out)
    print(f"[Diag] Max tracking error: {max(report['errors']):.6f} m")


if __name__ == "__main__":
    main()
