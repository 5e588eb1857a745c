# Contains constants and small helpers shared across the numeric_solver package.
import math

import numpy as np

# --- L-BFGS-B Defaults ---
LBFGSB_MAX_ITERATIONS = 10000       # Iteration cap before the solve is reported as not converged
LBFGSB_GRADIENT_TOLERANCE = 1e-4    # Stop once the projected gradient norm drops below this
LBFGSB_FUNCTION_TOLERANCE = 2.220446049250313e-09  # Relative cost reduction considered "no progress"
LBFGSB_HISTORY_SIZE = 10            # Number of correction pairs kept by the limited-memory update
LBFGSB_MAX_LINE_SEARCH_STEPS = 20   # Max function evaluations per line search
LBFGSB_MAX_FUNCTION_EVALUATIONS = 15000  # Cost evaluations requested by the optimiser itself

# --- Finite-Difference Gradient ---
FINITE_DIFFERENCE_STEP = 2.2204e-6  # Perturbation applied to each joint angle (rad)
FINITE_DIFFERENCE_ACCURACY = 3      # 0 -> 2-point, 1 -> 4-point, 2 -> 6-point, 3 -> 8-point stencil

# --- Convergence ---
# A solve that stops for any reason other than convergence is still accepted as
# converged when the tip ends up this close to the target (metres).
CONVERGED_COST_TOLERANCE = 1e-6

# --- Joint Limits ---
# Used for DH tables that do not carry limit columns.
DEFAULT_JOINT_LIMITS_RAD = (-math.pi, math.pi)

# --- Homogeneous Transforms ---
TARGET_MATRIX_SIZE = 16  # Row-major 4x4
DH_VALUES_PER_LINK = 4   # d, theta, r, alpha


def is_homogeneous_transform(matrix, atol=1e-9):
    """
    Checks that *matrix* is a 4x4 homogeneous transform: bottom row exactly
    [0, 0, 0, 1] and an orthonormal rotation block.

    Args:
        matrix (np.array): Candidate 4x4 matrix.
        atol (float): Tolerance used for the orthonormality check.

    Returns:
        bool: True if the matrix is a valid homogeneous transform.
    """
    matrix = np.asarray(matrix, dtype=float)
    if matrix.shape != (4, 4):
        return False
    if not np.array_equal(matrix[3], [0.0, 0.0, 0.0, 1.0]):
        return False
    rotation = matrix[:3, :3]
    return bool(np.allclose(rotation.T @ rotation, np.identity(3), atol=atol))


def translation_matrix(x, y, z):
    """Returns a 4x4 homogeneous transform that only translates by (x, y, z)."""
    matrix = np.identity(4, dtype=float)
    matrix[:3, 3] = [x, y, z]
    return matrix
