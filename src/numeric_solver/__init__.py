"""Numeric inverse kinematics for serial arms described by DH parameters."""
from .dh_param import DhParam, dh_params_from_flat, dh_transform
from .chain import forward_kinematics, link_frames, tip_position
from .errors import IkError, InvalidArgumentError, NumericalFailureError
from .ik_problem import AnalyticJacobianGradient, FiniteDifferenceGradient, IkProblem, make_gradient
from .lbfgsb import IkResult, LbfgsbSolver
from .numeric_k import DhArmKinematics, load_dh_csv
from .numeric_wrapper import solve, solve_detailed

__all__ = [
    "AnalyticJacobianGradient",
    "DhArmKinematics",
    "DhParam",
    "FiniteDifferenceGradient",
    "IkError",
    "IkProblem",
    "IkResult",
    "InvalidArgumentError",
    "LbfgsbSolver",
    "NumericalFailureError",
    "dh_params_from_flat",
    "dh_transform",
    "forward_kinematics",
    "link_frames",
    "load_dh_csv",
    "make_gradient",
    "solve",
    "solve_detailed",
    "tip_position",
]
