"""errors.py
Exception types raised by the numeric IK solver.

Validation problems are reported *before* any optimisation work starts
(``InvalidArgumentError``); numerical blow-ups found after solving are raised
rather than returned as silently wrong joint angles
(``NumericalFailureError``).  Non-convergence is not an exception – it is the
``converged`` flag on :class:`numeric_solver.lbfgsb.IkResult`.
"""

__all__ = [
    "IkError",
    "InvalidArgumentError",
    "NumericalFailureError",
]


class IkError(Exception):
    """Base class for every error raised by the solver."""


class InvalidArgumentError(IkError, ValueError):
    """Array length mismatch, empty chain, inverted joint limits, ..."""


class NumericalFailureError(IkError, RuntimeError):
    """The solver produced NaN/Inf joint angles or cost."""
