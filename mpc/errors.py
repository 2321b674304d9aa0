"""
Exceptions raised by the MPC tracker.
"""


class MPCError(Exception):
    """Base class for MPC tracker errors."""


class ConfigurationError(MPCError, ValueError):
    """Invalid horizon, bounds or weights. Raised at construction time."""


class SolverNonConvergence(MPCError, RuntimeError):
    """
    The NLP solver did not reach an acceptable optimum.

    Per-cycle and recoverable: callers are expected to fall back to a safe
    command (hold previous steering, brake) and try again next cycle.

    Attributes:
        status: Solver return status string (e.g. 'Maximum_WallTime_Exceeded')
        iterations: Iteration count reported by the solver (-1 if unknown)
    """

    def __init__(self, message: str, status: str = "", iterations: int = -1):
        super().__init__(message)
        self.status = status
        self.iterations = iterations


class NumericDegeneracy(SolverNonConvergence):
    """Non-finite inputs or a non-finite solution vector."""
