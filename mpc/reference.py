"""
Cubic reference curve y = f(x).

The controller expects the curve in the same frame as the state it is given.
The prediction of cte is only valid when that frame is the vehicle's own
(vehicle at the origin, heading along +x).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple

import casadi as ca
import numpy as np

from .errors import ConfigurationError


POLY_ORDER = 3


def polyeval(coeffs, x):
    """c0 + c1 x + c2 x^2 + c3 x^3 (ascending coefficients)."""
    return coeffs[0] + coeffs[1] * x + coeffs[2] * x * x + coeffs[3] * x * x * x


def poly_slope(coeffs, x):
    """df/dx of the cubic."""
    return coeffs[1] + 2 * coeffs[2] * x + 3 * coeffs[3] * x * x


def desired_heading(coeffs, x):
    """Heading of the reference tangent at x [rad]."""
    return ca.atan(poly_slope(coeffs, x))


@dataclass(frozen=True)
class ReferenceCurve:
    """
    Degree-3 polynomial approximating the desired path.

    Attributes:
        coeffs: (c0, c1, c2, c3), ascending powers of x
    """
    coeffs: Tuple[float, float, float, float]

    def __post_init__(self):
        coeffs = tuple(float(c) for c in np.asarray(self.coeffs, dtype=float).reshape(-1))
        if len(coeffs) != POLY_ORDER + 1:
            raise ConfigurationError(
                f"Reference curve needs {POLY_ORDER + 1} coefficients, got {len(coeffs)}"
            )
        object.__setattr__(self, 'coeffs', coeffs)

    @classmethod
    def from_waypoints(cls, xs: Sequence[float], ys: Sequence[float]) -> ReferenceCurve:
        """
        Least-squares cubic fit through waypoints.

        Args:
            xs, ys: Waypoint coordinates in the vehicle frame (at least 4 points)
        """
        xs = np.asarray(xs, dtype=float)
        ys = np.asarray(ys, dtype=float)
        if xs.shape != ys.shape or xs.size < POLY_ORDER + 1:
            raise ValueError(
                f"Need matching x/y arrays with at least {POLY_ORDER + 1} points, "
                f"got {xs.shape} and {ys.shape}"
            )
        # polyfit returns highest power first
        return cls(tuple(np.polyfit(xs, ys, POLY_ORDER)[::-1]))

    @classmethod
    def straight(cls, offset: float = 0.0) -> ReferenceCurve:
        return cls((offset, 0.0, 0.0, 0.0))

    def evaluate(self, x):
        return polyeval(self.coeffs, x)

    def heading(self, x) -> float:
        return float(np.arctan(poly_slope(self.coeffs, x)))

    def tracking_errors(self, x: float, y: float, psi: float) -> Tuple[float, float]:
        """
        Cross-track and heading error of a pose relative to the curve.

        Returns:
            (cte, epsi) with cte = f(x) - y and epsi = psi - atan(f'(x))
        """
        cte = float(self.evaluate(x)) - y
        epsi = psi - self.heading(x)
        return cte, epsi
