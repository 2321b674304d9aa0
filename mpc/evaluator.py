"""
Cost and constraint expressions of the MPC nonlinear program.

Both are built once as CasADi SX expressions of the decision vector w and
the reference coefficients p. The horizon loop is unrolled at build time,
so the resulting graph has no data-dependent branches and CasADi can
provide exact gradients and Hessians to IPOPT.
"""

from typing import Tuple, TYPE_CHECKING

import casadi as ca
import numpy as np

from .config import MPCConfig
from .layout import HorizonTrajectory, VariableLayout, STATE_FIELDS
from .reference import polyeval, desired_heading

if TYPE_CHECKING:
    from models.vehicle import KinematicBicycleModel


class CostConstraintEvaluator:
    """
    Weighted tracking cost and kinematic-consistency residuals.

    Residual block order matches the state part of the decision vector.
    Entry 0 of each block is the variable itself (pinned to the initial
    state by the constraint bounds); entries 1..N-1 are
    next_state - model(previous_state, previous_actuation).
    """

    def __init__(self, vehicle: 'KinematicBicycleModel', config: MPCConfig, layout: VariableLayout):
        self.vehicle = vehicle
        self.config = config
        self.layout = layout

    # -------------------------------------------------------------------------
    # Cost
    # -------------------------------------------------------------------------

    def cost(self, traj: HorizonTrajectory):
        cfg = self.config
        N = cfg.N
        cost = 0

        # Reference state tracking
        for t in range(N):
            cost += cfg.w_cte * traj.cte[t] ** 2
            cost += cfg.w_epsi * traj.epsi[t] ** 2
            cost += cfg.w_v * (traj.v[t] - cfg.v_ref) ** 2

        # Actuator magnitude
        for t in range(N - 1):
            cost += cfg.w_delta * traj.delta[t] ** 2
            cost += cfg.w_a * traj.a[t] ** 2

        # Actuator rate
        for t in range(N - 2):
            cost += cfg.w_delta_diff * (traj.delta[t + 1] - traj.delta[t]) ** 2
            cost += cfg.w_a_diff * (traj.a[t + 1] - traj.a[t]) ** 2

        return cost

    # -------------------------------------------------------------------------
    # Constraints
    # -------------------------------------------------------------------------

    def residuals(self, traj: HorizonTrajectory, coeffs):
        """
        Kinematic residuals, one list per state field.

        Returns:
            dict field -> list of N scalar expressions
        """
        dt = self.config.dt_s
        res = {name: [getattr(traj, name)[0]] for name in STATE_FIELDS}

        for t in range(1, self.config.N):
            x0, y0, psi0, v0, cte0, epsi0 = traj.state_at(t - 1)
            x1, y1, psi1, v1, cte1, epsi1 = traj.state_at(t)

            # Only actuation t-1 drives the transition into state t
            delta0 = traj.delta[t - 1]
            a0 = traj.a[t - 1]

            x_pred, y_pred, psi_pred, v_pred = self.vehicle.euler_step(
                x0, y0, psi0, v0, delta0, a0, dt
            )
            f0 = polyeval(coeffs, x0)
            psides0 = desired_heading(coeffs, x0)

            res['x'].append(x1 - x_pred)
            res['y'].append(y1 - y_pred)
            res['psi'].append(psi1 - psi_pred)
            res['v'].append(v1 - v_pred)
            res['cte'].append(cte1 - ((f0 - y0) + v0 * ca.sin(epsi0) * dt))
            res['epsi'].append(
                epsi1 - ((psi0 - psides0) + self.vehicle.heading_error_rate(v0, delta0) * dt)
            )

        return res

    def constraints(self, traj: HorizonTrajectory, coeffs):
        res = self.residuals(traj, coeffs)
        return ca.vertcat(*[r for name in STATE_FIELDS for r in res[name]])

    # -------------------------------------------------------------------------
    # Symbolic build
    # -------------------------------------------------------------------------

    def build(self, w, p) -> Tuple:
        """
        Cost and constraint expressions of decision vector w and coefficients p.
        """
        traj = self.layout.unpack(w)
        return self.cost(traj), self.constraints(traj, p)

    def as_function(self) -> ca.Function:
        """Numeric evaluator fg(w, coeffs) -> (f, g)."""
        w = ca.SX.sym('w', self.layout.n_vars)
        p = ca.SX.sym('coeffs', 4)
        f, g = self.build(w, p)
        return ca.Function('fg', [w, p], [f, g], ['w', 'coeffs'], ['f', 'g'])


def evaluate(fg: ca.Function, w, coeffs) -> Tuple[float, np.ndarray]:
    """Evaluate a function from CostConstraintEvaluator.as_function at numbers."""
    f, g = fg(np.asarray(w, dtype=float), np.asarray(coeffs, dtype=float))
    return float(f), np.array(g.full()).reshape(-1)
