"""
Receding-horizon MPC controller.

Builds the NLP once with CasADi and solves it each control cycle with IPOPT.
Only the first actuator pair of each solution is meant to be applied; the
rest of the plan is returned for diagnostics.

Decision vector: [x, y, psi, v, cte, epsi] x N, [delta, a] x (N-1)
Parameters: reference polynomial coefficients (c0, c1, c2, c3)
"""

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, TYPE_CHECKING

import casadi as ca
import numpy as np

from .config import MPCConfig
from .errors import NumericDegeneracy, SolverNonConvergence
from .evaluator import CostConstraintEvaluator, evaluate
from .layout import HorizonTrajectory, VariableLayout

if TYPE_CHECKING:
    from models.vehicle import KinematicBicycleModel

logger = logging.getLogger(__name__)


@dataclass
class MPCSolution:
    """Container for one successful MPC solve."""
    steering: float           # First steering command [rad]
    acceleration: float       # First throttle/brake command [-1, 1]
    x_pred: List[float]       # Predicted x, steps 1..N-1
    y_pred: List[float]       # Predicted y, steps 1..N-1
    trajectory: HorizonTrajectory
    cost: float
    status: str               # IPOPT return status
    iterations: int
    solve_time: float         # Wall clock time [s]

    @property
    def actuators(self) -> Tuple[float, float]:
        return self.steering, self.acceleration


class MPCController:
    """
    Kinematic MPC path tracker.

    The solver, bounds and constraint structure are built at construction.
    Each call to solve() is independent of previous calls (no warm start).
    An instance must not be shared between threads without external locking.
    """

    def __init__(self, vehicle: 'KinematicBicycleModel', config: Optional[MPCConfig] = None):
        """
        Initialize the controller.

        Args:
            vehicle: KinematicBicycleModel instance (prediction model and actuator limits)
            config: MPC configuration (defaults to MPCConfig())
        """
        self.vehicle = vehicle
        self.config = config or MPCConfig()

        p = self.vehicle.params
        self.layout = VariableLayout(
            self.config.N, p.max_delta_rad, p.min_accel, p.max_accel
        )
        self.evaluator = CostConstraintEvaluator(self.vehicle, self.config, self.layout)
        self.lbx, self.ubx = self.layout.variable_bounds()

        self._build_solver()

    def _build_solver(self) -> None:
        w = ca.SX.sym('w', self.layout.n_vars)
        coeffs = ca.SX.sym('coeffs', 4)
        cost, g = self.evaluator.build(w, coeffs)

        nlp = {
            'x': w,        # Decision variables
            'f': cost,     # Objective
            'g': g,        # Kinematic residuals
            'p': coeffs,   # Reference polynomial
        }
        self.solver = ca.nlpsol('mpc_solver', 'ipopt', nlp, self.config.ipopt_options())
        self.fg = self.evaluator.as_function()

        logger.debug(
            "Built MPC solver: N=%d, dt=%.3fs, n_vars=%d, n_constraints=%d",
            self.config.N, self.config.dt_s, self.layout.n_vars, self.layout.n_constraints,
        )

    def evaluate(self, w: Sequence[float], coeffs: Sequence[float]) -> Tuple[float, np.ndarray]:
        """
        Evaluate cost and constraint residuals at a numeric decision vector.

        Returns:
            (cost, g) with g of length 6N
        """
        return evaluate(self.fg, w, coeffs)

    def solve(self, state: Sequence[float], coeffs: Sequence[float]) -> MPCSolution:
        """
        Solve one MPC cycle.

        Args:
            state: [x, y, psi, v, cte, epsi] at the start of the horizon
            coeffs: [c0, c1, c2, c3] reference polynomial, same frame as state

        Returns:
            MPCSolution with the first actuator pair and the predicted trajectory

        Raises:
            NumericDegeneracy: non-finite inputs or solution
            SolverNonConvergence: IPOPT did not report success
        """
        state = np.asarray(state, dtype=float).reshape(-1)
        coeffs = np.asarray(coeffs, dtype=float).reshape(-1)
        if state.shape[0] != 6:
            raise ValueError(f"State must have 6 entries, got {state.shape[0]}")
        if coeffs.shape[0] != 4:
            raise ValueError(f"Reference curve needs 4 coefficients, got {coeffs.shape[0]}")
        if not (np.all(np.isfinite(state)) and np.all(np.isfinite(coeffs))):
            logger.warning("Rejecting non-finite MPC input: state=%s coeffs=%s", state, coeffs)
            raise NumericDegeneracy("Non-finite state or reference coefficients", status="Invalid_Input")

        t_start = time.time()

        x0 = self.layout.initial_guess(state)
        lbg, ubg = self.layout.constraint_bounds(state)

        try:
            sol = self.solver(
                x0=x0,
                p=coeffs,
                lbx=self.lbx,
                ubx=self.ubx,
                lbg=lbg,
                ubg=ubg,
            )
        except RuntimeError as err:
            logger.warning("MPC solver raised: %s", err)
            raise SolverNonConvergence(f"Solver failed: {err}", status="Exception") from err

        solve_time = time.time() - t_start
        stats = self.solver.stats()
        status = str(stats.get('return_status', 'unknown'))
        iterations = int(stats.get('iter_count', -1))

        if not stats.get('success', False):
            logger.warning(
                "MPC solve did not converge: status=%s, iterations=%d, time=%.3fs",
                status, iterations, solve_time,
            )
            raise SolverNonConvergence(
                f"MPC solve did not converge ({status})", status=status, iterations=iterations
            )

        w_opt = np.array(sol['x'].full()).reshape(-1)
        cost_opt = float(sol['f'])
        if not (np.all(np.isfinite(w_opt)) and np.isfinite(cost_opt)):
            logger.warning("MPC solution is not finite (status=%s)", status)
            raise NumericDegeneracy(
                "Solver returned a non-finite solution", status=status, iterations=iterations
            )

        traj = self.layout.unpack(w_opt)
        solution = MPCSolution(
            steering=float(traj.delta[0]),
            acceleration=float(traj.a[0]),
            x_pred=[float(v) for v in traj.x[1:]],
            y_pred=[float(v) for v in traj.y[1:]],
            trajectory=traj,
            cost=cost_opt,
            status=status,
            iterations=iterations,
            solve_time=solve_time,
        )

        logger.debug(
            "MPC solve: steer=%.4f rad, accel=%.3f, cost=%.3f, iter=%d, time=%.3fs",
            solution.steering, solution.acceleration, cost_opt, iterations, solve_time,
        )
        return solution

    def compute_control(
        self,
        state: Sequence[float],
        coeffs: Sequence[float],
        mpc_x_vals: Optional[List[float]] = None,
        mpc_y_vals: Optional[List[float]] = None,
    ) -> Tuple[float, float]:
        """
        Solve one cycle and return (steering, acceleration).

        Predicted x/y coordinates (N-1 each) are appended to mpc_x_vals and
        mpc_y_vals when given. Nothing is appended if the solve fails.
        """
        solution = self.solve(state, coeffs)
        if mpc_x_vals is not None:
            mpc_x_vals.extend(solution.x_pred)
        if mpc_y_vals is not None:
            mpc_y_vals.extend(solution.y_pred)
        return solution.actuators

    def __repr__(self):
        return (f"MPCController(N={self.config.N}, dt={self.config.dt_s}s, "
                f"vehicle={self.vehicle.params.name})")
