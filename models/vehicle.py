"""
Kinematic Bicycle Model

Point-mass bicycle model used both as the MPC prediction model and as the
plant in the closed-loop simulation harness.

State vector:
- Kinematic: [x, y, psi, v] (4 states)

Control: [delta, a] (2 inputs)
- delta: front steering angle [rad]
- a: normalized throttle/brake command in [min_accel, max_accel]

The yaw-rate term uses lf_m, the distance from the front axle to the centre
of gravity. It is calibrated by matching the turning radius of the simulated
model against a constant-steer circle driven in the simulator, so it is a
tuned constant rather than a measured one.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Union
import numpy as np
from yaml import safe_load

import casadi as ca

from mpc.errors import ConfigurationError


# =============================================================================
# Vehicle Parameters
# =============================================================================

@dataclass(frozen=True)
class VehicleParams:
    """
    Vehicle parameters - immutable dataclass.
    """

    name: str = "kinematic_car"

    # Vehicle geometry
    lf_m: float = 2.67              # front axle to CG [m] (tuned)

    # Actuator properties
    max_delta_deg: float = 25.0     # max steering angle [deg]
    min_accel: float = -1.0         # full brake (normalized)
    max_accel: float = 1.0          # full throttle (normalized)

    def __post_init__(self):
        if not self.lf_m > 0.0:
            raise ConfigurationError(f"lf_m must be positive, got {self.lf_m}")
        if not self.max_delta_deg > 0.0:
            raise ConfigurationError(
                f"max_delta_deg must be positive, got {self.max_delta_deg}"
            )
        if not self.min_accel < self.max_accel:
            raise ConfigurationError(
                f"min_accel ({self.min_accel}) must be below max_accel ({self.max_accel})"
            )

    @property
    def max_delta_rad(self) -> float:
        return float(np.radians(self.max_delta_deg))

    @staticmethod
    def load_from_yaml(yaml_file: Union[str, Path]) -> VehicleParams:
        """
        Load vehicle parameters from YAML file.

        Args:
            yaml_file: Path to YAML config file

        Returns:
            VehicleParams instance
        """
        with open(yaml_file, "r") as stream:
            data = safe_load(stream)
        veh_dict = data.get("vehicle") or {}

        # Filter to only include fields that VehicleParams accepts
        valid_fields = {f.name for f in VehicleParams.__dataclass_fields__.values()}
        filtered_dict = {k: v for k, v in veh_dict.items() if k in valid_fields}

        return VehicleParams(**filtered_dict)


# =============================================================================
# Kinematic Bicycle Model
# =============================================================================

class KinematicBicycleModel:
    """
    Kinematic bicycle model.

    All methods are plain arithmetic on their inputs and work on CasADi
    symbols as well as on numbers passed through a CasADi Function.

    State: [x, y, psi, v] (4 states)
    Inputs: [delta, a] (2 inputs)
    """

    n_states = 4
    n_controls = 2

    def __init__(self, params: VehicleParams = None):
        """
        Initialize the model.

        Args:
            params: Vehicle parameters (defaults to VehicleParams())
        """
        self.params = params or VehicleParams()

    def temporal_dynamics(self, x_m, y_m, psi_rad, v, delta_rad, accel):
        """
        Calculate state derivatives (dx/dt).

        Args:
            x_m: position x [m]
            y_m: position y [m]
            psi_rad: heading [rad]
            v: speed
            delta_rad: steering angle [rad]
            accel: normalized acceleration command

        Returns:
            Tuple: (dx, dy, dpsi, dv)
        """
        lf = self.params.lf_m

        dx = v * ca.cos(psi_rad)
        dy = v * ca.sin(psi_rad)
        dpsi = v / lf * delta_rad
        dv = accel

        return dx, dy, dpsi, dv

    def euler_step(self, x_m, y_m, psi_rad, v, delta_rad, accel, dt_s):
        """
        Forward-Euler update over one step of length dt_s.

        Returns:
            Tuple: (x_next, y_next, psi_next, v_next)
        """
        dx, dy, dpsi, dv = self.temporal_dynamics(x_m, y_m, psi_rad, v, delta_rad, accel)
        return (x_m + dx * dt_s,
                y_m + dy * dt_s,
                psi_rad + dpsi * dt_s,
                v + dv * dt_s)

    def heading_error_rate(self, v, delta_rad):
        """Rate of change of the heading error induced by steering."""
        return v * delta_rad / self.params.lf_m

    # -------------------------------------------------------------------------
    # Vectorized convenience methods
    # -------------------------------------------------------------------------

    def dynamics_dt_vec(self, x, u):
        """
        Vectorized dynamics: dx/dt

        Args:
            x: State vector [x, y, psi, v] (4,)
            u: Control vector [delta, a] (2,)

        Returns:
            dx_dt: State derivative vector (4,)
        """
        return ca.vertcat(*self.temporal_dynamics(x[0], x[1], x[2], x[3], u[0], u[1]))

    def create_step_function(self, dt_s: float) -> ca.Function:
        """
        Create a CasADi function for one Euler step of length dt_s.

        Returns a function f(x, u) -> x_next
        """
        x = ca.SX.sym('x', self.n_states)
        u = ca.SX.sym('u', self.n_controls)
        x_next = x + dt_s * self.dynamics_dt_vec(x, u)
        return ca.Function('kinematic_step', [x, u], [x_next], ['x', 'u'], ['x_next'])

    def __repr__(self):
        return f"KinematicBicycleModel({self.params.name}, lf={self.params.lf_m} m)"
