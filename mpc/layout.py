"""
Decision-vector layout for the MPC nonlinear program.

IPOPT works on one flat vector. Everything else in the package works on
HorizonTrajectory, a record with one named sequence per state/actuator
field. VariableLayout is the only place that knows the offsets:

    [x(N), y(N), psi(N), v(N), cte(N), epsi(N), delta(N-1), a(N-1)]

The constraint vector g uses the same order for its 6N state residuals.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError


# IPOPT treats |bound| >= 1e19 as unbounded
STATE_BOUND = 1.0e19

STATE_FIELDS = ('x', 'y', 'psi', 'v', 'cte', 'epsi')
CONTROL_FIELDS = ('delta', 'a')


@dataclass
class HorizonTrajectory:
    """
    State and actuator sequences over the prediction horizon.

    Fields hold numpy arrays or CasADi SX slices depending on whether the
    trajectory was unpacked from a numeric or a symbolic vector.

    x, y, psi, v, cte, epsi: length N
    delta, a: length N-1 (no actuation after the last predicted state)
    """
    x: object
    y: object
    psi: object
    v: object
    cte: object
    epsi: object
    delta: object
    a: object

    @property
    def N(self) -> int:
        return int(self.x.shape[0])

    def state_at(self, t: int) -> Tuple:
        return tuple(getattr(self, name)[t] for name in STATE_FIELDS)

    @classmethod
    def initial_guess(cls, N: int, state: Sequence[float]) -> HorizonTrajectory:
        """All zeros except the first entry of each state field."""
        traj = cls(**{name: np.zeros(N) for name in STATE_FIELDS},
                   **{name: np.zeros(N - 1) for name in CONTROL_FIELDS})
        for name, value in zip(STATE_FIELDS, state):
            getattr(traj, name)[0] = float(value)
        return traj


class VariableLayout:
    """
    Offsets and bounds of the flat decision vector for a horizon of N states.

    Pure function of N and the actuator limits; holds no solve state.
    """

    def __init__(self, N: int, max_delta_rad: float, min_accel: float = -1.0, max_accel: float = 1.0):
        if N < 2:
            raise ConfigurationError(f"Horizon needs at least 2 states, got N={N}")
        self.N = N
        self.max_delta_rad = max_delta_rad
        self.min_accel = min_accel
        self.max_accel = max_accel

        self.n_vars = 6 * N + 2 * (N - 1)
        self.n_constraints = 6 * N

        # Block offsets
        self.offsets: Dict[str, int] = {}
        start = 0
        for name in STATE_FIELDS:
            self.offsets[name] = start
            start += N
        for name in CONTROL_FIELDS:
            self.offsets[name] = start
            start += N - 1
        assert start == self.n_vars

    def block_length(self, name: str) -> int:
        return self.N if name in STATE_FIELDS else self.N - 1

    def block(self, name: str) -> slice:
        start = self.offsets[name]
        return slice(start, start + self.block_length(name))

    # -------------------------------------------------------------------------
    # Packing / unpacking
    # -------------------------------------------------------------------------

    def unpack(self, w) -> HorizonTrajectory:
        """
        Split a flat vector (numpy array or CasADi SX/MX column) into named fields.
        """
        if isinstance(w, np.ndarray):
            w = w.reshape(-1)
        parts = {}
        for name in STATE_FIELDS + CONTROL_FIELDS:
            start = self.offsets[name]
            parts[name] = w[start:start + self.block_length(name)]
        return HorizonTrajectory(**parts)

    def pack(self, traj: HorizonTrajectory) -> np.ndarray:
        """Flatten a numeric trajectory back into solver order."""
        w = np.zeros(self.n_vars)
        for name in STATE_FIELDS + CONTROL_FIELDS:
            values = np.asarray(getattr(traj, name), dtype=float).reshape(-1)
            if values.shape[0] != self.block_length(name):
                raise ValueError(
                    f"Field '{name}' has length {values.shape[0]}, expected {self.block_length(name)}"
                )
            w[self.block(name)] = values
        return w

    # -------------------------------------------------------------------------
    # Bounds
    # -------------------------------------------------------------------------

    def variable_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Lower/upper bounds on every decision variable.

        States are unbounded, steering is limited to +-max_delta_rad and
        acceleration to [min_accel, max_accel].
        """
        lbx = np.full(self.n_vars, -STATE_BOUND)
        ubx = np.full(self.n_vars, STATE_BOUND)

        lbx[self.block('delta')] = -self.max_delta_rad
        ubx[self.block('delta')] = self.max_delta_rad

        lbx[self.block('a')] = self.min_accel
        ubx[self.block('a')] = self.max_accel

        return lbx, ubx

    def constraint_bounds(self, state: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Lower/upper bounds on the constraint vector.

        Zero everywhere except the first residual of each state block, which
        is pinned to the current vehicle state (lower == upper).
        """
        state = np.asarray(state, dtype=float).reshape(-1)
        if state.shape[0] != len(STATE_FIELDS):
            raise ValueError(f"State must have {len(STATE_FIELDS)} entries, got {state.shape[0]}")

        lbg = np.zeros(self.n_constraints)
        ubg = np.zeros(self.n_constraints)
        for name, value in zip(STATE_FIELDS, state):
            lbg[self.offsets[name]] = value
            ubg[self.offsets[name]] = value
        return lbg, ubg

    def initial_guess(self, state: Sequence[float]) -> np.ndarray:
        return self.pack(HorizonTrajectory.initial_guess(self.N, state))

    def __repr__(self):
        return f"VariableLayout(N={self.N}, n_vars={self.n_vars}, n_constraints={self.n_constraints})"
