"""
MPC horizon, cost weights and solver settings.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from numbers import Integral
from pathlib import Path
from typing import Union

from yaml import safe_load

from .errors import ConfigurationError


WEIGHT_FIELDS = ('w_cte', 'w_epsi', 'w_v', 'w_delta', 'w_a', 'w_delta_diff', 'w_a_diff')


@dataclass(frozen=True)
class MPCConfig:
    """
    MPC configuration - immutable dataclass.

    Steering smoothness (w_delta) is weighted two orders of magnitude above
    the tracking terms to suppress oscillatory steering. Acceleration jerk
    (w_a_diff) is unweighted by default.
    """

    # Horizon
    N: int = 10                     # number of predicted states
    dt_s: float = 0.05              # step length [s]
    v_ref: float = 50.0             # reference speed

    # Cost weights
    w_cte: float = 4.0
    w_epsi: float = 4.0
    w_v: float = 1.0
    w_delta: float = 1000.0
    w_a: float = 10.0
    w_delta_diff: float = 4.0
    w_a_diff: float = 0.0

    # Solver settings
    max_wall_time_s: float = 30.0   # hard cap on a single solve
    ipopt_tol: float = 1e-8
    max_iter: int = 3000
    verbose: bool = False

    def __post_init__(self):
        if isinstance(self.N, bool) or not isinstance(self.N, Integral):
            raise ConfigurationError(f"N must be an integer, got {self.N!r}")
        object.__setattr__(self, 'N', int(self.N))
        if self.N < 2:
            raise ConfigurationError(f"N must be at least 2, got {self.N}")
        if not self.dt_s > 0.0:
            raise ConfigurationError(f"dt_s must be positive, got {self.dt_s}")
        if not self.max_wall_time_s > 0.0:
            raise ConfigurationError(
                f"max_wall_time_s must be positive, got {self.max_wall_time_s}"
            )
        if self.max_iter < 1:
            raise ConfigurationError(f"max_iter must be positive, got {self.max_iter}")
        for name in WEIGHT_FIELDS:
            if not getattr(self, name) >= 0.0:
                raise ConfigurationError(f"{name} must be non-negative, got {getattr(self, name)}")

    @property
    def n_vars(self) -> int:
        return 6 * self.N + 2 * (self.N - 1)

    @property
    def n_constraints(self) -> int:
        return 6 * self.N

    def ipopt_options(self) -> dict:
        """CasADi nlpsol options for IPOPT."""
        return {
            'ipopt.print_level': 5 if self.verbose else 0,
            'print_time': self.verbose,
            'ipopt.sb': 'yes',
            'ipopt.tol': self.ipopt_tol,
            'ipopt.max_iter': self.max_iter,
            'ipopt.max_wall_time': self.max_wall_time_s,
            'ipopt.max_cpu_time': self.max_wall_time_s,
            'error_on_fail': False,
        }

    @staticmethod
    def load_from_yaml(yaml_file: Union[str, Path]) -> MPCConfig:
        """
        Load MPC configuration from the 'mpc' section of a YAML file.

        Args:
            yaml_file: Path to YAML config file

        Returns:
            MPCConfig instance
        """
        with open(yaml_file, "r") as stream:
            data = safe_load(stream)
        mpc_dict = data.get("mpc") or {}

        valid_fields = {f.name for f in fields(MPCConfig)}
        filtered_dict = {k: v for k, v in mpc_dict.items() if k in valid_fields}

        return MPCConfig(**filtered_dict)
