"""
Kinematic model predictive control for polynomial path tracking.
"""

from pathlib import Path
from typing import Union

from .errors import MPCError, ConfigurationError, SolverNonConvergence, NumericDegeneracy
from .config import MPCConfig
from .layout import HorizonTrajectory, VariableLayout
from .reference import ReferenceCurve
from .evaluator import CostConstraintEvaluator
from .controller import MPCController, MPCSolution

__all__ = [
    'MPCError',
    'ConfigurationError',
    'SolverNonConvergence',
    'NumericDegeneracy',
    'MPCConfig',
    'HorizonTrajectory',
    'VariableLayout',
    'ReferenceCurve',
    'CostConstraintEvaluator',
    'MPCController',
    'MPCSolution',
    'load_controller_from_yaml',
]


def load_controller_from_yaml(yaml_file: Union[str, Path, None] = None) -> MPCController:
    """
    Build vehicle model, configuration and controller from one YAML file.

    Args:
        yaml_file: Path with 'vehicle' and 'mpc' sections
            (defaults to models/config/mpc_params.yaml)

    Returns:
        MPCController ready to solve
    """
    # models imports mpc.errors, so resolve it lazily
    from models import DEFAULT_CONFIG, load_vehicle_from_yaml

    yaml_file = yaml_file or DEFAULT_CONFIG
    vehicle = load_vehicle_from_yaml(yaml_file)
    config = MPCConfig.load_from_yaml(yaml_file)
    return MPCController(vehicle, config)
