"""
Vehicle models for the kinematic MPC tracker.
"""

from pathlib import Path
from typing import Union

from .vehicle import VehicleParams, KinematicBicycleModel

__all__ = ['VehicleParams', 'KinematicBicycleModel', 'load_vehicle_from_yaml', 'DEFAULT_CONFIG']

DEFAULT_CONFIG = Path(__file__).parent / "config" / "mpc_params.yaml"


def load_vehicle_from_yaml(yaml_file: Union[str, Path] = DEFAULT_CONFIG) -> KinematicBicycleModel:
    """
    Load the kinematic vehicle model from a YAML config file.

    Args:
        yaml_file: Path to YAML config file (e.g., models/config/mpc_params.yaml)

    Returns:
        KinematicBicycleModel: vehicle model ready for prediction/simulation

    Example:
        >>> from models import load_vehicle_from_yaml
        >>> vehicle = load_vehicle_from_yaml("models/config/mpc_params.yaml")
        >>> print(vehicle)
        KinematicBicycleModel(udacity_sim_car, lf=2.67 m)
    """
    params = VehicleParams.load_from_yaml(yaml_file)
    return KinematicBicycleModel(params)
