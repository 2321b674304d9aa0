import pytest

from models import KinematicBicycleModel, VehicleParams
from mpc import MPCConfig, MPCController


@pytest.fixture(scope="module")
def vehicle() -> KinematicBicycleModel:
    return KinematicBicycleModel(VehicleParams())


@pytest.fixture(scope="module")
def controller(vehicle: KinematicBicycleModel) -> MPCController:
    return MPCController(vehicle, MPCConfig())
