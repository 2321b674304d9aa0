import numpy as np
import pytest

from models import KinematicBicycleModel
from mpc import (
    MPCConfig,
    MPCController,
    NumericDegeneracy,
    SolverNonConvergence,
)

FLAT = [0.0, 0.0, 0.0, 0.0]
MAX_DELTA = np.radians(25.0)


def test_on_reference_vehicle_keeps_wheel_straight_and_accelerates(controller: MPCController) -> None:
    solution = controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], FLAT)

    assert solution.steering == pytest.approx(0.0, abs=1e-4)
    assert solution.acceleration > 0.5
    assert np.max(np.abs(solution.trajectory.cte)) < 1e-4
    # Speed rises toward v_ref over the horizon
    assert solution.trajectory.v[-1] > 10.0


def test_offset_vehicle_steers_toward_path(controller: MPCController) -> None:
    solution = controller.solve([0.0, 0.0, 0.0, 10.0, 5.0, 0.0], [5.0, 0.0, 0.0, 0.0])

    assert solution.steering > 0.0
    assert abs(solution.steering) <= MAX_DELTA + 1e-8

    # Correction is strongest now and fades out over the horizon
    delta = np.abs(solution.trajectory.delta)
    assert delta[-1] < delta[0]
    assert delta[len(delta) // 2] < delta[0]


def test_predicted_trajectory_has_n_minus_one_points(controller: MPCController) -> None:
    solution = controller.solve([0.0, 0.0, 0.0, 20.0, 1.0, 0.05], [1.0, 0.02, 0.001, 0.0])

    N = controller.config.N
    assert len(solution.x_pred) == N - 1
    assert len(solution.y_pred) == N - 1
    assert solution.x_pred == pytest.approx(list(solution.trajectory.x[1:]))


def test_first_predicted_state_equals_initial_state(controller: MPCController) -> None:
    state = [0.5, -0.3, 0.05, 15.0, 0.8, -0.02]
    solution = controller.solve(state, [0.5, -0.1, 0.01, -0.0005])

    assert solution.trajectory.state_at(0) == pytest.approx(state, abs=1e-6)


def test_actuators_respect_bounds_on_large_error(controller: MPCController) -> None:
    solution = controller.solve([0.0, 0.0, 0.0, 30.0, -20.0, 0.5], [-20.0, 0.0, 0.0, 0.0])

    assert abs(solution.steering) <= MAX_DELTA + 1e-8
    assert -1.0 - 1e-8 <= solution.acceleration <= 1.0 + 1e-8
    assert np.all(np.abs(solution.trajectory.delta) <= MAX_DELTA + 1e-8)


def test_repeated_solves_are_identical(controller: MPCController) -> None:
    state = [0.0, 0.0, 0.0, 12.0, 2.0, 0.1]
    coeffs = [2.0, -0.05, 0.002, 0.0]

    first = controller.solve(state, coeffs)
    second = controller.solve(state, coeffs)

    assert second.steering == pytest.approx(first.steering, abs=1e-9)
    assert second.acceleration == pytest.approx(first.acceleration, abs=1e-9)
    assert second.y_pred == pytest.approx(first.y_pred, abs=1e-9)


def test_compute_control_appends_predictions(controller: MPCController) -> None:
    mpc_x_vals, mpc_y_vals = [], []

    steering, acceleration = controller.compute_control(
        [0.0, 0.0, 0.0, 10.0, 1.0, 0.0], [1.0, 0.0, 0.0, 0.0], mpc_x_vals, mpc_y_vals
    )

    assert len(mpc_x_vals) == controller.config.N - 1
    assert len(mpc_y_vals) == controller.config.N - 1
    assert abs(steering) <= MAX_DELTA + 1e-8
    assert -1.0 - 1e-8 <= acceleration <= 1.0 + 1e-8
    # x advances along the heading at ~v*dt per step
    assert mpc_x_vals[0] == pytest.approx(10.0 * controller.config.dt_s, rel=1e-4)


def test_solution_cost_matches_evaluator(controller: MPCController) -> None:
    coeffs = [1.0, 0.0, 0.0, 0.0]
    solution = controller.solve([0.0, 0.0, 0.0, 10.0, 1.0, 0.0], coeffs)

    w = controller.layout.pack(solution.trajectory)
    cost, g = controller.evaluate(w, coeffs)

    assert cost == pytest.approx(solution.cost, rel=1e-9)
    assert np.max(np.abs(g[1:controller.config.N])) < 1e-6


def test_non_finite_input_is_rejected(controller: MPCController) -> None:
    with pytest.raises(NumericDegeneracy):
        controller.solve([0.0, 0.0, np.nan, 10.0, 0.0, 0.0], FLAT)

    with pytest.raises(SolverNonConvergence):
        controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], [0.0, np.inf, 0.0, 0.0])


def test_wrong_input_length_is_rejected(controller: MPCController) -> None:
    with pytest.raises(ValueError):
        controller.solve([0.0, 0.0, 0.0, 10.0], FLAT)
    with pytest.raises(ValueError):
        controller.solve([0.0] * 6, [0.0, 0.0, 0.0])


def test_iteration_limit_surfaces_as_non_convergence(vehicle: KinematicBicycleModel) -> None:
    limited = MPCController(vehicle, MPCConfig(max_iter=1))
    mpc_x_vals, mpc_y_vals = [], []

    with pytest.raises(SolverNonConvergence) as excinfo:
        limited.compute_control(
            [0.0, 0.0, 0.0, 10.0, 5.0, 0.0], [5.0, 0.0, 0.0, 0.0], mpc_x_vals, mpc_y_vals
        )

    assert excinfo.value.status == "Maximum_Iterations_Exceeded"
    assert mpc_x_vals == []
    assert mpc_y_vals == []


def test_short_horizon_solves(vehicle: KinematicBicycleModel) -> None:
    short = MPCController(vehicle, MPCConfig(N=2))
    solution = short.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], FLAT)

    assert len(solution.x_pred) == 1
    assert solution.steering == pytest.approx(0.0, abs=1e-6)


def test_wall_clock_budget_surfaces_as_non_convergence(vehicle: KinematicBicycleModel) -> None:
    hurried = MPCController(vehicle, MPCConfig(max_wall_time_s=1e-6))
    mpc_x_vals, mpc_y_vals = [], []

    with pytest.raises(SolverNonConvergence) as excinfo:
        hurried.compute_control(
            [0.0, 0.0, 0.0, 10.0, 5.0, 0.0], [5.0, 0.0, 0.0, 0.0], mpc_x_vals, mpc_y_vals
        )

    # The budget is applied as both wall-clock and CPU-time limits
    assert excinfo.value.status in ("Maximum_WallTime_Exceeded", "Maximum_CpuTime_Exceeded")
    assert mpc_x_vals == []
    assert mpc_y_vals == []
