import math

import numpy as np
import pytest

from models import KinematicBicycleModel, VehicleParams
from mpc import CostConstraintEvaluator, MPCConfig, VariableLayout
from mpc.evaluator import evaluate

LF = 2.67


def _make_fg(config: MPCConfig):
    vehicle = KinematicBicycleModel(VehicleParams(lf_m=LF))
    layout = VariableLayout(config.N, vehicle.params.max_delta_rad)
    evaluator = CostConstraintEvaluator(vehicle, config, layout)
    return layout, evaluator.as_function()


def _rollout(state, coeffs, deltas, accels, dt):
    """Forward-simulate the prediction model with plain floats."""
    c0, c1, c2, c3 = coeffs
    x, y, psi, v, cte, epsi = state
    rows = [list(state)]
    for delta, a in zip(deltas, accels):
        f0 = c0 + c1 * x + c2 * x ** 2 + c3 * x ** 3
        psides0 = math.atan(c1 + 2 * c2 * x + 3 * c3 * x ** 2)
        x, y, psi, v, cte, epsi = (
            x + v * math.cos(psi) * dt,
            y + v * math.sin(psi) * dt,
            psi + v / LF * delta * dt,
            v + a * dt,
            (f0 - y) + v * math.sin(epsi) * dt,
            (psi - psides0) + v * delta / LF * dt,
        )
        rows.append([x, y, psi, v, cte, epsi])
    return np.array(rows)


def test_zero_vector_on_flat_reference_is_feasible() -> None:
    config = MPCConfig()
    layout, fg = _make_fg(config)

    cost, g = evaluate(fg, np.zeros(layout.n_vars), [0.0, 0.0, 0.0, 0.0])

    assert g.shape == (6 * config.N,)
    assert np.all(g == 0.0)
    assert cost == pytest.approx(config.N * config.w_v * config.v_ref ** 2)


def test_consistent_rollout_has_zero_dynamics_residuals() -> None:
    config = MPCConfig(N=8, dt_s=0.1)
    layout, fg = _make_fg(config)
    N = config.N

    state = [1.0, 2.0, 0.1, 10.0, 0.5, -0.05]
    coeffs = [0.5, 0.1, 0.01, 0.001]
    deltas = np.linspace(0.05, -0.02, N - 1)
    accels = np.full(N - 1, 0.5)

    rows = _rollout(state, coeffs, deltas, accels, config.dt_s)
    w = np.concatenate([rows[:, k] for k in range(6)] + [deltas, accels])

    _, g = evaluate(fg, w, coeffs)
    g = g.reshape(6, N)

    # Block 0 carries the initial state itself
    assert g[:, 0] == pytest.approx(state)
    assert np.max(np.abs(g[:, 1:])) < 1e-9


def test_residual_reports_state_mismatch() -> None:
    config = MPCConfig(N=4)
    layout, fg = _make_fg(config)

    w = np.zeros(layout.n_vars)
    w[layout.offsets['x'] + 2] = 1.5

    _, g = evaluate(fg, w, [0.0, 0.0, 0.0, 0.0])

    # x[2] too far ahead of x[1]; x[3] now lags x[2]
    assert g[2] == pytest.approx(1.5)
    assert g[3] == pytest.approx(-1.5)
    assert np.count_nonzero(g) == 2


def test_cost_weights_actuator_terms() -> None:
    config = MPCConfig(
        N=3, v_ref=0.0,
        w_cte=0.0, w_epsi=0.0, w_v=0.0,
        w_delta=1000.0, w_a=10.0, w_delta_diff=4.0, w_a_diff=2.0,
    )
    layout, fg = _make_fg(config)

    w = np.zeros(layout.n_vars)
    w[layout.block('delta')] = [0.1, 0.3]
    w[layout.block('a')] = [0.5, -0.5]

    cost, _ = evaluate(fg, w, [0.0, 0.0, 0.0, 0.0])

    expected = (1000.0 * (0.1 ** 2 + 0.3 ** 2)
                + 10.0 * (0.5 ** 2 + 0.5 ** 2)
                + 4.0 * 0.2 ** 2
                + 2.0 * 1.0 ** 2)
    assert cost == pytest.approx(expected)


def test_cost_tracks_errors_and_speed() -> None:
    config = MPCConfig(N=2, v_ref=50.0, w_cte=4.0, w_epsi=4.0, w_v=1.0)
    layout, fg = _make_fg(config)

    w = np.zeros(layout.n_vars)
    w[layout.block('cte')] = [1.0, 2.0]
    w[layout.block('epsi')] = [0.5, 0.0]
    w[layout.block('v')] = [40.0, 50.0]

    cost, _ = evaluate(fg, w, [0.0, 0.0, 0.0, 0.0])

    assert cost == pytest.approx(4.0 * (1.0 + 4.0) + 4.0 * 0.25 + 100.0)
