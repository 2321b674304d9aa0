#!/usr/bin/env python3
"""
Closed-loop MPC simulation and visualization.

Drives the kinematic bicycle plant along a cubic reference curve, solving
one MPC problem per cycle and applying only its first actuator pair.

Usage:
    python simulate_mpc.py --scenario straight
    python simulate_mpc.py --scenario offset --duration 6
    python simulate_mpc.py --scenario curve --initial-speed 20
    python simulate_mpc.py --config models/config/mpc_params.yaml --verbose
"""

import argparse
import logging
import numpy as np
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# Add project root to path
import sys
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from mpc import MPCController, ReferenceCurve, SolverNonConvergence, load_controller_from_yaml
from models import DEFAULT_CONFIG

logger = logging.getLogger(__name__)


SCENARIOS = {
    # name: (reference coefficients, initial (x, y, psi))
    'straight': ((0.0, 0.0, 0.0, 0.0), (0.0, 0.0, 0.0)),
    'offset': ((5.0, 0.0, 0.0, 0.0), (0.0, 0.0, 0.0)),
    'curve': ((0.0, 0.0, 0.004, 0.0), (0.0, 0.0, 0.0)),
    's_curve': ((0.0, 0.05, 0.002, -4e-5), (0.0, -1.0, 0.0)),
}


LOOKAHEAD_M = 30.0     # reference sampled this far ahead of the vehicle
N_WAYPOINTS = 25


def reference_in_vehicle_frame(
    reference: ReferenceCurve,
    pose: Tuple[float, float, float],
    lookahead_m: float = LOOKAHEAD_M,
) -> ReferenceCurve:
    """
    Refit a world-frame reference in the frame of a vehicle at pose.

    The vehicle frame has its origin at (x, y) and +x along psi. Waypoints
    are sampled from slightly behind the vehicle to lookahead_m ahead of it.

    Args:
        reference: Reference curve in the simulation frame
        pose: (x, y, psi) of the vehicle
        lookahead_m: Sampling distance ahead of the vehicle [m]

    Returns:
        ReferenceCurve in the vehicle frame
    """
    x, y, psi = pose
    xw = np.linspace(x - 5.0, x + lookahead_m, N_WAYPOINTS)
    dx = xw - x
    dy = reference.evaluate(xw) - y

    cos_psi, sin_psi = np.cos(psi), np.sin(psi)
    x_local = dx * cos_psi + dy * sin_psi
    y_local = -dx * sin_psi + dy * cos_psi
    return ReferenceCurve.from_waypoints(x_local, y_local)


def vehicle_to_world(xs, ys, pose: Tuple[float, float, float]) -> Tuple[np.ndarray, np.ndarray]:
    """Map points from the frame of a vehicle at pose back to the simulation frame."""
    x, y, psi = pose
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    cos_psi, sin_psi = np.cos(psi), np.sin(psi)
    return x + xs * cos_psi - ys * sin_psi, y + xs * sin_psi + ys * cos_psi


@dataclass
class ClosedLoopResult:
    """Container for closed-loop simulation results."""
    t: np.ndarray          # Time [s]
    x: np.ndarray          # Position x [m]
    y: np.ndarray          # Position y [m]
    psi: np.ndarray        # Heading [rad]
    v: np.ndarray          # Speed
    cte: np.ndarray        # Cross-track error [m]
    epsi: np.ndarray       # Heading error [rad]
    delta: np.ndarray      # Applied steering [rad]
    a: np.ndarray          # Applied throttle/brake
    predictions: List[Tuple[np.ndarray, np.ndarray]] = field(default_factory=list)
    failed_steps: List[int] = field(default_factory=list)
    solve_times: List[float] = field(default_factory=list)


def simulate(
    controller: MPCController,
    reference: ReferenceCurve,
    duration: float = 5.0,
    initial_pose: Tuple[float, float, float] = (0.0, 0.0, 0.0),
    initial_speed: float = 10.0,
) -> ClosedLoopResult:
    """
    Run the MPC in closed loop on the kinematic plant.

    The plant step equals the MPC step, so each cycle applies one actuator
    pair for dt_s seconds. Each cycle refits the reference in the vehicle
    frame before solving; recorded cte/epsi and predictions are in the
    simulation frame. When a solve fails the previous steering is held and
    full braking is applied.

    Args:
        controller: MPCController instance
        reference: Reference curve in the simulation frame
        duration: Simulation duration [s]
        initial_pose: (x, y, psi) at t=0
        initial_speed: Initial speed

    Returns:
        ClosedLoopResult with trajectory data
    """
    vehicle = controller.vehicle
    dt = controller.config.dt_s
    step = vehicle.create_step_function(dt)

    # Number of steps
    n_steps = int(round(duration / dt))

    # Preallocate arrays
    t_arr = np.arange(n_steps + 1) * dt
    states = np.zeros((n_steps + 1, 4))
    errors = np.zeros((n_steps + 1, 2))
    delta_arr = np.zeros(n_steps + 1)
    a_arr = np.zeros(n_steps + 1)

    result = ClosedLoopResult(
        t=t_arr, x=states[:, 0], y=states[:, 1], psi=states[:, 2], v=states[:, 3],
        cte=errors[:, 0], epsi=errors[:, 1], delta=delta_arr, a=a_arr,
    )

    x = np.array([initial_pose[0], initial_pose[1], initial_pose[2], initial_speed])
    delta, accel = 0.0, 0.0

    for i in range(n_steps + 1):
        cte, epsi = reference.tracking_errors(x[0], x[1], x[2])
        states[i] = x
        errors[i] = (cte, epsi)

        # Solve in the vehicle frame: pose at the origin, errors from the refit curve
        pose = (x[0], x[1], x[2])
        local = reference_in_vehicle_frame(reference, pose)
        c = local.coeffs
        mpc_state = [0.0, 0.0, 0.0, x[3], c[0], -np.arctan(c[1])]
        try:
            solution = controller.solve(mpc_state, c)
            delta, accel = solution.actuators
            result.predictions.append(vehicle_to_world(solution.x_pred, solution.y_pred, pose))
            result.solve_times.append(solution.solve_time)
        except SolverNonConvergence as err:
            logger.warning("Step %d: %s, braking", i, err)
            accel = vehicle.params.min_accel
            result.failed_steps.append(i)

        delta_arr[i] = delta
        a_arr[i] = accel

        if i < n_steps:
            x = np.array(step(x, [delta, accel])).flatten()

    return result


def print_summary(result: ClosedLoopResult) -> None:
    print(f"\nSimulation Results:")
    print(f"  Final position: ({result.x[-1]:.1f}, {result.y[-1]:.1f}) m")
    print(f"  Final speed: {result.v[-1]:.1f}")
    print(f"  Max |cte|: {np.abs(result.cte).max():.3f} m")
    print(f"  Final |cte|: {abs(result.cte[-1]):.3f} m")
    print(f"  Max |steering|: {np.degrees(np.abs(result.delta).max()):.2f} deg")
    print(f"  Solver failures: {len(result.failed_steps)}")
    if result.solve_times:
        print(f"  Solve time: mean {np.mean(result.solve_times) * 1e3:.1f} ms, "
              f"max {np.max(result.solve_times) * 1e3:.1f} ms")


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Closed-loop kinematic MPC path tracking"
    )

    parser.add_argument('--scenario', type=str, default='offset',
                        choices=sorted(SCENARIOS),
                        help='Reference curve and initial pose')
    parser.add_argument('--config', type=str, default=str(DEFAULT_CONFIG),
                        help='YAML file with vehicle and mpc sections')

    # Simulation parameters
    parser.add_argument('--duration', type=float, default=5.0,
                        help='Simulation duration [s]')
    parser.add_argument('--initial-speed', type=float, default=10.0,
                        help='Initial speed')

    # Output options
    parser.add_argument('--output-dir', type=str, default='results/mpc_simulations',
                        help='Output directory')
    parser.add_argument('--no-plots', action='store_true',
                        help='Skip plot generation')
    parser.add_argument('--verbose', action='store_true',
                        help='Debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("Loading controller...")
    controller = load_controller_from_yaml(args.config)
    print(f"  {controller}")

    coeffs, initial_pose = SCENARIOS[args.scenario]
    reference = ReferenceCurve(coeffs)
    print(f"\nScenario: {args.scenario}, reference coeffs={reference.coeffs}")
    print(f"Simulating for {args.duration}s at dt={controller.config.dt_s}s...")

    result = simulate(
        controller,
        reference,
        duration=args.duration,
        initial_pose=initial_pose,
        initial_speed=args.initial_speed,
    )
    print_summary(result)

    if not args.no_plots:
        from utils.visualization import TrajectoryVisualizer

        visualizer = TrajectoryVisualizer(reference, output_dir=args.output_dir)
        paths = visualizer.generate_full_report(result, prefix=f"mpc_{args.scenario}")
        for name, path in paths.items():
            print(f"Saved {name} plot to: {path}")

    return result


if __name__ == "__main__":
    main()
