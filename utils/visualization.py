"""
Visualization utilities for closed-loop MPC runs.

All functions save outputs to files instead of displaying them.
"""

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for saving
import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection
from pathlib import Path
from typing import Optional, Dict
from dataclasses import dataclass


@dataclass
class PlotConfig:
    """Configuration for plot styling."""
    figsize_trajectory: tuple = (10, 6)
    figsize_states: tuple = (12, 8)
    figsize_controls: tuple = (10, 5)

    dpi: int = 150
    line_width: float = 1.5
    marker_size: float = 3

    cmap_name: str = 'viridis'

    # Colors
    reference_color: str = 'tab:orange'
    trajectory_color: str = 'tab:blue'
    prediction_color: str = 'tab:green'
    failure_color: str = 'tab:red'


class TrajectoryVisualizer:
    """
    Visualization class for closed-loop MPC results.

    All plots are saved to files, not displayed.
    """

    def __init__(
        self,
        reference,
        output_dir: str = "results",
        config: Optional[PlotConfig] = None
    ):
        """
        Initialize visualizer.

        Args:
            reference: ReferenceCurve followed during the run
            output_dir: Directory to save outputs
            config: Plot configuration
        """
        self.reference = reference
        self.output_dir = Path(output_dir)
        self.config = config or PlotConfig()

        # Create output directory
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _save(self, fig, filename: str) -> str:
        filepath = self.output_dir / filename
        fig.savefig(filepath, dpi=self.config.dpi, bbox_inches='tight')
        plt.close(fig)
        return str(filepath)

    def plot_trajectory_overhead(
        self,
        result,
        filename: str = "trajectory_overhead.png",
        title: Optional[str] = None,
        show_predictions: bool = True,
        prediction_stride: int = 10
    ) -> str:
        """
        Plot top-down view of the driven path against the reference curve.

        Args:
            result: ClosedLoopResult
            filename: Output filename
            title: Plot title
            show_predictions: Overlay MPC predicted horizons
            prediction_stride: Plot every n-th predicted horizon

        Returns:
            Path to saved file
        """
        fig, ax = plt.subplots(figsize=self.config.figsize_trajectory)

        # Reference curve over the driven x-range
        x_ref = np.linspace(min(result.x.min(), 0.0), result.x.max() + 5.0, 200)
        ax.plot(x_ref, self.reference.evaluate(x_ref),
                color=self.config.reference_color, linewidth=1.0,
                linestyle='--', label='Reference')

        # Driven path colored by speed
        points = np.array([result.x, result.y]).T.reshape(-1, 1, 2)
        segments = np.concatenate([points[:-1], points[1:]], axis=1)
        norm = plt.Normalize(result.v.min(), max(result.v.max(), result.v.min() + 1e-6))
        lc = LineCollection(segments, cmap=self.config.cmap_name, norm=norm)
        lc.set_array(result.v[:-1])
        lc.set_linewidth(2)
        line = ax.add_collection(lc)
        cbar = fig.colorbar(line, ax=ax, shrink=0.8)
        cbar.set_label('Speed')

        if show_predictions:
            for i, (x_pred, y_pred) in enumerate(result.predictions[::prediction_stride]):
                ax.plot(x_pred, y_pred, color=self.config.prediction_color,
                        linewidth=0.8, alpha=0.7,
                        label='MPC prediction' if i == 0 else None)

        if result.failed_steps:
            idx = np.array(result.failed_steps)
            ax.scatter(result.x[idx], result.y[idx], c=self.config.failure_color,
                       marker='x', zorder=10, label='Solver failure')

        ax.scatter(result.x[0], result.y[0], s=100, c='green', marker='o',
                   zorder=10, label='Start')
        ax.scatter(result.x[-1], result.y[-1], s=100, c='red', marker='x',
                   zorder=10, label='Finish')

        ax.set_xlabel('x [m]')
        ax.set_ylabel('y [m]')
        ax.legend(loc='upper left')
        ax.set_title(title or "Closed-loop trajectory")
        ax.grid(True, alpha=0.3)

        return self._save(fig, filename)

    def plot_states(
        self,
        result,
        filename: str = "states.png",
        title: Optional[str] = None
    ) -> str:
        """
        Plot speed, heading and tracking errors vs time.

        Returns:
            Path to saved file
        """
        fig, axes = plt.subplots(2, 2, figsize=self.config.figsize_states, sharex=True)

        state_labels = [
            ('v', 'Speed'),
            ('psi', r'Heading $\psi$ [rad]'),
            ('cte', 'Cross-track error [m]'),
            ('epsi', r'Heading error $e_\psi$ [rad]'),
        ]

        for ax, (name, label) in zip(axes.flat, state_labels):
            ax.plot(result.t, getattr(result, name), color=self.config.trajectory_color,
                    linewidth=self.config.line_width)
            ax.set_ylabel(label)
            ax.grid(True, alpha=0.3)

        for ax in axes[1, :]:
            ax.set_xlabel('Time [s]')

        if title:
            fig.suptitle(title)

        fig.tight_layout()
        return self._save(fig, filename)

    def plot_controls(
        self,
        result,
        filename: str = "controls.png",
        title: Optional[str] = None
    ) -> str:
        """
        Plot applied steering and throttle vs time.

        Returns:
            Path to saved file
        """
        fig, axes = plt.subplots(2, 1, figsize=self.config.figsize_controls,
                                 sharex=True)

        # Steering angle
        axes[0].plot(result.t, np.degrees(result.delta),
                     color=self.config.trajectory_color,
                     linewidth=self.config.line_width)
        axes[0].set_ylabel(r'Steering $\delta$ [deg]')
        axes[0].grid(True, alpha=0.3)

        # Throttle / brake
        axes[1].plot(result.t, result.a,
                     color=self.config.trajectory_color,
                     linewidth=self.config.line_width)
        axes[1].axhline(y=0, color='k', linestyle='--', alpha=0.5)
        axes[1].set_ylabel('Throttle (+) / brake (-)')
        axes[1].set_xlabel('Time [s]')
        axes[1].grid(True, alpha=0.3)

        if title:
            fig.suptitle(title)

        fig.tight_layout()
        return self._save(fig, filename)

    def generate_full_report(
        self,
        result,
        prefix: str = "mpc"
    ) -> Dict[str, str]:
        """
        Generate all visualization plots for a result.

        Args:
            result: ClosedLoopResult
            prefix: Filename prefix

        Returns:
            Dict mapping plot type -> filepath
        """
        return {
            'trajectory': self.plot_trajectory_overhead(result, f"{prefix}_trajectory.png"),
            'states': self.plot_states(result, f"{prefix}_states.png"),
            'controls': self.plot_controls(result, f"{prefix}_controls.png"),
        }
