'''Fixed-step trajectory integration through the phase plane
Trajectory class definition'''

import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from .config import config
from .domain import Domain
from .expression import BoundSystem


def integrate_direction(system: BoundSystem, domain: Domain,
                        x0: float, y0: float, direction: int = 1,
                        steps: Optional[int] = None,
                        h: Optional[float] = None) -> List[Tuple[float, float]]:
    """
    Integrate from (x0, y0) with the explicit midpoint (RK2) method.

    Parameters
    ----------
    system : BoundSystem
        System with parameters bound
    domain : Domain
        Integration stops once a point leaves the domain grown by
        config.DOMAIN_MARGIN on every side
    x0, y0 : float
        Starting point (not included in the output)
    direction : int, optional
        +1 for forward time, -1 for backward time (default: +1)
    steps : int, optional
        Maximum number of steps (default: config.RK_MAX_STEPS)
    h : float, optional
        Step size (default: config.RK_STEP)

    Returns
    -------
    list of (x, y)
        Points after each accepted step, in integration order. Integration
        halts early, keeping what was accumulated, on a non-finite field
        value or on leaving the grown domain.
    """
    if steps is None:
        steps = config.RK_MAX_STEPS
    if h is None:
        h = config.RK_STEP
    margin = config.DOMAIN_MARGIN
    dh = direction * h

    x, y = float(x0), float(y0)
    points = []
    for _ in range(steps):
        u, v = system.field(x, y)
        if not math.isfinite(u):
            break
        mx = x + 0.5 * dh * u
        my = y + 0.5 * dh * v
        um, vm = system.field(mx, my)
        if not math.isfinite(um):
            break
        x += dh * um
        y += dh * vm
        if not domain.contains(x, y, margin):
            break
        points.append((x, y))
    return points


def parse_seed(seed: Any) -> Optional[Tuple[float, float]]:
    """Seed as a finite (x, y) pair, or None if malformed."""
    try:
        x, y = seed
        x, y = float(x), float(y)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return x, y


class Trajectory:
    """
    A path through the phase plane passing through a seed point.

    The path is the backward-time points (earliest first), the seed, then
    the forward-time points.

    Attributes:
        seed: Starting point (x, y)
        points: Array of shape (n, 2)
        times: Signed integration time of each point (seed at 0)
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, seed: Tuple[float, float],
                 backward: Sequence[Tuple[float, float]],
                 forward: Sequence[Tuple[float, float]],
                 h: float):
        self._seed = (float(seed[0]), float(seed[1]))
        path = list(reversed(backward)) + [self._seed] + list(forward)
        self._points = np.asarray(path, dtype=float).reshape(-1, 2)
        self._times = h * np.arange(-len(backward), len(forward) + 1)
        self._n_backward = len(backward)
        self._n_forward = len(forward)

    @classmethod
    def integrate(cls, system: BoundSystem, domain: Domain,
                  seed: Tuple[float, float]) -> "Trajectory":
        """Integrate both directions from seed."""
        x0, y0 = seed
        forward = integrate_direction(system, domain, x0, y0, +1)
        backward = integrate_direction(system, domain, x0, y0, -1)
        return cls(seed, backward, forward, config.RK_STEP)

    # ========== PROPERTY ACCESS ==========
    @property
    def seed(self) -> Tuple[float, float]:
        return self._seed

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def times(self) -> np.ndarray:
        return self._times

    @property
    def n_forward(self) -> int:
        return self._n_forward

    @property
    def n_backward(self) -> int:
        return self._n_backward

    @property
    def path(self) -> List[Tuple[float, float]]:
        return [(float(x), float(y)) for x, y in self._points]

    # ========== UTILITY METHODS ==========
    def to_wire(self) -> Dict[str, Any]:
        """{seed: [x, y], path: [[x, y], ...]}"""
        return {"seed": list(self._seed), "path": self._points.tolist()}

    def to_dataframe(self) -> pd.DataFrame:
        """
        Export trajectory to pandas DataFrame.

        Returns:
            DataFrame with columns time, x, y (negative times are the
            backward-integrated part)
        """
        return pd.DataFrame({
            'time': self._times,
            'x': self._points[:, 0],
            'y': self._points[:, 1],
        })

    def max_distance_from_seed(self) -> float:
        """Largest distance of any path point from the seed."""
        return float(np.max(np.hypot(self._points[:, 0] - self._seed[0],
                                     self._points[:, 1] - self._seed[1])))

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return len(self._points)

    def __repr__(self):
        return (f"Trajectory(seed={self._seed}, n_backward={self._n_backward}, "
                f"n_forward={self._n_forward})")

    # ========== PLOTTING ==========
    def add_to_plot(self, fig: go.Figure, color: str = '#eab308',
                    name: Optional[str] = None, **kwargs) -> go.Figure:
        """
        Add this trajectory to an existing 2D plotly figure.

        Parameters:
            fig: Existing Plotly figure
            color: Line color (default: amber)
            name: Legend name (default: "Trajectory from (x, y)")
            **kwargs: Passed to go.Scatter

        Returns:
            The same figure, for chaining
        """
        if name is None:
            name = f"Trajectory from ({self._seed[0]:.2f}, {self._seed[1]:.2f})"
        fig.add_trace(go.Scatter(
            x=self._points[:, 0],
            y=self._points[:, 1],
            mode='lines',
            line=dict(color=color, width=2),
            name=name,
            **kwargs
        ))
        return fig


def integrate_trajectories(system: BoundSystem, domain: Domain,
                           seeds: Iterable[Any]) -> List[Trajectory]:
    """
    Integrate every well-formed seed.

    Malformed or non-finite seeds are skipped, as are seeds from which
    neither direction advanced a single step.
    """
    trajectories = []
    for raw in seeds or ():
        seed = parse_seed(raw)
        if seed is None:
            continue
        traj = Trajectory.integrate(system, domain, seed)
        if len(traj) > 1:
            trajectories.append(traj)
    return trajectories
