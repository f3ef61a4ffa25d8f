"""
Vector field sampling over a regular grid.
"""

from dataclasses import dataclass
from typing import Dict, List

import numpy as np
import pandas as pd

from .domain import Domain
from .expression import BoundSystem


@dataclass(frozen=True)
class VectorField:
    """
    Field samples (x, y) -> (u, v), ordered x-major over the N x N grid.

    Samples whose evaluation was not finite are absent, so the arrays may
    be shorter than N * N.
    """
    x: np.ndarray
    y: np.ndarray
    u: np.ndarray
    v: np.ndarray

    def __len__(self):
        return int(self.x.size)

    def to_records(self) -> List[Dict[str, float]]:
        """List of {x, y, u, v} dicts."""
        return [
            {"x": float(x), "y": float(y), "u": float(u), "v": float(v)}
            for x, y, u, v in zip(self.x, self.y, self.u, self.v)
        ]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Export samples to pandas DataFrame.

        Returns
        -------
        DataFrame with columns x, y, u, v and the field magnitude
        """
        return pd.DataFrame({
            'x': self.x,
            'y': self.y,
            'u': self.u,
            'v': self.v,
            'magnitude': np.hypot(self.u, self.v),
        })


def sample_vector_field(system: BoundSystem, domain: Domain, n: int) -> VectorField:
    """
    Evaluate (f, g) on an n x n grid spanning the domain.

    Parameters
    ----------
    system : BoundSystem
        System with parameters bound
    domain : Domain
        Sampling rectangle, both endpoints included on each axis
    n : int
        Points per axis

    Returns
    -------
    VectorField
        Finite samples only; non-finite evaluations are dropped
    """
    xs, ys = domain.sample_axes(n)
    gx, gy = np.meshgrid(xs, ys, indexing="ij")
    gx = gx.ravel()
    gy = gy.ravel()
    u, v = system.field_batch(gx, gy)
    keep = np.isfinite(u) & np.isfinite(v)
    return VectorField(gx[keep], gy[keep], u[keep], v[keep])
