"""
Rectangular domain of the phase plane.
"""

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Tuple

import numpy as np

from .errors import InvalidDomainError


@dataclass(frozen=True)
class Domain:
    """
    Immutable axis-aligned rectangle [x_min, x_max] x [y_min, y_max].

    Attributes
    ----------
    x_min, x_max : float
        Horizontal bounds, x_min < x_max
    y_min, y_max : float
        Vertical bounds, y_min < y_max

    Raises
    ------
    InvalidDomainError
        If a bound is not finite or the bounds are not strictly increasing.
        Invalid bounds are rejected, never clamped.
    """
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self):
        bounds = (self.x_min, self.x_max, self.y_min, self.y_max)
        try:
            finite = all(math.isfinite(float(b)) for b in bounds)
        except (TypeError, ValueError):
            finite = False
        if not finite:
            raise InvalidDomainError(f"Invalid domain bounds: must be finite, got {bounds}")
        if self.x_min >= self.x_max:
            raise InvalidDomainError(
                f"Invalid domain bounds: x_min must be < x_max, got [{self.x_min}, {self.x_max}]"
            )
        if self.y_min >= self.y_max:
            raise InvalidDomainError(
                f"Invalid domain bounds: y_min must be < y_max, got [{self.y_min}, {self.y_max}]"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "Domain":
        """Build from a mapping with keys xMin, xMax, yMin, yMax."""
        try:
            return cls(float(data["xMin"]), float(data["xMax"]),
                       float(data["yMin"]), float(data["yMax"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidDomainError(f"Invalid domain bounds: {exc}") from exc

    def to_dict(self) -> Dict[str, float]:
        return {"xMin": self.x_min, "xMax": self.x_max,
                "yMin": self.y_min, "yMax": self.y_max}

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    def contains(self, x: float, y: float, margin: float = 0.0) -> bool:
        """True if (x, y) lies in the domain grown by margin on each side."""
        return (self.x_min - margin <= x <= self.x_max + margin
                and self.y_min - margin <= y <= self.y_max + margin)

    def sample_axes(self, n: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        n points per axis, both endpoints included.

        For n == 1 the single sample is the lower-left corner.
        """
        return (np.linspace(self.x_min, self.x_max, n),
                np.linspace(self.y_min, self.y_max, n))

    def lattice(self, cells: int) -> Tuple[np.ndarray, np.ndarray]:
        """Vertex coordinates of a cells x cells lattice (cells + 1 per axis)."""
        i = np.arange(cells + 1)
        dx = self.width / cells
        dy = self.height / cells
        return self.x_min + i * dx, self.y_min + i * dy
