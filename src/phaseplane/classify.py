'''Linear stability analysis of equilibria
JacobianReport class definition and classification rules'''

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple

import numpy as np

from .config import config
from .expression import BoundSystem

# define an enumerated list of equilibrium types
class EquilibriumType(Enum):
    SADDLE = 'saddle'
    CENTER = 'center'
    SPIRAL_SINK = 'spiral sink'
    SPIRAL_SOURCE = 'spiral source'
    NODE_SINK = 'node sink'
    NODE_SOURCE = 'node source'
    DEGENERATE_SINK = 'degenerate sink'
    DEGENERATE_SOURCE = 'degenerate source'
    DEGENERATE = 'degenerate'
    INDETERMINATE = 'indeterminate'

class Stability(Enum):
    STABLE = 'stable'
    UNSTABLE = 'unstable'
    NEUTRAL = 'neutral'


def classify(trace: float, det: float, disc: float) -> EquilibriumType:
    """
    Topological type from trace, determinant and discriminant.

    Rules are applied in order: singular, saddle, complex pair, real
    distinct pair, repeated eigenvalue.
    """
    if not (math.isfinite(trace) and math.isfinite(det)):
        return EquilibriumType.INDETERMINATE
    if abs(det) < config.CLASSIFY_DET_EPS:
        return EquilibriumType.DEGENERATE
    if det < 0:
        return EquilibriumType.SADDLE
    if disc < 0:
        if abs(trace) < config.CLASSIFY_CENTER_EPS:
            return EquilibriumType.CENTER
        return EquilibriumType.SPIRAL_SINK if trace < 0 else EquilibriumType.SPIRAL_SOURCE
    if disc > 0:
        return EquilibriumType.NODE_SINK if trace < 0 else EquilibriumType.NODE_SOURCE
    return EquilibriumType.DEGENERATE_SINK if trace < 0 else EquilibriumType.DEGENERATE_SOURCE


def stability_of(kind: EquilibriumType, trace: float) -> Stability:
    """Stability label implied by the type, falling back on the trace sign."""
    if kind is EquilibriumType.CENTER or kind is EquilibriumType.INDETERMINATE:
        return Stability.NEUTRAL
    if kind is EquilibriumType.SADDLE or kind.value.endswith('source'):
        return Stability.UNSTABLE
    if kind.value.endswith('sink'):
        return Stability.STABLE
    return Stability.UNSTABLE if trace > 0 else Stability.STABLE


@dataclass(frozen=True)
class Eigenvalues:
    """
    Eigenvalues of a real 2x2 matrix.

    A real pair is stored as re=(l1, l2) with l1 >= l2 and im=0. A complex
    conjugate pair a +/- bi is stored as re=(a, a) and im=b > 0.
    """
    re: Tuple[float, float]
    im: float = 0.0

    @classmethod
    def from_trace_det(cls, trace: float, det: float) -> "Eigenvalues":
        disc = trace * trace - 4 * det
        if disc >= 0:
            root = math.sqrt(disc)
            return cls((0.5 * (trace + root), 0.5 * (trace - root)))
        if disc < 0:
            half = 0.5 * trace
            return cls((half, half), 0.5 * math.sqrt(-disc))
        # NaN discriminant
        return cls((math.nan, math.nan), math.nan)

    @property
    def is_complex(self) -> bool:
        return self.im != 0.0

    def as_complex(self) -> Tuple[complex, complex]:
        return complex(self.re[0], self.im), complex(self.re[1], -self.im)

    def to_latex(self) -> str:
        if self.is_complex:
            return f"\\lambda={self.re[0]:.3f}\\pm {self.im:.3f}i"
        return f"\\lambda_{{1,2}}={self.re[0]:.3f}\\;{self.re[1]:.3f}"

    def __str__(self):
        if self.is_complex:
            return f"{self.re[0]:.3f}±{self.im:.3f}i"
        return f"{self.re[0]:.3f}, {self.re[1]:.3f}"


@dataclass(frozen=True)
class JacobianReport:
    """
    Linearization of the system at an equilibrium.

    Attributes
    ----------
    x, y : float
        Equilibrium location
    jacobian : ndarray, shape (2, 2)
        [[df/dx, df/dy], [dg/dx, dg/dy]]
    trace, determinant, discriminant : float
        tr, det and tr^2 - 4 det of the Jacobian
    eigenvalues : Eigenvalues
        Real pair or complex conjugate pair
    kind : EquilibriumType
        Topological classification
    stability : Stability
        Stability label
    """
    x: float
    y: float
    jacobian: np.ndarray
    trace: float
    determinant: float
    discriminant: float
    eigenvalues: Eigenvalues
    kind: EquilibriumType
    stability: Stability

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "jacobian": self.jacobian.tolist(),
            "trace": self.trace,
            "determinant": self.determinant,
            "eigenvalues": {"re": list(self.eigenvalues.re),
                            "im": self.eigenvalues.im},
            "classification": self.kind.value,
            "stability": self.stability.value,
        }

    def to_latex(self) -> str:
        J = self.jacobian
        return (
            f"\\text{{At }} ({self.x:.3f},\\;{self.y:.3f}):\\; "
            f"J=\\begin{{pmatrix}}{J[0, 0]:.3f}&{J[0, 1]:.3f}\\\\"
            f"{J[1, 0]:.3f}&{J[1, 1]:.3f}\\end{{pmatrix}},\\; "
            f"\\mathrm{{tr}}={self.trace:.3f},\\; \\det={self.determinant:.3f},\\; "
            f"{self.eigenvalues.to_latex()}\\;,\\; "
            f"\\text{{class: {self.kind.value} ({self.stability.value})}}"
        )


def analyze_equilibrium(system: BoundSystem, x: float, y: float) -> JacobianReport:
    """
    Evaluate the Jacobian at (x, y) and classify the equilibrium.

    A singular Jacobian is not an error; it yields the "degenerate" type.
    """
    J = system.jacobian(x, y)
    trace = float(J[0, 0] + J[1, 1])
    det = float(J[0, 0] * J[1, 1] - J[0, 1] * J[1, 0])
    disc = trace * trace - 4 * det
    kind = classify(trace, det, disc)
    return JacobianReport(
        x=float(x),
        y=float(y),
        jacobian=J,
        trace=trace,
        determinant=det,
        discriminant=disc,
        eigenvalues=Eigenvalues.from_trace_det(trace, det),
        kind=kind,
        stability=stability_of(kind, trace),
    )
