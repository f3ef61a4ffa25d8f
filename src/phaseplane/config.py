"""
Global Configuration for PhasePlane Package
===========================================

This module provides package-wide configuration settings that users can modify
to control the numerical constants of the phase-portrait engine: lattice
sizes, crossing and deduplication tolerances, Newton iteration limits and the
fixed Runge-Kutta step.

Examples
--------
View current configuration:

>>> import phaseplane
>>> print(phaseplane.config)

Modify settings:

>>> phaseplane.config.RK_MAX_STEPS = 2000  # Longer trajectories
>>> phaseplane.config.NEWTON_RESIDUAL_TOL = 1e-8  # Stricter acceptance

Reset to defaults:

>>> phaseplane.config.reset()

Temporarily modify settings:

>>> with phaseplane.temp_config(RK_STEP=0.005):
...     result = phaseplane.compute(request)

Notes
-----
These settings affect package-wide behavior. Changing a tolerance or limit
changes the computed portrait, so results are only comparable between runs
that share a configuration.
"""

from dataclasses import dataclass
from contextlib import contextmanager


@dataclass
class PhasePlaneConfig:
    """
    Global configuration for PhasePlane package.

    Attributes
    ----------
    GRID_MIN, GRID_MAX : int
        Accepted range of the vector-field grid resolution N.
        Default: 8 and 200
    NULLCLINE_SCALE : float
        Nullcline lattice resolution is N * NULLCLINE_SCALE before clamping.
        Default: 2.5
    NULLCLINE_MIN, NULLCLINE_MAX : int
        Clamp range for the nullcline lattice resolution M.
        Default: 80 and 200
    CROSSING_EPS : float
        Corner values within this distance of zero count as a crossing.
        Also the fallback threshold for edge interpolation.
        Default: 1e-9
    POINT_EPS : float
        Distance below which two contour points are the same point, and the
        rounding quantum used when stitching segments.
        Default: 1e-6
    SEGMENT_TOL : float
        Parameter slack and parallel threshold for segment intersection.
        Default: 1e-6
    SEED_SCAN_CELLS : int
        The low-magnitude seed scan uses (SEED_SCAN_CELLS + 1)^2 points.
        Default: 36
    SEED_SCAN_THRESHOLD : float
        Field magnitude below which a scan point seeds a Newton solve.
        Default: 1e-2
    NEWTON_MAX_ITER : int
        Newton iteration cap. Default: 25
    NEWTON_DET_EPS : float
        Jacobian determinant below which Newton gives up. Default: 1e-12
    NEWTON_STEP_TOL : float
        Step norm below which Newton has converged. Default: 1e-9
    NEWTON_RESIDUAL_TOL : float
        Residual norm required to accept a refined point. Default: 1e-5
    EQUILIBRIUM_DEDUP_TOL : float
        Distance below which two equilibria are merged. Default: 1e-4
    CLASSIFY_DET_EPS : float
        Determinant below which an equilibrium is degenerate. Default: 1e-10
    CLASSIFY_CENTER_EPS : float
        Trace below which a complex pair is a center. Default: 1e-6
    RK_STEP : float
        Fixed midpoint (RK2) step size. Default: 0.01
    RK_MAX_STEPS : int
        Maximum number of steps per direction. Default: 800
    DOMAIN_MARGIN : float
        Trajectories stop once they leave the domain grown by this margin.
        Default: 1.0
    STRICT_VALIDATION : bool
        If True, validation failures raise exceptions.
        If False, validation failures issue warnings.
        Default: True
    VERBOSE : bool
        Print compilation notices and compute timings. Default: False
    CACHE_WARNING_THRESHOLD : int
        Number of cached compiled systems before a warning is issued.
        Default: 32
    LOG_HISTORY : int
        Maximum number of entries kept by a LogBook. Default: 400
    """

    # Grid resolution
    GRID_MIN: int = 8
    GRID_MAX: int = 200

    # Nullcline lattice
    NULLCLINE_SCALE: float = 2.5
    NULLCLINE_MIN: int = 80
    NULLCLINE_MAX: int = 200
    CROSSING_EPS: float = 1e-9
    POINT_EPS: float = 1e-6

    # Equilibrium search
    SEGMENT_TOL: float = 1e-6
    SEED_SCAN_CELLS: int = 36
    SEED_SCAN_THRESHOLD: float = 1e-2
    NEWTON_MAX_ITER: int = 25
    NEWTON_DET_EPS: float = 1e-12
    NEWTON_STEP_TOL: float = 1e-9
    NEWTON_RESIDUAL_TOL: float = 1e-5
    EQUILIBRIUM_DEDUP_TOL: float = 1e-4

    # Classification
    CLASSIFY_DET_EPS: float = 1e-10
    CLASSIFY_CENTER_EPS: float = 1e-6

    # Integration
    RK_STEP: float = 0.01
    RK_MAX_STEPS: int = 800
    DOMAIN_MARGIN: float = 1.0

    # Behavior
    STRICT_VALIDATION: bool = True
    VERBOSE: bool = False
    CACHE_WARNING_THRESHOLD: int = 32
    LOG_HISTORY: int = 400

    @property
    def DECIMALS(self) -> int:
        """
        Decimal places used to round contour points into stitching keys.

        Derived from POINT_EPS so that the rounding quantum and the
        point-equality tolerance stay consistent.

        Returns
        -------
        int
            Number of decimal places for rounding
        """
        import math
        return max(round(-math.log10(self.POINT_EPS)), 0)

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import phaseplane
        >>> phaseplane.config.RK_STEP = 0.1  # Modify
        >>> phaseplane.config.reset()  # Back to defaults
        >>> phaseplane.config.RK_STEP
        0.01
        """
        defaults = PhasePlaneConfig()
        for key in self.__dataclass_fields__:
            setattr(self, key, getattr(defaults, key))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["PhasePlaneConfig:"]
        lines.append("  Grid:")
        lines.append(f"    GRID_MIN = {self.GRID_MIN}")
        lines.append(f"    GRID_MAX = {self.GRID_MAX}")
        lines.append("  Nullclines:")
        lines.append(f"    NULLCLINE_SCALE = {self.NULLCLINE_SCALE}")
        lines.append(f"    NULLCLINE_MIN = {self.NULLCLINE_MIN}")
        lines.append(f"    NULLCLINE_MAX = {self.NULLCLINE_MAX}")
        lines.append(f"    CROSSING_EPS = {self.CROSSING_EPS}")
        lines.append(f"    POINT_EPS = {self.POINT_EPS}")
        lines.append("  Equilibria:")
        lines.append(f"    SEGMENT_TOL = {self.SEGMENT_TOL}")
        lines.append(f"    SEED_SCAN_CELLS = {self.SEED_SCAN_CELLS}")
        lines.append(f"    SEED_SCAN_THRESHOLD = {self.SEED_SCAN_THRESHOLD}")
        lines.append(f"    NEWTON_MAX_ITER = {self.NEWTON_MAX_ITER}")
        lines.append(f"    NEWTON_DET_EPS = {self.NEWTON_DET_EPS}")
        lines.append(f"    NEWTON_STEP_TOL = {self.NEWTON_STEP_TOL}")
        lines.append(f"    NEWTON_RESIDUAL_TOL = {self.NEWTON_RESIDUAL_TOL}")
        lines.append(f"    EQUILIBRIUM_DEDUP_TOL = {self.EQUILIBRIUM_DEDUP_TOL}")
        lines.append("  Classification:")
        lines.append(f"    CLASSIFY_DET_EPS = {self.CLASSIFY_DET_EPS}")
        lines.append(f"    CLASSIFY_CENTER_EPS = {self.CLASSIFY_CENTER_EPS}")
        lines.append("  Integration:")
        lines.append(f"    RK_STEP = {self.RK_STEP}")
        lines.append(f"    RK_MAX_STEPS = {self.RK_MAX_STEPS}")
        lines.append(f"    DOMAIN_MARGIN = {self.DOMAIN_MARGIN}")
        lines.append("  Behavior:")
        lines.append(f"    STRICT_VALIDATION = {self.STRICT_VALIDATION}")
        lines.append(f"    VERBOSE = {self.VERBOSE}")
        lines.append(f"    CACHE_WARNING_THRESHOLD = {self.CACHE_WARNING_THRESHOLD}")
        lines.append(f"    LOG_HISTORY = {self.LOG_HISTORY}")
        return "\n".join(lines)


# Global configuration instance
config = PhasePlaneConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import phaseplane
    >>> with phaseplane.temp_config(RK_MAX_STEPS=50, STRICT_VALIDATION=False):
    ...     # Short trajectories, lenient grid validation
    ...     result = phaseplane.compute(request)
    >>> # Original config restored here
    >>> phaseplane.config.RK_MAX_STEPS
    800

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    old_values = {}
    for key, value in kwargs.items():
        if not hasattr(config, key):
            raise AttributeError(
                f"PhasePlaneConfig has no attribute '{key}'. "
                f"Valid attributes: {list(config.__dataclass_fields__.keys())}"
            )
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)
