"""
Small helpers shared by the pipeline stages: stage timing, lenient
validation and scalar interpolation.
"""

import warnings
from contextlib import contextmanager
from time import perf_counter
from typing import Dict, Type

from .config import config


class Timer:
    """
    Wall-clock timer for a compute request and its stages.

    Used as a context manager around the whole request; ``stage`` marks the
    pipeline steps inside it. Stage durations are kept in ``stages`` in the
    order the stages ran.

    Examples
    --------
    >>> from phaseplane.utils import Timer
    >>> with Timer("Compute") as timer:
    ...     with timer.stage("nullclines"):
    ...         nullclines = extract_nullclines(system, domain, 40)
      nullclines: 0.012000 s
    Compute: 0.012345 s
    >>> timer.stages
    {'nullclines': 0.012}
    """
    def __init__(self, name="Compute", verbose=True):
        self.name = name
        self.verbose = verbose
        self.start = None
        self.elapsed = None
        self.stages: Dict[str, float] = {}

    def __enter__(self):
        self.start = perf_counter()
        return self

    def __exit__(self, *exc_info):
        self.elapsed = perf_counter() - self.start
        if self.verbose:
            print(f"{self.name}: {self.elapsed:.6f} s")

    @contextmanager
    def stage(self, label: str):
        """Time one pipeline step; repeated labels accumulate."""
        begin = perf_counter()
        try:
            yield
        finally:
            spent = perf_counter() - begin
            self.stages[label] = self.stages.get(label, 0.0) + spent
            if self.verbose:
                print(f"  {label}: {spent:.6f} s")


def validation_error(message: str, error_class: Type[Exception] = ValueError):
    """
    Reject a request input, or only warn about it.

    With config.STRICT_VALIDATION set the input is rejected by raising
    error_class. Otherwise a UserWarning is issued and the caller goes on
    with a corrected value (for instance a grid size clamped into range).

    Raises
    ------
    error_class
        If config.STRICT_VALIDATION is True
    """
    if not config.STRICT_VALIDATION:
        warnings.warn(message, UserWarning, stacklevel=3)
        return
    raise error_class(message)


def clamp(value, lo, hi):
    """Clamp value into [lo, hi]."""
    return max(lo, min(hi, value))


def lerp(a, b, t):
    """Linear interpolation between a and b."""
    return a + (b - a) * t
