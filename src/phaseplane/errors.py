"""
Request-level errors raised by the phase-portrait engine.

Only these three abort a compute request. Numeric trouble at a single point
(NaN, overflow, singular Jacobian) is handled where it happens and never
surfaces as an exception.
"""

from typing import Iterable


class ParseError(ValueError):
    """Malformed or unsupported expression text."""


class InvalidDomainError(ValueError):
    """Domain bounds are non-finite or not strictly increasing."""


class MissingParameterError(ValueError):
    """
    One or more required parameters lack a finite value.

    Attributes
    ----------
    missing : list of str
        Sorted names of the parameters without a usable value
    """
    def __init__(self, missing: Iterable[str]):
        self.missing = sorted(missing)
        super().__init__(
            f"Missing values for parameters: {', '.join(self.missing)}"
        )
