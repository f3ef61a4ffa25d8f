"""
PhasePlane: Phase Portraits of Planar Autonomous Systems

A Python package for computing the phase portrait of x' = f(x, y),
y' = g(x, y) from text expressions: vector field, nullclines, equilibria
with linear stability classification, and trajectories.
"""

# Configuration
from .config import config, temp_config

# Core classes
from .domain import Domain
from .expression import CompiledSystem, BoundSystem, compile_system, clear_cache
from .field import VectorField
from .nullclines import Nullcline
from .classify import EquilibriumType, Stability, Eigenvalues, JacobianReport
from .trajectory import Trajectory, Trajectory as Traj
from .engine import ComputeRequest, ComputeResult, LogEntry, compute
from .worker import ComputeWorker, RequestTracker
from .console import Console, LogBook, PhasePlaneSession

# Errors
from .errors import ParseError, InvalidDomainError, MissingParameterError

# Package metadata
__version__ = "0.1.0"

# Define what gets imported with "from phaseplane import *"
__all__ = [
    # Configuration
    "config",
    "temp_config",
    # Classes
    "Domain",
    "CompiledSystem",
    "BoundSystem",
    "VectorField",
    "Nullcline",
    "EquilibriumType",
    "Stability",
    "Eigenvalues",
    "JacobianReport",
    "Trajectory",
    "ComputeRequest",
    "ComputeResult",
    "LogEntry",
    "ComputeWorker",
    "RequestTracker",
    "Console",
    "LogBook",
    "PhasePlaneSession",
    # Abbreviations
    "Traj",
    # Functions
    "compile_system",
    "clear_cache",
    "compute",
    # Errors
    "ParseError",
    "InvalidDomainError",
    "MissingParameterError",
]
