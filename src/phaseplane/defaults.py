"""
Default Systems and Domain
==========================

Predefined planar systems for quick exploration, each with parameter values
and a domain in which its interesting behavior is visible.

Examples
--------
>>> from phaseplane import compute
>>> from phaseplane.defaults import VAN_DER_POL
>>> result = compute(VAN_DER_POL.request(seeds=[(0.5, 0.5)]))
>>> result.reports[0].kind
<EquilibriumType.SPIRAL_SOURCE: 'spiral source'>
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, Tuple

from .domain import Domain
from .engine import ComputeRequest
from .console import PhasePlaneSession

DEFAULT_DOMAIN = Domain(-3.0, 3.0, -3.0, 3.0)
DEFAULT_GRID = 40


@dataclass(frozen=True)
class ExampleSystem:
    """
    A named planar system with suggested parameters and domain.

    Attributes
    ----------
    name : str
        Display name
    expr_x, expr_y : str
        Text of f and g
    params : dict
        Suggested parameter values
    domain : Domain
        Suggested viewing domain
    """
    name: str
    expr_x: str
    expr_y: str
    params: Dict[str, float] = field(default_factory=dict)
    domain: Domain = DEFAULT_DOMAIN

    def request(self, grid_n: int = DEFAULT_GRID,
                seeds: Iterable[Tuple[float, float]] = ()) -> ComputeRequest:
        """ComputeRequest for this system."""
        return ComputeRequest(self.expr_x, self.expr_y, dict(self.params),
                              self.domain, grid_n, list(seeds))

    def session(self) -> PhasePlaneSession:
        """Interactive session preloaded with this system."""
        return PhasePlaneSession(self.expr_x, self.expr_y, dict(self.params),
                                 self.domain, DEFAULT_GRID)


"""
Predefined systems
Parameter values chosen so that each portrait shows its characteristic
feature inside the suggested domain
"""
# Nonlinear focus with a parameter-dependent equilibrium pair
DEFAULT_SYSTEM = ExampleSystem(
    name='Default',
    expr_x='mu*x - x^2 - y',
    expr_y='x + mu*y - y^3',
    params={'mu': 1.0},
)

LINEAR_SADDLE = ExampleSystem(
    name='Linear saddle',
    expr_x='x',
    expr_y='-y',
)

LINEAR_SINK = ExampleSystem(
    name='Linear sink',
    expr_x='-x',
    expr_y='-y',
)

HARMONIC_OSCILLATOR = ExampleSystem(
    name='Harmonic oscillator',
    expr_x='-y',
    expr_y='x',
)

VAN_DER_POL = ExampleSystem(
    name='Van der Pol oscillator',
    expr_x='y',
    expr_y='mu*(1 - x^2)*y - x',
    params={'mu': 1.0},
    domain=Domain(-4.0, 4.0, -4.0, 4.0),
)

DAMPED_PENDULUM = ExampleSystem(
    name='Damped pendulum',
    expr_x='y',
    expr_y='-sin(x) - b*y',
    params={'b': 0.3},
    domain=Domain(-7.0, 7.0, -3.0, 3.0),
)

LOTKA_VOLTERRA = ExampleSystem(
    name='Lotka-Volterra',
    expr_x='alpha*x - beta*x*y',
    expr_y='delta*x*y - gamma*y',
    params={'alpha': 1.0, 'beta': 1.0, 'delta': 1.0, 'gamma': 1.0},
    domain=Domain(-0.5, 3.0, -0.5, 3.0),
)

SADDLE_NODE = ExampleSystem(
    name='Saddle-node normal form',
    expr_x='mu - x^2',
    expr_y='-y',
    params={'mu': 1.0},
)

EXAMPLES = {
    'default': DEFAULT_SYSTEM,
    'saddle': LINEAR_SADDLE,
    'sink': LINEAR_SINK,
    'oscillator': HARMONIC_OSCILLATOR,
    'vanderpol': VAN_DER_POL,
    'pendulum': DAMPED_PENDULUM,
    'lotka-volterra': LOTKA_VOLTERRA,
    'saddle-node': SADDLE_NODE,
}
