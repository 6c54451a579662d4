"""One-factor Hull-White short-rate model.

    dr(t) = [theta(t) - a r(t)] dt + sigma dW(t)

The tree works on the zero-mean Ornstein-Uhlenbeck state

    dx(t) = -a x(t) dt + sigma dW(t),   x(0) = 0

and recovers the short rate as ``r = x + alpha(t)``, where the deterministic
shift ``alpha`` is fitted step by step so that the tree reprices the input
curve (see ``lattice.build_lattice``).
"""

import math
from dataclasses import dataclass

from .errors import InvalidConfiguration
from .market import TermStructure


@dataclass(frozen=True)
class HullWhite:
    """Hull-White parameters bound to a term structure.

    Built once per valuation and only read afterwards.
    """

    a: float
    sigma: float
    term_structure: TermStructure

    def __post_init__(self):
        if not (self.a > 0.0):
            raise InvalidConfiguration(f"HullWhite: reversion speed a must be positive, got {self.a}")
        if not (self.sigma > 0.0):
            raise InvalidConfiguration(f"HullWhite: sigma must be positive, got {self.sigma}")
        if not isinstance(self.term_structure, TermStructure):
            object.__setattr__(self, "term_structure", TermStructure(self.term_structure))

    @classmethod
    def from_config(cls, term_structure, cfg):
        return cls(a=cfg.hw_a, sigma=cfg.hw_sigma, term_structure=term_structure)

    # ------------------------------------------------------------------
    # OU state dynamics, used by the trinomial construction
    # ------------------------------------------------------------------
    def expectation(self, x, dt):
        """E[x(t+dt) | x(t) = x]."""
        return x * math.exp(-self.a * dt)

    def variance(self, dt):
        """Var[x(t+dt) | x(t)]; independent of t and x."""
        return self.sigma ** 2 * (1.0 - math.exp(-2.0 * self.a * dt)) / (2.0 * self.a)

    def discount(self, t):
        """Model discount factor P(0, t); equal to the input curve by construction."""
        return self.term_structure.discount(t)
