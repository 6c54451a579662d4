"""Exceptions raised by the callable-bond lattice engine.

Every error is local to one valuation: nothing is cached between calls, so a
caller pricing many bonds can catch :class:`PricingError` for one bond and
carry on with the rest.
"""


class PricingError(Exception):
    """Base class for all valuation failures."""

    def __init__(self, message, step=None):
        super().__init__(message)
        self.step = step


class InvalidConfiguration(PricingError, ValueError):
    """Bad inputs detected before any lattice work starts."""


class CalibrationError(PricingError):
    """The term structure cannot be reproduced by the short-rate lattice."""


class LatticeInstabilityError(PricingError):
    """Branch probabilities fell outside [0, 1] while building the tree.

    ``step`` is the grid index of the offending time step; changing
    ``time_steps`` and pricing again is usually enough.
    """


class NumericalInstabilityError(PricingError):
    """A node discount factor or rolled-back value is not usable."""
