import logging

import numpy as np

from ..grid import EventKind

logger = logging.getLogger(__name__)


class DiscretizedCallableBond:
    """Callable fixed-rate bond rolled back through a fitted lattice.

    The rollback marches from maturity to the valuation date. At each level
    the continuation value is the discounted expectation of the next level;
    then the events bound to that grid index are applied:

    - CALL: the issuer redeems whenever that is cheaper than continuing, so
      the holder value is capped at the dirty call price,
    - COUPON: the coupon is added; it is paid whether or not the bond is
      called on that date.

    Parameters
    ----------
    redemption : float
        Amount repaid at the last grid time.
    events : dict
        ``{grid_index: tuple(GridEvent)}`` from ``grid.bind_events``.
    apply_calls : bool
        When False the call events are ignored, which prices the equivalent
        straight bond with the same machinery.
    """

    def __init__(self, redemption, events, apply_calls=True):
        self.redemption = float(redemption)
        self.events = events
        self.apply_calls = apply_calls
        self.values = None
        self.exercise_probability = {}

    def initialize(self, lattice):
        """Set the redemption payoff on the last level and clear earlier results."""
        last = len(lattice) - 1
        self.exercise_probability = {}
        self.values = np.full(lattice.size(last), self.redemption)
        self._adjust(lattice, last)

    def _adjust(self, lattice, i):
        for ev in self.events.get(i, ()):
            if ev.kind is EventKind.CALL:
                if not self.apply_calls:
                    continue
                called = self.values > ev.amount
                self.values = np.minimum(self.values, ev.amount)
                # Probability that the call is exercised at this node, as seen from t=0.
                sp = lattice.state_prices[i]
                self.exercise_probability[lattice.grid[i]] = float(
                    np.sum(sp[called]) / np.sum(sp)
                )
            elif ev.kind is EventKind.COUPON:
                self.values = self.values + ev.amount

    def rollback(self, lattice):
        """Roll back from maturity to level 0 and return the NPV.

        Every call starts again from the redemption payoff, so the same
        instance can be rolled back repeatedly.
        """
        self.initialize(lattice)
        for i in range(len(lattice) - 2, -1, -1):
            self.values = lattice.step_back(i, self.values)
            self._adjust(lattice, i)
        npv = float(self.values[0])
        logger.debug("rollback done: npv=%.8f, %d call dates hit", npv, len(self.exercise_probability))
        return npv
