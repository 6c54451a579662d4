import logging
from dataclasses import dataclass, field

from ..errors import InvalidConfiguration
from ..grid import EventKind, GridEvent, TimeGrid, bind_events
from ..lattice import build_lattice
from .base import PricingEngine
from .discretized import DiscretizedCallableBond

logger = logging.getLogger(__name__)


@dataclass
class TreeResult:
    """NPV plus the diagnostics of one tree valuation."""

    npv: float
    grid_size: int
    max_width: int
    exercise_probability: dict = field(default_factory=dict)


class TreeCallableBondEngine(PricingEngine):
    """Hull-White trinomial-tree engine for callable fixed-rate bonds.

    For one bond and one model:

    1. convert coupon, call and redemption dates to times from the curve
       reference date (curve day count) and collect the mandatory times,
    2. build the time grid with ``time_steps`` and bind the events,
    3. build and fit the trinomial lattice,
    4. roll the bond back and return the value at the reference date.

    Cash flows on or before the reference date are ignored; a call on the
    reference date itself still caps the value.
    """

    def __init__(self, time_steps, apply_calls=True, allow_increasing_discounts=False):
        self.time_steps = time_steps
        self.apply_calls = apply_calls
        self.allow_increasing_discounts = allow_increasing_discounts

    @classmethod
    def from_config(cls, cfg, apply_calls=True):
        return cls(
            cfg.time_steps,
            apply_calls=apply_calls,
            allow_increasing_discounts=cfg.allow_increasing_discounts,
        )

    def price(self, bond, model):
        return self.calculate(bond, model).npv

    def calculate(self, bond, model):
        if int(self.time_steps) != self.time_steps or self.time_steps <= 0:
            raise InvalidConfiguration(f"time_steps must be a positive integer, got {self.time_steps}")
        bond.validate()

        ts = model.term_structure
        grid, events, redemption = self.discretize(bond, ts)
        lattice = build_lattice(
            model, grid, allow_increasing_discounts=self.allow_increasing_discounts
        )

        asset = DiscretizedCallableBond(redemption, events, apply_calls=self.apply_calls)
        npv = asset.rollback(lattice)

        result = TreeResult(
            npv=npv,
            grid_size=len(grid),
            max_width=max(lattice.size(i) for i in range(len(grid))),
            exercise_probability=dict(sorted(asset.exercise_probability.items())),
        )
        logger.debug(
            "tree npv=%.6f (steps=%d, grid=%d, max width=%d)",
            npv, self.time_steps, result.grid_size, result.max_width,
        )
        return result

    def discretize(self, bond, ts):
        """Return ``(grid, events, redemption_amount)`` for ``bond`` on curve ``ts``."""
        ql_bond = bond.ql_straight_bond()

        maturity = ts.time_from_reference(bond.redemption_date(ql_bond))
        if maturity <= 0.0:
            raise InvalidConfiguration(
                f"bond redeems on or before the valuation date {ts.reference_date()}"
            )

        events = []
        for flow in bond.coupon_flows(ql_bond):
            t = ts.time_from_reference(flow.payment_date)
            if t > 0.0:
                events.append(GridEvent(EventKind.COUPON, t, flow.amount))
        for call_date, strike in bond.dirty_call_prices(ql_bond):
            t = ts.time_from_reference(call_date)
            if t >= 0.0:
                events.append(GridEvent(EventKind.CALL, t, strike))

        grid = TimeGrid.build([e.time for e in events] + [maturity], self.time_steps)
        return grid, bind_events(grid, events), bond.redemption_amount()


def price(bond, model, time_steps):
    """NPV of ``bond`` under ``model`` on a tree with ``time_steps`` steps."""
    return TreeCallableBondEngine(time_steps).price(bond, model)
