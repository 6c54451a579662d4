"""Time grid for the short-rate lattice.

The grid is the union of the instrument's mandatory times (coupon payments,
call dates, maturity) and the valuation time 0, refined with equally spaced
points inside each interval. Instrument events are attached to grid indices
once, here, so the rollback loop never searches for dates.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .errors import InvalidConfiguration

logger = logging.getLogger(__name__)

# Two times closer than this are the same grid point.
TIME_TOLERANCE = 1.0e-10


class TimeGrid:
    """Strictly increasing sequence of times starting at 0.

    Parameters
    ----------
    times : sequence of float
        Grid points (year fractions from the valuation date).
    mandatory : sequence of float
        Subset of ``times`` that must stay on the grid.
    """

    def __init__(self, times, mandatory=()):
        self.times = np.asarray(times, dtype=float)
        self.mandatory = tuple(float(t) for t in mandatory)
        if self.times.ndim != 1 or self.times.size < 2:
            raise InvalidConfiguration("TimeGrid needs at least two points")
        if abs(self.times[0]) > TIME_TOLERANCE:
            raise InvalidConfiguration(f"TimeGrid must start at 0, got {self.times[0]}")
        if np.any(np.diff(self.times) <= 0.0):
            raise InvalidConfiguration("TimeGrid points must be strictly increasing")

    @classmethod
    def build(cls, mandatory_times, steps):
        """Merge ``mandatory_times`` with roughly ``steps`` equal sub-steps.

        With ``dt_max = horizon / steps``, every interval between consecutive
        mandatory times is cut into ``ceil(length / dt_max)`` equal pieces.
        The spacing is therefore never above ``dt_max``, the grid has at
        least ``steps`` steps, and each mandatory time appears exactly once.
        """
        if int(steps) != steps or steps <= 0:
            raise InvalidConfiguration(f"time steps must be a positive integer, got {steps}")

        mandatory = _unique_sorted([0.0] + [float(t) for t in mandatory_times])
        if mandatory[0] < 0.0:
            raise InvalidConfiguration(f"negative grid time {mandatory[0]}")
        if len(mandatory) < 2:
            raise InvalidConfiguration("TimeGrid needs at least one time after the valuation date")

        horizon = mandatory[-1]
        dt_max = horizon / float(steps)

        times = [0.0]
        for begin, end in zip(mandatory[:-1], mandatory[1:]):
            n = max(int(math.ceil((end - begin) / dt_max - 1.0e-9)), 1)
            dt = (end - begin) / n
            for k in range(1, n):
                times.append(begin + k * dt)
            times.append(end)

        grid = cls(times, mandatory)
        logger.debug(
            "time grid: %d mandatory times, %d steps requested, %d steps built, dt_max=%.6f",
            len(mandatory), steps, len(grid) - 1, dt_max,
        )
        return grid

    def __len__(self):
        return int(self.times.size)

    def __getitem__(self, i):
        return float(self.times[i])

    def __iter__(self):
        return iter(float(t) for t in self.times)

    @property
    def horizon(self):
        return float(self.times[-1])

    def dt(self, i):
        return float(self.times[i + 1] - self.times[i])

    def index(self, t):
        """Index of the grid point equal to ``t`` (within tolerance)."""
        i = int(np.searchsorted(self.times, t - TIME_TOLERANCE))
        if i < self.times.size and abs(self.times[i] - t) <= TIME_TOLERANCE * max(1.0, abs(t)):
            return i
        raise KeyError(f"time {t} is not on the grid")


def _unique_sorted(times):
    out = []
    for t in sorted(times):
        if out and abs(t - out[-1]) <= TIME_TOLERANCE * max(1.0, abs(t)):
            continue
        out.append(t)
    return out


class EventKind(Enum):
    CALL = "call"
    COUPON = "coupon"


@dataclass(frozen=True)
class GridEvent:
    """Something the instrument does at a grid time.

    ``amount`` is the coupon paid for ``COUPON`` and the dirty strike for
    ``CALL``.
    """

    kind: EventKind
    time: float
    amount: float


def bind_events(grid, events):
    """Attach events to grid indices.

    Returns a dict ``{index: tuple(events)}``; at each index calls come before
    coupons, which is the order the rollback applies them in.
    """
    bound = {}
    for ev in events:
        bound.setdefault(grid.index(ev.time), []).append(ev)
    order = {EventKind.CALL: 0, EventKind.COUPON: 1}
    return {i: tuple(sorted(evs, key=lambda e: order[e.kind])) for i, evs in bound.items()}
