"""Recombining trinomial tree for the Hull-White model.

Construction follows the usual two passes:

1. Geometry. For each step ``i`` (from ``t[i]`` to ``t[i+1]``) the state
   spacing of the next level is ``dx[i+1] = sqrt(3 Var(dt_i))``. A node at
   ``x = j dx[i]`` branches to the three states around the level index
   ``k = round(E[x] / dx[i+1])``, with probabilities matching the first two
   moments of the OU transition. Mean reversion pulls ``k`` back towards the
   centre, so the width of a level grows at most linearly.

2. Fitting. Arrow-Debreu state prices ``Q[i]`` are carried forward and the
   shift ``alpha[i]`` is solved in closed form so that

       sum_j Q[i, j] exp(-(x[i, j] + alpha[i]) dt_i) = P(0, t[i+1]).

   Each ``alpha[i]`` needs the state prices produced by all earlier
   ``alpha``, so the pass runs in increasing time order.

Everything lives in flat numpy arrays indexed by ``(step, state)``; children
are stored as integer indices into the next level.
"""

import logging
import math

import numpy as np

from .errors import CalibrationError, LatticeInstabilityError, NumericalInstabilityError

logger = logging.getLogger(__name__)

PROBABILITY_TOLERANCE = 1.0e-12


class TrinomialLattice:
    """Fitted Hull-White short-rate tree on a ``TimeGrid``.

    Attributes
    ----------
    grid : TimeGrid
    dx : ndarray, shape (n,)
        State spacing per level (``dx[0] = 0``).
    j_min : ndarray of int, shape (n,)
        Lowest level index per level; level ``i`` holds ``j_min[i] .. j_max[i]``.
    children : list of ndarray of int
        ``children[i][m]`` is the index (into level ``i+1``) of the middle
        child of node ``m`` at level ``i``. Down/up children are at -1/+1.
    probs : list of ndarray, shape (3, size_i)
        Down, middle and up probabilities.
    alpha : ndarray, shape (n - 1,)
        Fitted shift; ``r[i, m] = x[i, m] + alpha[i]``.
    state_prices : list of ndarray
        Arrow-Debreu prices per level; ``sum(state_prices[i]) = P(0, t[i])``.
    """

    def __init__(self, grid, dx, j_min, j_max, children, probs):
        self.grid = grid
        self.dx = dx
        self.j_min = j_min
        self.j_max = j_max
        self.children = children
        self.probs = probs
        self.alpha = np.zeros(len(grid) - 1)
        self.state_prices = [np.ones(1)]
        self._discounts = []

    def __len__(self):
        return len(self.grid)

    def size(self, i):
        return int(self.j_max[i] - self.j_min[i] + 1)

    def states(self, i):
        """OU state values at level ``i``."""
        return np.arange(self.j_min[i], self.j_max[i] + 1, dtype=float) * self.dx[i]

    def short_rates(self, i):
        return self.states(i) + self.alpha[i]

    def discounts(self, i):
        """One-step discount factors for the nodes of level ``i``."""
        return self._discounts[i]

    # ------------------------------------------------------------------
    # Fitting (forward induction)
    # ------------------------------------------------------------------
    def fit(self, term_structure, allow_increasing_discounts=False):
        """Solve ``alpha`` so the tree reprices ``term_structure`` on the grid."""
        grid = self.grid
        times = np.array(list(grid), dtype=float)
        targets = term_structure.discounts(times)

        bad = ~np.isfinite(targets) | (targets <= 0.0)
        if np.any(bad):
            i = int(np.argmax(bad))
            raise CalibrationError(
                f"discount factor {targets[i]} at t={times[i]:.6f} is not strictly positive",
                step=i,
            )
        if not allow_increasing_discounts:
            up = np.diff(targets) > 0.0
            if np.any(up):
                i = int(np.argmax(up)) + 1
                raise CalibrationError(
                    f"discount factors increase at t={times[i]:.6f} "
                    f"({targets[i - 1]:.10f} -> {targets[i]:.10f})",
                    step=i,
                )

        Q = np.ones(1)
        self.state_prices = [Q]
        self._discounts = []
        for i in range(len(grid) - 1):
            dt = grid.dt(i)
            x = self.states(i)
            value = float(np.sum(Q * np.exp(-x * dt)))
            if not (value > 0.0 and math.isfinite(value)):
                raise CalibrationError(f"state prices degenerate at step {i}", step=i)
            a_i = math.log(value / targets[i + 1]) / dt
            if not math.isfinite(a_i):
                raise CalibrationError(f"non-finite alpha at step {i}", step=i)
            self.alpha[i] = a_i

            disc = np.exp(-(x + a_i) * dt)
            if not np.all(np.isfinite(disc)) or np.any(disc <= 0.0):
                raise NumericalInstabilityError(
                    f"node discount factors out of range at step {i}", step=i
                )
            self._discounts.append(disc)

            weighted = Q * disc
            Q_next = np.zeros(self.size(i + 1))
            center = self.children[i]
            for b in range(3):
                np.add.at(Q_next, center + (b - 1), weighted * self.probs[i][b])
            Q = Q_next
            self.state_prices.append(Q)

        if self.alpha.size:
            logger.debug(
                "lattice fitted: %d levels, max width %d, alpha in [%.6f, %.6f]",
                len(grid), max(self.size(i) for i in range(len(grid))),
                float(self.alpha.min()), float(self.alpha.max()),
            )
        return self

    # ------------------------------------------------------------------
    # Backward induction
    # ------------------------------------------------------------------
    def step_back(self, i, values):
        """Discounted expectation at level ``i`` of ``values`` given at level ``i+1``."""
        center = self.children[i]
        p = self.probs[i]
        expected = p[0] * values[center - 1] + p[1] * values[center] + p[2] * values[center + 1]
        out = expected * self._discounts[i]
        if not np.all(np.isfinite(out)):
            raise NumericalInstabilityError(f"non-finite rolled-back value at step {i}", step=i)
        return out

    def rollback(self, values, start, end):
        """Roll ``values`` given at level ``start`` back to level ``end``."""
        if end > start:
            raise ValueError(f"cannot roll back from step {start} to later step {end}")
        values = np.asarray(values, dtype=float)
        if values.size != self.size(start):
            raise ValueError(f"expected {self.size(start)} values at step {start}, got {values.size}")
        for i in range(start - 1, end - 1, -1):
            values = self.step_back(i, values)
        return values

    def present_value(self, values, step):
        """Value at time 0 of a claim paying ``values`` at level ``step``."""
        return float(self.rollback(values, step, 0)[0])


def build_lattice(model, grid, fit=True, allow_increasing_discounts=False):
    """Build (and by default fit) the Hull-White trinomial tree on ``grid``."""
    n = len(grid)
    dx = np.zeros(n)
    j_min = np.zeros(n, dtype=int)
    j_max = np.zeros(n, dtype=int)
    children = []
    probs = []

    sqrt3 = math.sqrt(3.0)
    for i in range(n - 1):
        dt = grid.dt(i)
        v2 = model.variance(dt)
        if not (v2 > 0.0 and math.isfinite(v2)):
            raise LatticeInstabilityError(f"non-positive transition variance at step {i}", step=i)
        v = math.sqrt(v2)
        dx[i + 1] = v * sqrt3

        j = np.arange(j_min[i], j_max[i] + 1, dtype=float)
        m = model.expectation(j * dx[i], dt)
        k = np.floor(m / dx[i + 1] + 0.5).astype(int)
        e = m - k * dx[i + 1]
        e2 = e * e / v2
        e3 = e * sqrt3 / v
        p = np.vstack([
            (1.0 + e2 - e3) / 6.0,
            (2.0 - e2) / 3.0,
            (1.0 + e2 + e3) / 6.0,
        ])

        if (not np.all(np.isfinite(p))
                or np.any(p < -PROBABILITY_TOLERANCE)
                or np.any(p > 1.0 + PROBABILITY_TOLERANCE)):
            raise LatticeInstabilityError(
                f"branch probabilities outside [0, 1] at step {i} (dt={dt:.6f})", step=i
            )
        p = np.clip(p, 0.0, 1.0)

        j_min[i + 1] = int(k.min()) - 1
        j_max[i + 1] = int(k.max()) + 1
        children.append(k - j_min[i + 1])
        probs.append(p)

    lattice = TrinomialLattice(grid, dx, j_min, j_max, children, probs)
    if fit:
        lattice.fit(model.term_structure, allow_increasing_discounts=allow_increasing_discounts)
    return lattice
