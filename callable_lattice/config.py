import warnings

import numpy as np
import QuantLib as ql

from .errors import InvalidConfiguration


class AppConfig:
    """Central configuration object.

    All numerical knobs for the lattice engine, the QuantLib reference engines
    and the demo programs live here so that a run can be reproduced from a
    single snapshot (see ``reporting.save_run_snapshot``).

    Parameters
    ----------
    val_date : QuantLib.Date
        Evaluation date for QuantLib.
    time_steps : int
        Number of elementary steps requested from the time-grid builder.
    a : float
        Hull-White mean reversion speed.
    sigma : float
        Hull-White short-rate volatility.
    oas_bps : float
        Static zero spread (OAS) in basis points applied to the curve.
    bump_bps : float
        Parallel bump (bps) used for effective duration/convexity.

    Notes
    -----
    - ``time_steps`` trades accuracy for cost: the rollback is linear in the
      number of steps and the node count per step grows linearly until mean
      reversion caps it.
    - ``risk_bump_bps`` is the bump actually used by ``MasterPricer.metrics``.
    """

    def __init__(self, val_date, time_steps=100, a=0.03, sigma=0.10, oas_bps=0.0, bump_bps=1.0):
        self.val_date = val_date
        self.oas_bps = float(oas_bps)
        self.bump_bps = float(bump_bps)
        self.risk_bump_bps = float(bump_bps)

        # ----------------
        # Hull-White trinomial tree (manual engine)
        # ----------------
        self.time_steps = int(time_steps)
        self.hw_a = float(a)
        self.hw_sigma = float(sigma)

        # Rates may be negative under Hull-White, but by default a curve whose
        # discount factors go up along the grid is rejected at calibration.
        self.allow_increasing_discounts = False

        # ----------------
        # QuantLib tree engine (reference)
        # ----------------
        self.ql_grid_size = 100

        # ----------------
        # Monte Carlo (basket option demo)
        # ----------------
        self.mc_samples = 10000
        self.mc_seed = 42

        # ----------------
        # Global flags
        # ----------------
        self.suppress_warnings = True
        self.numpy_seed = 42

    def model_params(self):
        return {"a": self.hw_a, "sigma": self.hw_sigma}

    def validate(self):
        """Fail fast on settings the lattice engine cannot work with."""
        if self.time_steps <= 0:
            raise InvalidConfiguration(f"time_steps must be positive, got {self.time_steps}")
        if self.hw_a <= 0.0:
            raise InvalidConfiguration(f"reversion speed must be positive, got {self.hw_a}")
        if self.hw_sigma <= 0.0:
            raise InvalidConfiguration(f"volatility must be positive, got {self.hw_sigma}")
        if self.ql_grid_size <= 0:
            raise InvalidConfiguration(f"ql_grid_size must be positive, got {self.ql_grid_size}")
        return self

    def apply_global_settings(self):
        """Apply global deterministic settings (evaluation date, warnings, RNG seed)."""
        ql.Settings.instance().evaluationDate = self.val_date
        if self.suppress_warnings:
            warnings.filterwarnings("ignore")
        np.random.seed(self.numpy_seed)
