import QuantLib as ql

from .engines import TreeCallableBondEngine
from .errors import InvalidConfiguration
from .market import TermStructure, zero_spreaded
from .models import HullWhite

METHODS = ("STRAIGHT BOND", "HW_TREE", "HW_TREE_NONCALL", "HW_QL_TREE")


class MasterPricer:
    """High-level orchestrator.

    Responsibilities
    ----------------
    - Apply OAS (as a static zero-spread shift) consistently for all methods
    - Price with the manual Hull-White tree and with QuantLib references
      (discounting engine for the straight bond, QuantLib's own tree engine
      for the callable bond)
    - Provide: calculate(), metrics() (effective duration/convexity via
      bump-and-reprice)

    All methods return the NPV at the curve reference date.
    """

    def __init__(self, ts_base, bond_spec, cfg):
        """Create a pricer.

        Parameters
        ----------
        ts_base : QuantLib.RelinkableYieldTermStructureHandle
            Base curve (no OAS). Relinked temporarily by ``metrics``.
        bond_spec : CallableBondSpec
            Instrument definition.
        cfg : AppConfig
            Numerical knobs.
        """
        self.ts_base = ts_base
        self.bond_spec = bond_spec.validate()
        self.cfg = cfg.validate()
        self._keep_alive = []

        # QuantLib reference instruments
        self.ql_straight = bond_spec.ql_straight_bond()
        self.ql_callable = bond_spec.ql_callable_bond()

    def _make_ts_with_oas(self, oas_decimal):
        """Return a YieldTermStructureHandle with OAS applied."""
        if abs(oas_decimal) <= 1e-12:
            return ql.YieldTermStructureHandle(self.ts_base.currentLink())
        handle, curve = zero_spreaded(self.ts_base, oas_decimal)
        # Keep object alive to avoid Python/QL lifetime issues.
        self._keep_alive = [curve]
        return handle

    def calculate(self, method, oas_decimal=0.0, params=None):
        """Price the bond with ``method``.

        Returns
        -------
        (npv, details)
            ``details`` is the ``TreeResult`` for the manual tree methods and
            None otherwise.
        """
        params = params or self.cfg.model_params()
        ts_use = self._make_ts_with_oas(oas_decimal)

        if method == "STRAIGHT BOND":
            self.ql_straight.setPricingEngine(ql.DiscountingBondEngine(ts_use))
            return float(self.ql_straight.NPV()), None

        if method in ("HW_TREE", "HW_TREE_NONCALL"):
            model = HullWhite(float(params["a"]), float(params["sigma"]), TermStructure(ts_use))
            engine = TreeCallableBondEngine.from_config(self.cfg, apply_calls=(method == "HW_TREE"))
            result = engine.calculate(self.bond_spec, model)
            return float(result.npv), result

        if method == "HW_QL_TREE":
            model = ql.HullWhite(ts_use, float(params["a"]), float(params["sigma"]))
            self.ql_callable.setPricingEngine(
                ql.TreeCallableFixedRateBondEngine(model, int(self.cfg.ql_grid_size))
            )
            return float(self.ql_callable.NPV()), None

        raise InvalidConfiguration(f"unknown pricing method {method!r}; expected one of {METHODS}")

    def _price_shifted(self, shift, method, oas_decimal, params):
        """NPV with the base curve moved by a parallel zero spread ``shift``."""
        base_ptr = self.ts_base.currentLink()
        _, curve = zero_spreaded(ql.YieldTermStructureHandle(base_ptr), shift)
        self.ts_base.linkTo(curve)
        try:
            npv, _ = self.calculate(method, oas_decimal, params)
        finally:
            self.ts_base.linkTo(base_ptr)
        return npv

    def metrics(self, method, oas_decimal=0.0, params=None):
        """Return (npv, effective duration, effective convexity).

        The bump is ``cfg.risk_bump_bps``, applied as a parallel zero spread on
        the base curve; the OAS is applied on top of the bumped curve.
        """
        npv, _ = self.calculate(method, oas_decimal, params)

        dy = self.cfg.risk_bump_bps / 10000.0
        if abs(dy) < 1e-12 or abs(npv) <= 1e-8:
            return float(npv), 0.0, 0.0

        up = self._price_shifted(dy, method, oas_decimal, params)
        down = self._price_shifted(-dy, method, oas_decimal, params)

        dur = (down - up) / (2.0 * npv * dy)
        conv = (up + down - 2.0 * npv) / (npv * dy ** 2)
        return float(npv), float(dur), float(conv)
