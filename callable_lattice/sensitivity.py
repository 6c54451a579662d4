"""Sweeps and batch runs for the callable bond NPV.

The functions return ``pandas.DataFrame`` objects in a *wide* format: the
first column is the x-axis and each additional column is a method label,
except ``price_portfolio`` which returns one row per bond.
"""

import dataclasses

import pandas as pd
import QuantLib as ql

from .engines import TreeCallableBondEngine
from .errors import PricingError
from .instruments import Callability, CallabilitySchedule
from .market import zero_spreaded


def _scale_sigma(params, multiplier):
    """Return a copy of params with sigma scaled, if sigma exists."""
    if params is None:
        return None
    p = dict(params)
    if "sigma" in p and p["sigma"] is not None:
        p["sigma"] = float(params["sigma"]) * float(multiplier)
    return p


def price_vs_volatility(pricer, scenarios, oas_decimal, vol_multipliers):
    """NPV sensitivity to the Hull-White sigma.

    Parameters
    ----------
    pricer : callable_lattice.pricer.MasterPricer
    scenarios : list[tuple]
        List of tuples: (label, params_dict_or_None, method_code).
    oas_decimal : float
        OAS in decimal terms (e.g. 90bps -> 0.0090).
    vol_multipliers : iterable[float]
        Multiplicative bumps applied to sigma.
    """
    rows = []
    for m in vol_multipliers:
        row = {"vol_multiplier": float(m)}
        for label, params, method in scenarios:
            p = _scale_sigma(params or pricer.cfg.model_params(), m)
            npv, _ = pricer.calculate(method, oas_decimal, p)
            row[label] = float(npv)
        rows.append(row)
    return pd.DataFrame(rows)


def price_vs_rate_shift(pricer, scenarios, oas_decimal, rate_shifts_bps):
    """NPV sensitivity to a parallel shift of the base curve.

    The OAS is applied on top of the shifted curve.
    """
    base_ptr = pricer.ts_base.currentLink()
    rows = []
    try:
        for bps in rate_shifts_bps:
            _, curve = zero_spreaded(ql.YieldTermStructureHandle(base_ptr), float(bps) / 10000.0)
            pricer.ts_base.linkTo(curve)

            row = {"rate_shift_bps": float(bps)}
            for label, params, method in scenarios:
                npv, _ = pricer.calculate(method, oas_decimal, params)
                row[label] = float(npv)
            rows.append(row)
    finally:
        pricer.ts_base.linkTo(base_ptr)

    return pd.DataFrame(rows)


def with_call_price(bond, call_price):
    """Copy of ``bond`` with every call moved to ``call_price`` (same dates and types)."""
    calls = CallabilitySchedule(
        Callability(c.date, call_price, c.price_type) for c in bond.call_schedule
    )
    return dataclasses.replace(bond, call_schedule=calls)


def price_vs_call_price(bond, model, call_prices, time_steps):
    """Tree NPV as a function of the call price; non-decreasing in the price."""
    engine = TreeCallableBondEngine(time_steps)
    rows = []
    for k in call_prices:
        rows.append({"call_price": float(k), "npv": engine.price(with_call_price(bond, k), model)})
    return pd.DataFrame(rows)


def convergence_table(bond, model, steps_list):
    """Tree NPV (callable and straight) for several grid densities."""
    rows = []
    for n in steps_list:
        callable_result = TreeCallableBondEngine(n).calculate(bond, model)
        straight = TreeCallableBondEngine(n, apply_calls=False).price(bond, model)
        rows.append(
            {
                "time_steps": int(n),
                "grid_size": callable_result.grid_size,
                "max_width": callable_result.max_width,
                "callable_npv": callable_result.npv,
                "straight_npv": straight,
                "option_value": straight - callable_result.npv,
            }
        )
    return pd.DataFrame(rows)


def price_portfolio(bonds, model, time_steps):
    """Price several bonds one by one.

    A ``PricingError`` on one bond is recorded in the ``error`` column and
    the batch moves on; the NPV of that row is NaN.
    """
    engine = TreeCallableBondEngine(time_steps)
    rows = []
    for label, bond in bonds:
        try:
            rows.append({"bond": label, "npv": engine.price(bond, model), "error": None})
        except PricingError as e:
            rows.append({"bond": label, "npv": float("nan"), "error": f"{type(e).__name__}: {e}"})
    return pd.DataFrame(rows)
