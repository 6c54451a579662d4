from dataclasses import dataclass
from datetime import date

import pandas as pd
import QuantLib as ql
from scipy import optimize

from .errors import InvalidConfiguration
from .instruments import CallableBondSpec
from .utils import DateUtils, thirty360_usa, us_calendar


@dataclass
class BondAnalytics:
    """Yield, accrued interest and coupon schedule of a fixed-rate bond."""

    yield_to_maturity: float
    accrued_amount: float
    cashflows: pd.DataFrame


def yield_from_clean_price(bond, clean_price, day_count, compounding, frequency,
                           settlement_date, accuracy=1.0e-7, bracket=(-0.05, 0.5)):
    """Solve the yield that reproduces ``clean_price`` (per 100).

    The clean price for a trial yield comes from ``ql.BondFunctions`` and the
    root is found with Brent's method inside ``bracket``.
    """

    def obj(y):
        rate = ql.InterestRate(float(y), day_count, compounding, frequency)
        return ql.BondFunctions.cleanPrice(bond, rate, settlement_date) - float(clean_price)

    lo, hi = bracket
    if obj(lo) * obj(hi) > 0.0:
        raise InvalidConfiguration(
            f"clean price {clean_price} has no yield in [{lo}, {hi}]"
        )
    return float(optimize.brentq(obj, lo, hi, xtol=accuracy))


def fixed_rate_bond_analytics(spec, clean_price, evaluation_date,
                              compounding=ql.Simple, frequency=ql.Semiannual, accuracy=1.0e-7):
    """Yield to maturity, accrued interest and cash flows of ``spec``.

    ``spec`` is a ``CallableBondSpec``; its call schedule, if any, is
    ignored. Coupons already paid at ``evaluation_date`` are kept in the
    table, the redemption is left out.
    """
    spec.validate()
    evaluation_date = DateUtils.to_ql_date(evaluation_date)
    ql.Settings.instance().evaluationDate = evaluation_date

    bond = spec.ql_straight_bond()
    accrued = float(bond.accruedAmount(evaluation_date))
    ytm = yield_from_clean_price(
        bond, clean_price, spec.day_count, compounding, frequency, evaluation_date, accuracy
    )

    rows = []
    for cf in bond.cashflows():
        if ql.as_coupon(cf) is None:
            continue
        rows.append({"date": DateUtils.to_py_date(cf.date()), "amount": float(cf.amount())})

    return BondAnalytics(
        yield_to_maturity=ytm,
        accrued_amount=accrued,
        cashflows=pd.DataFrame(rows),
    )


def example_fixed_rate_bond():
    """5-year 3.125% semiannual bond, 30/360, US calendar, unadjusted."""
    return CallableBondSpec(
        face=100.0,
        coupon_rate=0.03125,
        coupon_frequency=ql.Period(6, ql.Months),
        issue_date=date(2017, 8, 31),
        maturity_date=date(2022, 8, 31),
        settlement_days=0,
        day_count=thirty360_usa(),
        calendar=us_calendar(),
        accrual_convention=ql.Unadjusted,
        payment_convention=ql.Unadjusted,
        redemption=100.0,
    )
