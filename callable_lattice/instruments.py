from dataclasses import dataclass, field
from datetime import date
from enum import Enum

import pandas as pd
import QuantLib as ql

from .errors import InvalidConfiguration
from .utils import DateUtils, actual_actual_bond, target_calendar


class PriceType(Enum):
    """Quote convention of a call price."""

    CLEAN = "clean"
    DIRTY = "dirty"

    def to_ql(self):
        return ql.BondPrice.Clean if self is PriceType.CLEAN else ql.BondPrice.Dirty


@dataclass(frozen=True)
class Callability:
    """One issuer call: redeem on ``date`` at ``price`` (per 100 of face)."""

    date: object
    price: float
    price_type: PriceType = PriceType.CLEAN

    def __post_init__(self):
        object.__setattr__(self, "date", DateUtils.to_ql_date(self.date))
        object.__setattr__(self, "price", float(self.price))
        if not isinstance(self.price_type, PriceType):
            object.__setattr__(self, "price_type", PriceType(str(self.price_type).lower()))


class CallabilitySchedule:
    """Ordered issuer call schedule.

    Entries may be given as ``Callability`` objects or as ``(date, price)`` /
    ``(date, price, price_type)`` tuples. Dates must be strictly increasing.
    """

    def __init__(self, entries=()):
        items = []
        for e in entries or ():
            if not isinstance(e, Callability):
                e = Callability(*e)
            items.append(e)
        for prev, cur in zip(items[:-1], items[1:]):
            if not cur.date > prev.date:
                raise InvalidConfiguration(
                    f"call dates must be strictly increasing: {prev.date} then {cur.date}"
                )
        self._entries = tuple(items)

    @classmethod
    def periodic(cls, first_date, count, period, price, price_type=PriceType.CLEAN):
        """``count`` calls at the same price, ``period`` apart, from ``first_date``."""
        period = DateUtils.ensure_period(period)
        d = DateUtils.to_ql_date(first_date)
        entries = []
        for _ in range(int(count)):
            entries.append(Callability(d, price, price_type))
            d = d + period
        return cls(entries)

    def __iter__(self):
        return iter(self._entries)

    def __len__(self):
        return len(self._entries)

    def __getitem__(self, i):
        return self._entries[i]

    def dates(self):
        return [c.date for c in self._entries]


@dataclass(frozen=True)
class CouponFlow:
    """A fixed coupon: ``amount = face * rate * accrual_fraction``."""

    payment_date: object
    accrual_start: object
    accrual_end: object
    accrual_fraction: float
    amount: float


@dataclass
class CallableBondSpec:
    """Specification of a callable fixed-rate bond.

    Coupon dates, accrual fractions and accrued interest come from QuantLib
    (schedule generation, calendar and day count). The lattice engine only
    sees the resulting payment dates and amounts.

    Notes
    -----
    - ``redemption`` and call prices are quoted per 100 of face, as in
      QuantLib; the redemption amount is ``face * redemption / 100``.
    - ``coupon_rate`` may be a single rate or one rate per period.
    - An empty ``call_schedule`` makes the bond non-callable.
    """

    face: float
    coupon_rate: object
    coupon_frequency: object  # QuantLib Frequency, Period, or string like "3M"
    issue_date: object
    maturity_date: object

    call_schedule: object = field(default_factory=CallabilitySchedule)
    settlement_days: int = 0

    # Conventions
    day_count: object = field(default_factory=actual_actual_bond)
    calendar: object = field(default_factory=target_calendar)
    accrual_convention: object = ql.Following
    payment_convention: object = ql.Following
    date_generation: object = ql.DateGeneration.Backward
    end_of_month: bool = False

    redemption: float = 100.0

    def __post_init__(self):
        self.issue_date = DateUtils.to_ql_date(self.issue_date)
        self.maturity_date = DateUtils.to_ql_date(self.maturity_date)
        if not isinstance(self.call_schedule, CallabilitySchedule):
            self.call_schedule = CallabilitySchedule(self.call_schedule)

    def coupon_rates(self):
        if isinstance(self.coupon_rate, (list, tuple)):
            return [float(r) for r in self.coupon_rate]
        return [float(self.coupon_rate)]

    def redemption_amount(self):
        return float(self.face) * float(self.redemption) / 100.0

    def is_callable(self):
        return len(self.call_schedule) > 0

    def validate(self):
        """Raise ``InvalidConfiguration`` for anything the engines cannot price."""
        if not (self.face > 0.0):
            raise InvalidConfiguration(f"face value must be positive, got {self.face}")
        if not (self.redemption > 0.0):
            raise InvalidConfiguration(f"redemption must be positive, got {self.redemption}")
        if not self.maturity_date > self.issue_date:
            raise InvalidConfiguration(
                f"maturity {self.maturity_date} must be after issue {self.issue_date}"
            )
        if not self.coupon_rates():
            raise InvalidConfiguration("at least one coupon rate is required")
        for c in self.call_schedule:
            if c.date < self.issue_date or c.date > self.maturity_date:
                raise InvalidConfiguration(
                    f"call date {c.date} outside [{self.issue_date}, {self.maturity_date}]"
                )
            if not (c.price > 0.0):
                raise InvalidConfiguration(f"call price must be positive, got {c.price} on {c.date}")
        if not self.coupon_flows():
            raise InvalidConfiguration("coupon schedule is empty")
        return self

    # ---------------------------------------------------------------------
    # QuantLib objects
    # ---------------------------------------------------------------------
    def ql_schedule(self):
        return ql.Schedule(
            self.issue_date,
            self.maturity_date,
            DateUtils.ensure_period(self.coupon_frequency),
            self.calendar,
            self.accrual_convention,
            self.accrual_convention,
            self.date_generation,
            bool(self.end_of_month),
        )

    def ql_straight_bond(self):
        return ql.FixedRateBond(
            int(self.settlement_days),
            float(self.face),
            self.ql_schedule(),
            self.coupon_rates(),
            self.day_count,
            self.payment_convention,
            float(self.redemption),
            self.issue_date,
        )

    def ql_callable_bond(self):
        callabilities = [
            ql.Callability(
                ql.BondPrice(c.price, c.price_type.to_ql()),
                ql.Callability.Call,
                c.date,
            )
            for c in self.call_schedule
        ]
        return ql.CallableFixedRateBond(
            int(self.settlement_days),
            float(self.face),
            self.ql_schedule(),
            self.coupon_rates(),
            self.day_count,
            self.payment_convention,
            float(self.redemption),
            self.issue_date,
            callabilities,
        )

    # ---------------------------------------------------------------------
    # Values read by the lattice engine
    # ---------------------------------------------------------------------
    def coupon_flows(self, bond=None):
        bond = bond or self.ql_straight_bond()
        flows = []
        for cf in bond.cashflows():
            c = ql.as_fixed_rate_coupon(cf)
            if c is None:
                continue
            fraction = float(c.accrualPeriod())
            flows.append(
                CouponFlow(
                    payment_date=c.date(),
                    accrual_start=c.accrualStartDate(),
                    accrual_end=c.accrualEndDate(),
                    accrual_fraction=fraction,
                    amount=float(self.face) * float(c.rate()) * fraction,
                )
            )
        return flows

    def redemption_date(self, bond=None):
        bond = bond or self.ql_straight_bond()
        dates = [cf.date() for cf in bond.cashflows() if ql.as_coupon(cf) is None]
        return max(dates) if dates else self.maturity_date

    def accrued_amount(self, on_date, bond=None):
        """Accrued interest (in currency, not per 100) on ``on_date``."""
        bond = bond or self.ql_straight_bond()
        d = DateUtils.to_ql_date(on_date)
        return float(bond.accruedAmount(d)) * float(self.face) / 100.0

    def dirty_call_prices(self, bond=None):
        """``[(date, dirty strike in currency)]`` for every call.

        Clean call prices get the accrued interest of the call date added;
        dirty ones are used as quoted.
        """
        bond = bond or self.ql_straight_bond()
        out = []
        for c in self.call_schedule:
            strike = c.price * float(self.face) / 100.0
            if c.price_type is PriceType.CLEAN:
                strike += self.accrued_amount(c.date, bond)
            out.append((c.date, strike))
        return out

    def cashflow_table(self):
        """Coupon schedule as a DataFrame (dates as ``datetime.date``)."""
        rows = [
            {
                "payment_date": DateUtils.to_py_date(f.payment_date),
                "accrual_start": DateUtils.to_py_date(f.accrual_start),
                "accrual_end": DateUtils.to_py_date(f.accrual_end),
                "accrual_fraction": f.accrual_fraction,
                "amount": f.amount,
            }
            for f in self.coupon_flows()
        ]
        return pd.DataFrame(rows)


def example_callable_bond(issue_date=date(2019, 2, 25), call_price=102.0, price_type=PriceType.CLEAN):
    """The quarterly callable bond of the tree-engine example.

    10 years, 5% quarterly coupon, face and redemption 100, Actual/Actual
    (Bond), TARGET, Following, 2 settlement days, 38 quarterly calls starting
    3 months after issue + settlement days.
    """
    issue = DateUtils.to_ql_date(issue_date)
    maturity = issue + ql.Period(10, ql.Years)
    settlement_days = 2
    first_call = issue + settlement_days + ql.Period(3, ql.Months)
    calls = CallabilitySchedule.periodic(first_call, 38, ql.Period(3, ql.Months), call_price, price_type)
    return CallableBondSpec(
        face=100.0,
        coupon_rate=0.05,
        coupon_frequency=ql.Quarterly,
        issue_date=issue,
        maturity_date=maturity,
        call_schedule=calls,
        settlement_days=settlement_days,
        redemption=100.0,
    )
