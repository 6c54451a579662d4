import numpy as np
import pandas as pd
import QuantLib as ql

from .utils import DateUtils, target_calendar


class TermStructure:
    """Read-only view of a QuantLib yield curve handle.

    The lattice engine only needs discount factors on a grid of year
    fractions measured from the curve reference date. This wrapper never
    mutates the underlying curve, so one instance can be shared by any number
    of valuations.

    When built on a ``RelinkableYieldTermStructureHandle`` the view follows
    relinking, which is how ``MasterPricer`` bumps the curve.
    """

    def __init__(self, handle):
        if isinstance(handle, ql.YieldTermStructure):
            handle = ql.YieldTermStructureHandle(handle)
        self.handle = handle

    def curve(self):
        return self.handle.currentLink()

    def reference_date(self):
        return self.handle.referenceDate()

    def day_counter(self):
        return self.curve().dayCounter()

    def time_from_reference(self, d):
        """Year fraction from the reference date using the curve day count."""
        d = DateUtils.to_ql_date(d)
        return float(self.day_counter().yearFraction(self.reference_date(), d))

    def discount(self, t):
        """Discount factor P(0, t); ``t`` is a year fraction or a date."""
        if not isinstance(t, (int, float)):
            t = self.time_from_reference(t)
        return float(self.curve().discount(float(t), True))

    def discounts(self, times):
        return np.array([self.discount(float(t)) for t in times], dtype=float)


def flat_forward(reference_date, rate, day_count=None, compounding=ql.Continuous, frequency=ql.Annual):
    """Flat curve at ``rate`` (continuously compounded by default)."""
    day_count = day_count or ql.Actual365Fixed()
    curve = ql.FlatForward(
        DateUtils.to_ql_date(reference_date),
        ql.QuoteHandle(ql.SimpleQuote(float(rate))),
        day_count,
        compounding,
        frequency,
    )
    curve.enableExtrapolation()
    return ql.RelinkableYieldTermStructureHandle(curve)


def zero_spreaded(handle, spread):
    """Shift ``handle`` by a static continuously compounded zero spread.

    Returns ``(handle, curve)``; the caller must keep ``curve`` alive for as
    long as the handle is in use.
    """
    curve = ql.ZeroSpreadedTermStructure(handle, ql.QuoteHandle(ql.SimpleQuote(float(spread))))
    curve.enableExtrapolation()
    return ql.YieldTermStructureHandle(curve), curve


class MarketLoader:
    """Load a discount curve exported as CSV.

    The loader is permissive regarding column names so that curves exported
    from different systems can be used without editing them.
    """

    def __init__(self, cfg):
        self.cfg = cfg
        ql.Settings.instance().evaluationDate = cfg.val_date

    def load_curve(self, path, day_count=None, calendar=None, allow_extrapolation=True):
        """Load a discount curve from a CSV and return a relinkable handle.

        The CSV is expected to contain at least:
        - a date column (e.g. 'date', 'pillar')
        - a discount factor column (e.g. 'discount', 'df')

        The valuation date is always added with DF = 1.0.
        """
        day_count = day_count or ql.Actual365Fixed()
        calendar = calendar or target_calendar()

        df = pd.read_csv(path)
        col_date = next(
            (c for c in df.columns if "date" in c.lower() or "pillar" in c.lower()),
            None,
        )
        col_df = next(
            (c for c in df.columns if "discount" in c.lower() or c.lower() == "df"),
            None,
        )
        if col_date is None or col_df is None:
            raise ValueError(
                "Curve CSV must contain a date column (date/pillar) and a discount factor column (discount/df)."
            )

        df[col_date] = pd.to_datetime(df[col_date])
        df = df.sort_values(col_date)

        dates = [self.cfg.val_date]
        dfs = [1.0]

        for _, row in df.iterrows():
            d = DateUtils.to_ql_date(row[col_date].date())
            if d <= self.cfg.val_date:
                continue
            dates.append(d)
            dfs.append(float(row[col_df]))

        curve = ql.DiscountCurve(dates, dfs, day_count, calendar)
        if allow_extrapolation:
            curve.enableExtrapolation()
        return ql.RelinkableYieldTermStructureHandle(curve)
