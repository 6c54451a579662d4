from datetime import date

import QuantLib as ql
import pandas as pd


def target_calendar():
    """TARGET calendar, used by the callable-bond and option examples."""
    return ql.TARGET()


def us_calendar():
    """Generic United States calendar.

    The market enum differs between QuantLib builds and recent ones no longer
    accept the no-argument constructor.
    """
    for market in ("Settlement", "GovernmentBond"):
        if hasattr(ql.UnitedStates, market):
            return ql.UnitedStates(getattr(ql.UnitedStates, market))
    return ql.UnitedStates()


def thirty360_usa():
    return ql.Thirty360(ql.Thirty360.USA)


def actual_actual_bond():
    """Actual/Actual (Bond) day count."""
    return ql.ActualActual(ql.ActualActual.Bond)


class DateUtils:
    """Small helpers to keep date/period parsing in one place."""

    @staticmethod
    def to_ql_date(d):
        """Convert common Python date representations into QuantLib.Date."""
        if isinstance(d, ql.Date):
            return d
        if isinstance(d, str):
            d = pd.to_datetime(d).date()
        return ql.Date(d.day, d.month, d.year)

    @staticmethod
    def to_py_date(d):
        """Convert a QuantLib.Date into ``datetime.date`` (for tables/reports)."""
        if isinstance(d, date):
            return d
        return date(d.year(), d.month(), d.dayOfMonth())

    @staticmethod
    def parse_period(s):
        """Parse strings such as '1Mo', '3Mo', '1Yr', '10Yr', '6M', '1Y'."""
        s = str(s).strip().upper()
        s = s.replace("MONTH", "M").replace("MO", "M")
        s = s.replace("YEAR", "Y").replace("YR", "Y")
        if s.endswith("M"):
            return ql.Period(int(s[:-1]), ql.Months)
        if s.endswith("Y"):
            return ql.Period(int(s[:-1]), ql.Years)
        # Fallback to QuantLib's parser (e.g. '2W')
        return ql.Period(s)

    @staticmethod
    def ensure_period(freq_or_period):
        """Convert Frequency/Period/string to QuantLib.Period."""
        if isinstance(freq_or_period, ql.Period):
            return freq_or_period
        if isinstance(freq_or_period, str):
            return DateUtils.parse_period(freq_or_period)
        # QuantLib Frequency is an int enum (e.g. ql.Quarterly)
        return ql.Period(freq_or_period)
