"""European FX and basket options priced with QuantLib engines.

Both products only assemble market data and hand it to a pre-built engine:
the FX option goes to the Garman-Kohlhagen integral engine (with the
closed-form engine as a cross-check), the min-basket option to the Monte
Carlo basket engine (with Stulz's two-asset formula as a cross-check).
"""

from dataclasses import dataclass
from datetime import date

import QuantLib as ql

from .errors import InvalidConfiguration
from .utils import DateUtils, target_calendar


@dataclass
class OptionResult:
    npv: float
    error_estimate: float = 0.0


def _flat(reference_date, rate, day_count):
    return ql.YieldTermStructureHandle(ql.FlatForward(reference_date, float(rate), day_count))


def _flat_vol(reference_date, calendar, vol, day_count):
    return ql.BlackVolTermStructureHandle(
        ql.BlackConstantVol(reference_date, calendar, float(vol), day_count)
    )


def _option_type(kind):
    kind = str(kind).lower()
    if kind == "call":
        return ql.Option.Call
    if kind == "put":
        return ql.Option.Put
    raise InvalidConfiguration(f"option type must be 'call' or 'put', got {kind!r}")


# ---------------------------------------------------------------------------
# FX option (Garman-Kohlhagen)
# ---------------------------------------------------------------------------
@dataclass
class FxOptionSpec:
    """European FX option on one unit of ``spot``.

    Curves and the vol surface start at the settlement date
    (``today`` + ``settlement_days``); expiry is ``tenor`` after settlement.
    """

    today: object = date(2019, 2, 25)
    option_type: str = "put"
    spot: float = 100.0
    strike: float = 110.0
    domestic_rate: float = 0.0268
    foreign_rate: float = 0.0315
    volatility: float = 0.06
    settlement_days: int = 2
    tenor: object = "6M"

    def __post_init__(self):
        self.today = DateUtils.to_ql_date(self.today)
        if self.spot <= 0.0 or self.strike <= 0.0:
            raise InvalidConfiguration("spot and strike must be positive")
        if self.volatility <= 0.0:
            raise InvalidConfiguration(f"volatility must be positive, got {self.volatility}")

    def settlement_date(self):
        return self.today + int(self.settlement_days)

    def maturity_date(self):
        return self.settlement_date() + DateUtils.ensure_period(self.tenor)


def fx_option_process(spec, calendar=None, day_count=None):
    calendar = calendar or target_calendar()
    day_count = day_count or ql.Actual365Fixed()
    settle = spec.settlement_date()
    return ql.GarmanKohlagenProcess(
        ql.QuoteHandle(ql.SimpleQuote(float(spec.spot))),
        _flat(settle, spec.foreign_rate, day_count),
        _flat(settle, spec.domestic_rate, day_count),
        _flat_vol(settle, calendar, spec.volatility, day_count),
    )


def price_fx_option(spec, method="integral"):
    """Price ``spec`` with the integral engine or, for ``method='analytic'``, in closed form."""
    ql.Settings.instance().evaluationDate = spec.today
    process = fx_option_process(spec)
    option = ql.VanillaOption(
        ql.PlainVanillaPayoff(_option_type(spec.option_type), float(spec.strike)),
        ql.EuropeanExercise(spec.maturity_date()),
    )
    if method == "integral":
        option.setPricingEngine(ql.IntegralEngine(process))
    elif method == "analytic":
        option.setPricingEngine(ql.AnalyticEuropeanEngine(process))
    else:
        raise InvalidConfiguration(f"unknown FX option method {method!r}")
    return OptionResult(npv=float(option.NPV()))


# ---------------------------------------------------------------------------
# Basket option (two correlated Black-Scholes assets)
# ---------------------------------------------------------------------------
@dataclass
class BasketOptionSpec:
    """European option on the minimum of two assets."""

    settlement_date: object = date(2019, 2, 22)
    maturity_date: object = date(2020, 2, 22)
    option_type: str = "call"
    strike: float = 100.0
    risk_free_rate: float = 0.05
    spots: tuple = (100.0, 100.0)
    dividend_yields: tuple = (0.0, 0.0)
    volatilities: tuple = (0.30, 0.30)
    correlation: float = 0.50

    def __post_init__(self):
        self.settlement_date = DateUtils.to_ql_date(self.settlement_date)
        self.maturity_date = DateUtils.to_ql_date(self.maturity_date)
        if not (len(self.spots) == len(self.dividend_yields) == len(self.volatilities) == 2):
            raise InvalidConfiguration("basket option needs exactly two underlyings")
        if not -1.0 <= self.correlation <= 1.0:
            raise InvalidConfiguration(f"correlation must be in [-1, 1], got {self.correlation}")


def basket_processes(spec, calendar=None, day_count=None):
    calendar = calendar or target_calendar()
    day_count = day_count or ql.Actual365Fixed()
    settle = spec.settlement_date
    rf = _flat(settle, spec.risk_free_rate, day_count)
    processes = []
    for s, q, v in zip(spec.spots, spec.dividend_yields, spec.volatilities):
        processes.append(
            ql.BlackScholesMertonProcess(
                ql.QuoteHandle(ql.SimpleQuote(float(s))),
                _flat(settle, q, day_count),
                rf,
                _flat_vol(settle, calendar, v, day_count),
            )
        )
    return processes


def price_basket_option(spec, method="mc", samples=10000, seed=42):
    """Price the min-basket option by Monte Carlo or with Stulz's formula."""
    ql.Settings.instance().evaluationDate = spec.settlement_date
    processes = basket_processes(spec)
    payoff = ql.MinBasketPayoff(
        ql.PlainVanillaPayoff(_option_type(spec.option_type), float(spec.strike))
    )
    option = ql.BasketOption(payoff, ql.EuropeanExercise(spec.maturity_date))

    if method == "mc":
        rho = float(spec.correlation)
        process = ql.StochasticProcessArray(processes, ql.Matrix([[1.0, rho], [rho, 1.0]]))
        option.setPricingEngine(
            ql.MCEuropeanBasketEngine(
                process,
                "pseudorandom",
                timeSteps=1,
                requiredSamples=int(samples),
                seed=int(seed),
            )
        )
        return OptionResult(npv=float(option.NPV()), error_estimate=float(option.errorEstimate()))
    if method == "stulz":
        option.setPricingEngine(ql.StulzEngine(processes[0], processes[1], float(spec.correlation)))
        return OptionResult(npv=float(option.NPV()))
    raise InvalidConfiguration(f"unknown basket option method {method!r}")
