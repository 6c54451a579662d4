import math

import pytest

from callable_lattice.errors import InvalidConfiguration
from callable_lattice.options import (
    BasketOptionSpec,
    FxOptionSpec,
    price_basket_option,
    price_fx_option,
)


def test_fx_put_integral_matches_closed_form():
    spec = FxOptionSpec()
    integral = price_fx_option(spec)
    analytic = price_fx_option(spec, method="analytic")
    assert integral.npv == pytest.approx(analytic.npv, abs=1e-2)

    # deep in-the-money put: worth at least its discounted intrinsic value
    t = 0.5
    intrinsic = spec.strike * math.exp(-spec.domestic_rate * t) - spec.spot * math.exp(-spec.foreign_rate * t)
    assert analytic.npv > intrinsic - 0.1


def test_fx_dates():
    spec = FxOptionSpec()
    assert spec.settlement_date() == spec.today + 2
    assert spec.maturity_date() > spec.settlement_date()


def test_fx_call_cheaper_than_put_when_out_of_the_money():
    put = price_fx_option(FxOptionSpec(option_type="put"), method="analytic").npv
    call = price_fx_option(FxOptionSpec(option_type="call"), method="analytic").npv
    assert call < put


def test_basket_mc_close_to_stulz():
    spec = BasketOptionSpec()
    mc = price_basket_option(spec, samples=20000, seed=42)
    stulz = price_basket_option(spec, method="stulz")
    assert mc.error_estimate > 0.0
    assert mc.npv == pytest.approx(stulz.npv, abs=4.0 * mc.error_estimate + 0.05)


def test_basket_seed_reproducible():
    spec = BasketOptionSpec()
    a = price_basket_option(spec, samples=2000, seed=7)
    b = price_basket_option(spec, samples=2000, seed=7)
    assert a.npv == b.npv


@pytest.mark.parametrize(
    "build",
    [
        lambda: price_fx_option(FxOptionSpec(option_type="straddle")),
        lambda: price_fx_option(FxOptionSpec(), method="tree"),
        lambda: FxOptionSpec(volatility=0.0),
        lambda: BasketOptionSpec(spots=(100.0, 100.0, 100.0)),
        lambda: BasketOptionSpec(correlation=1.5),
        lambda: price_basket_option(BasketOptionSpec(), method="pde"),
    ],
)
def test_invalid_inputs(build):
    with pytest.raises(InvalidConfiguration):
        build()
