import dataclasses
import math

import pytest

from callable_lattice.pricer import MasterPricer
from callable_lattice.sensitivity import (
    convergence_table,
    price_portfolio,
    price_vs_call_price,
    price_vs_rate_shift,
    price_vs_volatility,
    with_call_price,
)


@pytest.fixture
def pricer(curve_handle, bond, cfg):
    cfg.time_steps = 40
    return MasterPricer(curve_handle, bond, cfg)


def test_volatility_sweep(pricer):
    df = price_vs_volatility(pricer, [("tree", None, "HW_TREE")], 0.0, [0.25, 1.0, 2.0])
    assert list(df.columns) == ["vol_multiplier", "tree"]
    assert df["vol_multiplier"].tolist() == [0.25, 1.0, 2.0]
    assert df["tree"].is_monotonic_decreasing


def test_rate_shift_sweep_restores_curve(pricer, curve_handle):
    link = curve_handle.currentLink()
    df = price_vs_rate_shift(
        pricer, [("straight", None, "STRAIGHT BOND"), ("tree", None, "HW_TREE")], 0.0, [-50, 0, 50]
    )
    assert len(df) == 3
    assert df["straight"].is_monotonic_decreasing
    assert df["tree"].is_monotonic_decreasing
    assert df.loc[1, "straight"] == pytest.approx(pricer.calculate("STRAIGHT BOND")[0])
    assert curve_handle.currentLink().discount(5.0) == link.discount(5.0)


def test_with_call_price_keeps_dates(bond):
    moved = with_call_price(bond, 104.0)
    assert moved.call_schedule.dates() == bond.call_schedule.dates()
    assert all(c.price == 104.0 for c in moved.call_schedule)
    assert all(c.price == 102.0 for c in bond.call_schedule)


def test_call_price_sweep(bond, model):
    df = price_vs_call_price(bond, model, [100.0, 102.0, 106.0], 40)
    assert df["npv"].is_monotonic_increasing


def test_convergence_table(bond, model):
    df = convergence_table(bond, model, [25, 50])
    assert df["time_steps"].tolist() == [25, 50]
    assert (df["grid_size"] > df["time_steps"]).all()
    assert (df["option_value"] > 0.0).all()
    # the straight bond is repriced exactly whatever the density
    assert df["straight_npv"].iloc[0] == pytest.approx(df["straight_npv"].iloc[1], abs=1e-6)


def test_portfolio_records_failures(bond, model):
    bad = dataclasses.replace(bond, face=-1.0)
    df = price_portfolio([("good", bond), ("bad", bad)], model, 30)

    assert df["bond"].tolist() == ["good", "bad"]
    assert math.isfinite(df.loc[0, "npv"])
    assert df.loc[0, "error"] is None
    assert math.isnan(df.loc[1, "npv"])
    assert df.loc[1, "error"].startswith("InvalidConfiguration")
