import math

import pytest
import QuantLib as ql

from callable_lattice.market import MarketLoader, TermStructure, flat_forward, zero_spreaded

from conftest import VAL_DATE


def test_discount_by_date_and_time(term_structure):
    d = VAL_DATE + ql.Period(3, ql.Years)
    t = term_structure.time_from_reference(d)
    assert t == pytest.approx(3.0, abs=1e-2)
    assert term_structure.discount(d) == pytest.approx(term_structure.discount(t))
    assert term_structure.discount(0.0) == pytest.approx(1.0)
    assert term_structure.discounts([1.0, 2.0]) == pytest.approx(
        [math.exp(-0.0275), math.exp(-0.055)]
    )


def test_view_follows_relinking(curve_handle):
    ts = TermStructure(curve_handle)
    before = ts.discount(5.0)
    curve_handle.linkTo(ql.FlatForward(VAL_DATE, 0.05, ql.Actual365Fixed()))
    assert ts.discount(5.0) < before


def test_zero_spread_lowers_discounts(curve_handle):
    handle, curve = zero_spreaded(curve_handle, 0.01)
    assert curve is not None
    for t in (1.0, 5.0, 10.0):
        assert handle.discount(t) == pytest.approx(curve_handle.discount(t) * math.exp(-0.01 * t))


def test_load_curve_from_csv(tmp_path, cfg):
    path = tmp_path / "curve.csv"
    path.write_text(
        "Pillar Date,Discount Factor\n"
        "2018-12-31,1.01\n"
        "2020-02-25,0.98\n"
        "2024-02-26,0.90\n"
        "2029-02-26,0.78\n"
    )
    handle = MarketLoader(cfg).load_curve(path)
    assert handle.referenceDate() == VAL_DATE
    assert handle.discount(ql.Date(26, 2, 2024)) == pytest.approx(0.90)
    # pillars before the valuation date are dropped
    assert handle.discount(VAL_DATE) == pytest.approx(1.0)


def test_load_curve_needs_columns(tmp_path, cfg):
    path = tmp_path / "bad.csv"
    path.write_text("when,value\n2020-02-25,0.98\n")
    with pytest.raises(ValueError):
        MarketLoader(cfg).load_curve(path)


def test_flat_forward_default_day_count():
    handle = flat_forward(VAL_DATE, 0.03)
    assert handle.dayCounter().name() == ql.Actual365Fixed().name()
