import dataclasses
import math

import numpy as np
import pytest
import QuantLib as ql

from callable_lattice.engines import DiscretizedCallableBond, TreeCallableBondEngine, price
from callable_lattice.errors import CalibrationError, InvalidConfiguration
from callable_lattice.instruments import CallabilitySchedule, CallableBondSpec, PriceType, example_callable_bond
from callable_lattice.lattice import build_lattice
from callable_lattice.market import TermStructure, flat_forward
from callable_lattice.models import HullWhite
from callable_lattice.sensitivity import with_call_price


def ql_discounting_npv(bond, curve_handle):
    ql_bond = bond.ql_straight_bond()
    ql_bond.setPricingEngine(ql.DiscountingBondEngine(curve_handle))
    return ql_bond.NPV()


def test_callable_bond_scenario(bond, model):
    npv = price(bond, model, 100)
    straight = TreeCallableBondEngine(100, apply_calls=False).price(bond, model)

    assert math.isfinite(npv)
    assert 0.0 < npv < straight
    # an issuer call at 102 clean caps the value not far above par
    assert npv < 110.0


def test_straight_bond_reprices_discounting(bond, model, curve_handle):
    for steps in (10, 100, 250):
        tree = TreeCallableBondEngine(steps, apply_calls=False).price(bond, model)
        assert tree == pytest.approx(ql_discounting_npv(bond, curve_handle), abs=1e-6)


def test_empty_call_schedule_is_straight_bond(bond, model, curve_handle):
    plain = dataclasses.replace(bond, call_schedule=CallabilitySchedule())
    assert not plain.is_callable()
    assert price(plain, model, 100) == pytest.approx(ql_discounting_npv(plain, curve_handle), abs=1e-6)


@pytest.mark.parametrize("price_type", [PriceType.CLEAN, PriceType.DIRTY])
@pytest.mark.parametrize("sigma", [0.01, 0.10])
def test_matches_quantlib_tree(evaluation_date, curve_handle, sigma, price_type):
    bond = example_callable_bond(issue_date=evaluation_date, call_price=102.0, price_type=price_type)
    ours = price(bond, HullWhite(0.03, sigma, TermStructure(curve_handle)), 100)

    ql_bond = bond.ql_callable_bond()
    ql_model = ql.HullWhite(curve_handle, 0.03, sigma)
    ql_bond.setPricingEngine(ql.TreeCallableFixedRateBondEngine(ql_model, 100))
    assert ours == pytest.approx(ql_bond.NPV(), abs=1e-8)


def test_npv_non_decreasing_in_call_price(bond, model):
    npvs = [price(with_call_price(bond, k), model, 60) for k in (99.0, 100.0, 102.0, 105.0, 110.0)]
    assert all(b >= a - 1e-10 for a, b in zip(npvs, npvs[1:]))


def test_npv_non_increasing_in_volatility(bond, term_structure):
    npvs = [price(bond, HullWhite(0.03, s, term_structure), 60) for s in (0.005, 0.02, 0.05, 0.10)]
    assert all(b <= a + 1e-6 for a, b in zip(npvs, npvs[1:]))


def test_clean_strike_worth_more_than_dirty(model):
    clean = example_callable_bond(call_price=102.0, price_type=PriceType.CLEAN)
    dirty = example_callable_bond(call_price=102.0, price_type=PriceType.DIRTY)
    assert price(clean, model, 80) >= price(dirty, model, 80)


def test_converges_with_more_steps(bond, model):
    coarse = price(bond, model, 100)
    fine = price(bond, model, 400)
    assert abs(coarse - fine) < 1.0


def test_result_diagnostics(bond, model):
    result = TreeCallableBondEngine(100).calculate(bond, model)
    assert result.grid_size >= 101
    assert result.max_width >= 3
    assert len(result.exercise_probability) == len(bond.call_schedule)
    probs = np.array(list(result.exercise_probability.values()))
    assert np.all((probs >= 0.0) & (probs <= 1.0))
    # deep in-the-money call: the issuer calls somewhere on the schedule
    assert probs.max() > 0.5


def test_repeated_rollback_is_idempotent(bond, model):
    engine = TreeCallableBondEngine(100)
    grid, events, redemption = engine.discretize(bond, model.term_structure)
    lattice = build_lattice(model, grid)

    asset = DiscretizedCallableBond(redemption, events)
    first = asset.rollback(lattice)
    first_probs = dict(asset.exercise_probability)
    second = asset.rollback(lattice)

    assert second == first
    assert asset.exercise_probability == first_probs
    assert first == pytest.approx(engine.price(bond, model), abs=1e-12)


def test_call_on_valuation_date_caps_value(evaluation_date, model):
    bond = CallableBondSpec(
        face=100.0,
        coupon_rate=0.05,
        coupon_frequency=ql.Semiannual,
        issue_date=evaluation_date,
        maturity_date=evaluation_date + ql.Period(5, ql.Years),
        call_schedule=[(evaluation_date, 100.0, PriceType.DIRTY)],
    )
    assert price(bond, model, 50) == pytest.approx(100.0)


@pytest.mark.parametrize("steps", [0, -5, 1.5])
def test_bad_time_steps(bond, model, steps):
    with pytest.raises(InvalidConfiguration):
        price(bond, model, steps)


def test_non_positive_face(bond, model):
    with pytest.raises(InvalidConfiguration):
        price(dataclasses.replace(bond, face=0.0), model, 50)


def test_matured_bond(model):
    old = CallableBondSpec(
        face=100.0,
        coupon_rate=0.04,
        coupon_frequency=ql.Annual,
        issue_date=ql.Date(1, 3, 2010),
        maturity_date=ql.Date(1, 3, 2015),
    )
    with pytest.raises(InvalidConfiguration):
        price(old, model, 50)


def test_increasing_discounts_fail_calibration(evaluation_date, bond):
    m = HullWhite(0.03, 0.01, TermStructure(flat_forward(evaluation_date, -0.01)))
    with pytest.raises(CalibrationError):
        price(bond, m, 50)
    relaxed = TreeCallableBondEngine(50, allow_increasing_discounts=True)
    assert math.isfinite(relaxed.price(bond, m))
