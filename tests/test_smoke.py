from datetime import date
from pathlib import Path

import pandas as pd
import QuantLib as ql

import run_analysis
from callable_lattice import AppConfig, CallableBondSpec, MasterPricer, flat_forward
from callable_lattice.utils import actual_actual_bond


def test_smoke_run():
    """Basic smoke test: build a curve, price with every method.

    This is not a unit test of financial correctness; it checks that the code
    runs end-to-end without exploding.
    """
    val_date = ql.Date(10, 9, 2025)
    cfg = AppConfig(val_date, time_steps=50, a=0.05, sigma=0.01, oas_bps=73.0, bump_bps=1.0)
    cfg.apply_global_settings()

    bond = CallableBondSpec(
        face=100.0,
        coupon_rate=0.035,
        coupon_frequency=ql.Semiannual,
        issue_date=date(2015, 12, 2),
        maturity_date=date(2035, 12, 2),
        call_schedule=[(date(2030, 12, 2), 100.0), (date(2034, 8, 12), 100.0)],
    )

    ts = flat_forward(val_date, 0.04, actual_actual_bond())
    pricer = MasterPricer(ts, bond, cfg)
    oas = cfg.oas_bps / 10000.0

    # Prices should be finite
    for method in ("STRAIGHT BOND", "HW_TREE", "HW_TREE_NONCALL", "HW_QL_TREE"):
        p, d, c = pricer.metrics(method, oas)
        assert abs(p) < 1e6
        assert abs(d) < 1e6
        assert abs(c) < 1e6


def test_demo_programs(tmp_path, capsys):
    curve_csv = Path(__file__).resolve().parent.parent / "data" / "discount_curve.csv"
    run_analysis.callable_bond_example(tmp_path, curve_csv=curve_csv)
    run_analysis.fixed_rate_bond_example()
    run_analysis.fx_option_example()
    run_analysis.basket_option_example(samples=1000)

    out = capsys.readouterr().out
    assert "yield to maturity" in out
    assert "Monte Carlo" in out

    summary = pd.read_csv(tmp_path / "results_summary.csv")
    assert len(summary) == 5
    assert summary["npv"].notna().all()
    market_npv = summary.loc[summary["method"] == "HW (Manual Tree, CSV curve)", "npv"].iloc[0]
    assert 0.0 < market_npv < 110.0
    assert (tmp_path / "run_snapshot.json").exists()
    assert (tmp_path / "hw_tree_exercise_probabilities.csv").exists()
    assert (tmp_path / "convergence.csv").exists()
