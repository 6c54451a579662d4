import logging
from pathlib import Path

import QuantLib as ql
import pandas as pd

from callable_lattice.analytics import example_fixed_rate_bond, fixed_rate_bond_analytics
from callable_lattice.config import AppConfig
from callable_lattice.errors import PricingError
from callable_lattice.instruments import example_callable_bond
from callable_lattice.market import MarketLoader, TermStructure, flat_forward
from callable_lattice.models import HullWhite
from callable_lattice.options import BasketOptionSpec, FxOptionSpec, price_basket_option, price_fx_option
from callable_lattice.pricer import MasterPricer
from callable_lattice.reporting import plot_sweep, save_exercise_probabilities, save_run_snapshot, save_table
from callable_lattice.sensitivity import (
    convergence_table,
    price_vs_call_price,
    price_vs_rate_shift,
    price_vs_volatility,
)
from callable_lattice.utils import actual_actual_bond


def callable_bond_example(out_dir, curve_csv=None):
    # -------------------------------------------------------------------------
    # 0. Inputs
    # -------------------------------------------------------------------------
    val_date = ql.Date(25, 2, 2019)
    risk_free_rate = 0.0275

    cfg = AppConfig(val_date, time_steps=100, a=0.03, sigma=0.10)
    cfg.apply_global_settings()

    bond = example_callable_bond(issue_date=val_date, call_price=102.0)

    print(f"Today = {val_date}")
    print(f"Issuance = {bond.issue_date}")
    print(f"Maturity = {bond.maturity_date}")
    print(f"Risk-free rate = {risk_free_rate}")
    print(f"Face value = {bond.face}")
    print(f"Coupon = {bond.coupon_rate}")
    print(f"Call price = {bond.call_schedule[0].price} ({len(bond.call_schedule)} quarterly calls)")
    print(f"HW: a={cfg.hw_a:.4f}, sigma={cfg.hw_sigma:.4f}, time steps={cfg.time_steps}")

    ts = flat_forward(val_date, risk_free_rate, actual_actual_bond())

    # -------------------------------------------------------------------------
    # 1. NPV + risk metrics
    # -------------------------------------------------------------------------
    pricer = MasterPricer(ts, bond, cfg)
    scenarios = [
        ("STRAIGHT BOND", None, "STRAIGHT BOND"),
        ("HW (Manual Tree)", None, "HW_TREE"),
        ("HW (Manual Tree, no call)", None, "HW_TREE_NONCALL"),
        ("HW (QL Tree)", None, "HW_QL_TREE"),
    ]

    print(f"\n{'METHOD':<28} | {'NPV':<10} | {'DUR':<10} | {'CONV':<10}")
    print("-" * 68)

    results = []
    for label, params, method in scenarios:
        try:
            npv, dur, conv = pricer.metrics(method, cfg.oas_bps / 10000.0, params)
            print(f"{label:<28} | {npv:<10.4f} | {dur:<10.4f} | {conv:<10.4f}")
            results.append({"method": label, "npv": npv, "duration": dur, "convexity": conv})
        except PricingError as e:
            print(f"{label:<28} | ERROR: {e}")
            results.append({"method": label, "npv": float("nan"), "duration": float("nan"), "convexity": float("nan")})

    # Same tree on the market curve exported to CSV, when one is supplied
    if curve_csv is not None:
        market_ts = MarketLoader(cfg).load_curve(str(curve_csv), day_count=actual_actual_bond())
        label = "HW (Manual Tree, CSV curve)"
        npv, dur, conv = MasterPricer(market_ts, bond, cfg).metrics("HW_TREE", cfg.oas_bps / 10000.0)
        print(f"{label:<28} | {npv:<10.4f} | {dur:<10.4f} | {conv:<10.4f}")
        results.append({"method": label, "npv": npv, "duration": dur, "convexity": conv})

    save_table(pd.DataFrame(results), out_dir, "results_summary.csv")
    save_run_snapshot(cfg, bond, out_dir)
    _, tree_result = pricer.calculate("HW_TREE")
    save_exercise_probabilities(tree_result, out_dir)

    # -------------------------------------------------------------------------
    # 2. Sweeps
    # -------------------------------------------------------------------------
    tree_scenarios = [("HW (Manual Tree)", None, "HW_TREE"), ("HW (QL Tree)", None, "HW_QL_TREE")]

    df_vol = price_vs_volatility(pricer, tree_scenarios, 0.0, [0.25, 0.5, 1.0, 1.5])
    save_table(df_vol, out_dir, "sensitivity_npv_vs_volatility.csv")
    plot_sweep(df_vol, out_dir, "vol_multiplier", "NPV vs volatility (sigma multiplier)", "NPV", "npv_vs_volatility.png")

    df_rate = price_vs_rate_shift(pricer, tree_scenarios, 0.0, [-100, -50, 0, 50, 100])
    save_table(df_rate, out_dir, "sensitivity_npv_vs_rate_shift.csv")
    plot_sweep(df_rate, out_dir, "rate_shift_bps", "NPV vs parallel rate shift", "NPV", "npv_vs_rate_shift.png")

    model = HullWhite.from_config(TermStructure(ts), cfg)
    df_call = price_vs_call_price(bond, model, [100.0, 101.0, 102.0, 104.0, 108.0], cfg.time_steps)
    save_table(df_call, out_dir, "sensitivity_npv_vs_call_price.csv")

    df_conv = convergence_table(bond, model, [50, 100, 200, 400])
    save_table(df_conv, out_dir, "convergence.csv")
    print("\nConvergence")
    print(df_conv.to_string(index=False))


def fixed_rate_bond_example():
    bond = example_fixed_rate_bond()
    res = fixed_rate_bond_analytics(bond, clean_price=97.989976, evaluation_date=ql.Date(14, 3, 2019))
    print(f"\nyield to maturity: {res.yield_to_maturity}")
    print(f"accrued interest: {res.accrued_amount}")
    print("Cashflows")
    for row in res.cashflows.itertuples(index=False):
        print(f" date: {row.date} value: {row.amount}")


def fx_option_example():
    spec = FxOptionSpec()
    res = price_fx_option(spec)
    print(f"\nFX {spec.option_type}, strike {spec.strike}, maturity {spec.maturity_date()}")
    print(f"Price = {res.npv}")


def basket_option_example(samples=None, seed=None):
    spec = BasketOptionSpec()
    cfg = AppConfig(spec.settlement_date)
    res = price_basket_option(
        spec,
        samples=samples or cfg.mc_samples,
        seed=cfg.mc_seed if seed is None else seed,
    )
    print(f"\n{'Method':<35}{'Price':<35}")
    print(f"{'Monte Carlo':<35}{res.npv:<35.6f}")
    print(f"{'Stulz (closed form)':<35}{price_basket_option(spec, method='stulz').npv:<35.6f}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    project_root = Path(__file__).resolve().parent
    data_dir = project_root / "data"
    out_dir = project_root / "outputs"

    print("--- Callable bond (Hull-White tree) ---")
    callable_bond_example(out_dir, curve_csv=data_dir / "discount_curve.csv")

    print("\n--- Fixed rate bond analytics ---")
    fixed_rate_bond_example()

    print("\n--- FX option ---")
    fx_option_example()

    print("\n--- Basket option ---")
    basket_option_example()

    print(f"\nOutputs written to: {out_dir}")


if __name__ == "__main__":
    main()
