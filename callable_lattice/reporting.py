import json
from pathlib import Path

import pandas as pd

from .utils import DateUtils


def ensure_dir(path):
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def save_table(df, output_dir, filename):
    """Write ``df`` as CSV to ``output_dir/filename`` and return the path."""
    path = ensure_dir(output_dir) / filename
    df.to_csv(path, index=False)
    return path


def save_run_snapshot(cfg, bond, output_dir):
    """Persist the numerical settings and the bond terms of a run as JSON.

    Only scalar config attributes are kept; dates are written as ISO strings.
    """
    settings = {
        k: v for k, v in vars(cfg).items()
        if isinstance(v, (int, float, str, bool)) and k != "val_date"
    }
    settings["val_date"] = DateUtils.to_py_date(cfg.val_date).isoformat()

    calls = list(bond.call_schedule)
    terms = {
        "face": float(bond.face),
        "coupon_rate": bond.coupon_rates(),
        "issue_date": DateUtils.to_py_date(bond.issue_date).isoformat(),
        "maturity_date": DateUtils.to_py_date(bond.maturity_date).isoformat(),
        "redemption": float(bond.redemption),
        "call_count": len(calls),
        "first_call": DateUtils.to_py_date(calls[0].date).isoformat() if calls else None,
        "call_price_type": calls[0].price_type.value if calls else None,
    }

    path = ensure_dir(output_dir) / "run_snapshot.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"config": settings, "bond": terms}, f, indent=2, sort_keys=True)
    return path


def save_exercise_probabilities(tree_result, output_dir):
    """Save the call exercise probabilities of a tree valuation, if any.

    Also draws a bar chart when matplotlib is installed.
    """
    if tree_result is None or not tree_result.exercise_probability:
        return None

    df = pd.DataFrame(
        [{"call_time": float(t), "exercise_prob": float(p)}
         for t, p in tree_result.exercise_probability.items()]
    ).sort_values("call_time")
    path = save_table(df, output_dir, "hw_tree_exercise_probabilities.csv")

    try:
        import matplotlib.pyplot as plt
    except ImportError:
        return path

    fig, ax = plt.subplots()
    ax.bar(df["call_time"], df["exercise_prob"], width=0.15)
    ax.set_xlabel("Call time (years)")
    ax.set_ylabel("Exercise probability (risk-neutral)")
    fig.tight_layout()
    fig.savefig(ensure_dir(Path(output_dir) / "figures") / "hw_tree_exercise_probabilities.png", dpi=200)
    plt.close(fig)
    return path


def plot_sweep(df, output_dir, x_col, title, ylabel, filename_png):
    """Line chart of a wide sweep table: one line per method column.

    Returns the figure path, or None when matplotlib is not installed.
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        return None

    fig, ax = plt.subplots()
    for col in df.columns.drop(x_col):
        ax.plot(df[x_col], df[col], marker="o", linewidth=1.5, label=str(col))
    ax.set_title(title)
    ax.set_xlabel(x_col.replace("_", " "))
    ax.set_ylabel(ylabel)
    ax.grid(True, alpha=0.3)
    ax.legend(fontsize=8)
    fig.tight_layout()

    path = ensure_dir(Path(output_dir) / "figures") / filename_png
    fig.savefig(path, dpi=200)
    plt.close(fig)
    return path
