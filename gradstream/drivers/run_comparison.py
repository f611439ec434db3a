"""
run_comparison.py
─────────────────
Runs one of the batch_vs_online comparisons on a CSV, prints a summary
table and draws the matching figure.

Usage
─────
    python -m gradstream.drivers.run_comparison --task classification --csv data/samples/drifted.csv
    python -m gradstream.drivers.run_comparison --task regression --csv data/samples/linear.csv
    python -m gradstream.drivers.run_comparison --task clustering --csv data/samples/blobs.csv \\
        --save-plots --output-dir plots/

What the figures show
─────────────────────
    classification  sliding-window accuracy / precision / recall / F1 / AUC
                    against the batch test-set baselines, loss and α_t
    regression      batch cost J(θ) per iteration, online prequential mse,
                    and the fitted coefficients of every model side by side
    clustering      the data coloured by TriangleKMeans' clusters with the
                    centroids, and exact distance evaluations against naive
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict

import matplotlib.gridspec as gridspec
import matplotlib.pyplot as plt
import numpy as np
from loguru import logger
from matplotlib.ticker import MaxNLocator

from gradstream.core.log import configure_logging
from gradstream.data.loader import load_csv
from gradstream.evaluation.batch_vs_online import compare

ONLINE_COLOUR = "#2E86AB"
BATCH_COLOUR = "#A23B72"


# ═════════════════════════════════════════════════════════════════════════
# PLOTTING FUNCTIONS
# ═════════════════════════════════════════════════════════════════════════

def _style(ax, title: str, ylabel: str, xlabel: str = "Sample", unit_range: bool = False) -> None:
    ax.set_xlabel(xlabel, fontsize=10)
    ax.set_ylabel(ylabel, fontsize=10)
    ax.set_title(title, fontsize=11, fontweight="bold")
    ax.grid(alpha=0.3, linestyle=":")
    ax.xaxis.set_major_locator(MaxNLocator(integer=True, nbins=6))
    if unit_range:
        ax.set_ylim(0, 1.05)


def _finish(fig, save_path: Path | None) -> None:
    if save_path:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"\n✓ Plot saved to: {save_path}")
    else:
        plt.show()
    plt.close(fig)


def plot_classification(results: Dict[str, Any], save_path: Path | None = None) -> None:
    """Online sliding-window metrics against the batch test-set baselines."""
    batch = results["batch"]
    histories = results["online"]["histories"]
    steps = np.array(histories["step"])

    fig = plt.figure(figsize=(16, 9))
    fig.suptitle(
        f"Batch vs Online Logistic Regression — {Path(results['csv_path']).name}",
        fontsize=16, fontweight="bold", y=0.995,
    )
    gs = gridspec.GridSpec(2, 4, figure=fig, hspace=0.35, wspace=0.3, top=0.92, bottom=0.07, left=0.05, right=0.98)

    panels = [("accuracy", "Accuracy"), ("precision", "Precision"), ("recall", "Recall"), ("f1", "F1 Score"), ("auc", "ROC-AUC")]
    for n, (key, label) in enumerate(panels):
        ax = fig.add_subplot(gs[n // 4, n % 4])
        values = np.array([v if v is not None else np.nan for v in histories[key]], dtype=float)
        valid = ~np.isnan(values)
        if valid.any():
            ax.plot(steps[valid], values[valid], label="Online (sliding window)", color=ONLINE_COLOUR, linewidth=1.5)
            ax.axhline(batch[key], color=BATCH_COLOUR, linestyle="--", linewidth=2, label="Batch (test set)")
            ax.legend(loc="lower right", fontsize=9)
        else:
            ax.text(0.5, 0.5, f"{label} unavailable", ha="center", va="center", transform=ax.transAxes)
        _style(ax, f"{label} Over Time", label, unit_range=True)

    ax = fig.add_subplot(gs[1, 1])
    ax.plot(steps, histories["loss"], color="#E63946", linewidth=1.0)
    _style(ax, "Per-sample Loss", "Binary Cross-Entropy")

    ax = fig.add_subplot(gs[1, 2])
    ax.plot(steps, histories["learning_rate"], color="#F77F00", linewidth=1.5)
    ax.set_yscale("log")
    _style(ax, "Learning Rate Schedule", "α_t")

    _finish(fig, save_path)


def plot_regression(results: Dict[str, Any], save_path: Path | None = None) -> None:
    """Batch cost curve, online prequential mse and the fitted coefficients."""
    regression = results["regression"]

    fig = plt.figure(figsize=(16, 5))
    fig.suptitle(
        f"Least Squares: batch / stochastic / online vs scikit-learn — {Path(results['csv_path']).name}",
        fontsize=14, fontweight="bold",
    )
    gs = gridspec.GridSpec(1, 3, figure=fig, wspace=0.3, top=0.85, bottom=0.12, left=0.05, right=0.98)

    ax = fig.add_subplot(gs[0, 0])
    ax.plot(regression["batch"]["cost_history"], color=ONLINE_COLOUR, linewidth=1.5)
    ax.set_yscale("log")
    _style(ax, "Batch Cost J(θ)", "J(θ)", xlabel="Iteration")

    ax = fig.add_subplot(gs[0, 1])
    hist = regression["online"]["histories"]
    ax.plot(hist["step"], hist["mse"], color=ONLINE_COLOUR, linewidth=1.5, label="Online (sliding window)")
    ax.axhline(regression["sklearn"]["mse"], color=BATCH_COLOUR, linestyle="--", linewidth=2, label="LinearRegression (test)")
    ax.set_yscale("log")
    ax.legend(loc="upper right", fontsize=9)
    _style(ax, "Online Prequential MSE", "MSE")

    ax = fig.add_subplot(gs[0, 2])
    names = ["sklearn", "batch", "stochastic", "online"]
    width = 0.8 / len(names)
    positions = np.arange(len(regression["sklearn"]["theta"]))
    for n, name in enumerate(names):
        ax.bar(positions + n * width, regression[name]["theta"], width=width, label=name)
    ax.set_xticks(positions + width * (len(names) - 1) / 2)
    ax.set_xticklabels([f"θ{j}" for j in positions])
    ax.legend(fontsize=9)
    ax.set_title("Fitted Coefficients", fontsize=11, fontweight="bold")
    ax.grid(alpha=0.3, linestyle=":", axis="y")

    _finish(fig, save_path)


def plot_clustering(results: Dict[str, Any], save_path: Path | None = None) -> None:
    """Clusters found by TriangleKMeans and the distance evaluations it saved."""
    clustering = results["clustering"]
    X, _ = load_csv(results["csv_path"])
    centroids = np.array(clustering["centroids"])

    fig = plt.figure(figsize=(12, 5))
    fig.suptitle(f"Triangle-inequality k-means — {Path(results['csv_path']).name}", fontsize=14, fontweight="bold")
    gs = gridspec.GridSpec(1, 2, figure=fig, wspace=0.3, top=0.85, bottom=0.12, left=0.06, right=0.98)

    ax = fig.add_subplot(gs[0, 0])
    nearest = np.argmin(((X[:, None, :] - centroids[None, :, :]) ** 2).sum(axis=2), axis=1)
    ax.scatter(X[:, 0], X[:, 1], c=nearest, s=8, cmap="viridis", alpha=0.7)
    ax.scatter(centroids[:, 0], centroids[:, 1], c="red", marker="x", s=120, linewidths=3)
    ax.set_title("Clusters (first two features)", fontsize=11, fontweight="bold")
    ax.grid(alpha=0.3, linestyle=":")

    ax = fig.add_subplot(gs[0, 1])
    counts = [clustering["naive_distances"], clustering["triangle_distances"]]
    ax.bar(["naive k-means", "triangle k-means"], counts, color=[BATCH_COLOUR, ONLINE_COLOUR])
    ax.set_title(f"Distance Evaluations ({clustering['pruned_fraction']:.1%} pruned)", fontsize=11, fontweight="bold")
    ax.grid(alpha=0.3, linestyle=":", axis="y")

    _finish(fig, save_path)


# ═════════════════════════════════════════════════════════════════════════
# SUMMARY TABLES
# ═════════════════════════════════════════════════════════════════════════

def print_summary_table(results: Dict[str, Any]) -> None:
    """Print a text summary for whichever task *results* came from."""
    print("\n" + "=" * 70)
    print(f"COMPARISON SUMMARY ({results['task']})")
    print("=" * 70)
    print(f"Dataset: {results['csv_path']}")
    print("-" * 70)

    if results["task"] == "classification":
        batch = results["batch"]
        histories = results["online"]["histories"]
        print(f"Total samples processed: {histories['step'][-1]}")
        print(f"Online schedule: {results['online']['model'].lr_schedule}")
        print(f"{'Metric':<15} {'Batch (Test)':<18} {'Online (Final)':<18} {'Delta':<10}")
        print("-" * 70)
        for key, label in (("accuracy", "Accuracy"), ("precision", "Precision"),
                           ("recall", "Recall"), ("f1", "F1 Score"), ("auc", "ROC-AUC")):
            final = histories[key][-1]
            if final is None:
                print(f"{label:<15} {batch[key]:<18.4f} {'N/A':<18} {'—':<10}")
            else:
                print(f"{label:<15} {batch[key]:<18.4f} {final:<18.4f} {final - batch[key]:+.4f}")

    elif results["task"] == "regression":
        regression = results["regression"]
        print(f"{'Model':<15} {'Test MSE':<18} {'Test R²':<18}")
        print("-" * 70)
        for name in ("sklearn", "batch", "stochastic", "online"):
            print(f"{name:<15} {regression[name]['mse']:<18.4f} {regression[name]['r2']:<18.4f}")

    else:
        clustering = results["clustering"]
        print(f"{'naive distortion':<32} {clustering['naive_distortion']:.4f}")
        print(f"{'triangle distortion':<32} {clustering['triangle_distortion']:.4f}")
        print(f"{'sklearn inertia':<32} {clustering['sklearn_inertia']:.4f}")
        print(f"{'distance evaluations':<32} {clustering['triangle_distances']} / {clustering['naive_distances']}")
        print(f"{'ARI naive vs triangle':<32} {clustering['naive_vs_triangle_ari']:.4f}")
        print(f"{'ARI triangle vs sklearn':<32} {clustering['triangle_vs_sklearn_ari']:.4f}")
        if "triangle_vs_truth_ari" in clustering:
            print(f"{'ARI triangle vs labels':<32} {clustering['triangle_vs_truth_ari']:.4f}")

    print("=" * 70 + "\n")


PLOTTERS = {
    "classification": plot_classification,
    "regression": plot_regression,
    "clustering": plot_clustering,
}


# ═════════════════════════════════════════════════════════════════════════
# MAIN ENTRY POINT
# ═════════════════════════════════════════════════════════════════════════

def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compare gradstream models against scikit-learn and plot the results.",
    )
    parser.add_argument("--csv", type=str, required=True,
                        help="Path to the input CSV file (generated by generate_sample_data.py)")
    parser.add_argument("--task", type=str, default="classification", choices=sorted(PLOTTERS),
                        help="Which comparison to run (default: classification)")

    # ── online classifier ─────────────────────────────────────────────────
    parser.add_argument("--window-size", type=int, default=500,
                        help="Sliding window size for online metrics (default: 500)")
    parser.add_argument("--learning-rate", type=float, default=None,
                        help="Base learning rate (default: 0.1 for classification, scaled to the data for regression)")
    parser.add_argument("--lr-schedule", type=str, default="invscale",
                        choices=["constant", "invscale", "adaptive"],
                        help="Learning rate schedule (default: invscale)")
    parser.add_argument("--decay", type=float, default=1e-3,
                        help="Decay constant for invscale schedule (default: 1e-3)")
    parser.add_argument("--record-every", type=int, default=1,
                        help="Record metrics every N steps (default: 1)")

    # ── batch / clustering ────────────────────────────────────────────────
    parser.add_argument("--iterations", type=int, default=None,
                        help="Batch iterations (regression) or k-means passes (clustering)")
    parser.add_argument("--k", type=int, default=None,
                        help="Number of clusters (default: number of distinct labels)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")

    # ── output ────────────────────────────────────────────────────────────
    parser.add_argument("--save-plots", action="store_true", help="Save the figure instead of showing it")
    parser.add_argument("--output-dir", type=str, default="plots", help="Where saved figures go (default: plots/)")
    parser.add_argument("--no-plot", action="store_true", help="Only print the summary table")
    parser.add_argument("--log-level", type=str, default="INFO", help="loguru level (default: INFO)")
    return parser.parse_args(argv)


def _runner_kwargs(args: argparse.Namespace) -> dict:
    if args.task == "classification":
        return dict(
            window_size=args.window_size,
            learning_rate=args.learning_rate or 0.1,
            lr_schedule=args.lr_schedule,
            decay=args.decay,
            record_every=args.record_every,
        )
    if args.task == "regression":
        kwargs = dict(window_size=args.window_size, learning_rate=args.learning_rate)
        if args.iterations:
            kwargs["max_iterations"] = args.iterations
        return kwargs
    kwargs = {}
    if args.k:
        kwargs["k"] = args.k
    if args.iterations:
        kwargs["max_iterations"] = args.iterations
    return kwargs


def main(argv=None) -> int:
    args = _parse_args(argv)
    configure_logging(args.log_level)

    csv_path = Path(args.csv)
    if not csv_path.exists():
        print(f"  ERROR: file not found: {csv_path}", file=sys.stderr)
        return 1

    logger.info("running {} comparison on {}", args.task, csv_path)
    results = compare(csv_path, task=args.task, seed=args.seed, **_runner_kwargs(args))
    print_summary_table(results)

    if not args.no_plot:
        save_path = Path(args.output_dir) / f"{csv_path.stem}_{args.task}.png" if args.save_plots else None
        PLOTTERS[args.task](results, save_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
