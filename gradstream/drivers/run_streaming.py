"""
run_streaming.py
────────────────
Live streaming demo: a CSV is played into a DataStream, an online model
learns from it on its own thread, and a terminal dashboard shows how well
the model predicts points it has not learned from yet.

What happens when you run this
──────────────────────────────
    main thread                                  learner thread
    ───────────                                  ──────────────
    StreamLoader row ─► scale ─► predict ─► evaluate
                                     │
                                     └─► stream.put(point) ─► online_learn ─► θ
                                                                   │
                                  dashboard ◄── update counter ◄───┘ on_update
    stream.close()  ─────────────────────────────────────────────► errors closed

Each point is scored *before* it is queued, so every metric is prequential.

Usage
─────
    python -m gradstream.drivers.run_streaming                      # logistic on binary.csv
    python -m gradstream.drivers.run_streaming --model least-squares --csv data/samples/linear.csv
    python -m gradstream.drivers.run_streaming --model perceptron --window 200 --print-every 50
    python -m gradstream.drivers.run_streaming --persist models/logistic.json
    python -m gradstream.drivers.run_streaming --help
"""

import argparse
import sys
import threading
import time
from pathlib import Path

from loguru import logger

from gradstream.core import persistence
from gradstream.core.log import configure_logging
from gradstream.core.model import Datapoint
from gradstream.core.stream import DataStream, OnlineLearner
from gradstream.data.generate_sample_data import generate_defaults
from gradstream.data.online_scaler import OnlineScaler
from gradstream.data.stream_loader import StreamLoader
from gradstream.evaluation.sliding_window_evaluator import SlidingWindowEvaluator
from gradstream.linear.least_squares import LeastSquares
from gradstream.linear.logistic import Logistic
from gradstream.perceptron.perceptron import Perceptron

MODELS = ("logistic", "least-squares", "perceptron")
DEFAULT_CSV = {"logistic": "binary.csv", "least-squares": "linear.csv", "perceptron": "binary.csv"}


# ─────────────────────────────────────────────────────────────────────────────
# Dashboard renderer
# ─────────────────────────────────────────────────────────────────────────────

BAR_WIDTH = 40


def _bar(value: float, width: int = BAR_WIDTH) -> str:
    """Render a float in [0, 1] as a filled ASCII bar."""
    filled = int(round(min(max(value, 0.0), 1.0) * width))
    return "█" * filled + "░" * (width - filled)


def _render_dashboard(
    title: str,
    step: int,
    total: int,
    metrics,
    cumulative: str,
    updates: int,
    problems: int,
    elapsed: float,
    regression: bool,
) -> str:
    pct_done = 100.0 * step / total if total > 0 else 0.0

    lines = [
        "",
        "╔══════════════════════════════════════════════════════════════╗",
        f"║  {title:<60}║",
        "╠══════════════════════════════════════════════════════════════╣",
        f"║  step {step:>6} / {total:<6}   ({pct_done:5.1f}%)   elapsed {elapsed:6.2f}s",
        "╠══════════════════════════════════════════════════════════════╣",
        "║  SLIDING-WINDOW METRICS",
    ]
    if regression:
        lines.append(f"║    mse        {metrics.mse:.4f}")
    else:
        auc = metrics.auc if metrics.auc is not None else 0.0
        auc_str = f"{metrics.auc:.3f}" if metrics.auc is not None else " N/A "
        lines += [
            f"║    accuracy   {_bar(metrics.accuracy)}  {metrics.accuracy:.3f}",
            f"║    precision  {_bar(metrics.precision)}  {metrics.precision:.3f}",
            f"║    recall     {_bar(metrics.recall)}  {metrics.recall:.3f}",
            f"║    F1         {_bar(metrics.f1)}  {metrics.f1:.3f}",
            f"║    AUC        {_bar(auc)}  {auc_str}",
        ]
    lines += [
        "╠══════════════════════════════════════════════════════════════╣",
        f"║  {cumulative}",
        f"║  model updates        {updates}",
        f"║  reported errors      {problems}",
        "╚══════════════════════════════════════════════════════════════╝",
        "",
    ]
    return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Model wiring
# ─────────────────────────────────────────────────────────────────────────────

class _Monitor:
    """Counts callbacks from the learner thread (and persists snapshots if asked)."""

    def __init__(self, persist_path: Path | None = None):
        self.persist_path = persist_path
        self.updates = 0
        self.errors = 0
        self._lock = threading.Lock()

    def on_update(self, snapshot) -> None:
        with self._lock:
            self.updates += 1
            if self.persist_path is not None:
                state = snapshot.tolist() if hasattr(snapshot, "tolist") else snapshot
                persistence.write_json(self.persist_path, state)

    def on_error(self, error: BaseException) -> None:
        with self._lock:
            self.errors += 1


def build_model(name: str, n_features: int, learning_rate: float, lr_schedule: str, decay: float):
    if name == "logistic":
        return Logistic(learning_rate=learning_rate, features=n_features, lr_schedule=lr_schedule, decay=decay)
    if name == "least-squares":
        return LeastSquares(learning_rate=learning_rate, features=n_features)
    if name == "perceptron":
        return Perceptron(learning_rate=learning_rate, features=n_features)
    raise ValueError(f"model must be one of {MODELS}, got '{name}'.")


def score_point(name: str, model, point: Datapoint) -> tuple[Datapoint, float, float, float]:
    """Predict *point* with the current model.

    Returns the point to queue (perceptron labels mapped 0/1 → −1/+1) and
    (predicted, actual, score) for the evaluator.
    """
    x, y = point.x, point.y[0]
    if name == "logistic":
        prob = model.predict(x)
        return point, float(prob >= model.threshold), y, prob
    if name == "perceptron":
        guess = (model.predict(x) + 1.0) / 2.0
        return Datapoint(x, (2.0 * y - 1.0,)), guess, y, guess
    prediction = model.predict(x)
    return point, prediction, y, prediction


# ─────────────────────────────────────────────────────────────────────────────
# Streaming loop
# ─────────────────────────────────────────────────────────────────────────────

def run_stream(
    csv_path: str | Path,
    model_name: str = "logistic",
    window_size: int = 500,
    learning_rate: float = 0.1,
    lr_schedule: str = "invscale",
    decay: float = 1e-3,
    print_every: int = 100,
    persist_path: str | Path | None = None,
    maxsize: int = 1000,
    quiet: bool = False,
) -> dict:
    """Stream *csv_path* through an online model and return a summary.

    Returns
    -------
    dict with keys: model, scaler, evaluator, final_metrics, total_rows,
    updates, errors, elapsed
    """
    csv_path = Path(csv_path)
    regression = model_name == "least-squares"

    total_rows = StreamLoader(csv_path).count_rows()
    loader = StreamLoader(csv_path)
    scaler = OnlineScaler(n_features=loader.n_features)
    loader.scaler = scaler

    model = build_model(model_name, loader.n_features, learning_rate, lr_schedule, decay)
    evaluator = SlidingWindowEvaluator(window_size=window_size)
    monitor = _Monitor(Path(persist_path) if persist_path else None)

    stream = DataStream(maxsize=maxsize)
    learner = OnlineLearner(model, stream, on_update=monitor.on_update, on_error=monitor.on_error).start()
    logger.info("streaming {} rows from {} into {!r}", total_rows, csv_path.name, model)

    start_time = time.time()
    step = 0
    try:
        for step, point in enumerate(loader.stream(), start=1):
            queued, predicted, actual, score = score_point(model_name, model, point)
            evaluator.record(predicted, actual, score=score)
            stream.put(queued)

            if not quiet and (step % print_every == 0 or step == total_rows):
                cumulative = (
                    f"cumulative mse        {evaluator.cumulative_mse:.4f}" if regression
                    else f"cumulative accuracy   {evaluator.cumulative_accuracy:.3f}"
                )
                dashboard = _render_dashboard(
                    f"ONLINE {model_name.upper()} — LIVE STREAM", step, total_rows,
                    evaluator.get_metrics(), cumulative, monitor.updates, monitor.errors,
                    time.time() - start_time, regression,
                )
                print("\033[2J\033[H", end="")
                print(dashboard, flush=True)
    finally:
        stream.close()

    problems = learner.join()
    elapsed = time.time() - start_time
    for problem in problems:
        logger.warning("learner reported: {}", problem)

    return dict(
        model=model,
        scaler=scaler,
        evaluator=evaluator,
        final_metrics=evaluator.get_metrics(),
        total_rows=step,
        updates=monitor.updates,
        errors=problems,
        elapsed=elapsed,
    )


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Live streaming demo for the online learning pipeline."
    )
    parser.add_argument(
        "--model", type=str, default="logistic", choices=MODELS,
        help="Online model to train (default: logistic)."
    )
    parser.add_argument(
        "--csv", type=str, default=None,
        help="Path to CSV file.  If omitted, the matching sample under data/samples/ is generated."
    )
    parser.add_argument(
        "--window", type=int, default=500,
        help="Sliding-window size for metrics (default: 500)."
    )
    parser.add_argument(
        "--lr", type=float, default=0.1,
        help="Base learning rate (default: 0.1)."
    )
    parser.add_argument(
        "--schedule", type=str, default="invscale",
        choices=["constant", "invscale", "adaptive"],
        help="Learning-rate schedule for the logistic model (default: invscale)."
    )
    parser.add_argument(
        "--decay", type=float, default=1e-3,
        help="Decay factor for invscale schedule (default: 0.001)."
    )
    parser.add_argument(
        "--print-every", type=int, default=100,
        help="Refresh the dashboard every N rows (default: 100)."
    )
    parser.add_argument(
        "--persist", type=str, default=None,
        help="Write the model state as JSON to this path after every update."
    )
    parser.add_argument(
        "--log-level", type=str, default="WARNING",
        help="loguru level for library messages (default: WARNING)."
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    configure_logging(args.log_level)

    if args.csv is None:
        csv_path = Path("data") / "samples" / DEFAULT_CSV[args.model]
        if not csv_path.exists():
            print(f"  generating sample data under {csv_path.parent} …")
            generate_defaults(csv_path.parent)
    else:
        csv_path = Path(args.csv)
        if not csv_path.exists():
            print(f"  ERROR: file not found: {csv_path}", file=sys.stderr)
            return 1

    result = run_stream(
        csv_path=csv_path,
        model_name=args.model,
        window_size=args.window,
        learning_rate=args.lr,
        lr_schedule=args.schedule,
        decay=args.decay,
        print_every=args.print_every,
        persist_path=args.persist,
    )

    m = result["final_metrics"]
    print(f"  ── DONE ──  {result['total_rows']} rows in {result['elapsed']:.2f}s, "
          f"{result['updates']} updates, {len(result['errors'])} errors")
    if args.model == "least-squares":
        print(f"  final window mse:      {m.mse:.4f}")
        print(f"  cumulative mse:        {result['evaluator'].cumulative_mse:.4f}")
    else:
        auc_str = f"{m.auc:.3f}" if m.auc is not None else "N/A"
        print(f"  final window metrics:  acc={m.accuracy:.3f}  f1={m.f1:.3f}  auc={auc_str}")
        print(f"  cumulative accuracy:   {result['evaluator'].cumulative_accuracy:.3f}")
    print(f"  model: {result['model']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
