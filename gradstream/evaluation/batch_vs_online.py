"""
batch_vs_online.py
──────────────────
Side-by-side runs of our models and their scikit-learn counterparts on the
same data.  Pure logic: results come back as dicts and the driver
(run_comparison.py) does the plotting.

Three comparisons
─────────────────
    regression      LeastSquares batch / stochastic / online  vs  LinearRegression
    classification  Logistic online (prequential)             vs  LogisticRegression
    clustering      KMeans and TriangleKMeans (same seed)     vs  sklearn KMeans

Prequential evaluation
──────────────────────
The online runs predict each row *before* learning from it, so every score
is on data the model has not seen yet:

    scale → predict → record → update

Step sizes
──────────
Our batch gradients are sums over the training set, not means, so a step
size that suits 10 rows diverges on 10 000.  When no learning rate is given
the runners use  0.5 / (m · E‖x‖²)  for batch and  0.5 / E‖x‖²  for the
per-example optimizers.
"""

from pathlib import Path

import numpy as np
from loguru import logger
from sklearn.cluster import KMeans as SklearnKMeans
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.metrics import (
    accuracy_score,
    adjusted_rand_score,
    f1_score,
    mean_squared_error,
    precision_score,
    r2_score,
    recall_score,
    roc_auc_score,
)
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import StandardScaler as SklearnScaler

from gradstream.cluster.kmeans import KMeans
from gradstream.cluster.triangle_kmeans import TriangleKMeans
from gradstream.core.model import Datapoint
from gradstream.data.loader import load_csv
from gradstream.data.online_scaler import OnlineScaler
from gradstream.evaluation.sliding_window_evaluator import SlidingWindowEvaluator
from gradstream.linear.least_squares import LeastSquares
from gradstream.linear.logistic import Logistic, binary_cross_entropy


def default_learning_rate(X: np.ndarray, per_example: bool, scale: float = 0.5) -> float:
    """Step size that keeps sum-of-gradients ascent stable on *X* (bias included)."""
    energy = 1.0 + float(np.mean(np.sum(X * X, axis=1)))
    return scale / energy if per_example else scale / (X.shape[0] * energy)


# ─────────────────────────────────────────────────────────────────────────────
# Regression
# ─────────────────────────────────────────────────────────────────────────────

def run_regression(
    X: np.ndarray,
    y: np.ndarray,
    learning_rate: float | None = None,
    max_iterations: int = 500,
    stochastic_iterations: int = 20,
    window_size: int = 200,
    test_size: float = 0.2,
    seed: int = 42,
) -> dict:
    """Fit LinearRegression and three flavours of LeastSquares; score all on a held-out split.

    Returns
    -------
    dict with one entry per model ('sklearn', 'batch', 'stochastic', 'online'),
    each holding test ``mse``, ``r2`` and the fitted ``theta``; 'batch' also
    has ``cost_history`` and 'online' has prequential ``histories``.
    """
    X_train, X_test, y_train, y_test = train_test_split(X, y, test_size=test_size, random_state=seed)

    def _score(predict) -> dict:
        y_pred = np.array([predict(x) for x in X_test])
        return dict(mse=float(mean_squared_error(y_test, y_pred)), r2=float(r2_score(y_test, y_pred)))

    # ── scikit-learn reference ────────────────────────────────────────────
    reference = LinearRegression().fit(X_train, y_train)
    results = {"sklearn": dict(
        theta=[float(reference.intercept_)] + reference.coef_.tolist(),
        **_score(lambda x: float(reference.predict(x[None, :])[0])),
    )}

    # ── batch ─────────────────────────────────────────────────────────────
    batch = LeastSquares(
        "batch", learning_rate or default_learning_rate(X_train, per_example=False),
        0.0, max_iterations, X_train, y_train,
    )
    cost_history = []
    batch.learn(on_iteration=lambda i, theta: cost_history.append(batch.cost()))
    results["batch"] = dict(theta=batch.get_state(), cost_history=cost_history, **_score(batch.predict))

    # ── stochastic ────────────────────────────────────────────────────────
    per_example_rate = learning_rate or default_learning_rate(X_train, per_example=True)
    stochastic = LeastSquares("stochastic", per_example_rate, 0.0, stochastic_iterations, X_train, y_train)
    stochastic.learn()
    results["stochastic"] = dict(theta=stochastic.get_state(), **_score(stochastic.predict))

    # ── online, prequential ───────────────────────────────────────────────
    online = LeastSquares(learning_rate=per_example_rate, features=X_train.shape[1])
    evaluator = SlidingWindowEvaluator(window_size=window_size)
    hist = {"step": [], "mse": []}
    for t, (x, target) in enumerate(zip(X_train, y_train), start=1):
        evaluator.record(online.predict(x), target)
        online.update(Datapoint(x, (target,)))
        hist["step"].append(t)
        hist["mse"].append(evaluator.get_metrics().mse)
    results["online"] = dict(theta=online.get_state(), histories=hist, **_score(online.predict))

    logger.info(
        "regression comparison | test mse sklearn={:.4f} batch={:.4f} stochastic={:.4f} online={:.4f}",
        results["sklearn"]["mse"], results["batch"]["mse"],
        results["stochastic"]["mse"], results["online"]["mse"],
    )
    return results


# ─────────────────────────────────────────────────────────────────────────────
# Classification
# ─────────────────────────────────────────────────────────────────────────────

def run_batch_classifier(X: np.ndarray, y: np.ndarray, test_size: float = 0.2, seed: int = 42) -> dict:
    """scikit-learn LogisticRegression on a scaled train split, scored on the test split."""
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=test_size, random_state=seed, stratify=y
    )
    scaler = SklearnScaler()
    X_train_s = scaler.fit_transform(X_train)
    X_test_s = scaler.transform(X_test)

    model = LogisticRegression(max_iter=1000, random_state=seed).fit(X_train_s, y_train)
    y_pred = model.predict(X_test_s)
    y_proba = model.predict_proba(X_test_s)[:, 1]

    return dict(
        model=model,
        accuracy  = float(accuracy_score(y_test, y_pred)),
        precision = float(precision_score(y_test, y_pred, zero_division=0)),
        recall    = float(recall_score(y_test, y_pred, zero_division=0)),
        f1        = float(f1_score(y_test, y_pred, zero_division=0)),
        auc       = float(roc_auc_score(y_test, y_proba)),
    )


def run_online_classifier(
    X: np.ndarray,
    y: np.ndarray,
    window_size: int = 500,
    learning_rate: float = 0.1,
    lr_schedule: str = "invscale",
    decay: float = 1e-3,
    record_every: int = 1,
) -> dict:
    """Prequential run of Logistic over the rows of X in order.

    Returns the final model, scaler and evaluator plus ``histories``: lists of
    step, accuracy, precision, recall, f1, auc, loss and learning_rate.
    """
    scaler = OnlineScaler(n_features=X.shape[1])
    model = Logistic(
        learning_rate=learning_rate, features=X.shape[1],
        lr_schedule=lr_schedule, decay=decay,
    )
    evaluator = SlidingWindowEvaluator(window_size=window_size)
    hist = {k: [] for k in ("step", "accuracy", "precision", "recall", "f1", "auc", "loss", "learning_rate")}

    for t, (x_raw, label) in enumerate(zip(X, y), start=1):
        x = scaler.fit_transform(x_raw)
        prob = model.predict(x)
        evaluator.record(float(prob >= model.threshold), label, score=prob)
        model.update(Datapoint(x, (label,)))

        if t % record_every == 0:
            m = evaluator.get_metrics()
            hist["step"].append(t)
            hist["accuracy"].append(m.accuracy)
            hist["precision"].append(m.precision)
            hist["recall"].append(m.recall)
            hist["f1"].append(m.f1)
            hist["auc"].append(m.auc)
            hist["loss"].append(binary_cross_entropy([label], [prob]))
            hist["learning_rate"].append(model.current_lr)

    return dict(model=model, scaler=scaler, evaluator=evaluator, histories=hist)


# ─────────────────────────────────────────────────────────────────────────────
# Clustering
# ─────────────────────────────────────────────────────────────────────────────

def run_clustering(
    X: np.ndarray,
    k: int,
    max_iterations: int = 50,
    seed: int = 42,
    y_true: np.ndarray | None = None,
) -> dict:
    """KMeans vs TriangleKMeans (same seed) vs scikit-learn KMeans.

    Returns
    -------
    dict with distortions, distance-computation counts, the adjusted Rand
    index between every pair of labelings (and against *y_true* if given).
    """
    naive = KMeans(k, max_iterations, X, rng=seed)
    naive.learn()
    triangle = TriangleKMeans(k, max_iterations, X, rng=seed)
    triangle.learn()
    reference = SklearnKMeans(n_clusters=k, n_init=10, random_state=seed).fit(X)

    naive_distances = X.shape[0] * k * (triangle.iteration + 1)
    results = dict(
        naive_distortion          = naive.distortion(),
        triangle_distortion       = triangle.distortion(),
        sklearn_inertia           = float(reference.inertia_),
        naive_distances           = naive_distances,
        triangle_distances        = triangle.distance_computations,
        pruned_fraction           = 1.0 - triangle.distance_computations / naive_distances,
        naive_vs_triangle_ari     = float(adjusted_rand_score(naive.guesses(), triangle.guesses())),
        triangle_vs_sklearn_ari   = float(adjusted_rand_score(triangle.guesses(), reference.labels_)),
        centroids                 = triangle.get_state(),
    )
    if y_true is not None:
        results["triangle_vs_truth_ari"] = float(adjusted_rand_score(y_true, triangle.guesses()))

    logger.info(
        "clustering comparison | {} of {} distances computed ({:.1%} pruned), ARI vs sklearn {:.3f}",
        results["triangle_distances"], naive_distances,
        results["pruned_fraction"], results["triangle_vs_sklearn_ari"],
    )
    return results


# ─────────────────────────────────────────────────────────────────────────────
# Top level
# ─────────────────────────────────────────────────────────────────────────────

def compare(
    csv_path: str | Path,
    task: str = "classification",
    seed: int = 42,
    **kwargs,
) -> dict:
    """Load a CSV written by generate_sample_data and run the comparison for *task*.

    *task* is 'regression', 'classification' or 'clustering'.  Extra keyword
    arguments go to the matching runner.
    """
    X, y = load_csv(csv_path)

    if task == "regression":
        results = dict(regression=run_regression(X, y, seed=seed, **kwargs))
    elif task == "classification":
        online_kwargs = {k: v for k, v in kwargs.items() if k != "test_size"}
        results = dict(
            batch=run_batch_classifier(X, y.astype(int), test_size=kwargs.get("test_size", 0.2), seed=seed),
            online=run_online_classifier(X, y, **online_kwargs),
        )
    elif task == "clustering":
        k = kwargs.pop("k", int(np.unique(y).size))
        results = dict(clustering=run_clustering(X, k, seed=seed, y_true=y, **kwargs))
    else:
        raise ValueError(f"task must be 'regression', 'classification' or 'clustering', got '{task}'.")

    results["csv_path"] = str(csv_path)
    results["task"] = task
    return results
