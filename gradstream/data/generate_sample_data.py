"""
generate_sample_data.py
───────────────────────
Synthetic datasets for the drivers, the comparisons and the tests.

Every generator takes a seed and returns ``(X, y)`` NumPy arrays; write_csv
stores them with the column layout the loaders expect:

    feature_0, feature_1, ..., feature_{d-1}, label

Generators
──────────
    make_linear      y = X·w + b + N(0, noise²)                   (regression)
    make_binary      y = 1{X·w + N(0, noise²) > 0}, optional drift (logistic)
    make_blobs       Gaussian blobs around given centres           (k-means)
    make_multiclass  blobs around random centres, labels 0 … K−1   (softmax)

make_binary's concept drift negates the true weight vector at the midpoint,
so a model frozen on the first half degrades on the second while an online
learner recovers.
"""

from pathlib import Path

import numpy as np
import pandas as pd
from loguru import logger

from gradstream.data.loader import save_csv


def make_linear(
    n_samples: int = 1000,
    n_features: int = 3,
    noise: float = 0.1,
    intercept: float = 1.0,
    weights=None,
    seed: int = 42,
) -> tuple[np.ndarray, np.ndarray]:
    """Linear regression data; features are U[−5, 5)."""
    if n_samples < 1:
        raise ValueError("n_samples must be ≥ 1.")
    if n_features < 1:
        raise ValueError("n_features must be ≥ 1.")
    if noise < 0:
        raise ValueError("noise must be ≥ 0.")

    rng = np.random.default_rng(seed)
    w = rng.uniform(-3, 3, n_features) if weights is None else np.asarray(weights, dtype=np.float64)
    if w.shape[0] != n_features:
        raise ValueError(f"weights must have length {n_features}.")

    X = rng.uniform(-5, 5, size=(n_samples, n_features))
    y = X @ w + intercept + rng.normal(0, noise, size=n_samples)
    return X, y


def make_binary(
    n_samples: int = 5000,
    n_features: int = 5,
    noise: float = 1.0,
    concept_drift: bool = False,
    seed: int = 42,
) -> tuple[np.ndarray, np.ndarray]:
    """0/1 labels from a noisy linear boundary through the origin."""
    if n_samples < 10:
        raise ValueError("n_samples must be ≥ 10.")
    if n_features < 1:
        raise ValueError("n_features must be ≥ 1.")
    if noise < 0:
        raise ValueError("noise must be ≥ 0.")

    rng = np.random.default_rng(seed)

    w = rng.standard_normal(n_features)
    w = w / (np.linalg.norm(w) + 1e-10)

    X = rng.standard_normal((n_samples, n_features))
    z = X @ w + rng.normal(0, noise, size=n_samples)

    if concept_drift:
        mid = n_samples // 2
        z[mid:] = X[mid:] @ -w + rng.normal(0, noise, size=n_samples - mid)

    return X, (z > 0).astype(np.float64)


def make_blobs(
    centers=((-7.0, 0.0), (7.0, 0.0)),
    n_per_center: int = 100,
    spread: float = 1.0,
    seed: int = 42,
) -> tuple[np.ndarray, np.ndarray]:
    """Isotropic Gaussian blobs; y is the index of the generating centre."""
    centers = np.atleast_2d(np.asarray(centers, dtype=np.float64))
    if n_per_center < 1:
        raise ValueError("n_per_center must be ≥ 1.")
    if spread < 0:
        raise ValueError("spread must be ≥ 0.")

    rng = np.random.default_rng(seed)
    X = np.vstack([rng.normal(c, spread, size=(n_per_center, centers.shape[1])) for c in centers])
    y = np.repeat(np.arange(centers.shape[0], dtype=np.float64), n_per_center)
    order = rng.permutation(X.shape[0])
    return X[order], y[order]


def make_multiclass(
    n_classes: int = 3,
    n_features: int = 2,
    n_per_class: int = 200,
    separation: float = 6.0,
    seed: int = 42,
) -> tuple[np.ndarray, np.ndarray]:
    """Blobs around random centres drawn from U[−separation, separation)."""
    if n_classes < 2:
        raise ValueError("n_classes must be ≥ 2.")
    rng = np.random.default_rng(seed)
    centers = rng.uniform(-separation, separation, size=(n_classes, n_features))
    return make_blobs(centers, n_per_center=n_per_class, spread=1.0, seed=seed + 1)


def write_csv(filepath: str | Path, X, y) -> pd.DataFrame:
    """Write (X, y) and return it as the DataFrame that was stored."""
    path = save_csv(filepath, X, y)
    return pd.read_csv(path)


# ─────────────────────────────────────────────────────────────────────────────
# The standard sample files used by the drivers
# ─────────────────────────────────────────────────────────────────────────────

def generate_defaults(data_dir: str | Path = "data/samples") -> dict[str, Path]:
    """Create the sample CSVs the drivers use out of the box.

    Files
    -----
    linear.csv       – 2 000 rows, 3 features, y = X·w + 1 + noise
    binary.csv       – 5 000 rows, 5 features, 0/1 labels
    drifted.csv      – 5 000 rows, 5 features, boundary flips at the midpoint
    blobs.csv        – 600 rows, 2 features, three well separated clusters
    """
    data_dir = Path(data_dir)
    datasets = {
        "linear":  make_linear(n_samples=2000, n_features=3, noise=0.5, seed=42),
        "binary":  make_binary(n_samples=5000, n_features=5, noise=1.0, seed=42),
        "drifted": make_binary(n_samples=5000, n_features=5, noise=1.0, concept_drift=True, seed=42),
        "blobs":   make_blobs(((-7.0, 0.0), (7.0, 0.0), (0.0, 9.0)), n_per_center=200, seed=42),
    }

    paths = {}
    for name, (X, y) in datasets.items():
        paths[name] = save_csv(data_dir / f"{name}.csv", X, y)
        logger.info("wrote {:>8} → {}", name, paths[name])
    return paths


if __name__ == "__main__":
    generate_defaults()
