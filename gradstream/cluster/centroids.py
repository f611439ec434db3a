"""
centroids.py
────────────
Seeding and re-averaging primitives shared by KMeans and TriangleKMeans.

Both engines draw every random number through the ``numpy.random.Generator``
they were constructed with and consume it in exactly the same order here, so
two engines built from the same seed start from the same centroids and make
the same empty-cluster re-draws.

    k-means++   first centroid uniform over the points, every later one drawn
                with probability ∝ D(x)², the squared distance from x to the
                nearest centroid chosen so far
    re-average  each centroid moves to the mean of its assigned points; an
                empty cluster is re-drawn as 10·(U[0,1) − 0.5) per coordinate
"""

import numpy as np

from gradstream.core.distance import squared
from gradstream.core.errors import EmptyDatasetError, InvalidConfigurationError

EMPTY_CLUSTER_SPREAD = 10.0


def as_points(points) -> np.ndarray:
    """Coerce a training set to an (n, d) float array; reject empty / zero-width data."""
    if points is None:
        raise EmptyDatasetError("attempting to learn with no training examples")
    X = np.asarray(points, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(-1, 1) if X.size else X.reshape(0, 0)
    if X.ndim != 2 or X.shape[0] == 0 or X.shape[1] == 0:
        raise EmptyDatasetError(
            f"attempting to learn with no training examples (training set shape {X.shape})"
        )
    return X


def random_centroid(features: int, rng: np.random.Generator) -> np.ndarray:
    return EMPTY_CLUSTER_SPREAD * (rng.random(features) - 0.5)


def kmeans_plus_plus(points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """Choose *k* starting centroids from *points* with k-means++.

    Returns a fresh (k, d) array; rows are copies, never views of *points*.
    """
    n = points.shape[0]
    if k < 1:
        raise InvalidConfigurationError(f"k must be ≥ 1, got {k}.")

    centroids = np.empty((k, points.shape[1]))
    centroids[0] = points[rng.integers(n)]

    nearest_sq = np.array([squared(x, centroids[0]) for x in points])
    for i in range(1, k):
        total = float(nearest_sq.sum())
        if total == 0.0:
            # every point already sits on a centroid
            index = int(rng.integers(n))
        else:
            target = rng.random() * total
            index = min(int(np.searchsorted(np.cumsum(nearest_sq), target, side="right")), n - 1)
        centroids[i] = points[index]
        nearest_sq = np.minimum(nearest_sq, [squared(x, centroids[i]) for x in points])
    return centroids


def recalculate_centroids(
    points: np.ndarray,
    guesses: np.ndarray,
    k: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Mean of the points assigned to each cluster, as a new (k, d) array."""
    features = points.shape[1]
    centroids = np.empty((k, features))
    for j in range(k):
        members = points[guesses == j]
        if members.shape[0] == 0:
            centroids[j] = random_centroid(features, rng)
        else:
            centroids[j] = members.mean(axis=0)
    return centroids


def nearest(x: np.ndarray, centroids: np.ndarray) -> tuple[int, float]:
    """(index, squared distance) of the centroid closest to *x*; ties go to the lowest index."""
    diff = centroids - x
    distances = np.einsum("ij,ij->i", diff, diff)
    index = int(np.argmin(distances))
    return index, float(distances[index])


def distortion(points: np.ndarray, guesses: np.ndarray, centroids: np.ndarray) -> float:
    """Σ ‖xᵢ − μ_guess(i)‖² over the training set."""
    diff = points - centroids[guesses]
    return float(np.sum(diff * diff))
