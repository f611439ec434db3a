"""
distance.py
───────────
Vector distance measures shared by k-NN and both k-means engines.

None of these check that ``u`` and ``v`` have the same length; callers
validate dimensions once, up front, instead of on every call in a hot loop.

    euclidean(u, v)   = sqrt(Σ (u_i − v_i)²)
    squared(u, v)     = Σ (u_i − v_i)²          # k-means++ weights, distortion
    manhattan(u, v)   = Σ |u_i − v_i|
    lnorm(p)(u, v)    = (Σ |u_i − v_i|^p)^(1/p)  # p=1 manhattan, p=2 euclidean
"""

from typing import Callable

import numpy as np

DistanceMeasure = Callable[[np.ndarray, np.ndarray], float]


def squared(u: np.ndarray, v: np.ndarray) -> float:
    d = np.asarray(u, dtype=np.float64) - np.asarray(v, dtype=np.float64)
    return float(np.dot(d, d))


def euclidean(u: np.ndarray, v: np.ndarray) -> float:
    """Straight-line distance.  This is the metric the triangle inequality
    pruning in TriangleKMeans relies on."""
    return float(np.sqrt(squared(u, v)))


def manhattan(u: np.ndarray, v: np.ndarray) -> float:
    return float(np.sum(np.abs(np.asarray(u, dtype=np.float64) - np.asarray(v, dtype=np.float64))))


def lnorm(p: float) -> DistanceMeasure:
    """Return the L-p distance for a fixed ``p ≥ 1``."""
    if p < 1:
        raise ValueError(f"p must be ≥ 1 for lnorm to be a metric, got {p}.")

    def _distance(u: np.ndarray, v: np.ndarray) -> float:
        d = np.abs(np.asarray(u, dtype=np.float64) - np.asarray(v, dtype=np.float64))
        return float(np.sum(d ** p) ** (1.0 / p))

    _distance.__name__ = f"l{p:g}norm"
    return _distance


def pairwise_euclidean(points: np.ndarray) -> np.ndarray:
    """K × K matrix of euclidean distances between the rows of *points*."""
    points = np.asarray(points, dtype=np.float64)
    diff = points[:, None, :] - points[None, :, :]
    return np.sqrt(np.sum(diff * diff, axis=-1))
