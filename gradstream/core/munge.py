"""Small array helpers used by predict(..., normalize=True)."""

import numpy as np


def normalize_point(x) -> np.ndarray:
    """Return *x* scaled to unit length (a zero vector comes back unchanged).

    A new array is returned; the caller's vector is never modified.
    """
    x = np.asarray(x, dtype=np.float64).ravel().copy()
    norm = np.linalg.norm(x)
    if norm == 0.0:
        return x
    return x / norm


def with_bias(x: np.ndarray) -> np.ndarray:
    """Prepend the constant 1 feature that pairs with θ[0]."""
    return np.concatenate(([1.0], np.asarray(x, dtype=np.float64).ravel()))
