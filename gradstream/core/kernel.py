"""
kernel.py
─────────
Kernel functions K(u, v) for the kernel perceptron.

    linear_kernel()            K = u · v
    polynomial_kernel(d, c)    K = (u · v + c)^d
    gaussian_kernel(σ)         K = exp(−‖u − v‖² / 2σ²)
    tanh_kernel(k, c)          K = tanh(k · u·v + c)

Mismatched lengths give 0.0 rather than raising: a support vector of the
wrong width simply contributes nothing.
"""

from typing import Callable

import numpy as np

Kernel = Callable[[np.ndarray, np.ndarray], float]


def _pair(u, v) -> tuple[np.ndarray, np.ndarray] | None:
    u = np.asarray(u, dtype=np.float64).ravel()
    v = np.asarray(v, dtype=np.float64).ravel()
    if u.shape != v.shape:
        return None
    return u, v


def linear_kernel() -> Kernel:
    def _k(u, v) -> float:
        pair = _pair(u, v)
        return 0.0 if pair is None else float(np.dot(*pair))

    return _k


def polynomial_kernel(degree: int = 2, constant: float = 0.0) -> Kernel:
    degree = degree or 1

    def _k(u, v) -> float:
        pair = _pair(u, v)
        return 0.0 if pair is None else float((np.dot(*pair) + constant) ** degree)

    return _k


def gaussian_kernel(sigma: float = 1.0) -> Kernel:
    sigma = sigma or 1.0
    denom = 2.0 * sigma * sigma

    def _k(u, v) -> float:
        pair = _pair(u, v)
        if pair is None:
            return 0.0
        d = pair[0] - pair[1]
        return float(np.exp(-np.dot(d, d) / denom))

    return _k


def tanh_kernel(k: float = 1.0, constant: float = 0.0) -> Kernel:
    k = k or 1.0

    def _k(u, v) -> float:
        pair = _pair(u, v)
        return 0.0 if pair is None else float(np.tanh(k * np.dot(*pair) + constant))

    return _k
