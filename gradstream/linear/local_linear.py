"""
local_linear.py
───────────────
Locally weighted linear regression: a fresh least-squares fit around every
query point.

    w(xᵢ, x)  = exp(−‖xᵢ − x‖² / 2τ²)                     # τ = bandwidth
    dj(j)     = Σᵢ w(xᵢ, x) (yᵢ − h(xᵢ)) xᵢⱼ  −  λ θⱼ

There is no learn(): predict(x) resets θ to zero, fixes the weights for x and
hands the model to the same batch / stochastic optimizer the global models
use.  Each prediction therefore costs a full training run.
"""

import numpy as np
from loguru import logger

from gradstream.core import persistence
from gradstream.core.model import OptimizationMethod
from gradstream.linear._common import (
    as_training_set,
    check_training_set,
    format_hypothesis,
    optimize,
    prepare_input,
    with_bias_column,
)


class LocalLinear:
    """Locally weighted linear regression.

    Parameters
    ----------
    method : OptimizationMethod | str, default='batch'
    learning_rate : float, default=1e-4
    regularization : float, default=0.0
    bandwidth : float, default=1.0
        τ.  Small values make the fit very local; large values approach
        ordinary least squares.
    max_iterations : int, default=0
    training_set, expected_results : array-like
    """

    def __init__(
        self,
        method: OptimizationMethod | str = OptimizationMethod.BATCH,
        learning_rate: float = 1e-4,
        regularization: float = 0.0,
        bandwidth: float = 1.0,
        max_iterations: int = 0,
        training_set=None,
        expected_results=None,
    ):
        if learning_rate <= 0:
            raise ValueError("learning_rate must be > 0.")
        if regularization < 0:
            raise ValueError("regularization must be ≥ 0.")
        if bandwidth <= 0:
            raise ValueError("bandwidth must be > 0.")

        self.method = OptimizationMethod.parse(method)
        self.alpha = float(learning_rate)
        self.regularization = float(regularization)
        self.bandwidth = float(bandwidth)
        self.iterations = int(max_iterations)

        self.training_set, self.expected_results = as_training_set(training_set, expected_results)
        width = 0 if self.training_set is None else self.training_set.shape[1]
        self.parameters: np.ndarray = np.zeros(width + 1)
        self._weights: np.ndarray | None = None

    # ── capability surface used by the optimizers ─────────────────────────

    def learning_rate(self) -> float:
        return self.alpha

    def max_iterations(self) -> int:
        return self.iterations

    def theta(self) -> np.ndarray:
        return self.parameters

    def examples(self) -> int:
        return 0 if self.training_set is None else self.training_set.shape[0]

    def dj(self, j: int) -> float:
        if j >= self.parameters.shape[0]:
            raise IndexError(f"j ({j}) is out of bounds for θ of length {self.parameters.shape[0]}")
        X1 = with_bias_column(self.training_set)
        residual = self._weights * (self.expected_results - X1 @ self.parameters)
        gradient = float(residual @ X1[:, j])
        if j != 0:
            gradient -= self.regularization * self.parameters[j]
        return gradient

    def dij(self, i: int, j: int) -> float:
        x1 = np.concatenate(([1.0], self.training_set[i]))
        gradient = float(self._weights[i] * (self.expected_results[i] - x1 @ self.parameters) * x1[j])
        if j != 0:
            gradient -= self.regularization * self.parameters[j]
        return gradient

    def weights(self, x) -> np.ndarray:
        """Gaussian weight of every training example relative to *x*."""
        diff = self.training_set - np.asarray(x, dtype=np.float64)
        return np.exp(-np.sum(diff * diff, axis=1) / (2.0 * self.bandwidth ** 2))

    # ── training / prediction ─────────────────────────────────────────────

    def update_training_set(self, training_set, expected_results) -> None:
        X, y = as_training_set(training_set, expected_results)
        check_training_set(X, y)
        self.training_set, self.expected_results = X, y
        self.parameters = np.zeros(X.shape[1] + 1)

    def update_learning_rate(self, learning_rate: float) -> None:
        self.alpha = float(learning_rate)

    def predict(self, x, normalize: bool = False) -> float:
        """Fit θ around *x* and return h(x).

        Raises EmptyDatasetError with no training data, DimensionMismatchError
        for a wrong-length *x* and DivergenceError if the local fit blows up.
        """
        check_training_set(self.training_set, self.expected_results)
        x = prepare_input(x, self.training_set.shape[1], normalize)

        self.parameters = np.zeros(self.training_set.shape[1] + 1)
        self._weights = self.weights(x)
        logger.debug(
            "locally weighted regression around {} | method={} examples={} τ={}",
            x.tolist(), self.method.value, self.training_set.shape[0], self.bandwidth,
        )
        try:
            optimize(self, self.method)
        except Exception as err:
            logger.error("locally weighted regression: error while fitting: {}", err)
            raise
        finally:
            self._weights = None
        return float(self.parameters[0] + x @ self.parameters[1:])

    # ── state export / import ─────────────────────────────────────────────

    def get_state(self) -> list:
        """θ from the most recent prediction."""
        return self.parameters.tolist()

    def set_state(self, state) -> None:
        self.parameters = np.array(state, dtype=np.float64)

    def persist_to_file(self, path) -> None:
        persistence.write_json(path, self.get_state())

    def restore_from_file(self, path) -> None:
        self.set_state(persistence.read_json(path))

    def __str__(self) -> str:
        return format_hypothesis(self.parameters)

    def __repr__(self) -> str:
        return f"LocalLinear(method='{self.method.value}', α={self.alpha}, τ={self.bandwidth})"
