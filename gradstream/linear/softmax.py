"""
softmax.py
──────────
Multinomial (softmax) regression for K classes labelled 0 … K−1.

Math recap
──────────
    Θ            K × (d+1) matrix, row k = parameters of class k
    P(y=k | x)   = exp(Θ_k · x) / Σ_a exp(Θ_a · x)          (x₀ = 1)
    ∂/∂Θ_kl      = Σᵢ (1{yᵢ = k} − P(k | xᵢ)) xᵢₗ  −  λ Θ_kl   (l ≥ 1)

Flattened view
──────────────
The optimizers only know about 1-D parameter vectors, so theta() returns
``Θ.reshape(-1)``, a *view* of the matrix: coordinate j maps to
(class, feature) = divmod(j, d+1).  Writes through the view land in Θ, which
is why ``self.parameters`` must never be rebound while training.

Class probabilities depend on every row of Θ, so recomputing them for each of
the K·(d+1) coordinates would be wasteful.  dj / dij cache the residual
matrix for the θ (and example) they were last evaluated at.
"""

import numpy as np
from loguru import logger

from gradstream.core import persistence
from gradstream.core.errors import DimensionMismatchError, InvalidDatapointError
from gradstream.core.model import Datapoint, OptimizationMethod
from gradstream.core.munge import with_bias
from gradstream.core.optimize import ascent_step
from gradstream.core.stream import DataStream, ErrorChannel, consume
from gradstream.linear._common import (
    as_training_set,
    check_training_set,
    log_training,
    optimize,
    point_features,
    prepare_input,
    with_bias_column,
)


def softmax_rows(Z: np.ndarray) -> np.ndarray:
    """Row-wise softmax, shifted by the row max so exp() never overflows."""
    Z = np.atleast_2d(Z)
    Z = Z - Z.max(axis=1, keepdims=True)
    E = np.exp(Z)
    return E / E.sum(axis=1, keepdims=True)


class Softmax:
    """Softmax regression classifier.

    Parameters
    ----------
    method : OptimizationMethod | str, default='batch'
    learning_rate : float, default=1e-4
    regularization : float, default=0.0
    max_iterations : int, default=0
    k : int, default=2
        Number of classes.  Labels must be integers in [0, k).
    training_set, expected_results : array-like | None
    features : int | None
    stream : DataStream | None
    """

    def __init__(
        self,
        method: OptimizationMethod | str = OptimizationMethod.BATCH,
        learning_rate: float = 1e-4,
        regularization: float = 0.0,
        max_iterations: int = 0,
        k: int = 2,
        training_set=None,
        expected_results=None,
        features: int | None = None,
        stream: DataStream | None = None,
    ):
        if learning_rate <= 0:
            raise ValueError("learning_rate must be > 0.")
        if regularization < 0:
            raise ValueError("regularization must be ≥ 0.")
        if k < 2:
            raise ValueError("k must be ≥ 2.")

        self.method = OptimizationMethod.parse(method)
        self.alpha = float(learning_rate)
        self.regularization = float(regularization)
        self.iterations = int(max_iterations)
        self.k = int(k)

        self.training_set, self.expected_results = as_training_set(training_set, expected_results)
        if features is None:
            features = 0 if self.training_set is None else self.training_set.shape[1]
        self.parameters: np.ndarray = np.zeros((self.k, int(features) + 1))
        self._stream = stream
        self._X1: np.ndarray | None = None
        self._onehot: np.ndarray | None = None
        self._cache_key: tuple | None = None
        self._cache: np.ndarray | None = None

    @property
    def features(self) -> int:
        return self.parameters.shape[1] - 1

    # ── capability surface used by the optimizers ─────────────────────────

    def learning_rate(self) -> float:
        return self.alpha

    def max_iterations(self) -> int:
        return self.iterations

    def theta(self) -> np.ndarray:
        return self.parameters.reshape(-1)

    def examples(self) -> int:
        return 0 if self.training_set is None else self.training_set.shape[0]

    def dj(self, j: int) -> float:
        k, l = self._coordinate(j)
        residual = self._residual(None)
        gradient = float(residual[:, k] @ self._design()[:, l])
        if l != 0:
            gradient -= self.regularization * self.parameters[k, l]
        return gradient

    def dij(self, i: int, j: int) -> float:
        k, l = self._coordinate(j)
        residual = self._residual(i)
        gradient = float(residual[k] * self._design()[i, l])
        if l != 0:
            gradient -= self.regularization * self.parameters[k, l]
        return gradient

    def cost(self) -> float:
        """Mean cross-entropy plus the L2 penalty on non-bias weights."""
        P = softmax_rows(self._design() @ self.parameters.T)
        m = P.shape[0]
        picked = np.clip(P[np.arange(m), self._labels()], 1e-15, 1.0)
        penalty = self.regularization * float(np.sum(self.parameters[:, 1:] ** 2))
        return float(-np.mean(np.log(picked))) + penalty / (2.0 * m)

    # ── training ──────────────────────────────────────────────────────────

    def update_training_set(self, training_set, expected_results) -> None:
        X, y = as_training_set(training_set, expected_results)
        check_training_set(X, y)
        self.training_set, self.expected_results = X, y
        self._X1 = None
        self._onehot = None
        self._cache_key = None

    def update_learning_rate(self, learning_rate: float) -> None:
        self.alpha = float(learning_rate)

    def update_stream(self, stream: DataStream) -> None:
        self._stream = stream

    def learn(self, on_iteration=None) -> int:
        check_training_set(self.training_set, self.expected_results)
        self._labels()
        if self.parameters.shape[1] != self.training_set.shape[1] + 1:
            self.parameters = np.zeros((self.k, self.training_set.shape[1] + 1))

        log_training(
            f"softmax regression ({self.k} classes)", self.method,
            self.training_set, self.alpha, self.regularization,
        )
        try:
            iterations = optimize(self, self.method, on_iteration)
        except Exception as err:
            logger.error("softmax regression: error while learning: {}", err)
            raise
        finally:
            self._cache_key = None
        logger.info("softmax regression: training completed after {} iterations", iterations)
        return iterations

    def online_learn(
        self,
        errors: ErrorChannel,
        on_update=None,
        normalize: bool = False,
        stop_on_divergence: bool = False,
    ) -> int:
        """Consume the attached DataStream; *on_update* receives a copy of Θ (K × (d+1))."""
        logger.info(
            "training softmax classifier ({} classes) | method=online features={} α={}",
            self.k, self.features, self.alpha,
        )
        return consume(
            self._stream,
            errors,
            lambda point: self.update(point, normalize),
            on_update=on_update,
            name="softmax",
            stop_on_divergence=stop_on_divergence,
        )

    def update(self, point: Datapoint, normalize: bool = False) -> np.ndarray:
        x, y = point_features(point, self.features, normalize)
        label = self._label_of(y)
        x1 = with_bias(x)

        residual = -softmax_rows(self.parameters @ x1)[0]
        residual[label] += 1.0
        gradient = np.outer(residual, x1)
        gradient[:, 1:] -= self.regularization * self.parameters[:, 1:]

        # every class row moves together: the flat view is updated in one go
        ascent_step(self.theta(), self.alpha, gradient.reshape(-1))
        return self.parameters.copy()

    # ── prediction ────────────────────────────────────────────────────────

    def predict(self, x, normalize: bool = False) -> np.ndarray:
        """Class-probability vector of length k (sums to 1)."""
        x = prepare_input(x, self.features, normalize)
        return softmax_rows(self.parameters @ with_bias(x))[0]

    def classify(self, x, normalize: bool = False) -> int:
        """Most probable class."""
        return int(np.argmax(self.predict(x, normalize)))

    # ── helpers ───────────────────────────────────────────────────────────

    def _coordinate(self, j: int) -> tuple[int, int]:
        if not 0 <= j < self.parameters.size:
            raise IndexError(f"j ({j}) is out of bounds for Θ with {self.parameters.size} entries")
        return divmod(j, self.parameters.shape[1])

    def _design(self) -> np.ndarray:
        if self._X1 is None:
            self._X1 = with_bias_column(self.training_set)
        return self._X1

    def _label_of(self, y: float) -> int:
        label = int(round(y))
        if abs(y - label) > 1e-3 or not 0 <= label < self.k:
            raise InvalidDatapointError(f"class label must be an integer in [0, {self.k}), got {y}")
        return label

    def _labels(self) -> np.ndarray:
        if self._onehot is None:
            labels = np.array([self._label_of(v) for v in self.expected_results], dtype=int)
            self._onehot = np.eye(self.k)[labels]
        return np.argmax(self._onehot, axis=1)

    def _residual(self, i: int | None) -> np.ndarray:
        """1{y = k} − P(k | x) for one example (i) or all of them (None)."""
        key = (i, self.parameters.tobytes())
        if key != self._cache_key:
            self._labels()
            if i is None:
                self._cache = self._onehot - softmax_rows(self._design() @ self.parameters.T)
            else:
                self._cache = self._onehot[i] - softmax_rows(self.parameters @ self._design()[i])[0]
            self._cache_key = key
        return self._cache

    # ── state export / import ─────────────────────────────────────────────

    def get_state(self) -> list:
        return self.parameters.tolist()

    def set_state(self, state) -> None:
        matrix = np.atleast_2d(np.array(state, dtype=np.float64))
        if matrix.shape[0] != self.k:
            raise DimensionMismatchError(self.k, matrix.shape[0], what="parameter matrix row count")
        self.parameters = matrix

    def persist_to_file(self, path) -> None:
        persistence.write_json(path, self.get_state())

    def restore_from_file(self, path) -> None:
        self.set_state(persistence.read_json(path))

    def __str__(self) -> str:
        rows = [
            f"  class {k}: " + " + ".join(
                [f"{row[0]:.3f}"] + [f"{row[l]:.5f}(x[{l}])" for l in range(1, row.size)]
            )
            for k, row in enumerate(self.parameters)
        ]
        return "h(θ,x)[k] = exp(θ_k·x) / Σ exp(θ_a·x)\n" + "\n".join(rows)

    def __repr__(self) -> str:
        return (
            f"Softmax(k={self.k}, method='{self.method.value}', "
            f"α={self.alpha}, λ={self.regularization})"
        )
