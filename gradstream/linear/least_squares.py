"""
least_squares.py
────────────────
Ordinary least squares regression trained by gradient ascent (no normal
equations), in batch, stochastic or online mode.

Math recap
──────────
    h(x)        = θ₀ + Σ θⱼ xⱼ
    J(θ)        = [ Σᵢ (yᵢ − h(xᵢ))²  +  λ Σ_{j≥1} θⱼ² ] / 2m
    dj(j)       = Σᵢ (yᵢ − h(xᵢ)) xᵢⱼ  −  λ θⱼ        (x_i0 = 1, no λ on the bias)
    dij(i, j)   =    (yᵢ − h(xᵢ)) xᵢⱼ  −  λ θⱼ
    θ ← θ + α · gradient                               # ascent on −J

Usage
─────
    model = LeastSquares("batch", 1e-2, 0, 500, X, y)
    model.learn()
    model.predict([10.0])

    # online: attach a DataStream and run online_learn on a thread
    model = LeastSquares("stochastic", 1e-4, 0, 0, features=4, stream=stream)
    learner = OnlineLearner(model, on_update=persist).start()
"""

import numpy as np
from loguru import logger

from gradstream.core import persistence
from gradstream.core.model import Datapoint, OptimizationMethod
from gradstream.core.munge import with_bias
from gradstream.core.optimize import ascent_step
from gradstream.core.stream import DataStream, ErrorChannel, consume
from gradstream.linear._common import (
    as_training_set,
    check_training_set,
    format_hypothesis,
    initial_theta,
    log_training,
    optimize,
    point_features,
    prepare_input,
    with_bias_column,
)


class LeastSquares:
    """Linear regression with a least-squares cost.

    Parameters
    ----------
    method : OptimizationMethod | str, default='batch'
        'batch' or 'stochastic'.  Ignored by online_learn.
    learning_rate : float, default=1e-4
        α.  Must be > 0.
    regularization : float, default=0.0
        λ.  0 disables regularisation; larger values bias θ toward 0.
    max_iterations : int, default=0
        Iteration cap for learn(); ≤ 0 falls back to the optimizer default.
    training_set, expected_results : array-like | None
        X (m × d) and y (m,).  May be omitted for online-only use.
    features : int | None
        Size θ for d features when no training set is given.
    stream : DataStream | None
        Data source for online_learn.
    """

    def __init__(
        self,
        method: OptimizationMethod | str = OptimizationMethod.BATCH,
        learning_rate: float = 1e-4,
        regularization: float = 0.0,
        max_iterations: int = 0,
        training_set=None,
        expected_results=None,
        features: int | None = None,
        stream: DataStream | None = None,
    ):
        if learning_rate <= 0:
            raise ValueError("learning_rate must be > 0.")
        if regularization < 0:
            raise ValueError("regularization must be ≥ 0.")

        self.method = OptimizationMethod.parse(method)
        self.alpha = float(learning_rate)
        self.regularization = float(regularization)
        self.iterations = int(max_iterations)

        self.training_set, self.expected_results = as_training_set(training_set, expected_results)
        self.parameters: np.ndarray = initial_theta(self.training_set, features)
        self._stream = stream
        self._X1: np.ndarray | None = None

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
        """∂J/∂θ[j] over the whole training set (ascent sign)."""
        if j >= self.parameters.shape[0]:
            raise IndexError(f"j ({j}) is out of bounds for θ of length {self.parameters.shape[0]}")
        X1 = self._design()
        residual = self.expected_results - X1 @ self.parameters
        gradient = float(residual @ X1[:, j])
        if j != 0:
            gradient -= self.regularization * self.parameters[j]
        return gradient

    def dij(self, i: int, j: int) -> float:
        """∂J/∂θ[j] for training example i only."""
        x1 = self._design()[i]
        gradient = float((self.expected_results[i] - x1 @ self.parameters) * x1[j])
        if j != 0:
            gradient -= self.regularization * self.parameters[j]
        return gradient

    def cost(self) -> float:
        X1 = self._design()
        residual = self.expected_results - X1 @ self.parameters
        penalty = self.regularization * float(self.parameters[1:] @ self.parameters[1:])
        return (float(residual @ residual) + penalty) / (2.0 * X1.shape[0])

    # ── training ──────────────────────────────────────────────────────────

    def update_training_set(self, training_set, expected_results) -> None:
        X, y = as_training_set(training_set, expected_results)
        check_training_set(X, y)
        self.training_set, self.expected_results = X, y
        self._X1 = None

    def update_learning_rate(self, learning_rate: float) -> None:
        self.alpha = float(learning_rate)

    def update_stream(self, stream: DataStream) -> None:
        self._stream = stream

    def learn(self, on_iteration=None) -> int:
        """Fit θ on the stored training set.  Returns iterations run.

        Raises EmptyDatasetError / DimensionMismatchError before touching θ,
        and DivergenceError if the optimizer blows up.
        """
        check_training_set(self.training_set, self.expected_results)
        if self.parameters.shape[0] != self.training_set.shape[1] + 1:
            self.parameters = np.zeros(self.training_set.shape[1] + 1)

        log_training("least squares regression", self.method, self.training_set, self.alpha, self.regularization)
        try:
            iterations = optimize(self, self.method, on_iteration)
        except Exception as err:
            logger.error("least squares regression: error while learning: {}", err)
            raise
        logger.info("least squares regression: training completed after {} iterations | {}", iterations, self)
        return iterations

    def online_learn(
        self,
        errors: ErrorChannel,
        on_update=None,
        normalize: bool = False,
        stop_on_divergence: bool = False,
    ) -> int:
        """Learn from the attached DataStream until it is closed.

        Meant to run on its own thread.  Bad points and divergence are
        reported on *errors*; *errors* is closed when the stream is drained.
        *on_update* receives a copy of θ after every update.
        """
        logger.info(
            "training least squares regression | method=online features={} α={}",
            max(self.parameters.shape[0] - 1, 0), self.alpha,
        )
        return consume(
            self._stream,
            errors,
            lambda point: self.update(point, normalize),
            on_update=on_update,
            name="least-squares",
            stop_on_divergence=stop_on_divergence,
        )

    def update(self, point: Datapoint, normalize: bool = False) -> np.ndarray:
        """Apply one gradient step for a single point and return a copy of θ.

        This is what online_learn runs for every streamed item; call it
        directly for a synchronous predict-then-update loop.
        """
        x, y = point_features(point, self.parameters.shape[0] - 1, normalize)
        x1 = with_bias(x)
        gradient = (y - x1 @ self.parameters) * x1
        gradient[1:] -= self.regularization * self.parameters[1:]
        return ascent_step(self.parameters, self.alpha, gradient)

    # ── prediction ────────────────────────────────────────────────────────

    def predict(self, x, normalize: bool = False) -> float:
        """h(x) for the current θ."""
        x = prepare_input(x, self.parameters.shape[0] - 1, normalize)
        return float(self.parameters[0] + x @ self.parameters[1:])

    # ── helpers ───────────────────────────────────────────────────────────

    def _design(self) -> np.ndarray:
        if self._X1 is None:
            self._X1 = with_bias_column(self.training_set)
        return self._X1

    # ── state export / import ─────────────────────────────────────────────

    def get_state(self) -> list:
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
        return (
            f"LeastSquares(method='{self.method.value}', α={self.alpha}, "
            f"λ={self.regularization}, θ={np.round(self.parameters, 4).tolist()})"
        )
