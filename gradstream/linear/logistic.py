"""
logistic.py
───────────
Binary logistic regression trained by batch, stochastic or online gradient
ascent on the log-likelihood.

Math recap
──────────
    σ(z)      = 1 / (1 + exp(−z))                       # sigmoid
    h(x)      = σ(θ₀ + Σ θⱼ xⱼ)                         # P(y = 1 | x)
    J(θ)      = −Σ [ y log h + (1−y) log(1−h) ] / m  +  λ Σ_{j≥1} θⱼ² / 2m
    dj(j)     = Σᵢ (yᵢ − h(xᵢ)) xᵢⱼ  −  λ θⱼ
    θ ← θ + α · gradient

Learning-rate schedules (online mode only)
──────────────────────────────────────────
    constant   : α_t = α₀
    invscale   : α_t = α₀ / (1 + decay · t)
    adaptive   : α_t = α₀ / sqrt(1 + t)

The batch and stochastic optimizers always use the constant α₀ they read
from learning_rate().
"""

import numpy as np
from loguru import logger

from gradstream.core import persistence
from gradstream.core.errors import InvalidConfigurationError, InvalidDatapointError
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


# ─────────────────────────────────────────────────────────────────────────────
# Numerical-stability helpers
# ─────────────────────────────────────────────────────────────────────────────

def _clip(z: np.ndarray, lo: float = -500.0, hi: float = 500.0) -> np.ndarray:
    """Clip raw logits so exp() never overflows."""
    return np.clip(z, lo, hi)


def sigmoid(z):
    """Numerically stable sigmoid.

    Uses the identity:
        σ(z) = 1 / (1 + exp(-z))            for z ≥ 0
        σ(z) = exp(z) / (1 + exp(z))        for z < 0   ← avoids exp(+large)
    """
    z = _clip(np.asarray(z, dtype=np.float64))
    ez = np.exp(-np.abs(z))
    return np.where(z >= 0, 1.0 / (1.0 + ez), ez / (1.0 + ez))


def binary_cross_entropy(y, y_hat, eps: float = 1e-15) -> float:
    """Mean cross-entropy; ŷ is clipped to (eps, 1-eps) so log() never hits 0."""
    y = np.asarray(y, dtype=np.float64)
    y_hat = np.clip(np.asarray(y_hat, dtype=np.float64), eps, 1.0 - eps)
    return float(np.mean(-(y * np.log(y_hat) + (1 - y) * np.log(1 - y_hat))))


# ─────────────────────────────────────────────────────────────────────────────
# Main class
# ─────────────────────────────────────────────────────────────────────────────

class Logistic:
    """Logistic regression for labels in {0, 1}.

    Parameters
    ----------
    method : OptimizationMethod | str, default='batch'
    learning_rate : float, default=1e-4
        Base learning rate α₀.
    regularization : float, default=0.0
    max_iterations : int, default=0
    training_set, expected_results : array-like | None
    features : int | None
        Size θ when training online with no training set.
    stream : DataStream | None
    lr_schedule : {'constant', 'invscale', 'adaptive'}, default='constant'
        How α changes with every online update.
    decay : float, default=1e-4
        Used only when lr_schedule='invscale'.
    threshold : float, default=0.5
        Probability cut-off used by classify().

    Attributes
    ----------
    parameters : np.ndarray of shape (features + 1,)
    t : int
        Number of online updates applied so far.
    """

    VALID_SCHEDULES = ("constant", "invscale", "adaptive")

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
        lr_schedule: str = "constant",
        decay: float = 1e-4,
        threshold: float = 0.5,
    ):
        # ── validate ──────────────────────────────────────────────────────
        if learning_rate <= 0:
            raise ValueError("learning_rate must be > 0.")
        if regularization < 0:
            raise ValueError("regularization must be ≥ 0.")
        if lr_schedule not in self.VALID_SCHEDULES:
            raise InvalidConfigurationError(
                f"lr_schedule must be one of {self.VALID_SCHEDULES}, "
                f"got '{lr_schedule}'."
            )
        if not (0.0 < threshold < 1.0):
            raise ValueError("threshold must be in (0, 1).")

        # ── hyper-parameters ──────────────────────────────────────────────
        self.method = OptimizationMethod.parse(method)
        self.alpha = float(learning_rate)
        self.regularization = float(regularization)
        self.iterations = int(max_iterations)
        self.lr_schedule = lr_schedule
        self.decay = decay
        self.threshold = threshold

        # ── mutable state ─────────────────────────────────────────────────
        self.training_set, self.expected_results = as_training_set(training_set, expected_results)
        self.parameters: np.ndarray = initial_theta(self.training_set, features)
        self.t: int = 0
        self._stream = stream
        self._X1: np.ndarray | None = None

    # ── learning-rate schedule ────────────────────────────────────────────

    @property
    def current_lr(self) -> float:
        """α for the *next* online step (i.e. at step self.t)."""
        if self.lr_schedule == "constant":
            return self.alpha
        elif self.lr_schedule == "invscale":
            return self.alpha / (1.0 + self.decay * self.t)
        else:
            return self.alpha / np.sqrt(1.0 + self.t)

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
        X1 = self._design()
        residual = self.expected_results - sigmoid(X1 @ self.parameters)
        gradient = float(residual @ X1[:, j])
        if j != 0:
            gradient -= self.regularization * self.parameters[j]
        return gradient

    def dij(self, i: int, j: int) -> float:
        x1 = self._design()[i]
        gradient = float((self.expected_results[i] - sigmoid(x1 @ self.parameters)) * x1[j])
        if j != 0:
            gradient -= self.regularization * self.parameters[j]
        return gradient

    def cost(self) -> float:
        X1 = self._design()
        loss = binary_cross_entropy(self.expected_results, sigmoid(X1 @ self.parameters))
        penalty = self.regularization * float(self.parameters[1:] @ self.parameters[1:])
        return loss + penalty / (2.0 * X1.shape[0])

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
        check_training_set(self.training_set, self.expected_results)
        if self.parameters.shape[0] != self.training_set.shape[1] + 1:
            self.parameters = np.zeros(self.training_set.shape[1] + 1)

        log_training("logistic (binary) classification", self.method, self.training_set, self.alpha, self.regularization)
        try:
            iterations = optimize(self, self.method, on_iteration)
        except Exception as err:
            logger.error("logistic regression: error while learning: {}", err)
            raise
        logger.info("logistic regression: training completed after {} iterations | {}", iterations, self)
        return iterations

    def online_learn(
        self,
        errors: ErrorChannel,
        on_update=None,
        normalize: bool = False,
        stop_on_divergence: bool = False,
    ) -> int:
        """Consume the attached DataStream (labels in {0, 1}) until it closes."""
        logger.info(
            "training logistic (binary) classifier | method=online features={} α₀={} schedule={}",
            max(self.parameters.shape[0] - 1, 0), self.alpha, self.lr_schedule,
        )
        return consume(
            self._stream,
            errors,
            lambda point: self.update(point, normalize),
            on_update=on_update,
            name="logistic",
            stop_on_divergence=stop_on_divergence,
        )

    def update(self, point: Datapoint, normalize: bool = False) -> np.ndarray:
        x, y = point_features(point, self.parameters.shape[0] - 1, normalize)
        if y not in (0.0, 1.0):
            raise InvalidDatapointError(f"logistic labels must be 0 or 1, got {y}")
        x1 = with_bias(x)
        gradient = (y - float(sigmoid(x1 @ self.parameters))) * x1
        gradient[1:] -= self.regularization * self.parameters[1:]
        snapshot = ascent_step(self.parameters, self.current_lr, gradient)
        self.t += 1
        return snapshot

    # ── prediction ────────────────────────────────────────────────────────

    def predict(self, x, normalize: bool = False) -> float:
        """P(y = 1 | x) without touching any state."""
        x = prepare_input(x, self.parameters.shape[0] - 1, normalize)
        return float(sigmoid(self.parameters[0] + x @ self.parameters[1:]))

    def classify(self, x, normalize: bool = False) -> int:
        """Hard 0/1 label using the configured threshold."""
        return int(self.predict(x, normalize) >= self.threshold)

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
        return "h(θ,x) = 1 / (1 + exp(−θx))\n" + format_hypothesis(self.parameters, prefix="θx = ")

    def __repr__(self) -> str:
        return (
            f"Logistic(method='{self.method.value}', "
            f"α₀={self.alpha}, schedule='{self.lr_schedule}', "
            f"steps={self.t})"
        )
