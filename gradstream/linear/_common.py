"""Helpers shared by the generalised linear models.

Plain functions rather than a base class: every model composes the pieces it
needs and keeps its own capability surface.
"""

import numpy as np
from loguru import logger

from gradstream.core.errors import DimensionMismatchError, EmptyDatasetError
from gradstream.core.model import Datapoint, OptimizationMethod
from gradstream.core.munge import normalize_point
from gradstream.core.optimize import gradient_ascent, stochastic_gradient_ascent


def as_training_set(training_set, expected_results) -> tuple[np.ndarray | None, np.ndarray | None]:
    """Coerce (X, y) to float arrays; ``None`` stays ``None`` (online-only models)."""
    X = None if training_set is None else np.atleast_2d(np.asarray(training_set, dtype=np.float64))
    y = None if expected_results is None else np.asarray(expected_results, dtype=np.float64).ravel()
    return X, y


def check_training_set(X: np.ndarray | None, y: np.ndarray | None) -> None:
    """Reject empty / unlabeled / mismatched training data before any iteration."""
    if X is None or X.size == 0 or X.shape[0] == 0 or X.shape[1] == 0:
        raise EmptyDatasetError("attempting to learn with no training examples")
    if y is None or y.size == 0:
        raise EmptyDatasetError(
            "attempting to learn with no expected results; this is a supervised model"
        )
    if y.shape[0] != X.shape[0]:
        raise DimensionMismatchError(X.shape[0], y.shape[0], what="expected results")


def with_bias_column(X: np.ndarray) -> np.ndarray:
    """X with a leading column of ones (the feature paired with θ[0])."""
    return np.hstack([np.ones((X.shape[0], 1)), X])


def initial_theta(X: np.ndarray | None, features: int | None) -> np.ndarray:
    """θ = 0 sized from an explicit feature count, else from the training set."""
    if features is not None:
        return np.zeros(int(features) + 1)
    if X is None or X.size == 0:
        return np.zeros(0)
    return np.zeros(X.shape[1] + 1)


def prepare_input(x, width: int, normalize: bool = False) -> np.ndarray:
    """Validate a single input against a model expecting *width* features."""
    x = np.asarray(x, dtype=np.float64).ravel()
    if x.shape[0] != width:
        raise DimensionMismatchError(width, x.shape[0])
    return normalize_point(x) if normalize else x


def point_features(point: Datapoint, width: int, normalize: bool = False) -> tuple[np.ndarray, float]:
    """Validate a streamed point for a single-output model; returns (x, y)."""
    if len(point.y) != 1:
        raise DimensionMismatchError(1, len(point.y), what="label vector")
    x = prepare_input(point.x, width, normalize)
    return x, point.y[0]


def optimize(model, method: OptimizationMethod, on_iteration=None) -> int:
    """Hand *model* to the optimizer *method* selects; returns iterations run."""
    if method is OptimizationMethod.BATCH:
        return gradient_ascent(model, on_iteration=on_iteration)
    return stochastic_gradient_ascent(model, on_iteration=on_iteration)


def log_training(model_name: str, method: OptimizationMethod, X: np.ndarray, alpha: float, regularization: float) -> None:
    logger.info(
        "training {} | method={} examples={} features={} α={} λ={}",
        model_name, method.value, X.shape[0], X.shape[1], alpha, regularization,
    )


def format_hypothesis(theta: np.ndarray, prefix: str = "h(θ,x) = ") -> str:
    if theta.size == 0:
        return f"{prefix}<untrained>"
    terms = [f"{theta[0]:.3f}"] + [f"{theta[i]:.5f}(x[{i}])" for i in range(1, theta.size)]
    return prefix + " + ".join(terms)
