"""
optimize.py
───────────
Batch and stochastic gradient ascent over any model that satisfies the
GradientModel / StochasticGradientModel capability sets (see model.py).

Update rules
────────────
    batch       θ_j ← θ_j + α · dj(j)               for every j, then commit
    stochastic  θ_j ← θ_j + α · dij(i, j)            for every j, then commit,
                                                     once per example i

"Commit" means the whole new vector replaces θ in one assignment, so no
coordinate ever sees another coordinate's already-updated value within the
same sweep (simultaneous update).

Stopping
────────
There is no convergence test: both optimizers run to max_iterations (or
DEFAULT_MAX_ITERATIONS when the model reports ≤ 0).  The single error is
divergence (a non-finite coordinate), which aborts immediately with
DivergenceError.  θ keeps the last finite vector that was committed.

Batch vs stochastic
───────────────────
Stochastic sweeps are noisier but usually reach a good θ in far less wall
clock time on large datasets; batch steps are smoother and deterministic.
"""

import math
from typing import Callable

import numpy as np
from loguru import logger

from gradstream.core.errors import DivergenceError
from gradstream.core.model import (
    DEFAULT_MAX_ITERATIONS,
    GradientModel,
    StochasticGradientModel,
)

IterationHook = Callable[[int, np.ndarray], None]


def resolve_iterations(max_iterations: int) -> int:
    """Iteration cap with the ≤ 0 → default fallback applied."""
    return max_iterations if max_iterations and max_iterations > 0 else DEFAULT_MAX_ITERATIONS


def _checked(value: float, j: int) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise DivergenceError(
            f"learning diverged: θ[{j}] became {value} "
            f"(some value of the parameter vector θ is ±Inf or NaN)"
        )
    return value


def gradient_ascent(model: GradientModel, on_iteration: IterationHook | None = None) -> int:
    """Run batch gradient ascent on *model*, mutating its θ in place.

    Parameters
    ----------
    model : GradientModel
    on_iteration : callable(iteration, theta_copy) | None
        Called after every committed iteration with a copy of θ.

    Returns
    -------
    iterations : int — number of iterations completed.

    Raises
    ------
    DivergenceError
        As soon as any coordinate of the candidate vector is ±inf / NaN.
    """
    theta = model.theta()
    alpha = model.learning_rate()
    iterations = resolve_iterations(model.max_iterations())

    logger.debug(
        "batch gradient ascent: {} iterations, α={}, {} parameters",
        iterations, alpha, theta.shape[0],
    )

    new_theta = np.empty_like(theta)
    for iteration in range(iterations):
        # every dj(j) sees the θ committed by the previous iteration
        for j in range(theta.shape[0]):
            new_theta[j] = _checked(theta[j] + alpha * model.dj(j), j)

        theta[:] = new_theta

        if on_iteration is not None:
            on_iteration(iteration, theta.copy())

    return iterations


def stochastic_gradient_ascent(
    model: StochasticGradientModel,
    on_iteration: IterationHook | None = None,
) -> int:
    """Run stochastic (per-example) gradient ascent on *model* in place.

    Each iteration sweeps the training examples in order; every example
    produces one simultaneous update of the whole parameter vector.

    Returns the number of iterations (full passes) completed.
    """
    theta = model.theta()
    alpha = model.learning_rate()
    iterations = resolve_iterations(model.max_iterations())
    examples = model.examples()

    logger.debug(
        "stochastic gradient ascent: {} iterations × {} examples, α={}",
        iterations, examples, alpha,
    )

    new_theta = np.empty_like(theta)
    for iteration in range(iterations):
        for i in range(examples):
            for j in range(theta.shape[0]):
                new_theta[j] = _checked(theta[j] + alpha * model.dij(i, j), j)
            theta[:] = new_theta

        if on_iteration is not None:
            on_iteration(iteration, theta.copy())

    return iterations


def ascent_step(theta: np.ndarray, alpha: float, gradient: np.ndarray) -> np.ndarray:
    """One simultaneous update θ ← θ + α·gradient, used by the online models.

    The candidate vector is checked before anything is written, so on
    DivergenceError θ is left exactly as it was.  Returns a copy of the new θ.
    """
    candidate = theta + alpha * np.asarray(gradient, dtype=np.float64)
    if not np.all(np.isfinite(candidate)):
        raise DivergenceError()
    theta[:] = candidate
    return theta.copy()
