"""
model.py
────────
The small capability sets every trainable model exposes, plus the value
types that travel through data streams.

Capability sets, not base classes
─────────────────────────────────
The optimizers in ``optimize.py`` never ask *what* a model is, only what it
can do.  Two variants exist:

    GradientModel            – whole-dataset gradient   dj(j)
    StochasticGradientModel  – per-example gradient     dij(i, j)

Both are ``typing.Protocol`` classes, so LeastSquares, Logistic, Softmax and
LocalLinear each implement the surface independently and are checked
structurally.

Conventions
───────────
    θ = theta()        – 1-D float64 array, θ[0] is the bias/intercept.
                         The optimizer writes into it in place, so it must be
                         the model's own array (or a writable view of it).
    α = learning_rate()
    max_iterations()   – values ≤ 0 mean "use DEFAULT_MAX_ITERATIONS"
    dj(j)              – ∂J/∂θ[j] over the whole training set
    dij(i, j)          – ∂J/∂θ[j] for training example i only

Gradients follow the ascent convention: the update is θ ← θ + α·∂J/∂θ.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from gradstream.core.errors import InvalidConfigurationError

DEFAULT_MAX_ITERATIONS = 250


class OptimizationMethod(str, Enum):
    """Which optimizer ``learn()`` hands the model to."""

    BATCH = "batch"
    STOCHASTIC = "stochastic"

    @classmethod
    def parse(cls, value: "OptimizationMethod | str") -> "OptimizationMethod":
        """Accept an enum member or its string value; reject anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidConfigurationError(
                f"optimization method must be one of "
                f"{[m.value for m in cls]}, got {value!r}."
            ) from None


@runtime_checkable
class GradientModel(Protocol):
    """Anything batch gradient ascent can optimise."""

    def learning_rate(self) -> float: ...

    def max_iterations(self) -> int: ...

    def theta(self) -> np.ndarray: ...

    def dj(self, j: int) -> float: ...


@runtime_checkable
class StochasticGradientModel(Protocol):
    """Anything stochastic gradient ascent can optimise."""

    def learning_rate(self) -> float: ...

    def max_iterations(self) -> int: ...

    def theta(self) -> np.ndarray: ...

    def examples(self) -> int: ...

    def dij(self, i: int, j: int) -> float: ...


@dataclass(frozen=True)
class Datapoint:
    """One (features, label) pair pushed through a DataStream.

    Both sides are stored as tuples so the point is immutable once produced.
    """

    x: Sequence[float] = field(default_factory=tuple)
    y: Sequence[float] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "x", tuple(float(v) for v in np.ravel(self.x)))
        object.__setattr__(self, "y", tuple(float(v) for v in np.ravel(self.y)))

    def features(self) -> np.ndarray:
        """Feature vector as a fresh float64 array."""
        return np.array(self.x, dtype=np.float64)

    def to_dict(self) -> dict:
        return {"x": list(self.x), "y": list(self.y)}


@dataclass(frozen=True)
class TextDatapoint:
    """A document and its class, for the text classifiers."""

    x: str
    y: int
