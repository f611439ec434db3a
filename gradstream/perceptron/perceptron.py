"""
perceptron.py
─────────────
Online binary perceptron with labels in {−1, +1}.

    h(x)  = +1 if θ₀ + Σ θⱼ xⱼ > 0 else −1
    on a mistake only:   θ ← θ + α (y − h(x)) x        (x₀ = 1)

Correctly classified points leave θ untouched and trigger no callback.
"""

import numpy as np
from loguru import logger

from gradstream.core import persistence
from gradstream.core.errors import InvalidDatapointError
from gradstream.core.model import Datapoint
from gradstream.core.munge import with_bias
from gradstream.core.optimize import ascent_step
from gradstream.core.stream import DataStream, ErrorChannel, consume
from gradstream.linear._common import format_hypothesis, point_features, prepare_input


def check_label(y: float) -> float:
    if y not in (-1.0, 1.0):
        raise InvalidDatapointError(f"perceptron labels must be -1 or +1, got {y}")
    return y


class Perceptron:
    """Binary perceptron trained only through a DataStream.

    Parameters
    ----------
    learning_rate : float, default=0.1
    features : int
        Length of the input vectors (θ has features + 1 entries).
    stream : DataStream | None
    """

    def __init__(self, learning_rate: float = 0.1, features: int = 1, stream: DataStream | None = None):
        if learning_rate <= 0:
            raise ValueError("learning_rate must be > 0.")
        if features < 1:
            raise ValueError("features must be ≥ 1.")

        self.alpha = float(learning_rate)
        self.parameters: np.ndarray = np.zeros(int(features) + 1)
        self.mistakes: int = 0
        self._stream = stream

    def update_learning_rate(self, learning_rate: float) -> None:
        self.alpha = float(learning_rate)

    def update_stream(self, stream: DataStream) -> None:
        self._stream = stream

    def predict(self, x, normalize: bool = False) -> float:
        """±1.0 for the current θ."""
        x = prepare_input(x, self.parameters.shape[0] - 1, normalize)
        return 1.0 if self.parameters[0] + x @ self.parameters[1:] > 0 else -1.0

    def online_learn(
        self,
        errors: ErrorChannel,
        on_update=None,
        normalize: bool = False,
        stop_on_divergence: bool = False,
    ) -> int:
        logger.info(
            "training perceptron classifier | method=online features={} α={}",
            self.parameters.shape[0] - 1, self.alpha,
        )
        return consume(
            self._stream,
            errors,
            lambda point: self.update(point, normalize),
            on_update=on_update,
            name="perceptron",
            stop_on_divergence=stop_on_divergence,
        )

    def update(self, point: Datapoint, normalize: bool = False) -> np.ndarray | None:
        x, y = point_features(point, self.parameters.shape[0] - 1, normalize)
        check_label(y)
        guess = 1.0 if self.parameters[0] + x @ self.parameters[1:] > 0 else -1.0
        if guess == y:
            return None
        self.mistakes += 1
        return ascent_step(self.parameters, self.alpha, (y - guess) * with_bias(x))

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
        return "h(θ,x) = θx > 0 ? 1 : -1\n" + format_hypothesis(self.parameters, prefix="θx = ")

    def __repr__(self) -> str:
        return f"Perceptron(α={self.alpha}, features={self.parameters.shape[0] - 1}, mistakes={self.mistakes})"
