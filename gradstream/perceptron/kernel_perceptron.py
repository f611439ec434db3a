"""
kernel_perceptron.py
────────────────────
Dual-form perceptron: instead of θ it keeps every misclassified point as a
support vector.

    h(x) = sgn( Σᵢ yᵢ K(xᵢ, x) )        over the support vectors

Labels are in {−1, +1}.  The update callback receives the new support vector
as ``x + [y]``.
"""

import numpy as np
from loguru import logger

from gradstream.core import persistence
from gradstream.core.errors import DimensionMismatchError
from gradstream.core.kernel import Kernel, linear_kernel
from gradstream.core.model import Datapoint
from gradstream.core.munge import normalize_point
from gradstream.core.stream import DataStream, ErrorChannel, consume
from gradstream.perceptron.perceptron import check_label


class KernelPerceptron:
    """Kernel perceptron trained only through a DataStream.

    Parameters
    ----------
    kernel : callable(u, v) -> float, default=linear_kernel()
        See gradstream.core.kernel.
    stream : DataStream | None
    """

    def __init__(self, kernel: Kernel | None = None, stream: DataStream | None = None):
        self.kernel: Kernel = kernel or linear_kernel()
        self.support_vectors: list[Datapoint] = []
        self._stream = stream

    def update_stream(self, stream: DataStream) -> None:
        self._stream = stream

    def _score(self, x: np.ndarray) -> float:
        return sum(sv.y[0] * self.kernel(sv.features(), x) for sv in self.support_vectors)

    def predict(self, x, normalize: bool = False) -> float:
        """±1.0; an untrained model answers −1."""
        x = np.asarray(x, dtype=np.float64).ravel()
        if self.support_vectors and x.shape[0] != len(self.support_vectors[0].x):
            raise DimensionMismatchError(len(self.support_vectors[0].x), x.shape[0])
        if normalize:
            x = normalize_point(x)
        return 1.0 if self._score(x) > 0 else -1.0

    def online_learn(
        self,
        errors: ErrorChannel,
        on_update=None,
        normalize: bool = False,
        stop_on_divergence: bool = False,
    ) -> int:
        logger.info("training kernel perceptron classifier | method=online")
        return consume(
            self._stream,
            errors,
            lambda point: self.update(point, normalize),
            on_update=on_update,
            name="kernel-perceptron",
            stop_on_divergence=stop_on_divergence,
        )

    def update(self, point: Datapoint, normalize: bool = False) -> list | None:
        if len(point.y) != 1:
            raise DimensionMismatchError(1, len(point.y), what="label vector")
        if self.support_vectors and len(point.x) != len(self.support_vectors[0].x):
            raise DimensionMismatchError(len(self.support_vectors[0].x), len(point.x))
        check_label(point.y[0])

        x = normalize_point(point.x) if normalize else point.features()
        if (1.0 if self._score(x) > 0 else -1.0) == point.y[0]:
            return None
        self.support_vectors.append(Datapoint(x, point.y))
        return list(x) + [point.y[0]]

    # ── state export / import ─────────────────────────────────────────────

    def get_state(self) -> list:
        return [sv.to_dict() for sv in self.support_vectors]

    def set_state(self, state) -> None:
        self.support_vectors = [Datapoint(sv["x"], sv["y"]) for sv in state]

    def persist_to_file(self, path) -> None:
        persistence.write_json(path, self.get_state())

    def restore_from_file(self, path) -> None:
        self.set_state(persistence.read_json(path))

    def __str__(self) -> str:
        return f"h(θ,x) = Σ y[i]*K(x[i], x) > 0 ? 1 : -1\n\tTotal Support Vectors: {len(self.support_vectors)}"

    def __repr__(self) -> str:
        return f"KernelPerceptron(support_vectors={len(self.support_vectors)})"
