"""
kmeans.py
─────────
K-means++ clustering: Lloyd iteration in batch mode and an exponentially
weighted variant for streams.

Batch
─────
    μ  ← k-means++ seeds
    repeat max_iterations times:
        guess(i) ← argmin_j ‖xᵢ − μⱼ‖²           # every distance, every pass
        μⱼ       ← mean of the points guessing j  (empty → random re-draw)

Online
──────
    guess ← argmin_j ‖x − μⱼ‖²
    μ_guess ← α x + (1 − α) μ_guess

While fewer than k centroids exist, each new distinct point becomes a
centroid itself (bootstrap); afterwards points only move the nearest one.
The update callback receives ``(cluster index, centroid copy)``.

TriangleKMeans computes the same batch result with far fewer distance
evaluations; this class is the straightforward reference.
"""

import numpy as np
from loguru import logger

from gradstream.cluster.centroids import (
    as_points,
    distortion,
    kmeans_plus_plus,
    nearest,
    recalculate_centroids,
)
from gradstream.core import persistence
from gradstream.core.errors import (
    DimensionMismatchError,
    DivergenceError,
    EmptyDatasetError,
    InvalidConfigurationError,
)
from gradstream.core.model import Datapoint
from gradstream.core.munge import normalize_point
from gradstream.core.optimize import resolve_iterations
from gradstream.core.stream import DataStream, ErrorChannel, consume
from gradstream.data.loader import save_csv


def make_rng(rng) -> np.random.Generator:
    """Accept a Generator, a seed or None."""
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


class KMeans:
    """K-means++ clustering with an online variant.

    Parameters
    ----------
    k : int, default=2
        Number of clusters.
    max_iterations : int, default=0
        Lloyd passes for learn(); ≤ 0 falls back to the optimizer default.
    training_set : array-like (n, d) | None
    alpha : float, default=0.5
        Online learning rate in (0, 1].
    features : int | None
        Dimensionality for online use without a training set.
    rng : np.random.Generator | int | None
        Source of every random draw (seeding and empty-cluster re-draws).
    stream : DataStream | None
    """

    def __init__(
        self,
        k: int = 2,
        max_iterations: int = 0,
        training_set=None,
        alpha: float = 0.5,
        features: int | None = None,
        rng: np.random.Generator | int | None = None,
        stream: DataStream | None = None,
    ):
        if k < 1:
            raise InvalidConfigurationError(f"k must be ≥ 1, got {k}.")
        if not (0.0 < alpha <= 1.0):
            raise InvalidConfigurationError(f"alpha must be in (0, 1], got {alpha}.")

        self.k = int(k)
        self.iterations = int(max_iterations)
        self.alpha = float(alpha)
        self.rng = make_rng(rng)

        self.training_set = None if training_set is None else np.asarray(training_set, dtype=np.float64)
        if features is None and self.training_set is not None and self.training_set.ndim == 2:
            features = self.training_set.shape[1]
        self.centroids: np.ndarray = np.empty((0, int(features or 0)))
        self._guesses = np.zeros(self.examples(), dtype=int)
        self._stream = stream

    # ── accessors ─────────────────────────────────────────────────────────

    def learning_rate(self) -> float:
        return self.alpha

    def max_iterations(self) -> int:
        return self.iterations

    def examples(self) -> int:
        return 0 if self.training_set is None else int(self.training_set.shape[0])

    def guesses(self) -> np.ndarray:
        """Cluster index of every training example from the last learn()."""
        return self._guesses.copy()

    def distortion(self) -> float:
        """Σ ‖xᵢ − μ_guess(i)‖²; lower means tighter clusters."""
        return distortion(as_points(self.training_set), self._guesses, self.centroids)

    def update_training_set(self, training_set) -> None:
        self.training_set = as_points(training_set)
        self._guesses = np.zeros(self.training_set.shape[0], dtype=int)

    def update_learning_rate(self, alpha: float) -> None:
        self.alpha = float(alpha)

    def update_stream(self, stream: DataStream) -> None:
        self._stream = stream

    # ── batch ─────────────────────────────────────────────────────────────

    def seed_centroids(self) -> np.ndarray:
        X = as_points(self.training_set)
        if self.k > X.shape[0]:
            raise InvalidConfigurationError(f"k ({self.k}) exceeds the number of training examples ({X.shape[0]}).")
        self.centroids = kmeans_plus_plus(X, self.k, self.rng)
        return self.centroids.copy()

    def learn(self, on_iteration=None) -> int:
        """Seed with k-means++ and run Lloyd passes to the iteration cap.

        *on_iteration(iteration, centroids_copy)* is called after every pass.
        """
        X = as_points(self.training_set)
        iterations = resolve_iterations(self.iterations)
        logger.info(
            "training k-means++ | examples={} features={} classes={} iterations={}",
            X.shape[0], X.shape[1], self.k, iterations,
        )

        self.seed_centroids()
        for iteration in range(iterations):
            diff = X[:, None, :] - self.centroids[None, :, :]
            self._guesses = np.argmin(np.einsum("nkd,nkd->nk", diff, diff), axis=1)
            self.centroids = recalculate_centroids(X, self._guesses, self.k, self.rng)
            if on_iteration is not None:
                on_iteration(iteration, self.centroids.copy())

        logger.info("k-means++: training completed after {} iterations | distortion={:.4f}", iterations, self.distortion())
        return iterations

    # ── prediction ────────────────────────────────────────────────────────

    def predict(self, x, normalize: bool = False) -> int:
        """Index of the nearest centroid.  A pure function of the current centroids."""
        if self.centroids.shape[0] == 0:
            raise EmptyDatasetError("k-means has no centroids yet; learn first")
        x = np.asarray(x, dtype=np.float64).ravel()
        if x.shape[0] != self.centroids.shape[1]:
            raise DimensionMismatchError(self.centroids.shape[1], x.shape[0])
        if normalize:
            x = normalize_point(x)
        return nearest(x, self.centroids)[0]

    # ── online ────────────────────────────────────────────────────────────

    def online_learn(
        self,
        errors: ErrorChannel,
        on_update=None,
        normalize: bool = False,
        stop_on_divergence: bool = False,
    ) -> int:
        """Cluster the attached DataStream; point labels are ignored."""
        logger.info(
            "training online k-means | features={} classes={} α={}",
            self.centroids.shape[1], self.k, self.alpha,
        )
        return consume(
            self._stream,
            errors,
            lambda point: self.update(point, normalize),
            on_update=on_update,
            name="kmeans",
            stop_on_divergence=stop_on_divergence,
        )

    def update(self, point: Datapoint, normalize: bool = False) -> tuple[int, np.ndarray] | None:
        """Move (or bootstrap) one centroid; returns (index, centroid copy)."""
        x = point.features()
        if self.centroids.shape[1] == 0 and self.centroids.shape[0] == 0:
            self.centroids = np.empty((0, x.shape[0]))
        if x.shape[0] != self.centroids.shape[1]:
            raise DimensionMismatchError(self.centroids.shape[1], x.shape[0])
        if normalize:
            x = normalize_point(x)
        if not np.all(np.isfinite(x)):
            raise DivergenceError("online k-means: point has ±Inf or NaN coordinates; centroid not moved")

        if self.centroids.shape[0] < self.k:
            if self.centroids.shape[0] == 0 or not np.any(np.all(self.centroids == x, axis=1)):
                self.centroids = np.vstack([self.centroids, x])
                c = self.centroids.shape[0] - 1
                return c, self.centroids[c].copy()

        c, _ = nearest(x, self.centroids)
        self.centroids[c] = self.alpha * x + (1.0 - self.alpha) * self.centroids[c]
        return c, self.centroids[c].copy()

    # ── state export / import ─────────────────────────────────────────────

    def save_clustered_data(self, path) -> None:
        """CSV of the training set with each row's cluster guess as the label."""
        save_csv(path, as_points(self.training_set), self._guesses)

    def get_state(self) -> list:
        return self.centroids.tolist()

    def set_state(self, state) -> None:
        centroids = np.atleast_2d(np.array(state, dtype=np.float64))
        if centroids.shape[0] != self.k:
            raise DimensionMismatchError(self.k, centroids.shape[0], what="centroid count")
        self.centroids = centroids

    def persist_to_file(self, path) -> None:
        persistence.write_json(path, self.get_state())

    def restore_from_file(self, path) -> None:
        self.set_state(persistence.read_json(path))

    def __str__(self) -> str:
        return f"h(θ,x) = argmin_j | x[i] - μ[j] |^2\n\tμ = {np.round(self.centroids, 4).tolist()}"

    def __repr__(self) -> str:
        return f"KMeans(k={self.k}, α={self.alpha}, centroids={self.centroids.shape[0]})"
