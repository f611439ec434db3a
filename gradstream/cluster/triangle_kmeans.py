"""
triangle_kmeans.py
──────────────────
K-means++ accelerated with the triangle inequality (Elkan, 2003).

Why this exists
───────────────
Lloyd iteration computes all n·k point-to-centroid distances on every pass,
although after the first few passes almost no point changes cluster.  Keeping
cheap bounds on those distances lets most of them be skipped while producing
exactly the same assignment.

Bookkeeping
───────────
    lower[i, j]  ≤ d(xᵢ, μⱼ)            for every point and every centroid
    upper[i]     ≥ d(xᵢ, μ_guess(i))
    stale[i]     upper[i] may be loose (centroids moved since it was exact)
    half[c, j]   = ½ d(μ_c, μⱼ)
    s[c]         = min_{j≠c} half[c, j]

All distances are Euclidean, not squared: the pruning rules are triangle
inequalities and only hold for a metric.

Pruning rules (one iteration)
─────────────────────────────
    upper[i] ≤ s[c]                    → no centroid can beat c; skip the point
    upper[i] ≤ lower[i, j]             → j cannot beat c
    upper[i] ≤ half[c, j]              → j cannot beat c
    otherwise tighten upper once (if stale), re-test, then compute d(xᵢ, μⱼ)

After the centroids are re-averaged, each moved by δⱼ:
    lower[i, j] ← max(lower[i, j] − δⱼ, 0)
    upper[i]    ← upper[i] + δ_guess(i),      stale[i] ← True
which keeps both bound inequalities true for the new centroids.

Lifecycle
─────────
    UNINITIALIZED ─seed_centroids()→ SEEDED ─assign_initial()→ ASSIGNING
                  ─iterate() × max_iterations→ ITERATION_CAP_REACHED

learn() runs the whole chain.  The step methods are public so callers can
inspect the bounds between iterations.
"""

from enum import Enum

import numpy as np
from loguru import logger

from gradstream.cluster.centroids import (
    as_points,
    distortion,
    kmeans_plus_plus,
    nearest,
    recalculate_centroids,
)
from gradstream.cluster.kmeans import make_rng
from gradstream.core import persistence
from gradstream.core.distance import euclidean, pairwise_euclidean
from gradstream.core.errors import (
    DimensionMismatchError,
    EmptyDatasetError,
    InvalidConfigurationError,
)
from gradstream.core.munge import normalize_point
from gradstream.core.optimize import resolve_iterations
from gradstream.data.loader import save_csv


class TrainingState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SEEDED = "seeded"
    ASSIGNING = "assigning"
    ITERATION_CAP_REACHED = "iteration_cap_reached"


class TriangleKMeans:
    """K-means++ with Elkan's triangle-inequality pruning.

    Parameters
    ----------
    k : int, default=2
    max_iterations : int, default=0
        ≤ 0 falls back to the optimizer default.
    training_set : array-like (n, d) | None
    rng : np.random.Generator | int | None
        Same seed as a KMeans instance → same seeds and same result.

    Attributes
    ----------
    centroids : np.ndarray (k, d)
    lower_bounds : np.ndarray (n, k)
    upper_bounds : np.ndarray (n,)
    stale : np.ndarray (n,) of bool
    distance_computations : int
        Exact distances evaluated since the last seed_centroids(), counting
        centroid-to-centroid and centroid-movement distances too.
    """

    def __init__(
        self,
        k: int = 2,
        max_iterations: int = 0,
        training_set=None,
        rng: np.random.Generator | int | None = None,
    ):
        if k < 1:
            raise InvalidConfigurationError(f"k must be ≥ 1, got {k}.")

        self.k = int(k)
        self.iterations = int(max_iterations)
        self.rng = make_rng(rng)
        self.training_set = None if training_set is None else np.asarray(training_set, dtype=np.float64)
        self._reset()

    def _reset(self) -> None:
        n = self.examples()
        self.state = TrainingState.UNINITIALIZED
        self.iteration = 0
        self.distance_computations = 0
        self.centroids: np.ndarray = np.empty((0, 0))
        self._guesses = np.zeros(n, dtype=int)
        self.lower_bounds = np.zeros((n, self.k))
        self.upper_bounds = np.zeros(n)
        self.stale = np.zeros(n, dtype=bool)
        self.half_distances = np.zeros((self.k, self.k))
        self.nearest_half = np.zeros(self.k)

    # ── accessors ─────────────────────────────────────────────────────────

    def max_iterations(self) -> int:
        return self.iterations

    def examples(self) -> int:
        return 0 if self.training_set is None or self.training_set.ndim != 2 else int(self.training_set.shape[0])

    def guesses(self) -> np.ndarray:
        return self._guesses.copy()

    def distortion(self) -> float:
        return distortion(as_points(self.training_set), self._guesses, self.centroids)

    def update_training_set(self, training_set) -> None:
        self.training_set = as_points(training_set)
        self._reset()

    def _distance(self, u: np.ndarray, v: np.ndarray) -> float:
        self.distance_computations += 1
        return euclidean(u, v)

    # ── step API ──────────────────────────────────────────────────────────

    def seed_centroids(self) -> np.ndarray:
        """k-means++ seeding; resets every bound and the distance counter."""
        X = as_points(self.training_set)
        if self.k > X.shape[0]:
            raise InvalidConfigurationError(f"k ({self.k}) exceeds the number of training examples ({X.shape[0]}).")
        self.training_set = X
        self._reset()
        self.centroids = kmeans_plus_plus(X, self.k, self.rng)
        self.state = TrainingState.SEEDED
        return self.centroids.copy()

    def compute_centroid_distances(self) -> None:
        """Refresh half[c, j] and s[c] for the current centroids."""
        self.half_distances = 0.5 * pairwise_euclidean(self.centroids)
        self.distance_computations += self.k * (self.k - 1) // 2
        if self.k == 1:
            self.nearest_half = np.full(1, np.inf)
        else:
            masked = self.half_distances + np.diag(np.full(self.k, np.inf))
            self.nearest_half = masked.min(axis=1)

    def assign_initial(self) -> np.ndarray:
        """First assignment, skipping centroids that cannot beat the current best.

        Lower bounds of skipped centroids stay 0, which is always valid.
        """
        if self.state is TrainingState.UNINITIALIZED:
            raise InvalidConfigurationError("seed_centroids() must run before assign_initial()")
        X = self.training_set
        self.compute_centroid_distances()

        for i, x in enumerate(X):
            best = 0
            best_distance = self._distance(x, self.centroids[0])
            self.lower_bounds[i, 0] = best_distance
            for j in range(1, self.k):
                if self.half_distances[best, j] >= best_distance:
                    continue
                d = self._distance(x, self.centroids[j])
                self.lower_bounds[i, j] = d
                if d < best_distance:
                    best, best_distance = j, d
            self._guesses[i] = best
            self.upper_bounds[i] = best_distance
            self.stale[i] = False

        self.state = TrainingState.ASSIGNING
        return self._guesses.copy()

    def iterate(self) -> int:
        """One pruned reassignment pass followed by re-averaging.

        Returns the number of points that changed cluster.
        """
        if self.state is not TrainingState.ASSIGNING:
            raise InvalidConfigurationError(f"iterate() needs an initial assignment (state is {self.state.value})")
        X = self.training_set
        self.compute_centroid_distances()

        changed = 0
        for i, x in enumerate(X):
            c = self._guesses[i]
            upper = self.upper_bounds[i]
            if upper <= self.nearest_half[c]:
                continue

            for j in range(self.k):
                if j == c or upper <= self.lower_bounds[i, j] or upper <= self.half_distances[c, j]:
                    continue
                if self.stale[i]:
                    upper = self._distance(x, self.centroids[c])
                    self.lower_bounds[i, c] = upper
                    self.stale[i] = False
                    if upper <= self.lower_bounds[i, j] or upper <= self.half_distances[c, j]:
                        continue
                d = self._distance(x, self.centroids[j])
                self.lower_bounds[i, j] = d
                if d < upper:
                    c, upper = j, d

            if c != self._guesses[i]:
                changed += 1
                self._guesses[i] = c
            self.upper_bounds[i] = upper

        moved = recalculate_centroids(X, self._guesses, self.k, self.rng)
        shift = np.linalg.norm(moved - self.centroids, axis=1)
        self.distance_computations += self.k
        self.centroids = moved

        np.maximum(self.lower_bounds - shift[None, :], 0.0, out=self.lower_bounds)
        self.upper_bounds += shift[self._guesses]
        self.stale[:] = True

        self.iteration += 1
        if self.iteration >= resolve_iterations(self.iterations):
            self.state = TrainingState.ITERATION_CAP_REACHED
        return changed

    def learn(self, on_iteration=None) -> int:
        """seed_centroids → assign_initial → iterate until the cap.

        *on_iteration(iteration, centroids_copy)* is called after every pass.
        """
        X = as_points(self.training_set)
        iterations = resolve_iterations(self.iterations)
        logger.info(
            "training triangle-inequality k-means++ | examples={} features={} classes={} iterations={}",
            X.shape[0], X.shape[1], self.k, iterations,
        )

        self.seed_centroids()
        self.assign_initial()
        for iteration in range(iterations):
            changed = self.iterate()
            logger.debug("triangle k-means: iteration {} reassigned {} points", iteration, changed)
            if on_iteration is not None:
                on_iteration(iteration, self.centroids.copy())

        naive = X.shape[0] * self.k * (iterations + 1)
        logger.info(
            "triangle k-means: training completed after {} iterations | {} distance computations ({:.1%} of naive {})",
            iterations, self.distance_computations, self.distance_computations / naive, naive,
        )
        return iterations

    # ── prediction ────────────────────────────────────────────────────────

    def predict(self, x, normalize: bool = False) -> int:
        if self.centroids.shape[0] == 0:
            raise EmptyDatasetError("triangle k-means has no centroids yet; learn first")
        x = np.asarray(x, dtype=np.float64).ravel()
        if x.shape[0] != self.centroids.shape[1]:
            raise DimensionMismatchError(self.centroids.shape[1], x.shape[0])
        if normalize:
            x = normalize_point(x)
        return nearest(x, self.centroids)[0]

    # ── state export / import ─────────────────────────────────────────────

    def save_clustered_data(self, path) -> None:
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
        return (
            f"TriangleKMeans(k={self.k}, state='{self.state.value}', "
            f"iteration={self.iteration}, distance_computations={self.distance_computations})"
        )
