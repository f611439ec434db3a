"""
knn.py
──────
k-nearest-neighbours classification / regression.

    predict(x) = round( mean of the labels of the k training points nearest to x )

Labels are averaged and then rounded half away from zero, so with integer
class labels an odd k behaves like a majority vote for two classes.  There
is no training step; the training set is scanned on every prediction.
"""

import numpy as np

from gradstream.core.distance import DistanceMeasure, euclidean
from gradstream.core.errors import DimensionMismatchError, InvalidConfigurationError
from gradstream.core.munge import normalize_point
from gradstream.linear._common import as_training_set, check_training_set


def round_half_away(value: float) -> float:
    return float(np.sign(value) * np.floor(abs(value) + 0.5))


class KNN:
    """k-nearest-neighbours.

    Parameters
    ----------
    k : int, default=1
    training_set, expected_results : array-like
    distance : callable(u, v) -> float, default=euclidean
        Any measure from gradstream.core.distance.
    """

    def __init__(self, k: int = 1, training_set=None, expected_results=None, distance: DistanceMeasure = euclidean):
        if k < 1:
            raise InvalidConfigurationError(f"k must be ≥ 1, got {k}.")
        self.k = int(k)
        self.distance = distance
        self.training_set, self.expected_results = as_training_set(training_set, expected_results)

    def examples(self) -> int:
        return 0 if self.training_set is None else self.training_set.shape[0]

    def update_training_set(self, training_set, expected_results) -> None:
        X, y = as_training_set(training_set, expected_results)
        check_training_set(X, y)
        self.training_set, self.expected_results = X, y

    def neighbours(self, x, normalize: bool = False) -> np.ndarray:
        """Indices of the k nearest training points, closest first (stable on ties)."""
        check_training_set(self.training_set, self.expected_results)
        if self.k > self.training_set.shape[0]:
            raise InvalidConfigurationError(
                f"k ({self.k}) is greater than the number of training examples ({self.training_set.shape[0]})."
            )
        x = np.asarray(x, dtype=np.float64).ravel()
        if x.shape[0] != self.training_set.shape[1]:
            raise DimensionMismatchError(self.training_set.shape[1], x.shape[0])
        if normalize:
            x = normalize_point(x)

        distances = np.array([self.distance(x, row) for row in self.training_set])
        return np.argsort(distances, kind="stable")[: self.k]

    def predict(self, x, normalize: bool = False) -> float:
        nearest = self.neighbours(x, normalize)
        return round_half_away(float(np.mean(self.expected_results[nearest])))

    def __repr__(self) -> str:
        return f"KNN(k={self.k}, distance={getattr(self.distance, '__name__', 'custom')}, examples={self.examples()})"
