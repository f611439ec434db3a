"""
online_scaler.py
────────────────
Running standardisation for features that arrive one row at a time.

Gradient ascent with a single learning rate behaves badly when one feature
is in the thousands and another near zero, but a stream cannot be scanned
twice to find the mean and variance first.  OnlineScaler keeps Welford
statistics instead: O(d) memory and O(d) work per row.

Welford update (per feature)
────────────────────────────
    n      ← n + 1
    δ      ← x − mean
    mean   ← mean + δ / n
    M2     ← M2 + δ · (x − mean)          # second factor uses the new mean
    var    = M2 / n

A block of rows can be absorbed at once with fit(X), which merges the block's
statistics into the running ones (Chan et al. pairwise update) and gives the
same result as feeding the rows one by one.

Scaling
───────
    z = (x − mean) / (std + ε)

Until two rows have been seen there is no variance estimate, and transform()
returns its input unchanged.
"""

import numpy as np

from gradstream.core import persistence
from gradstream.core.errors import DimensionMismatchError


class OnlineScaler:
    """Welford running mean / variance with a standardising transform.

    Parameters
    ----------
    n_features : int
    epsilon : float, default=1e-8
        Guards the division for constant features.
    """

    def __init__(self, n_features: int, epsilon: float = 1e-8):
        if n_features < 1:
            raise ValueError("n_features must be ≥ 1.")

        self.n_features     = n_features
        self.epsilon        = epsilon

        self.n_samples_seen: int = 0
        self.mean_: np.ndarray   = np.zeros(n_features, dtype=np.float64)
        self.M2_  : np.ndarray   = np.zeros(n_features, dtype=np.float64)

    @property
    def var_(self) -> np.ndarray:
        if self.n_samples_seen == 0:
            return np.zeros(self.n_features)
        return self.M2_ / self.n_samples_seen

    @property
    def std_(self) -> np.ndarray:
        return np.sqrt(self.var_)

    # ── statistics ────────────────────────────────────────────────────────

    def partial_fit(self, x) -> "OnlineScaler":
        """Absorb one row."""
        x = self._check_shape(x)

        self.n_samples_seen += 1
        delta      = x - self.mean_
        self.mean_ += delta / self.n_samples_seen
        self.M2_  += delta * (x - self.mean_)
        return self

    def fit(self, X) -> "OnlineScaler":
        """Absorb a whole (m, n_features) block in one merge."""
        X = np.atleast_2d(np.asarray(X, dtype=np.float64))
        if X.shape[1] != self.n_features:
            raise DimensionMismatchError(self.n_features, X.shape[1])
        m = X.shape[0]
        if m == 0:
            return self

        block_mean = X.mean(axis=0)
        block_M2   = ((X - block_mean) ** 2).sum(axis=0)
        n          = self.n_samples_seen
        total      = n + m
        delta      = block_mean - self.mean_

        self.mean_ = self.mean_ + delta * (m / total)
        self.M2_   = self.M2_ + block_M2 + delta ** 2 * (n * m / total)
        self.n_samples_seen = total
        return self

    # ── scaling ───────────────────────────────────────────────────────────

    def transform(self, x) -> np.ndarray:
        x = self._check_shape(x)
        if self.n_samples_seen < 2:
            return x.copy()
        return (x - self.mean_) / (self.std_ + self.epsilon)

    def inverse_transform(self, z) -> np.ndarray:
        """Undo transform() with the current statistics."""
        z = self._check_shape(z)
        if self.n_samples_seen < 2:
            return z.copy()
        return z * (self.std_ + self.epsilon) + self.mean_

    def fit_transform(self, x) -> np.ndarray:
        """partial_fit(x) then transform(x): the row is scaled by stats that include it."""
        self.partial_fit(x)
        return self.transform(x)

    # ── state export / import ─────────────────────────────────────────────

    def get_state(self) -> dict:
        return {
            "n_samples_seen": self.n_samples_seen,
            "mean":           self.mean_.tolist(),
            "M2":             self.M2_.tolist(),
        }

    def set_state(self, state: dict) -> None:
        mean = np.array(state["mean"], dtype=np.float64)
        if mean.shape[0] != self.n_features:
            raise DimensionMismatchError(self.n_features, mean.shape[0], what="scaler state")
        self.n_samples_seen = int(state["n_samples_seen"])
        self.mean_          = mean
        self.M2_            = np.array(state["M2"], dtype=np.float64)

    def persist_to_file(self, path) -> None:
        persistence.write_json(path, self.get_state())

    def restore_from_file(self, path) -> None:
        self.set_state(persistence.read_json(path))

    def _check_shape(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64).ravel()
        if x.shape[0] != self.n_features:
            raise DimensionMismatchError(self.n_features, x.shape[0])
        return x

    def __repr__(self) -> str:
        return f"OnlineScaler(n_features={self.n_features}, n_samples_seen={self.n_samples_seen})"
