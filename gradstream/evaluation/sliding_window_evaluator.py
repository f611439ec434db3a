"""
sliding_window_evaluator.py
───────────────────────────
Rolling-window metrics for prequential (predict, then learn) evaluation.

A cumulative score from step 0 hides both early mistakes and drift: after
tens of thousands of points one regime change barely moves it.  Scoring only
the most recent W predictions shows how good the model is *now*.

Metrics over the window
───────────────────────
    accuracy   share of predictions equal to the label
    precision, recall, f1   for the positive class (label 1)
    auc        ROC-AUC from the recorded scores; None unless both classes occur
    mse        mean squared error between prediction/score and label

Classifiers record (label guess, label, score); regressors record
(prediction, target) and read mse.  Precision, recall, F1 and AUC come from
scikit-learn.

The window is a deque with maxlen=W: appending evicts the oldest entry.
"""

from collections import deque
from typing import NamedTuple

import numpy as np
from sklearn.metrics import f1_score, precision_score, recall_score, roc_auc_score


class WindowMetrics(NamedTuple):
    window_size : int
    accuracy    : float
    precision   : float
    recall      : float
    f1          : float
    auc         : float | None
    mse         : float


class SlidingWindowEvaluator:
    """Track metrics over the last *window_size* predictions.

    Parameters
    ----------
    window_size : int, default=1000
        Must be ≥ 2.
    """

    def __init__(self, window_size: int = 1000):
        if window_size < 2:
            raise ValueError("window_size must be ≥ 2.")

        self.window_size = window_size
        self._buffer: deque = deque(maxlen=window_size)

        self._total_seen   : int   = 0
        self._total_correct: int   = 0
        self._total_sq_err : float = 0.0

    # ── recording ─────────────────────────────────────────────────────────

    def record(self, predicted: float, actual: float, score: float | None = None) -> None:
        """Push one prediction.  *score* (e.g. P(y=1)) feeds AUC and mse; defaults to *predicted*."""
        predicted = float(predicted)
        actual = float(actual)
        score = predicted if score is None else float(score)

        self._buffer.append((predicted, actual, score))
        self._total_seen += 1
        self._total_correct += int(predicted == actual)
        self._total_sq_err += (score - actual) ** 2

    # ── metrics ───────────────────────────────────────────────────────────

    def get_metrics(self) -> WindowMetrics:
        if not self._buffer:
            return WindowMetrics(0, 0.0, 0.0, 0.0, 0.0, None, 0.0)

        preds, actuals, scores = (np.array(col) for col in zip(*self._buffer))
        binary = np.isin(actuals, (0.0, 1.0)).all() and np.isin(preds, (0.0, 1.0)).all()

        if binary:
            precision = float(precision_score(actuals, preds, zero_division=0))
            recall    = float(recall_score(actuals, preds, zero_division=0))
            f1        = float(f1_score(actuals, preds, zero_division=0))
        else:
            precision = recall = f1 = 0.0

        auc = None
        if binary and np.unique(actuals).size == 2:
            auc = float(roc_auc_score(actuals, scores))

        return WindowMetrics(
            window_size = len(self._buffer),
            accuracy    = float(np.mean(preds == actuals)),
            precision   = precision,
            recall      = recall,
            f1          = f1,
            auc         = auc,
            mse         = float(np.mean((scores - actuals) ** 2)),
        )

    @property
    def cumulative_accuracy(self) -> float:
        """Accuracy over every prediction ever recorded."""
        if self._total_seen == 0:
            return 0.0
        return self._total_correct / self._total_seen

    @property
    def cumulative_mse(self) -> float:
        if self._total_seen == 0:
            return 0.0
        return self._total_sq_err / self._total_seen

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        return (
            f"SlidingWindowEvaluator(window_size={self.window_size}, "
            f"current={len(self._buffer)}, total_seen={self._total_seen})"
        )
