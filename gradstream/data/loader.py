"""
loader.py
─────────
Whole-file CSV I/O for the batch path.

    load_csv("data/samples/linear.csv")  →  (X, y)       # float64 arrays
    save_csv(path, X, y)                 →  feature_0, …, feature_{d−1}, label

Column convention matches the sample generator and StreamLoader: the target
column is named ``label`` and every other column is a feature, in file order.
"""

from pathlib import Path

import numpy as np
import pandas as pd
from loguru import logger

from gradstream.core.errors import DimensionMismatchError, EmptyDatasetError


def load_csv(
    filepath: str | Path,
    label_column: str | None = "label",
    feature_columns: list[str] | None = None,
) -> tuple[np.ndarray, np.ndarray | None]:
    """Read a CSV into (X, y).

    Parameters
    ----------
    filepath : str | Path
    label_column : str | None, default='label'
        None for unlabelled data (clustering); y is then None.
    feature_columns : list[str] | None
        Defaults to every column except the label.

    Raises
    ------
    FileNotFoundError, ValueError
        Missing file or missing column.
    EmptyDatasetError
        The file has a header but no rows.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"CSV not found: {filepath}")

    df = pd.read_csv(filepath)
    if label_column is not None and label_column not in df.columns:
        raise ValueError(
            f"Label column '{label_column}' not found in {filepath}. "
            f"Available columns: {df.columns.tolist()}"
        )
    if feature_columns is None:
        feature_columns = [c for c in df.columns if c != label_column]
    missing = set(feature_columns) - set(df.columns)
    if missing:
        raise ValueError(f"Feature columns {missing} not found in {filepath}.")
    if df.empty or not feature_columns:
        raise EmptyDatasetError(f"{filepath} holds no training examples")

    X = df[feature_columns].to_numpy(dtype=np.float64)
    y = None if label_column is None else df[label_column].to_numpy(dtype=np.float64)
    logger.debug("loaded {} rows × {} features from {}", X.shape[0], X.shape[1], filepath)
    return X, y


def save_csv(filepath: str | Path, X, y, label_column: str = "label") -> Path:
    """Write features plus one label column (cluster guesses, predictions, …)."""
    X = np.atleast_2d(np.asarray(X, dtype=np.float64))
    y = np.asarray(y).ravel()
    if X.size == 0 or y.size == 0:
        raise EmptyDatasetError("refusing to save an empty dataset")
    if X.shape[0] != y.shape[0]:
        raise DimensionMismatchError(X.shape[0], y.shape[0], what="label column")

    df = pd.DataFrame(X, columns=[f"feature_{i}" for i in range(X.shape[1])])
    df[label_column] = y

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(filepath, index=False)
    logger.debug("saved {} rows to {}", X.shape[0], filepath)
    return filepath
