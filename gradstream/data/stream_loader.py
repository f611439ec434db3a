"""
stream_loader.py
────────────────
Row-by-row CSV reader that plays a file into a DataStream.

Pipeline position
─────────────────
    CSV on disk  →  StreamLoader  →  Datapoint  →  DataStream  →  online_learn
                        │
                        └── optional OnlineScaler.fit_transform() per row

Design notes
────────────
* pandas' chunked reader keeps memory flat whatever the file size; each row
  of a chunk is still yielded on its own.
* With ``label_column=None`` every column is a feature and the Datapoints
  carry an empty label (clustering streams).
* feed() is the producer side of the streaming protocol: it pushes every
  row and, by default, closes the stream so the consumer can finish.
  Run it on its own thread with start_feeding().
* stream() restarts from the top of the file on every call.
"""

import threading
from pathlib import Path
from typing import Iterator

import numpy as np
import pandas as pd
from loguru import logger

from gradstream.core.errors import DimensionMismatchError
from gradstream.core.model import Datapoint
from gradstream.core.stream import DataStream
from gradstream.data.online_scaler import OnlineScaler


class StreamLoader:
    """Iterate over a CSV one Datapoint at a time.

    Parameters
    ----------
    filepath : str | Path
    label_column : str | None, default='label'
    feature_columns : list[str] | None
        Defaults to every column except the label, in file order.
    chunk_size : int, default=1
        Rows read from disk per I/O call.
    scaler : OnlineScaler | None
        Each feature vector goes through scaler.fit_transform() first.
    """

    def __init__(
        self,
        filepath: str | Path,
        label_column: str | None = "label",
        feature_columns: list[str] | None = None,
        chunk_size: int = 1,
        scaler: OnlineScaler | None = None,
    ):
        self.filepath       = Path(filepath)
        self.label_column   = label_column
        self.chunk_size     = chunk_size
        self.scaler         = scaler

        if chunk_size < 1:
            raise ValueError("chunk_size must be ≥ 1.")
        if not self.filepath.exists():
            raise FileNotFoundError(f"CSV not found: {self.filepath}")

        header = pd.read_csv(self.filepath, nrows=0).columns.tolist()
        if label_column is not None and label_column not in header:
            raise ValueError(
                f"Label column '{label_column}' not found in {self.filepath}. "
                f"Available columns: {header}"
            )

        if feature_columns is not None:
            missing = set(feature_columns) - set(header)
            if missing:
                raise ValueError(f"Feature columns {missing} not found in {self.filepath}.")
            self.feature_columns = list(feature_columns)
        else:
            self.feature_columns = [c for c in header if c != label_column]

        if not self.feature_columns:
            raise ValueError("No feature columns detected; the file only has the label column.")
        if self.scaler is not None and self.scaler.n_features != len(self.feature_columns):
            raise DimensionMismatchError(len(self.feature_columns), self.scaler.n_features, what="scaler width")

        self.n_features = len(self.feature_columns)

    def _columns(self) -> list[str]:
        if self.label_column is None:
            return self.feature_columns
        return self.feature_columns + [self.label_column]

    def stream(self) -> Iterator[Datapoint]:
        """Yield one Datapoint per CSV row."""
        reader = pd.read_csv(self.filepath, chunksize=self.chunk_size, usecols=self._columns())
        for chunk in reader:
            features = chunk[self.feature_columns].to_numpy(dtype=np.float64)
            labels = None if self.label_column is None else chunk[self.label_column].to_numpy(dtype=np.float64)
            for i, x in enumerate(features):
                if self.scaler is not None:
                    x = self.scaler.fit_transform(x)
                yield Datapoint(x, () if labels is None else (labels[i],))

    __iter__ = stream

    def feed(self, target: DataStream, close: bool = True, limit: int | None = None) -> int:
        """Push rows into *target*; returns how many were pushed.

        The stream is closed afterwards (unless ``close=False``), even if
        reading fails part-way.
        """
        pushed = 0
        try:
            for point in self.stream():
                if limit is not None and pushed >= limit:
                    break
                target.put(point)
                pushed += 1
        finally:
            if close:
                target.close()
        logger.debug("fed {} rows from {} into the data stream", pushed, self.filepath.name)
        return pushed

    def start_feeding(self, target: DataStream, close: bool = True, limit: int | None = None) -> threading.Thread:
        """feed() on a daemon producer thread."""
        thread = threading.Thread(
            target=self.feed,
            args=(target,),
            kwargs={"close": close, "limit": limit},
            name=f"feed-{self.filepath.stem}",
            daemon=True,
        )
        thread.start()
        return thread

    def count_rows(self) -> int:
        """Data rows in the file (header excluded), read in chunks."""
        total = 0
        for chunk in pd.read_csv(self.filepath, chunksize=10_000, usecols=[self.feature_columns[0]]):
            total += len(chunk)
        return total

    def __repr__(self) -> str:
        scaled = "scaled" if self.scaler else "raw"
        return (
            f"StreamLoader(file='{self.filepath.name}', "
            f"features={self.n_features}, chunk_size={self.chunk_size}, {scaled})"
        )
