from pathlib import Path

import numpy as np
import pytest
from loguru import logger

from gradstream.data.generate_sample_data import make_binary, make_blobs, make_linear


@pytest.fixture(autouse=True)
def silence_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


@pytest.fixture
def rng():
    return np.random.default_rng(7)


@pytest.fixture
def identity_data():
    """y = x on the five points 0 … 4."""
    X = np.arange(5, dtype=float).reshape(-1, 1)
    return X, X.ravel().copy()


@pytest.fixture
def linear_data():
    return make_linear(n_samples=400, n_features=3, noise=0.1, intercept=1.0, weights=[2.0, -1.0, 0.5], seed=3)


@pytest.fixture
def binary_data():
    return make_binary(n_samples=1000, n_features=3, noise=0.2, seed=5)


@pytest.fixture
def blobs():
    return make_blobs(((-7.0, 0.0), (7.0, 0.0)), n_per_center=100, spread=1.0, seed=11)


@pytest.fixture
def tmp_csv(tmp_path) -> Path:
    return tmp_path / "data.csv"
