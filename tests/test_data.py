import numpy as np
import pytest

from gradstream.core.errors import DimensionMismatchError, EmptyDatasetError, StreamClosedError
from gradstream.core.stream import CLOSED, DataStream
from gradstream.data import OnlineScaler, StreamLoader
from gradstream.data.generate_sample_data import (
    generate_defaults,
    make_binary,
    make_blobs,
    make_linear,
    make_multiclass,
    write_csv,
)
from gradstream.data.loader import load_csv, save_csv


@pytest.fixture
def small_csv(tmp_csv):
    X = np.arange(12, dtype=float).reshape(6, 2)
    y = np.array([0.0, 1.0, 0.0, 1.0, 1.0, 0.0])
    save_csv(tmp_csv, X, y)
    return tmp_csv, X, y


# ── loader ────────────────────────────────────────────────────────────────

def test_save_then_load(small_csv):
    path, X, y = small_csv
    loaded_X, loaded_y = load_csv(path)
    np.testing.assert_array_equal(loaded_X, X)
    np.testing.assert_array_equal(loaded_y, y)


def test_load_without_label(small_csv):
    path, X, _ = small_csv
    loaded_X, loaded_y = load_csv(path, label_column=None)
    assert loaded_y is None
    assert loaded_X.shape == (6, 3)
    only_first, _ = load_csv(path, feature_columns=["feature_0"])
    np.testing.assert_array_equal(only_first.ravel(), X[:, 0])


def test_load_errors(small_csv, tmp_path):
    path, _, _ = small_csv
    with pytest.raises(FileNotFoundError):
        load_csv(tmp_path / "missing.csv")
    with pytest.raises(ValueError):
        load_csv(path, label_column="target")
    with pytest.raises(ValueError):
        load_csv(path, feature_columns=["feature_9"])

    header_only = tmp_path / "header.csv"
    header_only.write_text("feature_0,label\n")
    with pytest.raises(EmptyDatasetError):
        load_csv(header_only)


def test_save_errors(tmp_csv):
    with pytest.raises(DimensionMismatchError):
        save_csv(tmp_csv, [[1.0], [2.0]], [1.0])
    with pytest.raises(EmptyDatasetError):
        save_csv(tmp_csv, np.empty((0, 2)), [])


# ── OnlineScaler ──────────────────────────────────────────────────────────

def test_welford_matches_numpy(rng):
    X = rng.normal(5.0, 3.0, size=(500, 3))
    scaler = OnlineScaler(3)
    for x in X:
        scaler.partial_fit(x)
    np.testing.assert_allclose(scaler.mean_, X.mean(axis=0))
    np.testing.assert_allclose(scaler.var_, X.var(axis=0))


def test_block_fit_equals_row_by_row(rng):
    X = rng.normal(size=(100, 2))
    rows = OnlineScaler(2)
    for x in X:
        rows.partial_fit(x)
    blocks = OnlineScaler(2).fit(X[:30]).fit(X[30:])
    np.testing.assert_allclose(blocks.mean_, rows.mean_)
    np.testing.assert_allclose(blocks.M2_, rows.M2_)
    assert blocks.n_samples_seen == 100


def test_transform_and_inverse(rng):
    X = rng.normal(10.0, 2.0, size=(200, 2))
    scaler = OnlineScaler(2).fit(X)
    z = scaler.transform(X[0])
    np.testing.assert_allclose(scaler.inverse_transform(z), X[0])
    Z = np.array([scaler.transform(x) for x in X])
    np.testing.assert_allclose(Z.mean(axis=0), 0.0, atol=1e-9)
    np.testing.assert_allclose(Z.std(axis=0), 1.0, atol=1e-6)


def test_transform_is_identity_until_two_rows():
    scaler = OnlineScaler(1)
    np.testing.assert_array_equal(scaler.fit_transform([4.0]), [4.0])
    assert scaler.fit_transform([6.0])[0] == pytest.approx(1.0)


def test_scaler_validation(tmp_path):
    with pytest.raises(ValueError):
        OnlineScaler(0)
    scaler = OnlineScaler(2)
    with pytest.raises(DimensionMismatchError):
        scaler.partial_fit([1.0])
    scaler.fit([[1.0, 2.0], [3.0, 6.0]])
    scaler.persist_to_file(tmp_path / "scaler.json")
    restored = OnlineScaler(2)
    restored.restore_from_file(tmp_path / "scaler.json")
    np.testing.assert_allclose(restored.std_, scaler.std_)
    with pytest.raises(DimensionMismatchError):
        OnlineScaler(3).restore_from_file(tmp_path / "scaler.json")


# ── StreamLoader ──────────────────────────────────────────────────────────

def test_stream_yields_every_row(small_csv):
    path, X, y = small_csv
    points = list(StreamLoader(path, chunk_size=4).stream())
    assert len(points) == 6
    np.testing.assert_array_equal([p.x for p in points], X)
    assert [p.y[0] for p in points] == list(y)


def test_stream_without_label(small_csv):
    path, _, _ = small_csv
    loader = StreamLoader(path, label_column=None)
    assert loader.n_features == 3
    assert all(p.y == () for p in loader)


def test_feed_closes_the_stream(small_csv):
    path, _, _ = small_csv
    stream = DataStream()
    assert StreamLoader(path).feed(stream, limit=4) == 4
    assert len(list(stream)) == 4
    assert stream.get() is CLOSED
    with pytest.raises(StreamClosedError):
        StreamLoader(path).feed(stream)


def test_start_feeding_runs_in_background(small_csv):
    path, _, _ = small_csv
    stream = DataStream()
    thread = StreamLoader(path).start_feeding(stream)
    points = list(stream)
    thread.join(5)
    assert len(points) == 6


def test_scaled_stream(small_csv):
    path, _, _ = small_csv
    scaler = OnlineScaler(2)
    points = list(StreamLoader(path, scaler=scaler).stream())
    assert scaler.n_samples_seen == 6
    assert points[0].x == (0.0, 1.0)
    assert all(abs(v) < 3 for p in points[1:] for v in p.x)


def test_loader_validation(small_csv, tmp_path):
    path, _, _ = small_csv
    assert StreamLoader(path).count_rows() == 6
    with pytest.raises(FileNotFoundError):
        StreamLoader(tmp_path / "nope.csv")
    with pytest.raises(ValueError):
        StreamLoader(path, chunk_size=0)
    with pytest.raises(ValueError):
        StreamLoader(path, label_column="target")
    with pytest.raises(DimensionMismatchError):
        StreamLoader(path, scaler=OnlineScaler(5))


# ── generators ────────────────────────────────────────────────────────────

def test_generators_are_seeded():
    a = make_linear(n_samples=50, seed=1)
    b = make_linear(n_samples=50, seed=1)
    np.testing.assert_array_equal(a[0], b[0])
    np.testing.assert_array_equal(a[1], b[1])


def test_generator_shapes():
    X, y = make_binary(n_samples=100, n_features=4, concept_drift=True)
    assert X.shape == (100, 4)
    assert set(np.unique(y)) <= {0.0, 1.0}

    X, y = make_blobs(((0.0, 0.0), (5.0, 5.0), (9.0, 0.0)), n_per_center=10)
    assert X.shape == (30, 2)
    assert sorted(np.unique(y)) == [0.0, 1.0, 2.0]

    X, y = make_multiclass(n_classes=4, n_features=3, n_per_class=5)
    assert X.shape == (20, 3)
    assert np.unique(y).size == 4

    with pytest.raises(ValueError):
        make_linear(weights=[1.0], n_features=2)
    with pytest.raises(ValueError):
        make_binary(n_samples=5)


def test_write_csv_and_defaults(tmp_path):
    df = write_csv(tmp_path / "x.csv", *make_linear(n_samples=10, n_features=2))
    assert list(df.columns) == ["feature_0", "feature_1", "label"]

    paths = generate_defaults(tmp_path / "samples")
    assert set(paths) == {"linear", "binary", "drifted", "blobs"}
    assert all(p.exists() for p in paths.values())
    assert StreamLoader(paths["blobs"]).count_rows() == 600
