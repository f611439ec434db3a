import numpy as np
import pytest

from gradstream.cluster.knn import KNN, round_half_away
from gradstream.core.distance import euclidean, lnorm, manhattan, pairwise_euclidean, squared
from gradstream.core.errors import (
    DimensionMismatchError,
    EmptyDatasetError,
    InvalidConfigurationError,
    InvalidDatapointError,
)
from gradstream.core.kernel import gaussian_kernel, linear_kernel, polynomial_kernel, tanh_kernel
from gradstream.core.model import Datapoint
from gradstream.core.stream import DataStream, OnlineLearner
from gradstream.perceptron import KernelPerceptron, Perceptron


def signed_points(n=300, seed=0):
    """Linearly separable ±1 labels: y = sign(x₀ + x₁ − 0.5)."""
    rng = np.random.default_rng(seed)
    X = rng.uniform(-3, 3, size=(n, 2))
    margin = X[:, 0] + X[:, 1] - 0.5
    X, margin = X[np.abs(margin) > 0.3], margin[np.abs(margin) > 0.3]
    return X, np.where(margin > 0, 1.0, -1.0)


def ring_points(n=200, seed=1):
    """+1 inside radius 1, −1 outside radius 2: not linearly separable."""
    rng = np.random.default_rng(seed)
    angles = rng.uniform(0, 2 * np.pi, size=n)
    radii = np.where(np.arange(n) % 2 == 0, rng.uniform(0, 1, size=n), rng.uniform(2, 3, size=n))
    X = np.c_[radii * np.cos(angles), radii * np.sin(angles)]
    return X, np.where(radii < 1.5, 1.0, -1.0)


# ── distances and kernels ─────────────────────────────────────────────────

def test_distances():
    u, v = np.array([0.0, 0.0]), np.array([3.0, 4.0])
    assert euclidean(u, v) == pytest.approx(5.0)
    assert squared(u, v) == pytest.approx(25.0)
    assert manhattan(u, v) == pytest.approx(7.0)
    assert lnorm(1)(u, v) == pytest.approx(7.0)
    assert lnorm(2)(u, v) == pytest.approx(5.0)
    with pytest.raises(ValueError):
        lnorm(0.5)
    np.testing.assert_allclose(pairwise_euclidean(np.array([u, v])), [[0.0, 5.0], [5.0, 0.0]])


def test_kernels():
    u, v = np.array([1.0, 2.0]), np.array([3.0, 4.0])
    assert linear_kernel()(u, v) == pytest.approx(11.0)
    assert polynomial_kernel(2, 1.0)(u, v) == pytest.approx(144.0)
    assert gaussian_kernel(1.0)(u, u) == pytest.approx(1.0)
    assert gaussian_kernel(1.0)(u, v) == pytest.approx(np.exp(-4.0))
    assert tanh_kernel(0.1)(u, v) == pytest.approx(np.tanh(1.1))
    assert linear_kernel()(u, [1.0]) == 0.0


# ── Perceptron ────────────────────────────────────────────────────────────

def test_perceptron_separates_a_line():
    X, y = signed_points()
    model = Perceptron(learning_rate=0.1, features=2)
    for _ in range(20):
        for x, label in zip(X, y):
            model.update(Datapoint(x, [label]))
    assert all(model.predict(x) == label for x, label in zip(X, y))


def test_perceptron_only_updates_on_mistakes():
    model = Perceptron(learning_rate=0.5, features=1)
    snapshot = model.update(Datapoint([2.0], [1.0]))
    # untrained guess is −1, so (y − guess) = 2
    np.testing.assert_allclose(snapshot, [1.0, 2.0])
    assert model.update(Datapoint([2.0], [1.0])) is None
    assert model.mistakes == 1


def test_perceptron_rejects_bad_labels_in_stream():
    model = Perceptron(features=1)
    stream = DataStream()
    stream.put(Datapoint([1.0], [0.0]))
    stream.put(Datapoint([1.0], [1.0]))
    stream.close()
    problems = OnlineLearner(model, stream).start().join(timeout=5)
    assert [type(p) for p in problems] == [InvalidDatapointError]
    assert model.mistakes == 1


def test_perceptron_persistence(tmp_path):
    model = Perceptron(features=2)
    model.set_state([0.5, -1.0, 2.0])
    model.persist_to_file(tmp_path / "p.json")
    restored = Perceptron(features=2)
    restored.restore_from_file(tmp_path / "p.json")
    assert restored.get_state() == [0.5, -1.0, 2.0]


# ── KernelPerceptron ──────────────────────────────────────────────────────

def test_kernel_perceptron_learns_a_ring():
    X, y = ring_points()
    model = KernelPerceptron(kernel=gaussian_kernel(1.0))
    for _ in range(5):
        for x, label in zip(X, y):
            model.update(Datapoint(x, [label]))
    accuracy = np.mean([model.predict(x) == label for x, label in zip(X, y)])
    assert accuracy > 0.95
    assert 0 < len(model.support_vectors) < len(X)


def test_kernel_perceptron_update_reports_support_vector():
    model = KernelPerceptron()
    assert model.predict([1.0, 1.0]) == -1.0
    assert model.update(Datapoint([1.0, 1.0], [1.0])) == [1.0, 1.0, 1.0]
    assert model.update(Datapoint([1.0, 1.0], [1.0])) is None
    with pytest.raises(DimensionMismatchError):
        model.update(Datapoint([1.0], [1.0]))
    with pytest.raises(InvalidDatapointError):
        model.update(Datapoint([1.0, 1.0], [0.0]))


def test_kernel_perceptron_state_round_trip(tmp_path):
    model = KernelPerceptron()
    model.update(Datapoint([1.0, 1.0], [1.0]))
    model.persist_to_file(tmp_path / "sv.json")
    restored = KernelPerceptron()
    restored.restore_from_file(tmp_path / "sv.json")
    assert restored.support_vectors == model.support_vectors
    assert restored.predict([2.0, 2.0]) == 1.0


def test_kernel_perceptron_predict_checks_width():
    model = KernelPerceptron(kernel=gaussian_kernel(1.0))
    model.update(Datapoint([1.0, 1.0], [1.0]))
    with pytest.raises(DimensionMismatchError):
        model.predict([1.0, 2.0, 3.0])
    assert model.predict([1.0, 1.0]) == 1.0

# ── KNN ───────────────────────────────────────────────────────────────────

def test_round_half_away():
    assert round_half_away(0.5) == 1.0
    assert round_half_away(-0.5) == -1.0
    assert round_half_away(1.4) == 1.0


def test_knn_votes(blobs):
    X, y = blobs
    model = KNN(3, X, y)
    assert model.predict([-7.0, 0.0]) == 0.0
    assert model.predict([7.0, 0.0]) == 1.0
    model.distance = manhattan
    assert model.predict([6.0, 1.0]) == 1.0


def test_knn_neighbours_are_sorted():
    model = KNN(2, [[0.0], [5.0], [1.0]], [0.0, 1.0, 0.0])
    np.testing.assert_array_equal(model.neighbours([0.9]), [2, 0])


def test_knn_validation():
    with pytest.raises(InvalidConfigurationError):
        KNN(0)
    with pytest.raises(EmptyDatasetError):
        KNN(1).predict([0.0])
    model = KNN(5, [[0.0], [1.0]], [0.0, 1.0])
    with pytest.raises(InvalidConfigurationError):
        model.predict([0.0])
    model.k = 1
    with pytest.raises(DimensionMismatchError):
        model.predict([0.0, 1.0])
