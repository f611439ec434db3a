import numpy as np
import pytest

from gradstream.cluster.kmeans import KMeans
from gradstream.cluster.triangle_kmeans import TrainingState, TriangleKMeans
from gradstream.core.errors import (
    DimensionMismatchError,
    EmptyDatasetError,
    InvalidConfigurationError,
)


def assert_bounds_hold(model: TriangleKMeans):
    X = model.training_set
    for i, x in enumerate(X):
        distances = np.linalg.norm(model.centroids - x, axis=1)
        assert np.all(model.lower_bounds[i] <= distances + 1e-9)
        assert model.upper_bounds[i] >= distances[model.guesses()[i]] - 1e-9


def test_two_clusters_are_recovered(blobs):
    X, y = blobs
    model = TriangleKMeans(2, 15, X, rng=1)
    model.learn()

    guesses = model.guesses()
    # label permutation does not matter
    agreement = max(np.mean(guesses == y), np.mean(guesses != y))
    assert agreement >= 0.95
    assert sorted(np.round(model.centroids[:, 0])) == pytest.approx([-7.0, 7.0], abs=0.5)
    assert model.state is TrainingState.ITERATION_CAP_REACHED


def test_bounds_hold_after_every_iteration(rng):
    X = np.vstack([rng.normal(c, 1.5, size=(40, 2)) for c in ((0, 0), (5, 5), (0, 6))])
    model = TriangleKMeans(3, 10, X, rng=4)
    model.seed_centroids()
    model.assign_initial()
    assert_bounds_hold(model)
    for _ in range(10):
        model.iterate()
        assert_bounds_hold(model)


def test_same_result_as_naive_kmeans(rng):
    X = np.vstack([rng.normal(c, 2.0, size=(60, 3)) for c in ((0, 0, 0), (4, 4, 0), (0, 4, 4), (4, 0, 4))])
    naive = KMeans(4, 12, X, rng=9)
    naive.learn()
    triangle = TriangleKMeans(4, 12, X, rng=9)
    triangle.learn()

    np.testing.assert_array_equal(naive.guesses(), triangle.guesses())
    np.testing.assert_allclose(naive.centroids, triangle.centroids)
    assert naive.distortion() == pytest.approx(triangle.distortion())


def test_skips_most_distance_computations(blobs):
    X, _ = blobs
    iterations = 20
    model = TriangleKMeans(2, iterations, X, rng=2)
    model.learn()
    naive = X.shape[0] * 2 * (iterations + 1)
    assert model.distance_computations < naive / 2


def test_predict_is_pure(blobs):
    X, _ = blobs
    model = TriangleKMeans(2, 5, X, rng=0)
    model.learn()
    before = model.centroids.copy()
    first = model.predict([-6.5, 0.3])
    assert model.predict([-6.5, 0.3]) == first
    np.testing.assert_array_equal(before, model.centroids)
    assert model.predict([6.5, 0.3]) != first


def test_predict_rejects_wrong_width(blobs):
    X, _ = blobs
    model = TriangleKMeans(2, 3, X, rng=0)
    model.learn()
    with pytest.raises(DimensionMismatchError):
        model.predict([1.0, 2.0, 3.0])


def test_predict_before_learning():
    with pytest.raises(EmptyDatasetError):
        TriangleKMeans(2).predict([0.0, 0.0])


@pytest.mark.parametrize("training_set", [None, [], np.empty((0, 2)), np.empty((3, 0))])
def test_empty_training_set(training_set):
    with pytest.raises(EmptyDatasetError):
        TriangleKMeans(2, 5, training_set).learn()


def test_k_larger_than_dataset():
    with pytest.raises(InvalidConfigurationError):
        TriangleKMeans(5, 5, [[0.0], [1.0]]).learn()


def test_step_order_is_enforced(blobs):
    X, _ = blobs
    model = TriangleKMeans(2, 1, X, rng=0)
    with pytest.raises(InvalidConfigurationError):
        model.assign_initial()
    model.seed_centroids()
    with pytest.raises(InvalidConfigurationError):
        model.iterate()
    model.assign_initial()
    model.iterate()
    assert model.state is TrainingState.ITERATION_CAP_REACHED


def test_zero_iterations_uses_default(blobs):
    X, _ = blobs
    model = TriangleKMeans(2, 0, X, rng=0)
    calls = []
    assert model.learn(on_iteration=lambda i, c: calls.append(i)) == 250
    assert len(calls) == 250


def test_single_cluster(rng):
    X = rng.normal(size=(30, 2))
    model = TriangleKMeans(1, 3, X, rng=0)
    model.learn()
    np.testing.assert_allclose(model.centroids[0], X.mean(axis=0))
    assert set(model.guesses()) == {0}


def test_persistence_round_trip(blobs, tmp_path):
    X, _ = blobs
    model = TriangleKMeans(2, 5, X, rng=0)
    model.learn()
    path = tmp_path / "centroids.json"
    model.persist_to_file(path)

    restored = TriangleKMeans(2)
    restored.restore_from_file(path)
    np.testing.assert_allclose(restored.centroids, model.centroids)
    assert restored.predict([7.0, 0.0]) == model.predict([7.0, 0.0])

    with pytest.raises(DimensionMismatchError):
        TriangleKMeans(3).restore_from_file(path)
