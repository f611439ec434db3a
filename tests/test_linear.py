import numpy as np
import pytest

from gradstream.core.errors import (
    DimensionMismatchError,
    EmptyDatasetError,
    InvalidConfigurationError,
    InvalidDatapointError,
)
from gradstream.core.model import Datapoint, OptimizationMethod
from gradstream.core.stream import DataStream, OnlineLearner
from gradstream.linear import LeastSquares, LocalLinear, Logistic, Softmax
from gradstream.linear.logistic import binary_cross_entropy, sigmoid
from gradstream.linear.softmax import softmax_rows


# ── LeastSquares ──────────────────────────────────────────────────────────

def test_method_is_parsed():
    assert LeastSquares("Stochastic").method is OptimizationMethod.STOCHASTIC
    with pytest.raises(InvalidConfigurationError):
        LeastSquares("newton")


def test_constructor_validation():
    with pytest.raises(ValueError):
        LeastSquares(learning_rate=0)
    with pytest.raises(ValueError):
        LeastSquares(regularization=-1)


def test_learn_without_data():
    with pytest.raises(EmptyDatasetError):
        LeastSquares().learn()
    with pytest.raises(EmptyDatasetError):
        LeastSquares(training_set=[[1.0]]).learn()
    with pytest.raises(DimensionMismatchError):
        LeastSquares(training_set=[[1.0], [2.0]], expected_results=[1.0]).learn()


def test_fits_several_features(linear_data):
    X, y = linear_data
    model = LeastSquares("batch", 1e-4, 0, 2000, X, y)
    model.learn()
    np.testing.assert_allclose(model.parameters, [1.0, 2.0, -1.0, 0.5], atol=0.05)
    assert model.cost() < 0.01


def test_regularization_shrinks_weights_not_bias(identity_data):
    X, y = identity_data
    plain = LeastSquares("batch", 1e-2, 0, 500, X, y)
    plain.learn()
    ridge = LeastSquares("batch", 1e-2, 20.0, 500, X, y)
    ridge.learn()
    assert abs(ridge.parameters[1]) < abs(plain.parameters[1])
    # the intercept absorbs what the penalised slope no longer explains
    assert ridge.parameters[0] > plain.parameters[0]


def test_dj_out_of_range(identity_data):
    X, y = identity_data
    with pytest.raises(IndexError):
        LeastSquares(training_set=X, expected_results=y).dj(5)


def test_predict_checks_width(identity_data):
    X, y = identity_data
    model = LeastSquares(training_set=X, expected_results=y)
    with pytest.raises(DimensionMismatchError):
        model.predict([1.0, 2.0])


def test_predict_normalizes_without_mutating_input():
    model = LeastSquares(features=2)
    model.set_state([0.0, 1.0, 1.0])
    x = np.array([3.0, 4.0])
    assert model.predict(x, normalize=True) == pytest.approx(1.4)
    np.testing.assert_array_equal(x, [3.0, 4.0])


def test_update_matches_one_stochastic_step():
    model = LeastSquares(learning_rate=0.1, features=1)
    snapshot = model.update(Datapoint([2.0], [4.0]))
    # θ ← θ + α (y − h) x₁ with h = 0
    np.testing.assert_allclose(snapshot, [0.4, 0.8])


def test_persistence_round_trip(identity_data, tmp_path):
    X, y = identity_data
    model = LeastSquares("batch", 1e-2, 0, 100, X, y)
    model.learn()
    model.persist_to_file(tmp_path / "theta.json")
    restored = LeastSquares(features=1)
    restored.restore_from_file(tmp_path / "theta.json")
    assert restored.predict([3.0]) == pytest.approx(model.predict([3.0]))
    assert str(restored).startswith("h(θ,x) = ")


# ── Logistic ──────────────────────────────────────────────────────────────

def test_sigmoid_is_stable():
    values = sigmoid(np.array([-1000.0, 0.0, 1000.0]))
    np.testing.assert_allclose(values, [0.0, 0.5, 1.0], atol=1e-12)
    assert np.all(np.isfinite(values))
    assert binary_cross_entropy([1.0], [0.0]) < 40


def test_logistic_batch_separates(binary_data):
    X, y = binary_data
    model = Logistic("batch", 1e-3, 0, 300, X, y)
    model.learn()
    accuracy = np.mean([model.classify(x) == label for x, label in zip(X, y)])
    assert accuracy > 0.85
    assert 0.0 <= model.predict(X[0]) <= 1.0


def test_logistic_cost_decreases(binary_data):
    X, y = binary_data
    model = Logistic("batch", 1e-4, 0, 50, X, y)
    costs = []
    model.learn(on_iteration=lambda i, theta: costs.append(model.cost()))
    assert costs[-1] < costs[0]


@pytest.mark.parametrize("schedule", ["constant", "invscale", "adaptive"])
def test_logistic_online_schedules(binary_data, schedule):
    X, y = binary_data
    model = Logistic(learning_rate=0.5, features=X.shape[1], lr_schedule=schedule, decay=1e-2)
    first_rate = model.current_lr
    for x, label in zip(X, y):
        model.update(Datapoint(x, [label]))
    assert model.t == X.shape[0]
    if schedule == "constant":
        assert model.current_lr == first_rate
    else:
        assert model.current_lr < first_rate
    assert np.mean([model.classify(x) == label for x, label in zip(X, y)]) > 0.85


def test_logistic_rejects_bad_schedule_and_label():
    with pytest.raises(InvalidConfigurationError):
        Logistic(lr_schedule="cosine")
    with pytest.raises(InvalidDatapointError):
        Logistic(features=1).update(Datapoint([1.0], [2.0]))


# ── Softmax ───────────────────────────────────────────────────────────────

def three_classes():
    rng = np.random.default_rng(4)
    centres = np.array([[0.0, 4.0], [4.0, -2.0], [-4.0, -2.0]])
    X = np.vstack([rng.normal(c, 0.7, size=(40, 2)) for c in centres])
    y = np.repeat([0.0, 1.0, 2.0], 40)
    return X, y


def test_softmax_rows_sum_to_one():
    P = softmax_rows(np.array([[1000.0, 0.0, -1000.0], [1.0, 1.0, 1.0]]))
    np.testing.assert_allclose(P.sum(axis=1), [1.0, 1.0])
    np.testing.assert_allclose(P[1], [1 / 3] * 3)


def test_softmax_batch_learns_three_classes():
    X, y = three_classes()
    model = Softmax("batch", 1e-3, 0, 300, k=3, training_set=X, expected_results=y)
    model.learn()
    assert model.parameters.shape == (3, 3)
    predictions = np.array([model.classify(x) for x in X])
    assert np.mean(predictions == y) > 0.95
    np.testing.assert_allclose(model.predict(X[0]).sum(), 1.0)


def test_softmax_stochastic_learns_three_classes():
    X, y = three_classes()
    model = Softmax("stochastic", 1e-2, 0, 20, k=3, training_set=X, expected_results=y)
    model.learn()
    assert np.mean([model.classify(x) == label for x, label in zip(X, y)]) > 0.9


def test_softmax_online_moves_every_row():
    model = Softmax(learning_rate=0.1, k=3, features=2)
    snapshot = model.update(Datapoint([1.0, 2.0], [1.0]))
    assert snapshot.shape == (3, 3)
    assert np.all(snapshot[1] > 0)
    assert np.all(snapshot[[0, 2]][:, 0] < 0)
    np.testing.assert_array_equal(snapshot, model.parameters)


def test_softmax_rejects_bad_labels():
    model = Softmax(learning_rate=0.1, k=3, features=1)
    with pytest.raises(InvalidDatapointError):
        model.update(Datapoint([1.0], [3.0]))
    with pytest.raises(InvalidDatapointError):
        model.update(Datapoint([1.0], [0.5]))
    with pytest.raises(InvalidDatapointError):
        Softmax(k=2, training_set=[[0.0], [1.0]], expected_results=[0, 5], max_iterations=1).learn()


def test_softmax_state_shape(tmp_path):
    model = Softmax(k=3, features=2)
    model.persist_to_file(tmp_path / "softmax.json")
    Softmax(k=3, features=2).restore_from_file(tmp_path / "softmax.json")
    with pytest.raises(DimensionMismatchError):
        Softmax(k=2, features=2).restore_from_file(tmp_path / "softmax.json")


def test_softmax_streamed():
    X, y = three_classes()
    order = np.random.default_rng(0).permutation(len(y))
    model = Softmax(learning_rate=0.05, k=3, features=2)
    stream = DataStream()
    learner = OnlineLearner(model, stream).start()
    for _ in range(3):
        stream.extend(Datapoint(X[i], [y[i]]) for i in order)
    stream.close()
    assert learner.join(timeout=10) == []
    assert np.mean([model.classify(x) == label for x, label in zip(X, y)]) > 0.9


# ── LocalLinear ───────────────────────────────────────────────────────────

def test_local_linear_follows_a_curve():
    X = np.linspace(-3, 3, 31).reshape(-1, 1)
    y = X.ravel() ** 2
    model = LocalLinear("batch", 1e-2, 0, bandwidth=0.3, max_iterations=500, training_set=X, expected_results=y)
    assert model.predict([2.0]) == pytest.approx(4.0, abs=0.3)
    assert model.predict([0.0]) == pytest.approx(0.0, abs=0.3)


def test_local_linear_resets_theta_per_query():
    X = np.linspace(-3, 3, 31).reshape(-1, 1)
    y = X.ravel() ** 2
    model = LocalLinear("batch", 1e-2, 0, bandwidth=0.3, max_iterations=200, training_set=X, expected_results=y)
    first = model.predict([2.0])
    model.predict([-2.0])
    assert model.predict([2.0]) == pytest.approx(first)


def test_local_linear_validation():
    with pytest.raises(ValueError):
        LocalLinear(bandwidth=0)
    with pytest.raises(EmptyDatasetError):
        LocalLinear().predict([1.0])
    model = LocalLinear(training_set=[[0.0], [1.0]], expected_results=[0.0, 1.0], max_iterations=1)
    with pytest.raises(DimensionMismatchError):
        model.predict([1.0, 2.0])
