import queue
import threading

import numpy as np
import pytest

from gradstream.core.errors import (
    DimensionMismatchError,
    DivergenceError,
    InvalidDatapointError,
    StreamClosedError,
)
from gradstream.core.model import Datapoint
from gradstream.core.stream import CLOSED, DataStream, ErrorChannel, OnlineLearner, consume
from gradstream.linear.least_squares import LeastSquares
from gradstream.linear.logistic import Logistic


def identity_points(n=200):
    rng = np.random.default_rng(0)
    for x in rng.uniform(-1, 1, size=n):
        yield Datapoint([x], [x])


# ── DataStream ────────────────────────────────────────────────────────────

def test_stream_preserves_order_and_closes():
    stream = DataStream()
    stream.extend([1, 2, 3])
    stream.close()
    assert list(stream) == [1, 2, 3]
    assert stream.get() is CLOSED
    assert stream.get() is CLOSED


def test_put_after_close_raises():
    stream = DataStream()
    stream.close()
    stream.close()
    with pytest.raises(StreamClosedError):
        stream.put(Datapoint([1.0], [1.0]))


# ── ErrorChannel ──────────────────────────────────────────────────────────

def test_error_channel_drain_and_callbacks():
    seen, completed = [], []
    errors = ErrorChannel(on_error=seen.append, on_complete=lambda: completed.append(True))
    problem = ValueError("bad")
    errors.report(problem)
    errors.close()
    assert errors.closed
    assert errors.drain(timeout=1) == [problem]
    assert seen == [problem]
    assert completed == [True]


def test_error_channel_report_after_close_raises():
    errors = ErrorChannel()
    errors.close()
    with pytest.raises(StreamClosedError):
        errors.report(RuntimeError("late"))


def test_drain_times_out_while_open():
    with pytest.raises(TimeoutError):
        ErrorChannel().drain(timeout=0.01)


# ── consume ───────────────────────────────────────────────────────────────

def test_missing_stream_is_reported_and_channel_closed():
    errors = ErrorChannel()
    assert consume(None, errors, lambda item: item) == 0
    problems = errors.drain(timeout=1)
    assert len(problems) == 1
    assert isinstance(problems[0], StreamClosedError)


def test_bad_point_is_skipped_without_touching_model():
    model = LeastSquares(learning_rate=0.1, features=1)
    stream = DataStream()
    stream.put(Datapoint([1.0], [1.0]))
    stream.put(Datapoint([1.0, 2.0], [3.0]))
    stream.close()

    errors = ErrorChannel()
    snapshots = []
    model.update_stream(stream)

    first = model.parameters.copy()
    updates = model.online_learn(errors, on_update=snapshots.append)

    problems = errors.drain(timeout=1)
    assert updates == 1
    assert len(problems) == 1
    assert isinstance(problems[0], DimensionMismatchError)
    assert len(snapshots) == 1
    np.testing.assert_array_equal(snapshots[0], model.parameters)
    assert not np.array_equal(first, model.parameters)


def test_points_after_a_bad_one_are_still_learned():
    model = LeastSquares(learning_rate=0.1, features=1)
    stream = DataStream()
    stream.put(Datapoint([1.0, 2.0], [3.0]))
    stream.extend(identity_points(300))
    stream.close()

    learner = OnlineLearner(model, stream).start()
    problems = learner.join(timeout=10)
    assert len(problems) == 1
    assert model.predict([0.5]) == pytest.approx(0.5, abs=0.05)


def test_divergence_is_reported_and_skipped():
    calls = []

    def step(item):
        calls.append(item)
        if item == "boom":
            raise DivergenceError()
        return item

    stream = DataStream()
    stream.extend(["a", "boom", "b"])
    stream.close()
    errors = ErrorChannel()
    assert consume(stream, errors, step) == 2
    assert calls == ["a", "boom", "b"]
    assert [type(e) for e in errors.drain(timeout=1)] == [DivergenceError]


def test_stop_on_divergence_stops_consuming():
    calls = []

    def step(item):
        calls.append(item)
        if item == "boom":
            raise DivergenceError()
        return item

    stream = DataStream()
    stream.extend(["a", "boom", "b"])
    stream.close()
    errors = ErrorChannel()
    assert consume(stream, errors, step, stop_on_divergence=True) == 1
    assert calls == ["a", "boom"]
    assert errors.closed


def test_none_snapshot_means_no_callback():
    stream = DataStream()
    stream.extend([1, 2, 3])
    stream.close()
    seen = []
    errors = ErrorChannel()
    updates = consume(stream, errors, lambda item: None if item == 2 else item, on_update=seen.append)
    errors.drain(timeout=1)
    assert updates == 2
    assert sorted(seen) == [1, 3]


def test_callback_failure_is_reported():
    stream = DataStream()
    stream.extend([1])
    stream.close()

    def explode(snapshot):
        raise RuntimeError("callback failed")

    errors = ErrorChannel()
    consume(stream, errors, lambda item: item, on_update=explode)
    problems = errors.drain(timeout=1)
    assert len(problems) == 1
    assert isinstance(problems[0], RuntimeError)


def test_slow_callback_does_not_block_ingestion():
    release = threading.Event()
    consumed = []

    def slow(snapshot):
        release.wait(5)

    def step(item):
        consumed.append(item)
        return item

    stream = DataStream()
    stream.extend(range(20))
    stream.close()
    errors = ErrorChannel()

    worker = threading.Thread(target=consume, args=(stream, errors, step), kwargs={"on_update": slow})
    worker.start()
    # every item is consumed while all callbacks are still blocked
    for _ in range(500):
        if len(consumed) == 20:
            break
        threading.Event().wait(0.01)
    assert len(consumed) == 20
    assert not errors.closed

    release.set()
    worker.join(5)
    assert errors.closed


def test_snapshots_are_copies():
    model = LeastSquares(learning_rate=0.1, features=1)
    stream = DataStream()
    stream.extend(identity_points(5))
    stream.close()
    snapshots = []
    learner = OnlineLearner(model, stream, on_update=snapshots.append).start()
    learner.join(timeout=5)
    assert len(snapshots) == 5
    assert len({s.tobytes() for s in snapshots}) == 5


def test_online_learner_completion_callback():
    done = threading.Event()
    model = Logistic(learning_rate=0.5, features=1)
    stream = DataStream()
    learner = OnlineLearner(model, stream, on_complete=done.set).start()
    stream.put(Datapoint([2.0], [1.0]))
    stream.put(Datapoint([-2.0], [0.0]))
    stream.put(Datapoint([1.0], [7.0]))
    assert learner.running or done.is_set()
    stream.close()
    problems = learner.join(timeout=5)
    assert done.wait(1)
    assert not learner.running
    assert [type(p) for p in problems] == [InvalidDatapointError]
    assert model.classify([3.0]) == 1


def test_invalid_datapoint_is_a_value_error():
    assert issubclass(InvalidDatapointError, ValueError)


# ── bounded streams ───────────────────────────────────────────────────────

def test_close_never_blocks_on_a_full_stream():
    stream = DataStream(maxsize=1)
    stream.put(1)
    stream.close()
    assert list(stream) == [1]


def test_put_times_out_on_a_full_stream():
    stream = DataStream(maxsize=1)
    stream.put(1)
    with pytest.raises(queue.Full):
        stream.put(2, timeout=0.01)
    assert len(stream) == 1


def test_abort_drops_queued_items():
    stream = DataStream()
    stream.extend([1, 2, 3])
    assert stream.abort() == 3
    assert stream.aborted and stream.closed
    assert stream.get() is CLOSED
    with pytest.raises(StreamClosedError):
        stream.put(4)


def test_fatal_divergence_releases_a_blocked_producer():
    stream = DataStream(maxsize=2)
    outcome = []
    done = threading.Event()

    def producer():
        try:
            for i in range(10):
                stream.put(i)
        except StreamClosedError:
            outcome.append("rejected")
        stream.close()
        done.set()

    def step(item):
        raise DivergenceError()

    thread = threading.Thread(target=producer)
    thread.start()
    errors = ErrorChannel()
    assert consume(stream, errors, step, stop_on_divergence=True) == 0

    assert done.wait(5)
    thread.join(5)
    assert outcome == ["rejected"]
    assert [type(e) for e in errors.drain(timeout=1)] == [DivergenceError]


def test_diverging_point_leaves_model_untouched():
    model = LeastSquares(learning_rate=0.1, features=1)
    stream = DataStream()
    stream.put(Datapoint([1.0], [1.0]))
    stream.put(Datapoint([1e200], [1e200]))
    stream.extend(identity_points(300))
    stream.close()

    snapshots = []
    learner = OnlineLearner(model, stream, on_update=snapshots.append).start()
    problems = learner.join(timeout=10)

    assert [type(p) for p in problems] == [DivergenceError]
    assert len(snapshots) == 301
    assert np.all(np.isfinite(model.parameters))
    assert model.predict([0.5]) == pytest.approx(0.5, abs=0.05)


def test_diverging_update_is_discarded():
    model = LeastSquares(learning_rate=0.1, features=1)
    model.update(Datapoint([1.0], [1.0]))
    before = model.parameters.copy()
    with pytest.raises(DivergenceError):
        model.update(Datapoint([1e200], [1e200]))
    np.testing.assert_array_equal(model.parameters, before)
