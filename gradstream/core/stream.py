"""
stream.py
─────────
The streaming ("online") learning protocol every online model reuses.

Pipeline position
─────────────────
    producer thread(s)                     consumer thread
    ──────────────────                     ───────────────
    stream.put(Datapoint) ──► DataStream ──► consume(step) ──► θ / centroids
    stream.close()                              │
                                                ├── errors.report(err)   (bad point, divergence)
                                                ├── on_update(copy)      (worker thread)
                                                └── errors.close()       (stream drained)

Contract
────────
* Items are processed strictly in arrival order, one at a time.
* A point that fails validation is reported on the ErrorChannel and skipped;
  the model is not touched and the stream keeps going.
* Divergence is reported and the update discarded, but the consumer keeps
  draining.  In the batch optimizers it is fatal.  Pass
  ``stop_on_divergence=True`` to get the fatal behaviour instead.
* After each mutation the callback gets a *copy* of the state on a worker
  thread, so a slow callback (say, persisting to a database) never stalls
  ingestion.  Callbacks may run concurrently; each sees the snapshot of the
  update it reports.
* Closing the DataStream ends learning normally; with
  ``stop_on_divergence=True`` the consumer aborts it instead, which drops
  queued items and makes further puts raise StreamClosedError.  Once it is
  closed and drained (or aborted), pending callbacks are awaited and the
  ErrorChannel is closed.  Callers know training finished by draining the
  ErrorChannel until closure.
"""

import queue
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Iterable, Iterator

from loguru import logger

from gradstream.core.errors import DivergenceError, GradstreamError, StreamClosedError


class _Closed:
    """Sentinel returned by DataStream.get() once the stream is closed and drained."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CLOSED"

    def __bool__(self) -> bool:
        return False


CLOSED = _Closed()


# ─────────────────────────────────────────────────────────────────────────────
# Data side
# ─────────────────────────────────────────────────────────────────────────────

class DataStream:
    """Closable multi-producer / single-consumer FIFO.

    Parameters
    ----------
    maxsize : int, default=0
        Capacity of the buffer; 0 means unbounded.  With a bound, ``put``
        blocks while the consumer catches up.

    close() never blocks, even on a full buffer, and wakes any producer
    waiting for room.  abort() is the consumer's side of the same thing: it
    also discards whatever is still queued.
    """

    def __init__(self, maxsize: int = 0):
        self._items: deque = deque()
        self._maxsize = int(maxsize)
        self._cond = threading.Condition()
        self._closed = False
        self._aborted = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._aborted

    def _has_room(self) -> bool:
        return self._closed or self._maxsize <= 0 or len(self._items) < self._maxsize

    def put(self, item: Any, timeout: float | None = None) -> None:
        """Enqueue *item*.

        Raises
        ------
        StreamClosedError
            The stream was closed (or aborted) before the item went in.
        queue.Full
            *timeout* elapsed while the buffer stayed full.
        """
        with self._cond:
            if not self._cond.wait_for(self._has_room, timeout):
                raise queue.Full
            if self._closed:
                raise StreamClosedError("cannot put into a closed data stream")
            self._items.append(item)
            self._cond.notify_all()

    def extend(self, items: Iterable[Any]) -> int:
        """Enqueue every item of *items*; returns how many were pushed."""
        count = 0
        for item in items:
            self.put(item)
            count += 1
        return count

    def close(self) -> None:
        """Signal end-of-data.  Idempotent.  Items already queued are still delivered."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def abort(self) -> int:
        """Close the stream and drop every queued item; returns how many were dropped.

        Called by the consumer when it stops early, so producers blocked on a
        full buffer get StreamClosedError instead of waiting forever.
        """
        with self._cond:
            dropped = len(self._items)
            self._items.clear()
            self._closed = True
            self._aborted = True
            self._cond.notify_all()
        return dropped

    def get(self, timeout: float | None = None) -> Any:
        """Block for the next item; returns ``CLOSED`` once closed and drained.

        Raises ``queue.Empty`` if *timeout* elapses first.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._items or self._closed, timeout):
                raise queue.Empty
            if not self._items:
                return CLOSED
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        while True:
            item = self.get()
            if item is CLOSED:
                return
            yield item

    def __repr__(self) -> str:
        state = "aborted" if self._aborted else "closed" if self._closed else "open"
        return f"DataStream({state}, pending={len(self)})"


# ─────────────────────────────────────────────────────────────────────────────
# Error / completion side
# ─────────────────────────────────────────────────────────────────────────────

class ErrorChannel:
    """Closable queue of learning errors; closure means "training finished".

    Parameters
    ----------
    on_error : callable(exception) | None
        Invoked (on the consumer thread) for every reported error, in
        addition to queueing it.
    on_complete : callable() | None
        Invoked once, when the channel is closed.
    """

    def __init__(
        self,
        on_error: Callable[[BaseException], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ):
        self._queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._on_error = on_error
        self._on_complete = on_complete

    @property
    def closed(self) -> bool:
        return self._done.is_set()

    def report(self, error: BaseException) -> None:
        with self._lock:
            if self._done.is_set():
                raise StreamClosedError(f"error channel already closed; dropped {error!r}")
            self._queue.put(error)
        if self._on_error is not None:
            self._on_error(error)

    def close(self) -> None:
        with self._lock:
            if self._done.is_set():
                return
            self._queue.put(CLOSED)
            self._done.set()
        if self._on_complete is not None:
            self._on_complete()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the channel is closed.  Returns False on timeout."""
        return self._done.wait(timeout)

    def __iter__(self) -> Iterator[BaseException]:
        """Yield reported errors until the channel is closed."""
        while True:
            item = self._queue.get()
            if item is CLOSED:
                self._queue.put(CLOSED)
                return
            yield item

    def drain(self, timeout: float | None = None) -> list[BaseException]:
        """Wait for closure, then return every error that was reported.

        Raises
        ------
        TimeoutError
            If the channel is still open after *timeout* seconds.
        """
        if not self.wait(timeout):
            raise TimeoutError(f"learning did not finish within {timeout}s")
        return list(self)


# ─────────────────────────────────────────────────────────────────────────────
# The consumer loop
# ─────────────────────────────────────────────────────────────────────────────

StepFn = Callable[[Any], Any]


def consume(
    stream: DataStream | None,
    errors: ErrorChannel,
    step: StepFn,
    on_update: Callable[[Any], None] | None = None,
    name: str = "model",
    stop_on_divergence: bool = False,
    callback_workers: int = 4,
) -> int:
    """Drain *stream* through *step* until it is closed, then close *errors*.

    Parameters
    ----------
    stream : DataStream | None
        Source of items.  ``None`` is reported as an error and the channel is
        closed straight away.
    errors : ErrorChannel
    step : callable(item) -> snapshot | None
        Validates the item and applies one update.  Returns a copy of the
        new state, or None when the item caused no mutation.  Raises a
        GradstreamError subclass for anything that should be reported.
    on_update : callable(snapshot) | None
        Run on a worker thread after every mutation.
    name : str
        Used in log lines and worker thread names.
    stop_on_divergence : bool, default=False
        Treat DivergenceError as fatal: stop consuming, abort the stream so
        producers are released, and close the channel.

    Returns
    -------
    updates : int — number of items that mutated the model.
    """
    if stream is None:
        err = StreamClosedError(f"{name}: attempting to learn with no data stream")
        logger.error(str(err))
        errors.report(err)
        errors.close()
        return 0

    updates = 0
    seen = 0
    executor = ThreadPoolExecutor(max_workers=callback_workers, thread_name_prefix=f"{name}-update")

    def _forward_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("{}: update callback raised {!r}", name, exc)
            errors.report(exc)

    logger.debug("{}: online learning started", name)
    try:
        for item in stream:
            seen += 1
            try:
                snapshot = step(item)
            except DivergenceError as err:
                logger.warning("{}: {} (item #{})", name, err, seen)
                errors.report(err)
                if stop_on_divergence:
                    logger.error("{}: stopping online learning after divergence", name)
                    dropped = stream.abort()
                    if dropped:
                        logger.debug("{}: discarded {} queued items", name, dropped)
                    break
                continue
            except GradstreamError as err:
                logger.warning("{}: skipped item #{}: {}", name, seen, err)
                errors.report(err)
                continue

            if snapshot is None:
                continue

            updates += 1
            if on_update is not None:
                executor.submit(on_update, snapshot).add_done_callback(_forward_failure)
    finally:
        executor.shutdown(wait=True)
        errors.close()

    logger.info("{}: online learning completed ({} items, {} updates)", name, seen, updates)
    return updates


class OnlineLearner:
    """Run a model's ``online_learn`` on its own daemon thread.

    Example
    -------
    >>> stream = DataStream()
    >>> learner = OnlineLearner(model, stream, on_update=print).start()
    >>> stream.extend(points); stream.close()
    >>> problems = learner.join(timeout=10)
    """

    def __init__(
        self,
        model,
        stream: DataStream | None = None,
        on_update: Callable[[Any], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        on_complete: Callable[[], None] | None = None,
        **learn_kwargs,
    ):
        if stream is not None:
            model.update_stream(stream)
        self.model = model
        self.errors = ErrorChannel(on_error=on_error, on_complete=on_complete)
        self._thread = threading.Thread(
            target=model.online_learn,
            args=(self.errors,),
            kwargs=dict(on_update=on_update, **learn_kwargs),
            name=f"{type(model).__name__}-online",
            daemon=True,
        )

    def start(self) -> "OnlineLearner":
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> list[BaseException]:
        """Wait for the stream to be drained; return every reported error."""
        problems = self.errors.drain(timeout)
        self._thread.join(timeout)
        return problems

    @property
    def running(self) -> bool:
        return self._thread.is_alive()
