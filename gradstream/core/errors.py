"""
errors.py
─────────
Exception hierarchy shared by every model, optimizer and stream.

Each class also inherits from the builtin that best describes it, so callers
that only know about ``ValueError`` / ``ArithmeticError`` still catch them.

    DivergenceError          – θ became ±inf / NaN after an update
    DimensionMismatchError   – feature vector length disagrees with the model
    EmptyDatasetError        – nothing (or zero features) to train on
    InvalidConfigurationError – unknown optimisation method, bad k, ...
    StreamClosedError        – put() on a DataStream that was already closed
    InvalidDatapointError    – a streamed label the model cannot use
"""


class GradstreamError(Exception):
    """Base class for all errors raised by gradstream."""


class DivergenceError(GradstreamError, ArithmeticError):
    """Learning diverged: some parameter is ±Inf or NaN."""

    def __init__(self, message: str = "learning diverged: some value of the parameter vector θ is ±Inf or NaN"):
        super().__init__(message)


class DimensionMismatchError(GradstreamError, ValueError):
    """Input dimensionality does not match the model's parameters."""

    def __init__(self, expected: int, got: int, what: str = "feature vector"):
        self.expected = expected
        self.got = got
        super().__init__(f"Expected {what} of length {expected}, got {got}.")


class EmptyDatasetError(GradstreamError, ValueError):
    """Raised before the first iteration when there is nothing to learn from."""


class InvalidConfigurationError(GradstreamError, ValueError):
    """A hyper-parameter or selector was rejected before any work began."""


class StreamClosedError(GradstreamError, RuntimeError):
    """A producer tried to push into a stream that has been closed."""


class InvalidDatapointError(GradstreamError, ValueError):
    """A streamed point is well-shaped but its label is unusable (class out of range, ...)."""
