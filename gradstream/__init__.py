"""gradstream: gradient-ascent learners with a streaming (online) training protocol."""

from gradstream.core import (
    CLOSED,
    Datapoint,
    DataStream,
    DimensionMismatchError,
    DivergenceError,
    EmptyDatasetError,
    ErrorChannel,
    GradstreamError,
    InvalidConfigurationError,
    InvalidDatapointError,
    OnlineLearner,
    OptimizationMethod,
    StreamClosedError,
    TextDatapoint,
    gradient_ascent,
    stochastic_gradient_ascent,
)

__version__ = "0.1.0"
