from gradstream.core.errors import (
    DimensionMismatchError,
    DivergenceError,
    EmptyDatasetError,
    GradstreamError,
    InvalidConfigurationError,
    InvalidDatapointError,
    StreamClosedError,
)
from gradstream.core.model import (
    DEFAULT_MAX_ITERATIONS,
    Datapoint,
    GradientModel,
    OptimizationMethod,
    StochasticGradientModel,
    TextDatapoint,
)
from gradstream.core.optimize import gradient_ascent, stochastic_gradient_ascent
from gradstream.core.stream import CLOSED, DataStream, ErrorChannel, OnlineLearner, consume
