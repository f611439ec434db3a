from gradstream.evaluation.batch_vs_online import (
    compare,
    run_batch_classifier,
    run_clustering,
    run_online_classifier,
    run_regression,
)
from gradstream.evaluation.sliding_window_evaluator import SlidingWindowEvaluator, WindowMetrics
