"""Performance metrics, operating points and bootstrap intervals."""

from hf_ml.metrics.bootstrap import BootstrapEvaluator, MetricEstimate, PerformanceReport
from hf_ml.metrics.discrimination import (
    STOPPING_SCORERS,
    auroc,
    compute_log_loss,
    mean_squared_error,
    prauc,
    stopping_score,
)
from hf_ml.metrics.evaluator import METRIC_NAMES, MetricEvaluator, MetricVector, compute_metrics
from hf_ml.metrics.thresholds import OperatingPoint, threshold_max_f1

__all__ = [
    "BootstrapEvaluator",
    "MetricEstimate",
    "PerformanceReport",
    "STOPPING_SCORERS",
    "auroc",
    "compute_log_loss",
    "mean_squared_error",
    "prauc",
    "stopping_score",
    "METRIC_NAMES",
    "MetricEvaluator",
    "MetricVector",
    "compute_metrics",
    "OperatingPoint",
    "threshold_max_f1",
]
