"""
Metric vector for a scored sample.

MetricEvaluator scores a TrainedModel on a dataset through the boosting engine
and computes the full reporting vector in one pass. ``compute_metrics`` is the
pure (labels, probabilities) core, shared with the bootstrap which indexes
already-computed predictions instead of rescoring.
"""

from dataclasses import asdict, dataclass

import numpy as np
import pandas as pd

from hf_ml.data.io import encode_label
from hf_ml.metrics.discrimination import auroc, check_both_classes, mean_squared_error, prauc
from hf_ml.metrics.thresholds import threshold_max_f1
from hf_ml.models.engine import BoostingEngine, TrainedModel

# Reported metrics, in report column order
METRIC_NAMES: tuple[str, ...] = ("auc", "mse", "aucpr", "f1", "precision", "recall")


@dataclass(frozen=True)
class MetricVector:
    """Full-precision metrics for one sample; ``threshold`` is the max-F1 cutoff."""

    auc: float
    mse: float
    aucpr: float
    f1: float
    precision: float
    recall: float
    threshold: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)

    def values(self) -> list[float]:
        """Metric values in METRIC_NAMES order."""
        return [getattr(self, name) for name in METRIC_NAMES]


def compute_metrics(y_true: np.ndarray, p: np.ndarray) -> MetricVector:
    """
    Compute the reporting metric vector from labels and predicted probabilities.

    Args:
        y_true: True binary labels (0/1)
        p: Predicted probabilities for the positive class

    Returns:
        MetricVector at full precision

    Raises:
        DegenerateSampleError: If the sample contains a single outcome class
    """
    y_true = np.asarray(y_true).astype(int)
    p = np.asarray(p).astype(float)
    if len(y_true) != len(p):
        raise ValueError(f"Length mismatch: {len(y_true)} labels vs {len(p)} predictions")
    check_both_classes(y_true, "Metric vector")

    op = threshold_max_f1(y_true, p)
    return MetricVector(
        auc=auroc(y_true, p),
        mse=mean_squared_error(y_true, p),
        aucpr=prauc(y_true, p),
        f1=op.f1,
        precision=op.precision,
        recall=op.recall,
        threshold=op.threshold,
    )


class MetricEvaluator:
    """Scores a model with its engine and computes the metric vector."""

    def __init__(self, engine: BoostingEngine):
        self.engine = engine

    def predict(self, model: TrainedModel, data: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
        """Return (labels, predicted probabilities) for ``data``."""
        y = encode_label(data[model.outcome])
        p = np.asarray(self.engine.score(model, data), dtype=float)
        return y, p

    def evaluate(self, model: TrainedModel, data: pd.DataFrame) -> MetricVector:
        """
        Score ``model`` on ``data`` and compute all metrics.

        Raises:
            DegenerateSampleError: If ``data`` holds a single outcome class
        """
        y, p = self.predict(model, data)
        return compute_metrics(y, p)
