"""
Tests for the metric vector, max-F1 operating point and MetricEvaluator.
"""

import numpy as np
import pandas as pd
import pytest
from conftest import OUTCOME, FakeEngine

from hf_ml.exceptions import DegenerateSampleError
from hf_ml.metrics.discrimination import auroc, mean_squared_error, prauc, stopping_score
from hf_ml.metrics.evaluator import METRIC_NAMES, MetricEvaluator, compute_metrics
from hf_ml.metrics.thresholds import threshold_max_f1
from hf_ml.models.engine import TrainedModel


def rank_auc(y: np.ndarray, p: np.ndarray) -> float:
    """Mann-Whitney AUC from average ranks."""
    ranks = pd.Series(p).rank(method="average").to_numpy()
    n_pos = int(y.sum())
    n_neg = len(y) - n_pos
    return (ranks[y == 1].sum() - n_pos * (n_pos + 1) / 2) / (n_pos * n_neg)


class FixedEngine(FakeEngine):
    """Engine whose scores are the ``p`` column of the data."""

    def score(self, model, data):
        model.require_estimator()
        return data["p"].to_numpy(dtype=float)


def fixed_model() -> TrainedModel:
    return TrainedModel(features=("p",), outcome=OUTCOME, params={}, estimator=object())


class TestDiscrimination:
    def test_auroc_perfect(self):
        assert auroc(np.array([0, 0, 1, 1]), np.array([0.1, 0.4, 0.6, 0.9])) == 1.0

    def test_auroc_single_class_raises(self):
        with pytest.raises(DegenerateSampleError) as exc:
            auroc(np.zeros(10), np.linspace(0, 1, 10))
        assert exc.value.classes == [0]

    def test_prauc_single_class_raises(self):
        with pytest.raises(DegenerateSampleError):
            prauc(np.ones(5), np.linspace(0, 1, 5))

    def test_mse_is_brier(self):
        y = np.array([0, 0, 1, 1])
        p = np.array([0.1, 0.1, 0.9, 0.9])
        assert mean_squared_error(y, p) == pytest.approx(0.01)

    def test_stopping_score_unknown_metric(self):
        with pytest.raises(ValueError, match="Unknown stopping metric"):
            stopping_score("gini", np.array([0, 1]), np.array([0.2, 0.8]))


class TestThresholdMaxF1:
    def test_tie_selects_smallest_threshold(self):
        # F1 = 2/3 both at the top-2 cutoff (p >= 0.8) and at p >= 0.2
        p = np.array([0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3, 0.2])
        y = np.array([1, 1, 0, 0, 0, 0, 1, 1])
        op = threshold_max_f1(y, p)
        assert op.threshold == pytest.approx(0.2)
        assert op.f1 == pytest.approx(2 / 3)
        assert op.precision == pytest.approx(0.5)
        assert op.recall == pytest.approx(1.0)

    def test_recall_is_tpr_at_threshold(self):
        y = np.array([0, 0, 1, 1, 1])
        p = np.array([0.1, 0.3, 0.35, 0.8, 0.9])
        op = threshold_max_f1(y, p)
        predicted = p >= op.threshold
        tpr = (predicted & (y == 1)).sum() / (y == 1).sum()
        precision = (predicted & (y == 1)).sum() / predicted.sum()
        assert op.recall == pytest.approx(tpr)
        assert op.precision == pytest.approx(precision)

    def test_single_class_raises(self):
        with pytest.raises(DegenerateSampleError):
            threshold_max_f1(np.zeros(4), np.array([0.1, 0.2, 0.3, 0.4]))


class TestComputeMetrics:
    def test_vector_has_all_metrics(self):
        rng = np.random.RandomState(0)
        y = rng.randint(0, 2, size=200)
        p = np.clip(y * 0.3 + rng.uniform(size=200) * 0.7, 0, 1)
        vector = compute_metrics(y, p)
        assert set(METRIC_NAMES) <= set(vector.as_dict())
        assert len(vector.values()) == len(METRIC_NAMES)
        for value in vector.values():
            assert 0.0 <= value <= 1.0

    def test_full_precision_is_kept(self):
        y = np.array([0, 1, 0, 1, 1, 0, 1])
        p = np.array([0.11, 0.52, 0.33, 0.71, 0.45, 0.2, 0.9])
        vector = compute_metrics(y, p)
        assert vector.mse == pytest.approx(float(np.mean((y - p) ** 2)), abs=0)
        assert vector.mse != round(vector.mse, 3)

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="Length mismatch"):
            compute_metrics(np.array([0, 1]), np.array([0.5]))


class TestMetricEvaluator:
    def test_auc_matches_rank_formula(self):
        """Known fixed predictions on 100 records: AUC equals the rank-based AUC."""
        rng = np.random.RandomState(42)
        y = rng.randint(0, 2, size=100)
        p = np.round(np.clip(0.35 * y + rng.uniform(size=100) * 0.65, 0, 1), 2)
        data = pd.DataFrame({"p": p, OUTCOME: y})

        vector = MetricEvaluator(FixedEngine()).evaluate(fixed_model(), data)

        assert round(vector.auc, 3) == round(rank_auc(y, p), 3)

    def test_all_negative_test_set_raises(self):
        data = pd.DataFrame({"p": np.linspace(0.01, 0.99, 50), OUTCOME: np.zeros(50, dtype=int)})
        with pytest.raises(DegenerateSampleError):
            MetricEvaluator(FixedEngine()).evaluate(fixed_model(), data)

    def test_predict_returns_labels_and_scores(self):
        data = pd.DataFrame({"p": [0.2, 0.7, 0.4], OUTCOME: [0, 1, 1]})
        y, p = MetricEvaluator(FixedEngine()).predict(fixed_model(), data)
        np.testing.assert_array_equal(y, [0, 1, 1])
        np.testing.assert_allclose(p, [0.2, 0.7, 0.4])
