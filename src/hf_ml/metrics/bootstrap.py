"""
Percentile bootstrap confidence intervals for the reporting metric vector.

The test set is scored once; each of the R resamples draws test-record indices
with replacement from a seeded ``np.random.RandomState`` and computes every
metric on that same draw, so the metrics of one resample are jointly
consistent. Only the current index vector is held in memory. Resamples with a
single outcome class are excluded; if more than ``max_degenerate_frac`` of them
are, the intervals are reported as unreliable.
"""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np
import pandas as pd

from hf_ml.exceptions import DegenerateSampleError, UnreliableBootstrapError
from hf_ml.metrics.evaluator import METRIC_NAMES, MetricEvaluator, compute_metrics
from hf_ml.models.engine import TrainedModel

logger = logging.getLogger(__name__)


def _percentile_ci(vals: np.ndarray, alpha: float = 0.05) -> tuple[float, float]:
    """Compute CI using simple percentile method."""
    lower_pct = 100 * (alpha / 2)
    upper_pct = 100 * (1 - alpha / 2)
    return (float(np.percentile(vals, lower_pct)), float(np.percentile(vals, upper_pct)))


@dataclass(frozen=True)
class MetricEstimate:
    """Full-sample point estimate with its percentile interval."""

    point: float
    lower: float
    upper: float

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def format(self, digits: int = 3) -> str:
        """Render as ``"0.812 (0.790, 0.833)"``."""
        return f"{self.point:.{digits}f} ({self.lower:.{digits}f}, {self.upper:.{digits}f})"


@dataclass(frozen=True)
class PerformanceReport(Mapping):
    """
    Read-only mapping from metric name to MetricEstimate.

    Attributes:
        estimates: Metric name -> estimate, in METRIC_NAMES order
        n_resamples: Resamples drawn
        n_degenerate: Resamples excluded for holding a single class
        threshold: Max-F1 threshold on the full test set
        alpha: Two-sided interval level (0.05 -> 2.5th/97.5th percentiles)
    """

    estimates: Mapping[str, MetricEstimate]
    n_resamples: int
    n_degenerate: int
    threshold: float
    alpha: float = 0.05

    def __post_init__(self):
        object.__setattr__(self, "estimates", MappingProxyType(dict(self.estimates)))

    def __getitem__(self, key: str) -> MetricEstimate:
        return self.estimates[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.estimates)

    def __len__(self) -> int:
        return len(self.estimates)

    @property
    def n_valid(self) -> int:
        return self.n_resamples - self.n_degenerate

    def formatted(self, digits: int = 3) -> dict[str, str]:
        return {name: est.format(digits) for name, est in self.estimates.items()}


class BootstrapEvaluator:
    """
    Resampling-based robustness estimates for a trained model.

    Args:
        evaluator: MetricEvaluator used to score the model once on the test set
        n_resamples: Number of bootstrap resamples R
        seed: Seed for the resampling RNG
        alpha: Interval level (0.05 -> 95% percentile interval)
        max_degenerate_frac: Largest tolerated fraction of single-class resamples
    """

    def __init__(
        self,
        evaluator: MetricEvaluator,
        n_resamples: int = 1000,
        seed: int = 1,
        alpha: float = 0.05,
        max_degenerate_frac: float = 0.5,
    ):
        if n_resamples < 1:
            raise ValueError(f"n_resamples must be >= 1, got {n_resamples}")
        if not 0.0 < alpha < 1.0:
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")
        self.evaluator = evaluator
        self.n_resamples = int(n_resamples)
        self.seed = seed
        self.alpha = alpha
        self.max_degenerate_frac = max_degenerate_frac

    def evaluate(self, model: TrainedModel, data: pd.DataFrame) -> PerformanceReport:
        """
        Score ``model`` on ``data`` and bootstrap the metric vector.

        Raises:
            DegenerateSampleError: If the full test set holds a single class
            UnreliableBootstrapError: If too many resamples are degenerate
        """
        y, p = self.evaluator.predict(model, data)
        return self.evaluate_predictions(y, p)

    def evaluate_predictions(self, y_true: np.ndarray, p: np.ndarray) -> PerformanceReport:
        """Bootstrap the metric vector over fixed (label, probability) pairs."""
        y_true = np.asarray(y_true).astype(int)
        p = np.asarray(p).astype(float)
        point = compute_metrics(y_true, p)

        n = len(y_true)
        rng = np.random.RandomState(self.seed)
        draws = np.empty((self.n_resamples, len(METRIC_NAMES)), dtype=float)
        valid = np.zeros(self.n_resamples, dtype=bool)
        for i in range(self.n_resamples):
            idx = rng.randint(0, n, size=n)
            try:
                draws[i] = compute_metrics(y_true[idx], p[idx]).values()
            except DegenerateSampleError:
                continue
            valid[i] = True

        n_degenerate = int(self.n_resamples - valid.sum())
        frac = n_degenerate / self.n_resamples
        if frac > self.max_degenerate_frac or not valid.any():
            raise UnreliableBootstrapError(
                f"{n_degenerate}/{self.n_resamples} bootstrap resamples contain a single "
                f"outcome class (> {self.max_degenerate_frac:.0%} allowed)",
                n_degenerate=n_degenerate,
                n_resamples=self.n_resamples,
            )
        if n_degenerate:
            logger.info(f"Excluded {n_degenerate}/{self.n_resamples} degenerate resamples")

        kept = draws[valid]
        estimates = {}
        for j, name in enumerate(METRIC_NAMES):
            lower, upper = _percentile_ci(kept[:, j], self.alpha)
            estimates[name] = MetricEstimate(point=getattr(point, name), lower=lower, upper=upper)

        return PerformanceReport(
            estimates=estimates,
            n_resamples=self.n_resamples,
            n_degenerate=n_degenerate,
            threshold=point.threshold,
            alpha=self.alpha,
        )
