"""
Discrimination and probability-error metrics for binary outcome models.

- AUROC (Area Under ROC Curve)
- PR-AUC (average precision)
- MSE of predicted probabilities (Brier score)
- Log loss

Ranking metrics are undefined when a sample holds a single outcome class; they
raise DegenerateSampleError instead of returning NaN so that callers can decide
whether the sample is skipped (bootstrap) or the unit fails (test set).

References:
    - Hanley & McNeil (1982). The meaning and use of the area under a ROC curve.
    - Davis & Goadrich (2006). The relationship between PR and ROC curves.
"""

from collections.abc import Callable

import numpy as np
from sklearn.metrics import average_precision_score, log_loss, roc_auc_score

from hf_ml.exceptions import DegenerateSampleError


def check_both_classes(y_true: np.ndarray, metric_name: str = "metric") -> None:
    """
    Raise if ``y_true`` does not contain both classes.

    Raises:
        DegenerateSampleError: If only one class (or no record) is present
    """
    classes = np.unique(y_true).tolist()
    if len(classes) < 2:
        raise DegenerateSampleError(
            f"{metric_name} requires both classes (0 and 1) in y_true, found {classes}",
            classes=classes,
        )


def auroc(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Compute Area Under the ROC Curve (AUROC).

    Args:
        y_true: True binary labels (0/1), shape (n_samples,)
        y_pred: Predicted probabilities for positive class, shape (n_samples,)

    Returns:
        AUROC in [0.0, 1.0]

    Raises:
        DegenerateSampleError: If only one class is present

    Examples:
        >>> y_true = np.array([0, 0, 1, 1])
        >>> y_pred = np.array([0.1, 0.4, 0.6, 0.9])
        >>> auroc(y_true, y_pred)
        1.0
    """
    y_true = np.asarray(y_true).astype(int)
    y_pred = np.asarray(y_pred).astype(float)
    check_both_classes(y_true, "AUROC")
    return float(roc_auc_score(y_true, y_pred))


def prauc(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Compute Precision-Recall Area Under Curve as average precision.

    More informative than AUROC when the positive class is rare (WHF events
    are a minority of encounters). Baseline equals prevalence.

    Raises:
        DegenerateSampleError: If only one class is present
    """
    y_true = np.asarray(y_true).astype(int)
    y_pred = np.asarray(y_pred).astype(float)
    check_both_classes(y_true, "PR-AUC")
    return float(average_precision_score(y_true, y_pred))


def mean_squared_error(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Mean squared error of predicted probabilities against 0/1 labels (Brier score).

    Defined for single-class samples as well. Lower is better.

    Examples:
        >>> y_true = np.array([0, 0, 1, 1])
        >>> y_pred = np.array([0.1, 0.1, 0.9, 0.9])
        >>> round(mean_squared_error(y_true, y_pred), 6)
        0.01
    """
    y_true = np.asarray(y_true).astype(float)
    y_pred = np.asarray(y_pred).astype(float)
    return float(np.mean((y_true - y_pred) ** 2))


def compute_log_loss(y_true: np.ndarray, y_pred: np.ndarray, eps: float = 1e-15) -> float:
    """
    Compute log loss with probabilities clipped to [eps, 1-eps].

    Lower is better; log(2) ~ 0.693 for a constant 0.5 predictor.
    """
    y_true = np.asarray(y_true).astype(int)
    y_pred = np.clip(np.asarray(y_pred).astype(float), eps, 1.0 - eps)
    return float(log_loss(y_true, y_pred, labels=[0, 1]))


# Stopping metrics available to the hyperparameter search
STOPPING_SCORERS: dict[str, Callable[[np.ndarray, np.ndarray], float]] = {
    "auc": auroc,
    "aucpr": prauc,
    "mse": mean_squared_error,
    "logloss": compute_log_loss,
}


def stopping_score(metric: str, y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Score predictions with a named stopping metric."""
    try:
        scorer = STOPPING_SCORERS[metric]
    except KeyError:
        raise ValueError(
            f"Unknown stopping metric '{metric}' (expected one of {sorted(STOPPING_SCORERS)})"
        ) from None
    return scorer(y_true, y_pred)
