"""Operating-point selection on the precision-recall curve."""

from dataclasses import dataclass

import numpy as np
from sklearn.metrics import precision_recall_curve

from hf_ml.metrics.discrimination import check_both_classes


@dataclass(frozen=True)
class OperatingPoint:
    """Classification metrics at one decision threshold (predict positive if p >= threshold)."""

    threshold: float
    f1: float
    precision: float
    recall: float


def threshold_max_f1(y_true: np.ndarray, p: np.ndarray) -> OperatingPoint:
    """Find the threshold that maximizes F1-score.

    Every distinct predicted probability is a candidate threshold. When several
    thresholds reach the same maximal F1 the smallest one is chosen.

    Args:
        y_true: True binary labels (0/1)
        p: Predicted probabilities [0, 1]

    Returns:
        OperatingPoint with the threshold, its F1, precision and recall (TPR)

    Raises:
        DegenerateSampleError: If only one class is present

    Notes:
        - F1 = 2 * (precision * recall) / (precision + recall), 0 where undefined
        - precision_recall_curve returns thresholds in increasing order, so the
          first argmax is the smallest tied threshold
    """
    y_true = np.asarray(y_true).astype(int)
    p = np.asarray(p).astype(float)
    check_both_classes(y_true, "F1 threshold")

    prec, rec, thr = precision_recall_curve(y_true, p)
    # Final (precision=1, recall=0) point has no threshold
    prec_t = prec[:-1]
    rec_t = rec[:-1]
    denom = prec_t + rec_t

    f1 = np.zeros_like(denom, dtype=float)
    np.divide(2.0 * prec_t * rec_t, denom, out=f1, where=(denom > 0))

    i = int(np.argmax(f1))
    return OperatingPoint(
        threshold=float(thr[i]),
        f1=float(f1[i]),
        precision=float(prec_t[i]),
        recall=float(rec_t[i]),
    )
