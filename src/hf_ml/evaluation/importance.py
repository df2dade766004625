"""
Global feature importance for a fitted model.

Two rankings are produced per model:
- native importance as reported by the engine (XGBoost: share of total gain)
- mean absolute TreeSHAP attribution over the records of an evaluation set

Both are sorted descending by score with ties broken by feature name, so the
tables are identical across runs.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from hf_ml.models.engine import BoostingEngine, TrainedModel

logger = logging.getLogger(__name__)


def rank_scores(scores: dict[str, float], value_col: str) -> pd.DataFrame:
    """Table of (variable, value_col) sorted descending, ties by variable name."""
    df = pd.DataFrame({"variable": list(scores), value_col: [float(v) for v in scores.values()]})
    df = df.sort_values([value_col, "variable"], ascending=[False, True], kind="mergesort")
    return df.reset_index(drop=True)


@dataclass(frozen=True)
class ImportanceTables:
    """Ranked importance tables for one model."""

    varimp: pd.DataFrame
    shap: pd.DataFrame

    def top(self, n: int = 10) -> list[str]:
        return self.shap["variable"].head(n).tolist()


class ImportanceExporter:
    """Computes native and attribution-based rankings through the engine."""

    def __init__(self, engine: BoostingEngine):
        self.engine = engine

    def native(self, model: TrainedModel, data: pd.DataFrame | None = None) -> pd.DataFrame:
        """Native importance as a ranked ``variable, importance`` table."""
        return rank_scores(self.engine.importance(model, data), "importance")

    def mean_abs_attribution(self, model: TrainedModel, data: pd.DataFrame) -> pd.DataFrame:
        """
        Mean |attribution| per feature as a ranked ``variable, mean_shap`` table.

        Raises:
            ValueError: If ``data`` is empty
        """
        if len(data) == 0:
            raise ValueError("Attribution requires at least one record")
        contribs = self.engine.attribution(model, data)
        means = np.abs(contribs.to_numpy(dtype=float)).mean(axis=0)
        return rank_scores(dict(zip(contribs.columns, means)), "mean_shap")

    def export(self, model: TrainedModel, data: pd.DataFrame) -> ImportanceTables:
        """Both rankings for ``model`` evaluated on ``data``."""
        tables = ImportanceTables(
            varimp=self.native(model, data),
            shap=self.mean_abs_attribution(model, data),
        )
        logger.debug(
            f"Top features for {model.outcome} ({model.subgroup}): {tables.top(5)}"
        )
        return tables
