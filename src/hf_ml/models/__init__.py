"""Boosting engine, compute context and hyperparameter search."""

from hf_ml.models.context import ComputeContext
from hf_ml.models.registry import build_xgboost, normalize_params
from hf_ml.models.engine import BoostingEngine, TrainedModel, XGBoostEngine
from hf_ml.models.search import HyperparameterSearch, SearchResult, SearchRun

__all__ = [
    "ComputeContext",
    "build_xgboost",
    "normalize_params",
    "BoostingEngine",
    "TrainedModel",
    "XGBoostEngine",
    "HyperparameterSearch",
    "SearchResult",
    "SearchRun",
]
