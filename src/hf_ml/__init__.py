"""
HF-ML: Boosted-tree risk models for worsening heart failure and death by LVEF subgroup

Trains and validates XGBoost classifiers per patient subgroup and outcome with a
budgeted random hyperparameter search, reports bootstrap percentile confidence
intervals, and ranks EHR data domains by greedy forward selection.
"""

# Copy-on-Write: the core never mutates the shared train/test frames (always on from pandas 3)
import pandas as pd

if int(pd.__version__.split(".")[0]) < 3:
    pd.options.mode.copy_on_write = True

__version__ = "0.1.0"
__license__ = "MIT"

from hf_ml import (  # noqa: E402
    config,
    data,
    evaluation,
    features,
    metrics,
    models,
    pipeline,
    utils,
)

__all__ = [
    "__version__",
    "config",
    "data",
    "evaluation",
    "features",
    "metrics",
    "models",
    "pipeline",
    "utils",
]
