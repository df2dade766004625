"""
Default configuration values for the HF-ML pipeline.

Single source of truth for defaults. Values reproduce the study design:
an XGBoost random-discrete search over a large grid (10 minutes, 100 models or
early stop on AUC), 5-fold CV, 1000 bootstrap resamples, five outcomes and four
LVEF-defined subgroups, and forward selection over EHR data domains identified
by column-name prefix.
"""

from typing import Any

# Modelled outcomes (each a binary label column)
DEFAULT_OUTCOMES = [
    "whf_outcome",
    "whf_outcome_ip",
    "whf_outcome_edo",
    "whf_outcome_av",
    "death_outcome",
]

# Label-like columns that are never predictors even when not modelled
DEFAULT_EXCLUDE_COLUMNS = ["whf_outcome_iped"]

# Columns typed as categorical before training (outcomes included)
DEFAULT_CATEGORICAL_COLUMNS = [
    "demo_sex",
    "demo_race",
    "shx_tobacco_use",
    "shx_alcohol_use",
    "shx_illicit_drug_use",
    "shx_iv_drug_use",
    "echo_as_severity_c",
    "echo_lvh_c",
    "lab_dip_c",
]

# Search space, XGBoost parameter names.
# learning_rate <- learn_rate, subsample <- sample_rate,
# colsample_bytree <- col_sample_rate, n_estimators <- ntrees
DEFAULT_HYPERPARAMETERS: dict[str, dict[str, Any]] = {
    "learning_rate": {"type": "categorical", "choices": [0.01, 0.1]},
    "max_depth": {"type": "int", "low": 1, "high": 20},
    "subsample": {"type": "float", "low": 0.3, "high": 1.0, "step": 0.05},
    "colsample_bytree": {"type": "float", "low": 0.3, "high": 1.0, "step": 0.05},
    "n_estimators": {"type": "int", "low": 100, "high": 1000, "step": 100},
}

DEFAULT_SEARCH_BUDGET: dict[str, Any] = {
    "max_runtime_secs": 600.0,
    "max_models": 100,
    "stopping_metric": "auc",
    "stopping_tolerance": 0.002,
    "stopping_rounds": 5,
}

DEFAULT_SEARCH_CONFIG: dict[str, Any] = {
    "hyperparameters": DEFAULT_HYPERPARAMETERS,
    "budget": DEFAULT_SEARCH_BUDGET,
    "folds": 5,
    "seed": 1,
}

DEFAULT_BOOTSTRAP_CONFIG: dict[str, Any] = {
    "n_resamples": 1000,
    "seed": 1,
    "alpha": 0.05,
    "max_degenerate_frac": 0.5,
}

# Baseline domain first, then the candidate pool in priority order
DEFAULT_DOMAINS: list[dict[str, Any]] = [
    {"name": "demo", "prefix": "demo"},
    {"name": "census", "prefix": "census"},
    {"name": "shx", "prefix": "shx"},
    {"name": "comorb", "prefix": "comorb"},
    {"name": "proc", "prefix": "proc"},
    {"name": "lab", "prefix": "lab"},
    {"name": "vital", "prefix": "vital"},
    {"name": "rx", "prefix": "rx"},
    {"name": "ecg", "prefix": "ecg"},
    {"name": "echo", "prefix": "echo"},
    {"name": "nlp", "prefix": "nlp"},
]

DEFAULT_DOMAINS_CONFIG: dict[str, Any] = {
    "specs": DEFAULT_DOMAINS,
    "baseline": "demo",
    "unassigned": "error",
}

# Fixed single configuration used for every forward-selection candidate
DEFAULT_FORWARD_PARAMS: dict[str, Any] = {
    "n_estimators": 1000,
    "learning_rate": 0.01,
    "subsample": 0.8,
    "colsample_bytree": 0.8,
    "early_stopping_rounds": 5,
    "validation_fraction": 0.2,
}

DEFAULT_FORWARD_SELECTION_CONFIG: dict[str, Any] = {
    "outcomes": ["whf_outcome", "death_outcome"],
    "subgroup": "all",
    "params": DEFAULT_FORWARD_PARAMS,
    "seed": 1234,
    "n_jobs": None,
}

DEFAULT_OUTPUT_CONFIG: dict[str, Any] = {
    "outdir": "results",
    "save_models": True,
    "save_importance": True,
    "save_trials": True,
}
