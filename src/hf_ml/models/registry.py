"""Model construction for the boosting engine.

Builds configured XGBoost classifiers from hyperparameter dictionaries.
Parameter dictionaries may use XGBoost names or the study's H2O grid names
(``learn_rate``, ``sample_rate``, ``col_sample_rate``,
``ntrees``); both are normalized here.
"""

from typing import Any

from xgboost import XGBClassifier

# H2O grid names -> XGBoost sklearn names
H2O_PARAM_ALIASES = {
    "learn_rate": "learning_rate",
    "sample_rate": "subsample",
    "col_sample_rate": "colsample_bytree",
    "ntrees": "n_estimators",
}

INT_PARAMS = {"n_estimators", "max_depth", "min_child_weight", "max_bin", "early_stopping_rounds"}


def normalize_params(params: dict[str, Any]) -> dict[str, Any]:
    """Map alias names to XGBoost names and coerce integer-valued parameters.

    Raises:
        ValueError: If a parameter is given under both its alias and its XGBoost name
    """
    out: dict[str, Any] = {}
    for key, value in params.items():
        name = H2O_PARAM_ALIASES.get(key, key)
        if name in out:
            raise ValueError(f"Parameter '{name}' given twice (as '{key}' and '{name}')")
        if name in INT_PARAMS and value is not None:
            value = int(value)
        out[name] = value
    return out


def build_xgboost(
    n_estimators: int = 100,
    max_depth: int = 6,
    learning_rate: float = 0.3,
    subsample: float = 1.0,
    colsample_bytree: float = 1.0,
    early_stopping_rounds: int | None = None,
    eval_metric: str = "auc",
    tree_method: str = "hist",
    random_state: int = 1,
    n_jobs: int | None = None,
    **extra: Any,
) -> XGBClassifier:
    """Build XGBoost classifier.

    Args:
        n_estimators: Number of boosting rounds
        max_depth: Maximum tree depth
        learning_rate: Step size shrinkage
        subsample: Row sampling fraction
        colsample_bytree: Column sampling fraction
        early_stopping_rounds: Stop when the eval metric has not improved for this many rounds
        eval_metric: Metric monitored on the eval set
        tree_method: 'hist' (required for native categorical support)
        random_state: Random seed
        n_jobs: Threads for this fit (None = all cores)
        **extra: Any other XGBClassifier parameter (gamma, reg_lambda, ...)

    Returns:
        Configured XGBClassifier

    Raises:
        ValueError: If a numeric parameter is outside its valid range
    """
    if int(n_estimators) < 1:
        raise ValueError(f"n_estimators must be >= 1, got {n_estimators}")
    if int(max_depth) < 0:
        raise ValueError(f"max_depth must be >= 0, got {max_depth}")
    if not 0.0 < float(learning_rate) <= 1.0:
        raise ValueError(f"learning_rate must be in (0, 1], got {learning_rate}")
    for name, value in (("subsample", subsample), ("colsample_bytree", colsample_bytree)):
        if not 0.0 < float(value) <= 1.0:
            raise ValueError(f"{name} must be in (0, 1], got {value}")

    return XGBClassifier(
        n_estimators=int(n_estimators),
        max_depth=int(max_depth),
        learning_rate=float(learning_rate),
        subsample=float(subsample),
        colsample_bytree=float(colsample_bytree),
        early_stopping_rounds=early_stopping_rounds,
        objective="binary:logistic",
        eval_metric=eval_metric,
        tree_method=tree_method,
        enable_categorical=True,
        random_state=int(random_state),
        n_jobs=n_jobs,
        **extra,
    )
