"""
Boosting engine capability interface.

The core pipeline (search, bootstrap, importance, forward selection) only talks
to a :class:`BoostingEngine`: train a classifier from a configuration, score it,
report native importance and per-record attributions, persist and reload it.
:class:`XGBoostEngine` is the production implementation; any object with the
same methods can be substituted (tests use a lightweight fake).
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import numpy as np
import pandas as pd
import xgboost as xgb
from sklearn.model_selection import train_test_split
from xgboost import XGBClassifier

from hf_ml.data.io import encode_label
from hf_ml.models.registry import build_xgboost, normalize_params
from hf_ml.utils.serialization import load_json, save_json

logger = logging.getLogger(__name__)

MODEL_FILENAME = "model.json"
METADATA_FILENAME = "metadata.json"


def _is_text(dtype) -> bool:
    """Object or string dtype (pandas 3 infers ``str`` for text columns)."""
    if isinstance(dtype, pd.CategoricalDtype):
        return False
    return pd.api.types.is_object_dtype(dtype) or pd.api.types.is_string_dtype(dtype)


@dataclass(eq=False)
class TrainedModel:
    """
    A fitted model bound to one (subgroup, outcome, configuration) triple.

    Attributes:
        features: Predictor columns, in training order
        outcome: Outcome label column
        params: Hyperparameter configuration used for the fit
        estimator: Engine-native fitted object (None once released)
        subgroup: Patient subgroup the model was trained on
        categories: Category levels of categorical predictors at fit time
        engine: Name of the engine that produced the model
    """

    features: tuple[str, ...]
    outcome: str
    params: dict[str, Any]
    estimator: Any
    subgroup: str | None = None
    categories: dict[str, list] = field(default_factory=dict)
    engine: str = "xgboost"

    @property
    def is_released(self) -> bool:
        return self.estimator is None

    def require_estimator(self) -> Any:
        if self.estimator is None:
            raise RuntimeError(
                f"Model for outcome '{self.outcome}' (subgroup={self.subgroup}) has been released"
            )
        return self.estimator

    def release(self) -> None:
        """Drop the native handle so the engine can free its memory."""
        self.estimator = None


@runtime_checkable
class BoostingEngine(Protocol):
    """Narrow capability interface over a gradient-boosting library."""

    name: str

    def train(
        self,
        features: list[str],
        label: str,
        data: pd.DataFrame,
        params: dict[str, Any],
        *,
        seed: int = 1,
        subgroup: str | None = None,
    ) -> TrainedModel: ...

    def score(self, model: TrainedModel, data: pd.DataFrame) -> np.ndarray: ...

    def importance(self, model: TrainedModel, data: pd.DataFrame | None = None) -> dict[str, float]: ...

    def attribution(self, model: TrainedModel, data: pd.DataFrame) -> pd.DataFrame: ...

    def save(self, model: TrainedModel, dest: str | Path) -> Path: ...

    def load(self, src: str | Path) -> TrainedModel: ...


class XGBoostEngine:
    """
    XGBoost implementation of :class:`BoostingEngine`.

    Args:
        nthread: Threads per fit (None = XGBoost default)
        tree_method: XGBoost tree method ('hist' supports categorical columns)
    """

    name = "xgboost"

    def __init__(self, nthread: int | None = None, tree_method: str = "hist"):
        self.nthread = nthread
        self.tree_method = tree_method

    # ========== Training ==========

    def train(
        self,
        features: list[str],
        label: str,
        data: pd.DataFrame,
        params: dict[str, Any],
        *,
        seed: int = 1,
        subgroup: str | None = None,
    ) -> TrainedModel:
        """
        Fit a classifier on ``data[features]`` against ``data[label]``.

        ``early_stopping_rounds`` in ``params`` holds out a stratified
        ``validation_fraction`` (default 0.2) of ``data`` as the AUC eval set.

        Raises:
            ValueError: On invalid parameters, uncast text columns or a
                single-class label
        """
        features = list(features)
        X = data[features]
        text_cols = [c for c in features if _is_text(X[c].dtype)]
        if text_cols:
            raise ValueError(
                f"Text columns must be cast to category before training: {text_cols}"
            )
        y = encode_label(data[label])
        if len(np.unique(y)) < 2:
            raise ValueError(f"Training labels for '{label}' contain a single class")

        model_params = normalize_params(params)
        validation_fraction = float(model_params.pop("validation_fraction", 0.2))
        estimator = build_xgboost(
            **model_params,
            tree_method=self.tree_method,
            random_state=seed,
            n_jobs=self.nthread,
        )

        if model_params.get("early_stopping_rounds"):
            X_fit, X_val, y_fit, y_val = train_test_split(
                X, y, test_size=validation_fraction, stratify=y, random_state=seed
            )
            estimator.fit(X_fit, y_fit, eval_set=[(X_val, y_val)], verbose=False)
        else:
            estimator.fit(X, y, verbose=False)

        categories = {
            c: list(X[c].cat.categories)
            for c in features
            if isinstance(X[c].dtype, pd.CategoricalDtype)
        }
        return TrainedModel(
            features=tuple(features),
            outcome=label,
            params=dict(params),
            estimator=estimator,
            subgroup=subgroup,
            categories=categories,
            engine=self.name,
        )

    # ========== Inference ==========

    def _frame(self, model: TrainedModel, data: pd.DataFrame) -> pd.DataFrame:
        """Select model features, restoring fit-time category codes."""
        X = data[list(model.features)]
        recast = {}
        for col, levels in model.categories.items():
            dtype = pd.CategoricalDtype(categories=levels)
            if X[col].dtype != dtype:
                recast[col] = X[col].astype("string").astype(dtype)
        if recast:
            X = X.assign(**recast)
        return X

    def score(self, model: TrainedModel, data: pd.DataFrame) -> np.ndarray:
        """Predicted probability of the positive class for each record."""
        estimator = model.require_estimator()
        return estimator.predict_proba(self._frame(model, data))[:, 1]

    def importance(self, model: TrainedModel, data: pd.DataFrame | None = None) -> dict[str, float]:
        """
        Native relative importance (share of total gain) for every feature.

        Features never used in a split report 0.0.
        """
        booster = model.require_estimator().get_booster()
        gains = booster.get_score(importance_type="total_gain")
        total = float(sum(gains.values()))
        return {
            f: (float(gains.get(f, 0.0)) / total if total > 0 else 0.0) for f in model.features
        }

    def attribution(self, model: TrainedModel, data: pd.DataFrame) -> pd.DataFrame:
        """
        Per-record, per-feature TreeSHAP contributions (log-odds scale).

        Returns:
            DataFrame (n_records × n_features); the bias column is dropped
        """
        estimator: XGBClassifier = model.require_estimator()
        booster = estimator.get_booster()
        dmatrix = xgb.DMatrix(self._frame(model, data), enable_categorical=True)
        try:
            kwargs = {}
            best_iteration = getattr(estimator, "best_iteration", None)
            if model.params.get("early_stopping_rounds") and best_iteration is not None:
                kwargs["iteration_range"] = (0, int(best_iteration) + 1)
            contribs = booster.predict(dmatrix, pred_contribs=True, **kwargs)
        finally:
            del dmatrix
        return pd.DataFrame(contribs[:, :-1], columns=list(model.features), index=data.index)

    # ========== Persistence ==========

    def save(self, model: TrainedModel, dest: str | Path) -> Path:
        """
        Persist a model as XGBoost JSON plus a metadata sidecar.

        Args:
            model: Fitted model
            dest: Destination directory (created if needed)

        Returns:
            The destination directory
        """
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        model.require_estimator().save_model(dest / MODEL_FILENAME)
        save_json(
            {
                "engine": self.name,
                "features": list(model.features),
                "outcome": model.outcome,
                "subgroup": model.subgroup,
                "params": model.params,
                "categories": {k: [str(v) for v in levels] for k, levels in model.categories.items()},
                "xgboost_version": xgb.__version__,
            },
            dest / METADATA_FILENAME,
        )
        logger.debug(f"Saved model artifact: {dest}")
        return dest

    def load(self, src: str | Path) -> TrainedModel:
        """Reload a model written by :meth:`save`."""
        src = Path(src)
        meta = load_json(src / METADATA_FILENAME)
        if meta.get("engine") != self.name:
            raise ValueError(f"Artifact at {src} was written by engine '{meta.get('engine')}'")
        estimator = XGBClassifier()
        estimator.load_model(src / MODEL_FILENAME)
        return TrainedModel(
            features=tuple(meta["features"]),
            outcome=meta["outcome"],
            params=meta["params"],
            estimator=estimator,
            subgroup=meta.get("subgroup"),
            categories=meta.get("categories", {}),
            engine=self.name,
        )
