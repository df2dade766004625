"""
Shared pytest fixtures for HF-ML tests.

Control-logic tests (search budgets, bootstrap, forward selection, orchestration)
run against FakeEngine, a deterministic stand-in for the boosting engine whose
predictions are a fixed logistic function of the data. Tests that exercise
XGBoost itself use small synthetic cohorts and few trees.
"""

import logging
import threading
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from hf_ml.data.io import SubgroupData, encode_label
from hf_ml.models.engine import TrainedModel
from hf_ml.utils.serialization import load_json, save_json

OUTCOME = "whf_outcome"
SECOND_OUTCOME = "death_outcome"


def make_cohort(n: int = 400, seed: int = 0) -> pd.DataFrame:
    """
    Synthetic cohort: the outcome is driven by ``lab_bnp`` (AUC ~0.9); demo and
    echo columns carry no signal.
    """
    rng = np.random.RandomState(seed)
    lab_signal = rng.normal(size=n)
    whf = (lab_signal + rng.normal(scale=0.6, size=n) > 0.5).astype(int)
    death = (lab_signal + rng.normal(scale=1.0, size=n) > 0.8).astype(int)
    return pd.DataFrame(
        {
            "demo_age": rng.normal(size=n),
            "demo_sex": pd.Categorical(rng.choice(["F", "M"], size=n), categories=["F", "M"]),
            "lab_bnp": lab_signal,
            "lab_sodium": rng.normal(size=n),
            "echo_lvef": rng.normal(size=n),
            OUTCOME: whf,
            SECOND_OUTCOME: death,
        }
    )


def make_subgroup(name: str = "all", n_train: int = 400, n_test: int = 200, seed: int = 0):
    train = make_cohort(n_train, seed=seed)
    test = make_cohort(n_test, seed=seed + 1000)
    return SubgroupData(name=name, train=train, test=test)


# ============================================================================
# Fake boosting engine
# ============================================================================


class FakeHandle:
    """Native-handle stand-in that counts releases."""

    def __init__(self):
        self.released = False

    def release(self):
        self.released = True


DEFAULT_WEIGHTS = {"lab_bnp": 2.0, "demo_age": 0.05, "lab_sodium": 0.0, "echo_lvef": 0.0}


class FakeEngine:
    """
    Deterministic BoostingEngine.

    score = sigmoid(q * sum(weight_f * x_f) + (1 - q) * noise), where ``q`` is
    the ``q`` hyperparameter (default 1.0) and ``noise`` is a fixed per-row draw,
    so AUC grows with ``q``.

    Args:
        weights: Column -> linear weight (missing columns weigh 0)
        fail_when: Predicate on (params, features) that makes ``train`` raise
        on_train: Callback invoked on every ``train`` call
    """

    name = "fake"

    def __init__(self, weights=None, fail_when=None, on_train=None):
        self.weights = dict(DEFAULT_WEIGHTS if weights is None else weights)
        self.fail_when = fail_when
        self.on_train = on_train
        self.trained: list[TrainedModel] = []
        self._lock = threading.Lock()

    def train(self, features, label, data, params, *, seed=1, subgroup=None):
        if self.on_train is not None:
            self.on_train()
        if self.fail_when is not None and self.fail_when(params, list(features)):
            raise ValueError(f"invalid configuration {params}")
        y = encode_label(data[label])
        if len(np.unique(y)) < 2:
            raise ValueError("single-class training labels")
        model = TrainedModel(
            features=tuple(features),
            outcome=label,
            params=dict(params),
            estimator=FakeHandle(),
            subgroup=subgroup,
            engine=self.name,
        )
        with self._lock:
            self.trained.append(model)
        return model

    @staticmethod
    def _numeric(col: pd.Series) -> np.ndarray:
        if isinstance(col.dtype, pd.CategoricalDtype):
            return col.cat.codes.to_numpy(dtype=float)
        return col.to_numpy(dtype=float)

    def _linear(self, model: TrainedModel, data: pd.DataFrame) -> np.ndarray:
        z = np.zeros(len(data))
        for f in model.features:
            z += self.weights.get(f, 0.0) * self._numeric(data[f])
        q = float(model.params.get("q", 1.0))
        noise = np.random.RandomState(7).normal(scale=2.0, size=len(data))
        return q * z + (1.0 - q) * noise

    def score(self, model, data):
        model.require_estimator()
        return 1.0 / (1.0 + np.exp(-self._linear(model, data)))

    def importance(self, model, data=None):
        raw = {f: abs(self.weights.get(f, 0.0)) for f in model.features}
        total = sum(raw.values())
        return {f: (v / total if total else 0.0) for f, v in raw.items()}

    def attribution(self, model, data):
        out = {}
        for f in model.features:
            x = self._numeric(data[f])
            out[f] = self.weights.get(f, 0.0) * (x - x.mean())
        return pd.DataFrame(out, index=data.index)

    def save(self, model, dest):
        dest = Path(dest)
        save_json(
            {"features": list(model.features), "outcome": model.outcome, "params": model.params},
            dest / "metadata.json",
        )
        return dest

    def load(self, src):
        meta = load_json(Path(src) / "metadata.json")
        return TrainedModel(
            features=tuple(meta["features"]),
            outcome=meta["outcome"],
            params=meta["params"],
            estimator=FakeHandle(),
            engine=self.name,
        )


class StepClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def advance(self, secs: float):
        self.now += secs

    def __call__(self) -> float:
        return self.now


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def cohort():
    return make_cohort()


@pytest.fixture
def subgroup_data():
    return make_subgroup()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture(autouse=True)
def _reset_hf_ml_logging():
    """Undo handler setup done by CLI commands so later tests see default logging."""
    yield
    for name in ("hf_ml", "py.warnings"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
    logging.captureWarnings(False)
