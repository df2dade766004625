"""
Budgeted random hyperparameter search with cross-validated scoring.

Configurations are drawn with Optuna's RandomSampler through the ask/tell
interface, which lets the search loop own its stopping rules:

- wall-clock deadline, checked between candidates (never mid-training)
- maximum number of evaluated candidates
- early stop when the best stopping-metric value has not improved by the
  relative tolerance over the last ``stopping_rounds`` completed candidates

Each candidate is scored by stratified k-fold CV on the training split (metric
on pooled out-of-fold predictions). Fold models live inside a ComputeContext
scope and are released as soon as the candidate is scored. The best candidate
is refit on the full training split.
"""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import optuna
import pandas as pd
from optuna.distributions import (
    BaseDistribution,
    CategoricalDistribution,
    FloatDistribution,
    IntDistribution,
)
from optuna.samplers import RandomSampler
from optuna.trial import TrialState
from sklearn.model_selection import StratifiedKFold

from hf_ml.config.schema import STOPPING_METRICS, ParamSpec, SearchBudget, round_param
from hf_ml.data.io import encode_label
from hf_ml.exceptions import SearchExhaustedError
from hf_ml.metrics.discrimination import stopping_score
from hf_ml.models.context import ComputeContext
from hf_ml.models.engine import BoostingEngine, TrainedModel

logger = logging.getLogger(__name__)

# Stop reasons reported on SearchRun
STOP_MAX_MODELS = "max_models"
STOP_MAX_RUNTIME = "max_runtime"
STOP_EARLY = "early_stopping"
STOP_EXHAUSTED = "space_exhausted"


@dataclass(frozen=True)
class SearchResult:
    """One evaluated configuration with its cross-validated score."""

    rank: int
    trial_number: int
    params: dict[str, Any]
    score: float
    fold_scores: tuple[float, ...]
    duration_secs: float


@dataclass
class SearchRun:
    """
    Outcome of one search run.

    Attributes:
        results: Completed candidates, best-first (ties by earliest trial)
        model: Best configuration refit on the full training split
        metric: Stopping metric the results are ranked by
        n_evaluated: Candidates trained (completed + failed); bounded by max_models
        n_failed: Candidates whose training or scoring raised
        n_duplicates: Sampled configurations skipped as already evaluated
        stop_reason: Which budget rule ended the search
        elapsed_secs: Wall-clock duration of the candidate loop
    """

    results: list[SearchResult]
    model: TrainedModel
    metric: str
    n_evaluated: int
    n_failed: int = 0
    n_duplicates: int = 0
    stop_reason: str = STOP_MAX_MODELS
    elapsed_secs: float = 0.0
    failures: list[dict[str, Any]] = field(default_factory=list)

    @property
    def best(self) -> SearchResult:
        return self.results[0]

    def trials_frame(self) -> pd.DataFrame:
        """Completed candidates as a table, one column per hyperparameter."""
        rows = []
        for r in self.results:
            row = {
                "rank": r.rank,
                "trial_number": r.trial_number,
                self.metric: r.score,
                "fold_mean": float(np.mean(r.fold_scores)) if r.fold_scores else np.nan,
                "fold_sd": float(np.std(r.fold_scores)) if r.fold_scores else np.nan,
                "duration_secs": r.duration_secs,
            }
            row.update({f"param_{k}": v for k, v in r.params.items()})
            rows.append(row)
        return pd.DataFrame(rows)


def to_distributions(space: dict[str, ParamSpec]) -> dict[str, BaseDistribution]:
    """Translate ParamSpec dimensions into Optuna distributions."""
    dists: dict[str, BaseDistribution] = {}
    for name, spec in space.items():
        if spec.type == "categorical":
            dists[name] = CategoricalDistribution(spec.grid())
        elif spec.type == "int":
            dists[name] = IntDistribution(
                int(spec.low), int(spec.high), step=int(spec.step or 1), log=spec.log
            )
        else:
            dists[name] = FloatDistribution(spec.low, spec.high, step=spec.step, log=spec.log)
    return dists


def space_size(space: dict[str, ParamSpec]) -> float:
    """Number of distinct configurations (inf if any dimension is continuous)."""
    if not all(spec.is_discrete for spec in space.values()):
        return math.inf
    return float(np.prod([len(spec.grid()) for spec in space.values()]))


def _clean_params(params: dict[str, Any]) -> dict[str, Any]:
    # Stepped float draws carry representation noise (0.35000000000000003)
    return {k: round_param(v) for k, v in params.items()}


class HyperparameterSearch:
    """
    Random search over a hyperparameter space under a SearchBudget.

    Args:
        engine: Boosting engine used for every fit
        space: Parameter name -> ParamSpec
        budget: Stopping rules
        folds: Cross-validation folds per candidate
        seed: Seed for the sampler, the fold split and every fit
        context: Compute context owning fold models and the refit model
        clock: Monotonic clock in seconds (injectable for tests)
        verbose: 0 silences Optuna's per-trial logging
    """

    def __init__(
        self,
        engine: BoostingEngine,
        space: dict[str, ParamSpec],
        budget: SearchBudget,
        folds: int = 5,
        seed: int = 1,
        context: ComputeContext | None = None,
        clock: Callable[[], float] = time.monotonic,
        verbose: int = 0,
    ):
        if folds < 2:
            raise ValueError(f"folds must be >= 2, got {folds}")
        self.engine = engine
        self.space = space
        self.budget = budget
        self.folds = folds
        self.seed = seed
        self.context = context or ComputeContext(name="search")
        self.clock = clock
        self.verbose = verbose

        if verbose == 0:
            optuna.logging.set_verbosity(optuna.logging.WARNING)
        else:
            optuna.logging.set_verbosity(optuna.logging.INFO)

    @property
    def greater_is_better(self) -> bool:
        return STOPPING_METRICS[self.budget.stopping_metric]

    def _improves(self, score: float, best: float | None) -> bool:
        """Relative improvement of at least ``stopping_tolerance`` over ``best``."""
        if best is None:
            return True
        margin = self.budget.stopping_tolerance * abs(best)
        if self.greater_is_better:
            return score >= best + margin and score > best
        return score <= best - margin and score < best

    def _cross_validate(
        self,
        features: list[str],
        outcome: str,
        train: pd.DataFrame,
        y: np.ndarray,
        params: dict[str, Any],
        subgroup: str | None,
    ) -> tuple[float, tuple[float, ...]]:
        """Score one configuration; fold models are released before returning."""
        metric = self.budget.stopping_metric
        splitter = StratifiedKFold(n_splits=self.folds, shuffle=True, random_state=self.seed)
        oof = np.full(len(train), np.nan)
        fold_scores = []
        with self.context.scope("cv"):
            for fold, (tr_idx, va_idx) in enumerate(splitter.split(np.zeros(len(y)), y)):
                model = self.context.track(
                    self.engine.train(
                        features,
                        outcome,
                        train.iloc[tr_idx],
                        params,
                        seed=self.seed,
                        subgroup=subgroup,
                    )
                )
                oof[va_idx] = self.engine.score(model, train.iloc[va_idx])
                fold_scores.append(stopping_score(metric, y[va_idx], oof[va_idx]))
                logger.debug(f"  fold {fold + 1}/{self.folds}: {metric}={fold_scores[-1]:.4f}")

        if not np.all(np.isfinite(oof)):
            raise ValueError("Out-of-fold predictions contain non-finite values")
        return stopping_score(metric, y, oof), tuple(fold_scores)

    def run(
        self,
        features: list[str],
        outcome: str,
        train: pd.DataFrame,
        subgroup: str | None = None,
    ) -> SearchRun:
        """
        Search the space and return the refit best model with all results.

        Args:
            features: Predictor columns
            outcome: Outcome label column
            train: Training split
            subgroup: Subgroup name recorded on the models

        Returns:
            SearchRun with best-first results and the refit TrainedModel

        Raises:
            SearchExhaustedError: If no candidate could be trained and scored
        """
        features = list(features)
        y = encode_label(train[outcome])
        metric = self.budget.stopping_metric
        direction = "maximize" if self.greater_is_better else "minimize"
        study = optuna.create_study(direction=direction, sampler=RandomSampler(seed=self.seed))
        distributions = to_distributions(self.space)
        n_configs = space_size(self.space)

        seen: set[tuple] = set()
        completed: list[tuple[int, dict[str, Any], float, tuple[float, ...], float]] = []
        failures: list[dict[str, Any]] = []
        n_evaluated = 0
        n_duplicates = 0
        best: float | None = None
        since_improvement = 0
        stop_reason = STOP_MAX_MODELS

        start = self.clock()
        while True:
            if n_evaluated >= self.budget.max_models:
                stop_reason = STOP_MAX_MODELS
                break
            elapsed = self.clock() - start
            if self.budget.max_runtime_secs is not None and elapsed >= self.budget.max_runtime_secs:
                stop_reason = STOP_MAX_RUNTIME
                break
            if self.budget.stopping_rounds and since_improvement >= self.budget.stopping_rounds:
                stop_reason = STOP_EARLY
                break
            if len(seen) >= n_configs:
                stop_reason = STOP_EXHAUSTED
                break

            trial = study.ask(distributions)
            params = _clean_params(trial.params)
            key = tuple(sorted(params.items()))
            if key in seen:
                n_duplicates += 1
                study.tell(trial, state=TrialState.PRUNED)
                continue
            seen.add(key)

            n_evaluated += 1
            t0 = self.clock()
            try:
                score, fold_scores = self._cross_validate(
                    features, outcome, train, y, params, subgroup
                )
            except Exception as e:
                study.tell(trial, state=TrialState.FAIL)
                failures.append(
                    {"trial_number": trial.number, "params": params, "error": f"{type(e).__name__}: {e}"}
                )
                logger.warning(f"[search] Candidate {trial.number} failed {params}: {e}")
                continue
            duration = self.clock() - t0
            study.tell(trial, score)
            completed.append((trial.number, params, score, fold_scores, duration))

            if self._improves(score, best):
                best = score
                since_improvement = 0
            else:
                since_improvement += 1
            logger.debug(
                f"[search] Candidate {trial.number}: {metric}={score:.4f} "
                f"(best={best:.4f}, {duration:.1f}s)"
            )

        elapsed = self.clock() - start
        if not completed:
            raise SearchExhaustedError(
                f"No hyperparameter configuration could be trained for '{outcome}' "
                f"({n_evaluated} candidate(s) failed)"
            )

        sign = -1.0 if self.greater_is_better else 1.0
        completed.sort(key=lambda c: (sign * c[2], c[0]))
        results = [
            SearchResult(
                rank=i + 1,
                trial_number=number,
                params=params,
                score=float(score),
                fold_scores=fold_scores,
                duration_secs=float(duration),
            )
            for i, (number, params, score, fold_scores, duration) in enumerate(completed)
        ]

        logger.info(
            f"[search] {outcome}: {n_evaluated} candidate(s) evaluated, {len(failures)} failed, "
            f"stopped by {stop_reason}; best {metric}={results[0].score:.4f}"
        )

        with self.context.scope("refit"):
            model = self.context.track(
                self.engine.train(
                    features, outcome, train, results[0].params, seed=self.seed, subgroup=subgroup
                )
            )
            # Promoted to the caller's scope
            self.context.keep(model)
        return SearchRun(
            results=results,
            model=model,
            metric=metric,
            n_evaluated=n_evaluated,
            n_failed=len(failures),
            n_duplicates=n_duplicates,
            stop_reason=stop_reason,
            elapsed_secs=float(elapsed),
            failures=failures,
        )
