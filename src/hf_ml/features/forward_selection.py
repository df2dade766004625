"""
Greedy forward selection over feature domains.

Starting from the baseline domain, every iteration trains one fixed-configuration
model per remaining candidate domain on (selected features + domain features),
scores each on the held-out test split, and accepts the domain with the highest
AUC (ties: lowest MSE, then declared domain order). The accepted domain leaves
the pool for good; the procedure ends when the pool is empty.

Candidate evaluations within one iteration are independent and run in a joblib
thread pool; ``Parallel`` returns only after every candidate has finished, so
the acceptance step always sees the full candidate table.
"""

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import pandas as pd
from joblib import Parallel, delayed

from hf_ml.data.domains import FeatureSpace
from hf_ml.data.io import encode_label
from hf_ml.metrics.discrimination import auroc, mean_squared_error
from hf_ml.models.context import ComputeContext
from hf_ml.models.engine import BoostingEngine

logger = logging.getLogger(__name__)


class SelectionPhase(str, Enum):
    INITIAL = "initial"
    ITERATING = "iterating"
    DONE = "done"


@dataclass(frozen=True)
class CandidateResult:
    """Held-out performance of selected features plus one candidate domain."""

    domain: str
    auc: float
    mse: float
    elapsed_secs: float
    n_features: int

    @property
    def time(self) -> float:
        """Elapsed seconds rounded to whole seconds, as reported."""
        return float(round(self.elapsed_secs, 0))


@dataclass
class ForwardSelectionState:
    """
    Mutable state of one outcome's selection run.

    Attributes:
        outcome: Outcome label
        selected: Accepted feature columns, baseline first
        accepted: Accepted domain names in acceptance order (baseline first)
        history: Winning candidate of each iteration
        pool: Remaining candidate domains in declared order
        iterations: Full candidate table of each iteration
        phase: INITIAL, ITERATING or DONE
    """

    outcome: str
    selected: list[str]
    accepted: list[str]
    pool: list[str]
    history: list[CandidateResult] = field(default_factory=list)
    iterations: list[list[CandidateResult]] = field(default_factory=list)
    phase: SelectionPhase = SelectionPhase.INITIAL

    @property
    def is_done(self) -> bool:
        return self.phase is SelectionPhase.DONE

    def history_frame(self) -> pd.DataFrame:
        """Accepted domains in acceptance order: ``model, auc, mse, time``."""
        return pd.DataFrame(
            [
                {"model": r.domain, "auc": r.auc, "mse": r.mse, "time": r.time}
                for r in self.history
            ],
            columns=["model", "auc", "mse", "time"],
        )

    def iterations_frame(self) -> pd.DataFrame:
        """Every candidate of every iteration, best-first within an iteration."""
        rows = []
        for i, candidates in enumerate(self.iterations, start=1):
            winner = self.history[i - 1].domain
            for r in candidates:
                rows.append(
                    {
                        "iteration": i,
                        "model": r.domain,
                        "auc": r.auc,
                        "mse": r.mse,
                        "time": r.time,
                        "n_features": r.n_features,
                        "accepted": r.domain == winner,
                    }
                )
        return pd.DataFrame(
            rows, columns=["iteration", "model", "auc", "mse", "time", "n_features", "accepted"]
        )


class ForwardDomainSelector:
    """
    Forward selection of feature domains with a fixed model configuration.

    Args:
        engine: Boosting engine used for every candidate fit
        space: Resolved feature space (declared order is the tie-break priority)
        baseline: Name of the domain every model starts from
        params: Fixed hyperparameter configuration
        seed: Seed for every candidate fit
        n_jobs: Concurrent candidate fits (None = one per candidate, capped by cpus)
        cpus: Available compute units
        context: Compute context owning candidate models
        clock: Timer used for the elapsed column
    """

    def __init__(
        self,
        engine: BoostingEngine,
        space: FeatureSpace,
        baseline: str,
        params: dict[str, Any],
        seed: int = 1234,
        n_jobs: int | None = None,
        cpus: int | None = None,
        context: ComputeContext | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if baseline not in space.names:
            raise KeyError(f"Baseline domain '{baseline}' is not in the feature space")
        self.engine = engine
        self.space = space
        self.baseline = baseline
        self.params = dict(params)
        self.seed = seed
        self.n_jobs = n_jobs
        self.cpus = cpus or os.cpu_count() or 1
        self.context = context or ComputeContext(name="forward_selection")
        self.clock = clock
        self._priority = {name: i for i, name in enumerate(space.names)}

    def initial_state(self, outcome: str) -> ForwardSelectionState:
        return ForwardSelectionState(
            outcome=outcome,
            selected=list(self.space.domain(self.baseline).features),
            accepted=[self.baseline],
            pool=[name for name in self.space.names if name != self.baseline],
        )

    def _workers(self, n_tasks: int) -> int:
        limit = min(self.n_jobs or self.cpus, self.cpus)
        return max(1, min(limit, n_tasks))

    def evaluate_candidate(
        self,
        state: ForwardSelectionState,
        domain: str,
        train: pd.DataFrame,
        test: pd.DataFrame,
    ) -> CandidateResult:
        """Train on selected + ``domain`` features and score on the test split."""
        features = state.selected + list(self.space.domain(domain).features)
        y_test = encode_label(test[state.outcome])
        with self.context.scope(f"candidate {domain}"):
            t0 = self.clock()
            model = self.context.track(
                self.engine.train(features, state.outcome, train, self.params, seed=self.seed)
            )
            p = self.engine.score(model, test)
            elapsed = self.clock() - t0
        return CandidateResult(
            domain=domain,
            auc=auroc(y_test, p),
            mse=mean_squared_error(y_test, p),
            elapsed_secs=elapsed,
            n_features=len(features),
        )

    def _rank(self, candidates: list[CandidateResult]) -> list[CandidateResult]:
        return sorted(candidates, key=lambda r: (-r.auc, r.mse, self._priority[r.domain]))

    def step(
        self, state: ForwardSelectionState, train: pd.DataFrame, test: pd.DataFrame
    ) -> ForwardSelectionState:
        """
        Run one iteration: evaluate every pooled domain, accept the best.

        Raises:
            RuntimeError: If the state is already DONE
        """
        if state.is_done:
            raise RuntimeError(f"Forward selection for '{state.outcome}' is already complete")
        if not state.pool:
            state.phase = SelectionPhase.DONE
            return state

        state.phase = SelectionPhase.ITERATING
        iteration = len(state.iterations) + 1
        pool = list(state.pool)
        n_workers = self._workers(len(pool))
        logger.info(
            f"[fselect] {state.outcome} iteration {iteration}: "
            f"{len(pool)} candidate(s), {n_workers} worker(s)"
        )

        try:
            candidates = Parallel(n_jobs=n_workers, prefer="threads")(
                delayed(self.evaluate_candidate)(state, domain, train, test) for domain in pool
            )
        except Exception:
            logger.error(f"[fselect] {state.outcome} iteration {iteration} failed")
            raise

        ranked = self._rank(list(candidates))
        winner = ranked[0]
        state.iterations.append(ranked)
        state.history.append(winner)
        state.selected = state.selected + list(self.space.domain(winner.domain).features)
        state.accepted.append(winner.domain)
        state.pool = [d for d in state.pool if d != winner.domain]

        for r in ranked:
            logger.info(f"  {r.domain:<12} auc={r.auc:.4f} mse={r.mse:.4f} time={r.time:.0f}s")
        logger.info(
            f"[fselect] {state.outcome} accepted '{winner.domain}' "
            f"({len(state.selected)} features, {len(state.pool)} domain(s) left)"
        )

        if not state.pool:
            state.phase = SelectionPhase.DONE
        return state

    def run(self, outcome: str, train: pd.DataFrame, test: pd.DataFrame) -> ForwardSelectionState:
        """Run forward selection for ``outcome`` to completion."""
        state = self.initial_state(outcome)
        while not state.is_done:
            self.step(state, train, test)
        return state
