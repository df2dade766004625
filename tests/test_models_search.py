"""
Tests for the budgeted random hyperparameter search.

Covers:
- Each stopping rule (max_models, deadline, patience, exhausted space)
- Candidate failures (skipped, counted, all-failed error)
- Result ordering and reproducibility
- Release of fold models
"""

import logging
import math

import pytest
from conftest import OUTCOME, FakeEngine, StepClock, make_cohort

from hf_ml.config.schema import ParamSpec, SearchBudget
from hf_ml.exceptions import SearchExhaustedError
from hf_ml.models.context import ComputeContext
from hf_ml.models.search import (
    STOP_EARLY,
    STOP_EXHAUSTED,
    STOP_MAX_MODELS,
    STOP_MAX_RUNTIME,
    HyperparameterSearch,
    space_size,
    to_distributions,
)

FEATURES = ["demo_age", "lab_bnp", "lab_sodium"]

# An irrelevant integer dimension: every configuration scores the same
FLAT_SPACE = {"tag": ParamSpec(type="int", low=0, high=1000)}
Q_SPACE = {"q": ParamSpec(type="categorical", choices=[0.2, 0.6, 1.0])}


def budget(**kwargs) -> SearchBudget:
    defaults = {"max_runtime_secs": None, "max_models": 50, "stopping_rounds": 0}
    defaults.update(kwargs)
    return SearchBudget(**defaults)


@pytest.fixture
def train():
    return make_cohort(300, seed=5)


def run_search(engine, space, search_budget, train, **kwargs):
    kwargs.setdefault("folds", 3)
    return HyperparameterSearch(engine, space, search_budget, **kwargs).run(FEATURES, OUTCOME, train)


class TestSpaceHelpers:
    def test_space_size_discrete(self):
        space = {
            "a": ParamSpec(type="categorical", choices=[1, 2, 3]),
            "b": ParamSpec(type="int", low=100, high=300, step=100),
            "c": ParamSpec(type="float", low=0.5, high=1.0, step=0.25),
        }
        assert space_size(space) == 27

    def test_space_size_continuous(self):
        assert math.isinf(space_size({"x": ParamSpec(type="float", low=0.0, high=1.0)}))

    def test_distributions_deduplicate_choices(self):
        dists = to_distributions({"a": ParamSpec(type="categorical", choices=[1, 1, 2])})
        assert list(dists["a"].choices) == [1, 2]

    def test_near_equal_float_choices_count_once(self):
        space = {"a": ParamSpec(type="categorical", choices=[0.1, 0.1 + 1e-12, 0.3])}
        assert list(to_distributions(space)["a"].choices) == [0.1, 0.3]
        assert space_size(space) == 2

    def test_near_equal_float_choices_exhaust_space(self, train):
        space = {"q": ParamSpec(type="categorical", choices=[1.0, 1.0 + 1e-12])}
        run = run_search(FakeEngine(), space, budget(max_models=10), train)
        assert run.n_evaluated == 1
        assert run.stop_reason == STOP_EXHAUSTED


class TestStoppingRules:
    def test_max_models(self, train):
        run = run_search(FakeEngine(), FLAT_SPACE, budget(max_models=5), train)
        assert run.n_evaluated == 5
        assert run.stop_reason == STOP_MAX_MODELS
        assert len(run.results) == 5

    def test_deadline_checked_between_candidates(self, train):
        clock = StepClock()
        engine = FakeEngine(on_train=lambda: clock.advance(10))
        # Two folds = 20s per candidate: 0 -> 20 -> 40 -> 60, stop before the fourth
        run = run_search(
            engine, FLAT_SPACE, budget(max_runtime_secs=50), train, folds=2, clock=clock
        )
        assert run.n_evaluated == 3
        assert run.stop_reason == STOP_MAX_RUNTIME

    def test_no_improvement_stops_after_patience(self, train):
        run = run_search(FakeEngine(), FLAT_SPACE, budget(stopping_rounds=3), train)
        assert run.n_evaluated == 4
        assert run.stop_reason == STOP_EARLY

    def test_exhausted_space(self, train):
        space = {"q": ParamSpec(type="categorical", choices=[0.5, 1.0])}
        run = run_search(FakeEngine(), space, budget(max_models=10), train)
        assert run.n_evaluated == 2
        assert run.stop_reason == STOP_EXHAUSTED
        assert sorted(r.params["q"] for r in run.results) == [0.5, 1.0]

    def test_single_configuration_space(self, train):
        space = {"q": ParamSpec(type="categorical", choices=[1.0])}
        run = run_search(FakeEngine(), space, budget(max_models=10), train)
        assert run.n_evaluated == 1
        assert run.stop_reason == STOP_EXHAUSTED
        assert run.best.params == {"q": 1.0}

    def test_single_candidate_budget_returns_it_as_best(self, train):
        weak = {"q": ParamSpec(type="categorical", choices=[0.0, 0.2])}
        run = run_search(FakeEngine(), weak, budget(max_models=1), train)
        assert run.n_evaluated == 1
        assert run.stop_reason == STOP_MAX_MODELS
        assert len(run.results) == 1
        assert run.best.params["q"] in (0.0, 0.2)
        assert run.model.params == run.best.params


class TestResults:
    def test_results_best_first(self, train):
        run = run_search(FakeEngine(), Q_SPACE, budget(), train)
        scores = [r.score for r in run.results]
        assert scores == sorted(scores, reverse=True)
        assert [r.rank for r in run.results] == [1, 2, 3]
        assert run.best.params["q"] == 1.0
        assert run.model.params == run.best.params

    def test_minimized_metric_sorted_ascending(self, train):
        run = run_search(FakeEngine(), Q_SPACE, budget(stopping_metric="mse"), train)
        scores = [r.score for r in run.results]
        assert scores == sorted(scores)
        assert run.metric == "mse"

    def test_ties_ranked_by_trial_number(self, train):
        run = run_search(FakeEngine(), FLAT_SPACE, budget(max_models=4), train)
        numbers = [r.trial_number for r in run.results]
        assert numbers == sorted(numbers)

    def test_fold_scores_recorded(self, train):
        run = run_search(FakeEngine(), Q_SPACE, budget(), train, folds=4)
        assert all(len(r.fold_scores) == 4 for r in run.results)

    def test_reproducible_with_same_seed(self, train):
        r1 = run_search(FakeEngine(), FLAT_SPACE, budget(max_models=6), train, seed=11)
        r2 = run_search(FakeEngine(), FLAT_SPACE, budget(max_models=6), train, seed=11)
        assert [r.params for r in r1.results] == [r.params for r in r2.results]
        assert [r.score for r in r1.results] == [r.score for r in r2.results]

    def test_trials_frame(self, train):
        run = run_search(FakeEngine(), Q_SPACE, budget(), train)
        frame = run.trials_frame()
        assert list(frame["rank"]) == [1, 2, 3]
        assert "param_q" in frame.columns
        assert "auc" in frame.columns


class TestFailures:
    def test_failed_candidate_is_skipped(self, train):
        engine = FakeEngine(fail_when=lambda params, features: params.get("q") == 0.2)
        run = run_search(engine, Q_SPACE, budget(), train)
        assert run.n_evaluated == 3
        assert run.n_failed == 1
        assert len(run.results) == 2
        assert all(r.params["q"] != 0.2 for r in run.results)
        assert "ValueError" in run.failures[0]["error"]

    def test_failures_count_toward_max_models(self, train):
        seen: list[int] = []

        def every_other_candidate(params, features):
            if params["tag"] not in seen:
                seen.append(params["tag"])
            return seen.index(params["tag"]) % 2 == 1

        engine = FakeEngine(fail_when=every_other_candidate)
        run = run_search(engine, FLAT_SPACE, budget(max_models=6), train)
        assert run.n_evaluated == 6
        assert run.n_failed == 3
        assert len(run.results) == 3

    def test_failed_candidate_logged(self, train, caplog):
        engine = FakeEngine(fail_when=lambda params, features: params.get("q") == 0.6)
        with caplog.at_level(logging.WARNING, logger="hf_ml.models.search"):
            run_search(engine, Q_SPACE, budget(), train)
        assert "failed" in caplog.text
        assert "invalid configuration" in caplog.text

    def test_all_candidates_failing_raises(self, train):
        engine = FakeEngine(fail_when=lambda params, features: True)
        with pytest.raises(SearchExhaustedError):
            run_search(engine, Q_SPACE, budget(), train)

    def test_invalid_folds(self):
        with pytest.raises(ValueError, match="folds"):
            HyperparameterSearch(FakeEngine(), Q_SPACE, budget(), folds=1)


class TestResourceRelease:
    def test_fold_models_released_refit_kept(self, train):
        engine = FakeEngine()
        ctx = ComputeContext(name="test", collect_garbage=False)
        run = run_search(engine, Q_SPACE, budget(), train, context=ctx)

        # 3 candidates x 3 folds + 1 refit
        assert len(engine.trained) == 10
        assert all(m.is_released for m in engine.trained[:-1])
        assert run.model is engine.trained[-1]
        assert not run.model.is_released
        assert ctx.live_count == 1

        ctx.close()
        assert run.model.is_released
        assert ctx.live_count == 0

    def test_refit_model_belongs_to_callers_scope(self, train):
        ctx = ComputeContext(name="test", collect_garbage=False)
        with ctx.scope("unit"):
            run = run_search(FakeEngine(), Q_SPACE, budget(), train, context=ctx)
            assert not run.model.is_released
        assert run.model.is_released
        assert ctx.live_count == 0

    def test_fold_models_released_when_candidate_fails(self, train):
        calls = {"n": 0}

        def fail_second_fold(params, features):
            calls["n"] += 1
            return params.get("q") == 0.6 and calls["n"] % 3 == 2

        engine = FakeEngine(fail_when=fail_second_fold)
        ctx = ComputeContext(name="test", collect_garbage=False)
        run_search(engine, Q_SPACE, budget(), train, context=ctx)
        assert ctx.live_count == 1
