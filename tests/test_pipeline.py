"""
Tests for the pipeline orchestrator.

Units run against FakeEngine with a tiny search budget; the written output
tree is checked on disk.
"""

import pandas as pd
import pytest
from conftest import OUTCOME, SECOND_OUTCOME, FakeEngine, make_subgroup

from hf_ml.config.schema import PipelineConfig
from hf_ml.data.io import SubgroupData
from hf_ml.exceptions import DegenerateSampleError
from hf_ml.models.context import ComputeContext
from hf_ml.pipeline.orchestrator import PipelineOrchestrator, UnitFailure


def make_config(outdir, **overrides) -> PipelineConfig:
    raw = {
        "outcomes": [OUTCOME, SECOND_OUTCOME],
        "search": {
            "hyperparameters": {"q": {"type": "categorical", "choices": [0.6, 1.0]}},
            "budget": {"max_models": 5, "max_runtime_secs": None, "stopping_rounds": 0},
            "folds": 3,
        },
        "bootstrap": {"n_resamples": 50},
        "domains": {
            "specs": [
                {"name": "demo", "prefix": "demo"},
                {"name": "lab", "prefix": "lab"},
                {"name": "echo", "prefix": "echo"},
            ],
            "baseline": "demo",
        },
        "forward_selection": {"outcomes": [OUTCOME], "subgroup": "all", "params": {}},
        "compute": {"cpus": 2},
        "output": {"outdir": str(outdir)},
    }
    raw.update(overrides)
    return PipelineConfig(**raw)


def orchestrator(config, engine=None, **kwargs):
    kwargs.setdefault("context", ComputeContext(name="test", collect_garbage=False))
    return PipelineOrchestrator(config, engine=engine or FakeEngine(), **kwargs)


def degenerate_test_split(name="pef") -> SubgroupData:
    data = make_subgroup(name, seed=2)
    return SubgroupData(name=name, train=data.train, test=data.test.assign(**{SECOND_OUTCOME: 0}))


class TestRunModels:
    def test_reports_and_artifacts_written(self, tmp_path):
        config = make_config(tmp_path)
        result = orchestrator(config).run_models(datasets={"all": make_subgroup("all")})

        assert result.ok
        assert [u.outcome for u in result.models["all"]] == [OUTCOME, SECOND_OUTCOME]

        report = pd.read_csv(tmp_path / "models" / "all_results.csv")
        assert report["model"].tolist() == [OUTCOME, SECOND_OUTCOME]
        assert report["auc"].str.match(r"^\d\.\d{3} \(\d\.\d{3}, \d\.\d{3}\)$").all()

        model_dir = tmp_path / "models" / f"all_{OUTCOME}"
        for name in ("VarImp.csv", "SHAP.csv", "search_trials.csv", "metadata.json"):
            assert (model_dir / name).exists()
        assert not (tmp_path / "models" / "all_failures.csv").exists()

    def test_degenerate_unit_fails_run_continues(self, tmp_path):
        config = make_config(tmp_path)
        result = orchestrator(config).run_models(
            datasets={"pef": degenerate_test_split(), "all": make_subgroup("all")}
        )

        assert not result.ok
        assert result.failures == [
            UnitFailure(
                unit=f"pef/{SECOND_OUTCOME}",
                stage="run_models",
                error_type=DegenerateSampleError.__name__,
                message=result.failures[0].message,
            )
        ]
        assert [u.outcome for u in result.models["pef"]] == [OUTCOME]
        assert len(result.models["all"]) == 2

        failures = pd.read_csv(tmp_path / "models" / "pef_failures.csv")
        assert failures.loc[0, "unit"] == f"pef/{SECOND_OUTCOME}"
        assert pd.read_csv(tmp_path / "models" / "pef_results.csv")["model"].tolist() == [OUTCOME]

    def test_unit_models_released(self, tmp_path):
        engine = FakeEngine()
        orch = orchestrator(make_config(tmp_path), engine=engine)
        orch.run_models(datasets={"all": make_subgroup("all")})
        assert engine.trained
        assert all(m.is_released for m in engine.trained)
        assert orch.context.live_count == 0

    def test_output_flags(self, tmp_path):
        config = make_config(
            tmp_path,
            output={
                "outdir": str(tmp_path),
                "save_models": False,
                "save_importance": False,
                "save_trials": False,
            },
        )
        result = orchestrator(config).run_models(datasets={"all": make_subgroup("all")})
        assert result.models["all"][0].importance is None
        assert not (tmp_path / "models" / f"all_{OUTCOME}").exists()

    def test_unknown_subgroup_is_a_load_failure(self, tmp_path):
        result = orchestrator(make_config(tmp_path)).run_models(
            subgroups=["missing"], datasets={"all": make_subgroup("all")}
        )
        assert result.failures[0].unit == "missing"
        assert result.failures[0].stage == "load"
        assert result.failures[0].error_type == "KeyError"

    def test_parallel_units_match_sequential(self, tmp_path):
        datasets = {"all": make_subgroup("all")}
        seq = orchestrator(make_config(tmp_path / "seq")).run_models(datasets=datasets)
        par = orchestrator(
            make_config(tmp_path / "par", compute={"cpus": 2, "units_n_jobs": 2})
        ).run_models(datasets=datasets)
        assert seq.report_frame("all").equals(par.report_frame("all"))

    def test_search_failure_recorded(self, tmp_path):
        engine = FakeEngine(fail_when=lambda params, features: True)
        result = orchestrator(make_config(tmp_path), engine=engine).run_models(
            datasets={"all": make_subgroup("all")}
        )
        assert {f.error_type for f in result.failures} == {"SearchExhaustedError"}
        assert len(result.failures) == 2


class TestForwardSelection:
    def test_history_written(self, tmp_path):
        result = orchestrator(make_config(tmp_path)).run_forward_selection(
            data=make_subgroup("all")
        )
        assert result.ok
        assert result.selections[OUTCOME].accepted == ["demo", "lab", "echo"]

        history = pd.read_csv(tmp_path / "forward_selection" / f"{OUTCOME}_fselect_bydom_results.csv")
        assert history["model"].tolist() == ["lab", "echo"]
        assert list(history.columns) == ["model", "auc", "mse", "time"]
        assert (tmp_path / "forward_selection" / f"{OUTCOME}_fselect_iterations.csv").exists()

    def test_iteration_failure_recorded(self, tmp_path):
        engine = FakeEngine(fail_when=lambda params, features: "echo_lvef" in features)
        result = orchestrator(make_config(tmp_path), engine=engine).run_forward_selection(
            data=make_subgroup("all")
        )
        assert result.failures[0].unit == f"{OUTCOME}/iteration_1"
        assert result.failures[0].stage == "forward_selection"
        assert OUTCOME not in result.selections
        assert (tmp_path / "forward_selection" / "fselect_failures.csv").exists()


class TestRun:
    def test_both_stages_with_loader(self, tmp_path):
        loaded = []

        def loader(spec, categorical_columns):
            loaded.append(spec.name)
            return make_subgroup(spec.name)

        config = make_config(
            tmp_path,
            data={"subgroups": [{"name": "all", "train": "a.csv", "test": "b.csv"}]},
        )
        result = orchestrator(config, loader=loader).run()

        assert result.ok
        assert loaded == ["all", "all"]
        assert len(result.models["all"]) == 2
        assert OUTCOME in result.selections

    def test_load_unknown_name(self, tmp_path):
        with pytest.raises(KeyError):
            orchestrator(make_config(tmp_path)).load("ref")
