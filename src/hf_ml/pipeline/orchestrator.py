"""
Pipeline orchestration across subgroups, outcomes and forward selection.

run_models: for each subgroup x outcome, search -> bootstrap report ->
importance -> model export, then one consolidated report per subgroup.
run_forward_selection: for each selection outcome, forward domain selection on
the configured subgroup.

Every (subgroup, outcome) and (outcome) unit runs inside its own compute scope.
A unit that raises is recorded as a UnitFailure and the run moves on to the
next unit.
"""

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field

import pandas as pd
from joblib import Parallel, delayed

from hf_ml.config.schema import PipelineConfig, SubgroupSpec
from hf_ml.data.domains import FeatureSpace
from hf_ml.data.io import SubgroupData, load_subgroup
from hf_ml.evaluation.importance import ImportanceExporter, ImportanceTables
from hf_ml.evaluation.reports import OutputDirectories, ResultsWriter, performance_row
from hf_ml.features.forward_selection import ForwardDomainSelector, ForwardSelectionState
from hf_ml.metrics.bootstrap import BootstrapEvaluator, PerformanceReport
from hf_ml.metrics.evaluator import MetricEvaluator
from hf_ml.models.context import ComputeContext
from hf_ml.models.engine import BoostingEngine, XGBoostEngine
from hf_ml.models.search import HyperparameterSearch, SearchRun
from hf_ml.utils.logging import log_section

logger = logging.getLogger(__name__)

SubgroupLoader = Callable[[SubgroupSpec, list[str]], SubgroupData]


@dataclass(frozen=True)
class UnitFailure:
    """A unit of work that raised; the run continued without it."""

    unit: str
    stage: str
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, unit: str, stage: str, error: Exception) -> "UnitFailure":
        return cls(unit=unit, stage=stage, error_type=type(error).__name__, message=str(error))

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class ModelUnitResult:
    """Everything produced for one (subgroup, outcome) pair."""

    subgroup: str
    outcome: str
    report: PerformanceReport
    search: SearchRun
    importance: ImportanceTables | None = None

    def row(self) -> dict[str, str]:
        return performance_row(self.outcome, self.report)


@dataclass
class PipelineResult:
    """Collected outputs and failures of a run."""

    models: dict[str, list[ModelUnitResult]] = field(default_factory=dict)
    selections: dict[str, ForwardSelectionState] = field(default_factory=dict)
    failures: list[UnitFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def merge(self, other: "PipelineResult") -> "PipelineResult":
        self.models.update(other.models)
        self.selections.update(other.selections)
        self.failures.extend(other.failures)
        return self

    def report_frame(self, subgroup: str) -> pd.DataFrame:
        return pd.DataFrame([r.row() for r in self.models.get(subgroup, [])])


class PipelineOrchestrator:
    """
    Sequences search, evaluation, importance export and forward selection.

    Args:
        config: Validated pipeline configuration
        engine: Boosting engine (defaults to XGBoost with ``compute.nthread`` threads)
        writer: Results writer (defaults to one rooted at ``output.outdir``)
        loader: Loads a subgroup's train/test pair
        context: Compute context shared by all units
    """

    def __init__(
        self,
        config: PipelineConfig,
        engine: BoostingEngine | None = None,
        writer: ResultsWriter | None = None,
        loader: SubgroupLoader = load_subgroup,
        context: ComputeContext | None = None,
    ):
        self.config = config
        self.engine = engine or XGBoostEngine(nthread=config.compute.nthread)
        self.writer = writer or ResultsWriter(OutputDirectories.create(config.output.outdir))
        self.loader = loader
        self.context = context or ComputeContext(name="pipeline")

    # ========== Data ==========

    def load(self, name: str) -> SubgroupData:
        for spec in self.config.data.subgroups:
            if spec.name == name:
                return self.loader(spec, self.config.data.categorical_columns)
        raise KeyError(f"Subgroup '{name}' is not configured")

    def feature_space(self, data: SubgroupData) -> FeatureSpace:
        return FeatureSpace.resolve(
            data.columns,
            self.config.domains.specs,
            exclude=self.config.label_columns,
            unassigned=self.config.domains.unassigned,
        )

    # ========== Model units ==========

    def run_model_unit(
        self, data: SubgroupData, space: FeatureSpace, outcome: str
    ) -> ModelUnitResult:
        """Search, evaluate and export one (subgroup, outcome) model."""
        cfg = self.config
        with self.context.scope(f"{data.name}/{outcome}"):
            search = HyperparameterSearch(
                self.engine,
                cfg.search.hyperparameters,
                cfg.search.budget,
                folds=cfg.search.folds,
                seed=cfg.search.seed,
                context=self.context,
            ).run(space.features, outcome, data.train, subgroup=data.name)
            model = search.model

            bootstrap = BootstrapEvaluator(
                MetricEvaluator(self.engine),
                n_resamples=cfg.bootstrap.n_resamples,
                seed=cfg.bootstrap.seed,
                alpha=cfg.bootstrap.alpha,
                max_degenerate_frac=cfg.bootstrap.max_degenerate_frac,
            )
            report = bootstrap.evaluate(model, data.test)

            importance = None
            if cfg.output.save_importance:
                importance = ImportanceExporter(self.engine).export(model, data.test)
                self.writer.save_importance(data.name, outcome, importance)
            if cfg.output.save_trials:
                self.writer.save_search_trials(data.name, outcome, search.trials_frame())
            if cfg.output.save_models:
                self.writer.save_model(self.engine, model, data.name, outcome)

        logger.info(
            f"[{data.name}/{outcome}] auc={report['auc'].format()} "
            f"({search.n_evaluated} candidate(s), stop={search.stop_reason})"
        )
        return ModelUnitResult(
            subgroup=data.name, outcome=outcome, report=report, search=search, importance=importance
        )

    def _guarded_unit(
        self, data: SubgroupData, space: FeatureSpace, outcome: str
    ) -> ModelUnitResult | UnitFailure:
        try:
            return self.run_model_unit(data, space, outcome)
        except Exception as e:
            logger.error(f"[{data.name}/{outcome}] failed: {type(e).__name__}: {e}")
            return UnitFailure.from_exception(f"{data.name}/{outcome}", "run_models", e)

    def run_models(
        self,
        subgroups: list[str] | None = None,
        outcomes: list[str] | None = None,
        datasets: dict[str, SubgroupData] | None = None,
    ) -> PipelineResult:
        """
        Run every (subgroup, outcome) unit and write one report per subgroup.

        Args:
            subgroups: Subgroup names (default: all configured, or all of ``datasets``)
            outcomes: Outcome labels (default: ``config.outcomes``)
            datasets: Preloaded subgroup data keyed by name (skips file loading)
        """
        outcomes = list(outcomes or self.config.outcomes)
        if subgroups is None:
            subgroups = list(datasets) if datasets else [s.name for s in self.config.data.subgroups]
        result = PipelineResult()

        for name in subgroups:
            log_section(logger, f"Subgroup: {name}")
            try:
                data = datasets[name] if datasets and name in datasets else self.load(name)
                space = self.feature_space(data)
            except Exception as e:
                logger.error(f"[{name}] could not prepare data: {type(e).__name__}: {e}")
                result.failures.append(UnitFailure.from_exception(name, "load", e))
                continue

            n_jobs = min(self.config.compute.units_n_jobs, len(outcomes))
            if n_jobs > 1:
                units = Parallel(n_jobs=n_jobs, prefer="threads")(
                    delayed(self._guarded_unit)(data, space, outcome) for outcome in outcomes
                )
            else:
                units = [self._guarded_unit(data, space, outcome) for outcome in outcomes]

            done = [u for u in units if isinstance(u, ModelUnitResult)]
            failed = [u for u in units if isinstance(u, UnitFailure)]
            result.models[name] = done
            result.failures.extend(failed)

            self.writer.save_subgroup_report(name, [u.row() for u in done])
            self.writer.save_failures(name, [f.as_dict() for f in failed], self.writer.dirs.models)

        return result

    # ========== Forward selection ==========

    def run_forward_selection(
        self,
        outcomes: list[str] | None = None,
        data: SubgroupData | None = None,
    ) -> PipelineResult:
        """Run forward domain selection for each selection outcome on one subgroup."""
        fs = self.config.forward_selection
        outcomes = list(outcomes or fs.outcomes)
        result = PipelineResult()
        log_section(logger, f"Forward selection: {', '.join(outcomes)}")

        try:
            data = data if data is not None else self.load(fs.subgroup)
            space = self.feature_space(data)
        except Exception as e:
            logger.error(f"[fselect] could not prepare data: {type(e).__name__}: {e}")
            result.failures.append(UnitFailure.from_exception(fs.subgroup, "load", e))
            self.writer.save_failures(
                "fselect", [f.as_dict() for f in result.failures], self.writer.dirs.forward_selection
            )
            return result

        selector = ForwardDomainSelector(
            self.engine,
            space,
            baseline=self.config.domains.baseline,
            params=fs.params,
            seed=fs.seed,
            n_jobs=fs.n_jobs,
            cpus=self.config.compute.cpus,
            context=self.context,
        )
        for outcome in outcomes:
            state = selector.initial_state(outcome)
            try:
                while not state.is_done:
                    selector.step(state, data.train, data.test)
            except Exception as e:
                iteration = len(state.iterations) + 1
                logger.error(f"[fselect] {outcome} iteration {iteration} failed: {e}")
                result.failures.append(
                    UnitFailure.from_exception(f"{outcome}/iteration_{iteration}", "forward_selection", e)
                )
                continue
            result.selections[outcome] = state
            self.writer.save_selection_history(outcome, state.history_frame())
            self.writer.save_selection_iterations(outcome, state.iterations_frame())

        self.writer.save_failures(
            "fselect", [f.as_dict() for f in result.failures], self.writer.dirs.forward_selection
        )
        return result

    def run(self) -> PipelineResult:
        """Run the model stage and then forward selection."""
        result = self.run_models()
        return result.merge(self.run_forward_selection())
