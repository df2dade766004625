"""
Configuration schema for the HF-ML pipeline.

Defines Pydantic models for the configuration surface: search space and budget,
cross-validation folds, bootstrap resampling, outcome labels, subgroup data
files, feature domains and the forward-selection model.
"""

import copy
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from hf_ml.config.defaults import (
    DEFAULT_BOOTSTRAP_CONFIG,
    DEFAULT_CATEGORICAL_COLUMNS,
    DEFAULT_DOMAINS,
    DEFAULT_EXCLUDE_COLUMNS,
    DEFAULT_FORWARD_PARAMS,
    DEFAULT_FORWARD_SELECTION_CONFIG,
    DEFAULT_HYPERPARAMETERS,
    DEFAULT_OUTCOMES,
    DEFAULT_SEARCH_BUDGET,
)

# Stopping metrics and whether larger values are better
STOPPING_METRICS: dict[str, bool] = {
    "auc": True,
    "aucpr": True,
    "mse": False,
    "logloss": False,
}

# Float hyperparameters are compared at this precision
PARAM_DIGITS = 10


def round_param(value: Any) -> Any:
    """Round float values to PARAM_DIGITS; other values pass through."""
    return round(value, PARAM_DIGITS) if isinstance(value, float) else value


# ============================================================================
# Hyperparameter Search
# ============================================================================


class ParamSpec(BaseModel):
    """One dimension of the hyperparameter space.

    ``categorical`` dimensions enumerate ``choices``; ``int``/``float``
    dimensions span ``[low, high]``, discretized by ``step`` when given.
    """

    type: Literal["categorical", "int", "float"] = "categorical"
    choices: list[Any] | None = None
    low: float | None = None
    high: float | None = None
    step: float | None = Field(default=None, gt=0)
    log: bool = False

    @model_validator(mode="after")
    def validate_range(self):
        if self.type == "categorical":
            if not self.choices:
                raise ValueError("categorical parameter requires a non-empty 'choices' list")
            return self

        if self.low is None or self.high is None:
            raise ValueError(f"{self.type} parameter requires both 'low' and 'high'")
        if self.low > self.high:
            raise ValueError(f"empty range: low ({self.low}) > high ({self.high})")
        if self.log and self.low <= 0:
            raise ValueError(f"log-scale range requires low > 0, got {self.low}")
        if self.log and self.step is not None:
            raise ValueError("'step' cannot be combined with log-scale ranges")
        if self.type == "int":
            if float(self.low) != int(self.low) or float(self.high) != int(self.high):
                raise ValueError("int parameter bounds must be integers")
            if self.step is not None and float(self.step) != int(self.step):
                raise ValueError("int parameter step must be an integer")
        return self

    @property
    def is_discrete(self) -> bool:
        return self.type == "categorical" or self.type == "int" or self.step is not None

    def grid(self) -> list[Any]:
        """Enumerate the values of a discrete dimension."""
        if self.type == "categorical":
            return list(dict.fromkeys(round_param(v) for v in self.choices))
        if not self.is_discrete:
            raise ValueError("continuous dimension has no finite grid")
        if self.type == "int":
            step = int(self.step or 1)
            return list(range(int(self.low), int(self.high) + 1, step))
        n = int(round((self.high - self.low) / self.step)) + 1
        values = [round_param(self.low + i * self.step) for i in range(n)]
        return [v for v in values if v <= self.high + 1e-12]


class SearchBudget(BaseModel):
    """Stopping criteria for the random hyperparameter search."""

    max_runtime_secs: float | None = Field(default=600.0, gt=0)
    max_models: int = Field(default=100, ge=1)
    stopping_metric: Literal["auc", "aucpr", "mse", "logloss"] = "auc"
    stopping_tolerance: float = Field(default=0.002, ge=0.0)
    stopping_rounds: int = Field(default=5, ge=0, description="Patience; 0 disables early stop")

    @property
    def greater_is_better(self) -> bool:
        return STOPPING_METRICS[self.stopping_metric]


class SearchConfig(BaseModel):
    """Configuration for the cross-validated hyperparameter search."""

    hyperparameters: dict[str, ParamSpec] = Field(
        default_factory=lambda: {
            k: ParamSpec(**v) for k, v in copy.deepcopy(DEFAULT_HYPERPARAMETERS).items()
        }
    )
    budget: SearchBudget = Field(default_factory=lambda: SearchBudget(**DEFAULT_SEARCH_BUDGET))
    folds: int = Field(default=5, ge=2)
    seed: int = 1

    @field_validator("hyperparameters", mode="before")
    @classmethod
    def expand_choice_lists(cls, v):
        """Accept ``max_depth: [2, 4]`` as shorthand for a categorical dimension."""
        if not isinstance(v, dict):
            return v
        return {
            name: {"type": "categorical", "choices": list(spec)}
            if isinstance(spec, (list, tuple))
            else spec
            for name, spec in v.items()
        }

    @field_validator("hyperparameters")
    @classmethod
    def validate_nonempty(cls, v):
        if not v:
            raise ValueError("hyperparameter space must define at least one parameter")
        return v


# ============================================================================
# Bootstrap
# ============================================================================


class BootstrapConfig(BaseModel):
    """Configuration for percentile bootstrap confidence intervals."""

    n_resamples: int = Field(default=DEFAULT_BOOTSTRAP_CONFIG["n_resamples"], ge=1)
    seed: int = DEFAULT_BOOTSTRAP_CONFIG["seed"]
    alpha: float = Field(default=0.05, gt=0.0, lt=1.0)
    max_degenerate_frac: float = Field(default=0.5, ge=0.0, le=1.0)


# ============================================================================
# Data and Feature Domains
# ============================================================================


class SubgroupSpec(BaseModel):
    """Train/test files for one patient subgroup."""

    name: str
    train: Path
    test: Path


class DataConfig(BaseModel):
    """Input data locations and column typing."""

    subgroups: list[SubgroupSpec] = Field(default_factory=list)
    categorical_columns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORICAL_COLUMNS)
    )
    exclude_columns: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_COLUMNS))

    @model_validator(mode="after")
    def validate_unique_names(self):
        names = [s.name for s in self.subgroups]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate subgroup names: {dupes}")
        return self


class DomainSpec(BaseModel):
    """Statically declared feature domain: a name-prefix rule or an explicit feature set."""

    name: str
    prefix: str | None = None
    features: list[str] | None = None

    @model_validator(mode="after")
    def validate_matcher(self):
        if (self.prefix is None) == (self.features is None):
            raise ValueError(
                f"Domain '{self.name}' must declare exactly one of 'prefix' or 'features'"
            )
        if self.prefix is not None and not self.prefix:
            raise ValueError(f"Domain '{self.name}' has an empty prefix")
        if self.features is not None and not self.features:
            raise ValueError(f"Domain '{self.name}' has an empty feature list")
        return self

    def matches(self, column: str) -> bool:
        if self.prefix is not None:
            return column.startswith(self.prefix)
        return column in self.features


class DomainsConfig(BaseModel):
    """Ordered domain declarations; order is the tie-break priority in forward selection."""

    specs: list[DomainSpec] = Field(
        default_factory=lambda: [DomainSpec(**d) for d in copy.deepcopy(DEFAULT_DOMAINS)]
    )
    baseline: str = "demo"
    unassigned: Literal["error", "ignore"] = "error"

    @model_validator(mode="after")
    def validate_domains(self):
        names = [d.name for d in self.specs]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate domain names: {dupes}")
        if self.baseline not in names:
            raise ValueError(f"Baseline domain '{self.baseline}' is not declared in domains.specs")
        return self


# ============================================================================
# Forward Selection
# ============================================================================


class ForwardSelectionConfig(BaseModel):
    """Configuration for greedy forward selection over feature domains."""

    outcomes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FORWARD_SELECTION_CONFIG["outcomes"])
    )
    subgroup: str = "all"
    params: dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_FORWARD_PARAMS))
    seed: int = 1234
    n_jobs: int | None = Field(default=None, ge=1)


# ============================================================================
# Compute and Output
# ============================================================================


class ComputeConfig(BaseModel):
    """Compute resources shared by all stages."""

    cpus: int = Field(default_factory=lambda: os.cpu_count() or 1, ge=1)
    nthread: int | None = Field(default=None, ge=1, description="Threads per model fit")
    units_n_jobs: int = Field(
        default=1, ge=1, description="Parallel (subgroup, outcome) units in run-models"
    )


class OutputConfig(BaseModel):
    """Where and what to write."""

    outdir: Path = Field(default=Path("results"))
    save_models: bool = True
    save_importance: bool = True
    save_trials: bool = True


# ============================================================================
# Master Configuration
# ============================================================================


class PipelineConfig(BaseModel):
    """Root configuration for all HF-ML commands."""

    data: DataConfig = Field(default_factory=DataConfig)
    outcomes: list[str] = Field(default_factory=lambda: list(DEFAULT_OUTCOMES))
    search: SearchConfig = Field(default_factory=SearchConfig)
    bootstrap: BootstrapConfig = Field(default_factory=BootstrapConfig)
    domains: DomainsConfig = Field(default_factory=DomainsConfig)
    forward_selection: ForwardSelectionConfig = Field(default_factory=ForwardSelectionConfig)
    compute: ComputeConfig = Field(default_factory=ComputeConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    run_id: str | None = None

    @model_validator(mode="after")
    def validate_cross_references(self):
        if not self.outcomes:
            raise ValueError("At least one outcome label is required")
        if len(set(self.outcomes)) != len(self.outcomes):
            raise ValueError(f"Duplicate outcome labels: {self.outcomes}")

        subgroup_names = [s.name for s in self.data.subgroups]
        if subgroup_names and self.forward_selection.subgroup not in subgroup_names:
            raise ValueError(
                f"forward_selection.subgroup '{self.forward_selection.subgroup}' "
                f"is not one of the configured subgroups {subgroup_names}"
            )
        return self

    @property
    def label_columns(self) -> list[str]:
        """Every column that must never be used as a predictor."""
        cols = list(self.outcomes)
        for col in self.forward_selection.outcomes + self.data.exclude_columns:
            if col not in cols:
                cols.append(col)
        return cols
