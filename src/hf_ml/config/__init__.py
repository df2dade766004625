"""Configuration management for HF-ML."""

from hf_ml.config.defaults import (
    DEFAULT_DOMAINS,
    DEFAULT_HYPERPARAMETERS,
    DEFAULT_OUTCOMES,
    DEFAULT_SEARCH_BUDGET,
)
from hf_ml.config.loader import (
    apply_overrides,
    load_pipeline_config,
    load_yaml,
    print_config_summary,
    save_config,
)
from hf_ml.config.schema import (
    STOPPING_METRICS,
    BootstrapConfig,
    ComputeConfig,
    DataConfig,
    DomainsConfig,
    DomainSpec,
    ForwardSelectionConfig,
    OutputConfig,
    ParamSpec,
    PipelineConfig,
    SearchBudget,
    SearchConfig,
    SubgroupSpec,
)
from hf_ml.config.validation import (
    ConfigValidationWarning,
    validate_pipeline_config,
)

__all__ = [
    "DEFAULT_DOMAINS",
    "DEFAULT_HYPERPARAMETERS",
    "DEFAULT_OUTCOMES",
    "DEFAULT_SEARCH_BUDGET",
    "STOPPING_METRICS",
    "apply_overrides",
    "load_pipeline_config",
    "load_yaml",
    "print_config_summary",
    "save_config",
    "BootstrapConfig",
    "ComputeConfig",
    "DataConfig",
    "DomainsConfig",
    "DomainSpec",
    "ForwardSelectionConfig",
    "OutputConfig",
    "ParamSpec",
    "PipelineConfig",
    "SearchBudget",
    "SearchConfig",
    "SubgroupSpec",
    "ConfigValidationWarning",
    "validate_pipeline_config",
]
