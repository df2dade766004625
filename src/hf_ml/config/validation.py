"""
Configuration validation and safety checks.

Schema-level checks live in the Pydantic models; this module holds the checks
that need the whole configuration (budget consistency, leakage between
feature and label columns) and the strictness handling shared by them.
"""

import logging
import warnings

from hf_ml.config.schema import PipelineConfig
from hf_ml.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ConfigValidationWarning(UserWarning):
    """Warning for potential configuration issues."""


def validate_pipeline_config(config: PipelineConfig, strictness: str = "warn"):
    """
    Validate a pipeline configuration for leakage and inconsistencies.

    Args:
        config: PipelineConfig instance
        strictness: "off", "warn", or "error"
    """
    issues = []

    label_cols = set(config.label_columns)
    for spec in config.domains.specs:
        if spec.features is not None:
            leaked = sorted(label_cols & set(spec.features))
            if leaked:
                issues.append(f"Domain '{spec.name}' lists label columns as features: {leaked}")
        elif any(col.startswith(spec.prefix) for col in label_cols):
            issues.append(
                f"Domain '{spec.name}' prefix '{spec.prefix}' matches label columns; "
                "they are excluded before domain resolution."
            )

    prefixes = [(d.name, d.prefix) for d in config.domains.specs if d.prefix is not None]
    for name_a, pre_a in prefixes:
        for name_b, pre_b in prefixes:
            if name_a != name_b and pre_b.startswith(pre_a):
                issues.append(
                    f"Domain prefix '{pre_a}' ({name_a}) also matches every column of "
                    f"'{pre_b}' ({name_b}); resolution will fail on overlapping columns."
                )

    if config.search.budget.max_models < config.search.budget.stopping_rounds:
        issues.append(
            f"search.budget.max_models ({config.search.budget.max_models}) < "
            f"stopping_rounds ({config.search.budget.stopping_rounds}); early stop can never trigger."
        )

    for outcome in config.forward_selection.outcomes:
        if outcome not in config.outcomes:
            issues.append(f"Forward-selection outcome '{outcome}' is not a modelled outcome.")

    _handle_issues(issues, strictness, "Pipeline configuration")


def _handle_issues(issues: list[str], strictness: str, context: str):
    """Report issues according to strictness level."""
    if not issues or strictness == "off":
        return

    message = f"{context} issues:\n" + "\n".join(f"  - {issue}" for issue in issues)
    if strictness == "error":
        raise ConfigurationError(message)
    warnings.warn(message, ConfigValidationWarning, stacklevel=3)
