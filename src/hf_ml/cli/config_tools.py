"""
Configuration tools: validate a pipeline configuration file.
"""

import logging
import warnings
from pathlib import Path

from hf_ml.config.loader import load_pipeline_config
from hf_ml.config.validation import ConfigValidationWarning, validate_pipeline_config
from hf_ml.data.domains import FeatureSpace
from hf_ml.data.io import load_subgroup
from hf_ml.utils.logging import setup_logger


def _verbose_to_level(verbose: int) -> int:
    """Convert verbose count to logging level."""
    return logging.DEBUG if verbose else logging.INFO


def run_config_validate(
    config_file: str | Path,
    overrides: list[str] | None = None,
    resolve: bool = False,
    strict: bool = False,
    verbose: int = 0,
) -> None:
    """
    Validate a configuration file and report issues.

    Args:
        config_file: Path to YAML config
        overrides: CLI overrides
        resolve: Also load each subgroup and resolve its feature domains
        strict: Raise on warnings instead of reporting them

    Raises:
        ConfigurationError: On schema errors, or on any issue when ``strict``
    """
    logger = setup_logger("hf_ml", level=_verbose_to_level(verbose), capture_warnings=False)
    config = load_pipeline_config(config_file, overrides)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", ConfigValidationWarning)
        validate_pipeline_config(config, strictness="error" if strict else "warn")
    for w in caught:
        logger.warning(str(w.message))

    logger.info(f"Configuration OK: {config_file}")
    logger.info(f"  subgroups: {[s.name for s in config.data.subgroups]}")
    logger.info(f"  outcomes: {config.outcomes}")
    logger.info(f"  domains: {[d.name for d in config.domains.specs]} (baseline={config.domains.baseline})")
    logger.info(
        f"  search: {len(config.search.hyperparameters)} parameter(s), "
        f"max_models={config.search.budget.max_models}, folds={config.search.folds}"
    )

    if not resolve:
        return

    for spec in config.data.subgroups:
        data = load_subgroup(spec, config.data.categorical_columns)
        space = FeatureSpace.resolve(
            data.columns,
            config.domains.specs,
            exclude=config.label_columns,
            unassigned=config.domains.unassigned,
        )
        logger.info(f"  [{spec.name}] {len(space.features)} features")
        for domain in space.domains:
            logger.info(f"    {domain.name:<10} {len(domain):>5}")
        if space.unassigned:
            logger.info(f"    (ignored {len(space.unassigned)} unassigned column(s))")
