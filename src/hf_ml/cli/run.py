"""
Run commands: run-models, forward-select, run-pipeline.

Each command loads and validates the configuration, sets up logging (console
plus a per-run log file), saves the resolved configuration next to the results
and drives the PipelineOrchestrator.
"""

import logging
from datetime import datetime
from pathlib import Path

from hf_ml.config.loader import load_pipeline_config, print_config_summary, save_config
from hf_ml.config.schema import PipelineConfig
from hf_ml.config.validation import validate_pipeline_config
from hf_ml.pipeline.orchestrator import PipelineOrchestrator, PipelineResult
from hf_ml.utils.logging import auto_log_path, log_section, setup_logger


def _prepare(
    command: str,
    config_file: str | Path | None,
    overrides: list[str] | None,
    log_file: str | Path | None,
    verbose: int,
) -> tuple[PipelineConfig, logging.Logger]:
    config = load_pipeline_config(config_file, overrides)
    run_id = config.run_id or datetime.now().strftime("%Y%m%d_%H%M%S")

    log_level = max(logging.DEBUG, logging.INFO - verbose * 10)
    log_path = Path(log_file) if log_file else auto_log_path(command, config.output.outdir, run_id)
    logger = setup_logger("hf_ml", level=log_level, log_file=log_path)

    log_section(logger, f"hfml {command} (run {run_id})")
    logger.info(f"Config: {config_file or '<defaults>'}")
    logger.info(f"Log file: {log_path}")
    if verbose:
        print_config_summary(config, logger)

    validate_pipeline_config(config, strictness="warn")
    save_config(config, Path(config.output.outdir) / "run_settings.yaml")
    return config, logger


def _summarize(result: PipelineResult, logger: logging.Logger) -> None:
    n_models = sum(len(units) for units in result.models.values())
    logger.info(
        f"Completed: {n_models} model(s), {len(result.selections)} forward selection(s), "
        f"{len(result.failures)} failure(s)"
    )
    for failure in result.failures:
        logger.warning(
            f"  FAILED {failure.unit} [{failure.stage}] {failure.error_type}: {failure.message}"
        )


def run_models_command(
    config_file: str | Path | None = None,
    overrides: list[str] | None = None,
    subgroups: list[str] | None = None,
    outcomes: list[str] | None = None,
    log_file: str | Path | None = None,
    verbose: int = 0,
) -> PipelineResult:
    """Run the model stage for the selected subgroups and outcomes."""
    config, logger = _prepare("run-models", config_file, overrides, log_file, verbose)
    orchestrator = PipelineOrchestrator(config)
    try:
        result = orchestrator.run_models(subgroups=subgroups, outcomes=outcomes)
    finally:
        orchestrator.context.close()
    _summarize(result, logger)
    return result


def run_forward_select_command(
    config_file: str | Path | None = None,
    overrides: list[str] | None = None,
    outcomes: list[str] | None = None,
    log_file: str | Path | None = None,
    verbose: int = 0,
) -> PipelineResult:
    """Run forward domain selection."""
    config, logger = _prepare("forward-select", config_file, overrides, log_file, verbose)
    orchestrator = PipelineOrchestrator(config)
    try:
        result = orchestrator.run_forward_selection(outcomes=outcomes)
    finally:
        orchestrator.context.close()
    _summarize(result, logger)
    return result


def run_pipeline_command(
    config_file: str | Path | None = None,
    overrides: list[str] | None = None,
    log_file: str | Path | None = None,
    verbose: int = 0,
) -> PipelineResult:
    """Run both stages."""
    config, logger = _prepare("run-pipeline", config_file, overrides, log_file, verbose)
    orchestrator = PipelineOrchestrator(config)
    try:
        result = orchestrator.run()
    finally:
        orchestrator.context.close()
    _summarize(result, logger)
    return result
