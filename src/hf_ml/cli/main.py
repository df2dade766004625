"""
Main CLI entry point for the HF-ML pipeline.

Provides subcommands:
  - hfml run-models: Search, evaluate and export one model per subgroup x outcome
  - hfml forward-select: Forward selection over EHR data domains
  - hfml run-pipeline: Both stages
  - hfml validate-config: Validate a configuration file
  - hfml score: Re-score an exported model on a dataset
"""

import click

from hf_ml import __version__
from hf_ml.exceptions import ConfigurationError, HFMLError


def _common_run_options(f):
    f = click.option(
        "--override",
        multiple=True,
        help="Override config values (format: key=value or nested.key=value)",
    )(f)
    f = click.option(
        "--log-file",
        type=click.Path(),
        default=None,
        help="Log file path (default: logs/<command>/run_<id>.log next to the output dir)",
    )(f)
    f = click.option(
        "--config",
        "-c",
        type=click.Path(exists=True),
        help="Path to YAML configuration file",
    )(f)
    return f


def _finish(ctx, result):
    """Exit non-zero when any unit failed."""
    if not result.ok:
        ctx.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="hfml")
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v for DEBUG)",
)
@click.pass_context
def cli(ctx, verbose):
    """
    HF-ML: risk prediction models for worsening heart failure and death

    Boosted-tree models per LVEF subgroup and outcome with bootstrap confidence
    intervals, plus forward selection over EHR data domains.
    """
    from hf_ml.utils.random import apply_seed_global

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    # SEED_GLOBAL seeds the global RNGs for single-threaded reproducibility debugging
    seed_applied = apply_seed_global()
    if seed_applied is not None:
        ctx.obj["seed_global"] = seed_applied


@cli.command("run-models")
@_common_run_options
@click.option(
    "--subgroup",
    "subgroups",
    multiple=True,
    help="Subgroup to run (can be repeated; default: all configured)",
)
@click.option(
    "--outcome",
    "outcomes",
    multiple=True,
    help="Outcome label to model (can be repeated; default: config outcomes)",
)
@click.pass_context
def run_models(ctx, config, log_file, override, subgroups, outcomes):
    """Search, bootstrap-evaluate and export a model per subgroup and outcome."""
    from hf_ml.cli.run import run_models_command

    try:
        result = run_models_command(
            config_file=config,
            overrides=list(override),
            subgroups=list(subgroups) or None,
            outcomes=list(outcomes) or None,
            log_file=log_file,
            verbose=ctx.obj.get("verbose", 0),
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    _finish(ctx, result)


@cli.command("forward-select")
@_common_run_options
@click.option(
    "--outcome",
    "outcomes",
    multiple=True,
    help="Outcome label (can be repeated; default: forward_selection.outcomes)",
)
@click.pass_context
def forward_select(ctx, config, log_file, override, outcomes):
    """Greedy forward selection over feature domains."""
    from hf_ml.cli.run import run_forward_select_command

    try:
        result = run_forward_select_command(
            config_file=config,
            overrides=list(override),
            outcomes=list(outcomes) or None,
            log_file=log_file,
            verbose=ctx.obj.get("verbose", 0),
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    _finish(ctx, result)


@cli.command("run-pipeline")
@_common_run_options
@click.pass_context
def run_pipeline(ctx, config, log_file, override):
    """Run the model stage followed by forward selection."""
    from hf_ml.cli.run import run_pipeline_command

    try:
        result = run_pipeline_command(
            config_file=config,
            overrides=list(override),
            log_file=log_file,
            verbose=ctx.obj.get("verbose", 0),
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    _finish(ctx, result)


@cli.command("validate-config")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Path to YAML configuration file",
)
@click.option(
    "--override",
    multiple=True,
    help="Override config values (format: key=value or nested.key=value)",
)
@click.option(
    "--resolve",
    is_flag=True,
    help="Load each subgroup's data and resolve feature domains",
)
@click.option(
    "--strict",
    is_flag=True,
    help="Treat warnings as errors",
)
@click.pass_context
def validate_config(ctx, config, override, resolve, strict):
    """Validate configuration file and report issues."""
    from hf_ml.cli.config_tools import run_config_validate

    try:
        run_config_validate(
            config_file=config,
            overrides=list(override),
            resolve=resolve,
            strict=strict,
            verbose=ctx.obj.get("verbose", 0),
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@cli.command("score")
@click.option(
    "--model",
    "model_dir",
    type=click.Path(exists=True, file_okay=False),
    required=True,
    help="Exported model directory (model.json + metadata.json)",
)
@click.option(
    "--data",
    "data_file",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="CSV or Parquet file to score",
)
@click.option(
    "--outcome",
    default=None,
    help="Outcome label column (default: the model's outcome)",
)
@click.option(
    "--n-boot",
    type=int,
    default=0,
    help="Bootstrap resamples for confidence intervals (0 = point estimates only)",
)
@click.option(
    "--seed",
    type=int,
    default=1,
    help="Bootstrap seed",
)
@click.pass_context
def score(ctx, model_dir, data_file, outcome, n_boot, seed):
    """Reload an exported model and report its metrics on a dataset."""
    from hf_ml.cli.score import run_score

    try:
        run_score(
            model_dir=model_dir,
            data_file=data_file,
            outcome=outcome,
            n_boot=n_boot,
            seed=seed,
            verbose=ctx.obj.get("verbose", 0),
        )
    except KeyError as e:
        raise click.ClickException(f"Column not found in {data_file}: {e}") from e
    except HFMLError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    cli()
