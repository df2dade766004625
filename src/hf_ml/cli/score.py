"""
Score an exported model on a dataset.

Reloads a model written by the run-models stage and reports its metrics,
optionally with bootstrap percentile intervals.
"""

import logging
from dataclasses import replace
from pathlib import Path

import click

from hf_ml.data.io import read_table
from hf_ml.metrics.bootstrap import BootstrapEvaluator
from hf_ml.metrics.evaluator import METRIC_NAMES, MetricEvaluator
from hf_ml.models.engine import XGBoostEngine
from hf_ml.utils.logging import setup_logger


def run_score(
    model_dir: str | Path,
    data_file: str | Path,
    outcome: str | None = None,
    n_boot: int = 0,
    seed: int = 1,
    verbose: int = 0,
) -> dict[str, str]:
    """
    Score an exported model and echo one ``metric: value`` line per metric.

    Returns:
        Metric name -> formatted value
    """
    logger = setup_logger("hf_ml", level=logging.DEBUG if verbose else logging.WARNING)
    engine = XGBoostEngine()
    model = engine.load(model_dir)
    if outcome is not None and outcome != model.outcome:
        logger.info(f"Scoring against '{outcome}' (model was trained on '{model.outcome}')")
        model = replace(model, outcome=outcome)

    data = read_table(data_file)
    evaluator = MetricEvaluator(engine)
    if n_boot > 0:
        report = BootstrapEvaluator(evaluator, n_resamples=n_boot, seed=seed).evaluate(model, data)
        formatted = report.formatted()
    else:
        vector = evaluator.evaluate(model, data)
        formatted = {name: f"{getattr(vector, name):.3f}" for name in METRIC_NAMES}

    click.echo(f"model: {Path(model_dir).name} ({model.subgroup}/{model.outcome}, n={len(data):,})")
    for name, value in formatted.items():
        click.echo(f"{name}: {value}")
    return formatted
