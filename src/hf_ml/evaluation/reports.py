"""
Report formatting and the results output tree.

Provides:
- format_cell / performance_row: ``"0.812 (0.790, 0.833)"`` report cells
- OutputDirectories: directory layout under the run output root
- ResultsWriter: writes consolidated reports, importance tables, search trials,
  forward-selection histories, unit failures and model artifacts

Layout::

    <outdir>/
      run_settings.yaml
      models/
        {subgroup}_results.csv
        {subgroup}_failures.csv
        {subgroup}_{outcome}/  model.json, metadata.json, VarImp.csv, SHAP.csv, search_trials.csv
      forward_selection/
        {outcome}_fselect_bydom_results.csv
        {outcome}_fselect_iterations.csv
        fselect_failures.csv
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from hf_ml.evaluation.importance import ImportanceTables
from hf_ml.metrics.bootstrap import MetricEstimate, PerformanceReport
from hf_ml.metrics.evaluator import METRIC_NAMES
from hf_ml.models.engine import BoostingEngine, TrainedModel

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["model", *METRIC_NAMES]
SELECTION_COLUMNS = ["model", "auc", "mse", "time"]
FAILURE_COLUMNS = ["unit", "stage", "error_type", "message"]


def format_cell(estimate: MetricEstimate, digits: int = 3) -> str:
    """Format a point estimate and its interval, rounding only here."""
    return estimate.format(digits)


def performance_row(model_name: str, report: PerformanceReport, digits: int = 3) -> dict[str, str]:
    """One consolidated-report row: model name plus a formatted cell per metric."""
    row = {"model": model_name}
    for name in METRIC_NAMES:
        row[name] = format_cell(report[name], digits)
    return row


def performance_table(rows: list[dict[str, str]]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


@dataclass
class OutputDirectories:
    """
    Structured output directory paths.

    Attributes:
        root: Base output directory
        models: Consolidated per-subgroup reports and per-model artifact folders
        forward_selection: Forward-selection histories
    """

    root: Path
    models: Path
    forward_selection: Path

    @classmethod
    def create(cls, root: str | Path, exist_ok: bool = True) -> "OutputDirectories":
        """
        Create the output directory structure.

        Raises:
            OSError: If directory creation fails
        """
        root = Path(root)
        paths = {"root": root, "models": root / "models", "forward_selection": root / "forward_selection"}
        for path in paths.values():
            path.mkdir(parents=True, exist_ok=exist_ok)
        logger.debug(f"Created output structure at: {root}")
        return cls(**paths)

    def model_dir(self, subgroup: str, outcome: str) -> Path:
        path = self.models / f"{subgroup}_{outcome}"
        path.mkdir(parents=True, exist_ok=True)
        return path


class ResultsWriter:
    """
    High-level API for writing pipeline results.

    Usage:
        writer = ResultsWriter(OutputDirectories.create("results"))
        writer.save_subgroup_report("ref", rows)
        writer.save_selection_history("whf_outcome", history_df)
    """

    def __init__(self, output_dirs: OutputDirectories):
        self.dirs = output_dirs

    # ========== Consolidated reports ==========

    def save_subgroup_report(self, subgroup: str, rows: list[dict[str, str]]) -> Path:
        """Save ``models/{subgroup}_results.csv``."""
        path = self.dirs.models / f"{subgroup}_results.csv"
        performance_table(rows).to_csv(path, index=False)
        logger.info(f"Saved subgroup report: {path}")
        return path

    def save_failures(self, name: str, failures: list[dict[str, Any]], folder: Path) -> Path | None:
        """Save unit failures to ``{folder}/{name}_failures.csv``; nothing if there are none."""
        if not failures:
            return None
        path = folder / f"{name}_failures.csv"
        pd.DataFrame(failures, columns=FAILURE_COLUMNS).to_csv(path, index=False)
        logger.warning(f"Saved {len(failures)} unit failure(s): {path}")
        return path

    # ========== Per-model outputs ==========

    def save_importance(self, subgroup: str, outcome: str, tables: ImportanceTables) -> Path:
        """Save ``VarImp.csv`` and ``SHAP.csv`` into the model folder."""
        folder = self.dirs.model_dir(subgroup, outcome)
        tables.varimp.to_csv(folder / "VarImp.csv", index=False)
        tables.shap.to_csv(folder / "SHAP.csv", index=False)
        logger.debug(f"Saved importance tables: {folder}")
        return folder

    def save_search_trials(self, subgroup: str, outcome: str, trials: pd.DataFrame) -> Path:
        path = self.dirs.model_dir(subgroup, outcome) / "search_trials.csv"
        trials.to_csv(path, index=False)
        return path

    def save_model(
        self, engine: BoostingEngine, model: TrainedModel, subgroup: str, outcome: str
    ) -> Path:
        """Export the model in the engine's portable format."""
        return engine.save(model, self.dirs.model_dir(subgroup, outcome))

    # ========== Forward selection ==========

    def save_selection_history(self, outcome: str, history: pd.DataFrame) -> Path:
        """Save ``forward_selection/{outcome}_fselect_bydom_results.csv`` in acceptance order."""
        path = self.dirs.forward_selection / f"{outcome}_fselect_bydom_results.csv"
        history.loc[:, SELECTION_COLUMNS].to_csv(path, index=False)
        logger.info(f"Saved forward-selection history: {path}")
        return path

    def save_selection_iterations(self, outcome: str, iterations: pd.DataFrame) -> Path:
        path = self.dirs.forward_selection / f"{outcome}_fselect_iterations.csv"
        iterations.to_csv(path, index=False)
        return path
