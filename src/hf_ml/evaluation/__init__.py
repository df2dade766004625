"""Importance export and report writing."""

from hf_ml.evaluation.importance import ImportanceExporter, ImportanceTables, rank_scores
from hf_ml.evaluation.reports import (
    OutputDirectories,
    ResultsWriter,
    format_cell,
    performance_row,
    performance_table,
)

__all__ = [
    "ImportanceExporter",
    "ImportanceTables",
    "rank_scores",
    "OutputDirectories",
    "ResultsWriter",
    "format_cell",
    "performance_row",
    "performance_table",
]
