"""
Data I/O utilities for the HF-ML pipeline.

Reads per-subgroup train/test tables (CSV or Parquet), types declared
categorical columns with categories aligned across the two splits, and turns
outcome columns into 0/1 label vectors.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from hf_ml.config.schema import SubgroupSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubgroupData:
    """Train/test frames for one patient subgroup. Treated as read-only."""

    name: str
    train: pd.DataFrame
    test: pd.DataFrame

    @property
    def columns(self) -> list[str]:
        return list(self.train.columns)


def read_table(filepath: str | Path) -> pd.DataFrame:
    """
    Read a CSV or Parquet file based on its extension.

    Raises:
        FileNotFoundError: If filepath does not exist
        ValueError: If the extension is not supported
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    suffix = filepath.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(filepath, low_memory=False)
    elif suffix in (".parquet", ".pq"):
        df = pd.read_parquet(filepath)
    else:
        raise ValueError(f"Unsupported file format: {filepath.suffix} (expected .csv or .parquet)")

    logger.info(f"Loaded {filepath.name}: {len(df):,} rows × {len(df.columns):,} columns")
    return df


def align_categories(
    train: pd.DataFrame,
    test: pd.DataFrame,
    columns: list[str],
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Cast columns to ``category`` dtype sharing one category set across splits.

    The booster encodes categories by code, so train and test must agree on the
    code assignment. Columns absent from either frame are skipped.

    Returns:
        New (train, test) frames; inputs are not modified.
    """
    train = train.copy()
    test = test.copy()
    for col in columns:
        if col not in train.columns or col not in test.columns:
            continue
        values = pd.concat([train[col], test[col]], ignore_index=True).dropna()
        categories = sorted(pd.unique(values.astype(str)))
        dtype = pd.CategoricalDtype(categories=categories)
        train[col] = train[col].astype("string").astype(dtype)
        test[col] = test[col].astype("string").astype(dtype)
    return train, test


def load_subgroup(spec: SubgroupSpec, categorical_columns: list[str]) -> SubgroupData:
    """
    Load one subgroup's train/test pair and type its categorical columns.

    Args:
        spec: Subgroup declaration with train/test paths
        categorical_columns: Columns to cast to aligned categoricals

    Returns:
        SubgroupData for the subgroup
    """
    train = read_table(spec.train)
    test = read_table(spec.test)

    missing = sorted(set(train.columns) ^ set(test.columns))
    if missing:
        raise ValueError(f"Subgroup '{spec.name}': train/test columns differ: {missing}")

    train, test = align_categories(train, test, categorical_columns)
    return SubgroupData(name=spec.name, train=train, test=test[train.columns])


def encode_label(series: pd.Series) -> np.ndarray:
    """
    Convert an outcome column to a 0/1 integer vector.

    Accepts numeric, boolean or categorical columns whose values are 0/1
    (or "0"/"1", True/False).

    Raises:
        ValueError: If the column has missing values or non-binary levels
    """
    if series.isna().any():
        raise ValueError(f"Outcome '{series.name}' has {int(series.isna().sum())} missing values")

    if isinstance(series.dtype, pd.CategoricalDtype):
        series = series.astype(str)
    if series.dtype == bool:
        return series.to_numpy().astype(int)

    try:
        values = pd.to_numeric(series.astype(str).str.strip().replace({"True": "1", "False": "0"}))
    except ValueError as e:
        raise ValueError(f"Outcome '{series.name}' is not a binary 0/1 column") from e

    levels = set(np.unique(values).tolist())
    if not levels <= {0, 1}:
        raise ValueError(f"Outcome '{series.name}' has non-binary levels: {sorted(levels)}")
    return values.to_numpy().astype(int)
