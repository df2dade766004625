"""Data loading and feature-domain resolution."""

from hf_ml.data.domains import FeatureDomain, FeatureSpace
from hf_ml.data.io import (
    SubgroupData,
    align_categories,
    encode_label,
    load_subgroup,
    read_table,
)

__all__ = [
    "FeatureDomain",
    "FeatureSpace",
    "SubgroupData",
    "align_categories",
    "encode_label",
    "load_subgroup",
    "read_table",
]
