"""Utility functions for HF-ML."""

from hf_ml.utils.logging import auto_log_path, log_section, setup_logger
from hf_ml.utils.random import apply_seed_global, set_random_seed
from hf_ml.utils.serialization import load_json, save_json

__all__ = [
    "setup_logger",
    "auto_log_path",
    "log_section",
    "set_random_seed",
    "apply_seed_global",
    "save_json",
    "load_json",
]
