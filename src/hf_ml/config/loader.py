"""
Configuration loading and merging logic.

Supports:
1. Loading from YAML files (with ``_base`` inheritance)
2. CLI argument overrides (dot-notation: e.g., search.budget.max_models=20)
3. Path resolution relative to the config file
4. Validation into a PipelineConfig
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hf_ml.config.schema import PipelineConfig
from hf_ml.exceptions import ConfigurationError


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overlay* into *base* (overlay wins on leaf conflicts).

    Returns a new dict; neither input is mutated.
    """
    merged = base.copy()
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_yaml(file_path: str | Path) -> dict[str, Any]:
    """Load configuration from YAML file.

    Supports a ``_base`` key: if present, the referenced YAML file is loaded
    first and the current file's values are deep-merged on top. The ``_base``
    path is resolved relative to the directory containing *file_path*.
    """
    file_path = Path(file_path).resolve()
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path) as f:
        config_dict = yaml.safe_load(f) or {}

    base_ref = config_dict.pop("_base", None)
    if base_ref is not None:
        base_path = (file_path.parent / base_ref).resolve()
        base_dict = load_yaml(base_path)
        config_dict = _deep_merge(base_dict, config_dict)

    return config_dict


def resolve_paths_relative_to_config(
    config_dict: dict[str, Any], config_file: Path
) -> dict[str, Any]:
    """
    Resolve relative data and output paths against the config file directory.

    Only ``data.subgroups[*].train``, ``data.subgroups[*].test`` and
    ``output.outdir`` are treated as paths.
    """
    config_dir = Path(config_file).resolve().parent

    def _resolve(value: Any) -> Any:
        if value is None:
            return value
        path = Path(value)
        return str(path if path.is_absolute() else config_dir / path)

    resolved = dict(config_dict)
    data = resolved.get("data")
    if isinstance(data, dict) and isinstance(data.get("subgroups"), list):
        data = dict(data)
        data["subgroups"] = [
            {**sg, "train": _resolve(sg.get("train")), "test": _resolve(sg.get("test"))}
            for sg in data["subgroups"]
        ]
        resolved["data"] = data

    output = resolved.get("output")
    if isinstance(output, dict) and "outdir" in output:
        resolved["output"] = {**output, "outdir": _resolve(output["outdir"])}

    return resolved


# Override keys whose values are always lists or always strings.
LIST_KEYS = frozenset({"outcomes", "categorical_columns", "exclude_columns", "choices"})
STRING_KEYS = frozenset({"run_id", "subgroup", "baseline", "name", "prefix"})


def _set_dotted(config_dict: dict[str, Any], key_path: str, value: Any) -> None:
    *parents, leaf = key_path.split(".")
    node = config_dict
    for key in parents:
        if not isinstance(node.get(key), dict):
            node[key] = {}
        node = node[key]
    node[leaf] = value


def apply_overrides(config_dict: dict[str, Any], overrides: list[str]) -> dict[str, Any]:
    """
    Apply ``dotted.key=value`` overrides in place, e.g.
    ``search.budget.max_models=20`` or ``outcomes=whf_outcome,death_outcome``.

    Raises:
        ValueError: If an override has no ``=``
    """
    for override in overrides:
        key_path, sep, raw = override.partition("=")
        if not sep:
            raise ValueError(f"Invalid override format: {override}. Expected 'key=value'")
        leaf = key_path.rsplit(".", 1)[-1]
        _set_dotted(
            config_dict,
            key_path,
            _parse_value(raw, force_list=leaf in LIST_KEYS, force_string=leaf in STRING_KEYS),
        )
    return config_dict


def _scalar(text: str) -> Any:
    """Read one override token with YAML scalar rules; 'none' also means null."""
    text = text.strip()
    if not text:
        return text
    if text.lower() == "none":
        return None
    try:
        value = yaml.safe_load(text)
    except yaml.YAMLError:
        return text
    if isinstance(value, str) and any(c.isdigit() for c in value):
        # PyYAML leaves exponents without a dot ("1e-3") as strings
        try:
            return float(value)
        except ValueError:
            return value
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    return text


def _parse_value(value_str: str, force_list: bool = False, force_string: bool = False) -> Any:
    """Convert an override value; comma-separated values become lists."""
    if force_string:
        return value_str
    if force_list or "," in value_str:
        return [_scalar(v) for v in value_str.split(",")]
    return _scalar(value_str)


def load_pipeline_config(
    config_file: str | Path | None = None,
    overrides: list[str] | None = None,
) -> PipelineConfig:
    """
    Load pipeline configuration from file and CLI overrides.

    Args:
        config_file: Path to YAML config file (optional; defaults apply otherwise)
        overrides: List of CLI overrides in "key=value" format (optional)

    Returns:
        Validated PipelineConfig instance

    Raises:
        ConfigurationError: If the merged configuration fails validation
    """
    config_dict: dict[str, Any] = {}

    if config_file is not None:
        config_file_path = Path(config_file)
        config_dict = load_yaml(config_file_path)
        config_dict = resolve_paths_relative_to_config(config_dict, config_file_path)

    if overrides:
        config_dict = apply_overrides(config_dict, overrides)

    try:
        return PipelineConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid pipeline configuration:\n{e}") from e


def save_config(config: PipelineConfig, output_path: str | Path):
    """Save resolved configuration to YAML file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(mode="json", exclude_none=True)

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)


def print_config_summary(config: PipelineConfig, logger=None):
    """Log (or print) the resolved configuration as YAML."""
    body = yaml.safe_dump(config.model_dump(mode="json"), default_flow_style=False, sort_keys=False)
    rule = "=" * 80
    summary = "\n".join([rule, "Configuration Summary", rule, body.rstrip(), rule])
    if logger:
        logger.info(summary)
    else:
        print(summary)
