"""Configuration file loading and option merging.

A config file is a flat YAML mapping keyed by the long command-line option
names; hyphens and underscores are interchangeable::

    cnet: survey.net
    camera-files: [left.tsai, right.tsai]
    bundle-adjustment-type: sparse_huber
    huber-param: 4.0
    max-iterations: 50

Values given on the command line override values from the file.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from .core.models.settings import AdjustmentSettings, RunSettings
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# option name -> (settings section, field name)
OPTION_FIELDS: Dict[str, Tuple[str, str]] = {
    "cnet": ("run", "cnet_file"),
    "camera_files": ("run", "camera_files"),
    "data_dir": ("run", "data_dir"),
    "results_dir": ("run", "results_dir"),
    "use_ba_type_dirs": ("run", "use_ba_type_dirs"),
    "outlier_command": ("run", "outlier_command"),
    "bundle_adjustment_type": ("adjustment", "adjustment_type"),
    "lambda": ("adjustment", "lambda_"),
    "control": ("adjustment", "control"),
    "huber_param": ("adjustment", "huber_param"),
    "cauchy_param": ("adjustment", "cauchy_param"),
    "camera_position_sigma": ("adjustment", "camera_position_sigma"),
    "camera_pose_sigma": ("adjustment", "camera_pose_sigma"),
    "gcp_sigma": ("adjustment", "gcp_sigma"),
    "max_iterations": ("adjustment", "max_iterations"),
    "save_iteration_data": ("adjustment", "save_iteration_data"),
    "report_level": ("adjustment", "report_level"),
    "remove_outliers": ("adjustment", "remove_outliers"),
    "outlier_sd_cutoff": ("adjustment", "outlier_sd_cutoff"),
}


def normalize_key(key: str) -> str:
    return key.strip().lstrip("-").replace("-", "_")


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a YAML config file into a dict keyed by normalized option names."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file '{path}' does not exist or is not a regular file")
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

    options = {}
    for key, value in data.items():
        name = normalize_key(str(key))
        if name not in OPTION_FIELDS:
            raise ConfigurationError(f"Unknown option '{key}' in config file {path}")
        options[name] = value
    logger.info(f"Loaded config from {path}")
    return options


def merge_options(file_options: Dict[str, Any], cli_options: Dict[str, Any]) -> Dict[str, Any]:
    """Command-line values win; ``None`` means "not given"."""
    merged = dict(file_options)
    for key, value in cli_options.items():
        if value is None:
            continue
        if key == "camera_files" and not value:
            continue
        merged[key] = value
    return merged


def build_run_settings(options: Dict[str, Any], require_inputs: bool = True) -> RunSettings:
    """Validate merged options into :class:`RunSettings`.

    Args:
        options: Merged option values keyed by long option name
        require_inputs: Insist that the control network and camera files are named.
            Printing the configuration does not need them.

    Raises:
        ConfigurationError: if the control network or camera files are missing
        pydantic.ValidationError: if a value is out of range
    """
    run_values: Dict[str, Any] = {}
    adjustment_values: Dict[str, Any] = {}
    for name, value in options.items():
        if value is None:
            continue
        section, field = OPTION_FIELDS[name]
        (run_values if section == "run" else adjustment_values)[field] = value

    if isinstance(run_values.get("outlier_command"), str):
        run_values["outlier_command"] = run_values["outlier_command"].split()

    # Asking for a cutoff means asking for outlier removal
    if "outlier_sd_cutoff" in adjustment_values:
        adjustment_values["remove_outliers"] = True

    adjustment = AdjustmentSettings.model_validate(adjustment_values)
    settings = RunSettings(**run_values, adjustment=adjustment)
    if require_inputs:
        settings.check_inputs_given()
    return settings
