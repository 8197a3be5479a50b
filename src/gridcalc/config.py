"""Engine configuration: defaults plus an optional ``gridcalc.yaml``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "gridcalc.yaml"

DEFAULT_CONFIG = {
    "sheet_rows": 200,
    "sheet_cols": 40,
    "viewport_rows": 30,
    "viewport_cols": 15,
    "eviction_margin": 100,
    "default_sheet_prefix": "Sheet",
    "logging_enabled": True,
    "logging_dir": None,  # default: <project_dir>/.gridcalc/events
    "logging_max_value_chars": 200,
}

_POSITIVE_INT_KEYS = (
    "sheet_rows",
    "sheet_cols",
    "viewport_rows",
    "viewport_cols",
    "logging_max_value_chars",
)


def _check(config: dict[str, Any]) -> None:
    for key in _POSITIVE_INT_KEYS:
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"Config key {key!r} must be a positive integer, got {value!r}")
    margin = config["eviction_margin"]
    if isinstance(margin, bool) or not isinstance(margin, int) or margin < 0:
        raise ValueError(f"Config key 'eviction_margin' must be >= 0, got {margin!r}")
    prefix = config["default_sheet_prefix"]
    if not isinstance(prefix, str) or not prefix.strip():
        raise ValueError("Config key 'default_sheet_prefix' must be a non-empty string")


def load_config(project_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from ``gridcalc.yaml``, with defaults.

    Unknown keys in the file are ignored.

    Args:
        project_dir: Directory holding ``gridcalc.yaml``.  None returns
            the defaults.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the file is not a mapping or a value is invalid.
    """
    config = dict(DEFAULT_CONFIG)
    if project_dir is not None:
        config_path = Path(project_dir) / CONFIG_FILENAME
        if config_path.exists():
            user_config = yaml.safe_load(config_path.read_text()) or {}
            if not isinstance(user_config, dict):
                raise ValueError(f"{config_path} must contain a mapping")
            config.update({k: v for k, v in user_config.items() if k in DEFAULT_CONFIG})
    _check(config)
    return config


def log_dir_for(project_dir: Path, config: dict[str, Any]) -> Path:
    """Resolve the event log directory for a project."""
    if config.get("logging_dir"):
        path = Path(config["logging_dir"])
        return path if path.is_absolute() else Path(project_dir) / path
    return Path(project_dir) / ".gridcalc" / "events"
