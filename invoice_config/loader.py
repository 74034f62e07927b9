"""
Settings file loader (``invoice_config.loader``).

Responsibility
--------------
Reads YAML files of settings defaults and flattens them into the
``dict[str, str]`` shape of the settings store.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Top-level value that is not a mapping  -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from invoice_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _as_setting(value: Any) -> str:
    # YAML booleans come back as Python bools; the store speaks "true"/"false"
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def load_settings_file(path: Path | str) -> dict[str, str]:
    """
    Load a settings seed file.

    The file is a flat mapping of setting key to scalar value, optionally
    nested under a top-level ``settings:`` key.
    """
    path = Path(path)
    data = load_yaml_file(path)
    if "settings" in data and isinstance(data["settings"], dict):
        data = data["settings"]
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of settings, got {type(data).__name__}")

    settings = {str(key): _as_setting(value) for key, value in data.items()}
    logger.info("settings_file_loaded", extra={
        "path": str(path),
        "keys": len(settings),
    })
    return settings


def load_default_settings() -> dict[str, str]:
    """The packaged ``defaults.yaml``."""
    return load_settings_file(DEFAULTS_PATH)
