"""Load calibration settings from YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

import yaml

from .models import CalibrationConfig


def load_calibration_config(path: str | Path) -> CalibrationConfig:
    """Parse a YAML file holding a top-level ``calibration`` mapping.

    Args:
        path: Filesystem path to the YAML file.

    Returns:
        CalibrationConfig: Settings with defaults for every missing key.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: When the mapping is missing, holds unknown keys or
            invalid values.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(config_path)
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, Mapping):
        raise ValueError("Calibration YAML must contain a mapping")
    section = raw.get("calibration")
    if section is None:
        raise ValueError("Calibration YAML missing top-level 'calibration' mapping")
    if not isinstance(section, Mapping):
        raise ValueError("'calibration' entry must be a mapping")
    return CalibrationConfig.from_mapping(section)
