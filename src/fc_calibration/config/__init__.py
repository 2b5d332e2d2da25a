"""Calibration settings and their YAML loader."""

from __future__ import annotations

from .loader import load_calibration_config
from .models import FIRMWARE_CHOICES, CalibrationConfig

__all__ = [
    "CalibrationConfig",
    "FIRMWARE_CHOICES",
    "load_calibration_config",
]
