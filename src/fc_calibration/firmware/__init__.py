"""Public firmware interfaces exposed by :mod:`fc_calibration`."""

from .ardupilot import ArdupilotInterface
from .autodetect import autodetect, open_firmware
from .base import (
    FirmwareAutodetectionFailed,
    FirmwareError,
    FirmwareInterface,
    FirmwareTarget,
    RawOffsetScale,
    SensorChannel,
    SensorEnableError,
    SensorNotEnabledError,
    UnsupportedFirmwareError,
)
from .inav import INavInterface
from .mock import MockFirmwareInterface

__all__ = [
    "FirmwareInterface",
    "FirmwareTarget",
    "SensorChannel",
    "RawOffsetScale",
    "FirmwareError",
    "SensorNotEnabledError",
    "SensorEnableError",
    "UnsupportedFirmwareError",
    "FirmwareAutodetectionFailed",
    "ArdupilotInterface",
    "INavInterface",
    "MockFirmwareInterface",
    "autodetect",
    "open_firmware",
]
