"""Configuration model for calibration runs."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from ..firmware.base import FirmwareTarget

FIRMWARE_CHOICES = ("auto",) + tuple(target.value for target in FirmwareTarget)


@dataclass(slots=True)
class CalibrationConfig:
    """Tunables shared by the CLI and the calibration workflow.

    Args:
        acquisition_time_s: Length of each sampling window.
        baudrate: Serial line speed.
        firmware: ``"auto"`` or a :class:`FirmwareTarget` value.
        telemetry_interval_s: SYS_STATUS stream period requested from ArduPilot.
        autodetect_attempts: MSP identity queries tried during autodetection.
        reboot_settle_s: Pause after rebooting a board found during autodetection.
        protocol_timeout_s: Reply timeout of both protocol transports.
    """

    acquisition_time_s: float = 5.0
    baudrate: int = 115200
    firmware: str = "auto"
    telemetry_interval_s: float = 0.02
    autodetect_attempts: int = 4
    reboot_settle_s: float = 1.0
    protocol_timeout_s: float = 1.0

    def __post_init__(self) -> None:
        """Validate and normalise field values."""
        _validate_config(self)

    @property
    def firmware_target(self) -> FirmwareTarget | None:
        """Requested firmware, or None for autodetection."""
        if self.firmware == "auto":
            return None
        return FirmwareTarget(self.firmware)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "CalibrationConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {item.name for item in fields(cls)}
        unknown = set(payload) - known
        if unknown:
            raise ValueError(f"Unknown calibration settings: {sorted(unknown)}")
        return cls(**dict(payload))

    def with_overrides(self, **overrides: Any) -> "CalibrationConfig":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


def _validate_config(config: CalibrationConfig) -> None:
    try:
        config.acquisition_time_s = float(config.acquisition_time_s)
        config.telemetry_interval_s = float(config.telemetry_interval_s)
        config.reboot_settle_s = float(config.reboot_settle_s)
        config.protocol_timeout_s = float(config.protocol_timeout_s)
        config.baudrate = int(config.baudrate)
        config.autodetect_attempts = int(config.autodetect_attempts)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid calibration setting: {exc}") from exc

    if config.acquisition_time_s <= 0:
        raise ValueError("acquisition_time_s must be positive")
    if config.telemetry_interval_s <= 0:
        raise ValueError("telemetry_interval_s must be positive")
    if config.protocol_timeout_s <= 0:
        raise ValueError("protocol_timeout_s must be positive")
    if config.reboot_settle_s < 0:
        raise ValueError("reboot_settle_s must be non-negative")
    if config.baudrate <= 0:
        raise ValueError("baudrate must be positive")
    if config.autodetect_attempts < 1:
        raise ValueError("autodetect_attempts must be at least 1")

    config.firmware = str(config.firmware).lower()
    if config.firmware not in FIRMWARE_CHOICES:
        raise ValueError(
            f"firmware must be one of {', '.join(FIRMWARE_CHOICES)}, got '{config.firmware}'"
        )
