"""Firmware abstractions shared by the ArduPilot and iNav interfaces."""

from __future__ import annotations

import abc
import enum
import logging
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)


class FirmwareTarget(enum.Enum):
    """Flight-controller firmware families the calibrator can drive."""

    ARDUPILOT = "ardupilot"
    INAV = "inav"


class SensorChannel(enum.Enum):
    """Battery sensor channels that can be calibrated."""

    VOLTAGE = "voltage"
    CURRENT = "current"


@dataclass(frozen=True, slots=True)
class RawOffsetScale:
    """Calibration stored on the board for one channel.

    Args:
        offset: Sensor offset in volts (always 0.0 for the voltage channel).
        scale: Sensor scale in the firmware's physical unit.
    """

    offset: float
    scale: float


class FirmwareError(RuntimeError):
    """Base class for firmware level failures."""


class SensorNotEnabledError(FirmwareError):
    """Raised when calibrating a sensor that is disabled on the board."""


class SensorEnableError(FirmwareError):
    """Raised when a sensor cannot be enabled from the board's current state."""


class UnsupportedFirmwareError(FirmwareError):
    """Raised when the connected board runs an unsupported firmware."""


class FirmwareAutodetectionFailed(FirmwareError):  # noqa: N818
    """Raised when no supported protocol answered on the serial port."""


class FirmwareInterface(abc.ABC):
    """Uniform capability set over a connected flight controller.

    Offsets and scales cross this interface in physical units; each variant
    converts to whatever its protocol stores. Protocol errors raised by the
    underlying link propagate unchanged.
    """

    target: FirmwareTarget

    def __init__(self) -> None:
        """Initialise reboot tracking."""
        self._needs_reboot = False

    @property
    def needs_reboot(self) -> bool:
        """Whether a configuration change only takes effect after a reboot."""
        return self._needs_reboot

    # ------------------------------------------------------------------
    # Sensor state
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def is_sensor_present(self, channel: SensorChannel) -> bool:
        """Return whether the board reports hardware for ``channel``."""

    @abc.abstractmethod
    def is_channel_enabled(self, channel: SensorChannel) -> bool:
        """Return whether sensing on ``channel`` is active."""

    def enable_channel(self, channel: SensorChannel) -> None:
        """Activate sensing on ``channel``; a reboot is required afterwards."""
        if self.is_channel_enabled(channel):
            return
        self._enable_channel(channel)
        self._needs_reboot = True
        LOGGER.info("%s sensor enabled on %s board; reboot required", channel.value, self.target.value)

    @abc.abstractmethod
    def _enable_channel(self, channel: SensorChannel) -> None:
        """Variant specific enabling logic."""

    # ------------------------------------------------------------------
    # Calibration values
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def measurement_scale(self, channel: SensorChannel) -> float:
        """Scale that makes the board report raw, untransformed readings."""

    @abc.abstractmethod
    def offset_and_scale(self, channel: SensorChannel) -> RawOffsetScale:
        """Read the calibration currently stored for ``channel``."""

    @abc.abstractmethod
    def set_offset_and_scale(self, channel: SensorChannel, offset: float, scale: float) -> None:
        """Store a calibration for ``channel``; the offset is ignored for voltage."""

    def prepare_calibration(self, channel: SensorChannel) -> None:
        """Reset ``channel`` to a zero offset and the raw measurement scale."""
        self.set_offset_and_scale(channel, 0.0, self.measurement_scale(channel))

    @abc.abstractmethod
    def persist(self) -> None:
        """Commit pending configuration changes to non-volatile storage."""

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def sample_raw(self, channel: SensorChannel) -> float:
        """Return one instantaneous reading, blocking for fresh telemetry."""

    def reboot(self) -> None:
        """Reboot the board and clear the pending reboot flag."""
        self._reboot()
        self._needs_reboot = False

    @abc.abstractmethod
    def _reboot(self) -> None:
        """Variant specific reboot."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""

    def __enter__(self) -> "FirmwareInterface":
        """Return the interface for use in a ``with`` block."""
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Close the connection when leaving a context manager."""
        self.close()
