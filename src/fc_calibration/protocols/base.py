"""Collaborator boundary for the flight-controller wire protocols.

The firmware interfaces only depend on the structural protocols declared
here. Concrete transports live in :mod:`.msp` and :mod:`.mavlink`; tests
substitute lightweight stubs that satisfy the same shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol


class ProtocolError(RuntimeError):
    """Base class for transport level failures."""


class MSPError(ProtocolError):
    """Raised when an MSP exchange fails."""


class MSPReadTimeout(MSPError):
    """No complete MSP response arrived before the read deadline."""


class MSPSyncFailed(MSPError):
    """The byte stream could not be synchronised on an MSP frame."""


class MavlinkError(ProtocolError):
    """Raised when a MAVLink exchange fails."""


class MavlinkTimeout(MavlinkError):
    """The expected MAVLink message did not arrive in time."""


@dataclass(slots=True)
class BatteryConfig:
    """iNav battery configuration block in wire (fixed-point) units.

    The block is only ever written back as a whole; callers read it, mutate
    the fields they need and send the full block again.
    """

    voltage_scale: int
    voltage_source: int
    cells: int
    cell_detect_voltage: int
    cell_min_voltage: int
    cell_max_voltage: int
    cell_warning_voltage: int
    current_offset: int
    current_scale: int
    capacity: int
    capacity_warning: int
    capacity_critical: int
    capacity_unit: int


@dataclass(slots=True)
class AnalogReading:
    """Instantaneous battery telemetry reported by iNav."""

    voltage: float
    current: float


class MSPLink(Protocol):
    """Operations the iNav interface needs from an MSP transport."""

    def fc_variant(self) -> str:
        """Return the four letter firmware identifier (``INAV``, ``ARDU``...)."""

    def battery_config(self) -> BatteryConfig:
        """Read the composite battery configuration block."""

    def set_battery_config(self, config: BatteryConfig) -> None:
        """Write the complete battery configuration block."""

    def feature_enabled(self, feature: str) -> bool:
        """Return whether the named feature flag is set."""

    def enable_feature(self, feature: str) -> None:
        """Set the named feature flag."""

    def analog(self) -> AnalogReading:
        """Return one battery telemetry reading."""

    def save_settings(self) -> None:
        """Commit the configuration to non-volatile storage."""

    def reboot(self, *, resume: bool = True) -> None:
        """Reboot the board, optionally re-opening the connection."""

    def close(self) -> None:
        """Release the serial port."""


class MavlinkLink(Protocol):
    """Operations the ArduPilot interface needs from a MAVLink transport."""

    def param_value(self, name: str) -> float:
        """Fetch a parameter value."""

    def set_param_value(self, name: str, value: float) -> None:
        """Write a parameter value."""

    def set_message_interval(self, message: str, interval_s: float) -> None:
        """Request a periodic message stream at the given interval."""

    def wait_for_message(self, message: str) -> Mapping[str, Any]:
        """Block until the next message of the given type and return its fields."""

    def reboot(self) -> None:
        """Reboot the autopilot."""

    def close(self) -> None:
        """Release the serial port."""
