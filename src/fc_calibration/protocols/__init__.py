"""Wire protocol boundary: link shapes, errors and concrete transports."""

from .base import (
    AnalogReading,
    BatteryConfig,
    MavlinkError,
    MavlinkLink,
    MavlinkTimeout,
    MSPError,
    MSPLink,
    MSPReadTimeout,
    MSPSyncFailed,
    ProtocolError,
)

__all__ = [
    "AnalogReading",
    "BatteryConfig",
    "MavlinkError",
    "MavlinkLink",
    "MavlinkTimeout",
    "MSPError",
    "MSPLink",
    "MSPReadTimeout",
    "MSPSyncFailed",
    "ProtocolError",
]
