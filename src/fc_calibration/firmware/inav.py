"""iNav firmware interface over MSP feature flags and the battery config block."""

from __future__ import annotations

import logging

from ..protocols.base import BatteryConfig, MSPLink
from .base import (
    FirmwareInterface,
    FirmwareTarget,
    RawOffsetScale,
    SensorChannel,
    UnsupportedFirmwareError,
)

LOGGER = logging.getLogger(__name__)

INAV_VARIANT = "INAV"

# Current offset (V) and scale (V/A) travel as 0.1 mV fixed point.
CURRENT_FIXED_POINT = 10000
# Voltage scale travels in hundredths.
VOLTAGE_FIXED_POINT = 100

_FEATURES = {
    SensorChannel.VOLTAGE: "vbat",
    SensorChannel.CURRENT: "current_meter",
}


class INavInterface(FirmwareInterface):
    """Calibration capabilities of a board running iNav."""

    target = FirmwareTarget.INAV

    MEASUREMENT_SCALES = {
        SensorChannel.VOLTAGE: 20.0,
        SensorChannel.CURRENT: 0.01,
    }

    def __init__(self, link: MSPLink) -> None:
        """Wrap an open MSP link after checking the firmware identity.

        Raises:
            UnsupportedFirmwareError: If the board does not identify as iNav.
        """
        super().__init__()
        self._link = link
        variant = link.fc_variant()
        if variant != INAV_VARIANT:
            raise UnsupportedFirmwareError(
                f"Firmware not supported (only iNav is supported over MSP): {variant!r}"
            )

    def is_sensor_present(self, channel: SensorChannel) -> bool:
        """iNav offers no way to detect the sensor hardware."""
        return True

    def is_channel_enabled(self, channel: SensorChannel) -> bool:
        return self._link.feature_enabled(_FEATURES[channel])

    def _enable_channel(self, channel: SensorChannel) -> None:
        self._link.enable_feature(_FEATURES[channel])

    def measurement_scale(self, channel: SensorChannel) -> float:
        return self.MEASUREMENT_SCALES[channel]

    def offset_and_scale(self, channel: SensorChannel) -> RawOffsetScale:
        config = self._link.battery_config()
        if channel is SensorChannel.VOLTAGE:
            return RawOffsetScale(offset=0.0, scale=config.voltage_scale / VOLTAGE_FIXED_POINT)
        return RawOffsetScale(
            offset=config.current_offset / CURRENT_FIXED_POINT,
            scale=config.current_scale / CURRENT_FIXED_POINT,
        )

    def set_offset_and_scale(self, channel: SensorChannel, offset: float, scale: float) -> None:
        # The block can only be written whole, so every field round-trips.
        config: BatteryConfig = self._link.battery_config()
        if channel is SensorChannel.VOLTAGE:
            config.voltage_scale = round(scale * VOLTAGE_FIXED_POINT)
        else:
            config.current_offset = round(offset * CURRENT_FIXED_POINT)
            config.current_scale = round(scale * CURRENT_FIXED_POINT)
        self._link.set_battery_config(config)
        LOGGER.debug("Battery config written: %s", config)

    def persist(self) -> None:
        self._link.save_settings()

    def sample_raw(self, channel: SensorChannel) -> float:
        reading = self._link.analog()
        if channel is SensorChannel.VOLTAGE:
            return reading.voltage
        return reading.current

    def _reboot(self) -> None:
        self._link.reboot(resume=True)

    def close(self) -> None:
        self._link.close()
