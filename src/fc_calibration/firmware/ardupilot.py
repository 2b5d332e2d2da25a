"""ArduPilot firmware interface over MAVLink parameters and SYS_STATUS telemetry."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..protocols.base import MavlinkLink
from .base import (
    FirmwareInterface,
    FirmwareTarget,
    RawOffsetScale,
    SensorChannel,
    SensorEnableError,
)

LOGGER = logging.getLogger(__name__)

BATT_MONITOR_DISABLED = 0
BATT_MONITOR_VOLTAGE = 3
BATT_MONITOR_VOLTAGE_AND_CURRENT = 4

# MAV_SYS_STATUS_SENSOR_BATTERY
_BATTERY_SENSOR_BIT = 1 << 25

_STATUS_MESSAGE = "SYS_STATUS"


class ArdupilotInterface(FirmwareInterface):
    """Calibration capabilities of a board running ArduPilot."""

    target = FirmwareTarget.ARDUPILOT

    MEASUREMENT_SCALES = {
        SensorChannel.VOLTAGE: 20.0,
        SensorChannel.CURRENT: 100.0,
    }

    def __init__(self, link: MavlinkLink, *, telemetry_interval_s: float = 0.02) -> None:
        """Wrap an open MAVLink link.

        Args:
            link: Connected MAVLink transport.
            telemetry_interval_s: SYS_STATUS streaming period used while sampling.
        """
        super().__init__()
        self._link = link
        self._telemetry_interval_s = telemetry_interval_s
        self._status_stream_configured = False

    def _battery_monitor(self) -> int:
        return int(self._link.param_value("BATT_MONITOR"))

    def is_sensor_present(self, channel: SensorChannel) -> bool:
        """Both channels share the battery monitor bit of SYS_STATUS."""
        status = self._wait_for_status()
        return bool(int(status["onboard_control_sensors_present"]) & _BATTERY_SENSOR_BIT)

    def is_channel_enabled(self, channel: SensorChannel) -> bool:
        mode = self._battery_monitor()
        if channel is SensorChannel.CURRENT:
            return mode == BATT_MONITOR_VOLTAGE_AND_CURRENT
        return mode in (BATT_MONITOR_VOLTAGE, BATT_MONITOR_VOLTAGE_AND_CURRENT)

    def _enable_channel(self, channel: SensorChannel) -> None:
        mode = self._battery_monitor()
        if channel is SensorChannel.CURRENT:
            allowed = (BATT_MONITOR_DISABLED, BATT_MONITOR_VOLTAGE)
            new_mode = BATT_MONITOR_VOLTAGE_AND_CURRENT
        else:
            allowed = (BATT_MONITOR_DISABLED,)
            new_mode = BATT_MONITOR_VOLTAGE
        if mode not in allowed:
            raise SensorEnableError(
                f"Cannot enable {channel.value} sensing: BATT_MONITOR is {mode}, "
                f"expected one of {list(allowed)}"
            )
        self._link.set_param_value("BATT_MONITOR", new_mode)

    def measurement_scale(self, channel: SensorChannel) -> float:
        return self.MEASUREMENT_SCALES[channel]

    def offset_and_scale(self, channel: SensorChannel) -> RawOffsetScale:
        if channel is SensorChannel.VOLTAGE:
            return RawOffsetScale(offset=0.0, scale=self._link.param_value("BATT_VOLT_MULT"))
        return RawOffsetScale(
            offset=self._link.param_value("BATT_AMP_OFFSET"),
            scale=self._link.param_value("BATT_AMP_PERVLT"),
        )

    def set_offset_and_scale(self, channel: SensorChannel, offset: float, scale: float) -> None:
        if channel is SensorChannel.VOLTAGE:
            self._link.set_param_value("BATT_VOLT_MULT", scale)
            return
        self._link.set_param_value("BATT_AMP_OFFSET", offset)
        self._link.set_param_value("BATT_AMP_PERVLT", scale)
        LOGGER.debug("BATT_AMP_OFFSET=%s BATT_AMP_PERVLT=%s written", offset, scale)

    def prepare_calibration(self, channel: SensorChannel) -> None:
        super().prepare_calibration(channel)
        self._configure_status_stream()

    def persist(self) -> None:
        """ArduPilot stores parameters as soon as they are set."""
        return None

    def sample_raw(self, channel: SensorChannel) -> float:
        status = self._wait_for_status()
        if channel is SensorChannel.VOLTAGE:
            return status["voltage_battery"] / 1000.0
        return status["current_battery"] / 100.0

    def _wait_for_status(self) -> Mapping[str, Any]:
        self._configure_status_stream()
        return self._link.wait_for_message(_STATUS_MESSAGE)

    def _configure_status_stream(self) -> None:
        if self._status_stream_configured:
            return
        self._link.set_message_interval(_STATUS_MESSAGE, self._telemetry_interval_s)
        self._status_stream_configured = True

    def _reboot(self) -> None:
        self._link.reboot()
        self._status_stream_configured = False

    def close(self) -> None:
        self._link.close()
