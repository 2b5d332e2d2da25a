"""Run the requested calibration sessions against one connected board."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..firmware.base import FirmwareInterface, SensorChannel, SensorNotEnabledError
from .acquisition import DEFAULT_ACQUISITION_TIME_S
from .console import OperatorConsole
from .sessions import CalibrationSession, SessionState, build_session

LOGGER = logging.getLogger(__name__)

EXIT_COMPLETED = 0
EXIT_ABORTED = 1
EXIT_FAILED = 2

_EXIT_CODES = {
    SessionState.COMPLETED: EXIT_COMPLETED,
    SessionState.ABORTED_BY_OPERATOR: EXIT_ABORTED,
    SessionState.FAILED: EXIT_FAILED,
}


@dataclass(slots=True)
class CalibrationRoutine:
    """Calibrate each requested channel in turn and summarise the outcome.

    Channels are calibrated in the given order; an aborted or failed channel
    does not prevent the next one from running. With ``enable_missing`` a
    disabled sensor is switched on first and the board rebooted when the
    firmware asks for it.
    """

    firmware: FirmwareInterface
    console: OperatorConsole
    channels: tuple[SensorChannel, ...] = (SensorChannel.VOLTAGE, SensorChannel.CURRENT)
    acquisition_time_s: float = DEFAULT_ACQUISITION_TIME_S
    enable_missing: bool = False
    sessions: list[CalibrationSession] = field(default_factory=list, init=False)

    def run(self) -> int:
        """Run every channel and return the worst exit code observed."""
        if self.enable_missing:
            self._enable_channels()
        exit_code = EXIT_COMPLETED
        for channel in self.channels:
            session = build_session(
                channel,
                self.firmware,
                self.console,
                acquisition_time_s=self.acquisition_time_s,
            )
            self.sessions.append(session)
            try:
                state = session.run()
            except SensorNotEnabledError as exc:
                LOGGER.warning("Skipping %s calibration: %s", channel.value, exc)
                self.console.warn(f"{exc}, enable it first (see --enable)")
                state = SessionState.FAILED
            exit_code = max(exit_code, _EXIT_CODES[state])
            self.console.display()
        return exit_code

    def calibration_data(self) -> dict[str, dict[str, Any]]:
        """Return the calibration of every completed session keyed by channel."""
        return {
            session.channel.value: session.calibration_data()
            for session in self.sessions
            if session.state is SessionState.COMPLETED
        }

    def _enable_channels(self) -> None:
        for channel in self.channels:
            if not self.firmware.is_sensor_present(channel):
                self.console.warn(f"No {channel.value} sensor reported by the board")
                continue
            if not self.firmware.is_channel_enabled(channel):
                self.firmware.enable_channel(channel)
                self.console.display(f"{channel.value.capitalize()} sensor enabled")
        if self.firmware.needs_reboot:
            self.firmware.persist()
            self.console.display("Rebooting the board to apply the sensor configuration...")
            self.firmware.reboot()
