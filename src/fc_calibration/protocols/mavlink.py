"""MAVLink transport for ArduPilot boards built on :mod:`pymavlink`."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pymavlink import mavutil

from .base import MavlinkError, MavlinkTimeout

LOGGER = logging.getLogger(__name__)


class MavlinkClient:
    """Blocking helper around a ``mavutil`` serial connection."""

    def __init__(
        self,
        port: str,
        baudrate: int = 115200,
        *,
        timeout_s: float = 1.0,
        connection: Any | None = None,
    ) -> None:
        """Open the MAVLink connection.

        Args:
            port: Serial device path.
            baudrate: Line speed.
            timeout_s: Deadline for any awaited message.
            connection: Pre-built ``mavutil`` connection, used by tests.
        """
        self._timeout_s = timeout_s
        self._conn = connection or mavutil.mavlink_connection(port, baud=baudrate)

    @property
    def _target(self) -> tuple[int, int]:
        return self._conn.target_system or 1, self._conn.target_component or 1

    def close(self) -> None:
        """Close the underlying port."""
        self._conn.close()

    def _recv(self, message: str, condition: str | None = None) -> Any:
        reply = self._conn.recv_match(
            type=message, condition=condition, blocking=True, timeout=self._timeout_s
        )
        if reply is None:
            raise MavlinkTimeout(f"timed out waiting for {message}")
        return reply

    def param_value(self, name: str) -> float:
        """Fetch one parameter by name."""
        self._conn.param_fetch_one(name)
        reply = self._recv("PARAM_VALUE", f"PARAM_VALUE.param_id=='{name}'")
        return float(reply.param_value)

    def set_param_value(self, name: str, value: float) -> None:
        """Set one parameter and wait for the echo confirming it."""
        self._conn.param_set_send(name, float(value))
        reply = self._recv("PARAM_VALUE", f"PARAM_VALUE.param_id=='{name}'")
        LOGGER.debug("Parameter %s set to %s", name, reply.param_value)

    def set_message_interval(self, message: str, interval_s: float) -> None:
        """Ask the autopilot to stream ``message`` every ``interval_s`` seconds."""
        message_id = getattr(mavutil.mavlink, f"MAVLINK_MSG_ID_{message}", None)
        if message_id is None:
            raise MavlinkError(f"Unknown MAVLink message '{message}'")
        target_system, target_component = self._target
        self._conn.mav.command_long_send(
            target_system,
            target_component,
            mavutil.mavlink.MAV_CMD_SET_MESSAGE_INTERVAL,
            0,
            message_id,
            round(interval_s * 1e6),
            0,
            0,
            0,
            0,
            0,
        )

    def wait_for_message(self, message: str) -> Mapping[str, Any]:
        """Return the fields of the next ``message`` received."""
        return self._recv(message).to_dict()

    def reboot(self) -> None:
        """Reboot the autopilot."""
        self._conn.reboot_autopilot()
