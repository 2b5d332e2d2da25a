"""Unit tests for the MAVLink client against a fake mavutil connection."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from pymavlink import mavutil

from fc_calibration.protocols.base import MavlinkError, MavlinkTimeout
from fc_calibration.protocols.mavlink import MavlinkClient


class _Message(SimpleNamespace):
    def to_dict(self) -> dict[str, Any]:
        return dict(vars(self))


class _FakeConnection:
    """Records outgoing calls and replays queued messages by type."""

    def __init__(self, replies: dict[str, list[Any]] | None = None) -> None:
        self.target_system = 1
        self.target_component = 1
        self.replies = replies or {}
        self.calls: list[tuple] = []
        self.mav = SimpleNamespace(command_long_send=self._command_long_send)

    def _command_long_send(self, *args: Any) -> None:
        self.calls.append(("command_long", args))

    def recv_match(self, type=None, condition=None, blocking=False, timeout=None):  # noqa: A002
        self.calls.append(("recv_match", type, condition))
        queue = self.replies.get(type, [])
        return queue.pop(0) if queue else None

    def param_fetch_one(self, name: str) -> None:
        self.calls.append(("param_fetch_one", name))

    def param_set_send(self, name: str, value: float) -> None:
        self.calls.append(("param_set_send", name, value))

    def reboot_autopilot(self) -> None:
        self.calls.append(("reboot",))

    def close(self) -> None:
        self.calls.append(("close",))


def test_param_value_fetches_by_name() -> None:
    conn = _FakeConnection({"PARAM_VALUE": [_Message(param_id="BATT_MONITOR", param_value=4.0)]})
    client = MavlinkClient("/dev/null", connection=conn)
    assert client.param_value("BATT_MONITOR") == 4.0
    assert conn.calls[0] == ("param_fetch_one", "BATT_MONITOR")
    assert conn.calls[1][2] == "PARAM_VALUE.param_id=='BATT_MONITOR'"


def test_set_param_waits_for_echo() -> None:
    conn = _FakeConnection({"PARAM_VALUE": [_Message(param_id="BATT_AMP_PERVLT", param_value=50.0)]})
    client = MavlinkClient("/dev/null", connection=conn)
    client.set_param_value("BATT_AMP_PERVLT", 50)
    assert ("param_set_send", "BATT_AMP_PERVLT", 50.0) in conn.calls


def test_missing_reply_times_out() -> None:
    client = MavlinkClient("/dev/null", connection=_FakeConnection())
    with pytest.raises(MavlinkTimeout):
        client.param_value("BATT_MONITOR")
    with pytest.raises(MavlinkTimeout):
        client.wait_for_message("SYS_STATUS")


def test_set_message_interval_sends_command_long() -> None:
    conn = _FakeConnection()
    client = MavlinkClient("/dev/null", connection=conn)
    client.set_message_interval("SYS_STATUS", 0.02)
    _, args = conn.calls[0]
    assert args[2] == mavutil.mavlink.MAV_CMD_SET_MESSAGE_INTERVAL
    assert args[4] == mavutil.mavlink.MAVLINK_MSG_ID_SYS_STATUS
    assert args[5] == 20000
    with pytest.raises(MavlinkError):
        client.set_message_interval("NOT_A_MESSAGE", 0.1)


def test_wait_for_message_returns_fields() -> None:
    status = _Message(voltage_battery=11500, current_battery=250)
    client = MavlinkClient("/dev/null", connection=_FakeConnection({"SYS_STATUS": [status]}))
    assert client.wait_for_message("SYS_STATUS") == {"voltage_battery": 11500, "current_battery": 250}


def test_reboot_and_close_delegate() -> None:
    conn = _FakeConnection()
    client = MavlinkClient("/dev/null", connection=conn)
    client.reboot()
    client.close()
    assert conn.calls == [("reboot",), ("close",)]
