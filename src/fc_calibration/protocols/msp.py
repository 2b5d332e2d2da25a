"""MSP v2 transport for iNav flight controllers built on pyserial.

Frame layout (both directions)::

    $X<dir> flag(u8) cmd(u16 LE) size(u16 LE) payload crc8

``dir`` is ``<`` towards the board, ``>`` for replies and ``!`` when the
board rejects a command. The checksum is CRC-8/DVB-S2 over everything
between the direction byte and the checksum itself.
"""

from __future__ import annotations

import logging
import struct
import time
from typing import Any, Callable

import serial

from .base import (
    AnalogReading,
    BatteryConfig,
    MSPError,
    MSPReadTimeout,
    MSPSyncFailed,
)

LOGGER = logging.getLogger(__name__)

MSP_FC_VARIANT = 2
MSP_FEATURE = 36
MSP_SET_FEATURE = 37
MSP_REBOOT = 68
MSP_EEPROM_WRITE = 250
MSP2_INAV_ANALOG = 0x2002
MSP2_INAV_BATTERY_CONFIG = 0x2005
MSP2_INAV_SET_BATTERY_CONFIG = 0x2006

FEATURE_BITS: dict[str, int] = {
    "vbat": 1 << 1,
    "current_meter": 1 << 11,
}

_HEADER = struct.Struct("<BHH")
_HEADER_SIZE = 3 + _HEADER.size
_BATTERY_CONFIG = struct.Struct("<HBBHHHHhhIIIB")
_ANALOG = struct.Struct("<BHh")
_FEATURE_MASK = struct.Struct("<I")
# Bytes tolerated without a frame start before giving up on sync.
_MAX_UNSYNCED_BYTES = 512


def _build_crc8_table() -> bytes:
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ 0xD5) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
        table.append(crc)
    return bytes(table)


_CRC8_TABLE = _build_crc8_table()


def crc8_dvb_s2(data: bytes) -> int:
    """Compute the CRC-8/DVB-S2 checksum used by MSP v2."""
    crc = 0
    for byte in data:
        crc = _CRC8_TABLE[crc ^ byte]
    return crc


def encode_frame(command: int, payload: bytes = b"", *, direction: bytes = b"<") -> bytes:
    """Encode an MSP v2 frame."""
    body = _HEADER.pack(0, command, len(payload)) + payload
    return b"$X" + direction + body + bytes([crc8_dvb_s2(body)])


class MSPClient:
    """Blocking request/response MSP v2 client."""

    def __init__(
        self,
        port: str,
        baudrate: int = 115200,
        *,
        timeout_s: float = 1.0,
        reboot_settle_s: float = 1.0,
        serial_factory: Callable[..., Any] | None = None,
    ) -> None:
        """Open the serial port.

        Args:
            port: Serial device path.
            baudrate: Line speed.
            timeout_s: Deadline for a complete response to arrive.
            reboot_settle_s: Pause before re-opening the port after a reboot.
            serial_factory: Replacement for :class:`serial.Serial`, used by tests.
        """
        self._port = port
        self._baudrate = baudrate
        self._timeout_s = timeout_s
        self._reboot_settle_s = reboot_settle_s
        self._serial_factory = serial_factory or serial.Serial
        self._serial: Any = None
        self._open()

    # ------------------------------------------------------------------
    # Framing
    # ------------------------------------------------------------------

    def _open(self) -> None:
        self._serial = self._serial_factory(
            self._port,
            baudrate=self._baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=0.05,
        )
        self._serial.reset_input_buffer()

    def close(self) -> None:
        """Close the serial port if it is open."""
        if self._serial is None:
            return
        self._serial.close()
        self._serial = None

    def request(self, command: int, payload: bytes = b"") -> bytes:
        """Send ``command`` and return the payload of its reply."""
        if self._serial is None:
            raise MSPError("MSP connection is closed")
        self._serial.reset_input_buffer()
        self._serial.write(encode_frame(command, payload))
        return self._receive(command)

    def _receive(self, command: int) -> bytes:
        deadline = time.monotonic() + self._timeout_s
        buffer = b""
        unsynced = 0
        while time.monotonic() < deadline:
            chunk = self._serial.read(self._serial.in_waiting or 1)
            if not chunk:
                continue
            buffer += chunk
            while True:
                start = buffer.find(b"$X")
                if start < 0:
                    unsynced += max(len(buffer) - 1, 0)
                    if unsynced > _MAX_UNSYNCED_BYTES:
                        raise MSPSyncFailed(f"no MSP frame start in {unsynced} bytes")
                    buffer = buffer[-1:]
                    break
                unsynced += start
                buffer = buffer[start:]
                if len(buffer) < _HEADER_SIZE:
                    break
                _flag, reply_command, size = _HEADER.unpack_from(buffer, 3)
                frame_length = _HEADER_SIZE + size + 1
                if len(buffer) < frame_length:
                    break
                frame, buffer = buffer[:frame_length], buffer[frame_length:]
                if frame[-1] != crc8_dvb_s2(frame[3:-1]):
                    raise MSPSyncFailed(f"checksum mismatch on reply to command {reply_command}")
                if reply_command != command:
                    LOGGER.debug("Skipping MSP reply to command %d", reply_command)
                    continue
                if frame[2:3] == b"!":
                    raise MSPError(f"board rejected MSP command {command}")
                return frame[_HEADER_SIZE:-1]
        raise MSPReadTimeout(f"timed out waiting for reply to MSP command {command}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def fc_variant(self) -> str:
        """Return the firmware identifier string."""
        payload = self.request(MSP_FC_VARIANT)
        return payload[:4].decode("ascii", errors="replace")

    def battery_config(self) -> BatteryConfig:
        """Read the iNav battery configuration block."""
        payload = self.request(MSP2_INAV_BATTERY_CONFIG)
        if len(payload) < _BATTERY_CONFIG.size:
            raise MSPError(f"short battery config payload ({len(payload)} bytes)")
        return BatteryConfig(*_BATTERY_CONFIG.unpack_from(payload))

    def set_battery_config(self, config: BatteryConfig) -> None:
        """Write the full iNav battery configuration block."""
        payload = _BATTERY_CONFIG.pack(
            config.voltage_scale,
            config.voltage_source,
            config.cells,
            config.cell_detect_voltage,
            config.cell_min_voltage,
            config.cell_max_voltage,
            config.cell_warning_voltage,
            config.current_offset,
            config.current_scale,
            config.capacity,
            config.capacity_warning,
            config.capacity_critical,
            config.capacity_unit,
        )
        self.request(MSP2_INAV_SET_BATTERY_CONFIG, payload)

    def _feature_mask(self) -> int:
        payload = self.request(MSP_FEATURE)
        return _FEATURE_MASK.unpack_from(payload)[0]

    def feature_enabled(self, feature: str) -> bool:
        """Return whether ``feature`` is set in the feature mask."""
        return bool(self._feature_mask() & _feature_bit(feature))

    def enable_feature(self, feature: str) -> None:
        """Set ``feature`` in the feature mask."""
        mask = self._feature_mask() | _feature_bit(feature)
        self.request(MSP_SET_FEATURE, _FEATURE_MASK.pack(mask))

    def analog(self) -> AnalogReading:
        """Return the current battery voltage (V) and current (A)."""
        payload = self.request(MSP2_INAV_ANALOG)
        _flags, voltage, current = _ANALOG.unpack_from(payload)
        return AnalogReading(voltage=voltage / 100.0, current=current / 100.0)

    def save_settings(self) -> None:
        """Write the configuration to EEPROM."""
        self.request(MSP_EEPROM_WRITE)

    def reboot(self, *, resume: bool = True) -> None:
        """Reboot the board and re-open the port when ``resume`` is set."""
        self.request(MSP_REBOOT)
        self.close()
        if resume:
            time.sleep(self._reboot_settle_s)
            self._open()


def _feature_bit(feature: str) -> int:
    try:
        return FEATURE_BITS[feature]
    except KeyError as exc:
        raise ValueError(f"Unknown MSP feature '{feature}'") from exc
