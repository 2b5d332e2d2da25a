"""Mock firmware interface for deterministic calibration testing and dry runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Sequence

from .ardupilot import ArdupilotInterface
from .base import FirmwareInterface, FirmwareTarget, RawOffsetScale, SensorChannel
from .inav import INavInterface

_DEFAULT_SCALES = {
    FirmwareTarget.ARDUPILOT: ArdupilotInterface.MEASUREMENT_SCALES,
    FirmwareTarget.INAV: INavInterface.MEASUREMENT_SCALES,
}


@dataclass(slots=True)
class MockFirmwareInterface(FirmwareInterface):
    """Spoof board that replays canned readings and records calibration writes."""

    target: FirmwareTarget = FirmwareTarget.ARDUPILOT
    samples: Mapping[SensorChannel, Sequence[float]] = field(default_factory=dict)
    loop: bool = False
    enabled: set[SensorChannel] = field(
        default_factory=lambda: {SensorChannel.VOLTAGE, SensorChannel.CURRENT}
    )
    stored: Dict[SensorChannel, RawOffsetScale] = field(
        default_factory=lambda: {
            SensorChannel.VOLTAGE: RawOffsetScale(0.0, 10.1),
            SensorChannel.CURRENT: RawOffsetScale(0.0, 17.0),
        }
    )
    sample_hook: Callable[[SensorChannel, int], None] | None = None
    writes: List[tuple[SensorChannel, RawOffsetScale]] = field(default_factory=list)
    persist_count: int = 0
    reboot_count: int = 0
    closed: bool = False
    _cursor: Dict[SensorChannel, int] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialise the base interface."""
        FirmwareInterface.__init__(self)

    def is_sensor_present(self, channel: SensorChannel) -> bool:
        return True

    def is_channel_enabled(self, channel: SensorChannel) -> bool:
        return channel in self.enabled

    def _enable_channel(self, channel: SensorChannel) -> None:
        self.enabled.add(channel)

    def measurement_scale(self, channel: SensorChannel) -> float:
        return _DEFAULT_SCALES[self.target][channel]

    def offset_and_scale(self, channel: SensorChannel) -> RawOffsetScale:
        return self.stored[channel]

    def set_offset_and_scale(self, channel: SensorChannel, offset: float, scale: float) -> None:
        if channel is SensorChannel.VOLTAGE:
            offset = 0.0
        value = RawOffsetScale(offset=float(offset), scale=float(scale))
        self.stored[channel] = value
        self.writes.append((channel, value))

    def persist(self) -> None:
        self.persist_count += 1

    def sample_raw(self, channel: SensorChannel) -> float:
        """Return the next canned reading, cycling when ``loop`` is set."""
        values = self.samples.get(channel, ())
        if not values:
            raise RuntimeError(f"MockFirmwareInterface has no {channel.value} samples")
        index = self._cursor.get(channel, 0)
        if index >= len(values):
            if not self.loop:
                raise RuntimeError(f"MockFirmwareInterface {channel.value} samples exhausted")
            index = 0
        self._cursor[channel] = index + 1
        if self.sample_hook is not None:
            self.sample_hook(channel, index)
        return float(values[index])

    def _reboot(self) -> None:
        self.reboot_count += 1

    def close(self) -> None:
        self.closed = True
