"""Unit tests for the iNav firmware interface using a stub MSP link."""

from __future__ import annotations

from dataclasses import replace

import pytest

from fc_calibration.firmware.base import RawOffsetScale, SensorChannel, UnsupportedFirmwareError
from fc_calibration.firmware.inav import INavInterface
from fc_calibration.protocols.base import AnalogReading, BatteryConfig

DEFAULT_BLOCK = BatteryConfig(
    voltage_scale=1100,
    voltage_source=0,
    cells=3,
    cell_detect_voltage=430,
    cell_min_voltage=330,
    cell_max_voltage=420,
    cell_warning_voltage=350,
    current_offset=-250,
    current_scale=400,
    capacity=2200,
    capacity_warning=600,
    capacity_critical=300,
    capacity_unit=0,
)


class _StubMSP:
    """Battery block and feature flags held in memory."""

    def __init__(self, variant: str = "INAV", features: set[str] | None = None) -> None:
        self.variant = variant
        self.features = set(features if features is not None else {"vbat", "current_meter"})
        self.block = replace(DEFAULT_BLOCK)
        self.block_writes: list[BatteryConfig] = []
        self.saves = 0
        self.reboots: list[bool] = []
        self.closed = False

    def fc_variant(self) -> str:
        return self.variant

    def battery_config(self) -> BatteryConfig:
        return replace(self.block)

    def set_battery_config(self, config: BatteryConfig) -> None:
        self.block = replace(config)
        self.block_writes.append(replace(config))

    def feature_enabled(self, feature: str) -> bool:
        return feature in self.features

    def enable_feature(self, feature: str) -> None:
        self.features.add(feature)

    def analog(self) -> AnalogReading:
        return AnalogReading(voltage=11.68, current=2.5)

    def save_settings(self) -> None:
        self.saves += 1

    def reboot(self, *, resume: bool = True) -> None:
        self.reboots.append(resume)

    def close(self) -> None:
        self.closed = True


def test_rejects_non_inav_firmware() -> None:
    with pytest.raises(UnsupportedFirmwareError):
        INavInterface(_StubMSP(variant="BTFL"))


def test_reads_fixed_point_block_in_physical_units() -> None:
    board = INavInterface(_StubMSP())
    assert board.offset_and_scale(SensorChannel.CURRENT) == RawOffsetScale(-0.025, 0.04)
    assert board.offset_and_scale(SensorChannel.VOLTAGE) == RawOffsetScale(0.0, 11.0)


def test_current_write_round_trips_whole_block() -> None:
    """Only the current fields change; every other field is written back as read."""
    link = _StubMSP()
    board = INavInterface(link)
    board.set_offset_and_scale(SensorChannel.CURRENT, 0.0123, 0.0456)
    assert len(link.block_writes) == 1
    written = link.block_writes[0]
    assert written.current_offset == 123
    assert written.current_scale == 456
    assert replace(written, current_offset=-250, current_scale=400) == DEFAULT_BLOCK


def test_voltage_write_ignores_offset() -> None:
    link = _StubMSP()
    INavInterface(link).set_offset_and_scale(SensorChannel.VOLTAGE, 3.0, 20.87)
    assert link.block.voltage_scale == 2087
    assert link.block.current_offset == -250


def test_prepare_calibration_resets_to_raw_scale() -> None:
    link = _StubMSP()
    INavInterface(link).prepare_calibration(SensorChannel.CURRENT)
    assert link.block.current_offset == 0
    assert link.block.current_scale == 100


def test_features_map_to_channels() -> None:
    link = _StubMSP(features={"vbat"})
    board = INavInterface(link)
    assert board.is_channel_enabled(SensorChannel.VOLTAGE)
    assert not board.is_channel_enabled(SensorChannel.CURRENT)
    board.enable_channel(SensorChannel.CURRENT)
    assert "current_meter" in link.features
    assert board.needs_reboot
    board.reboot()
    assert link.reboots == [True]
    assert not board.needs_reboot


def test_sampling_persist_and_close() -> None:
    link = _StubMSP()
    board = INavInterface(link)
    assert board.is_sensor_present(SensorChannel.CURRENT)
    assert board.sample_raw(SensorChannel.VOLTAGE) == 11.68
    assert board.sample_raw(SensorChannel.CURRENT) == 2.5
    board.persist()
    assert link.saves == 1
    board.close()
    assert link.closed
