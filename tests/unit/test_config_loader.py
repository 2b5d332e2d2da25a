"""Unit tests for calibration configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from fc_calibration.config import CalibrationConfig, load_calibration_config
from fc_calibration.firmware.base import FirmwareTarget


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "calibration.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults() -> None:
    config = CalibrationConfig()
    assert config.acquisition_time_s == 5.0
    assert config.baudrate == 115200
    assert config.firmware_target is None
    assert config.autodetect_attempts == 4


def test_load_overrides_defaults(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
calibration:
  acquisition_time_s: 2.5
  firmware: INAV
  baudrate: 57600
""",
    )
    config = load_calibration_config(path)
    assert config.acquisition_time_s == 2.5
    assert config.firmware == "inav"
    assert config.firmware_target is FirmwareTarget.INAV
    assert config.baudrate == 57600
    assert config.protocol_timeout_s == 1.0


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_calibration_config(tmp_path / "missing.yaml")


@pytest.mark.parametrize(
    "text",
    [
        "other: {}\n",
        "calibration: 3\n",
        "calibration:\n  sample_rate: 10\n",
        "calibration:\n  acquisition_time_s: 0\n",
        "calibration:\n  firmware: px4\n",
        "calibration:\n  baudrate: fast\n",
    ],
)
def test_invalid_files_rejected(tmp_path: Path, text: str) -> None:
    with pytest.raises(ValueError):
        load_calibration_config(_write(tmp_path, text))


def test_with_overrides_skips_none() -> None:
    config = CalibrationConfig(acquisition_time_s=3.0)
    updated = config.with_overrides(acquisition_time_s=None, firmware="ardupilot")
    assert updated.acquisition_time_s == 3.0
    assert updated.firmware_target is FirmwareTarget.ARDUPILOT
    assert config.firmware == "auto"
