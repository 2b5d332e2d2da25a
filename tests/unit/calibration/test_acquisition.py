"""Unit tests for the time-boxed sample acquirer."""

from __future__ import annotations

import io
import itertools

import pytest

from fc_calibration.calibration.acquisition import SampleAcquirer
from fc_calibration.calibration.cancellation import CancellationToken
from fc_calibration.calibration.console import OperatorConsole
from fc_calibration.calibration.errors import AcquisitionAborted
from fc_calibration.firmware.base import SensorChannel
from fc_calibration.firmware.mock import MockFirmwareInterface


class _StepClock:
    """Clock advancing one second per call."""

    def __init__(self) -> None:
        self._ticks = itertools.count()

    def __call__(self) -> float:
        return float(next(self._ticks))


def _acquirer(firmware, token, duration_s=4.0, console=None) -> SampleAcquirer:
    return SampleAcquirer(
        firmware, token, duration_s=duration_s, console=console, clock=_StepClock()
    )


def test_acquire_returns_exact_mean_of_window() -> None:
    """A 4 s window with a 1 s clock step collects exactly three readings."""
    firmware = MockFirmwareInterface(samples={SensorChannel.CURRENT: [1.0, 2.0, 6.0, 100.0]})
    mean = _acquirer(firmware, CancellationToken()).acquire(SensorChannel.CURRENT)
    assert mean == pytest.approx(3.0)


def test_acquire_reports_progress_and_rings_bell() -> None:
    output = io.StringIO()
    token = CancellationToken()
    console = OperatorConsole(token, output=output)
    firmware = MockFirmwareInterface(samples={SensorChannel.VOLTAGE: [11.5]}, loop=True)
    _acquirer(firmware, token, duration_s=3.0, console=console).acquire(SensorChannel.VOLTAGE)
    text = output.getvalue()
    assert "Time left:  2.0s - Samples:   1" in text
    assert "Samples:   2" in text
    assert text.endswith("\n\a")


def test_cancel_during_sampling_discards_partial_samples() -> None:
    """A cancel mid-window aborts instead of averaging what was gathered."""
    token = CancellationToken()

    def cancel_on_second(channel: SensorChannel, index: int) -> None:
        if index == 1:
            token.cancel()

    firmware = MockFirmwareInterface(
        samples={SensorChannel.CURRENT: [1.0, 2.0, 3.0]}, sample_hook=cancel_on_second
    )
    with pytest.raises(AcquisitionAborted):
        _acquirer(firmware, token, duration_s=10.0).acquire(SensorChannel.CURRENT)
    assert not token.cancelled


def test_keyboard_interrupt_while_sampling_aborts() -> None:
    token = CancellationToken()

    def interrupt(channel: SensorChannel, index: int) -> None:
        raise KeyboardInterrupt

    firmware = MockFirmwareInterface(samples={SensorChannel.CURRENT: [1.0]}, sample_hook=interrupt)
    output = io.StringIO()
    console = OperatorConsole(token, output=output)
    with pytest.raises(AcquisitionAborted):
        _acquirer(firmware, token, console=console).acquire(SensorChannel.CURRENT)
    assert not output.getvalue().endswith("\a")


def test_pending_cancel_aborts_with_zero_samples() -> None:
    token = CancellationToken()
    token.cancel()
    firmware = MockFirmwareInterface(samples={SensorChannel.CURRENT: [1.0]})
    with pytest.raises(AcquisitionAborted):
        _acquirer(firmware, token).acquire(SensorChannel.CURRENT)


def test_window_without_samples_is_aborted_not_zero() -> None:
    """A window that closes before any reading arrives is an abort."""
    firmware = MockFirmwareInterface(samples={SensorChannel.CURRENT: [1.0]})
    acquirer = _acquirer(firmware, CancellationToken(), duration_s=1.0)
    with pytest.raises(AcquisitionAborted):
        acquirer.acquire(SensorChannel.CURRENT)


def test_duration_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SampleAcquirer(MockFirmwareInterface(), CancellationToken(), duration_s=0.0)


class _InterruptingConsole(OperatorConsole):
    """Console whose first progress update is hit by Ctrl-C."""

    def update_progress(self, text: str) -> None:
        raise KeyboardInterrupt


def test_keyboard_interrupt_during_progress_update_aborts() -> None:
    """Ctrl-C outside the board read still ends the window as an abort."""
    token = CancellationToken()
    output = io.StringIO()
    firmware = MockFirmwareInterface(samples={SensorChannel.CURRENT: [1.0, 2.0]})
    console = _InterruptingConsole(token, output=output)
    with pytest.raises(AcquisitionAborted):
        _acquirer(firmware, token, console=console).acquire(SensorChannel.CURRENT)
    assert not token.cancelled
