"""Unit tests for the scale/offset calculators."""

from __future__ import annotations

import math

import pytest

from fc_calibration.calibration.calculator import (
    ArdupilotScaleOffsetCalculator,
    CalibrationSample,
    INavScaleOffsetCalculator,
    calculator_for,
    voltage_scale,
)
from fc_calibration.firmware.base import FirmwareTarget


def test_ardupilot_two_point_scenario() -> None:
    """Two clean points halve the scale and leave no offset."""
    result = ArdupilotScaleOffsetCalculator().compute(100.0, [1.0, 3.0], [0.5, 1.5])
    assert result.coefficients == (2.0,)
    assert result.coefficient == 2.0
    assert result.scale == 50.0
    assert result.scale_adjusted == (0.5, 1.5)
    assert result.offsets == (0.0, 0.0)
    assert result.offset == 0.0
    assert result.voltage_offset == 0.0
    assert result.native_scale == result.scale
    assert result.native_voltage_offset == result.voltage_offset
    assert result.is_finite()


def test_linear_series_recovers_slope_and_offset() -> None:
    """measured = k*true + c yields coefficient k and offset c/k."""
    k, c = 1.7, 0.34
    true_values = [0.0, 2.0, 5.0, 9.0]
    measured = [k * value + c for value in true_values]
    result = ArdupilotScaleOffsetCalculator().compute(17.0, measured, true_values)
    assert result.coefficient == pytest.approx(k)
    assert result.offset == pytest.approx(c / k)
    assert result.scale == pytest.approx(17.0 / k)
    assert result.voltage_offset == pytest.approx((c / k) / (17.0 / k))


def test_coefficient_is_mean_of_consecutive_slopes() -> None:
    """Sample order matters because only neighbouring pairs form slopes."""
    calculator = ArdupilotScaleOffsetCalculator()
    ordered = calculator.compute(10.0, [1.0, 2.0, 5.0], [1.0, 2.0, 3.0])
    assert ordered.coefficients == (1.0, 3.0)
    assert ordered.coefficient == 2.0

    permuted = calculator.compute(10.0, [2.0, 1.0, 5.0], [2.0, 1.0, 3.0])
    assert permuted.coefficients == (1.0, 2.0)
    assert permuted.coefficient != ordered.coefficient


def test_inav_scale_multiplies_and_reports_native_units() -> None:
    """iNav stores V/A, so the coefficient multiplies the original scale."""
    result = INavScaleOffsetCalculator().compute(0.01, [1.0, 3.0, 5.2], [0.5, 1.5, 2.5])
    assert result.scale == pytest.approx(0.01 * result.coefficient)
    assert result.voltage_offset == pytest.approx(result.offset * result.scale)
    assert result.native_scale == round(result.scale * 10000)
    assert result.native_voltage_offset == round(result.voltage_offset * 10000)
    assert result.units.native_scale == "0.1mV/A"


def test_repeated_true_value_gives_non_finite_result() -> None:
    """Degenerate intervals are not filtered; the result reports them."""
    result = ArdupilotScaleOffsetCalculator().compute(100.0, [1.0, 2.0], [1.0, 1.0])
    assert math.isinf(result.coefficients[0])
    assert not result.is_finite()

    inav = INavScaleOffsetCalculator().compute(0.01, [1.0, 1.0], [1.0, 1.0])
    assert math.isnan(inav.coefficient)
    assert math.isnan(inav.native_scale)
    assert not inav.is_finite()


def test_compute_samples_preserves_insertion_order() -> None:
    samples = [CalibrationSample(3.0, 1.5), CalibrationSample(1.0, 0.5)]
    result = calculator_for(FirmwareTarget.ARDUPILOT).compute_samples(100.0, samples)
    assert result.measured == (3.0, 1.0)
    assert result.true_values == (1.5, 0.5)


@pytest.mark.parametrize(
    ("measured", "true_values", "scale"),
    [
        ([1.0, 2.0], [1.0], 10.0),
        ([1.0], [1.0], 10.0),
        ([1.0, 2.0], [1.0, 2.0], 0.0),
    ],
)
def test_compute_rejects_invalid_inputs(measured, true_values, scale) -> None:
    with pytest.raises(ValueError):
        ArdupilotScaleOffsetCalculator().compute(scale, measured, true_values)


def test_calculator_for_selects_variant() -> None:
    assert isinstance(calculator_for(FirmwareTarget.INAV), INavScaleOffsetCalculator)
    assert isinstance(calculator_for(FirmwareTarget.ARDUPILOT), ArdupilotScaleOffsetCalculator)


def test_voltage_scale_single_point() -> None:
    assert voltage_scale(20.0, 11.5, 12.0) == pytest.approx(20.8696, abs=1e-4)
    with pytest.raises(ZeroDivisionError):
        voltage_scale(20.0, 0.0, 12.0)
