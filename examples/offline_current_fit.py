"""Compute a current calibration from readings noted down by hand."""

from __future__ import annotations

from fc_calibration.calibration import CalibrationSample, calculator_for
from fc_calibration.firmware import FirmwareTarget, INavInterface, SensorChannel


def main() -> None:
    """Fit the iNav current scale for three load points measured with a clamp meter."""
    samples = [
        CalibrationSample(measured=1.02, true_value=0.98),
        CalibrationSample(measured=5.31, true_value=5.05),
        CalibrationSample(measured=10.44, true_value=9.91),
    ]
    calculator = calculator_for(FirmwareTarget.INAV)
    result = calculator.compute_samples(
        INavInterface.MEASUREMENT_SCALES[SensorChannel.CURRENT], samples
    )
    if not result.is_finite():
        raise SystemExit("readings do not define a usable slope")
    print(f"current_offset = {round(result.native_voltage_offset)}")
    print(f"current_scale = {round(result.native_scale)}")


if __name__ == "__main__":
    main()
