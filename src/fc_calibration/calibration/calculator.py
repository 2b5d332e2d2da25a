"""Scale and offset calculators turning measured/true series into calibrations.

The coefficient is the mean of the slopes between consecutive samples, not
a least-squares fit, so the result depends on sample order. Degenerate
intervals (two equal true values in a row) are not filtered; they produce
non-finite values that :meth:`CalibrationResult.is_finite` reports.
"""

from __future__ import annotations

import abc
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..firmware.base import FirmwareTarget


@dataclass(frozen=True, slots=True)
class CalibrationSample:
    """One averaged board reading paired with the operator's reference value."""

    measured: float
    true_value: float


@dataclass(frozen=True, slots=True)
class ResultUnits:
    """Physical units attached to each :class:`CalibrationResult` field."""

    offset: str
    scale: str
    voltage_offset: str
    native_scale: str
    native_voltage_offset: str


@dataclass(frozen=True, slots=True)
class CalibrationResult:
    """Immutable outcome of one current calibration.

    Attributes:
        target: Firmware whose conventions were applied.
        measured: Board readings, in insertion order.
        true_values: Reference readings, in insertion order.
        coefficients: Slope of each consecutive interval.
        coefficient: Mean of ``coefficients``.
        scale_adjusted: ``measured`` divided by ``coefficient``.
        offsets: Per-sample ``scale_adjusted - true_values``.
        offset: Mean of ``offsets`` (amperes).
        scale: Firmware scale derived from the original scale.
        voltage_offset: ``offset`` expressed as a sensor voltage.
        native_scale: ``scale`` as the firmware stores it.
        native_voltage_offset: ``voltage_offset`` as the firmware stores it.
        units: Units of the fields above.
    """

    target: FirmwareTarget
    measured: tuple[float, ...]
    true_values: tuple[float, ...]
    coefficients: tuple[float, ...]
    coefficient: float
    scale_adjusted: tuple[float, ...]
    offsets: tuple[float, ...]
    offset: float
    scale: float
    voltage_offset: float
    native_scale: float
    native_voltage_offset: float
    units: ResultUnits

    def is_finite(self) -> bool:
        """Return True when every derived value is a finite number."""
        values = (
            self.offset,
            self.scale,
            self.voltage_offset,
            self.native_scale,
            self.native_voltage_offset,
        )
        return all(math.isfinite(value) for value in values)


class ScaleOffsetCalculator(abc.ABC):
    """Firmware specific conversion of a sample series into scale and offset."""

    target: FirmwareTarget
    units: ResultUnits

    def compute(
        self,
        original_scale: float,
        measured: Sequence[float],
        true_values: Sequence[float],
    ) -> CalibrationResult:
        """Derive a calibration from paired measured/true series.

        Args:
            original_scale: Scale the board used while sampling.
            measured: Averaged board readings.
            true_values: Reference readings, same length as ``measured``.

        Raises:
            ValueError: On mismatched lengths, fewer than two samples or a
                non-positive ``original_scale``.
        """
        if len(measured) != len(true_values):
            raise ValueError(
                f"Not the same number of measured ({len(measured)}) and "
                f"true ({len(true_values)}) values"
            )
        if len(measured) < 2:
            raise ValueError("At least two samples are required to derive a slope")
        if not original_scale > 0:
            raise ValueError("original_scale must be strictly positive")

        meas = np.asarray(measured, dtype=float)
        real = np.asarray(true_values, dtype=float)
        # numpy scalars keep divisions by zero as inf/nan instead of raising.
        with np.errstate(all="ignore"):
            coefficients = np.diff(meas) / np.diff(real)
            coefficient = np.mean(coefficients)
            scale_adjusted = meas / coefficient
            offsets = scale_adjusted - real
            offset = np.mean(offsets)
            scale = self._scale(np.float64(original_scale), coefficient)
            voltage_offset = self._voltage_offset(offset, scale)

        return CalibrationResult(
            target=self.target,
            measured=tuple(float(v) for v in meas),
            true_values=tuple(float(v) for v in real),
            coefficients=tuple(float(v) for v in coefficients),
            coefficient=float(coefficient),
            scale_adjusted=tuple(float(v) for v in scale_adjusted),
            offsets=tuple(float(v) for v in offsets),
            offset=float(offset),
            scale=float(scale),
            voltage_offset=float(voltage_offset),
            native_scale=self._native(float(scale)),
            native_voltage_offset=self._native(float(voltage_offset)),
            units=self.units,
        )

    def compute_samples(
        self, original_scale: float, samples: Sequence[CalibrationSample]
    ) -> CalibrationResult:
        """Convenience wrapper over :meth:`compute` for sample pairs."""
        return self.compute(
            original_scale,
            [sample.measured for sample in samples],
            [sample.true_value for sample in samples],
        )

    @abc.abstractmethod
    def _scale(self, original_scale: float, coefficient: float) -> float:
        """Apply the averaged coefficient to the original scale."""

    @abc.abstractmethod
    def _voltage_offset(self, offset: float, scale: float) -> float:
        """Express the current offset as a sensor voltage."""

    @abc.abstractmethod
    def _native(self, value: float) -> float:
        """Convert a physical value to the firmware's stored representation."""


class ArdupilotScaleOffsetCalculator(ScaleOffsetCalculator):
    """ArduPilot stores the current scale in A/V, physically."""

    target = FirmwareTarget.ARDUPILOT
    units = ResultUnits(
        offset="A",
        scale="A/V",
        voltage_offset="V",
        native_scale="A/V",
        native_voltage_offset="V",
    )

    def _scale(self, original_scale: float, coefficient: float) -> float:
        return original_scale / coefficient

    def _voltage_offset(self, offset: float, scale: float) -> float:
        return offset / scale

    def _native(self, value: float) -> float:
        return value


class INavScaleOffsetCalculator(ScaleOffsetCalculator):
    """iNav stores the current scale in V/A as 0.1 mV fixed point."""

    target = FirmwareTarget.INAV
    units = ResultUnits(
        offset="A",
        scale="V/A",
        voltage_offset="V",
        native_scale="0.1mV/A",
        native_voltage_offset="0.1mV",
    )

    FIXED_POINT = 10000

    def _scale(self, original_scale: float, coefficient: float) -> float:
        return original_scale * coefficient

    def _voltage_offset(self, offset: float, scale: float) -> float:
        return offset * scale

    def _native(self, value: float) -> float:
        if not math.isfinite(value):
            return value
        return round(value * self.FIXED_POINT)


_CALCULATORS: dict[FirmwareTarget, type[ScaleOffsetCalculator]] = {
    FirmwareTarget.ARDUPILOT: ArdupilotScaleOffsetCalculator,
    FirmwareTarget.INAV: INavScaleOffsetCalculator,
}


def calculator_for(target: FirmwareTarget) -> ScaleOffsetCalculator:
    """Return the calculator applying ``target``'s conventions."""
    try:
        return _CALCULATORS[target]()
    except KeyError as exc:
        raise ValueError(f"unsupported firmware target: {target}") from exc


def voltage_scale(measurement_scale: float, measured: float, true_value: float) -> float:
    """Single point voltage scale; a zero ``measured`` raises ZeroDivisionError."""
    return measurement_scale * true_value / measured
