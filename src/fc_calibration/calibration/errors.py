"""Exceptions raised by the calibration workflow."""

from __future__ import annotations


class CalibrationError(RuntimeError):
    """Base class for calibration workflow failures."""


class AcquisitionAborted(CalibrationError):  # noqa: N818
    """Raised when sampling is cancelled or yields no readings."""


class TooFewMeasurements(CalibrationError):  # noqa: N818
    """Raised when the operator stops with fewer than two samples."""


class InvalidResultsError(CalibrationError):
    """Raised when a computed calibration contains non-finite values."""
