"""Calibration workflow: acquisition, calculators and operator sessions."""

from .acquisition import DEFAULT_ACQUISITION_TIME_S, SampleAcquirer
from .calculator import (
    ArdupilotScaleOffsetCalculator,
    CalibrationResult,
    CalibrationSample,
    INavScaleOffsetCalculator,
    ResultUnits,
    ScaleOffsetCalculator,
    calculator_for,
    voltage_scale,
)
from .cancellation import CancellationToken
from .console import OperatorConsole
from .errors import (
    AcquisitionAborted,
    CalibrationError,
    InvalidResultsError,
    TooFewMeasurements,
)
from .routine import EXIT_ABORTED, EXIT_COMPLETED, EXIT_FAILED, CalibrationRoutine
from .sessions import (
    CalibrationSession,
    CurrentCalibrationSession,
    SessionState,
    VoltageCalibrationSession,
    build_session,
)

__all__ = [
    "DEFAULT_ACQUISITION_TIME_S",
    "SampleAcquirer",
    "ScaleOffsetCalculator",
    "ArdupilotScaleOffsetCalculator",
    "INavScaleOffsetCalculator",
    "CalibrationResult",
    "CalibrationSample",
    "ResultUnits",
    "calculator_for",
    "voltage_scale",
    "CancellationToken",
    "OperatorConsole",
    "CalibrationError",
    "AcquisitionAborted",
    "TooFewMeasurements",
    "InvalidResultsError",
    "CalibrationSession",
    "CurrentCalibrationSession",
    "VoltageCalibrationSession",
    "SessionState",
    "build_session",
    "CalibrationRoutine",
    "EXIT_COMPLETED",
    "EXIT_ABORTED",
    "EXIT_FAILED",
]
