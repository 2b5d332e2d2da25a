"""Current and voltage calibration workflows.

Each session is an explicit state machine. Handlers return the next state;
cancel requests arrive through the :class:`CancellationToken` and are
consumed by the handler that owns the blocking point, so the meaning of a
cancel always follows from the state it arrived in. Every path that ends
anywhere but ``COMPLETED`` puts the backed-up calibration back on the board.
"""

from __future__ import annotations

import abc
import enum
import logging
from typing import Any, Callable, Mapping

from ..firmware.base import (
    FirmwareInterface,
    RawOffsetScale,
    SensorChannel,
    SensorNotEnabledError,
)
from .acquisition import DEFAULT_ACQUISITION_TIME_S, SampleAcquirer
from .calculator import (
    CalibrationResult,
    CalibrationSample,
    ScaleOffsetCalculator,
    calculator_for,
    voltage_scale,
)
from .console import OperatorConsole
from .errors import (
    AcquisitionAborted,
    CalibrationError,
    InvalidResultsError,
    TooFewMeasurements,
)

LOGGER = logging.getLogger(__name__)

MIN_CURRENT_SAMPLES = 2


class SessionState(enum.Enum):
    """Workflow states; the last three are terminal."""

    CHECK_PRECONDITION = "check_precondition"
    PREPARE_BOARD = "prepare_board"
    GATHERING = "gathering"
    COMPUTING = "computing"
    SANITY_CHECK = "sanity_check"
    REPORT_AND_WRITEBACK = "report_and_writeback"
    COMPLETED = "completed"
    ABORTED_BY_OPERATOR = "aborted_by_operator"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        """Whether the workflow stops in this state."""
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {SessionState.COMPLETED, SessionState.ABORTED_BY_OPERATOR, SessionState.FAILED}
)

StepHandler = Callable[[], SessionState]


def _fmt(value: float) -> str:
    return f"{round(value, 4):g}"


class CalibrationSession(abc.ABC):
    """Single-use workflow calibrating one sensor channel of a board."""

    channel: SensorChannel
    title: str

    def __init__(
        self,
        firmware: FirmwareInterface,
        console: OperatorConsole,
        *,
        acquisition_time_s: float = DEFAULT_ACQUISITION_TIME_S,
        acquirer: SampleAcquirer | None = None,
    ) -> None:
        """Bind the session to a board and an operator console.

        Args:
            firmware: Connected board.
            console: Operator interaction; its token carries cancel requests.
            acquisition_time_s: Length of each sampling window.
            acquirer: Pre-built acquirer, mostly for tests.
        """
        self._firmware = firmware
        self._console = console
        self._token = console.token
        self._acquirer = acquirer or SampleAcquirer(
            firmware, self._token, duration_s=acquisition_time_s, console=console
        )
        self._backup: RawOffsetScale | None = None
        self._state: SessionState | None = None
        self.saved = False
        self.failure: CalibrationError | None = None

    @property
    def state(self) -> SessionState | None:
        """Current workflow state; None before :meth:`run`."""
        return self._state

    @property
    def previous(self) -> RawOffsetScale | None:
        """Calibration read from the board before it was prepared."""
        return self._backup

    # ------------------------------------------------------------------
    # Workflow driver
    # ------------------------------------------------------------------

    def run(self) -> SessionState:
        """Drive the workflow to a terminal state.

        Raises:
            SensorNotEnabledError: If the channel is disabled on the board.
            RuntimeError: If the session was already run.
        """
        if self._state is not None:
            raise RuntimeError("calibration sessions are single use")
        steps = self._steps()
        state = SessionState.CHECK_PRECONDITION
        try:
            while not state.terminal:
                self._state = state
                LOGGER.debug("%s calibration entering %s", self.channel.value, state.value)
                state = steps[state]()
        except KeyboardInterrupt:
            self._token.consume()
            state = SessionState.ABORTED_BY_OPERATOR
        except Exception:
            self._state = SessionState.FAILED
            self._restore()
            raise

        self._state = state
        if state is SessionState.ABORTED_BY_OPERATOR:
            self._restore()
            self._console.warn(f"{self.title} calibration aborted")
        elif state is SessionState.FAILED:
            self._restore()
            self._console.warn(f"{self.title} calibration failed: {self.failure}")
        LOGGER.info("%s calibration finished: %s", self.channel.value, state.value)
        return state

    @abc.abstractmethod
    def _steps(self) -> Mapping[SessionState, StepHandler]:
        """Map each non-terminal state to its handler."""

    @abc.abstractmethod
    def calibration_data(self) -> dict[str, Any]:
        """Return the computed calibration as a plain mapping."""

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _check_precondition(self) -> SessionState:
        if not self._firmware.is_channel_enabled(self.channel):
            raise SensorNotEnabledError(f"{self.title} sensor not enabled")
        self._console.display(f"{'*' * 20} {self.title.upper()} CALIBRATION {'*' * 20}")
        self._console.display()
        return SessionState.PREPARE_BOARD

    def _prepare_board(self) -> SessionState:
        self._backup = self._firmware.offset_and_scale(self.channel)
        LOGGER.info("Backed up %s calibration: %s", self.channel.value, self._backup)
        self._describe_previous(self._backup)
        self._console.display()
        self._firmware.prepare_calibration(self.channel)
        return SessionState.GATHERING

    @abc.abstractmethod
    def _describe_previous(self, previous: RawOffsetScale) -> None:
        """Show the operator the calibration found on the board."""

    def _write_back(self, offset: float, scale: float) -> SessionState:
        self._console.display()
        answer = self._console.ask_yes_no(
            f"Save new {self.title.lower()} calibration onto FC (yn) ? [y] ", True
        )
        if self._token.consume() or answer is None:
            return SessionState.ABORTED_BY_OPERATOR
        if answer:
            self._firmware.set_offset_and_scale(self.channel, offset, scale)
            self._firmware.persist()
            self._backup = None
            self.saved = True
            LOGGER.info("Saved %s calibration: offset=%s scale=%s", self.channel.value, offset, scale)
            self._console.display(f"New {self.title.lower()} calibration saved onto FC")
        else:
            self._restore()
            self._console.display("Calibration discarded, previous values restored")
        return SessionState.COMPLETED

    def _restore(self) -> None:
        backup = self._backup
        if backup is None:
            return
        self._firmware.set_offset_and_scale(self.channel, backup.offset, backup.scale)
        self._backup = None
        LOGGER.info("Restored %s calibration: %s", self.channel.value, backup)


class CurrentCalibrationSession(CalibrationSession):
    """Multi-point current sensor calibration."""

    channel = SensorChannel.CURRENT
    title = "Current"

    def __init__(
        self,
        firmware: FirmwareInterface,
        console: OperatorConsole,
        *,
        acquisition_time_s: float = DEFAULT_ACQUISITION_TIME_S,
        acquirer: SampleAcquirer | None = None,
        calculator: ScaleOffsetCalculator | None = None,
    ) -> None:
        """Create the session; the calculator defaults to the board's firmware."""
        super().__init__(
            firmware, console, acquisition_time_s=acquisition_time_s, acquirer=acquirer
        )
        self._calculator = calculator or calculator_for(firmware.target)
        self._samples: list[CalibrationSample] = []
        self._result: CalibrationResult | None = None

    @property
    def samples(self) -> tuple[CalibrationSample, ...]:
        """Samples gathered so far, in insertion order."""
        return tuple(self._samples)

    @property
    def result(self) -> CalibrationResult | None:
        """Calibration computed from :attr:`samples`, if any."""
        return self._result

    def calibration_data(self) -> dict[str, Any]:
        if self._result is None:
            raise RuntimeError("no calibration data available")
        result = self._result
        return {
            "offset": result.offset,
            "scale": result.scale,
            "voltage_offset": result.voltage_offset,
            "native_voltage_offset": result.native_voltage_offset,
            "native_scale": result.native_scale,
            "measurements": [
                {"true": sample.true_value, "measured": sample.measured}
                for sample in self._samples
            ],
        }

    def _steps(self) -> Mapping[SessionState, StepHandler]:
        return {
            SessionState.CHECK_PRECONDITION: self._check_precondition,
            SessionState.PREPARE_BOARD: self._prepare_board,
            SessionState.GATHERING: self._gather,
            SessionState.COMPUTING: self._compute,
            SessionState.SANITY_CHECK: self._sanity_check,
            SessionState.REPORT_AND_WRITEBACK: self._report,
        }

    def _describe_previous(self, previous: RawOffsetScale) -> None:
        self._console.display(
            "Previous current sensor configuration: "
            f"offset = {_fmt(previous.offset)} V, "
            f"scale = {_fmt(previous.scale)} {self._calculator.units.scale}"
        )

    def _gather(self) -> SessionState:
        while True:
            self._gather_measurements()
            count = len(self._samples)
            if count >= MIN_CURRENT_SAMPLES:
                return SessionState.COMPUTING
            abort = self._console.ask_yes_no(
                f"Not enough samples (acquired {count}, minimum {MIN_CURRENT_SAMPLES}), "
                "do you want to abort calibration (yn) [n] ? ",
                False,
            )
            # A cancel while this prompt is open aborts whatever the answer.
            if self._token.consume() or abort is None or abort:
                self.failure = TooFewMeasurements(
                    f"acquired {count} samples, minimum {MIN_CURRENT_SAMPLES}"
                )
                return SessionState.ABORTED_BY_OPERATOR

    def _gather_measurements(self) -> None:
        """Collect sample pairs until the operator cancels between measurements."""
        try:
            while True:
                proceed = self._console.pause(
                    "Start the load and press enter to start a current measurement "
                    "or press ctrl-c to stop the measurements..."
                )
                if self._token.consume() or not proceed:
                    return
                try:
                    measured = self._acquirer.acquire(self.channel)
                except AcquisitionAborted as exc:
                    self._console.warn(f"{exc}")
                    self._console.display()
                    continue
                true_value = self._console.ask_float("Enter the real current in amperes > ")
                if self._token.consume() or true_value is None:
                    self._console.warn("Measurement discarded")
                    continue
                self._console.display()
                self._samples.append(CalibrationSample(measured=measured, true_value=true_value))
                self._result = None
        except KeyboardInterrupt:
            # Ctrl-C between prompts stops gathering like Ctrl-C at the load prompt.
            self._token.consume()
            LOGGER.debug("Gathering stopped with %d samples", len(self._samples))

    def _compute(self) -> SessionState:
        original_scale = self._firmware.measurement_scale(self.channel)
        self._result = self._calculator.compute_samples(original_scale, self._samples)
        return SessionState.SANITY_CHECK

    def _sanity_check(self) -> SessionState:
        assert self._result is not None
        if not self._result.is_finite():
            self.failure = InvalidResultsError(
                "Something went wrong, the current calibration gave invalid results"
            )
            return SessionState.FAILED
        return SessionState.REPORT_AND_WRITEBACK

    def _report(self) -> SessionState:
        result = self._result
        assert result is not None
        units = result.units
        display = self._console.display
        display(f"Measured values: {[round(v, 4) for v in result.measured]}")
        display(f"True values: {[round(v, 4) for v in result.true_values]}")
        display(f"Coefficients: {[round(v, 4) for v in result.coefficients]}")
        display(f"Offsets: {[round(v, 4) for v in result.offsets]}")
        display()
        display(f"Offset: {_fmt(result.offset)} {units.offset}")
        voltage_line = f"Offset voltage: {_fmt(result.voltage_offset)} {units.voltage_offset}"
        scale_line = f"Scale: {_fmt(result.scale)} {units.scale}"
        if units.native_scale != units.scale:
            target = result.target.value
            voltage_line += f" ({target} offset value: {round(result.native_voltage_offset)})"
            scale_line += f" ({target} scale value: {round(result.native_scale)})"
        display(voltage_line)
        display(scale_line)
        return self._write_back(result.voltage_offset, result.scale)


class VoltageCalibrationSession(CalibrationSession):
    """Single-point voltage sensor calibration."""

    channel = SensorChannel.VOLTAGE
    title = "Voltage"

    def __init__(
        self,
        firmware: FirmwareInterface,
        console: OperatorConsole,
        *,
        acquisition_time_s: float = DEFAULT_ACQUISITION_TIME_S,
        acquirer: SampleAcquirer | None = None,
    ) -> None:
        super().__init__(
            firmware, console, acquisition_time_s=acquisition_time_s, acquirer=acquirer
        )
        self.measured: float | None = None
        self.true_value: float | None = None
        self.scale: float | None = None

    def calibration_data(self) -> dict[str, Any]:
        if self.scale is None:
            raise RuntimeError("no calibration data available")
        return {"voltage_scale": self.scale}

    def _steps(self) -> Mapping[SessionState, StepHandler]:
        return {
            SessionState.CHECK_PRECONDITION: self._check_precondition,
            SessionState.PREPARE_BOARD: self._prepare_board,
            SessionState.GATHERING: self._gather,
            SessionState.COMPUTING: self._compute,
            SessionState.REPORT_AND_WRITEBACK: self._report,
        }

    def _describe_previous(self, previous: RawOffsetScale) -> None:
        self._console.display(f"Previous voltage sensor scale = {_fmt(previous.scale)}")

    def _gather(self) -> SessionState:
        proceed = self._console.pause(
            "Press enter to start the voltage measurement "
            "or press ctrl-c to abort the voltage calibration..."
        )
        if self._token.consume() or not proceed:
            return SessionState.ABORTED_BY_OPERATOR
        try:
            measured = self._acquirer.acquire(self.channel)
        except AcquisitionAborted as exc:
            self._console.warn(f"{exc}")
            return SessionState.ABORTED_BY_OPERATOR
        true_value = self._console.ask_float("Enter the real voltage in volts > ")
        if self._token.consume() or true_value is None:
            return SessionState.ABORTED_BY_OPERATOR
        self._console.display()
        self.measured = measured
        self.true_value = true_value
        return SessionState.COMPUTING

    def _compute(self) -> SessionState:
        assert self.measured is not None and self.true_value is not None
        self.scale = voltage_scale(
            self._firmware.measurement_scale(self.channel), self.measured, self.true_value
        )
        return SessionState.REPORT_AND_WRITEBACK

    def _report(self) -> SessionState:
        assert self.scale is not None
        self._console.display(f"Adjusted voltage scale: {_fmt(self.scale)}")
        return self._write_back(0.0, self.scale)


_SESSIONS: dict[SensorChannel, type[CalibrationSession]] = {
    SensorChannel.CURRENT: CurrentCalibrationSession,
    SensorChannel.VOLTAGE: VoltageCalibrationSession,
}


def build_session(
    channel: SensorChannel,
    firmware: FirmwareInterface,
    console: OperatorConsole,
    *,
    acquisition_time_s: float = DEFAULT_ACQUISITION_TIME_S,
) -> CalibrationSession:
    """Create the session calibrating ``channel``."""
    return _SESSIONS[channel](firmware, console, acquisition_time_s=acquisition_time_s)
