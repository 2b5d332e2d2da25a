"""Time-boxed averaging of raw board readings."""

from __future__ import annotations

import logging
import time
from typing import Callable

from ..firmware.base import FirmwareInterface, SensorChannel
from .cancellation import CancellationToken
from .console import OperatorConsole
from .errors import AcquisitionAborted

LOGGER = logging.getLogger(__name__)

DEFAULT_ACQUISITION_TIME_S = 5.0


class SampleAcquirer:
    """Average raw readings over a fixed acquisition window."""

    def __init__(
        self,
        firmware: FirmwareInterface,
        token: CancellationToken,
        *,
        duration_s: float = DEFAULT_ACQUISITION_TIME_S,
        console: OperatorConsole | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Configure the acquisition window.

        Args:
            firmware: Board to sample.
            token: Cancellation latch polled between readings.
            duration_s: Length of the acquisition window in seconds.
            console: Optional console receiving progress updates.
            clock: Monotonic clock, injectable for tests.
        """
        if duration_s <= 0:
            raise ValueError("duration_s must be positive")
        self._firmware = firmware
        self._token = token
        self._duration_s = duration_s
        self._console = console
        self._clock = clock

    @property
    def duration_s(self) -> float:
        """Acquisition window length in seconds."""
        return self._duration_s

    def acquire(self, channel: SensorChannel) -> float:
        """Return the mean of the readings gathered during one window.

        Raises:
            AcquisitionAborted: If the operator cancelled during the window or
                no reading arrived before it closed. Partial readings are
                discarded.
        """
        samples: list[float] = []
        window_closed = False
        start = self._clock()
        try:
            while True:
                try:
                    if self._token.consume():
                        LOGGER.info("Acquisition cancelled after %d samples", len(samples))
                        raise AcquisitionAborted("Acquisition aborted by user request")
                    time_left = self._duration_s - (self._clock() - start)
                    if time_left <= 0:
                        window_closed = True
                        break
                    samples.append(self._firmware.sample_raw(channel))
                    if self._console is not None:
                        self._console.update_progress(
                            f"Time left: {time_left:4.1f}s - Samples: {len(samples):3d}"
                        )
                except KeyboardInterrupt:
                    # Ctrl-C anywhere in the window is a cancel request.
                    self._token.cancel()
        finally:
            if self._console is not None:
                self._console.end_progress(bell=window_closed)
        if not samples:
            raise AcquisitionAborted("No samples received during the acquisition window")
        mean = sum(samples) / len(samples)
        LOGGER.debug("Acquired %d %s samples, mean %.6f", len(samples), channel.value, mean)
        return mean
