"""Blocking terminal interaction used by the calibration sessions."""

from __future__ import annotations

import math
import sys
from typing import Callable, TextIO

from .cancellation import CancellationToken

_YES = {"y", "yes"}
_NO = {"n", "no"}


class OperatorConsole:
    """Prompts and progress output that turn Ctrl-C into a token cancel.

    Every prompt returns ``None`` (or ``False`` for :meth:`pause`) when the
    operator interrupts it; the cancel itself is left pending on the token
    for the caller to consume.
    """

    def __init__(
        self,
        token: CancellationToken,
        *,
        output: TextIO | None = None,
        errors: TextIO | None = None,
        input_func: Callable[[str], str] = input,
    ) -> None:
        """Bind the console to a cancellation token and text streams."""
        self._token = token
        self._output = output or sys.stdout
        self._errors = errors or sys.stderr
        self._input = input_func
        self._progress_width = 0

    @property
    def token(self) -> CancellationToken:
        """Token receiving operator cancel requests."""
        return self._token

    def display(self, text: str = "") -> None:
        """Print one line for the operator."""
        print(text, file=self._output)

    def warn(self, text: str) -> None:
        """Print one line on the error stream."""
        print(text, file=self._errors)

    def update_progress(self, text: str) -> None:
        """Overwrite the current progress line."""
        self._progress_width = max(self._progress_width, len(text))
        self._output.write("\r" + text.ljust(self._progress_width))
        self._output.flush()

    def end_progress(self, *, bell: bool = True) -> None:
        """Terminate the progress line, ringing the bell by default."""
        self._output.write("\n" + ("\a" if bell else ""))
        self._output.flush()
        self._progress_width = 0

    def _read(self, prompt: str) -> str | None:
        try:
            return self._input(prompt)
        except (KeyboardInterrupt, EOFError):
            print(file=self._output)
            self._token.cancel()
            return None

    def pause(self, message: str) -> bool:
        """Wait for Enter; False when the operator cancelled instead."""
        return self._read(message) is not None

    def ask_yes_no(self, prompt: str, default: bool) -> bool | None:
        """Ask a yes/no question; an empty answer selects ``default``."""
        while True:
            answer = self._read(prompt)
            if answer is None:
                return None
            answer = answer.strip().lower()
            if not answer:
                return default
            if answer in _YES:
                return True
            if answer in _NO:
                return False
            self.display("Please answer 'y' or 'n'")

    def ask_float(self, prompt: str) -> float | None:
        """Ask for a number until a valid one is entered."""
        while True:
            answer = self._read(prompt)
            if answer is None:
                return None
            try:
                value = float(answer.strip())
            except ValueError:
                value = math.nan
            if math.isfinite(value):
                return value
            self.display(f"Invalid number: {answer.strip()!r}")
