"""Unit tests for operator prompts and the cancellation latch."""

from __future__ import annotations

import io

from fc_calibration.calibration.cancellation import CancellationToken
from fc_calibration.calibration.console import OperatorConsole


def _console(*answers: object) -> tuple[OperatorConsole, io.StringIO]:
    pending = list(answers)

    def scripted(prompt: str) -> str:
        answer = pending.pop(0)
        if isinstance(answer, type) and issubclass(answer, BaseException):
            raise answer
        return str(answer)

    output = io.StringIO()
    return OperatorConsole(CancellationToken(), output=output, input_func=scripted), output


def test_token_consume_clears_pending_cancel() -> None:
    token = CancellationToken()
    assert not token.consume()
    token.cancel()
    assert token.cancelled
    assert token.consume()
    assert not token.cancelled


def test_yes_no_default_and_reprompt() -> None:
    console, output = _console("", "maybe", "N")
    assert console.ask_yes_no("Save? ", True) is True
    assert console.ask_yes_no("Save? ", True) is False
    assert "Please answer 'y' or 'n'" in output.getvalue()


def test_float_prompt_rejects_garbage_and_non_finite() -> None:
    console, output = _console("abc", "nan", " 1.25 ")
    assert console.ask_float("Value > ") == 1.25
    assert output.getvalue().count("Invalid number") == 2


def test_interrupt_and_eof_become_cancel_requests() -> None:
    console, _ = _console(KeyboardInterrupt, EOFError)
    assert console.pause("Press enter") is False
    assert console.token.consume()
    assert console.ask_float("Value > ") is None
    assert console.token.consume()


def test_progress_line_is_overwritten_and_padded() -> None:
    console, output = _console()
    console.update_progress("long progress")
    console.update_progress("short")
    console.end_progress(bell=False)
    assert output.getvalue() == "\rlong progress\rshort        \n"
