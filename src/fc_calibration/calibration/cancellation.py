"""Operator cancellation shared by every blocking point of a workflow."""

from __future__ import annotations

import threading


class CancellationToken:
    """Latch recording an operator cancel request until a handler consumes it.

    Blocking boundaries (console prompts, the sampling loop) convert a
    keyboard interrupt into :meth:`cancel`; the workflow step that owns the
    boundary then calls :meth:`consume` to decide what the cancel means for
    the state it is in.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Record a cancel request."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Whether a cancel request is pending."""
        return self._event.is_set()

    def consume(self) -> bool:
        """Return whether a cancel was pending and clear it."""
        if not self._event.is_set():
            return False
        self._event.clear()
        return True
