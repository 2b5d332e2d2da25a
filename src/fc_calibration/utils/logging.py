"""Logging configuration helpers."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def level_for(verbose: bool) -> int:
    """Map the CLI verbosity flag to a logging level."""
    return logging.DEBUG if verbose else logging.INFO


def configure_logging(level: int = logging.INFO, *, stream: TextIO | None = None) -> None:
    """Configure the global log format and level.

    Log records go to stderr by default so they do not interleave with the
    operator prompts printed on stdout.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=stream or sys.stderr)
