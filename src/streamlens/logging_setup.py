"""Stderr logging for the streamlens logger tree."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_LOGGER_NAME = "streamlens"
_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_handler: logging.Handler | None = None


def setup_logging(level: int = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """Attach a single stderr handler to ``streamlens``.

    Repeated calls only adjust the level, so the CLI can raise verbosity
    after an earlier default setup without stacking handlers.
    """
    global _handler  # noqa: PLW0603

    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    if _handler is not None:
        return logger

    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(_handler)
    # Rich owns stdout while a live view is drawn; keep records off the root logger.
    logger.propagate = False
    return logger


def verbosity_level(verbose: bool) -> int:
    return logging.DEBUG if verbose else logging.WARNING
