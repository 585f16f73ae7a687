"""Rotating diagnostic logger emitting JSON lines.

Records describe what happened to which secret name. Plaintext, passwords
and ciphertext are never passed in here.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from typing import Dict, Optional

from .paths import state_dir

LOGGER_NAME = "clipvault"
LOG_FILE_NAME = "clipvault.log"


def _get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if any(getattr(handler, "_clipvault_file", False) for handler in logger.handlers):
        return logger

    log_dir = state_dir() / "logs"
    handler: logging.Handler
    failure: Optional[OSError] = None
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=1_000_000,
            backupCount=5,
            encoding="utf-8",
        )
    except OSError as exc:
        # Commands keep working when the log directory is unusable.
        handler = logging.NullHandler()
        failure = exc
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler._clipvault_file = True  # type: ignore[attr-defined]

    logger.setLevel(logging.DEBUG)
    handler.setLevel(logging.INFO)
    logger.addHandler(handler)
    if failure is not None:
        logger.warning("diagnostic log disabled: %s", failure)
    return logger


def enable_console(level: int = logging.DEBUG) -> None:
    """Mirror log output to stderr (``--verbose``)."""

    logger = _get_logger()
    for handler in logger.handlers:
        if getattr(handler, "_clipvault_console", False):
            return
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    console.setLevel(level)
    console._clipvault_console = True  # type: ignore[attr-defined]
    logger.addHandler(console)


def _emit(level: int, record: Dict[str, object]) -> None:
    entry = {"ts": round(time.time(), 3), **record}
    _get_logger().log(level, json.dumps(entry, sort_keys=True))


def info(record: Dict[str, object]) -> None:
    """Write a JSON record to the rotating log."""

    _emit(logging.INFO, record)


def warning(record: Dict[str, object]) -> None:
    _emit(logging.WARNING, record)


def shutdown() -> None:
    """Flush and detach every handler installed by this module."""

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
        logger.removeHandler(handler)


__all__ = ["enable_console", "info", "shutdown", "warning"]
