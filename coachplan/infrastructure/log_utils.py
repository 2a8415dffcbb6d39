"""Module-level logging helpers for the coachplan services.

``log_message`` picks the subsystem tag from the calling module, so service
code only writes ``log_utils.info("...")`` and lets ``log_context`` supply the
plan/day scope.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from coachplan.logging_setup import get_logger, get_tag_for_module, log_context

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _caller_tag() -> str:
    frame = sys._getframe(1)
    while frame is not None and frame.f_globals.get("__name__") == __name__:
        frame = frame.f_back
    if frame is None:
        return get_tag_for_module("")
    return get_tag_for_module(frame.f_globals.get("__name__", ""))


def log_message(msg: str, level: str = "INFO", tag: Optional[str] = None, **kwargs) -> None:
    """Write ``msg`` to the history log; extra kwargs go to ``Logger.log``."""
    logger = get_logger(tag or _caller_tag())
    numeric = _LEVELS.get(str(level).upper())
    if numeric is None:
        logger.warning("Received unknown log level '%s'; writing at INFO: %s", level, msg)
        numeric = logging.INFO
    logger.log(numeric, msg, **kwargs)


def debug(msg: str, tag: Optional[str] = None, **kwargs) -> None:
    log_message(msg, "DEBUG", tag, **kwargs)


def info(msg: str, tag: Optional[str] = None, **kwargs) -> None:
    log_message(msg, "INFO", tag, **kwargs)


def warn(msg: str, tag: Optional[str] = None, **kwargs) -> None:
    log_message(msg, "WARNING", tag, **kwargs)


def error(msg: str, tag: Optional[str] = None, **kwargs) -> None:
    log_message(msg, "ERROR", tag, **kwargs)


def critical(msg: str, tag: Optional[str] = None, **kwargs) -> None:
    log_message(msg, "CRITICAL", tag, **kwargs)


__all__ = ["log_message", "log_context", "debug", "info", "warn", "error", "critical"]
