"""Central logging configuration for coachplan.

Every record carries a tag naming the subsystem (``PLAN``, ``COPY``, ``SYNC``
...) and the plan/day/student scope it was written under, so one copy or one
replication run can be followed through the history file::

    [2024-01-08T06:00:01Z] [INFO] [COPY] plan=7f2c week=2024-01-15 Copied 4 exercise(s) ...
"""

from __future__ import annotations

import contextvars
import logging
import sys
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from coachplan.config import get_env, settings

LOGGER_NAME = "coachplan.history"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 7
DEFAULT_TAG = "GEN"

# Order in which scope fields are printed.
CONTEXT_FIELDS = ("plan", "student", "week", "day")

TAG_MAP = {
    "plan_lifecycle": "PLAN",
    "instantiation": "COPY",
    "completion_sync": "SYNC",
    "progress_log": "SYNC",
    "schedule_store": "STORE",
    "authoring": "AUTH",
    "postgres": "DB",
    "decorators": "DB",
    "di_container": "SYS",
}

_scope: contextvars.ContextVar[Dict[str, str]] = contextvars.ContextVar("coachplan_log_scope", default={})
_logger: Optional[logging.Logger] = None


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach ``plan=``, ``day=`` ... to every record written inside the block.

    Nested scopes add to the outer one; ``None`` values are skipped.
    """
    merged = dict(_scope.get())
    merged.update({key: str(value) for key, value in fields.items() if value is not None})
    token = _scope.set(merged)
    try:
        yield
    finally:
        _scope.reset(token)


def current_context() -> Dict[str, str]:
    return dict(_scope.get())


def _render_scope(scope: Dict[str, str]) -> str:
    ordered = [key for key in CONTEXT_FIELDS if key in scope]
    ordered += sorted(key for key in scope if key not in CONTEXT_FIELDS)
    return "".join(f" {key}={scope[key]}" for key in ordered)


class ScopeFilter(logging.Filter):
    """Fill ``tag`` and ``context`` on records that do not carry them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "tag"):
            record.tag = DEFAULT_TAG
        record.context = _render_scope(_scope.get())
        return True


def get_tag_for_module(module_name: str) -> str:
    module_name = module_name.lower()
    for key, tag in TAG_MAP.items():
        if key in module_name:
            return tag
    return DEFAULT_TAG


def _resolve_level(level: Optional[str]) -> int:
    candidate = str(level or get_env("COACHPLAN_LOG_LEVEL", default="INFO")).upper()
    numeric = logging.getLevelName(candidate)
    if isinstance(numeric, int):
        return numeric
    print(f"coachplan logger: unknown log level '{candidate}', using INFO.", file=sys.stderr)
    return logging.INFO


def _formatter() -> logging.Formatter:
    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] [%(tag)s]%(context)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    formatter.converter = time.gmtime
    return formatter


def _attach(logger: logging.Logger, handler: logging.Handler) -> None:
    handler.setFormatter(_formatter())
    handler.addFilter(ScopeFilter())
    logger.addHandler(handler)


def configure_logging(
    *,
    log_path: Optional[Path] = None,
    level: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    force: bool = False,
) -> logging.Logger:
    """Install the rotating history file (and the console, unless disabled) once.

    Later calls return the configured logger; ``force`` or a new ``log_path``
    rebuilds the handlers.
    """
    global _logger
    if _logger is not None and not force and log_path is None:
        if level is not None:
            _logger.setLevel(_resolve_level(level))
        return _logger

    reset_logging()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(_resolve_level(level))
    logger.propagate = False

    path = Path(log_path) if log_path is not None else settings.log_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        _attach(
            logger,
            RotatingFileHandler(
                path,
                maxBytes=max_bytes or DEFAULT_MAX_BYTES,
                backupCount=backup_count or DEFAULT_BACKUP_COUNT,
                encoding="utf-8",
            ),
        )
    except OSError as exc:
        print(f"coachplan logger: cannot open {path}: {exc}", file=sys.stderr)

    if get_env("COACHPLAN_LOG_TO_CONSOLE", default=True):
        _attach(logger, logging.StreamHandler())

    _logger = logger
    return logger


def get_logger(tag: str = DEFAULT_TAG) -> logging.LoggerAdapter:
    """Logger adapter stamping ``tag`` on every record."""
    return logging.LoggerAdapter(_logger or configure_logging(), {"tag": tag})


def reset_logging() -> None:
    """Close and drop every handler so the next call reconfigures from scratch."""
    global _logger
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    _logger = None
