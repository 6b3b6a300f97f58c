"""
Structured logging for the dashboard data layer.

Every module gets its logger through ``get_logger(component, name)`` and logs
dotted event names with keyword fields:

    log = get_logger("datastore", "cache")
    log.info("datastore.sync.complete", collection="press_releases", count=2500)

Records are rendered as ``event key=value ...`` on top of the standard
``logging`` module, so handlers and levels are configured the usual way.
"""

import contextvars
import logging
import sys
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

ROOT_LOGGER_NAME = "dashboard"

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def _format_value(value: Any) -> str:
    text = str(value)
    if not text or any(ch.isspace() for ch in text) or "=" in text:
        return repr(text)
    return text


class StructuredLogger:
    """Thin wrapper that turns ``event, **fields`` calls into log records."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, event: str, fields: dict) -> None:
        if not self._logger.isEnabledFor(level):
            return
        exc_info = fields.pop("exc_info", None)
        cid = _correlation_id.get()
        if cid is not None:
            fields.setdefault("correlation_id", cid)
        parts = [event] + [f"{k}={_format_value(v)}" for k, v in fields.items()]
        self._logger.log(
            level,
            " ".join(parts),
            exc_info=exc_info,
            extra={"event": event, "fields": fields},
        )

    def debug(self, event: str, **fields: Any) -> None:
        self._log(logging.DEBUG, event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._log(logging.INFO, event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._log(logging.WARNING, event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._log(logging.ERROR, event, fields)

    def exception(self, event: str, **fields: Any) -> None:
        fields.setdefault("exc_info", True)
        self._log(logging.ERROR, event, fields)


def get_logger(component: str, name: str) -> StructuredLogger:
    """
    Get a structured logger for a module.

    Args:
        component: Top-level component ("datastore", "shared", "cli")
        name: Module name within the component ("cache", "fetcher")
    """
    return StructuredLogger(logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}.{name}"))


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Configure handlers for all dashboard loggers.

    Safe to call more than once; existing handlers are replaced.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter("%(asctime)s %(levelname)-7s %(name)s %(message)s")

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False


@contextmanager
def correlation_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id to every record logged inside the block."""
    cid = correlation_id or uuid.uuid4().hex[:12]
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)
