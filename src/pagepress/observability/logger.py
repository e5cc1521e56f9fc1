"""Structured JSON logger for pagepress.

Every log record is emitted as a single-line JSON object so it can be
consumed by log aggregation pipelines without additional parsing.  Records
written while a publish is in flight also carry that request's
``correlation_id``, so every line belonging to one request can be pulled
out of an interleaved log.

Typical structured output::

    {"ts": "2026-07-01T12:00:00.123456+00:00", "level": "INFO",
     "logger": "pagepress.publisher", "message": "publish complete",
     "correlation_id": "2f0c...", "op": "publish", "page_id": 42,
     "action": "updated"}

Usage::

    from pagepress.observability import correlation_scope, get_logger

    log = get_logger("pagepress.publisher")
    with correlation_scope() as cid:
        log.info("publish started", extra={"extra_fields": {"slug": "home"}})
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

_correlation_id: ContextVar[str | None] = ContextVar("pagepress_correlation_id", default=None)


def current_correlation_id() -> str | None:
    """Return the correlation id bound to the running request, if any."""
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation id for the duration of the ``with`` block.

    Parameters
    ----------
    correlation_id:
        Id to bind.  A fresh UUID4 is generated when omitted.

    Yields
    ------
    str
        The bound correlation id.
    """
    cid = correlation_id or str(uuid.uuid4())
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    The formatter produces a JSON object with the following guaranteed keys:

    * ``ts`` -- ISO-8601 UTC timestamp
    * ``level`` -- Python log level name (``DEBUG``, ``INFO``, ...)
    * ``logger`` -- Logger name
    * ``message`` -- Formatted log message

    ``correlation_id`` is added while a :func:`correlation_scope` is active.
    Extra structured fields passed via ``extra={"extra_fields": {...}}`` are
    merged into the top-level object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = _correlation_id.get()
        if cid is not None:
            log_entry["correlation_id"] = cid

        extra_fields: dict[str, Any] | None = getattr(
            record, "extra_fields", None
        )
        if extra_fields is not None:
            log_entry.update(extra_fields)

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_entry, default=str)


# One handler per logger name so that ``get_logger`` stays idempotent
# across modules and threads.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "pagepress",
    *,
    level: int | str = logging.INFO,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name.  Defaults to ``"pagepress"``.
    level:
        Minimum log level as an ``int`` or a case-insensitive name.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
        A logger with a :class:`StructuredFormatter` handler attached.
        Repeated calls with the same *name* return the same logger and do
        not add duplicate handlers.
    """
    logger = logging.getLogger(name)

    if name not in _configured_loggers:
        resolved_level = (
            logging.getLevelName(level.upper())
            if isinstance(level, str)
            else level
        )
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        _configured_loggers.add(name)

    return logger
