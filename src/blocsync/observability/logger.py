"""Structured JSON logger for blocsync.

Every log record is emitted as a single-line JSON object::

    {"ts": "2026-10-19T12:00:00.123456+00:00", "level": "ERROR",
     "logger": "blocsync.classifier", "message": "not enough information to remove bloc",
     "op": "remove", "key": "17"}

Structured fields go through ``extra={"extra_fields": {...}}``::

    from blocsync.observability import get_logger

    log = get_logger("blocsync.flusher")
    log.info("flush complete", extra={"extra_fields": {"op": "flush", "written": 3}})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys are ``ts`` (ISO-8601 UTC), ``level``, ``logger`` and
    ``message``.  Fields passed through ``extra={"extra_fields": {...}}``
    are merged into the top-level object, and ``exc_info`` / ``stack_info``
    are serialised when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

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


# One handler per configured root name so that ``get_logger`` is idempotent.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "blocsync",
    *,
    level: int | str = logging.DEBUG,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Only the top-level ``"blocsync"`` logger receives a handler; child
    loggers such as ``"blocsync.flusher"`` propagate to it, which keeps
    ``caplog`` and application-level handlers working.

    Parameters
    ----------
    name:
        Logger name.  Defaults to ``"blocsync"``.
    level:
        Minimum level for the handler-owning logger, as an ``int`` or a
        case-insensitive string.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
    """
    root_name = name.split(".", 1)[0]
    root = logging.getLogger(root_name)

    if root_name not in _configured_loggers:
        resolved_level = (
            logging.getLevelName(level.upper())
            if isinstance(level, str)
            else level
        )
        root.setLevel(resolved_level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)

        _configured_loggers.add(root_name)

    return logging.getLogger(name)
