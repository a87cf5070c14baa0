"""Stdout logging for rowtrail processes.

Records carry the audit context bound through ``log_context`` (trace id,
operator) and any capture fields passed with ``extra=`` (table, history
table, operation, counts). SQLAlchemy's engine logger is kept at WARNING
unless SQL echo is requested.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from . import fields
from .context import bind_context, get_context

SQLALCHEMY_ENGINE_LOGGER = "sqlalchemy.engine"

_CAPTURE_FIELDS = (
    fields.TABLE,
    fields.HISTORY_TABLE,
    fields.OPERATION,
    fields.ENTRY_COUNT,
    fields.ROW_COUNT,
)


class AuditContextFilter(logging.Filter):
    """Snapshot the bound audit context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = get_context()
        return True


def structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return bound context merged with capture fields set on ``record``."""
    values: dict[str, Any] = dict(getattr(record, "context", None) or {})
    for name in _CAPTURE_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            values[name] = value
    return values


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            fields.TIMESTAMP: datetime.fromtimestamp(record.created, UTC).isoformat(),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
        }
        payload.update(structured_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """Readable lines with ``key=value`` pairs appended in key order."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = structured_fields(record)
        if not pairs:
            return line
        return line + " " + " ".join(f"{key}={pairs[key]}" for key in sorted(pairs))


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    service: str | None = None,
    environment: str | None = None,
    sql_echo: bool = False,
) -> None:
    """Route all logging to one stdout handler; safe to call repeatedly."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.addFilter(AuditContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    logging.getLogger(SQLALCHEMY_ENGINE_LOGGER).setLevel(
        logging.INFO if sql_echo else logging.WARNING
    )

    bind_context(**{fields.SERVICE: service, fields.ENVIRONMENT: environment})


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)
