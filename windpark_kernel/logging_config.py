"""
Structured logging for the wind-park back office.

Every record leaving the ``windpark`` logger hierarchy is one JSON object
per line: timestamp, level, logger name, the event name (the log message,
e.g. ``settlement_calculated`` or ``document_archived``), the business
identifiers bound with ``LogContext.bind`` and the ``extra`` payload of
the call.

Amounts are written as strings so that ``Decimal`` values keep their
scale; UUIDs, dates and enums are written as their plain values.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

ROOT_LOGGER = "windpark"

# Identifiers the services bind around settlement, invoice and archive work
CONTEXT_FIELDS = ("tenant_id", "actor_id", "settlement_id", "archive_id")

_context: ContextVar[dict[str, str]] = ContextVar("windpark_log_context", default={})


# ---------------------------------------------------------------------------
# Business context
# ---------------------------------------------------------------------------

class LogContext:
    """
    Identifiers attached to every record logged inside a ``bind`` block.

    Blocks nest: an inner ``bind`` adds to (or overrides) the outer
    fields and the outer fields are back once it exits.  ``None`` values
    are skipped so optional actors can be passed straight through.
    """

    @staticmethod
    @contextmanager
    def bind(**fields: object) -> Iterator[None]:
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise ValueError(f"Unknown log context field(s): {', '.join(unknown)}")

        merged = dict(_context.get())
        merged.update({name: str(value) for name, value in fields.items() if value is not None})
        token = _context.set(merged)
        try:
            yield
        finally:
            _context.reset(token)

    @staticmethod
    def current() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _json_value(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _error_payload(exc: BaseException) -> dict[str, Any]:
    """Type, text, code and structured attributes of a raised error."""
    payload: dict[str, Any] = {"error_type": type(exc).__name__, "error_detail": str(exc)}
    code = getattr(exc, "code", None)
    if code:
        payload["error_code"] = code
    attributes = {name: value for name, value in vars(exc).items() if not name.startswith("_")}
    if attributes:
        payload["error_fields"] = attributes
    return payload


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; bound context wins over ``extra`` keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRIBUTES and name not in payload:
                payload[name] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_error_payload(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_value)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

# Marks the handler installed by configure_logging
_HANDLER_FLAG = "windpark_structured"


def get_logger(name: str) -> logging.Logger:
    """Logger ``windpark.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on the ``windpark`` logger.

    Only the first call installs a handler; later calls return without
    changes until ``reset_logging`` removes it.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if any(getattr(h, _HANDLER_FLAG, False) for h in root.handlers):
        return

    installed = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    installed.setFormatter(StructuredFormatter())
    setattr(installed, _HANDLER_FLAG, True)
    root.addHandler(installed)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Remove the installed JSON handler (tests re-configure afterwards)."""
    root = logging.getLogger(ROOT_LOGGER)
    for h in [h for h in root.handlers if getattr(h, _HANDLER_FLAG, False)]:
        root.removeHandler(h)
    root.setLevel(logging.NOTSET)
    root.propagate = True
