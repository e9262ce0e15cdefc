"""
Structured JSON logging for the advance tax engine.

Every advtax logger lives under the ``advtax`` namespace and writes one
JSON object per line.  Fields bound through ``LogContext`` (assessment,
company, actor, operation, correlation id) are merged into each record,
and ``extra=`` values are serialized with UUIDs, dates and Decimals kept
readable.  Money is logged as a string so no precision is lost.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_EMPTY: Mapping[str, str] = MappingProxyType({})
_fields: ContextVar[Mapping[str, str]] = ContextVar("advtax_log_fields", default=_EMPTY)


class LogContext:
    """Request-scoped log fields, carried in a context variable."""

    FIELDS = frozenset({
        "correlation_id",
        "actor_id",
        "company_id",
        "assessment_id",
        "operation",
    })

    @classmethod
    def _merged(cls, values: dict[str, Any]) -> Mapping[str, str]:
        fields = dict(_fields.get())
        for key, val in values.items():
            if key in cls.FIELDS and val is not None:
                fields[key] = str(val)
        return MappingProxyType(fields)

    @classmethod
    def set(cls, **values: Any) -> None:
        """Set fields for the rest of the current context. None is ignored."""
        _fields.set(cls._merged(values))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_fields.get())

    @classmethod
    def clear(cls) -> None:
        _fields.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**values: Any) -> Iterator[None]:
        """Set fields for the duration of the block, then restore the outer ones."""
        token = _fields.set(LogContext._merged(values))
        try:
            yield
        finally:
            _fields.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _jsonable(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    return repr(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, val in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, val)

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            # AdvanceTaxError subclasses carry their details as attributes
            for key, val in vars(exc).items():
                if not key.startswith("_") and key != "code":
                    payload[f"exc_{key}"] = val
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


# ---------------------------------------------------------------------------
# Logger factory and setup
# ---------------------------------------------------------------------------

_ROOT = "advtax"
_configured = False
_configure_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger ``advtax.<name>``."""
    return logging.getLogger(f"{_ROOT}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``advtax`` logger. Later calls are no-ops."""
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """Drop the handlers so the next ``configure_logging`` call applies (tests)."""
    global _configured
    with _configure_lock:
        _configured = False
    root = logging.getLogger(_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
