"""
Structured JSON logging for the billing kernel.

Every logger lives under the ``billing_kernel`` namespace and writes one
JSON object per line.  Request-scoped identifiers (the engagement or
invoice being worked on) travel in ``LogContext`` and are merged into each
record, so services only pass event-specific fields in ``extra``.
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
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "billing_kernel"

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "engagement_id",
    "invoice_id",
    "trace_id",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"billing_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """Context-local log fields, safe across threads and asyncio tasks."""

    FIELDS = _CONTEXT_FIELDS

    @classmethod
    def set(
        cls,
        *,
        correlation_id: Any = None,
        actor_id: Any = None,
        engagement_id: Any = None,
        invoice_id: Any = None,
        trace_id: Any = None,
    ) -> None:
        """Set context fields.  None leaves a field unchanged."""
        for name, val in (
            ("correlation_id", correlation_id),
            ("actor_id", actor_id),
            ("engagement_id", engagement_id),
            ("invoice_id", invoice_id),
            ("trace_id", trace_id),
        ):
            if val is not None:
                _context_vars[name].set(str(val))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Non-empty context fields."""
        return {
            name: var.get() for name, var in _context_vars.items() if var.get() is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: Any) -> "_BoundContext":
        """
        Set fields for the duration of a ``with`` block.

        Unknown names and None values are ignored; previous values are
        restored on exit.
        """
        return _BoundContext(fields)


class _BoundContext:
    def __init__(self, fields: dict[str, Any]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> type[LogContext]:
        for name, val in self._fields.items():
            var = _context_vars.get(name)
            if var is not None and val is not None:
                self._tokens.append((var, var.set(str(val))))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: ``ts``, ``level``, ``logger``, ``message``, the LogContext
    fields, every ``extra`` field, and for exceptions ``exc_type``,
    ``exc_message``, ``exc_code`` plus each public attribute of the
    exception as ``exc_<name>``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        payload.update(
            (key, val)
            for key, val in vars(record).items()
            if key not in _STDLIB_KEYS and key not in payload
        )

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            for key, val in vars(exc).items():
                if not key.startswith("_") and key != "code":
                    payload[f"exc_{key}"] = val
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger ``billing_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``billing_kernel`` logger.

    Only the first call has any effect until ``reset_logging()``.  Records
    do not propagate to the root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging()`` again.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
