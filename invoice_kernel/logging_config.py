"""
Structured logging for the invoice packages.

Every module logs through ``get_logger("<area>.<module>")``, which hangs the
logger under the ``invoice_kernel`` namespace.  ``configure_logging()``
attaches one handler to that namespace and renders each record as a
single JSON object per line:

    {"ts": "...", "level": "INFO", "logger": "invoice_kernel.engines.totals",
     "message": "uniform_totals_completed", "invoice_id": "...", "total": "110.00"}

Request-scoped identifiers (correlation id, actor, invoice being worked
on) live in ``LogContext`` and are stamped onto every record emitted
while they are set.  When a context field and an ``extra=`` key share a
name, the context value is written.
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
from enum import Enum
from typing import Any, TextIO
from uuid import UUID

_LOGGER_PREFIX = "invoice_kernel"


class LogContext:
    """
    Request-scoped log fields backed by ContextVars.

    Safe across threads and asyncio tasks.  Unknown field names passed to
    ``bind()`` are ignored.
    """

    FIELDS = ("correlation_id", "request_id", "actor_id", "invoice_id")

    _vars: dict[str, ContextVar[str | None]] = {
        name: ContextVar(f"invoice_log_{name}", default=None) for name in FIELDS
    }

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        request_id: str | None = None,
        actor_id: str | None = None,
        invoice_id: str | None = None,
    ) -> None:
        """Set the given fields.  ``None`` leaves a field unchanged."""
        values = {
            "correlation_id": correlation_id,
            "request_id": request_id,
            "actor_id": actor_id,
            "invoice_id": invoice_id,
        }
        for name, value in values.items():
            if value is not None:
                cls._vars[name].set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        snapshot = {name: var.get() for name, var in cls._vars.items()}
        return {name: value for name, value in snapshot.items() if value is not None}

    @classmethod
    def clear(cls) -> None:
        for var in cls._vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore them."""
        tokens = [
            (cls._vars[name], cls._vars[name].set(value))
            for name, value in fields.items()
            if value is not None and name in cls._vars
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord carries; anything else on a record came from extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    return repr(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """Flatten an exception (and any structured attributes it carries)."""
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for attr, value in vars(exc).items():
        if attr.startswith("_") or attr == "code":
            continue
        fields[f"exc_{attr}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for attr, value in vars(record).items():
            if attr in _RECORD_ATTRS:
                continue
            entry.setdefault(attr, value)

        if record.exc_info and record.exc_info[1] is not None:
            entry.update(_exception_fields(record.exc_info[1]))
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger named ``invoice_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_state_lock = threading.Lock()
_configured = False


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        return resolved
    return level


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON handler to the ``invoice_kernel`` namespace.

    Only the first call has any effect until ``reset_logging()`` runs.
    ``level`` accepts a logging constant or its name (``"DEBUG"``).
    Records do not propagate to the root logger afterwards.
    """
    global _configured
    numeric_level = _resolve_level(level)
    with _state_lock:
        if _configured:
            return
        _configured = True

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    namespace = logging.getLogger(_LOGGER_PREFIX)
    namespace.setLevel(numeric_level)
    namespace.propagate = False
    namespace.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and forget configuration.  Test helper."""
    global _configured
    with _state_lock:
        _configured = False
    namespace = logging.getLogger(_LOGGER_PREFIX)
    namespace.handlers.clear()
    namespace.setLevel(logging.WARNING)
