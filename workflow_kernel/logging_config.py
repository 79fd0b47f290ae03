"""Structured JSON logging for the workflow kernel.

Each record is written as one JSON line: timestamp, level, logger and
message first, then the instance fields bound with ``LogContext.bind``,
then the record's ``extra`` values.  Exceptions add their type, message,
kernel error ``code`` and public attributes as ``exc_*`` fields.
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
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Instance context
# ---------------------------------------------------------------------------

CONTEXT_FIELDS = ("instance_id", "workflow_id", "actor_id", "organization_id")

_bound: ContextVar[dict[str, str]] = ContextVar("workflow_log_context", default={})


class LogContext:
    """Instance fields attached to every record logged inside ``bind``.

    Backed by a ContextVar, so threads and asyncio tasks each see their own
    binding.  The executor binds the instance, workflow, actor and
    organization around every call it makes.
    """

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_bound.get())

    @staticmethod
    def clear() -> None:
        _bound.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Bind fields for the block; the previous binding returns on exit.

        Values are stringified so UUIDs can be passed directly.  ``None``
        leaves a field as it was.

        Raises:
            TypeError: A field outside CONTEXT_FIELDS.
        """
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(unknown)}")
        merged = dict(_bound.get())
        merged.update((k, str(v)) for k, v in fields.items() if v is not None)
        token = _bound.set(merged)
        try:
            yield
        finally:
            _bound.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    """Handle UUID, datetime, Decimal and sets in log payloads; str() otherwise."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, (set, frozenset)):
            return sorted(str(v) for v in obj)
        # UUID, Decimal and anything else
        return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    fields.update(
        (f"exc_{k}", v) for k, v in vars(exc).items()
        if not k.startswith("_") and k != "code"
    )
    return fields


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
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder)


# ---------------------------------------------------------------------------
# Loggers
# ---------------------------------------------------------------------------

_ROOT = "workflow_kernel"


def get_logger(name: str) -> logging.Logger:
    """Logger ``workflow_kernel.<name>``; engines and services share the namespace."""
    return logging.getLogger(f"{_ROOT}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on the ``workflow_kernel`` logger.

    Only the first call has an effect until ``reset_logging``.  Records do
    not propagate to the root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False
    out = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    out.setFormatter(StructuredFormatter())
    root.addHandler(out)


def reset_logging() -> None:
    """Drop the handler and allow configure_logging again. For tests."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
