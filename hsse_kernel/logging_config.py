"""
Structured JSON logging for the HSSE kernel.

Every logger lives under the ``hsse_kernel`` namespace and writes one JSON
object per line.  Request-scoped fields (correlation id, tenant, actor,
event, operation) are carried in a ``ContextVar`` so that a single
orchestrator call stamps every record it produces, including records from
kernel services that never see the caller's context.

Usage::

    logger = get_logger("services.lifecycle")
    with LogContext.bind(correlation_id=ctx.correlation_id, operation="self_close"):
        logger.info("transition_applied", extra={"to_state": "closed"})
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
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from typing import IO, Any
from uuid import UUID

NAMESPACE = "hsse_kernel"


class LogContext:
    """Request-scoped log fields, safe across threads and async tasks."""

    FIELDS = ("correlation_id", "tenant_id", "actor_id", "event_id", "operation")

    _fields: ContextVar[Mapping[str, str]] = ContextVar("hsse_log_context", default={})

    @classmethod
    def _merged(cls, values: Mapping[str, Any]) -> dict[str, str]:
        merged = dict(cls._fields.get())
        for name, value in values.items():
            if name in cls.FIELDS and value is not None:
                merged[name] = str(value)
        return merged

    @classmethod
    def set(cls, **values: Any) -> None:
        """Update the known fields that are not None; others are ignored."""
        cls._fields.set(cls._merged(values))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(cls._fields.get())

    @classmethod
    def clear(cls) -> None:
        cls._fields.set({})

    @classmethod
    @contextmanager
    def bind(cls, **values: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore."""
        token = cls._fields.set(cls._merged(values))
        try:
            yield cls
        finally:
            cls._fields.reset(token)


# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON line per record: core fields, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # HsseKernelError subclasses keep their structured data as attributes
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``hsse_kernel.<name>``."""
    return logging.getLogger(f"{NAMESPACE}.{name}")


def _is_structured(handler: logging.Handler) -> bool:
    return getattr(handler, "_hsse_structured", False)


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on the ``hsse_kernel`` logger once.

    Later calls are no-ops until ``reset_logging`` removes the handler.
    """
    root = logging.getLogger(NAMESPACE)
    if any(_is_structured(h) for h in root.handlers):
        return

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    handler._hsse_structured = True
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Remove every handler and fall back to WARNING. Tests only."""
    root = logging.getLogger(NAMESPACE)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)
