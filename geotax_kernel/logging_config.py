"""
Structured JSON logging for geotax.

Every record is one JSON line carrying the timestamp, level, logger name,
message, the bound run fields (see ``LogContext``) and any ``extra``
values.  Import workers run inside a copy of the submitting thread's
context, so chunk logs carry the run's correlation_id and run_id.

Usage::

    logger = get_logger("ingestion.import_service")
    with LogContext.bind(run_id=str(import_id)):
        logger.info("chunk_committed", extra={"row_count": 500})
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
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import IO, Any
from uuid import UUID

ROOT_LOGGER_NAME = "geotax"

# Fields a run may bind; anything else is a programming error.
RUN_FIELDS = ("correlation_id", "run_id", "chunk_index", "trace_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_run_fields: ContextVar[Mapping[str, str]] = ContextVar("geotax_run_fields", default=_EMPTY)


def _merged(current: Mapping[str, str], updates: Mapping[str, Any]) -> Mapping[str, str]:
    unknown = set(updates) - set(RUN_FIELDS)
    if unknown:
        raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
    fields = dict(current)
    fields.update((k, str(v)) for k, v in updates.items() if v is not None)
    return MappingProxyType(fields)


class LogContext:
    """Run-scoped log fields held in a single context variable."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Bind fields for the rest of the current context; None leaves a field as is."""
        _run_fields.set(_merged(_run_fields.get(), fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_run_fields.get())

    @staticmethod
    def clear() -> None:
        _run_fields.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Bind fields for the duration of a ``with`` block."""
        token = _run_fields.set(_merged(_run_fields.get(), fields))
        try:
            yield
        finally:
            _run_fields.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return repr(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """exc_* fields; GeoTaxError subclasses add their code and attributes."""
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_run_fields.get(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under ``geotax.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_setup_lock = threading.Lock()
_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``geotax`` logger.

    Only the first call has any effect until ``reset_logging()``.  The
    ``geotax`` logger does not propagate, so host applications see geotax
    records only through this handler.
    """
    global _handler
    with _setup_lock:
        if _handler is not None:
            return
        _handler = handler or logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(StructuredFormatter())
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_handler)


def reset_logging() -> None:
    """Detach every handler from the ``geotax`` logger (tests only)."""
    global _handler
    with _setup_lock:
        _handler = None
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
