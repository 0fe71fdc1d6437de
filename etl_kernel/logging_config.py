"""
Structured JSON logging for the customer ETL pipeline.

Every record is one JSON line carrying the run-scoped fields currently
bound in ``LogContext`` (job, run, step, chunk).  The chunk engine binds
them; the controller copies them onto its worker thread.

Usage::

    logger = get_logger("batch.chunk_engine")
    with LogContext.bind(run_id=run.run_id, chunk_index=0):
        logger.info("chunk_committed", extra={"read": 100, "written": 97})
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
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Iterator

_LOGGER_PREFIX = "etl_kernel"

# ---------------------------------------------------------------------------
# Run-scoped context
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("job_name", "run_id", "step_id", "chunk_index")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"etl_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """Context-local job/run/step/chunk fields added to every record.

    Values are stored as strings.  Unknown field names are ignored so
    callers can pass through a snapshot from ``get_all()`` unchanged.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Set fields for the current context; ``None`` values are skipped."""
        for name, value in fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                var.set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        values = {name: var.get() for name, var in _context_vars.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block, then restore them."""
        tokens = []
        for name, value in fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                tokens.append((var, var.set(str(value))))
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_RESERVED_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    EtlError attributes (``line_number``, ``run_id``, ``attempts`` ...)
    are copied as ``exc_<name>`` next to ``exc_code``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_KEYS:
                payload.setdefault(key, value)

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            for key, value in vars(exc).items():
                if not key.startswith("_"):
                    payload[f"exc_{key}"] = value
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``etl_kernel`` namespace (``etl_kernel.<name>``)."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``etl_kernel`` logger once per process.

    Later calls are no-ops until ``reset_logging()``.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False

    target = handler or logging.StreamHandler(sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Remove handlers and allow reconfiguration. Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
