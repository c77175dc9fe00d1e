"""
Module: rental_kernel.logging_config
Responsibility: One JSON object per log line for everything logged under
    the ``rental_kernel`` logger namespace, with the ids of the ledger call
    in progress attached to every line.
Architecture position: Kernel > infrastructure.  Imported by every layer;
    imports nothing from the ledger.

Invariants enforced:
    - Context fields are exactly actor_id, contract_id, transaction_id and
      invoice_id.  Binding any other name is a programming error.
    - A bind is undone on exit, so nested binds restore the outer value.
    - Money and ids serialize as strings; Decimal is never converted to
      float.

Failure modes:
    - TypeError from LogContext.bind() for an unknown field name.

Audit relevance:
    LedgerService binds the acting user and the record id for each call;
    every line logged underneath (reconciliation, retries, denials) can be
    traced back to who did what.
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
from typing import Any, TextIO
from uuid import UUID

LOGGER_NAMESPACE = "rental_kernel"

_CONTEXT_FIELDS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"ledger_{name}", default=None)
    for name in ("actor_id", "contract_id", "transaction_id", "invoice_id")
}


class LogContext:
    """
    Ids of the ledger call in progress, attached to every log line.

    Contract:
        Values live in context variables, so concurrent threads and tasks
        each see their own.

    Non-goals:
        - No request or correlation ids; the HTTP layer logs those itself.
    """

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Set the given fields for the duration of the block; None is skipped."""
        unknown = sorted(set(fields) - set(_CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context field(s): {unknown}")
        tokens = [
            (_CONTEXT_FIELDS[name], _CONTEXT_FIELDS[name].set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        bound: dict[str, str] = {}
        for name, var in _CONTEXT_FIELDS.items():
            value = var.get()
            if value is not None:
                bound[name] = value
        return bound

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT_FIELDS.values():
            var.set(None)


# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """
    Formats a record as a single JSON line.

    Keys: ts, level, logger, message, the bound LogContext fields, the
    record's ``extra`` fields, and for an exception its type, message,
    ``code`` and public attributes prefixed ``exc_``.
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
            if key not in _RECORD_ATTRIBUTES and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            for key, value in vars(exc).items():
                if not key.startswith("_"):
                    payload[f"exc_{key}"] = value
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger ``rental_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``rental_kernel`` logger.

    Only the first call has an effect until reset_logging().  Records do
    not propagate to the root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.setLevel(level)
    namespace.propagate = False

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    namespace.addHandler(handler)


def reset_logging() -> None:
    """Drop the handlers configure_logging() added.  Used by the test suite."""
    global _configured
    with _lock:
        _configured = False
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.handlers.clear()
    namespace.setLevel(logging.WARNING)
