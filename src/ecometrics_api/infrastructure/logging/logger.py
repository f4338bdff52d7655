# src/ecometrics_api/infrastructure/logging/logger.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Structured JSON logging utilities.

This module exposes an idempotent root configurator and a per-module logger
factory that produce one JSON object per log line.

Features:
    * Stable keys: ``ts``, ``level``, ``logger``, ``message``.
    * Enrichment with ``request_id`` and ``trace_id`` from contextvars, falling
      back to the current OpenTelemetry span for the trace id.
    * Structured fields passed as ``extra={"extra": {...}}`` are merged into
      the payload (the version store logs ``company_id``/``domain``/``version``
      this way).

Typical usage:
    configure_root_logging()
    log = get_json_logger(__name__)
    log.info("metric_record.imported", extra={"extra": {"version": 2}})
"""

from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from opentelemetry import trace as otel_trace

__all__ = [
    "configure_root_logging",
    "get_json_logger",
    "set_request_context",
    "get_request_id",
    "get_trace_id",
    "JsonFormatter",
]

_REQUEST_ID_ENV_KEY = "REQUEST_ID"

# Per-request correlation context (task-local via contextvars).
_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("ecometrics_request_id", default=None)
_TRACE_ID_CTX: ContextVar[str | None] = ContextVar("ecometrics_trace_id", default=None)


def set_request_context(*, request_id: str | None = None, trace_id: str | None = None) -> None:
    """Set correlation identifiers on the current context.

    Args:
        request_id: Correlation identifier of the calling request, if any.
        trace_id: Distributed tracing identifier (hex string), if any.

    Notes:
        Additive: passing only one argument leaves the other unchanged.
    """
    if request_id is not None:
        _REQUEST_ID_CTX.set(request_id)
    if trace_id is not None:
        _TRACE_ID_CTX.set(trace_id)


def get_request_id() -> str | None:
    """Return the current request id from contextvars, if any."""
    return _REQUEST_ID_CTX.get(None)


def get_trace_id() -> str | None:
    """Return the current trace id from contextvars, if any."""
    return _TRACE_ID_CTX.get(None)


def _derive_otel_trace_id() -> str | None:
    """Return the hex trace id of the current OpenTelemetry span, if any."""
    ctx = otel_trace.get_current_span().get_span_context()
    trace_id = getattr(ctx, "trace_id", 0)
    # OTEL uses 0 as the "invalid" trace id sentinel.
    if not trace_id:
        return None
    return f"{int(trace_id):032x}"


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal | UUID | datetime):
        return str(value) if not isinstance(value, datetime) else value.isoformat()
    return repr(value)


class JsonFormatter(logging.Formatter):
    """JSON log formatter emitting stable keys and optional extras."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON object.

        Args:
            record: Logging record.

        Returns:
            JSON-encoded log line.
        """
        payload: dict[str, Any] = {
            "ts": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid: str | None = (
            getattr(record, "request_id", None)
            or _REQUEST_ID_CTX.get(None)
            or os.getenv(_REQUEST_ID_ENV_KEY)
        )
        if rid:
            payload["request_id"] = rid

        tid: str | None = getattr(record, "trace_id", None) or _TRACE_ID_CTX.get(None)
        if not tid:
            tid = _derive_otel_trace_id()
        if tid:
            payload["trace_id"] = tid

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            if exc_type is not None:
                payload["exc_type"] = exc_type.__name__
            if exc_value is not None:
                payload["exc_message"] = str(exc_value)

        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def configure_root_logging(level: str | int | None = None) -> None:
    """Initialize the root logger with a JSON stream handler (idempotent).

    Args:
        level: Logging level or level name. If ``None``, use env ``LOG_LEVEL`` or ``INFO``.
    """
    root = logging.getLogger()

    env_level = os.getenv("LOG_LEVEL")
    resolved: int | str = (
        level if level is not None else (env_level.upper() if env_level else "INFO")
    )
    root.setLevel(resolved)

    if any(isinstance(h.formatter, JsonFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return a module-specific logger backed by the JSON root handler.

    This does *not* configure the root logger. Call
    :func:`configure_root_logging` once at startup.

    Args:
        name: Logger name, typically ``__name__`` of the caller.

    Returns:
        Configured logger.
    """
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
