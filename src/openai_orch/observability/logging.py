"""
Logging - Request-scoped structured logging.

Every record emitted while the dispatcher works on a request carries that
request's id and the current attempt number. Dispatcher records also name
the ledger status they report (extra={"status": ...}).

Readable lines look like:

    WARNING [3f2a9c1e#0 RETRYING] openai_orch.dispatcher: request ... attempt 0 failed ...
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TextIO


LOG_LEVEL_ENV = "OPENAI_ORCH_LOG_LEVEL"


@dataclass(frozen=True)
class RequestLogState:
    """What the current context is working on."""
    request_id: str
    attempt: int | None = None


_current: ContextVar[RequestLogState | None] = ContextVar(
    "openai_orch_request", default=None
)


def set_request_id(rid: Any) -> None:
    """Bind a request id (or None) to the current context."""
    _current.set(RequestLogState(str(rid)) if rid else None)


def get_request_id() -> str | None:
    state = _current.get()
    return state.request_id if state else None


def set_attempt(attempt: int) -> None:
    """Record the attempt number of the bound request. No-op when unbound."""
    state = _current.get()
    if state is not None:
        _current.set(replace(state, attempt=attempt))


def get_attempt() -> int | None:
    state = _current.get()
    return state.attempt if state else None


class RequestContextFilter(logging.Filter):
    """
    Stamps request_id, attempt and status on records.

    Values passed explicitly through `extra=` win over the context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        state = _current.get()
        if getattr(record, "request_id", None) is None:
            record.request_id = state.request_id if state else None
        if getattr(record, "attempt", None) is None:
            record.attempt = state.attempt if state else None
        status = getattr(record, "status", None)
        record.status = status.value if isinstance(status, Enum) else status
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; request fields are omitted when unset."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        for key in ("request_id", "attempt", "status"):
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ReadableFormatter(logging.Formatter):
    """Compact single-line format for development."""

    def format(self, record: logging.LogRecord) -> str:
        rid = getattr(record, "request_id", None)
        tag = rid[:8] if rid else "-"
        attempt = getattr(record, "attempt", None)
        if attempt is not None:
            tag += f"#{attempt}"
        status = getattr(record, "status", None)
        if status:
            tag += f" {status}"

        line = f"{record.levelname:<7} [{tag}] {record.name}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: int | str | None = None,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Attach a single handler to the openai_orch logger tree.

    Args:
        level: Level number or name; defaults to $OPENAI_ORCH_LOG_LEVEL,
            then INFO
        json_format: Emit JSON lines instead of readable lines
        stream: Output stream (default: stderr)

    Returns:
        The configured "openai_orch" logger
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level in {LOG_LEVEL_ENV}")

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JSONFormatter() if json_format else ReadableFormatter())

    package_logger = logging.getLogger("openai_orch")
    package_logger.setLevel(level)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.propagate = False
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for an openai_orch component, e.g. get_logger("dispatcher")."""
    return logging.getLogger(f"openai_orch.{name}")


class LogContext:
    """
    Binds a request to log records for the duration of a block.

    Usage:
        with LogContext(request_id) as ctx:
            ctx.set_attempt(0)
            logger.info("starting")  # tagged with the id and attempt 0
    """

    def __init__(self, request_id: Any):
        self.request_id = request_id
        self._token = None

    def set_attempt(self, attempt: int) -> None:
        set_attempt(attempt)

    def __enter__(self) -> "LogContext":
        state = RequestLogState(str(self.request_id)) if self.request_id else None
        self._token = _current.set(state)
        return self

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _current.reset(self._token)
            self._token = None
