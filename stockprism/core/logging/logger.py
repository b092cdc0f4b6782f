"""
Structured logging on loguru.

Every record carries a trace id. Web requests open a :func:`log_context` with
their request id, so all records written while serving one request (client,
normalizer, reconciliation) share it. Values bound through ``log_context`` or
``logger.bind`` end up in the JSON line; ``symbol`` and ``error_code`` are
promoted to top-level fields.
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Iterator
from uuid import uuid4

from loguru import logger

from stockprism.core.logging.config import RECORD_FIELDS, LogConfig

if TYPE_CHECKING:
    from loguru import Logger, Message, Record

_trace_id: ContextVar[str | None] = ContextVar("stockprism_trace_id", default=None)
_bound: ContextVar[dict[str, Any]] = ContextVar("stockprism_log_fields", default={})

TEXT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[trace_id]} | {message}"


def _inject_context(record: Record) -> None:
    extra = record["extra"]
    if not extra.get("trace_id"):
        extra["trace_id"] = current_trace_id()
    for key, value in _bound.get().items():
        extra.setdefault(key, value)
    for key in RECORD_FIELDS:
        extra.setdefault(key, None)


def to_json_line(record: Record) -> str:
    """Render one loguru record as a JSON object on a single line."""
    extra = record["extra"]
    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
    }
    payload.update({key: extra.get(key) for key in RECORD_FIELDS})
    context = {key: value for key, value in extra.items() if key not in RECORD_FIELDS}
    if context:
        payload["context"] = context
    if record["exception"] is not None:
        payload["exception"] = str(record["exception"])
    return json.dumps(payload, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class JsonLineSink:
    """Writes JSON lines to an open text stream, or appends them to a file path."""

    def __init__(self, target: IO[str] | str) -> None:
        self._stream: IO[str] | None = None
        self._path: Path | None = None
        if isinstance(target, str):
            self._path = Path(target).expanduser()
            self._path.parent.mkdir(parents=True, exist_ok=True)
        else:
            self._stream = target

    def __call__(self, message: Message) -> None:
        line = to_json_line(message.record) + "\n"
        if self._stream is not None:
            self._stream.write(line)
            self._stream.flush()
            return
        with open(self._path, "a", encoding="utf-8") as handle:
            handle.write(line)


def apply_log_config(config: LogConfig) -> None:
    """Replace all loguru handlers according to ``config``."""
    stream = config.stream or sys.stderr
    handlers: list[dict[str, Any]] = []
    if config.serialize:
        handlers.append({"sink": JsonLineSink(stream), "level": config.level, "catch": config.catch})
    else:
        handlers.append({"sink": stream, "level": config.level, "catch": config.catch, "format": TEXT_FORMAT})
    if config.file_path:
        handlers.append({"sink": JsonLineSink(config.file_path), "level": config.level, "catch": config.catch})
    logger.configure(handlers=handlers, patcher=_inject_context)


def configure_logging(level: str = "INFO", **options: Any) -> None:
    """Configure logging; ``options`` are :class:`LogConfig` fields."""
    apply_log_config(LogConfig(level=level, **options))


def get_logger(name: str | None = None) -> Logger:
    """Module logger; ``name`` is recorded as ``logger_name`` in the context."""
    return logger.bind(logger_name=name) if name else logger


@contextmanager
def log_context(*, trace_id: str | None = None, **fields: Any) -> Iterator[str]:
    """Scope a trace id and extra fields to every record logged inside the block.

    Without an explicit ``trace_id`` the enclosing one is reused, or a new one
    is generated.
    """
    active = trace_id or _trace_id.get() or uuid4().hex
    trace_token = _trace_id.set(active)
    fields_token = _bound.set({**_bound.get(), **fields})
    try:
        yield active
    finally:
        _bound.reset(fields_token)
        _trace_id.reset(trace_token)


def current_trace_id() -> str:
    """Active trace id, created for the current context when absent."""
    active = _trace_id.get()
    if active is None:
        active = uuid4().hex
        _trace_id.set(active)
    return active


configure_logging()


__all__ = [
    "JsonLineSink",
    "apply_log_config",
    "configure_logging",
    "current_trace_id",
    "get_logger",
    "log_context",
    "logger",
    "to_json_line",
]
