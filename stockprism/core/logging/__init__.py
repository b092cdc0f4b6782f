"""Structured logging with trace propagation."""

from stockprism.core.logging.config import LogConfig
from stockprism.core.logging.logger import (
    JsonLineSink,
    apply_log_config,
    configure_logging,
    current_trace_id,
    get_logger,
    log_context,
    logger,
)

__all__ = [
    "JsonLineSink",
    "LogConfig",
    "apply_log_config",
    "configure_logging",
    "current_trace_id",
    "get_logger",
    "log_context",
    "logger",
]
