"""Logging settings model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

# keys promoted to top-level JSON fields; everything else bound goes under "context"
RECORD_FIELDS = ("trace_id", "symbol", "error_code")


class LogConfig(BaseModel):
    """Where and how stockprism writes its log records.

    ``stream`` defaults to ``sys.stderr`` at configuration time. ``file_path``
    adds an append-only JSON lines file. With ``serialize`` off the stream sink
    uses loguru's plain text format; the file sink is always JSON.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    level: str = "INFO"
    stream: Any = None
    file_path: str | None = None
    serialize: bool = True
    catch: bool = True

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LEVELS:
            raise ValueError(f"unknown log level {value!r}, expected one of {', '.join(LEVELS)}")
        return level

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> LogConfig:
        """Build from the ``[logging]`` section of the application config."""
        values = {"level": settings.level, "file_path": settings.file, "serialize": settings.serialize}
        values.update(overrides)
        return cls(**values)


__all__ = ["LEVELS", "LogConfig", "RECORD_FIELDS"]
