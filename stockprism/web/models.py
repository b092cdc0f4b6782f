"""
Web API models.

Request parameters are validated by FastAPI; these are the response envelopes.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(UTC)


class APIResponse(BaseModel):
    """Standard response envelope."""

    success: bool = Field(..., description="Whether the request succeeded")
    data: Any | None = Field(None, description="Response payload")
    message: str | None = Field(None, description="Human readable message")
    timestamp: datetime = Field(default_factory=_now, description="Response timestamp")
    request_id: str | None = Field(None, description="Request id used for tracing")


class ErrorResponse(BaseModel):
    """Error response envelope."""

    success: bool = Field(False, description="Always false")
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Error details")
    timestamp: datetime = Field(default_factory=_now, description="Error timestamp")
    request_id: str | None = Field(None, description="Request id used for tracing")


class HealthStatus(BaseModel):
    """Health check payload."""

    status: str = Field(..., description="Overall status")
    version: str = Field(..., description="Service version")
    uptime: float = Field(..., description="Uptime in seconds")
    components: dict[str, str] = Field(..., description="Per-component status")
