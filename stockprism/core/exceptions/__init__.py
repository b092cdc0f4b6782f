"""Exception handling module."""

from stockprism.core.exceptions.base import (
    ConfigError,
    EmptyResponseError,
    MalformedResponseError,
    PartialRecordLoss,
    RateLimitedError,
    SchemaMismatchError,
    StockPrismError,
    StorageFailureError,
    UpstreamClientError,
    UpstreamError,
    UpstreamRejectedError,
    UpstreamServerError,
    UpstreamTimeoutError,
)
from stockprism.core.exceptions.codes import ErrorCode

__all__ = [
    "StockPrismError",
    "ConfigError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "RateLimitedError",
    "UpstreamRejectedError",
    "EmptyResponseError",
    "UpstreamClientError",
    "UpstreamServerError",
    "MalformedResponseError",
    "SchemaMismatchError",
    "PartialRecordLoss",
    "StorageFailureError",
    "ErrorCode",
]
