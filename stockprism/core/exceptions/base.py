"""Core exception hierarchy."""

from __future__ import annotations

from typing import Any

from stockprism.core.exceptions.codes import ErrorCode


class StockPrismError(Exception):
    """Base exception for all stockprism errors."""

    default_code: ErrorCode = ErrorCode.GENERAL_ERROR

    def __init__(
        self,
        message: str,
        error_code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialise the error.

        Args:
            message: human readable message
            error_code: standardised error code, defaults to the class code
            details: extra context that is safe to return to callers
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Return a serializable payload representing the error."""

        return {
            "code": self.error_code.value,
            "message": self.message,
            "details": dict(self.details),
        }


class ConfigError(StockPrismError):
    """Required configuration is missing or unusable."""

    default_code = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, message: str, setting: str | None = None, details: dict[str, Any] | None = None):
        super_details = details or {}
        if setting:
            super_details["setting"] = setting
        super().__init__(message, details=super_details)
        self.setting = setting


class UpstreamError(StockPrismError):
    """Base class for classified upstream provider failures."""

    default_code = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        message: str,
        function: str | None = None,
        symbol: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if function:
            super_details["function"] = function
        if symbol:
            super_details["symbol"] = symbol
        if status_code is not None:
            super_details["status_code"] = status_code
        super().__init__(message, details=super_details)
        self.function = function
        self.symbol = symbol
        self.status_code = status_code


class UpstreamTimeoutError(UpstreamError):
    """The provider did not answer within the configured timeout."""

    default_code = ErrorCode.UPSTREAM_TIMEOUT


class RateLimitedError(UpstreamError):
    """The provider answered with a rate-limit notice."""

    default_code = ErrorCode.RATE_LIMITED


class UpstreamRejectedError(UpstreamError):
    """The provider answered with an explicit error message."""

    default_code = ErrorCode.UPSTREAM_REJECTED


class EmptyResponseError(UpstreamError):
    """The provider answered with an empty JSON object."""

    default_code = ErrorCode.EMPTY_RESPONSE


class UpstreamClientError(UpstreamError):
    """The provider answered with a 4xx status."""

    default_code = ErrorCode.CLIENT_ERROR


class UpstreamServerError(UpstreamError):
    """The provider answered with a 5xx status or the transport failed."""

    default_code = ErrorCode.SERVER_ERROR


class MalformedResponseError(UpstreamError):
    """The provider body is not a JSON object."""

    default_code = ErrorCode.MALFORMED_RESPONSE


class SchemaMismatchError(StockPrismError):
    """No metadata or time-series section could be located in a payload."""

    default_code = ErrorCode.SCHEMA_MISMATCH

    def __init__(
        self,
        message: str,
        available_keys: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if available_keys is not None:
            super_details["available_keys"] = available_keys
        super().__init__(message, details=super_details)
        self.available_keys = available_keys or []


class PartialRecordLoss(StockPrismError):
    """Non-fatal: a batch was normalized with some entries dropped.

    Returned as a value alongside the batch, never raised by the pipeline.
    """

    default_code = ErrorCode.PARTIAL_RECORD_LOSS

    def __init__(self, symbol: str, skipped_keys: list[str], total: int):
        message = f"Dropped {len(skipped_keys)} of {total} entries for {symbol}"
        super().__init__(
            message,
            details={"symbol": symbol, "skipped": len(skipped_keys), "total": total, "skipped_keys": skipped_keys[:20]},
        )
        self.symbol = symbol
        self.skipped_keys = skipped_keys
        self.total = total


class StorageFailureError(StockPrismError):
    """The persistence layer failed to read or write a record."""

    default_code = ErrorCode.STORAGE_FAILURE

    def __init__(self, message: str, operation: str | None = None, details: dict[str, Any] | None = None):
        super_details = details or {}
        if operation:
            super_details["operation"] = operation
        super().__init__(message, details=super_details)
        self.operation = operation
