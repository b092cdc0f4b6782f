"""Tests for the exception hierarchy."""

import pytest

from stockprism.core.exceptions import (
    ConfigError,
    EmptyResponseError,
    ErrorCode,
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


class TestStockPrismError:
    """Test the base error."""

    def test_defaults(self):
        error = StockPrismError("boom")

        assert str(error) == "boom"
        assert error.error_code is ErrorCode.GENERAL_ERROR
        assert error.details == {}

    def test_to_payload(self):
        error = StockPrismError("boom", ErrorCode.SERVER_ERROR, {"attempt": 2})

        assert error.to_payload() == {"code": "SERVER_ERROR", "message": "boom", "details": {"attempt": 2}}


@pytest.mark.parametrize(
    ("error_type", "code"),
    [
        (UpstreamTimeoutError, ErrorCode.UPSTREAM_TIMEOUT),
        (RateLimitedError, ErrorCode.RATE_LIMITED),
        (UpstreamRejectedError, ErrorCode.UPSTREAM_REJECTED),
        (EmptyResponseError, ErrorCode.EMPTY_RESPONSE),
        (UpstreamClientError, ErrorCode.CLIENT_ERROR),
        (UpstreamServerError, ErrorCode.SERVER_ERROR),
        (MalformedResponseError, ErrorCode.MALFORMED_RESPONSE),
    ],
)
def test_upstream_error_codes(error_type, code):
    error = error_type("failed", function="TIME_SERIES_DAILY", symbol="IBM", status_code=500)

    assert isinstance(error, UpstreamError)
    assert error.error_code is code
    assert error.details == {"function": "TIME_SERIES_DAILY", "symbol": "IBM", "status_code": 500}


def test_upstream_error_omits_unknown_details():
    assert UpstreamTimeoutError("late").details == {}


def test_config_error_records_setting():
    error = ConfigError("missing key", setting="providers.api_key")

    assert error.error_code is ErrorCode.CONFIGURATION_ERROR
    assert error.to_payload()["details"] == {"setting": "providers.api_key"}


def test_schema_mismatch_lists_keys():
    error = SchemaMismatchError("no meta", available_keys=["Note"])

    assert error.error_code is ErrorCode.SCHEMA_MISMATCH
    assert error.available_keys == ["Note"]
    assert error.details["available_keys"] == ["Note"]


def test_partial_record_loss_summary():
    loss = PartialRecordLoss("IBM", ["a", "b"], 10)

    assert loss.message == "Dropped 2 of 10 entries for IBM"
    assert loss.details["skipped"] == 2
    assert loss.details["total"] == 10


def test_storage_failure_records_operation():
    error = StorageFailureError("disk full", operation="upsert")

    assert error.error_code is ErrorCode.STORAGE_FAILURE
    assert error.operation == "upsert"
    assert error.details == {"operation": "upsert"}
