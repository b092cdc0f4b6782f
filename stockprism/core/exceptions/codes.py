"""Standardised error codes."""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes shared by the pipeline, web and CLI layers."""

    GENERAL_ERROR = "GENERAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # upstream
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_REJECTED = "UPSTREAM_REJECTED"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    CLIENT_ERROR = "CLIENT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"

    # normalization
    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"
    PARTIAL_RECORD_LOSS = "PARTIAL_RECORD_LOSS"

    # storage
    STORAGE_FAILURE = "STORAGE_FAILURE"


__all__ = ["ErrorCode"]
