"""Upstream data providers."""

from stockprism.core.providers.alpha_vantage import (
    AlphaVantageClient,
    Classification,
    RawUpstreamPayload,
    ResponseClass,
    classify_response,
    mask_api_key,
)

__all__ = [
    "AlphaVantageClient",
    "Classification",
    "RawUpstreamPayload",
    "ResponseClass",
    "classify_response",
    "mask_api_key",
]
