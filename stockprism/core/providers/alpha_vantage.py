"""
Alpha Vantage upstream client.

Issues one parameterized request per call, bounded by a timeout, and
classifies the raw response. A syntactically successful HTTP response is
classified further by inspecting the body: rate-limit notices, explicit error
messages and empty objects all arrive with status 200.

The client never retries and never touches stored state.
"""

from __future__ import annotations

import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from stockprism.core.config import ProviderConfig
from stockprism.core.exceptions import (
    EmptyResponseError,
    MalformedResponseError,
    RateLimitedError,
    UpstreamClientError,
    UpstreamError,
    UpstreamRejectedError,
    UpstreamServerError,
    UpstreamTimeoutError,
)
from stockprism.core.logging import get_logger
from stockprism.core.models import FunctionKind
from stockprism.core.monitoring import MetricsCollector, get_metrics_collector

logger = get_logger(__name__)

RawUpstreamPayload = Mapping[str, Any]

NOTICE_KEYS = ("Note", "Information")
ERROR_MESSAGE_KEY = "Error Message"
RATE_LIMIT_MARKERS = ("rate limit", "call frequency", "demo")

_APIKEY_PATTERN = re.compile(r"apikey=[^&]*")


class ResponseClass(str, Enum):
    """Classification of a raw upstream response."""

    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    MALFORMED = "malformed"
    REJECTED = "rejected"
    EMPTY = "empty"


@dataclass(frozen=True, slots=True)
class Classification:
    """Result of :func:`classify_response`."""

    kind: ResponseClass
    message: str = ""
    notice: str | None = None


def _find_notice(body: Mapping[str, Any]) -> str | None:
    # a string "Information" value is a notice; a mapping is metadata
    for key in NOTICE_KEYS:
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _mentions_rate_limit(notice: str) -> bool:
    lowered = notice.lower()
    return any(marker in lowered for marker in RATE_LIMIT_MARKERS)


def classify_response(status_code: int, body: Any) -> Classification:
    """Classify a decoded upstream response.

    ``body`` is the decoded JSON document, or ``None`` when the body could not
    be decoded.
    """
    if status_code >= 500:
        return Classification(ResponseClass.SERVER_ERROR, f"Upstream server error (HTTP {status_code})")

    if not isinstance(body, Mapping):
        if status_code >= 400:
            return Classification(ResponseClass.CLIENT_ERROR, f"Upstream request failed with status {status_code}")
        return Classification(ResponseClass.MALFORMED, "Upstream body is not a JSON object")

    notice = _find_notice(body)
    if notice and _mentions_rate_limit(notice):
        return Classification(ResponseClass.RATE_LIMITED, notice, notice)

    error_message = body.get(ERROR_MESSAGE_KEY)
    if status_code >= 400:
        message = str(error_message) if error_message else f"Upstream request failed with status {status_code}"
        return Classification(ResponseClass.CLIENT_ERROR, message, notice)

    if error_message:
        return Classification(ResponseClass.REJECTED, str(error_message), notice)

    if not body:
        return Classification(ResponseClass.EMPTY, "Empty response from Alpha Vantage API", notice)

    return Classification(ResponseClass.SUCCESS, "", notice)


_ERRORS: dict[ResponseClass, type[UpstreamError]] = {
    ResponseClass.RATE_LIMITED: RateLimitedError,
    ResponseClass.CLIENT_ERROR: UpstreamClientError,
    ResponseClass.SERVER_ERROR: UpstreamServerError,
    ResponseClass.MALFORMED: MalformedResponseError,
    ResponseClass.REJECTED: UpstreamRejectedError,
    ResponseClass.EMPTY: EmptyResponseError,
}


def mask_api_key(url: str) -> str:
    """Hide the api key in a request URL before logging it."""
    return _APIKEY_PATTERN.sub("apikey=***", url)


class AlphaVantageClient:
    """Async client for the Alpha Vantage time-series API."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """Initialise the client.

        Raises:
            ConfigError: when no usable api key is configured.
        """
        self._api_key = config.require_api_key()
        self.config = config
        self._transport = transport
        self._metrics = metrics or get_metrics_collector()
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> AlphaVantageClient:
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                headers={"User-Agent": self.config.user_agent, "Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def build_params(self, function: FunctionKind, symbol: str, params: Mapping[str, str] | None = None) -> dict[str, str]:
        query = {
            "function": function.value,
            "symbol": symbol.strip().upper(),
            "apikey": self._api_key,
            "datatype": "json",
        }
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = str(value).lower()
        return query

    async def fetch(
        self,
        function: FunctionKind,
        symbol: str,
        params: Mapping[str, str] | None = None,
    ) -> RawUpstreamPayload:
        """Fetch one raw payload.

        Raises:
            UpstreamTimeoutError: the request exceeded the configured timeout.
            RateLimitedError: the body carries a rate-limit notice.
            UpstreamClientError: HTTP 4xx.
            UpstreamServerError: HTTP 5xx or a transport failure.
            UpstreamRejectedError: the body carries an ``Error Message``.
            EmptyResponseError: the body is an empty object.
            MalformedResponseError: the body is not a JSON object.
        """
        client = self._ensure_client()
        query = self.build_params(function, symbol, params)
        request_symbol = query["symbol"]

        logger.info(f"Fetching {function.value} for {request_symbol}")
        started = time.perf_counter()
        try:
            response = await client.get(self.config.base_url, params=query)
        except httpx.TimeoutException as exc:
            self._metrics.observe_upstream(function.value, "timeout", time.perf_counter() - started)
            logger.error(f"Timed out after {self.config.timeout}s fetching {function.value} for {request_symbol}")
            raise UpstreamTimeoutError(
                f"Alpha Vantage did not respond within {self.config.timeout} seconds",
                function=function.value,
                symbol=request_symbol,
            ) from exc
        except httpx.HTTPError as exc:
            self._metrics.observe_upstream(function.value, ResponseClass.SERVER_ERROR.value, time.perf_counter() - started)
            logger.error(f"No response received from Alpha Vantage: {exc}")
            raise UpstreamServerError(
                f"No response received from Alpha Vantage: {exc}",
                function=function.value,
                symbol=request_symbol,
            ) from exc
        elapsed = time.perf_counter() - started

        logger.debug(f"API Request: {mask_api_key(str(response.request.url))}")
        logger.debug(f"API Response Status: {response.status_code}")
        logger.debug(f"API Response Data (first 500 chars): {response.text[:500]}")

        try:
            body: Any = response.json()
        except ValueError:
            body = None

        classification = classify_response(response.status_code, body)
        self._metrics.observe_upstream(function.value, classification.kind.value, elapsed)

        if classification.notice and classification.kind is not ResponseClass.RATE_LIMITED:
            logger.warning(f"Alpha Vantage API notice: {classification.notice}")

        if classification.kind is ResponseClass.SUCCESS:
            return body

        error_cls = _ERRORS[classification.kind]
        logger.bind(symbol=request_symbol, error_code=error_cls.default_code.value).warning(
            f"{function.value} for {request_symbol} classified as {classification.kind.value}: {classification.message}"
        )
        raise error_cls(
            classification.message,
            function=function.value,
            symbol=request_symbol,
            status_code=response.status_code,
        )


__all__ = [
    "AlphaVantageClient",
    "Classification",
    "RawUpstreamPayload",
    "ResponseClass",
    "classify_response",
    "mask_api_key",
]
