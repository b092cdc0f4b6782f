"""Pytest configuration and shared fixtures for the stockprism test suite."""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from stockprism.core.config import ProviderConfig
from stockprism.core.data.storage import DuckDBSeriesStore
from stockprism.core.monitoring import MetricsCollector, configure_metrics_collector
from stockprism.core.providers import AlphaVantageClient
from stockprism.core.services import FallbackSupplier, StockDataService

INTRADAY_PAYLOAD: dict[str, Any] = {
    "Meta Data": {
        "1. Information": "Intraday (5min) open, high, low, close prices and volume",
        "2. Symbol": "IBM",
        "3. Last Refreshed": "2024-01-02 16:00:00",
        "4. Interval": "5min",
        "5. Output Size": "Compact",
        "6. Time Zone": "US/Eastern",
    },
    "Time Series (5min)": {
        "2024-01-02 16:00:00": {
            "1. open": "161.5000",
            "2. high": "161.7500",
            "3. low": "161.4000",
            "4. close": "161.6900",
            "5. volume": "120345",
        },
        "2024-01-02 15:55:00": {
            "1. open": "161.2000",
            "2. high": "161.5500",
            "3. low": "161.1000",
            "4. close": "161.5000",
            "5. volume": "98765",
        },
        "2024-01-01 15:50:00": {
            "1. open": "160.9000",
            "2. high": "161.2500",
            "3. low": "160.8000",
            "4. close": "161.2000",
            "5. volume": "87654",
        },
    },
}

DAILY_PAYLOAD: dict[str, Any] = {
    "Meta Data": {
        "1. Information": "Daily Prices (open, high, low, close) and Volumes",
        "2. Symbol": "IBM",
        "3. Last Refreshed": "2024-01-03",
        "4. Output Size": "Compact",
        "5. Time Zone": "US/Eastern",
    },
    "Time Series (Daily)": {
        "2024-01-03": {
            "1. open": "160.00",
            "2. high": "162.00",
            "3. low": "159.50",
            "4. close": "161.00",
            "5. volume": "4000000",
        },
        "2024-01-02": {
            "1. open": "158.00",
            "2. high": "160.50",
            "3. low": "157.75",
            "4. close": "160.00",
            "5. volume": "3500000",
        },
    },
}

WEEKLY_PAYLOAD: dict[str, Any] = {
    "Meta Data": {
        "1. Information": "Weekly Prices (open, high, low, close) and Volumes",
        "2. Symbol": "IBM",
        "3. Last Refreshed": "2024-01-05",
        "4. Time Zone": "US/Eastern",
    },
    "Weekly Time Series": {
        "2024-01-05": {"1. open": "158.0", "2. high": "163.0", "3. low": "157.0", "4. close": "162.0", "5. volume": "20000000"},
        "2023-12-29": {"1. open": "155.0", "2. high": "159.0", "3. low": "154.0", "4. close": "158.0", "5. volume": "18000000"},
    },
}

MONTHLY_PAYLOAD: dict[str, Any] = {
    "Meta Data": {
        "1. Information": "Monthly Prices (open, high, low, close) and Volumes",
        "2. Symbol": "IBM",
        "3. Last Refreshed": "2024-01-31",
        "4. Time Zone": "US/Eastern",
    },
    "Monthly Time Series": {
        "2024-01-31": {"1. open": "158.0", "2. high": "170.0", "3. low": "155.0", "4. close": "168.0", "5. volume": "90000000"},
    },
}


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--stockprism-run-integration",
        action="store_true",
        default=False,
        help="Run stockprism integration tests that require network access.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: marks tests requiring network or external services")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--stockprism-run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="integration tests require --stockprism-run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def metrics() -> MetricsCollector:
    """Fresh metrics registry per test."""
    collector = MetricsCollector()
    configure_metrics_collector(collector)
    yield collector
    configure_metrics_collector(None)


@pytest.fixture
def intraday_payload() -> dict[str, Any]:
    return copy.deepcopy(INTRADAY_PAYLOAD)


@pytest.fixture
def daily_payload() -> dict[str, Any]:
    return copy.deepcopy(DAILY_PAYLOAD)


@pytest.fixture
def weekly_payload() -> dict[str, Any]:
    return copy.deepcopy(WEEKLY_PAYLOAD)


@pytest.fixture
def monthly_payload() -> dict[str, Any]:
    return copy.deepcopy(MONTHLY_PAYLOAD)


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(api_key="TESTKEY123", base_url="https://example.test/query", timeout=2.0)


@pytest.fixture
def store() -> DuckDBSeriesStore:
    series_store = DuckDBSeriesStore(":memory:")
    yield series_store
    series_store.close()


Responder = Callable[[httpx.Request], httpx.Response]


def json_responder(body: Any, status_code: int = 200) -> Responder:
    """Transport handler answering every request with ``body``."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    return handler


@pytest.fixture
def make_client(provider_config: ProviderConfig, metrics: MetricsCollector) -> Callable[[Responder], AlphaVantageClient]:
    def factory(handler: Responder) -> AlphaVantageClient:
        return AlphaVantageClient(provider_config, transport=httpx.MockTransport(handler), metrics=metrics)

    return factory


@pytest.fixture
def make_service(
    make_client: Callable[[Responder], AlphaVantageClient],
    store: DuckDBSeriesStore,
    metrics: MetricsCollector,
) -> Callable[[Responder], StockDataService]:
    def factory(handler: Responder) -> StockDataService:
        return StockDataService(
            make_client(handler),
            store,
            fallback=FallbackSupplier(points=10),
            metrics=metrics,
        )

    return factory


@pytest.fixture
def respond_json() -> Callable[..., Responder]:
    return json_responder
