"""Tests for the stockprism command line interface."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from stockprism.cli import app
from stockprism.cli.utils import (
    CONFIG_EXIT_CODE,
    NOT_FOUND_EXIT_CODE,
    UPSTREAM_EXIT_CODE,
    VALIDATION_EXIT_CODE,
)
from stockprism.core.data.storage import DuckDBSeriesStore
from stockprism.core.exceptions import ConfigError
from stockprism.core.logging import configure_logging
from stockprism.core.services import FallbackSupplier, StockDataService
from stockprism.web import main as web_main

RATE_LIMIT_NOTE = {"Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    configure_logging()


@pytest.fixture
def use_upstream(monkeypatch, make_client, metrics, tmp_path):
    """Route CLI commands to a service answering with ``handler``."""
    db_path = str(tmp_path / "cli.duckdb")

    def install(handler) -> None:
        def factory() -> StockDataService:
            return StockDataService(
                make_client(handler),
                DuckDBSeriesStore(db_path),
                fallback=FallbackSupplier(points=10),
                metrics=metrics,
            )

        monkeypatch.setattr("stockprism.cli.series.get_stock_service", factory)

    return install


def _rows(text: str, key: str) -> list[dict]:
    rows = []
    for line in text.splitlines():
        if line.startswith("{"):
            record = json.loads(line)
            # structured log lines may share the captured stream
            if key in record and "level" not in record:
                rows.append(record)
    return rows


class TestSeriesCommands:
    """Test upstream-backed commands."""

    def test_daily_jsonl(self, runner, use_upstream, respond_json, daily_payload):
        use_upstream(respond_json(daily_payload))

        result = runner.invoke(app, ["--format", "jsonl", "daily", "IBM"])

        assert result.exit_code == 0
        rows = _rows(result.stdout, "date")
        assert [row["date"] for row in rows] == ["2024-01-03", "2024-01-02"]
        assert rows[0]["close"] == 161.0
        assert rows[0]["adjustedClose"] == 161.0

    def test_intraday_jsonl_keeps_provider_text(self, runner, use_upstream, respond_json, intraday_payload):
        use_upstream(respond_json(intraday_payload))

        result = runner.invoke(app, ["-f", "jsonl", "intraday", "IBM", "--interval", "5min"])

        assert result.exit_code == 0
        rows = _rows(result.stdout, "timestamp")
        assert rows[0] == {
            "timestamp": "2024-01-02 16:00:00",
            "open": "161.5000",
            "high": "161.7500",
            "low": "161.4000",
            "close": "161.6900",
            "volume": "120345",
        }

    def test_intraday_fallback_notice(self, runner, use_upstream, respond_json):
        use_upstream(respond_json(RATE_LIMIT_NOTE))

        result = runner.invoke(app, ["-f", "jsonl", "intraday", "IBM"])

        assert result.exit_code == 0
        assert len(_rows(result.stdout, "timestamp")) == 10
        assert "showing synthetic data" in result.output

    def test_weekly_and_monthly(self, runner, use_upstream, respond_json, weekly_payload, monthly_payload):
        use_upstream(respond_json(weekly_payload))
        weekly = runner.invoke(app, ["-f", "jsonl", "weekly", "IBM"])
        use_upstream(respond_json(monthly_payload))
        monthly = runner.invoke(app, ["-f", "jsonl", "monthly", "IBM"])

        assert len(_rows(weekly.stdout, "date")) == 2
        assert [row["date"] for row in _rows(monthly.stdout, "date")] == ["2024-01-31"]

    def test_historical_range(self, runner, use_upstream, respond_json, intraday_payload):
        use_upstream(respond_json(intraday_payload))

        result = runner.invoke(app, ["-f", "jsonl", "historical", "IBM", "--start", "2024-01-02", "--end", "2024-01-02"])

        assert result.exit_code == 0
        assert len(_rows(result.stdout, "timestamp")) == 2

    def test_output_file(self, runner, use_upstream, respond_json, daily_payload, tmp_path):
        use_upstream(respond_json(daily_payload))
        target = tmp_path / "daily.jsonl"

        result = runner.invoke(app, ["-f", "jsonl", "-o", str(target), "daily", "IBM"])

        assert result.exit_code == 0
        lines = target.read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[0])["date"] == "2024-01-03"


class TestStoredCommand:
    """Test reads of persisted data."""

    def test_stored_after_fetch(self, runner, use_upstream, respond_json, daily_payload):
        use_upstream(respond_json(daily_payload))
        runner.invoke(app, ["daily", "IBM"])

        result = runner.invoke(app, ["-f", "jsonl", "stored", "IBM", "--data-type", "daily", "--start", "2024-01-03"])

        assert result.exit_code == 0
        assert [row["date"] for row in _rows(result.stdout, "date")] == ["2024-01-03"]

    def test_stored_intraday_after_fetch(self, runner, use_upstream, respond_json, intraday_payload):
        use_upstream(respond_json(intraday_payload))
        runner.invoke(app, ["intraday", "IBM"])

        result = runner.invoke(app, ["-f", "jsonl", "stored", "IBM", "-t", "intraday"])

        assert result.exit_code == 0
        assert len(_rows(result.stdout, "timestamp")) == 3

    def test_nothing_stored(self, runner, use_upstream, respond_json):
        use_upstream(respond_json({}))

        result = runner.invoke(app, ["stored", "IBM", "-t", "weekly"])

        assert result.exit_code == NOT_FOUND_EXIT_CODE
        assert "NOT_FOUND" in result.output


class TestErrors:
    """Test error reporting and exit codes."""

    def test_upstream_error(self, runner, use_upstream, respond_json):
        use_upstream(respond_json(RATE_LIMIT_NOTE))

        result = runner.invoke(app, ["daily", "IBM"])

        assert result.exit_code == UPSTREAM_EXIT_CODE
        assert "RATE_LIMITED" in result.output

    def test_missing_api_key(self, runner, monkeypatch):
        def factory() -> StockDataService:
            raise ConfigError("Alpha Vantage API key is not configured.", setting="providers.api_key")

        monkeypatch.setattr("stockprism.cli.series.get_stock_service", factory)

        result = runner.invoke(app, ["daily", "IBM"])

        assert result.exit_code == CONFIG_EXIT_CODE
        assert "CONFIGURATION_ERROR" in result.output

    def test_end_before_start(self, runner, use_upstream, respond_json):
        use_upstream(respond_json({}))

        result = runner.invoke(app, ["historical", "IBM", "--start", "2024-01-05", "--end", "2024-01-01"])

        assert result.exit_code == VALIDATION_EXIT_CODE
        assert "VALIDATION_ERROR" in result.output

    def test_unknown_format(self, runner):
        result = runner.invoke(app, ["--format", "xml", "symbols"])

        assert result.exit_code == 2

    def test_unknown_log_level(self, runner):
        result = runner.invoke(app, ["--log-level", "loud", "symbols"])

        assert result.exit_code == 2

    def test_unknown_interval(self, runner):
        result = runner.invoke(app, ["intraday", "IBM", "--interval", "2min"])

        assert result.exit_code == 2


class TestSymbolsCommand:
    """Test the symbol listing."""

    def test_jsonl(self, runner):
        result = runner.invoke(app, ["-f", "jsonl", "symbols"])

        assert result.exit_code == 0
        assert [row["symbol"] for row in _rows(result.stdout, "symbol")][:3] == ["AAPL", "MSFT", "GOOGL"]

    def test_table(self, runner):
        result = runner.invoke(app, ["--no-color", "symbols"])

        assert result.exit_code == 0
        assert "NVDA" in result.stdout


class TestServeCommand:
    """Test how ``serve`` hands its options to the launcher."""

    @pytest.fixture
    def launched(self, monkeypatch) -> list[dict]:
        calls: list[dict] = []
        monkeypatch.setattr("stockprism.web.main.serve", lambda **kwargs: calls.append(kwargs))
        return calls

    @pytest.mark.parametrize(
        ("args", "reload"),
        [([], None), (["--reload"], True), (["--no-reload"], False)],
    )
    def test_reload_flag(self, runner, launched, args, reload):
        result = runner.invoke(app, ["serve", *args])

        assert result.exit_code == 0
        assert launched == [{"host": None, "port": None, "reload": reload}]

    def test_reload_from_environment(self, monkeypatch):
        runs: list[dict] = []
        monkeypatch.setenv("STOCKPRISM_RELOAD", "true")
        monkeypatch.setattr(web_main.uvicorn, "run", lambda *args, **kwargs: runs.append(kwargs))

        web_main.serve()

        assert runs[0]["reload"] is True
