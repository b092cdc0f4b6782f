"""Series commands: upstream reads and stored reads."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from typing import TypeVar

import typer

from stockprism.cli.formatters import series_columns, series_to_rows
from stockprism.cli.utils import NOT_FOUND_EXIT_CODE, VALIDATION_EXIT_CODE, emit_error, fail, prepare_output
from stockprism.core.config import ConfigManager
from stockprism.core.exceptions import StockPrismError
from stockprism.core.models import DataType, Granularity, NormalizedSeries, OutputSize
from stockprism.core.services import SeriesResult, StockDataService

T = TypeVar("T")

DATE_FORMATS = ["%Y-%m-%d"]


def get_stock_service() -> StockDataService:
    """Factory hook for obtaining a :class:`StockDataService`."""

    return StockDataService.from_config(ConfigManager().get_config())


def _run(call: Callable[[StockDataService], Awaitable[T]]) -> T:
    async def runner() -> T:
        service = get_stock_service()
        try:
            return await call(service)
        finally:
            await service.close()

    try:
        return asyncio.run(runner())
    except StockPrismError as error:
        raise fail(error) from error
    except ValueError as error:
        emit_error(str(error), "VALIDATION_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error


def _render(ctx: typer.Context, series: NormalizedSeries, title: str) -> None:
    formatter, stream, stack = prepare_output(ctx)
    with stack:
        formatter.render(series_to_rows(series), stream=stream, columns=series_columns(series), title=title)


def _report(ctx: typer.Context, result: SeriesResult, title: str) -> None:
    if result.fallback_reason:
        typer.echo(f"Upstream unavailable ({result.fallback_reason}); showing synthetic data.", err=True)
    if result.skipped:
        typer.echo(f"Skipped {result.skipped} malformed entries.", err=True)
    _render(ctx, result.series, title)


def _as_date(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


def _check_range(start: date | None, end: date | None) -> None:
    if start and end and end < start:
        emit_error("end date must not be before start date", "VALIDATION_ERROR", details={"start": start, "end": end})
        raise typer.Exit(code=VALIDATION_EXIT_CODE)


def intraday_command(
    ctx: typer.Context,
    symbol: str = typer.Argument(..., help="Ticker symbol, e.g. IBM."),
    interval: Granularity = typer.Option(Granularity.MINUTE_5, "--interval", "-i", help="Intraday interval."),
) -> None:
    """Fetch the latest intraday series and store it."""

    result = _run(lambda service: service.get_intraday(symbol, interval))
    _report(ctx, result, f"{result.series.metadata.symbol} intraday ({interval.value})")


def daily_command(
    ctx: typer.Context,
    symbol: str = typer.Argument(..., help="Ticker symbol."),
    output_size: OutputSize = typer.Option(OutputSize.COMPACT, "--output-size", help="compact or full."),
) -> None:
    """Fetch the daily series and store it."""

    result = _run(lambda service: service.get_daily(symbol, output_size))
    _report(ctx, result, f"{result.series.metadata.symbol} daily")


def weekly_command(ctx: typer.Context, symbol: str = typer.Argument(..., help="Ticker symbol.")) -> None:
    """Fetch the weekly series and store it."""

    result = _run(lambda service: service.get_weekly(symbol))
    _report(ctx, result, f"{result.series.metadata.symbol} weekly")


def monthly_command(ctx: typer.Context, symbol: str = typer.Argument(..., help="Ticker symbol.")) -> None:
    """Fetch the monthly series and store it."""

    result = _run(lambda service: service.get_monthly(symbol))
    _report(ctx, result, f"{result.series.metadata.symbol} monthly")


def historical_command(
    ctx: typer.Context,
    symbol: str = typer.Argument(..., help="Ticker symbol."),
    start: datetime = typer.Option(..., "--start", formats=DATE_FORMATS, help="First day (YYYY-MM-DD)."),
    end: datetime = typer.Option(..., "--end", formats=DATE_FORMATS, help="Last day, inclusive (YYYY-MM-DD)."),
    interval: Granularity = typer.Option(Granularity.MINUTE_5, "--interval", "-i", help="Intraday interval."),
) -> None:
    """Fetch intraday history between two dates. Nothing is stored."""

    start_date, end_date = start.date(), end.date()
    _check_range(start_date, end_date)
    result = _run(lambda service: service.get_historical(symbol, start_date, end_date, interval))
    _report(ctx, result, f"{result.series.metadata.symbol} {start_date.isoformat()}..{end_date.isoformat()}")


def stored_command(
    ctx: typer.Context,
    symbol: str = typer.Argument(..., help="Ticker symbol."),
    data_type: DataType = typer.Option(DataType.DAILY, "--data-type", "-t", help="Stored series type."),
    interval: Granularity = typer.Option(Granularity.MINUTE_5, "--interval", "-i", help="Interval for intraday snapshots."),
    start: datetime | None = typer.Option(None, "--start", formats=DATE_FORMATS, help="First day (YYYY-MM-DD)."),
    end: datetime | None = typer.Option(None, "--end", formats=DATE_FORMATS, help="Last day, inclusive (YYYY-MM-DD)."),
) -> None:
    """Show previously stored data without calling the upstream."""

    start_date, end_date = _as_date(start), _as_date(end)
    _check_range(start_date, end_date)

    async def read(service: StockDataService) -> NormalizedSeries | None:
        if data_type is DataType.INTRADAY:
            return service.get_stored_snapshot(symbol, interval)
        return service.get_stored_points(symbol, data_type, start_date, end_date)

    series = _run(read)
    if series is None:
        emit_error(f"No stored {data_type.value} data for {symbol.upper()}", "NOT_FOUND")
        raise typer.Exit(code=NOT_FOUND_EXIT_CODE)
    _render(ctx, series, f"{series.metadata.symbol} stored {data_type.value}")


def symbols_command(ctx: typer.Context) -> None:
    """List well-known symbols."""

    formatter, stream, stack = prepare_output(ctx)
    with stack:
        formatter.render([{"symbol": symbol} for symbol in StockDataService.list_symbols()], stream=stream, columns=["symbol"])


def register(app: typer.Typer) -> None:
    """Register the series commands on the root application."""

    app.command("intraday")(intraday_command)
    app.command("daily")(daily_command)
    app.command("weekly")(weekly_command)
    app.command("monthly")(monthly_command)
    app.command("historical")(historical_command)
    app.command("stored")(stored_command)
    app.command("symbols")(symbols_command)


__all__ = ["get_stock_service", "register"]
