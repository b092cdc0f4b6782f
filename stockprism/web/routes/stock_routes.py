"""
Stock data routes.

Upstream-backed reads (intraday, daily, weekly, monthly, historical) and reads
of previously stored series.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request

from stockprism.core.models import DataType, Granularity, OutputSize
from stockprism.core.services import StockDataService
from stockprism.web.models import APIResponse
from stockprism.web.utils import get_request_id, get_service

router = APIRouter()

SYMBOL_PATTERN = r"^[A-Za-z0-9.\-]+$"


def _symbol(symbol: str = Path(..., min_length=1, max_length=10, pattern=SYMBOL_PATTERN, description="Ticker symbol, e.g. IBM")) -> str:
    return symbol.strip().upper()


def _check_range(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")


@router.get("/", response_model=APIResponse)
async def list_symbols(request: Request, service: StockDataService = Depends(get_service)) -> APIResponse:
    """Well-known symbols."""
    return APIResponse(
        success=True,
        data=service.list_symbols(),
        message="Available symbols",
        request_id=get_request_id(request),
    )


@router.get("/{symbol}/intraday", response_model=APIResponse)
async def get_intraday(
    request: Request,
    symbol: str = Depends(_symbol),
    interval: Granularity = Query(Granularity.MINUTE_5, description="Intraday interval"),
    service: StockDataService = Depends(get_service),
) -> APIResponse:
    """
    Latest intraday series.

    Falls back to a synthetic series when the upstream is rate limited,
    answers empty, rejects the request with a 4xx or returns an
    unrecognizable payload.
    """
    result = await service.get_intraday(symbol, interval)
    message = f"Intraday data for {symbol} ({interval.value})"
    if result.is_fallback:
        message += f"; synthetic data served ({result.fallback_reason})"
    return APIResponse(success=True, data=result.to_payload(), message=message, request_id=get_request_id(request))


@router.get("/{symbol}/daily", response_model=APIResponse)
async def get_daily(
    request: Request,
    symbol: str = Depends(_symbol),
    outputsize: OutputSize = Query(OutputSize.COMPACT, description="compact (latest 100) or full"),
    service: StockDataService = Depends(get_service),
) -> APIResponse:
    """Daily series, persisted point by point."""
    result = await service.get_daily(symbol, outputsize)
    return APIResponse(
        success=True,
        data=result.to_payload(),
        message=f"Daily data for {symbol}",
        request_id=get_request_id(request),
    )


@router.get("/{symbol}/weekly", response_model=APIResponse)
async def get_weekly(
    request: Request,
    symbol: str = Depends(_symbol),
    service: StockDataService = Depends(get_service),
) -> APIResponse:
    result = await service.get_weekly(symbol)
    return APIResponse(
        success=True,
        data=result.to_payload(),
        message=f"Weekly data for {symbol}",
        request_id=get_request_id(request),
    )


@router.get("/{symbol}/monthly", response_model=APIResponse)
async def get_monthly(
    request: Request,
    symbol: str = Depends(_symbol),
    service: StockDataService = Depends(get_service),
) -> APIResponse:
    result = await service.get_monthly(symbol)
    return APIResponse(
        success=True,
        data=result.to_payload(),
        message=f"Monthly data for {symbol}",
        request_id=get_request_id(request),
    )


@router.get("/{symbol}/historical", response_model=APIResponse)
async def get_historical(
    request: Request,
    symbol: str = Depends(_symbol),
    start_date: date = Query(..., description="First day, YYYY-MM-DD"),
    end_date: date = Query(..., description="Last day (inclusive), YYYY-MM-DD"),
    interval: Granularity = Query(Granularity.MINUTE_5, description="Intraday interval"),
    service: StockDataService = Depends(get_service),
) -> APIResponse:
    """
    Intraday history between two dates.

    - **start_date**: first day included
    - **end_date**: last day included, covering the whole day
    """
    _check_range(start_date, end_date)
    result = await service.get_historical(symbol, start_date, end_date, interval)
    return APIResponse(
        success=True,
        data=result.to_payload(),
        message=f"Historical data for {symbol} from {start_date.isoformat()} to {end_date.isoformat()}",
        request_id=get_request_id(request),
    )


@router.get("/{symbol}/stored/intraday", response_model=APIResponse)
async def get_stored_intraday(
    request: Request,
    symbol: str = Depends(_symbol),
    interval: Granularity = Query(Granularity.MINUTE_5, description="Intraday interval"),
    service: StockDataService = Depends(get_service),
) -> APIResponse:
    """Most recently stored intraday snapshot."""
    series = service.get_stored_snapshot(symbol, interval)
    if series is None:
        raise HTTPException(status_code=404, detail=f"No stored intraday data for {symbol} ({interval.value})")
    return APIResponse(
        success=True,
        data=series.to_payload(),
        message=f"Stored intraday data for {symbol} ({interval.value})",
        request_id=get_request_id(request),
    )


@router.get("/{symbol}/stored/{data_type}", response_model=APIResponse)
async def get_stored_points(
    request: Request,
    data_type: DataType,
    symbol: str = Depends(_symbol),
    start_date: date | None = Query(None, description="First day, YYYY-MM-DD"),
    end_date: date | None = Query(None, description="Last day (inclusive), YYYY-MM-DD"),
    service: StockDataService = Depends(get_service),
) -> APIResponse:
    """Stored daily, weekly or monthly points within an optional date range."""
    if data_type is DataType.INTRADAY:
        raise HTTPException(status_code=400, detail="Use /stored/intraday for intraday snapshots")
    _check_range(start_date, end_date)
    series = service.get_stored_points(symbol, data_type, start_date, end_date)
    if series is None:
        raise HTTPException(status_code=404, detail=f"No stored {data_type.value} data for {symbol}")
    return APIResponse(
        success=True,
        data=series.to_payload(),
        message=f"Stored {data_type.value} data for {symbol}",
        request_id=get_request_id(request),
    )
