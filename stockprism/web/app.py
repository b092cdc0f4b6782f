"""
FastAPI application factory.
"""

import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from stockprism import __version__
from stockprism.core.config import ConfigManager, StockPrismConfig
from stockprism.core.exceptions import (
    ConfigError,
    RateLimitedError,
    SchemaMismatchError,
    StockPrismError,
    StorageFailureError,
    UpstreamError,
    UpstreamRejectedError,
    UpstreamTimeoutError,
)
from stockprism.core.logging import LogConfig, apply_log_config, get_logger, log_context
from stockprism.core.services import StockDataService
from stockprism.web.models import ErrorResponse
from stockprism.web.routes import health_router, stock_router
from stockprism.web.utils import get_request_id

logger = get_logger(__name__)

# most specific first
_STATUS_BY_ERROR: tuple[tuple[type[StockPrismError], int], ...] = (
    (ConfigError, 500),
    (UpstreamTimeoutError, 504),
    (RateLimitedError, 429),
    (UpstreamRejectedError, 404),
    (StorageFailureError, 503),
    (SchemaMismatchError, 502),
    (UpstreamError, 502),
)


def status_for(exc: StockPrismError) -> int:
    """HTTP status for a domain error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def configure_from(config: StockPrismConfig) -> None:
    """Apply the logging section of ``config``."""
    apply_log_config(LogConfig.from_settings(config.logging))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Wire the stock data service unless one was injected.

    A missing api key raises ``ConfigError`` here, so startup fails fast.
    """
    owned = getattr(app.state, "service", None) is None
    if owned:
        config = ConfigManager().get_config()
        configure_from(config)
        app.state.config = config
        app.state.service = StockDataService.from_config(config)
        logger.info("Stock data service started")

    yield

    if owned:
        await app.state.service.close()
        app.state.service = None
        logger.info("Stock data service stopped")


def create_app(service: StockDataService | None = None) -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title="stockprism",
        description="Normalized Alpha Vantage time series with DuckDB persistence",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.start_time = time.time()

    _setup_middleware(app)
    _setup_routes(app)
    _setup_exception_handlers(app)

    return app


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a request id, scopes logging to it and logs each request."""

    def __init__(self, app, exclude_paths=None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/health", "/metrics", "/docs", "/openapi.json"]

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        quiet = any(request.url.path.startswith(path) for path in self.exclude_paths)

        with log_context(trace_id=request_id, method=request.method, path=request.url.path):
            start_time = time.perf_counter()
            if not quiet:
                logger.info("Request started")
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(f"Request failed after {(time.perf_counter() - start_time) * 1000:.2f}ms: {type(e).__name__}: {e}")
                raise
            if not quiet:
                duration = (time.perf_counter() - start_time) * 1000
                logger.info(f"Request completed with status {response.status_code} in {duration:.2f}ms")
            response.headers["X-Request-ID"] = request_id
            return response


def _setup_middleware(app: FastAPI) -> None:
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )


def _setup_routes(app: FastAPI) -> None:
    app.include_router(stock_router, prefix="/api/stocks", tags=["stocks"])
    app.include_router(health_router, tags=["health"])


def _error_response(request: Request, status_code: int, error: str, message: str, details: dict | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details, request_id=get_request_id(request))
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def _setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StockPrismError)
    async def stockprism_exception_handler(request: Request, exc: StockPrismError) -> JSONResponse:
        status_code = status_for(exc)
        logger.bind(error_code=exc.error_code.value).warning(f"{type(exc).__name__} mapped to HTTP {status_code}: {exc.message}")
        return _error_response(
            request,
            status_code,
            exc.__class__.__name__,
            exc.message,
            {"error_code": exc.error_code.value, **exc.details},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(request, exc.status_code, "HTTPException", str(exc.detail), {"status_code": exc.status_code})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(request, 422, "ValidationError", "Invalid request parameters", {"errors": jsonable_encoder(exc.errors())})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return _error_response(request, 400, "ValueError", str(exc))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error: {exc}")
        return _error_response(request, 500, "InternalServerError", "Internal server error", {"type": type(exc).__name__})
