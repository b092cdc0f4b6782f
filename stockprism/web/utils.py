"""Web helpers."""

from fastapi import HTTPException, Request

from stockprism.core.services import StockDataService


def get_request_id(request: Request) -> str | None:
    """Request id assigned by the logging middleware, else the X-Request-ID header."""
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")


def get_service(request: Request) -> StockDataService:
    """Service wired by the application lifespan."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Stock data service is not available")
    return service
