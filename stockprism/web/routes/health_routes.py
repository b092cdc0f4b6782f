"""
Health check and metrics routes.
"""

import time

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

from stockprism import __version__
from stockprism.core.logging import get_logger
from stockprism.core.monitoring import get_metrics_collector
from stockprism.web.models import APIResponse, HealthStatus
from stockprism.web.utils import get_request_id

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health", response_model=APIResponse)
async def health_check(request: Request) -> APIResponse:
    """
    Basic health check.

    Reports whether the stock data service was wired at startup.
    """
    service = getattr(request.app.state, "service", None)
    started = getattr(request.app.state, "start_time", time.time())
    components = {"service": "ok" if service is not None else "unavailable"}
    health = HealthStatus(
        status="healthy" if service is not None else "degraded",
        version=__version__,
        uptime=round(time.time() - started, 3),
        components=components,
    )
    logger.debug(f"Health check completed: {health.status}")
    return APIResponse(
        success=service is not None,
        data=health.model_dump(),
        message="Health check completed",
        request_id=get_request_id(request),
    )


@router.get("/health/live", response_model=APIResponse)
async def liveness_check(request: Request) -> APIResponse:
    """Liveness probe."""
    return APIResponse(success=True, data={"alive": True}, message="Alive", request_id=get_request_id(request))


@router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Prometheus text exposition of the pipeline metrics."""
    return Response(content=get_metrics_collector().render(), media_type=CONTENT_TYPE_LATEST)
