"""
Web API routers.
"""

from stockprism.web.routes.health_routes import router as health_router
from stockprism.web.routes.stock_routes import router as stock_router

__all__ = ["health_router", "stock_router"]
