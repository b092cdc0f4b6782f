"""
Web API: FastAPI service over the stock data pipeline.
"""

from stockprism.web.app import create_app
from stockprism.web.models import APIResponse, ErrorResponse
from stockprism.web.routes import health_router, stock_router

__all__ = ["create_app", "stock_router", "health_router", "APIResponse", "ErrorResponse"]
