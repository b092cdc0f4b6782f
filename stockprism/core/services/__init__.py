"""Pipeline services: normalization, reconciliation, fallback and orchestration."""

from stockprism.core.services.fallback import FallbackSupplier
from stockprism.core.services.normalizer import FieldResolver, ResponseNormalizer
from stockprism.core.services.reconciliation import ReconciliationEngine, UpsertOutcome
from stockprism.core.services.stock_data import POPULAR_SYMBOLS, SeriesResult, StockDataService

__all__ = [
    "FallbackSupplier",
    "FieldResolver",
    "POPULAR_SYMBOLS",
    "ReconciliationEngine",
    "ResponseNormalizer",
    "SeriesResult",
    "StockDataService",
    "UpsertOutcome",
]
