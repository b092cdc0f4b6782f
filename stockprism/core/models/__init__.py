"""Data models."""

from stockprism.core.models.market import DataType, FunctionKind, Granularity, OutputSize
from stockprism.core.models.series import (
    DEFAULT_TIME_ZONE,
    OHLCV_FIELDS,
    NormalizationResult,
    NormalizedSeries,
    NormalizedSeriesPoint,
    SeriesMetadata,
)

__all__ = [
    "DataType",
    "FunctionKind",
    "Granularity",
    "OutputSize",
    "DEFAULT_TIME_ZONE",
    "OHLCV_FIELDS",
    "NormalizationResult",
    "NormalizedSeries",
    "NormalizedSeriesPoint",
    "SeriesMetadata",
]
