"""Persistence for normalized series."""

from stockprism.core.data.storage.database import (
    DuckDBSeriesStore,
    RecordKey,
    RecordKeyPrefix,
    SeriesStore,
    StoredRecord,
)
from stockprism.core.data.storage.schema import POINTS_TABLE, SNAPSHOTS_TABLE, open_connection, setup_database

__all__ = [
    "DuckDBSeriesStore",
    "POINTS_TABLE",
    "RecordKey",
    "RecordKeyPrefix",
    "SNAPSHOTS_TABLE",
    "SeriesStore",
    "StoredRecord",
    "open_connection",
    "setup_database",
]
