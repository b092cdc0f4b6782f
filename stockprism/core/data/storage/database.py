"""Keyed upsert store backed by DuckDB."""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

import duckdb

from stockprism.core.data.storage.schema import POINTS_TABLE, SNAPSHOTS_TABLE, open_connection, setup_database
from stockprism.core.exceptions import StorageFailureError
from stockprism.core.models import DataType, Granularity

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


@dataclass(frozen=True, slots=True)
class RecordKeyPrefix:
    """``(symbol, data_type, granularity)`` part of a record key."""

    symbol: str
    data_type: DataType
    granularity: Granularity | None = None


@dataclass(frozen=True, slots=True)
class RecordKey:
    """Unique identity of a stored record."""

    symbol: str
    data_type: DataType
    granularity: Granularity | None
    timestamp: str

    @property
    def prefix(self) -> RecordKeyPrefix:
        return RecordKeyPrefix(self.symbol, self.data_type, self.granularity)


@dataclass(frozen=True, slots=True)
class StoredRecord:
    """A committed record as read back from the store."""

    key: RecordKey
    record: dict[str, Any]
    updated_at: datetime | None = None


class SeriesStore(ABC):
    """Persistence collaborator: atomic per-call keyed upserts and reads."""

    @abstractmethod
    def upsert_one(self, key: RecordKey, record: Mapping[str, Any]) -> None:
        """Insert or update the record identified by ``key``."""

    @abstractmethod
    def find_latest(self, prefix: RecordKeyPrefix) -> StoredRecord | None:
        """Return the most recent record under ``prefix``."""

    @abstractmethod
    def find_range(
        self,
        prefix: RecordKeyPrefix,
        start: date | None = None,
        end: date | None = None,
    ) -> list[StoredRecord]:
        """Return point records under ``prefix`` within the inclusive range, oldest first."""

    def close(self) -> None:  # noqa: B027
        """Release resources."""


_SNAPSHOT_UPSERT = f"""
    INSERT INTO {SNAPSHOTS_TABLE} (
        symbol, data_type, granularity, last_refreshed, information,
        output_size, time_zone, time_series, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
    ON CONFLICT (symbol, data_type, granularity) DO UPDATE SET
        last_refreshed = excluded.last_refreshed,
        information = excluded.information,
        output_size = excluded.output_size,
        time_zone = excluded.time_zone,
        time_series = excluded.time_series,
        updated_at = CURRENT_TIMESTAMP
"""

_POINT_UPSERT = f"""
    INSERT INTO {POINTS_TABLE} (
        symbol, data_type, trade_date, open, high, low, close, volume,
        adjusted_close, dividend_amount, split_coefficient, last_refreshed, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
    ON CONFLICT (symbol, data_type, trade_date) DO UPDATE SET
        open = excluded.open,
        high = excluded.high,
        low = excluded.low,
        close = excluded.close,
        volume = excluded.volume,
        adjusted_close = excluded.adjusted_close,
        dividend_amount = excluded.dividend_amount,
        split_coefficient = excluded.split_coefficient,
        last_refreshed = excluded.last_refreshed,
        updated_at = CURRENT_TIMESTAMP
"""

_POINT_COLUMNS = (
    "trade_date",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "adjusted_close",
    "dividend_amount",
    "split_coefficient",
    "last_refreshed",
    "updated_at",
)


class DuckDBSeriesStore(SeriesStore):
    """DuckDB implementation of :class:`SeriesStore`.

    Intraday snapshots live in one row per ``(symbol, intraday, granularity)``;
    daily, weekly and monthly points live in one row per
    ``(symbol, data_type, date)``. Every write is a single statement.
    Calls are serialized on one lock so reconciliation may run in a worker
    thread while the event loop serves stored reads.
    """

    def __init__(self, db_path: str = ":memory:", threads: int = 1, connection: DuckDBPyConnection | None = None):
        self.db_path = db_path
        self._lock = threading.RLock()
        try:
            self.connection = setup_database(connection) if connection is not None else open_connection(db_path, threads)
        except duckdb.Error as exc:
            raise StorageFailureError(f"Unable to open database {db_path}: {exc}", operation="connect") from exc

    def close(self) -> None:
        with self._lock:
            if self.connection is not None:
                self.connection.close()
                self.connection = None

    def __enter__(self) -> DuckDBSeriesStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def upsert_one(self, key: RecordKey, record: Mapping[str, Any]) -> None:
        try:
            with self._lock:
                if key.data_type is DataType.INTRADAY:
                    self._upsert_snapshot(key, record)
                else:
                    self._upsert_point(key, record)
        except (duckdb.Error, KeyError, TypeError, ValueError) as exc:
            raise StorageFailureError(
                f"Failed to upsert {key.symbol} {key.data_type.value} {key.timestamp}: {exc}",
                operation="upsert",
                details={"symbol": key.symbol, "timestamp": key.timestamp},
            ) from exc

    def _upsert_snapshot(self, key: RecordKey, record: Mapping[str, Any]) -> None:
        if key.granularity is None:
            raise ValueError("intraday snapshots require a granularity")
        self.connection.execute(
            _SNAPSHOT_UPSERT,
            [
                key.symbol,
                key.data_type.value,
                key.granularity.value,
                key.timestamp,
                record.get("information", ""),
                record.get("output_size", "compact"),
                record.get("time_zone", "US/Eastern"),
                json.dumps(record["time_series"]),
            ],
        )

    def _upsert_point(self, key: RecordKey, record: Mapping[str, Any]) -> None:
        self.connection.execute(
            _POINT_UPSERT,
            [
                key.symbol,
                key.data_type.value,
                date.fromisoformat(key.timestamp),
                record["open"],
                record["high"],
                record["low"],
                record["close"],
                record["volume"],
                record.get("adjusted_close", record["close"]),
                record.get("dividend_amount", 0.0),
                record.get("split_coefficient", 1.0),
                record.get("last_refreshed"),
            ],
        )

    def find_latest(self, prefix: RecordKeyPrefix) -> StoredRecord | None:
        try:
            with self._lock:
                if prefix.data_type is DataType.INTRADAY:
                    return self._find_snapshot(prefix)
                rows = self._query_points(prefix, order="DESC", limit=1)
        except duckdb.Error as exc:
            raise StorageFailureError(f"Failed to read latest record for {prefix.symbol}: {exc}", operation="find_latest") from exc
        return rows[0] if rows else None

    def _find_snapshot(self, prefix: RecordKeyPrefix) -> StoredRecord | None:
        if prefix.granularity is None:
            return None
        row = self.connection.execute(
            f"""
            SELECT last_refreshed, information, output_size, time_zone, time_series, updated_at
            FROM {SNAPSHOTS_TABLE}
            WHERE symbol = ? AND data_type = ? AND granularity = ?
            """,
            [prefix.symbol, prefix.data_type.value, prefix.granularity.value],
        ).fetchone()
        if row is None:
            return None
        last_refreshed, information, output_size, time_zone, time_series, updated_at = row
        return StoredRecord(
            key=RecordKey(prefix.symbol, prefix.data_type, prefix.granularity, last_refreshed),
            record={
                "information": information,
                "last_refreshed": last_refreshed,
                "output_size": output_size,
                "time_zone": time_zone,
                "time_series": json.loads(time_series) if isinstance(time_series, str) else time_series,
            },
            updated_at=updated_at,
        )

    def find_range(
        self,
        prefix: RecordKeyPrefix,
        start: date | None = None,
        end: date | None = None,
    ) -> list[StoredRecord]:
        if prefix.data_type is DataType.INTRADAY:
            raise StorageFailureError("Range reads apply to point series only", operation="find_range")
        try:
            with self._lock:
                return self._query_points(prefix, start=start, end=end, order="ASC")
        except duckdb.Error as exc:
            raise StorageFailureError(f"Failed to read records for {prefix.symbol}: {exc}", operation="find_range") from exc

    def _query_points(
        self,
        prefix: RecordKeyPrefix,
        *,
        start: date | None = None,
        end: date | None = None,
        order: str = "ASC",
        limit: int | None = None,
    ) -> list[StoredRecord]:
        where_conditions = ["symbol = ?", "data_type = ?"]
        params: list[Any] = [prefix.symbol, prefix.data_type.value]
        if start:
            where_conditions.append("trade_date >= ?")
            params.append(start)
        if end:
            where_conditions.append("trade_date <= ?")
            params.append(end)

        query = f"""
            SELECT {", ".join(_POINT_COLUMNS)} FROM {POINTS_TABLE}
            WHERE {" AND ".join(where_conditions)}
            ORDER BY trade_date {"DESC" if order == "DESC" else "ASC"}
        """
        if limit:
            query += f" LIMIT {int(limit)}"

        records = []
        for row in self.connection.execute(query, params).fetchall():
            values = dict(zip(_POINT_COLUMNS, row, strict=True))
            trade_date: date = values.pop("trade_date")
            updated_at = values.pop("updated_at")
            records.append(
                StoredRecord(
                    key=RecordKey(prefix.symbol, prefix.data_type, None, trade_date.isoformat()),
                    record=values,
                    updated_at=updated_at,
                )
            )
        return records

    def count(self, prefix: RecordKeyPrefix) -> int:
        """Number of stored rows under ``prefix``."""
        table = SNAPSHOTS_TABLE if prefix.data_type is DataType.INTRADAY else POINTS_TABLE
        with self._lock:
            result = self.connection.execute(
                f"SELECT COUNT(*) FROM {table} WHERE symbol = ? AND data_type = ?",
                [prefix.symbol, prefix.data_type.value],
            ).fetchone()
        return result[0] if result else 0


__all__ = [
    "DuckDBSeriesStore",
    "RecordKey",
    "RecordKeyPrefix",
    "SeriesStore",
    "StoredRecord",
]
