"""
Reconciliation of normalized series against stored records.

Intraday series follow a latest-snapshot model: one stored snapshot per
``(symbol, granularity)``, skipped when the stored ``last_refreshed`` equals
the incoming one. Daily, weekly and monthly series are upserted point by
point keyed by ``(symbol, data_type, date)``.

Persistence is best-effort relative to the read path: storage failures are
logged and counted in the outcome, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from stockprism.core.data.storage import RecordKey, RecordKeyPrefix, SeriesStore
from stockprism.core.exceptions import StorageFailureError
from stockprism.core.logging import get_logger
from stockprism.core.models import DataType, NormalizedSeries
from stockprism.core.monitoring import MetricsCollector, get_metrics_collector

logger = get_logger(__name__)


@dataclass(slots=True)
class UpsertOutcome:
    """Result of reconciling one series."""

    applied: int = 0
    skipped_as_stale: bool = False
    invalid_keys: list[str] = field(default_factory=list)
    storage_failures: int = 0

    @property
    def succeeded(self) -> bool:
        """True when every well-formed record was written or the write was redundant."""
        return self.storage_failures == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "applied": self.applied,
            "skippedAsStale": self.skipped_as_stale,
            "invalidKeys": list(self.invalid_keys),
            "storageFailures": self.storage_failures,
        }


def _parse_timestamp(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def same_refresh(stored: str, incoming: str) -> bool:
    """Compare two ``last_refreshed`` values as instants, falling back to text."""
    stored_ts, incoming_ts = _parse_timestamp(stored), _parse_timestamp(incoming)
    if stored_ts is not None and incoming_ts is not None:
        return stored_ts == incoming_ts
    return stored.strip() == incoming.strip()


def parse_point_date(key: str) -> str | None:
    """Canonical ``YYYY-MM-DD`` form of a point key, or None when unparsable."""
    try:
        return datetime.strptime(key.strip(), "%Y-%m-%d").date().isoformat()
    except ValueError:
        return None


class ReconciliationEngine:
    """Sole writer of stored series records."""

    def __init__(self, store: SeriesStore, metrics: MetricsCollector | None = None) -> None:
        self.store = store
        self._metrics = metrics or get_metrics_collector()

    def reconcile(self, series: NormalizedSeries) -> UpsertOutcome:
        """Merge ``series`` into the store."""
        if series.synthetic:
            logger.debug(f"Not persisting synthetic series for {series.metadata.symbol}")
            return UpsertOutcome()
        if series.data_type is DataType.INTRADAY:
            outcome = self._reconcile_snapshot(series)
        else:
            outcome = self._reconcile_points(series)

        if outcome.skipped_as_stale:
            result = "stale"
        elif not outcome.succeeded:
            result = "storage_failure"
        elif outcome.invalid_keys:
            result = "partial"
        else:
            result = "applied"
        self._metrics.record_reconciliation(series.data_type.value, result)
        return outcome

    def _reconcile_snapshot(self, series: NormalizedSeries) -> UpsertOutcome:
        metadata = series.metadata
        outcome = UpsertOutcome()
        prefix = RecordKeyPrefix(metadata.symbol, metadata.data_type, metadata.granularity)

        try:
            latest = self.store.find_latest(prefix)
        except StorageFailureError as exc:
            self._absorb(exc, "find_latest", metadata.symbol)
            outcome.storage_failures += 1
            latest = None

        if latest is not None and same_refresh(latest.key.timestamp, metadata.last_refreshed):
            logger.info(
                f"Data for {metadata.symbol} ({metadata.granularity.value}) is already up to date "
                f"as of {metadata.last_refreshed}"
            )
            outcome.skipped_as_stale = True
            return outcome

        key = RecordKey(metadata.symbol, metadata.data_type, metadata.granularity, metadata.last_refreshed)
        record = {
            "information": metadata.information,
            "output_size": metadata.output_size.value,
            "time_zone": metadata.time_zone,
            "time_series": {timestamp: point.ohlcv_text() for timestamp, point in series.points.items()},
        }
        try:
            self.store.upsert_one(key, record)
        except StorageFailureError as exc:
            self._absorb(exc, "upsert", metadata.symbol)
            outcome.storage_failures += 1
            return outcome

        outcome.applied = 1
        logger.info(f"Saved intraday snapshot for {metadata.symbol} ({metadata.granularity.value})")
        return outcome

    def _reconcile_points(self, series: NormalizedSeries) -> UpsertOutcome:
        metadata = series.metadata
        outcome = UpsertOutcome()

        for timestamp, point in series.points.items():
            trade_date = parse_point_date(timestamp)
            if trade_date is None:
                outcome.invalid_keys.append(timestamp)
                continue

            key = RecordKey(metadata.symbol, metadata.data_type, None, trade_date)
            record = {
                "open": point.open,
                "high": point.high,
                "low": point.low,
                "close": point.close,
                "volume": point.volume,
                "adjusted_close": point.adjusted_close,
                "dividend_amount": point.dividend_amount,
                "split_coefficient": point.split_coefficient,
                "last_refreshed": metadata.last_refreshed,
            }
            try:
                self.store.upsert_one(key, record)
            except StorageFailureError as exc:
                self._absorb(exc, "upsert", metadata.symbol)
                outcome.storage_failures += 1
                continue
            outcome.applied += 1

        if outcome.invalid_keys:
            logger.bind(symbol=metadata.symbol).warning(
                f"Skipped {len(outcome.invalid_keys)} {metadata.data_type.value} entries with invalid dates"
            )
        logger.info(f"Saved/updated {outcome.applied} {metadata.data_type.value} points for {metadata.symbol}")
        return outcome

    def _absorb(self, exc: StorageFailureError, operation: str, symbol: str) -> None:
        self._metrics.record_storage_failure(operation)
        logger.bind(symbol=symbol, error_code=exc.error_code.value).error(f"Storage failure during {operation}: {exc.message}")


__all__ = ["ReconciliationEngine", "UpsertOutcome", "parse_point_date", "same_refresh"]
