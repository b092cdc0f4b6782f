"""
Stock data orchestration.

Each public request kind runs one pipeline: upstream fetch, normalization,
reconciliation. Intraday requests absorb rate limits, empty bodies, 4xx
responses and unrecognizable payloads into a synthetic series; every other
request kind propagates upstream and normalization failures to the caller.
Storage failures are absorbed by the reconciliation engine.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import httpx

from stockprism.core.config import StockPrismConfig
from stockprism.core.data.storage import DuckDBSeriesStore, RecordKeyPrefix, SeriesStore, StoredRecord
from stockprism.core.exceptions import (
    EmptyResponseError,
    PartialRecordLoss,
    RateLimitedError,
    SchemaMismatchError,
    StockPrismError,
    UpstreamClientError,
)
from stockprism.core.logging import get_logger, log_context
from stockprism.core.models import (
    DataType,
    FunctionKind,
    Granularity,
    NormalizationResult,
    NormalizedSeries,
    NormalizedSeriesPoint,
    OutputSize,
    SeriesMetadata,
)
from stockprism.core.monitoring import MetricsCollector, get_metrics_collector
from stockprism.core.providers import AlphaVantageClient
from stockprism.core.services.fallback import FallbackSupplier
from stockprism.core.services.normalizer import DEFAULT_INFORMATION, INTRADAY_KEY_FORMATS, ResponseNormalizer
from stockprism.core.services.reconciliation import ReconciliationEngine, UpsertOutcome

logger = get_logger(__name__)

POPULAR_SYMBOLS = ["AAPL", "MSFT", "GOOGL", "AMZN", "META", "IBM", "TSLA", "NVDA", "JPM", "V"]

INTRADAY_FALLBACK_ERRORS = (RateLimitedError, EmptyResponseError, UpstreamClientError, SchemaMismatchError)


@dataclass(slots=True)
class SeriesResult:
    """A served series with what happened on the way."""

    series: NormalizedSeries
    outcome: UpsertOutcome | None = None
    loss: PartialRecordLoss | None = None
    fallback_reason: str | None = None

    @property
    def skipped(self) -> int:
        return len(self.loss.skipped_keys) if self.loss is not None else 0

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None

    def to_payload(self) -> dict[str, Any]:
        payload = self.series.to_payload()
        if self.loss is not None:
            payload["skipped"] = self.skipped
            payload["partialLoss"] = self.loss.to_payload()
        if self.fallback_reason:
            payload["fallbackReason"] = self.fallback_reason
        if self.outcome is not None:
            payload["reconciliation"] = self.outcome.to_dict()
        return payload


def _parse_intraday_timestamp(key: str) -> datetime | None:
    for fmt in INTRADAY_KEY_FORMATS:
        try:
            return datetime.strptime(key.strip(), fmt)
        except ValueError:
            continue
    return None


def filter_by_date(series: NormalizedSeries, start_date: date, end_date: date) -> NormalizedSeries:
    """Keep intraday points whose day falls within ``[start_date, end_date]``.

    Points with unparsable timestamps are excluded.
    """
    kept: dict[str, NormalizedSeriesPoint] = {}
    for key, point in series.points.items():
        timestamp = _parse_intraday_timestamp(key)
        if timestamp is not None and start_date <= timestamp.date() <= end_date:
            kept[key] = point
    return series.model_copy(update={"points": kept})


class StockDataService:
    """Entry point for every read operation."""

    def __init__(
        self,
        client: AlphaVantageClient,
        store: SeriesStore,
        *,
        normalizer: ResponseNormalizer | None = None,
        reconciler: ReconciliationEngine | None = None,
        fallback: FallbackSupplier | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self._metrics = metrics or get_metrics_collector()
        self.normalizer = normalizer or ResponseNormalizer(metrics=self._metrics)
        self.reconciler = reconciler or ReconciliationEngine(store, metrics=self._metrics)
        self.fallback = fallback or FallbackSupplier()

    @classmethod
    def from_config(
        cls,
        config: StockPrismConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> StockDataService:
        """Wire a service from configuration.

        Raises:
            ConfigError: when no usable api key is configured.
        """
        metrics = get_metrics_collector()
        client = AlphaVantageClient(config.providers, transport=transport, metrics=metrics)
        store = DuckDBSeriesStore(config.storage.db_path, threads=config.storage.threads)
        return cls(
            client,
            store,
            fallback=FallbackSupplier(points=config.fallback.points),
            metrics=metrics,
        )

    async def close(self) -> None:
        await self.client.close()
        self.store.close()

    async def _reconcile(self, series: NormalizedSeries) -> UpsertOutcome:
        # DuckDB writes are blocking; keep them off the event loop
        return await asyncio.to_thread(self.reconciler.reconcile, series)

    async def _fetch_and_normalize(
        self,
        function: FunctionKind,
        symbol: str,
        params: dict[str, str],
        granularity: Granularity | None = None,
    ) -> NormalizationResult:
        payload = await self.client.fetch(function, symbol, params)
        return self.normalizer.normalize(payload, function.data_type, symbol, granularity)

    async def get_intraday(self, symbol: str, interval: Granularity | str = Granularity.MINUTE_5) -> SeriesResult:
        """Latest intraday snapshot, falling back to a synthetic series."""
        granularity = Granularity(interval)
        with log_context(symbol=symbol.upper(), operation="intraday"):
            logger.info(f"Getting intraday data for {symbol} with interval {granularity.value}")
            try:
                result = await self._fetch_and_normalize(
                    FunctionKind.INTRADAY,
                    symbol,
                    {"interval": granularity.value, "outputsize": OutputSize.COMPACT.value},
                    granularity,
                )
            except INTRADAY_FALLBACK_ERRORS as exc:
                return self._fallback(symbol, granularity, exc)

            outcome = await self._reconcile(result.series)
            return SeriesResult(result.series, outcome, result.partial_loss())

    def _fallback(self, symbol: str, granularity: Granularity, exc: StockPrismError) -> SeriesResult:
        reason = exc.error_code.value
        self._metrics.record_fallback(reason)
        logger.bind(error_code=reason).warning(f"Falling back to synthetic data for {symbol}: {exc.message}")
        series = self.fallback.synthetic_series(symbol, granularity)
        return SeriesResult(series, None, None, reason)

    async def _get_points(self, function: FunctionKind, symbol: str, params: dict[str, str]) -> SeriesResult:
        data_type = function.data_type
        with log_context(symbol=symbol.upper(), operation=data_type.value):
            logger.info(f"Getting {data_type.value} data for {symbol}")
            result = await self._fetch_and_normalize(function, symbol, params)
            outcome = await self._reconcile(result.series)
            return SeriesResult(result.series, outcome, result.partial_loss())

    async def get_daily(self, symbol: str, output_size: OutputSize | str = OutputSize.COMPACT) -> SeriesResult:
        size = OutputSize.parse(output_size)
        return await self._get_points(FunctionKind.DAILY, symbol, {"outputsize": size.value})

    async def get_weekly(self, symbol: str) -> SeriesResult:
        return await self._get_points(FunctionKind.WEEKLY, symbol, {})

    async def get_monthly(self, symbol: str) -> SeriesResult:
        return await self._get_points(FunctionKind.MONTHLY, symbol, {})

    async def get_historical(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        interval: Granularity | str = Granularity.MINUTE_5,
    ) -> SeriesResult:
        """Full intraday history restricted to an inclusive date range. Not persisted."""
        if end_date < start_date:
            raise ValueError("end_date must not be before start_date")
        granularity = Granularity(interval)
        with log_context(symbol=symbol.upper(), operation="historical"):
            logger.info(
                f"Getting historical data for {symbol} from {start_date.isoformat()} to {end_date.isoformat()} "
                f"with interval {granularity.value}"
            )
            result = await self._fetch_and_normalize(
                FunctionKind.INTRADAY,
                symbol,
                {"interval": granularity.value, "outputsize": OutputSize.FULL.value},
                granularity,
            )
            filtered = filter_by_date(result.series, start_date, end_date)
            logger.info(f"Kept {len(filtered.points)} of {len(result.series.points)} points in range")
            return SeriesResult(filtered, None, result.partial_loss())

    def get_stored_snapshot(self, symbol: str, interval: Granularity | str = Granularity.MINUTE_5) -> NormalizedSeries | None:
        """Most recently stored intraday snapshot, or None."""
        granularity = Granularity(interval)
        prefix = RecordKeyPrefix(symbol.strip().upper(), DataType.INTRADAY, granularity)
        stored = self.store.find_latest(prefix)
        if stored is None:
            return None

        record = stored.record
        points = {
            timestamp: NormalizedSeriesPoint(
                open=float(values["open"]),
                high=float(values["high"]),
                low=float(values["low"]),
                close=float(values["close"]),
                volume=int(values["volume"]),
                source_text={name: str(value) for name, value in values.items()},
            )
            for timestamp, values in record["time_series"].items()
        }
        metadata = SeriesMetadata(
            information=record.get("information") or "",
            symbol=prefix.symbol,
            data_type=DataType.INTRADAY,
            granularity=granularity,
            last_refreshed=stored.key.timestamp,
            output_size=OutputSize.parse(record.get("output_size")),
            time_zone=record.get("time_zone") or "US/Eastern",
        )
        return NormalizedSeries(metadata=metadata, points=points)

    def get_stored_points(
        self,
        symbol: str,
        data_type: DataType | str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> NormalizedSeries | None:
        """Stored daily, weekly or monthly points within an inclusive range, or None."""
        data_type = DataType(data_type)
        if not data_type.is_point_series:
            raise ValueError("stored intraday data is read with get_stored_snapshot")
        if start_date and end_date and end_date < start_date:
            raise ValueError("end_date must not be before start_date")

        prefix = RecordKeyPrefix(symbol.strip().upper(), data_type)
        records = self.store.find_range(prefix, start_date, end_date)
        if not records:
            return None
        return self._series_from_points(prefix, records)

    @staticmethod
    def _series_from_points(prefix: RecordKeyPrefix, records: list[StoredRecord]) -> NormalizedSeries:
        points: dict[str, NormalizedSeriesPoint] = {}
        last_refreshed = records[-1].key.timestamp
        for stored in records:
            values = stored.record
            points[stored.key.timestamp] = NormalizedSeriesPoint(
                open=values["open"],
                high=values["high"],
                low=values["low"],
                close=values["close"],
                volume=values["volume"],
                adjusted_close=values.get("adjusted_close"),
                dividend_amount=values.get("dividend_amount") or 0.0,
                split_coefficient=values.get("split_coefficient") or 1.0,
            )
            last_refreshed = values.get("last_refreshed") or last_refreshed

        metadata = SeriesMetadata(
            information=DEFAULT_INFORMATION[prefix.data_type],
            symbol=prefix.symbol,
            data_type=prefix.data_type,
            last_refreshed=last_refreshed,
        )
        # newest first, matching the upstream ordering
        return NormalizedSeries(metadata=metadata, points=dict(reversed(points.items())))

    @staticmethod
    def list_symbols() -> list[str]:
        return list(POPULAR_SYMBOLS)


__all__ = ["POPULAR_SYMBOLS", "SeriesResult", "StockDataService", "filter_by_date"]
