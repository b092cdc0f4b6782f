"""
Response normalizer.

Maps loosely-typed Alpha Vantage payloads onto the canonical series models.
Provider spellings vary by function and over time (numbered ``"1. open"`` vs
bare ``"open"``, upper-case variants, different numbering for the same field
across functions), so every canonical field is read through a
:class:`FieldResolver`: an ordered tuple of candidate spellings where the
first present value wins.

Section keys are located by substring match in payload iteration order and
the first match wins. Payloads with several candidate keys therefore resolve
by key order, not by meaning.

Entries are parsed independently. A malformed entry is dropped and reported
in :attr:`NormalizationResult.skipped_keys`; it never aborts the batch.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from stockprism.core.exceptions import SchemaMismatchError
from stockprism.core.logging import get_logger
from stockprism.core.models import (
    DEFAULT_TIME_ZONE,
    OHLCV_FIELDS,
    DataType,
    Granularity,
    NormalizationResult,
    NormalizedSeries,
    NormalizedSeriesPoint,
    OutputSize,
    SeriesMetadata,
)
from stockprism.core.monitoring import MetricsCollector, get_metrics_collector

logger = get_logger(__name__)

META_KEY_MARKERS = ("meta", "information")
SERIES_KEY_MARKERS = ("time series", "timeseries", "time_series")
DAILY_SERIES_MARKERS = ("daily",)

METADATA_SPELLINGS: dict[str, tuple[str, ...]] = {
    "information": ("1. Information", "Information"),
    "symbol": ("2. Symbol", "Symbol"),
    "last_refreshed": ("3. Last Refreshed", "Last Refreshed"),
    "interval": ("4. Interval", "Interval"),
    "output_size": ("4. Output Size", "5. Output Size", "Output Size"),
    "time_zone": ("6. Time Zone", "5. Time Zone", "4. Time Zone", "Time Zone"),
}

POINT_SPELLINGS: dict[str, tuple[str, ...]] = {
    "open": ("1. open", "open"),
    "high": ("2. high", "high"),
    "low": ("3. low", "low"),
    "close": ("4. close", "close"),
    "volume": ("5. volume", "6. volume", "volume"),
    "adjusted_close": ("5. adjusted close", "adjusted close"),
    "dividend_amount": ("7. dividend amount", "dividend amount"),
    "split_coefficient": ("8. split coefficient", "split coefficient"),
}

DEFAULT_INFORMATION = {
    DataType.DAILY: "Daily Time Series",
    DataType.WEEKLY: "Weekly Time Series",
    DataType.MONTHLY: "Monthly Time Series",
}

INTRADAY_KEY_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M")
DATE_KEY_FORMAT = "%Y-%m-%d"


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class FieldResolver:
    """Priority-ordered lookup of canonical fields in a provider mapping.

    For each canonical field the candidate spellings are tried in order with
    exact matching first, then case-insensitively. Empty strings and ``None``
    count as absent.
    """

    def __init__(self, spellings: Mapping[str, tuple[str, ...]]) -> None:
        self._spellings = dict(spellings)

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(self._spellings)

    def candidates(self, field: str) -> tuple[str, ...]:
        return self._spellings[field]

    def resolve(self, source: Mapping[str, Any], field: str, default: Any = None) -> Any:
        candidates = self._spellings[field]
        for candidate in candidates:
            value = source.get(candidate)
            if _present(value):
                return value

        lowered: dict[str, Any] = {}
        for key, value in source.items():
            if isinstance(key, str):
                lowered.setdefault(key.strip().lower(), value)
        for candidate in candidates:
            value = lowered.get(candidate.lower())
            if _present(value):
                return value
        return default


def parse_number(value: Any) -> float | None:
    """Parse a finite float from a JSON scalar, or return None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_volume(value: Any) -> int | None:
    """Parse a non-negative integer volume, or return None."""
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    number = parse_number(value)
    if number is None or number < 0 or not number.is_integer():
        return None
    return int(number)


def locate_keys(payload: Mapping[str, Any], data_type: DataType) -> tuple[str | None, str | None]:
    """Return the first metadata-shaped key and the first time-series-shaped key."""
    series_markers = SERIES_KEY_MARKERS + (DAILY_SERIES_MARKERS if data_type is DataType.DAILY else ())

    meta_key = next(
        (key for key in payload if isinstance(key, str) and any(m in key.lower() for m in META_KEY_MARKERS)),
        None,
    )
    series_key = next(
        (key for key in payload if isinstance(key, str) and any(m in key.lower() for m in series_markers)),
        None,
    )
    return meta_key, series_key


def key_matches_resolution(key: str, data_type: DataType) -> bool:
    """Intraday keys carry a time of day; every other type carries a bare date."""
    formats = INTRADAY_KEY_FORMATS if data_type is DataType.INTRADAY else (DATE_KEY_FORMAT,)
    for fmt in formats:
        try:
            datetime.strptime(key.strip(), fmt)
        except ValueError:
            continue
        return True
    return False


class ResponseNormalizer:
    """Converts raw upstream payloads into :class:`NormalizedSeries`."""

    def __init__(self, metrics: MetricsCollector | None = None) -> None:
        self.metadata_resolver = FieldResolver(METADATA_SPELLINGS)
        self.point_resolver = FieldResolver(POINT_SPELLINGS)
        self._metrics = metrics or get_metrics_collector()

    def normalize(
        self,
        payload: Mapping[str, Any],
        expected_type: DataType,
        symbol_hint: str,
        requested_granularity: Granularity | str | None = None,
    ) -> NormalizationResult:
        """Normalize one payload.

        Raises:
            SchemaMismatchError: when the metadata or time-series section
                cannot be located or is not an object.
        """
        if not isinstance(payload, Mapping):
            raise SchemaMismatchError("Invalid data format: expected an object")

        available_keys = [str(key) for key in payload]
        meta_key, series_key = locate_keys(payload, expected_type)
        logger.debug(f"Found meta key: {meta_key}, time series key: {series_key}")

        if meta_key is None:
            logger.error(f"No metadata key found in response. Available keys: {available_keys}")
            raise SchemaMismatchError("Invalid data format: Missing Meta Data", available_keys=available_keys)
        if series_key is None:
            logger.error(f"No time series key found in response. Available keys: {available_keys}")
            raise SchemaMismatchError("Invalid data format: Missing Time Series Data", available_keys=available_keys)

        raw_meta = payload[meta_key]
        raw_series = payload[series_key]
        if not isinstance(raw_meta, Mapping) or not raw_meta:
            raise SchemaMismatchError(f"Invalid data format: {meta_key!r} is empty or not an object", available_keys=available_keys)
        if not isinstance(raw_series, Mapping):
            raise SchemaMismatchError(f"Invalid data format: {series_key!r} is not an object", available_keys=available_keys)

        metadata = self._build_metadata(raw_meta, expected_type, symbol_hint, requested_granularity)

        points: dict[str, NormalizedSeriesPoint] = {}
        skipped: list[str] = []
        for key, values in raw_series.items():
            point = self._build_point(str(key), values, expected_type)
            if point is None:
                skipped.append(str(key))
            else:
                points[str(key)] = point

        result = NormalizationResult(series=NormalizedSeries(metadata=metadata, points=points), skipped_keys=skipped)
        if skipped:
            self._metrics.record_skipped(expected_type.value, len(skipped))
            logger.bind(symbol=metadata.symbol, error_code="PARTIAL_RECORD_LOSS").warning(
                f"Dropped {len(skipped)} of {result.total} {expected_type.value} entries for {metadata.symbol}"
            )
        logger.debug(f"Normalized {len(points)} {expected_type.value} entries for {metadata.symbol}")
        return result

    def _build_metadata(
        self,
        raw_meta: Mapping[str, Any],
        data_type: DataType,
        symbol_hint: str,
        requested_granularity: Granularity | str | None,
    ) -> SeriesMetadata:
        resolve = self.metadata_resolver.resolve

        granularity: Granularity | None = None
        if data_type is DataType.INTRADAY:
            granularity = Granularity.parse(resolve(raw_meta, "interval")) or Granularity.parse(requested_granularity)
            if granularity is None:
                raise SchemaMismatchError("Invalid intraday data: no interval in payload or request")

        default_information = DEFAULT_INFORMATION.get(
            data_type, f"Intraday ({granularity.value if granularity else ''}) open, high, low, close prices and volume"
        )
        try:
            return SeriesMetadata(
                information=str(resolve(raw_meta, "information", default_information)),
                symbol=str(resolve(raw_meta, "symbol", symbol_hint) or ""),
                data_type=data_type,
                granularity=granularity,
                last_refreshed=str(resolve(raw_meta, "last_refreshed") or datetime.now(UTC).isoformat()),
                output_size=OutputSize.parse(resolve(raw_meta, "output_size")),
                time_zone=str(resolve(raw_meta, "time_zone", DEFAULT_TIME_ZONE)),
            )
        except ValidationError as exc:
            raise SchemaMismatchError(f"Invalid metadata: {exc.errors()[0].get('msg', exc)}") from exc

    def _build_point(self, key: str, values: Any, data_type: DataType) -> NormalizedSeriesPoint | None:
        if not isinstance(values, Mapping):
            logger.debug(f"Skipping invalid time series entry for {key}: not an object")
            return None
        if not key_matches_resolution(key, data_type):
            logger.debug(f"Skipping time series entry with unexpected key shape for {data_type.value}: {key!r}")
            return None

        resolve = self.point_resolver.resolve
        raw = {name: resolve(values, name) for name in OHLCV_FIELDS}
        prices = {name: parse_number(raw[name]) for name in ("open", "high", "low", "close")}
        volume = parse_volume(raw["volume"])
        if volume is None or any(value is None for value in prices.values()):
            logger.debug(f"Skipping time series entry for {key}: unparsable OHLCV values {raw}")
            return None

        fields: dict[str, Any] = {**prices, "volume": volume}
        if data_type is DataType.INTRADAY:
            fields["source_text"] = {name: str(raw[name]).strip() for name in OHLCV_FIELDS}
        else:
            fields["adjusted_close"] = parse_number(resolve(values, "adjusted_close"))
            dividend = parse_number(resolve(values, "dividend_amount"))
            split = parse_number(resolve(values, "split_coefficient"))
            fields["dividend_amount"] = 0.0 if dividend is None else dividend
            fields["split_coefficient"] = 1.0 if split is None else split

        try:
            return NormalizedSeriesPoint(**fields)
        except ValidationError as exc:
            logger.debug(f"Skipping time series entry for {key}: {exc.errors()[0].get('msg', exc)}")
            return None


__all__ = [
    "DATE_KEY_FORMAT",
    "DEFAULT_INFORMATION",
    "INTRADAY_KEY_FORMATS",
    "METADATA_SPELLINGS",
    "POINT_SPELLINGS",
    "FieldResolver",
    "ResponseNormalizer",
    "key_matches_resolution",
    "locate_keys",
    "parse_number",
    "parse_volume",
]
