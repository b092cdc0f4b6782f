"""Canonical series models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stockprism.core.exceptions import PartialRecordLoss
from stockprism.core.models.market import DataType, Granularity, OutputSize

OHLCV_FIELDS = ("open", "high", "low", "close", "volume")

DEFAULT_TIME_ZONE = "US/Eastern"


class NormalizedSeriesPoint(BaseModel):
    """One timestamped observation."""

    model_config = ConfigDict(populate_by_name=True)

    open: float
    high: float
    low: float
    close: float
    volume: int = Field(ge=0)
    adjusted_close: float | None = Field(default=None, alias="adjustedClose")
    dividend_amount: float = Field(default=0.0, alias="dividendAmount")
    split_coefficient: float = Field(default=1.0, alias="splitCoefficient")
    # provider text for OHLCV, kept so intraday output preserves original precision
    source_text: dict[str, str] = Field(default_factory=dict, exclude=True, repr=False)

    @field_validator("open", "high", "low", "close", "adjusted_close", "dividend_amount", "split_coefficient")
    @classmethod
    def _finite(cls, value: float | None) -> float | None:
        if value is not None and not math.isfinite(value):
            raise ValueError("value must be a finite number")
        return value

    @model_validator(mode="after")
    def _default_adjusted_close(self) -> NormalizedSeriesPoint:
        if self.adjusted_close is None:
            self.adjusted_close = self.close
        return self

    def ohlcv_text(self) -> dict[str, str]:
        """OHLCV values as strings, preferring the provider's original text."""
        return {name: self.source_text.get(name) or _format_number(getattr(self, name)) for name in OHLCV_FIELDS}


def _format_number(value: float | int) -> str:
    return repr(value) if isinstance(value, float) else str(value)


class SeriesMetadata(BaseModel):
    """Series level metadata."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    information: str = ""
    symbol: str
    data_type: DataType = Field(alias="dataType")
    granularity: Granularity | None = Field(default=None, alias="interval")
    last_refreshed: str = Field(alias="lastRefreshed")
    output_size: OutputSize = Field(default=OutputSize.COMPACT, alias="outputSize")
    time_zone: str = Field(default=DEFAULT_TIME_ZONE, alias="timeZone")

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("symbol must be a non-empty string")
        return value

    @model_validator(mode="after")
    def _granularity_required_for_intraday(self) -> SeriesMetadata:
        if self.data_type is DataType.INTRADAY and self.granularity is None:
            raise ValueError("intraday metadata requires a granularity")
        return self


class NormalizedSeries(BaseModel):
    """Metadata plus timestamp-keyed points."""

    model_config = ConfigDict(populate_by_name=True)

    metadata: SeriesMetadata = Field(alias="metaData")
    points: dict[str, NormalizedSeriesPoint] = Field(default_factory=dict, alias="timeSeries")
    synthetic: bool = False

    @property
    def data_type(self) -> DataType:
        return self.metadata.data_type

    def to_payload(self) -> dict[str, Any]:
        """JSON-serializable ``{"metaData", "timeSeries"}`` structure."""
        meta = self.metadata.model_dump(mode="json", by_alias=True)
        if self.metadata.granularity is None:
            meta.pop("interval", None)
        if self.data_type is DataType.INTRADAY:
            time_series: dict[str, Any] = {key: point.ohlcv_text() for key, point in self.points.items()}
        else:
            time_series = {key: point.model_dump(mode="json", by_alias=True) for key, point in self.points.items()}
        payload: dict[str, Any] = {"metaData": meta, "timeSeries": time_series}
        if self.synthetic:
            payload["synthetic"] = True
        return payload


@dataclass(slots=True)
class NormalizationResult:
    """Normalized series plus the keys that were dropped while parsing."""

    series: NormalizedSeries
    skipped_keys: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.skipped_keys)

    @property
    def total(self) -> int:
        return len(self.series.points) + self.skipped

    def partial_loss(self) -> PartialRecordLoss | None:
        """Non-fatal loss report, or None when every entry survived."""
        if not self.skipped_keys:
            return None
        return PartialRecordLoss(self.series.metadata.symbol, list(self.skipped_keys), self.total)
