"""Market-related enums and types."""

from datetime import timedelta
from enum import Enum


class DataType(str, Enum):
    """Series data type."""

    DAILY = "daily"
    INTRADAY = "intraday"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def is_point_series(self) -> bool:
        """Date-keyed series persisted point by point."""
        return self is not DataType.INTRADAY


class Granularity(str, Enum):
    """Intraday sampling interval."""

    MINUTE_1 = "1min"
    MINUTE_5 = "5min"
    MINUTE_15 = "15min"
    MINUTE_30 = "30min"
    MINUTE_60 = "60min"

    @property
    def step(self) -> timedelta:
        return timedelta(minutes=int(self.value.removesuffix("min")))

    @classmethod
    def parse(cls, value: object) -> "Granularity | None":
        """Return the matching granularity or None for unknown values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class OutputSize(str, Enum):
    """Upstream output size."""

    COMPACT = "compact"
    FULL = "full"

    @classmethod
    def parse(cls, value: object, default: "OutputSize | None" = None) -> "OutputSize":
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip():
            # upstream spells the full size as "Full size"
            leading = value.strip().lower().split()[0]
            for size in cls:
                if leading == size.value:
                    return size
        return default or cls.COMPACT


class FunctionKind(str, Enum):
    """Alpha Vantage time-series functions."""

    INTRADAY = "TIME_SERIES_INTRADAY"
    DAILY = "TIME_SERIES_DAILY"
    WEEKLY = "TIME_SERIES_WEEKLY"
    MONTHLY = "TIME_SERIES_MONTHLY"

    @property
    def data_type(self) -> DataType:
        return _FUNCTION_DATA_TYPES[self]

    @classmethod
    def for_data_type(cls, data_type: DataType) -> "FunctionKind":
        for kind, mapped in _FUNCTION_DATA_TYPES.items():
            if mapped is data_type:
                return kind
        raise ValueError(f"No upstream function for data type {data_type!r}")


_FUNCTION_DATA_TYPES = {
    FunctionKind.INTRADAY: DataType.INTRADAY,
    FunctionKind.DAILY: DataType.DAILY,
    FunctionKind.WEEKLY: DataType.WEEKLY,
    FunctionKind.MONTHLY: DataType.MONTHLY,
}
