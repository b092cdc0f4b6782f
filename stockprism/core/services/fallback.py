"""Synthetic intraday series served when the upstream cannot answer."""

from __future__ import annotations

import random
import zlib
from datetime import datetime, timedelta

from stockprism.core.logging import get_logger
from stockprism.core.models import (
    DataType,
    Granularity,
    NormalizedSeries,
    NormalizedSeriesPoint,
    OutputSize,
    SeriesMetadata,
)

logger = get_logger(__name__)

INTRADAY_KEY_FORMAT = "%Y-%m-%d %H:%M:%S"


class FallbackSupplier:
    """Deterministic synthetic intraday data.

    The base price comes from a CRC32 of the symbol and the random walk is
    seeded from ``symbol:granularity``. Timestamps walk back from an anchor
    fixed at construction, so repeated calls on one supplier return identical
    series.
    """

    def __init__(self, points: int = 100, anchor: datetime | None = None) -> None:
        if points < 1:
            raise ValueError("points must be positive")
        self.points = points
        self.anchor = (anchor or datetime.now()).replace(second=0, microsecond=0)

    @staticmethod
    def base_price(symbol: str) -> float:
        """Stable starting price between 50 and 500."""
        return round(50 + (zlib.crc32(symbol.encode("utf-8")) % 45_000) / 100, 2)

    def _aligned_anchor(self, granularity: Granularity) -> datetime:
        step_minutes = int(granularity.step.total_seconds() // 60)
        minute_of_day = self.anchor.hour * 60 + self.anchor.minute
        return self.anchor - timedelta(minutes=minute_of_day % step_minutes)

    def synthetic_series(self, symbol: str, granularity: Granularity | str) -> NormalizedSeries:
        """Build a synthetic series for ``symbol`` at ``granularity``."""
        granularity = Granularity(granularity)
        symbol = symbol.strip().upper()
        rng = random.Random(f"{symbol}:{granularity.value}")
        end = self._aligned_anchor(granularity)

        price = self.base_price(symbol)
        points: dict[str, NormalizedSeriesPoint] = {}
        for index in range(self.points):
            timestamp = end - granularity.step * index
            open_ = round(price, 4)
            close = round(max(0.01, open_ * (1 + rng.uniform(-0.01, 0.01))), 4)
            high = round(max(open_, close) * (1 + rng.uniform(0, 0.005)), 4)
            low = round(min(open_, close) * (1 - rng.uniform(0, 0.005)), 4)
            volume = rng.randint(1_000, 100_000)
            points[timestamp.strftime(INTRADAY_KEY_FORMAT)] = NormalizedSeriesPoint(
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=volume,
                source_text={
                    "open": f"{open_:.4f}",
                    "high": f"{high:.4f}",
                    "low": f"{low:.4f}",
                    "close": f"{close:.4f}",
                    "volume": str(volume),
                },
            )
            price = close

        metadata = SeriesMetadata(
            information=f"Intraday ({granularity.value}) open, high, low, close prices and volume (synthetic)",
            symbol=symbol,
            data_type=DataType.INTRADAY,
            granularity=granularity,
            last_refreshed=end.strftime(INTRADAY_KEY_FORMAT),
            output_size=OutputSize.COMPACT,
        )
        logger.bind(symbol=symbol).info(f"Generated {len(points)} synthetic {granularity.value} points for {symbol}")
        return NormalizedSeries(metadata=metadata, points=points, synthetic=True)


__all__ = ["FallbackSupplier"]
