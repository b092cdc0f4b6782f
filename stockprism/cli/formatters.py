"""Output formatters for CLI commands."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, TextIO

from rich.box import SIMPLE
from rich.console import Console
from rich.table import Table

from stockprism.core.models import DataType, NormalizedSeries

INTRADAY_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]
POINT_COLUMNS = [
    "date",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "adjustedClose",
    "dividendAmount",
    "splitCoefficient",
]


def series_columns(series: NormalizedSeries) -> list[str]:
    return INTRADAY_COLUMNS if series.data_type is DataType.INTRADAY else POINT_COLUMNS


def series_to_rows(series: NormalizedSeries) -> list[dict[str, Any]]:
    """Flatten a series into one row per timestamp, in series order."""
    key_column = series_columns(series)[0]
    rows = []
    for key, values in series.to_payload()["timeSeries"].items():
        rows.append({key_column: key, **values})
    return rows


class OutputFormatter:
    """Base class for CLI output formatters."""

    name: str

    def render(
        self,
        rows: Sequence[Mapping[str, object]],
        *,
        stream: TextIO,
        columns: Sequence[str] | None = None,
        title: str | None = None,
    ) -> None:
        raise NotImplementedError


@dataclass(slots=True)
class TableFormatter(OutputFormatter):
    """Rich table, one row per point."""

    name: str = "table"
    no_color: bool = False

    def render(
        self,
        rows: Sequence[Mapping[str, object]],
        *,
        stream: TextIO,
        columns: Sequence[str] | None = None,
        title: str | None = None,
    ) -> None:
        console = Console(file=stream, color_system=None if self.no_color else "auto", no_color=self.no_color)
        resolved = list(columns) if columns else list(rows[0].keys()) if rows else []

        table = Table(box=SIMPLE, title=title, show_lines=False)
        for column in resolved:
            numeric = column not in ("timestamp", "date")
            table.add_column(column, header_style="" if self.no_color else "bold", justify="right" if numeric else "left")
        for row in rows:
            table.add_row(*("-" if row.get(column) is None else str(row.get(column)) for column in resolved))

        if resolved:
            console.print(table)
        if not rows:
            console.print("No data available.")


@dataclass(slots=True)
class JSONLFormatter(OutputFormatter):
    """JSON Lines, one object per point."""

    name: str = "jsonl"

    def render(
        self,
        rows: Sequence[Mapping[str, object]],
        *,
        stream: TextIO,
        columns: Sequence[str] | None = None,
        title: str | None = None,
    ) -> None:
        for row in rows:
            selected = {column: row.get(column) for column in columns} if columns else dict(row)
            stream.write(json.dumps(selected, ensure_ascii=False, default=str))
            stream.write("\n")
        stream.flush()


FORMATTERS = ("table", "jsonl")


def create_formatter(name: str, *, no_color: bool = False) -> OutputFormatter:
    """Instantiate a formatter by name."""

    normalized = name.strip().lower()
    if normalized == "table":
        return TableFormatter(no_color=no_color)
    if normalized == "jsonl":
        return JSONLFormatter()
    raise ValueError(f"Unsupported format '{name}'. Available formats: {', '.join(FORMATTERS)}.")


__all__ = [
    "JSONLFormatter",
    "OutputFormatter",
    "TableFormatter",
    "create_formatter",
    "series_columns",
    "series_to_rows",
]
