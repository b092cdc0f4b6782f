"""Database table definitions and initialisation."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SNAPSHOTS_TABLE = "series_snapshots"
POINTS_TABLE = "series_points"

_CREATE_SNAPSHOTS = f"""
    CREATE TABLE IF NOT EXISTS {SNAPSHOTS_TABLE} (
        symbol VARCHAR NOT NULL,
        data_type VARCHAR NOT NULL,
        granularity VARCHAR NOT NULL,
        last_refreshed VARCHAR NOT NULL,
        information VARCHAR,
        output_size VARCHAR DEFAULT 'compact',
        time_zone VARCHAR DEFAULT 'US/Eastern',
        time_series VARCHAR NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (symbol, data_type, granularity)
    )
"""

_CREATE_POINTS = f"""
    CREATE TABLE IF NOT EXISTS {POINTS_TABLE} (
        symbol VARCHAR NOT NULL,
        data_type VARCHAR NOT NULL,
        trade_date DATE NOT NULL,
        open DOUBLE NOT NULL,
        high DOUBLE NOT NULL,
        low DOUBLE NOT NULL,
        close DOUBLE NOT NULL,
        volume BIGINT NOT NULL,
        adjusted_close DOUBLE,
        dividend_amount DOUBLE DEFAULT 0,
        split_coefficient DOUBLE DEFAULT 1,
        last_refreshed VARCHAR,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (symbol, data_type, trade_date)
    )
"""


def setup_database(conn: DuckDBPyConnection) -> DuckDBPyConnection:
    """Create all tables on ``conn`` if they do not exist yet."""
    conn.execute(_CREATE_SNAPSHOTS)
    conn.execute(_CREATE_POINTS)
    return conn


def open_connection(db_path: str = ":memory:", threads: int = 1) -> DuckDBPyConnection:
    """Connect to ``db_path``, creating its directory, and ensure the tables exist."""
    if db_path != ":memory:":
        Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        db_path = str(Path(db_path).expanduser())
    conn = duckdb.connect(database=db_path)
    conn.execute(f"SET threads={int(threads)}")
    return setup_database(conn)


__all__ = ["POINTS_TABLE", "SNAPSHOTS_TABLE", "open_connection", "setup_database"]
