"""
stockprism - Alpha Vantage time-series service.

Fetches intraday, daily, weekly and monthly stock series, normalizes the
provider's inconsistent payloads and keeps the latest data in DuckDB.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
