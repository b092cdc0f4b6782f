#!/usr/bin/env python3
"""
stockprism launcher.

``python main.py web`` runs the HTTP API; ``python main.py library SYMBOL``
fetches one intraday series through the service and prints a summary.
"""

import argparse
import asyncio

from dotenv import load_dotenv
from loguru import logger

from stockprism.core.config import ConfigManager
from stockprism.core.exceptions import StockPrismError
from stockprism.core.logging import configure_logging


def run_web_service() -> None:
    """Run the web service."""
    from stockprism.web.main import serve

    serve()


def run_library_mode(symbol: str) -> None:
    """Fetch one intraday series through the library API."""
    from stockprism.core.services import StockDataService

    async def example() -> None:
        service = StockDataService.from_config(ConfigManager().get_config())
        try:
            result = await service.get_intraday(symbol)
            source = f"synthetic ({result.fallback_reason})" if result.is_fallback else "upstream"
            logger.info(f"Fetched {len(result.series.points)} {symbol} points from {source}")
        finally:
            await service.close()

    try:
        asyncio.run(example())
    except StockPrismError as e:
        logger.error(f"Failed to fetch {symbol}: {e.message}")


def main() -> None:
    """Entry point."""
    load_dotenv()
    configure_logging(level="INFO")

    parser = argparse.ArgumentParser(description="stockprism - Alpha Vantage time-series service")
    parser.add_argument("mode", choices=["web", "library"], help="web (HTTP API) or library (one-off fetch)")
    parser.add_argument("symbol", nargs="?", default="IBM", help="Symbol for library mode")
    args = parser.parse_args()

    logger.info(f"Starting stockprism in {args.mode} mode")
    if args.mode == "web":
        run_web_service()
    else:
        run_library_mode(args.symbol)


if __name__ == "__main__":
    main()
