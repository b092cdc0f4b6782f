"""Command line interface for stockprism."""

from stockprism.cli.main import app, create_app

__all__ = ["app", "create_app"]
