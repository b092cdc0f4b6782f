"""The ``stockprism`` console command."""

from __future__ import annotations

from pathlib import Path

import typer
from dotenv import load_dotenv

from stockprism.cli.formatters import FORMATTERS, create_formatter
from stockprism.cli.series import register as register_series_commands
from stockprism.cli.utils import CLIOptions
from stockprism.core.logging import configure_logging


def _root(
    ctx: typer.Context,
    format: str = typer.Option("table", "--format", "-f", help=f"Output format ({' or '.join(FORMATTERS)})."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write results to this file instead of stdout."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Threshold for JSON log lines on stderr."),
    no_color: bool = typer.Option(False, "--no-color", help="Plain table output."),
) -> None:
    options = CLIOptions(format=format.strip().lower(), output_path=output, no_color=no_color)
    try:
        create_formatter(options.format, no_color=no_color)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--format") from exc
    ctx.obj = options
    try:
        configure_logging(level=log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc


def _serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default STOCKPRISM_HOST or 0.0.0.0)."),
    port: int | None = typer.Option(None, "--port", help="Port (default STOCKPRISM_PORT or 8000)."),
    reload: bool | None = typer.Option(
        None, "--reload/--no-reload", help="Reload on code changes (default STOCKPRISM_RELOAD)."
    ),
) -> None:
    """Run the HTTP API."""
    from stockprism.web.main import serve

    serve(host=host, port=port, reload=reload)


def create_app() -> typer.Typer:
    cli = typer.Typer(add_completion=False, help="Alpha Vantage time series: fetch, store and inspect.")
    cli.callback()(_root)
    cli.command("serve")(_serve)
    register_series_commands(cli)
    return cli


app = create_app()


def run() -> None:
    load_dotenv()
    app()


if __name__ == "__main__":
    run()
