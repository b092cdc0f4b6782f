"""Output streams, error reporting and exit codes for CLI commands."""

from __future__ import annotations

import json
import sys
from collections.abc import Mapping
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

import typer

from stockprism.cli.formatters import OutputFormatter, create_formatter
from stockprism.core.exceptions import ConfigError, SchemaMismatchError, StockPrismError, UpstreamError

SYSTEM_EXIT_CODE = 1
VALIDATION_EXIT_CODE = 2
UPSTREAM_EXIT_CODE = 3
CONFIG_EXIT_CODE = 4
NOT_FOUND_EXIT_CODE = 5

_EXIT_CODES: tuple[tuple[type[StockPrismError] | tuple[type[StockPrismError], ...], int], ...] = (
    (ConfigError, CONFIG_EXIT_CODE),
    ((UpstreamError, SchemaMismatchError), UPSTREAM_EXIT_CODE),
)


@dataclass(slots=True)
class CLIOptions:
    """Root options, stored as ``ctx.obj`` for subcommands."""

    format: str = "table"
    output_path: Path | None = None
    no_color: bool = False


def get_cli_options(ctx: typer.Context) -> CLIOptions:
    options = ctx.find_object(CLIOptions)
    return options if options is not None else CLIOptions()


def prepare_output(ctx: typer.Context) -> tuple[OutputFormatter, TextIO, ExitStack]:
    """Formatter and destination for the current command.

    Close the returned stack when done; it owns the ``--output`` file.
    """
    options = get_cli_options(ctx)
    formatter = create_formatter(options.format, no_color=options.no_color)
    stack = ExitStack()
    if options.output_path is None:
        return formatter, sys.stdout, stack
    try:
        stream = stack.enter_context(options.output_path.open("w", encoding="utf-8"))
    except OSError as exc:
        stack.close()
        emit_error(f"cannot write to {options.output_path}: {exc}", "OUTPUT_WRITE_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    return formatter, stream, stack


def emit_error(message: str, code: str, *, details: Mapping[str, Any] | None = None) -> None:
    """Write ``{"code", "message", "details"?}`` as one JSON line on stderr."""
    payload: dict[str, Any] = {"code": code, "message": message}
    if details:
        payload["details"] = {key: _plain(value) for key, value in details.items()}
    typer.echo(json.dumps(payload, ensure_ascii=False), err=True)


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(item) for item in value]
    return str(value)


def exit_code_for(error: StockPrismError) -> int:
    for error_types, code in _EXIT_CODES:
        if isinstance(error, error_types):
            return code
    return SYSTEM_EXIT_CODE


def fail(error: StockPrismError) -> typer.Exit:
    """Report ``error`` on stderr and return the exit to raise."""
    emit_error(error.message, error.error_code.value, details=error.details)
    return typer.Exit(code=exit_code_for(error))


__all__ = [
    "CLIOptions",
    "CONFIG_EXIT_CODE",
    "NOT_FOUND_EXIT_CODE",
    "SYSTEM_EXIT_CODE",
    "UPSTREAM_EXIT_CODE",
    "VALIDATION_EXIT_CODE",
    "emit_error",
    "exit_code_for",
    "fail",
    "get_cli_options",
    "prepare_output",
]
