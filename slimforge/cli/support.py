"""Shared plumbing for CLI commands: console, logging setup, error exits."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.logging import RichHandler

from slimforge.config import settings
from slimforge.core.errors import ConfigParseError, SlimforgeError, UserError

console = Console()
err_console = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_USAGE = 2


def configure_logging(level: str | None = None) -> None:
    """Route slimforge logging through Rich on stderr."""
    resolved = (level or settings.log_level).upper()
    root = logging.getLogger("slimforge")
    root.handlers.clear()
    handler = RichHandler(console=err_console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(resolved)
    root.propagate = False


def exit_code_for(exc: SlimforgeError) -> int:
    """User and configuration mistakes exit 2; tool and storage failures exit 1."""
    if isinstance(exc, (UserError, ConfigParseError)):
        return EXIT_USAGE
    return EXIT_FAILURE


@contextmanager
def cli_errors() -> Iterator[None]:
    """Print ``SlimforgeError`` with Rich and exit with the mapped code."""
    try:
        yield
    except SlimforgeError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}", highlight=False)
        raise typer.Exit(code=exit_code_for(exc)) from exc
