"""Main Typer application: imports and registers all CLI commands.

Entry point: ``slimforge`` (configured via pyproject.toml scripts).

Commands: init, apply, build, check, history, backups, restore, profiles.
"""

from __future__ import annotations

import typer

from slimforge import __version__
from slimforge.cli.commands.apply import apply_cmd
from slimforge.cli.commands.backups import backups_cmd, restore_cmd
from slimforge.cli.commands.build import build_cmd
from slimforge.cli.commands.check import check_cmd
from slimforge.cli.commands.history import history_cmd
from slimforge.cli.commands.init import init_cmd
from slimforge.cli.commands.profiles import profiles_cmd
from slimforge.cli.support import configure_logging

app = typer.Typer(
    name="slimforge",
    help="slimforge: size-governed WebAssembly build orchestration.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def root(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    log_level: str = typer.Option(
        None, "--log-level", help="Log level (overrides SLIMFORGE_LOG_LEVEL)."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Print the version and exit.",
        callback=_print_version,
        is_eager=True,
    ),
) -> None:
    configure_logging("DEBUG" if verbose else log_level)


# Register subcommands
app.command(name="init", help="Write a starter .slimforge.toml.")(init_cmd)
app.command(name="apply", help="Apply an optimization profile to Cargo.toml.")(apply_cmd)
app.command(name="build", help="Run the full size-governed WASM build.")(build_cmd)
app.command(name="check", help="Check an artifact against the size budget.")(check_cmd)
app.command(name="history", help="Show or clear the build size history.")(history_cmd)
app.command(name="backups", help="List Cargo.toml backups.")(backups_cmd)
app.command(name="restore", help="Restore a file from a backup.")(restore_cmd)
app.command(name="profiles", help="List optimization profiles.")(profiles_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
