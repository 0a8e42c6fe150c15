"""``slimforge apply``: apply an optimization profile to Cargo.toml.

The file is backed up first and restored automatically if the edit fails.
``--dry-run`` shows the unified diff without writing.
"""

from __future__ import annotations

from pathlib import Path

import typer

from slimforge.cli.support import cli_errors, console
from slimforge.core.orchestrator import Orchestrator
from slimforge.report.renderer import ReportRenderer


def apply_cmd(
    profile: str = typer.Option(
        None,
        "--profile",
        "-p",
        help="Profile name (minimal, balanced, aggressive). Defaults to the project's.",
    ),
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-C",
        help="Project root containing Cargo.toml.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show the changes without writing Cargo.toml.",
    ),
) -> None:
    """Apply an optimization profile to the project's Cargo.toml."""
    renderer = ReportRenderer(console=console)
    with cli_errors():
        result = Orchestrator(project).apply(profile, dry_run=dry_run)

    console.print(renderer.render_mutation(result))
    if result.dry_run:
        console.print("[dim]Dry run: Cargo.toml was not modified.[/dim]")
    elif not result.written:
        console.print("[green]Nothing to change.[/green]")
