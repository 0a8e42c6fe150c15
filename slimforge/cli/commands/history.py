"""``slimforge history``: show or clear recorded build sizes."""

from __future__ import annotations

from pathlib import Path

import typer

from slimforge.cli.support import cli_errors, console
from slimforge.core.orchestrator import Orchestrator
from slimforge.report.renderer import ReportRenderer


def history_cmd(
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-C",
        help="Project root.",
    ),
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        min=0,
        help="Show only the most recent N entries (0 for all).",
    ),
    clear: bool = typer.Option(
        False,
        "--clear",
        help="Delete every history entry.",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation when clearing.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit the entries as JSON.",
    ),
) -> None:
    """Show the recorded build size history, oldest first."""
    with cli_errors():
        ledger = Orchestrator(project).ledger
        if clear:
            if not yes:
                typer.confirm(f"Delete all history in {ledger.path}?", abort=True)
            removed = ledger.reset()
            console.print(f"[green]Cleared {removed} history entries.[/green]")
            return
        entries = ledger.entries()

    shown = entries[-limit:] if limit else entries
    if json_output:
        console.print_json(
            "[" + ",".join(entry.model_dump_json() for entry in shown) + "]"
        )
        return
    if not entries:
        console.print("[dim]No builds recorded yet.[/dim]")
        return
    console.print(ReportRenderer(console=console).render_history(shown))
    if len(shown) < len(entries):
        console.print(f"[dim]Showing {len(shown)} of {len(entries)} entries.[/dim]")
