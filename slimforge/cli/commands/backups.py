"""``slimforge backups`` and ``slimforge restore``: inspect and roll back.

Backups are never deleted by slimforge; restore copies a snapshot back over
the original file.
"""

from __future__ import annotations

from pathlib import Path

import typer

from slimforge.cli.support import EXIT_FAILURE, EXIT_USAGE, cli_errors, console
from slimforge.core.orchestrator import Orchestrator
from slimforge.report.renderer import ReportRenderer


def backups_cmd(
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-C",
        help="Project root.",
    ),
    file: Path = typer.Option(
        None,
        "--file",
        "-f",
        help="Only list backups of this file (or files beneath this directory).",
    ),
    verify: bool = typer.Option(
        False,
        "--verify",
        help="Re-hash each backup and report any that no longer match.",
    ),
) -> None:
    """List backups, newest first."""
    with cli_errors():
        orchestrator = Orchestrator(project)
        store = orchestrator.backup_store
        records = store.list(_in_project(orchestrator, file))

    if not records:
        console.print("[dim]No backups found.[/dim]")
        return
    console.print(ReportRenderer(console=console).render_backups(records))

    if verify:
        corrupt = [r for r in records if not store.verify(r)]
        if corrupt:
            for record in corrupt:
                console.print(f"[bold red]Corrupt:[/bold red] {record.backup_path}")
            raise typer.Exit(code=EXIT_FAILURE)
        console.print(f"[green]All {len(records)} backups verified.[/green]")


def restore_cmd(
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-C",
        help="Project root.",
    ),
    file: Path = typer.Option(
        None,
        "--file",
        "-f",
        help="File to restore. Defaults to the project's Cargo.toml.",
    ),
    backup_id: str = typer.Option(
        None,
        "--id",
        help="Unique id of the backup to restore. Defaults to the newest.",
    ),
) -> None:
    """Restore a file from one of its backups."""
    with cli_errors():
        orchestrator = Orchestrator(project)
        target = _in_project(orchestrator, file) or orchestrator.cargo_toml
        records = orchestrator.backup_store.list(target)
        if backup_id is not None:
            records = [r for r in records if r.unique_id == backup_id]
        if not records:
            console.print(f"[bold red]No matching backup for[/bold red] {target}")
            raise typer.Exit(code=EXIT_USAGE)
        record = records[0]
        orchestrator.backup_store.restore(record)

    console.print(
        f"[green]Restored[/green] {record.original_path} "
        f"[dim]from {record.backup_path.name}[/dim]"
    )


def _in_project(orchestrator: Orchestrator, file: Path | None) -> Path | None:
    """Resolve a relative ``--file`` against ``--project``, not the cwd."""
    if file is None:
        return None
    return file if file.is_absolute() else orchestrator.project_root / file
