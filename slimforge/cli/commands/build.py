"""``slimforge build``: profile, pipeline, measurement, budget, history.

Exits 1 when the pipeline aborts or the artifact is over budget.
"""

from __future__ import annotations

from pathlib import Path

import typer

from slimforge.cli.support import cli_errors, console
from slimforge.core.orchestrator import Orchestrator
from slimforge.report.json_output import JsonReport
from slimforge.report.renderer import ReportRenderer


def build_cmd(
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-C",
        help="Project root containing Cargo.toml.",
    ),
    profile: str = typer.Option(
        None,
        "--profile",
        "-p",
        help="Profile to apply before building. Defaults to the project's.",
    ),
    apply_profile: bool = typer.Option(
        True,
        "--apply/--no-apply",
        help="Apply the optimization profile before building.",
    ),
    record: bool = typer.Option(
        True,
        "--record/--no-record",
        help="Record the measured size in the build history.",
    ),
    tag: str = typer.Option(
        None,
        "--tag",
        help="Version tag stored with the history entry.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit a JSON report instead of formatted output.",
    ),
) -> None:
    """Run the full size-governed WASM build."""
    with cli_errors():
        orchestrator = Orchestrator(project)
        if not json_output:
            console.print(
                f"[bold]Building[/bold] {orchestrator.project_root} "
                f"with profile [cyan]{profile or orchestrator.profile_name}[/cyan]"
            )
        outcome = orchestrator.build(
            profile=profile,
            apply_profile=apply_profile,
            record=record,
            version_tag=tag,
        )

    if json_output:
        console.print_json(JsonReport.from_outcome(outcome).to_json())
    else:
        ReportRenderer(console=console).print_outcome(outcome)
    raise typer.Exit(code=outcome.exit_code)
