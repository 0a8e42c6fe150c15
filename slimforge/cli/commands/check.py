"""``slimforge check``: size budget gate for CI.

Exit codes: 0 unless the artifact is over budget, then 1. Configuration
mistakes exit 2.
"""

from __future__ import annotations

from pathlib import Path

import typer

from slimforge.cli.support import cli_errors, console
from slimforge.core.budget import load_budget
from slimforge.core.orchestrator import Orchestrator
from slimforge.report.json_output import JsonReport
from slimforge.report.renderer import ReportRenderer


def check_cmd(
    artifact: Path = typer.Argument(
        None,
        help="Artifact to measure. Defaults to the project's wasm-bindgen output.",
    ),
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-C",
        help="Project root containing .slimforge.toml.",
    ),
    max_kb: float = typer.Option(None, "--max-kb", help="Override the hard size limit (KB)."),
    warn_kb: float = typer.Option(None, "--warn-kb", help="Override the warning threshold (KB)."),
    target_kb: float = typer.Option(None, "--target-kb", help="Override the target size (KB)."),
    record: bool = typer.Option(
        False,
        "--record",
        help="Record the measured size in the build history.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit a JSON report instead of formatted output.",
    ),
) -> None:
    """Measure an artifact and check it against the size budget."""
    with cli_errors():
        orchestrator = Orchestrator(project)
        budget = orchestrator.budget
        overrides = {
            "max_kb": max_kb,
            "warn_threshold_kb": warn_kb,
            "target_kb": target_kb,
        }
        if any(value is not None for value in overrides.values()):
            base = budget.model_dump() if budget is not None else {}
            if budget is None:
                # A lone --max-kb means "fail above this", with no softer tiers.
                limit = max_kb if max_kb is not None else max(
                    v for v in overrides.values() if v is not None
                )
                base = {"max_kb": limit, "warn_threshold_kb": limit, "target_kb": limit}
            base.update({k: v for k, v in overrides.items() if v is not None})
            budget = load_budget(base)

        outcome = orchestrator.check(artifact, budget=budget, record=record)

    if json_output:
        console.print_json(JsonReport.from_outcome(outcome).to_json())
    else:
        renderer = ReportRenderer(console=console)
        renderer.print_outcome(outcome)
        if outcome.budget is None:
            console.print("[dim]No size budget configured; nothing to enforce.[/dim]")
    raise typer.Exit(code=outcome.exit_code)
