"""``slimforge init``: write a starter ``.slimforge.toml``."""

from __future__ import annotations

from pathlib import Path

import typer

from slimforge.cli.support import cli_errors, console
from slimforge.config import settings
from slimforge.core.config_mutator import resolve_profile
from slimforge.core.project_config import write_default_project_config

DEFAULT_MAX_KB = 1000
DEFAULT_WARN_KB = 800
DEFAULT_TARGET_KB = 500


def init_cmd(
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-C",
        help="Project root.",
    ),
    profile: str = typer.Option(
        None,
        "--profile",
        "-p",
        help="Profile to record in the config.",
    ),
    max_kb: int = typer.Option(DEFAULT_MAX_KB, "--max-kb", help="Hard size limit (KB)."),
    warn_kb: int = typer.Option(
        None,
        "--warn-kb",
        help=f"Warning threshold (KB). Defaults to {DEFAULT_WARN_KB}, capped at --max-kb.",
    ),
    target_kb: int = typer.Option(
        None,
        "--target-kb",
        help=f"Target size (KB). Defaults to {DEFAULT_TARGET_KB}, capped at the warning threshold.",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config."),
) -> None:
    """Create .slimforge.toml with a profile and size budget."""
    with cli_errors():
        name = resolve_profile(profile or settings.default_profile).name
        # An unspecified tier never exceeds the tier above it.
        if warn_kb is None:
            warn_kb = min(DEFAULT_WARN_KB, max_kb)
        if target_kb is None:
            target_kb = min(DEFAULT_TARGET_KB, warn_kb)
        path = write_default_project_config(
            Path(project) / settings.project_config_name,
            profile=name,
            target_kb=target_kb,
            warn_kb=warn_kb,
            max_kb=max_kb,
            overwrite=force,
        )
    console.print(f"[green]Wrote[/green] {path}")
