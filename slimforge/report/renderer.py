"""Rich terminal renderer for slimforge results.

Turns structured results into Rich renderables. Nothing here computes a
classification; it only colours what the core produced.

Color scheme
------------
- green     : SUCCEEDED / under target / within budget
- yellow    : warning tier, optional-stage failure
- red       : FAILED / over budget / regression
- dim       : PENDING / SKIPPED
"""

from __future__ import annotations

import math

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from slimforge.models.backups import BackupRecord
from slimforge.models.metrics import (
    BudgetResult,
    BudgetStatus,
    HistoryEntry,
    OptimizationMetrics,
    RegressionResult,
    format_bytes,
)
from slimforge.models.mutation import MutationResult
from slimforge.models.outcome import BuildOutcome
from slimforge.models.pipeline import PipelineReport, StageState
from slimforge.models.profiles import OptimizationProfile

# ---------------------------------------------------------------------------
# State -> Rich style mapping
# ---------------------------------------------------------------------------

_STAGE_LABELS: dict[StageState, str] = {
    StageState.SUCCEEDED: "[green]SUCCEEDED[/green]",
    StageState.FAILED: "[bold red]FAILED[/bold red]",
    StageState.RUNNING: "[yellow]RUNNING[/yellow]",
    StageState.PENDING: "[dim]PENDING[/dim]",
    StageState.SKIPPED: "[dim]SKIPPED[/dim]",
}

_BUDGET_STYLES: dict[BudgetStatus, str] = {
    BudgetStatus.UNDER_TARGET: "green",
    BudgetStatus.ABOVE_TARGET: "green",
    BudgetStatus.WARNING: "yellow",
    BudgetStatus.OVER_BUDGET: "bold red",
}

_BUDGET_TITLES: dict[BudgetStatus, str] = {
    BudgetStatus.UNDER_TARGET: "Under target",
    BudgetStatus.ABOVE_TARGET: "Above target",
    BudgetStatus.WARNING: "Warning",
    BudgetStatus.OVER_BUDGET: "OVER BUDGET",
}


class ReportRenderer:
    """Renders slimforge results as Rich output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Renderables
    # ------------------------------------------------------------------

    def render_pipeline(self, report: PipelineReport) -> Table:
        table = Table(title="Build Pipeline", header_style="bold cyan", expand=False)
        table.add_column("Stage", style="bold")
        table.add_column("State", justify="center")
        table.add_column("Exit", justify="right")
        table.add_column("Time", justify="right")
        table.add_column("Details")

        for result in report.results:
            details = result.cause.value if result.cause else ""
            table.add_row(
                result.stage_name,
                _STAGE_LABELS[result.state],
                "" if result.exit_status is None else str(result.exit_status),
                f"{result.duration_seconds:.1f}s" if result.state != StageState.SKIPPED else "",
                details,
            )
        for name in report.pending_stages:
            table.add_row(name, _STAGE_LABELS[StageState.PENDING], "", "", "not reached")
        return table

    def render_failure_tail(self, report: PipelineReport) -> Panel | None:
        if report.aborted_by is None:
            return None
        tail = report.aborted_by.output_tail() or "(no output captured)"
        return Panel(
            Text(tail),
            title=f"[bold red]{report.aborted_by.stage_name} output[/bold red]",
            border_style="red",
        )

    def render_budget(self, result: BudgetResult) -> Panel:
        style = _BUDGET_STYLES[result.status]
        budget = result.budget
        lines = [
            f"[{style}]{result.size_kb:.2f} KB[/{style}]  {result.message}",
            "",
            _threshold_line("Target", budget.target_kb, result.size_kb <= budget.target_kb),
            _threshold_line(
                "Warning", budget.warn_threshold_kb, result.status is not BudgetStatus.WARNING
            ),
            (
                f"[bold red]Max: {budget.max_kb:g} KB (EXCEEDED)[/bold red]"
                if result.status is BudgetStatus.OVER_BUDGET
                else f"[dim]Max: {budget.max_kb:g} KB[/dim]"
            ),
        ]
        return Panel(
            Text.from_markup("\n".join(lines)),
            title=f"[bold]Size Budget: {_BUDGET_TITLES[result.status]}[/bold]",
            border_style=style.split()[-1],
        )

    def render_regression(self, result: RegressionResult) -> Text:
        if math.isinf(result.delta_percent):
            percent = "new"
        else:
            percent = f"{result.delta_percent:+.1f}%"
        if result.regressed:
            return Text.from_markup(
                f"[bold red]Size regression:[/bold red] {result.previous_kb:.2f} KB -> "
                f"{result.current_kb:.2f} KB ([red]{percent}[/red], "
                f"threshold {result.threshold_percent:g}%)"
            )
        if result.delta_percent < -1.0:
            return Text.from_markup(
                f"[green]Size improvement:[/green] {result.previous_kb:.2f} KB -> "
                f"{result.current_kb:.2f} KB ([green]{percent}[/green])"
            )
        return Text.from_markup(f"[dim]Size stable ({percent})[/dim]")

    def render_optimization(self, metrics: OptimizationMetrics) -> Text:
        before = format_bytes(metrics.before_bytes)
        after = format_bytes(metrics.after_bytes)
        if metrics.reduction_bytes < 0:
            return Text.from_markup(
                f"[yellow]Optimization grew the artifact:[/yellow] {before} -> {after} "
                f"(+{format_bytes(-metrics.reduction_bytes)})"
            )
        return Text.from_markup(
            f"[bold]Optimization:[/bold] {before} -> {after} "
            f"([green]-{metrics.reduction_percent:.1f}%[/green], "
            f"saved {format_bytes(metrics.reduction_bytes)})"
        )

    def render_mutation(self, result: MutationResult) -> Panel:
        if not result.changes:
            body: Text | Group = Text.from_markup(
                f"[dim]{result.target_file.name} already matches profile "
                f"'{result.profile_name}'[/dim]"
            )
        else:
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Key")
            table.add_column("Old", style="dim")
            table.add_column("New", style="green")
            for change in result.changes:
                old = "(unset)" if change.old_value is None else repr(change.old_value)
                table.add_row(change.dotted_path, old, repr(change.new_value))
            body = Group(table, Text(result.diff)) if result.dry_run else table

        if result.dry_run:
            title = f"[bold]Dry run: profile '{result.profile_name}'[/bold]"
        else:
            title = f"[bold]Applied profile '{result.profile_name}'[/bold]"
        subtitle = f"backup: {result.backup.backup_path.name}" if result.backup else None
        return Panel(body, title=title, subtitle=subtitle, border_style="blue")

    def render_history(self, entries: list[HistoryEntry]) -> Table:
        table = Table(title="Build History", header_style="bold cyan")
        table.add_column("#", style="dim", justify="right")
        table.add_column("Timestamp")
        table.add_column("Size", justify="right")
        table.add_column("Delta", justify="right")
        table.add_column("Commit", style="cyan")
        table.add_column("Branch")
        table.add_column("Tag")

        previous: HistoryEntry | None = None
        for index, entry in enumerate(entries, start=1):
            if previous is None:
                delta = ""
            else:
                diff = entry.size_bytes - previous.size_bytes
                colour = "red" if diff > 0 else "green" if diff < 0 else "dim"
                sign = "+" if diff > 0 else "-" if diff < 0 else ""
                delta = f"[{colour}]{sign}{format_bytes(abs(diff))}[/{colour}]"
            table.add_row(
                str(index),
                entry.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"),
                format_bytes(entry.size_bytes),
                delta,
                entry.commit_ref or "",
                entry.branch or "",
                entry.version_tag or "",
            )
            previous = entry
        return table

    def render_backups(self, records: list[BackupRecord]) -> Table:
        table = Table(title="Backups (newest first)", header_style="bold cyan")
        table.add_column("Created")
        table.add_column("Original")
        table.add_column("Backup", style="dim")
        table.add_column("Size", justify="right")
        for record in records:
            table.add_row(
                record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                str(record.original_path),
                record.backup_path.name,
                format_bytes(record.size_bytes),
            )
        return table

    def render_profiles(self, profiles: dict[str, OptimizationProfile], default: str) -> Table:
        table = Table(title="Optimization Profiles", header_style="bold cyan")
        table.add_column("Name", style="bold")
        table.add_column("opt-level", justify="center")
        table.add_column("lto", justify="center")
        table.add_column("wasm-opt flags")
        table.add_column("Description")
        for name, profile in profiles.items():
            label = f"{name} [green](default)[/green]" if name == default else name
            table.add_row(
                label,
                str(profile.opt_level),
                str(profile.lto),
                " ".join(profile.wasm_opt_flags) or "[dim]-[/dim]",
                profile.description,
            )
        return table

    # ------------------------------------------------------------------
    # Print helpers
    # ------------------------------------------------------------------

    def print_outcome(self, outcome: BuildOutcome) -> None:
        if outcome.mutation is not None:
            self.console.print(self.render_mutation(outcome.mutation))
        if outcome.pipeline is not None:
            self.console.print(self.render_pipeline(outcome.pipeline))
            tail = self.render_failure_tail(outcome.pipeline)
            if tail is not None:
                self.console.print(tail)
        if outcome.metrics is not None:
            self.console.print(
                f"[bold]Artifact:[/bold] {outcome.artifact_path} "
                f"([cyan]{outcome.metrics.formatted}[/cyan])"
            )
        if outcome.optimization is not None:
            self.console.print(self.render_optimization(outcome.optimization))
        if outcome.budget is not None:
            self.console.print(self.render_budget(outcome.budget))
        if outcome.regression is not None:
            self.console.print(self.render_regression(outcome.regression))


def _threshold_line(label: str, kb: float, quiet: bool) -> str:
    text = f"{label}: {kb:g} KB"
    return f"[dim]{text}[/dim]" if quiet else f"[yellow]{text}[/yellow]"
