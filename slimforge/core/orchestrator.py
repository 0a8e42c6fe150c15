"""Build orchestrator: the single entry point for presentation layers.

The module-level functions are the exposed API: each performs one step and
returns a structured result, never formatted text. ``Orchestrator`` wires
them together for one project:

    apply profile -> run pipeline -> measure -> check budget -> regression -> record

Control only ever flows forward; no component calls back into an earlier one.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from pathlib import Path

from slimforge.config import SlimSettings
from slimforge.config import settings as default_settings
from slimforge.core import git_info
from slimforge.core.backup_store import BackupStore
from slimforge.core.budget import check
from slimforge.core.config_mutator import ConfigMutator
from slimforge.core.document import TomlDocument
from slimforge.core.errors import ConfigParseError, StorageIOError
from slimforge.core.history_ledger import HistoryLedger, compute_regression
from slimforge.core.pipeline_executor import (
    BINDGEN_STAGE,
    PipelineExecutor,
    StageHook,
    build_default_pipeline,
    final_wasm_path,
)
from slimforge.core.process_runner import CommandRunner
from slimforge.core.project_config import load_project_config
from slimforge.core.size_measurer import measure
from slimforge.models.metrics import (
    BudgetConfig,
    BudgetResult,
    HistoryEntry,
    OptimizationMetrics,
    RegressionResult,
    SizeMetrics,
)
from slimforge.models.mutation import MutationResult
from slimforge.models.outcome import BuildOutcome
from slimforge.models.pipeline import PipelineConfig, PipelineReport, PipelineStage, StageResult
from slimforge.models.profiles import OptimizationProfile
from slimforge.models.project import ProjectConfig

logger = logging.getLogger(__name__)

CARGO_TOML = "Cargo.toml"

__all__ = [
    "Orchestrator",
    "apply_profile",
    "run_pipeline",
    "measure_artifact",
    "evaluate_budget",
    "record_history",
    "compute_regression",
]


# ---------------------------------------------------------------------------
# Exposed API
# ---------------------------------------------------------------------------


def apply_profile(
    profile: OptimizationProfile | str,
    target_file: Path,
    backup_store: BackupStore,
    *,
    dry_run: bool = False,
    profiles: Mapping[str, OptimizationProfile] | None = None,
) -> MutationResult:
    """Apply *profile* to *target_file* with backup and restore-on-failure."""
    return ConfigMutator(backup_store, profiles).apply(profile, target_file, dry_run=dry_run)


def run_pipeline(
    config: PipelineConfig,
    *,
    runner: CommandRunner | None = None,
    cancel_event: threading.Event | None = None,
    raise_on_abort: bool = False,
    on_stage_complete: StageHook | None = None,
) -> PipelineReport:
    return PipelineExecutor(runner).run(
        config,
        cancel_event=cancel_event,
        raise_on_abort=raise_on_abort,
        on_stage_complete=on_stage_complete,
    )


def measure_artifact(artifact_path: Path) -> SizeMetrics:
    return measure(artifact_path)


def evaluate_budget(metrics: SizeMetrics, budget: BudgetConfig) -> BudgetResult:
    """Classify *metrics*; an over-budget artifact is a result, not an error."""
    return check(metrics, budget)


def record_history(
    ledger: HistoryLedger,
    size_bytes: int,
    *,
    version_tag: str | None = None,
    commit_ref: str | None = None,
    branch: str | None = None,
) -> HistoryEntry:
    entry = HistoryEntry(
        size_bytes=size_bytes,
        version_tag=version_tag,
        commit_ref=commit_ref,
        branch=branch,
    )
    return ledger.record(entry)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class Orchestrator:
    """Runs the full size-governed build for one crate.

    Parameters
    ----------
    project_root:
        Directory holding ``Cargo.toml`` (and optionally ``.slimforge.toml``).
    project_config:
        Overrides loading ``.slimforge.toml`` from *project_root*.
    settings:
        Runtime settings. Defaults to the module-level ``settings``.
    runner:
        Process runner for pipeline stages (tests pass a fake).
    """

    def __init__(
        self,
        project_root: Path,
        *,
        project_config: ProjectConfig | None = None,
        settings: SlimSettings | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.settings = settings or default_settings
        self.project_config = project_config or load_project_config(
            self.project_root / self.settings.project_config_name
        )

        self.backup_store = BackupStore(self.settings.backup_path(self.project_root))
        self.mutator = ConfigMutator(self.backup_store)
        self.executor = PipelineExecutor(runner)
        self.ledger = HistoryLedger(self.settings.history_path(self.project_root))

    # ------------------------------------------------------------------
    # Resolved configuration
    # ------------------------------------------------------------------

    @property
    def cargo_toml(self) -> Path:
        return self.project_root / CARGO_TOML

    @property
    def profile_name(self) -> str:
        return self.project_config.profile or self.settings.default_profile

    @property
    def budget(self) -> BudgetConfig | None:
        return self.project_config.budget

    @property
    def regression_threshold(self) -> float:
        configured = self.project_config.history.regression_threshold_percent
        if configured is not None:
            return configured
        return self.settings.regression_threshold_percent

    def crate_name(self) -> str:
        """``[package].name`` from Cargo.toml."""
        if not self.cargo_toml.is_file():
            raise StorageIOError("Cargo.toml not found", self.cargo_toml)
        name = TomlDocument.load(self.cargo_toml).get(["package", "name"])
        if not isinstance(name, str) or not name:
            raise ConfigParseError("missing [package] name", self.cargo_toml)
        return name

    def artifact_path(self) -> Path:
        return final_wasm_path(self.project_root, self.crate_name(), self.project_config.pipeline)

    def pipeline_config(self) -> PipelineConfig:
        pipeline = self.project_config.pipeline
        if pipeline.timeout_seconds is None and self.settings.stage_timeout_seconds is not None:
            pipeline = pipeline.model_copy(
                update={"timeout_seconds": self.settings.stage_timeout_seconds}
            )
        return build_default_pipeline(
            self.project_root,
            self.crate_name(),
            pipeline,
            tail_lines=self.settings.tail_lines,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def apply(
        self, profile: OptimizationProfile | str | None = None, *, dry_run: bool = False
    ) -> MutationResult:
        return self.mutator.apply(profile or self.profile_name, self.cargo_toml, dry_run=dry_run)

    def check(
        self,
        artifact: Path | None = None,
        *,
        budget: BudgetConfig | None = None,
        record: bool = False,
        version_tag: str | None = None,
    ) -> BuildOutcome:
        """Measure an existing artifact and evaluate budget and regression."""
        artifact_path = Path(artifact) if artifact is not None else self.artifact_path()
        return self._evaluate(
            artifact_path,
            budget=budget or self.budget,
            record=record,
            version_tag=version_tag,
        )

    def build(
        self,
        *,
        profile: OptimizationProfile | str | None = None,
        apply_profile: bool = True,
        record: bool = True,
        version_tag: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BuildOutcome:
        """Apply the profile, run the pipeline, then measure and evaluate.

        An aborted pipeline stops the chain: the outcome carries the report
        and no metrics.
        """
        mutation = self.apply(profile) if apply_profile else None
        config = self.pipeline_config()
        artifact_path = self.artifact_path()

        unoptimized: list[SizeMetrics] = []

        def measure_bindgen_output(stage: PipelineStage, result: StageResult) -> None:
            if stage.name != BINDGEN_STAGE or result.failed:
                return
            try:
                unoptimized.append(measure(artifact_path))
            except StorageIOError as exc:
                logger.warning("Cannot measure %s output: %s", stage.name, exc)

        report = self.executor.run(
            config, cancel_event=cancel_event, on_stage_complete=measure_bindgen_output
        )
        if not report.completed:
            logger.error("Build pipeline aborted; skipping measurement")
            return BuildOutcome(artifact_path=artifact_path, mutation=mutation, pipeline=report)

        outcome = self._evaluate(
            artifact_path, budget=self.budget, record=record, version_tag=version_tag
        )
        optimization: OptimizationMetrics | None = None
        if unoptimized and outcome.metrics is not None:
            optimization = OptimizationMetrics(
                before_bytes=unoptimized[0].bytes, after_bytes=outcome.metrics.bytes
            )
            logger.info(
                "Optimization: %d -> %d bytes (%.1f%%)",
                optimization.before_bytes, optimization.after_bytes,
                optimization.reduction_percent,
            )
        return outcome.model_copy(
            update={"mutation": mutation, "pipeline": report, "optimization": optimization}
        )

    def _evaluate(
        self,
        artifact_path: Path,
        *,
        budget: BudgetConfig | None,
        record: bool,
        version_tag: str | None,
    ) -> BuildOutcome:
        metrics = measure(artifact_path)
        budget_result = check(metrics, budget) if budget is not None else None

        regression: RegressionResult | None = None
        entry: HistoryEntry | None = None
        if self.project_config.history.enabled:
            regression = self.ledger.check_regression(metrics.bytes, self.regression_threshold)
            if regression is not None and regression.regressed:
                logger.warning(
                    "Size regression: %+.2f KB (%.1f%%)",
                    regression.delta_kb, regression.delta_percent,
                )
            if record:
                entry = record_history(
                    self.ledger,
                    metrics.bytes,
                    version_tag=version_tag,
                    commit_ref=git_info.commit_ref(self.project_root),
                    branch=git_info.branch_name(self.project_root),
                )

        return BuildOutcome(
            artifact_path=artifact_path,
            metrics=metrics,
            budget=budget_result,
            regression=regression,
            history_entry=entry,
        )
