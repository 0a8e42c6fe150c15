"""Aggregate result of one orchestrated build or check."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from slimforge.models.metrics import (
    BudgetResult,
    HistoryEntry,
    OptimizationMetrics,
    RegressionResult,
    SizeMetrics,
)
from slimforge.models.mutation import MutationResult
from slimforge.models.pipeline import PipelineReport


class BuildOutcome(BaseModel):
    """Everything one ``Orchestrator.build`` produced.

    Later fields stay None when an earlier step did not run, e.g. no
    ``metrics`` after an aborted pipeline, no ``budget`` when none is
    configured. ``optimization`` is only set by a build whose
    wasm-bindgen output could be measured.
    """

    model_config = ConfigDict(frozen=True)

    artifact_path: Path
    mutation: MutationResult | None = None
    pipeline: PipelineReport | None = None
    metrics: SizeMetrics | None = None
    optimization: OptimizationMetrics | None = None
    budget: BudgetResult | None = None
    regression: RegressionResult | None = None
    history_entry: HistoryEntry | None = None

    @property
    def pipeline_ok(self) -> bool:
        return self.pipeline is None or self.pipeline.completed

    @property
    def exit_code(self) -> int:
        """1 if the pipeline aborted or the artifact is over budget, else 0.

        A regression alone never fails the build; it is reported.
        """
        if not self.pipeline_ok:
            return 1
        if self.budget is not None:
            return self.budget.exit_code
        return 0
