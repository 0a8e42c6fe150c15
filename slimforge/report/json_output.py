"""Machine-readable build summary for CI integration.

Emitted by ``slimforge check --json`` and ``slimforge build --json``. The
``success`` field mirrors the process exit code.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict

from slimforge.models.metrics import (
    BYTES_PER_KB,
    BudgetResult,
    OptimizationMetrics,
    RegressionResult,
    SizeMetrics,
)
from slimforge.models.outcome import BuildOutcome
from slimforge.models.pipeline import PipelineReport


class SizeInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    bytes: int
    kb: float
    mb: float
    formatted: str

    @classmethod
    def from_metrics(cls, metrics: SizeMetrics) -> SizeInfo:
        return cls(
            bytes=metrics.bytes,
            kb=metrics.derived_kb,
            mb=metrics.derived_mb,
            formatted=metrics.formatted,
        )


class OptimizationInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    before_bytes: int
    after_bytes: int
    reduction_bytes: int
    reduction_percent: float

    @classmethod
    def from_metrics(cls, metrics: OptimizationMetrics) -> OptimizationInfo:
        return cls(
            before_bytes=metrics.before_bytes,
            after_bytes=metrics.after_bytes,
            reduction_bytes=metrics.reduction_bytes,
            reduction_percent=round(metrics.reduction_percent, 2),
        )


class BudgetInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    passed: bool
    target_kb: float
    warn_threshold_kb: float
    max_kb: float
    delta_kb: float  # size minus max; negative while within budget
    message: str

    @classmethod
    def from_result(cls, result: BudgetResult) -> BudgetInfo:
        return cls(
            status=result.status.value,
            passed=result.within_budget,
            target_kb=result.budget.target_kb,
            warn_threshold_kb=result.budget.warn_threshold_kb,
            max_kb=result.budget.max_kb,
            delta_kb=result.size_kb - result.budget.max_kb,
            message=result.message,
        )


class RegressionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    regressed: bool
    previous_kb: float
    previous_bytes: int
    delta_kb: float
    delta_percent: float | None  # None when growing from zero
    threshold_percent: float

    @classmethod
    def from_result(cls, result: RegressionResult) -> RegressionInfo:
        percent = result.delta_percent
        return cls(
            regressed=result.regressed,
            previous_kb=result.previous_kb,
            previous_bytes=round(result.previous_kb * BYTES_PER_KB),
            delta_kb=result.delta_kb,
            delta_percent=None if math.isinf(percent) else percent,
            threshold_percent=result.threshold_percent,
        )


class StageInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    state: str
    exit_status: int | None = None
    duration_seconds: float
    cause: str | None = None


class PipelineInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: str
    stages: list[StageInfo]
    pending: list[str]
    aborted_by: str | None = None

    @classmethod
    def from_report(cls, report: PipelineReport) -> PipelineInfo:
        return cls(
            state=report.state.value,
            stages=[
                StageInfo(
                    name=r.stage_name,
                    state=r.state.value,
                    exit_status=r.exit_status,
                    duration_seconds=round(r.duration_seconds, 3),
                    cause=r.cause.value if r.cause else None,
                )
                for r in report.results
            ],
            pending=list(report.pending_stages),
            aborted_by=report.aborted_by.stage_name if report.aborted_by else None,
        )


class JsonReport(BaseModel):
    """Top-level JSON document. Optional sections are omitted when absent."""

    model_config = ConfigDict(frozen=True)

    success: bool
    artifact: str
    size: SizeInfo | None = None
    optimization: OptimizationInfo | None = None
    budget: BudgetInfo | None = None
    regression: RegressionInfo | None = None
    pipeline: PipelineInfo | None = None

    @classmethod
    def from_outcome(cls, outcome: BuildOutcome) -> JsonReport:
        return cls(
            success=outcome.exit_code == 0,
            artifact=str(outcome.artifact_path),
            size=SizeInfo.from_metrics(outcome.metrics) if outcome.metrics else None,
            optimization=(
                OptimizationInfo.from_metrics(outcome.optimization)
                if outcome.optimization
                else None
            ),
            budget=BudgetInfo.from_result(outcome.budget) if outcome.budget else None,
            regression=(
                RegressionInfo.from_result(outcome.regression) if outcome.regression else None
            ),
            pipeline=PipelineInfo.from_report(outcome.pipeline) if outcome.pipeline else None,
        )

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)
