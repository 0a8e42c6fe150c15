"""Pipeline stage models: deterministic per-stage state transitions."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class StageState(str, Enum):
    """Strict state model for each pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class PipelineState(str, Enum):
    """Overall pipeline state."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABORTED = "aborted"


class FailureCause(str, Enum):
    """Why a stage ended in FAILED."""

    EXIT_STATUS = "exit_status"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    LAUNCH_ERROR = "launch_error"


# Valid stage transitions: enforced structurally by PipelineExecutor.
# Disabled stages go straight from PENDING to SKIPPED without running.
VALID_TRANSITIONS: dict[StageState, set[StageState]] = {
    StageState.PENDING: {StageState.RUNNING, StageState.SKIPPED},
    StageState.RUNNING: {StageState.SUCCEEDED, StageState.FAILED},
    StageState.SUCCEEDED: set(),  # terminal
    StageState.FAILED: set(),  # terminal, no retries
    StageState.SKIPPED: set(),  # terminal
}

VALID_PIPELINE_TRANSITIONS: dict[PipelineState, set[PipelineState]] = {
    PipelineState.IN_PROGRESS: {PipelineState.COMPLETED, PipelineState.ABORTED},
    PipelineState.COMPLETED: set(),
    PipelineState.ABORTED: set(),
}


class PipelineStage(BaseModel):
    """One external tool invocation step.

    ``required`` stages abort the pipeline when they fail; optional stages
    record the failure and let the pipeline continue.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    command: str
    args: list[str] = []
    working_directory: Path | None = None
    enabled: bool = True
    required: bool = True
    timeout_seconds: float | None = None  # falls back to PipelineConfig default

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])


class PipelineConfig(BaseModel):
    """Ordered stage sequence. Order is fixed and significant."""

    model_config = ConfigDict(frozen=True)

    stages: list[PipelineStage] = []
    tail_lines: int = 40
    default_timeout_seconds: float | None = None

    def timeout_for(self, stage: PipelineStage) -> float | None:
        if stage.timeout_seconds is not None:
            return stage.timeout_seconds
        return self.default_timeout_seconds


class StageResult(BaseModel):
    """Outcome of one stage. Produced once, never mutated."""

    model_config = ConfigDict(frozen=True)

    stage_name: str
    state: StageState
    exit_status: int | None = None
    duration_seconds: float = 0.0
    stdout_tail: list[str] = []
    stderr_tail: list[str] = []
    cause: FailureCause | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == StageState.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.state == StageState.FAILED

    def output_tail(self) -> str:
        """Captured stderr tail, or stdout tail when stderr is empty."""
        lines = self.stderr_tail or self.stdout_tail
        return "\n".join(lines)


class PipelineReport(BaseModel):
    """Final report of a pipeline run."""

    model_config = ConfigDict(frozen=True)

    state: PipelineState
    results: list[StageResult] = []
    pending_stages: list[str] = []  # stages never reached after an abort
    aborted_by: StageResult | None = None

    @property
    def completed(self) -> bool:
        return self.state == PipelineState.COMPLETED

    @property
    def failed_stages(self) -> list[StageResult]:
        return [r for r in self.results if r.failed]

    @property
    def executed_count(self) -> int:
        """Number of stages that actually invoked a process."""
        return sum(1 for r in self.results if r.state != StageState.SKIPPED)

    def result_for(self, stage_name: str) -> StageResult | None:
        for result in self.results:
            if result.stage_name == stage_name:
                return result
        return None
