"""Sequential pipeline executor with a strict per-stage state machine.

Enforces:
- Valid stage transitions only (VALID_TRANSITIONS table)
- Disabled stages go PENDING -> SKIPPED without launching anything
- A failed required stage aborts the pipeline; later stages stay PENDING
- A failed optional stage is recorded and the pipeline continues
- A timed-out or cancelled stage aborts the pipeline regardless of ``required``
- Cancellation is checked between stages and forwarded to the running stage
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from slimforge.core.errors import ExternalToolError, SlimforgeError
from slimforge.core.process_runner import CommandRunner, ProcessRunner
from slimforge.models.pipeline import (
    VALID_PIPELINE_TRANSITIONS,
    VALID_TRANSITIONS,
    FailureCause,
    PipelineConfig,
    PipelineReport,
    PipelineStage,
    PipelineState,
    StageResult,
    StageState,
)
from slimforge.models.project import WASM_OPT_ENABLE_FLAGS, PipelineSettings

logger = logging.getLogger(__name__)

_ALWAYS_ABORT = {FailureCause.TIMEOUT, FailureCause.CANCELLED}

# Called with each stage that actually ran, before the next one starts.
StageHook = Callable[[PipelineStage, StageResult], None]

BINDGEN_STAGE = "wasm-bindgen"


class InvalidTransitionError(SlimforgeError):
    """Raised when a requested state transition is not valid."""


class PipelineExecutor:
    """Runs a ``PipelineConfig`` stage by stage.

    Parameters
    ----------
    runner:
        Launches each stage's command. Defaults to a ``ProcessRunner``.
    """

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self._runner: CommandRunner = runner or ProcessRunner()
        self._stage_states: dict[str, StageState] = {}
        self._pipeline_state = PipelineState.IN_PROGRESS

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    @property
    def pipeline_state(self) -> PipelineState:
        return self._pipeline_state

    def get_all_states(self) -> dict[str, StageState]:
        """Return a snapshot of every stage's state in the current run."""
        return dict(self._stage_states)

    def _transition(self, stage_name: str, target_state: StageState) -> None:
        current = self._stage_states[stage_name]
        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {stage_name} from {current.value} to {target_state.value}. "
                f"Allowed: {[s.value for s in allowed]}"
            )
        self._stage_states[stage_name] = target_state

    def _finish(self, target_state: PipelineState) -> None:
        allowed = VALID_PIPELINE_TRANSITIONS.get(self._pipeline_state, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition pipeline from {self._pipeline_state.value} "
                f"to {target_state.value}"
            )
        self._pipeline_state = target_state

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(
        self,
        config: PipelineConfig,
        *,
        cancel_event: threading.Event | None = None,
        raise_on_abort: bool = False,
        on_stage_complete: StageHook | None = None,
    ) -> PipelineReport:
        """Execute every stage of *config* in order.

        Returns the final ``PipelineReport``. With ``raise_on_abort`` an
        aborted pipeline raises ``ExternalToolError`` carrying the stage
        result that caused the abort. *on_stage_complete* sees every stage
        that was launched, successful or not; skipped stages are not
        reported to it.
        """
        names = [stage.name for stage in config.stages]
        if len(set(names)) != len(names):
            raise ValueError(f"Stage names must be unique: {names}")

        self._stage_states = {name: StageState.PENDING for name in names}
        self._pipeline_state = PipelineState.IN_PROGRESS
        results: list[StageResult] = []
        aborted_by: StageResult | None = None

        for stage in config.stages:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Pipeline cancelled before stage %s", stage.name)
                self._finish(PipelineState.ABORTED)
                break

            if not stage.enabled:
                self._transition(stage.name, StageState.SKIPPED)
                results.append(StageResult(stage_name=stage.name, state=StageState.SKIPPED))
                logger.info("Stage %s skipped (disabled)", stage.name)
                continue

            result = self._run_stage(stage, config, cancel_event)
            results.append(result)
            if on_stage_complete is not None:
                on_stage_complete(stage, result)

            if result.failed and (stage.required or result.cause in _ALWAYS_ABORT):
                logger.error(
                    "Stage %s failed (%s); aborting pipeline",
                    stage.name, result.cause.value if result.cause else "failed",
                )
                aborted_by = result
                self._finish(PipelineState.ABORTED)
                break
            if result.failed:
                logger.warning("Optional stage %s failed; continuing", stage.name)
        else:
            self._finish(PipelineState.COMPLETED)

        report = PipelineReport(
            state=self._pipeline_state,
            results=results,
            pending_stages=[
                name for name, state in self._stage_states.items()
                if state == StageState.PENDING
            ],
            aborted_by=aborted_by,
        )
        if raise_on_abort and aborted_by is not None:
            raise ExternalToolError(aborted_by)
        return report

    def _run_stage(
        self,
        stage: PipelineStage,
        config: PipelineConfig,
        cancel_event: threading.Event | None,
    ) -> StageResult:
        self._transition(stage.name, StageState.RUNNING)
        logger.info("Running stage %s: %s", stage.name, stage.command_line)
        result = self._runner.run(
            stage.command,
            list(stage.args),
            stage_name=stage.name,
            cwd=stage.working_directory,
            timeout=config.timeout_for(stage),
            cancel_event=cancel_event,
            tail_lines=config.tail_lines,
        )
        self._transition(stage.name, result.state)
        logger.info(
            "Stage %s %s in %.2fs", stage.name, result.state.value, result.duration_seconds
        )
        return result


# ---------------------------------------------------------------------------
# Default WASM pipeline
# ---------------------------------------------------------------------------


def wasm_artifact_name(crate_name: str) -> str:
    """Cargo emits ``foo-bar`` as ``foo_bar.wasm``."""
    return crate_name.replace("-", "_")


def compiled_wasm_path(project_root: Path, crate_name: str, settings: PipelineSettings) -> Path:
    target_dir = settings.target_dir or Path("target")
    if not target_dir.is_absolute():
        target_dir = project_root / target_dir
    return target_dir / settings.target / "release" / f"{wasm_artifact_name(crate_name)}.wasm"


def final_wasm_path(project_root: Path, crate_name: str, settings: PipelineSettings) -> Path:
    """Path of the artifact the last stage leaves behind (wasm-bindgen output)."""
    return project_root / settings.out_dir / f"{wasm_artifact_name(crate_name)}_bg.wasm"


def build_default_pipeline(
    project_root: Path,
    crate_name: str,
    settings: PipelineSettings | None = None,
    *,
    tail_lines: int = 40,
) -> PipelineConfig:
    """Return the cargo -> wasm-bindgen -> wasm-opt -> wasm-snip pipeline.

    cargo and wasm-bindgen are required. wasm-opt and wasm-snip are optional
    and only enabled when *settings* asks for them.
    """
    settings = settings or PipelineSettings()
    root = Path(project_root)
    compiled = compiled_wasm_path(root, crate_name, settings)
    final = final_wasm_path(root, crate_name, settings)

    cargo_args = ["build", "--release", "--target", settings.target]
    if settings.target_dir is not None:
        cargo_args += ["--target-dir", str(settings.target_dir)]

    stages = [
        PipelineStage(
            name="cargo",
            command="cargo",
            args=cargo_args,
            working_directory=root,
        ),
        PipelineStage(
            name=BINDGEN_STAGE,
            command="wasm-bindgen",
            args=[
                str(compiled),
                "--out-dir", str(root / settings.out_dir),
                "--target", settings.bindgen_target,
            ],
            working_directory=root,
        ),
        PipelineStage(
            name="wasm-opt",
            command="wasm-opt",
            args=[str(final), settings.wasm_opt_level, "-o", str(final), *WASM_OPT_ENABLE_FLAGS],
            working_directory=root,
            enabled=settings.wasm_opt,
            required=False,
        ),
        PipelineStage(
            name="wasm-snip",
            command="wasm-snip",
            args=[str(final), "-o", str(final), "--snip-rust-panicking-code"],
            working_directory=root,
            enabled=settings.wasm_snip,
            required=False,
        ),
    ]
    return PipelineConfig(
        stages=stages,
        tail_lines=tail_lines,
        default_timeout_seconds=settings.timeout_seconds,
    )
