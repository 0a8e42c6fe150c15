"""Tests for the Pipeline Executor: sequencing, abort rules, skip rules."""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

from slimforge.core.errors import ExternalToolError
from slimforge.core.pipeline_executor import (
    InvalidTransitionError,
    PipelineExecutor,
    build_default_pipeline,
    compiled_wasm_path,
    final_wasm_path,
)
from slimforge.models.pipeline import (
    FailureCause,
    PipelineConfig,
    PipelineState,
    StageResult,
    StageState,
)
from slimforge.models.project import PipelineSettings


class TestSequencing:
    def test_all_succeed(self, make_stage, fake_runner):
        config = PipelineConfig(stages=[make_stage("A"), make_stage("B"), make_stage("C")])
        report = PipelineExecutor(fake_runner).run(config)

        assert report.state == PipelineState.COMPLETED
        assert report.completed is True
        assert fake_runner.invoked == ["A", "B", "C"]
        assert [r.state for r in report.results] == [StageState.SUCCEEDED] * 3
        assert report.pending_stages == []
        assert report.aborted_by is None

    def test_required_failure_aborts_after_two_executions(self, make_stage, make_runner):
        runner = make_runner({"B": StageState.FAILED})
        config = PipelineConfig(stages=[make_stage("A"), make_stage("B"), make_stage("C")])
        report = PipelineExecutor(runner).run(config)

        assert report.state == PipelineState.ABORTED
        assert runner.invoked == ["A", "B"]
        assert report.executed_count == 2
        assert report.aborted_by is not None
        assert report.aborted_by.stage_name == "B"
        assert report.pending_stages == ["C"]
        assert report.result_for("C") is None

    def test_disabled_stage_skipped_without_invocation(self, make_stage, fake_runner):
        config = PipelineConfig(
            stages=[make_stage("A"), make_stage("B", enabled=False), make_stage("C")]
        )
        report = PipelineExecutor(fake_runner).run(config)

        assert report.completed
        assert fake_runner.invoked == ["A", "C"]
        assert report.result_for("B").state == StageState.SKIPPED
        assert report.executed_count == 2

    def test_optional_failure_continues(self, make_stage, make_runner):
        runner = make_runner({"B": StageState.FAILED})
        config = PipelineConfig(
            stages=[make_stage("A"), make_stage("B", required=False), make_stage("C")]
        )
        report = PipelineExecutor(runner).run(config)

        assert report.state == PipelineState.COMPLETED
        assert runner.invoked == ["A", "B", "C"]
        assert [r.stage_name for r in report.failed_stages] == ["B"]
        assert report.aborted_by is None

    def test_optional_timeout_still_aborts(self, make_stage, make_runner):
        runner = make_runner({"B": FailureCause.TIMEOUT})
        config = PipelineConfig(
            stages=[make_stage("A"), make_stage("B", required=False), make_stage("C")]
        )
        report = PipelineExecutor(runner).run(config)

        assert report.state == PipelineState.ABORTED
        assert runner.invoked == ["A", "B"]
        assert report.aborted_by.cause == FailureCause.TIMEOUT

    def test_launch_error_on_required_stage_aborts(self, make_stage, make_runner):
        runner = make_runner({"A": FailureCause.LAUNCH_ERROR})
        report = PipelineExecutor(runner).run(
            PipelineConfig(stages=[make_stage("A"), make_stage("B")])
        )
        assert report.state == PipelineState.ABORTED
        assert report.pending_stages == ["B"]

    def test_stage_hook_sees_launched_stages_only(self, make_stage, make_runner):
        runner = make_runner({"B": StageState.FAILED})
        config = PipelineConfig(
            stages=[
                make_stage("A"),
                make_stage("skip", enabled=False),
                make_stage("B", required=False),
                make_stage("C"),
            ]
        )
        seen: list[tuple[str, StageState]] = []

        PipelineExecutor(runner).run(
            config, on_stage_complete=lambda stage, result: seen.append((stage.name, result.state))
        )

        assert seen == [
            ("A", StageState.SUCCEEDED),
            ("B", StageState.FAILED),
            ("C", StageState.SUCCEEDED),
        ]

    def test_stage_hook_runs_before_next_stage(self, make_stage, fake_runner):
        invoked_at_hook: list[list[str]] = []

        def hook(stage, result):
            invoked_at_hook.append(list(fake_runner.invoked))

        config = PipelineConfig(stages=[make_stage("A"), make_stage("B")])
        PipelineExecutor(fake_runner).run(config, on_stage_complete=hook)
        assert invoked_at_hook == [["A"], ["A", "B"]]

    def test_empty_pipeline_completes(self, fake_runner):
        report = PipelineExecutor(fake_runner).run(PipelineConfig())
        assert report.completed
        assert report.results == []

    def test_duplicate_stage_names_rejected(self, make_stage, fake_runner):
        config = PipelineConfig(stages=[make_stage("A"), make_stage("A")])
        with pytest.raises(ValueError, match="unique"):
            PipelineExecutor(fake_runner).run(config)


class TestRunnerArguments:
    def test_timeout_and_tail_forwarded(self, make_stage, fake_runner):
        config = PipelineConfig(
            stages=[make_stage("A", timeout_seconds=5.0), make_stage("B")],
            default_timeout_seconds=60.0,
        )
        PipelineExecutor(fake_runner).run(config)
        assert [call["timeout"] for call in fake_runner.calls] == [5.0, 60.0]

    def test_cancel_event_forwarded(self, make_stage, fake_runner):
        cancel = threading.Event()
        PipelineExecutor(fake_runner).run(
            PipelineConfig(stages=[make_stage("A")]), cancel_event=cancel
        )
        assert fake_runner.calls[0]["cancel_event"] is cancel


class TestCancellation:
    def test_cancelled_before_start_runs_nothing(self, make_stage, fake_runner):
        cancel = threading.Event()
        cancel.set()
        report = PipelineExecutor(fake_runner).run(
            PipelineConfig(stages=[make_stage("A"), make_stage("B")]), cancel_event=cancel
        )
        assert report.state == PipelineState.ABORTED
        assert fake_runner.invoked == []
        assert report.pending_stages == ["A", "B"]
        assert report.aborted_by is None

    def test_cancelled_between_stages(self, make_stage, make_runner):
        cancel = threading.Event()

        def finish_and_cancel(stage_name: str, args: list[str]) -> StageResult:
            cancel.set()
            return StageResult(stage_name=stage_name, state=StageState.SUCCEEDED, exit_status=0)

        runner = make_runner({"A": finish_and_cancel})
        report = PipelineExecutor(runner).run(
            PipelineConfig(stages=[make_stage("A"), make_stage("B")]), cancel_event=cancel
        )
        assert runner.invoked == ["A"]
        assert report.state == PipelineState.ABORTED
        assert report.pending_stages == ["B"]


class TestRaiseOnAbort:
    def test_raises_external_tool_error_with_tail(self, make_stage, make_runner):
        runner = make_runner({"B": StageState.FAILED})
        config = PipelineConfig(stages=[make_stage("A"), make_stage("B")])
        with pytest.raises(ExternalToolError) as excinfo:
            PipelineExecutor(runner).run(config, raise_on_abort=True)

        assert excinfo.value.stage_name == "B"
        assert "error: B failed" in str(excinfo.value)
        assert "exit status 1" in str(excinfo.value)

    def test_no_raise_when_completed(self, make_stage, fake_runner):
        report = PipelineExecutor(fake_runner).run(
            PipelineConfig(stages=[make_stage("A")]), raise_on_abort=True
        )
        assert report.completed


class TestStateMachine:
    def test_states_snapshot_after_abort(self, make_stage, make_runner):
        executor = PipelineExecutor(make_runner({"A": StageState.FAILED}))
        executor.run(PipelineConfig(stages=[make_stage("A"), make_stage("B")]))
        assert executor.get_all_states() == {"A": StageState.FAILED, "B": StageState.PENDING}
        assert executor.pipeline_state == PipelineState.ABORTED

    def test_runner_reporting_non_terminal_state_is_rejected(self, make_stage, make_runner):
        def bogus(stage_name: str, args: list[str]) -> StageResult:
            return StageResult(stage_name=stage_name, state=StageState.PENDING)

        executor = PipelineExecutor(make_runner({"A": bogus}))
        with pytest.raises(InvalidTransitionError, match="running to pending"):
            executor.run(PipelineConfig(stages=[make_stage("A")]))


class TestRealProcesses:
    def test_python_stages_end_to_end(self, tmp_dir: Path, make_stage):
        marker = tmp_dir / "marker.txt"
        config = PipelineConfig(
            stages=[
                make_stage(
                    "write",
                    command=sys.executable,
                    args=["-c", f"open({str(marker)!r}, 'w').write('ok')"],
                ),
                make_stage("fail", command=sys.executable, args=["-c", "raise SystemExit(2)"]),
                make_stage("never", command=sys.executable, args=["-c", "pass"]),
            ]
        )
        report = PipelineExecutor().run(config)

        assert marker.read_text() == "ok"
        assert report.state == PipelineState.ABORTED
        assert report.aborted_by.exit_status == 2
        assert report.pending_stages == ["never"]


class TestDefaultPipeline:
    def test_stage_order_and_flags(self, tmp_dir: Path):
        config = build_default_pipeline(tmp_dir, "demo-app")
        names = [s.name for s in config.stages]
        assert names == ["cargo", "wasm-bindgen", "wasm-opt", "wasm-snip"]

        by_name = {s.name: s for s in config.stages}
        assert by_name["cargo"].required and by_name["wasm-bindgen"].required
        assert not by_name["wasm-opt"].required and by_name["wasm-opt"].enabled
        assert not by_name["wasm-snip"].enabled
        assert by_name["cargo"].args == [
            "build", "--release", "--target", "wasm32-unknown-unknown",
        ]
        assert "--snip-rust-panicking-code" in by_name["wasm-snip"].args
        assert "-Oz" in by_name["wasm-opt"].args

    def test_bindgen_consumes_cargo_output(self, tmp_dir: Path):
        settings = PipelineSettings(bindgen_target="nodejs")
        config = build_default_pipeline(tmp_dir, "demo-app", settings)
        bindgen = config.stages[1]
        compiled = compiled_wasm_path(tmp_dir, "demo-app", settings)

        assert compiled == tmp_dir / "target" / "wasm32-unknown-unknown" / "release" / "demo_app.wasm"
        assert bindgen.args[0] == str(compiled)
        assert bindgen.args[-2:] == ["--target", "nodejs"]
        assert final_wasm_path(tmp_dir, "demo-app", settings) == tmp_dir / "pkg" / "demo_app_bg.wasm"

    def test_settings_toggle_optional_stages(self, tmp_dir: Path):
        settings = PipelineSettings(wasm_opt=False, wasm_snip=True, timeout_seconds=120)
        config = build_default_pipeline(tmp_dir, "demo", settings)
        by_name = {s.name: s for s in config.stages}
        assert by_name["wasm-opt"].enabled is False
        assert by_name["wasm-snip"].enabled is True
        assert config.default_timeout_seconds == 120
