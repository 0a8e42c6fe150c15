"""Tests for the Orchestrator and the exposed step functions."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from slimforge.config import SlimSettings
from slimforge.core import git_info, orchestrator
from slimforge.core.errors import ArtifactNotFoundError, ConfigParseError, StorageIOError
from slimforge.core.orchestrator import (
    Orchestrator,
    apply_profile,
    evaluate_budget,
    measure_artifact,
    record_history,
    run_pipeline,
)
from slimforge.models import (
    BudgetConfig,
    BudgetStatus,
    HistorySettings,
    PipelineConfig,
    PipelineSettings,
    PipelineState,
    ProjectConfig,
    StageState,
)

KB = 1024
BUDGET = BudgetConfig(target_kb=500, warn_threshold_kb=800, max_kb=1000)


@pytest.fixture(autouse=True)
def no_git(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(git_info, "commit_ref", lambda cwd=None: "abc1234")
    monkeypatch.setattr(git_info, "branch_name", lambda cwd=None: "main")


def _artifact(root: Path, size_bytes: int) -> Path:
    path = root.resolve() / "pkg" / "demo_app_bg.wasm"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\0" * size_bytes)
    return path


def _orchestrator(root: Path, settings: SlimSettings, runner=None, **config) -> Orchestrator:
    return Orchestrator(
        root, project_config=ProjectConfig(**config), settings=settings, runner=runner
    )


class TestExposedApi:
    def test_step_functions(self, cargo_toml: Path, backup_store, ledger, tmp_dir, fake_runner, make_stage):
        mutation = apply_profile("minimal", cargo_toml, backup_store, dry_run=True)
        assert mutation.dry_run and mutation.changes

        report = run_pipeline(PipelineConfig(stages=[make_stage("A")]), runner=fake_runner)
        assert report.completed

        metrics = measure_artifact(_artifact(tmp_dir, 600 * KB))
        assert metrics.bytes == 600 * KB
        assert evaluate_budget(metrics, BUDGET).status == BudgetStatus.ABOVE_TARGET

        entry = record_history(ledger, metrics.bytes, version_tag="v1")
        assert ledger.latest() == entry

    def test_compute_regression_reexported(self):
        assert orchestrator.compute_regression(1000, 1100).delta_kb == 100


class TestResolution:
    def test_crate_name_and_artifact(self, cargo_toml: Path, settings, tmp_dir):
        orch = _orchestrator(tmp_dir, settings)
        assert orch.crate_name() == "demo-app"
        assert orch.artifact_path() == tmp_dir.resolve() / "pkg" / "demo_app_bg.wasm"

    def test_missing_cargo_toml(self, settings, tmp_dir):
        with pytest.raises(StorageIOError, match="Cargo.toml not found"):
            _orchestrator(tmp_dir, settings).crate_name()

    def test_missing_package_name(self, settings, tmp_dir):
        (tmp_dir / "Cargo.toml").write_text("[workspace]\nmembers = []\n")
        with pytest.raises(ConfigParseError, match="package"):
            _orchestrator(tmp_dir, settings).crate_name()

    def test_project_config_wins_over_settings(self, settings, tmp_dir):
        orch = _orchestrator(
            tmp_dir,
            settings,
            profile="aggressive",
            history=HistorySettings(regression_threshold_percent=5.0),
        )
        assert orch.profile_name == "aggressive"
        assert orch.regression_threshold == 5.0

    def test_settings_fallbacks(self, settings, tmp_dir):
        orch = _orchestrator(tmp_dir, settings)
        assert orch.profile_name == "balanced"
        assert orch.regression_threshold == 0.0

    def test_loads_project_file(self, cargo_toml, settings, tmp_dir):
        (tmp_dir / ".slimforge.toml").write_text('profile = "minimal"\n')
        assert Orchestrator(tmp_dir, settings=settings).profile_name == "minimal"

    def test_settings_timeout_used_when_project_sets_none(self, cargo_toml, tmp_dir):
        settings = SlimSettings(_env_file=None, stage_timeout_seconds=300)
        assert _orchestrator(tmp_dir, settings).pipeline_config().default_timeout_seconds == 300

        orch = _orchestrator(
            tmp_dir, settings, pipeline=PipelineSettings(timeout_seconds=60)
        )
        assert orch.pipeline_config().default_timeout_seconds == 60


class TestBuild:
    def test_full_chain(self, cargo_toml, settings, tmp_dir, make_runner):
        runner = make_runner(on_success={"wasm-bindgen": lambda: _artifact(tmp_dir, 600 * KB)})
        orch = _orchestrator(tmp_dir, settings, runner, budget=BUDGET)

        outcome = orch.build(version_tag="v0.1.0")

        assert runner.invoked == ["cargo", "wasm-bindgen", "wasm-opt"]
        assert outcome.mutation is not None and outcome.mutation.written
        assert outcome.pipeline.completed
        assert outcome.metrics.bytes == 600 * KB
        assert outcome.budget.status == BudgetStatus.ABOVE_TARGET
        assert outcome.regression is None
        assert outcome.history_entry.version_tag == "v0.1.0"
        assert outcome.history_entry.commit_ref == "abc1234"
        assert outcome.history_entry.branch == "main"
        assert outcome.optimization.before_bytes == outcome.optimization.after_bytes == 600 * KB
        assert outcome.exit_code == 0

    def test_optimization_measured_around_optimizer(self, cargo_toml, settings, tmp_dir, make_runner):
        runner = make_runner(
            on_success={
                "wasm-bindgen": lambda: _artifact(tmp_dir, 400 * KB),
                "wasm-opt": lambda: _artifact(tmp_dir, 300 * KB),
            }
        )
        outcome = _orchestrator(tmp_dir, settings, runner).build()

        assert outcome.optimization.before_bytes == 400 * KB
        assert outcome.optimization.after_bytes == 300 * KB
        assert outcome.optimization.reduction_bytes == 100 * KB
        assert outcome.optimization.reduction_percent == pytest.approx(25.0)
        assert outcome.metrics.bytes == 300 * KB

    def test_unmeasurable_bindgen_output_leaves_no_optimization(
        self, cargo_toml, settings, tmp_dir, make_runner
    ):
        runner = make_runner(on_success={"wasm-opt": lambda: _artifact(tmp_dir, 10)})
        outcome = _orchestrator(tmp_dir, settings, runner).build()
        assert outcome.metrics.bytes == 10
        assert outcome.optimization is None

    def test_second_build_reports_regression(self, cargo_toml, settings, tmp_dir, make_runner):
        sizes = iter([1000 * KB, 1100 * KB])
        runner = make_runner(on_success={"wasm-bindgen": lambda: _artifact(tmp_dir, next(sizes))})
        orch = _orchestrator(
            tmp_dir, settings, runner, history=HistorySettings(regression_threshold_percent=5.0)
        )

        orch.build()
        outcome = orch.build()

        assert outcome.regression.delta_kb == 100
        assert outcome.regression.delta_percent == pytest.approx(10.0)
        assert outcome.regression.regressed
        assert outcome.exit_code == 0
        assert len(orch.ledger.entries()) == 2

    def test_over_budget_exits_one(self, cargo_toml, settings, tmp_dir, make_runner):
        runner = make_runner(on_success={"wasm-bindgen": lambda: _artifact(tmp_dir, 1001 * KB)})
        outcome = _orchestrator(tmp_dir, settings, runner, budget=BUDGET).build()
        assert outcome.budget.status == BudgetStatus.OVER_BUDGET
        assert outcome.exit_code == 1

    def test_aborted_pipeline_skips_measurement(self, cargo_toml, settings, tmp_dir, make_runner):
        runner = make_runner({"cargo": StageState.FAILED})
        orch = _orchestrator(tmp_dir, settings, runner, budget=BUDGET)

        outcome = orch.build()

        assert runner.invoked == ["cargo"]
        assert outcome.pipeline.state == PipelineState.ABORTED
        assert outcome.metrics is None
        assert outcome.budget is None
        assert outcome.optimization is None
        assert outcome.exit_code == 1
        assert orch.ledger.entries() == []

    def test_cancelled_build(self, cargo_toml, settings, tmp_dir, fake_runner):
        cancel = threading.Event()
        cancel.set()
        outcome = _orchestrator(tmp_dir, settings, fake_runner).build(cancel_event=cancel)
        assert fake_runner.invoked == []
        assert outcome.pipeline.pending_stages == ["cargo", "wasm-bindgen", "wasm-opt", "wasm-snip"]

    def test_no_apply_leaves_cargo_toml(self, cargo_toml, settings, tmp_dir, make_runner):
        before = cargo_toml.read_bytes()
        runner = make_runner(on_success={"wasm-bindgen": lambda: _artifact(tmp_dir, 10)})
        outcome = _orchestrator(tmp_dir, settings, runner).build(apply_profile=False, record=False)
        assert outcome.mutation is None
        assert outcome.history_entry is None
        assert cargo_toml.read_bytes() == before

    def test_history_disabled(self, cargo_toml, settings, tmp_dir, make_runner):
        runner = make_runner(on_success={"wasm-bindgen": lambda: _artifact(tmp_dir, 10)})
        orch = _orchestrator(tmp_dir, settings, runner, history=HistorySettings(enabled=False))
        outcome = orch.build()
        assert outcome.history_entry is None
        assert not orch.ledger.path.exists()


class TestCheck:
    def test_check_existing_artifact(self, settings, tmp_dir):
        artifact = _artifact(tmp_dir, 850 * KB)
        outcome = _orchestrator(tmp_dir, settings).check(artifact, budget=BUDGET)
        assert outcome.budget.status == BudgetStatus.WARNING
        assert outcome.history_entry is None

    def test_check_records_when_asked(self, settings, tmp_dir):
        artifact = _artifact(tmp_dir, 100)
        orch = _orchestrator(tmp_dir, settings)
        outcome = orch.check(artifact, record=True, version_tag="ci")
        assert outcome.budget is None
        assert orch.ledger.latest().version_tag == "ci"

    def test_missing_artifact(self, settings, tmp_dir):
        with pytest.raises(ArtifactNotFoundError):
            _orchestrator(tmp_dir, settings).check(tmp_dir / "missing.wasm")


class TestGitInfo:
    def test_git_missing(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.undo()

        def missing(*args, **kwargs):
            raise FileNotFoundError("git")

        monkeypatch.setattr(git_info.subprocess, "run", missing)
        assert git_info.commit_ref() is None
        assert git_info.branch_name() is None

    def test_detached_head(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.undo()

        class Done:
            returncode = 0
            stdout = "HEAD\n"

        monkeypatch.setattr(git_info.subprocess, "run", lambda *a, **kw: Done())
        assert git_info.branch_name() is None
        assert git_info.commit_ref() == "HEAD"
