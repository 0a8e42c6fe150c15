"""Shared test fixtures for slimforge."""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from slimforge.config import SlimSettings
from slimforge.core.backup_store import BackupStore
from slimforge.core.history_ledger import HistoryLedger
from slimforge.models.pipeline import (
    FailureCause,
    PipelineStage,
    StageResult,
    StageState,
)

CARGO_TOML = """\
# Demo crate used by the slimforge tests
[package]
name = "demo-app"
version = "0.1.0"
edition = "2021"

[lib]
crate-type = ["cdylib"]

[dependencies]
wasm-bindgen = "0.2"  # keep in sync with the CLI

[profile.dev]
opt-level = 0
"""


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def backup_store(tmp_dir: Path) -> BackupStore:
    """Provide a BackupStore writing into a temp directory."""
    return BackupStore(tmp_dir / ".slimforge" / "backups")


@pytest.fixture
def ledger(tmp_dir: Path) -> HistoryLedger:
    """Provide an empty HistoryLedger in a temp directory."""
    return HistoryLedger(tmp_dir / ".slimforge" / "history.json")


@pytest.fixture
def cargo_toml(tmp_dir: Path) -> Path:
    """Provide a Cargo.toml with comments and unrelated tables."""
    path = tmp_dir / "Cargo.toml"
    path.write_text(CARGO_TOML, encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_dir: Path) -> SlimSettings:
    """Runtime settings isolated from the caller's environment and .env."""
    return SlimSettings(_env_file=None, state_dir=Path(".slimforge"))


# ---------------------------------------------------------------------------
# Fake process runner: records invocations, returns scripted results
# ---------------------------------------------------------------------------


class FakeRunner:
    """Stands in for ``ProcessRunner`` without launching anything.

    ``outcomes`` maps stage name to either a ``StageState`` / ``FailureCause``
    to report, or a callable ``(stage_name, args) -> StageResult``.
    ``on_success`` maps stage name to a side effect run when it succeeds
    (e.g. writing the artifact a real tool would produce).
    """

    def __init__(
        self,
        outcomes: dict[str, Any] | None = None,
        on_success: dict[str, Callable[[], None]] | None = None,
    ) -> None:
        self.outcomes = outcomes or {}
        self.on_success = on_success or {}
        self.calls: list[dict[str, Any]] = []

    @property
    def invoked(self) -> list[str]:
        return [call["stage_name"] for call in self.calls]

    def run(
        self,
        command: str,
        args: list[str],
        *,
        stage_name: str,
        cwd: Path | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        tail_lines: int = 40,
    ) -> StageResult:
        self.calls.append(
            {
                "stage_name": stage_name,
                "command": command,
                "args": list(args),
                "cwd": cwd,
                "timeout": timeout,
                "cancel_event": cancel_event,
            }
        )
        outcome = self.outcomes.get(stage_name, StageState.SUCCEEDED)
        if callable(outcome):
            return outcome(stage_name, args)
        if isinstance(outcome, FailureCause):
            return StageResult(
                stage_name=stage_name,
                state=StageState.FAILED,
                exit_status=None if outcome is not FailureCause.EXIT_STATUS else 1,
                stderr_tail=[f"{stage_name}: {outcome.value}"],
                cause=outcome,
            )
        if outcome == StageState.FAILED:
            return StageResult(
                stage_name=stage_name,
                state=StageState.FAILED,
                exit_status=1,
                stderr_tail=[f"error: {stage_name} failed"],
                cause=FailureCause.EXIT_STATUS,
            )
        side_effect = self.on_success.get(stage_name)
        if side_effect is not None:
            side_effect()
        return StageResult(stage_name=stage_name, state=StageState.SUCCEEDED, exit_status=0)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_stage() -> Callable[..., PipelineStage]:
    """Factory fixture: build a PipelineStage with sensible defaults."""

    def _factory(name: str, **overrides: Any) -> PipelineStage:
        defaults: dict[str, Any] = {
            "name": name,
            "command": "tool-" + name.lower(),
            "args": [],
        }
        defaults.update(overrides)
        return PipelineStage(**defaults)

    return _factory


@pytest.fixture
def make_runner() -> Callable[..., FakeRunner]:
    """Factory fixture: build a FakeRunner with scripted outcomes."""

    def _factory(
        outcomes: dict[str, Any] | None = None,
        on_success: dict[str, Callable[[], None]] | None = None,
    ) -> FakeRunner:
        return FakeRunner(outcomes, on_success)

    return _factory
