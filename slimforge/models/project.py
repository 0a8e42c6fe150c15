"""Project configuration models: the contents of ``.slimforge.toml``.

Keys use the kebab-case spelling found in the file (``warn-threshold-kb``,
``bindgen-target``); the snake_case field names are accepted too.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from slimforge.models.metrics import BudgetConfig

BindgenTarget = Literal["web", "nodejs", "bundler", "deno", "no-modules"]
WasmTarget = Literal["wasm32-unknown-unknown", "wasm32-wasi", "wasm32-unknown-emscripten"]
WasmOptLevel = Literal["-O1", "-O2", "-O3", "-O4", "-Os", "-Oz"]

WASM_OPT_ENABLE_FLAGS: list[str] = [
    "--enable-mutable-globals",
    "--enable-bulk-memory",
    "--enable-sign-ext",
    "--enable-nontrapping-float-to-int",
]


class PipelineSettings(BaseModel):
    """Which external tools run and how they are invoked."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    target: WasmTarget = "wasm32-unknown-unknown"
    bindgen_target: BindgenTarget = Field(default="web", alias="bindgen-target")
    out_dir: str = Field(default="pkg", alias="out-dir")
    target_dir: Path | None = Field(default=None, alias="target-dir")
    wasm_opt: bool = Field(default=True, alias="wasm-opt")
    wasm_opt_level: WasmOptLevel = Field(default="-Oz", alias="wasm-opt-level")
    wasm_snip: bool = Field(default=False, alias="wasm-snip")
    timeout_seconds: float | None = Field(default=None, gt=0, alias="timeout-seconds")


class HistorySettings(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    enabled: bool = True
    regression_threshold_percent: float | None = Field(
        default=None, ge=0, alias="regression-threshold-percent"
    )


class ProjectConfig(BaseModel):
    """Parsed ``.slimforge.toml``. Every key is optional.

    Unset values fall back to ``SlimSettings``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    profile: str | None = None
    budget: BudgetConfig | None = None
    pipeline: PipelineSettings = PipelineSettings()
    history: HistorySettings = HistorySettings()
