"""Optimization profiles: named bundles of Cargo.toml deltas.

A profile is a plain immutable value passed explicitly into the Config
Mutator. There is no process-wide "current profile".
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

# Key paths addressed by every profile.
RELEASE_PROFILE_PATH: tuple[str, ...] = ("profile", "release")
WASM_PACK_RELEASE_PATH: tuple[str, ...] = (
    "package",
    "metadata",
    "wasm-pack",
    "profile",
    "release",
)

_BASE_WASM_OPT_FLAGS: list[str] = [
    "-Oz",
    "--enable-mutable-globals",
    "--enable-bulk-memory",
    "--enable-sign-ext",
    "--enable-nontrapping-float-to-int",
    "--strip-debug",
    "--strip-dwarf",
    "--strip-producers",
]


class OptimizationProfile(BaseModel):
    """Immutable set of build-configuration deltas aimed at smaller output."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    opt_level: str = "s"  # "s", "z", "3", ...
    lto: str = "fat"  # "fat", "thin", "off"
    strip: bool = True
    codegen_units: int = 1
    panic: str = "abort"  # "abort" or "unwind"
    wasm_opt_flags: list[str] = []  # empty -> wasm-pack metadata untouched
    notes: list[str] = []

    def deltas(self) -> list[tuple[tuple[str, ...], Any]]:
        """Return ordered ``(key_path, value)`` pairs this profile sets."""
        deltas: list[tuple[tuple[str, ...], Any]] = [
            (RELEASE_PROFILE_PATH + ("opt-level",), self.opt_level),
            (RELEASE_PROFILE_PATH + ("lto",), self.lto),
            (RELEASE_PROFILE_PATH + ("codegen-units",), self.codegen_units),
            (RELEASE_PROFILE_PATH + ("strip",), self.strip),
            (RELEASE_PROFILE_PATH + ("panic",), self.panic),
        ]
        if self.wasm_opt_flags:
            deltas.append(
                (WASM_PACK_RELEASE_PATH + ("wasm-opt",), list(self.wasm_opt_flags))
            )
        return deltas


BUILTIN_PROFILES: dict[str, OptimizationProfile] = {
    "minimal": OptimizationProfile(
        name="minimal",
        description="Maximum size reduction, may affect performance",
        opt_level="z",
        wasm_opt_flags=list(_BASE_WASM_OPT_FLAGS),
        notes=[
            "Prioritizes size over performance",
            "May increase compile time significantly",
        ],
    ),
    "balanced": OptimizationProfile(
        name="balanced",
        description="Balanced size/performance (recommended)",
        opt_level="s",
        wasm_opt_flags=list(_BASE_WASM_OPT_FLAGS),
        notes=[
            "Good balance between size and performance",
            "Recommended for most projects",
        ],
    ),
    "aggressive": OptimizationProfile(
        name="aggressive",
        description="All optimizations enabled, maximum reduction",
        opt_level="z",
        wasm_opt_flags=_BASE_WASM_OPT_FLAGS
        + ["--vacuum", "--closed-world", "--gufa-optimizing"],
        notes=[
            "Maximum size reduction at all costs",
            "Significantly longer compile times",
            "Use for production builds with strict size budgets",
        ],
    ),
}

DEFAULT_PROFILE_NAME = "balanced"
