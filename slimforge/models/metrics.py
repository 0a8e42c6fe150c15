"""Size, budget, history, and regression models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

BYTES_PER_KB = 1024


def format_bytes(size_bytes: int) -> str:
    """Human-readable size, e.g. ``"512 B"``, ``"500.00 KB"``, ``"1.50 MB"``."""
    if size_bytes < BYTES_PER_KB:
        return f"{size_bytes} B"
    kb = size_bytes / BYTES_PER_KB
    if kb < BYTES_PER_KB:
        return f"{kb:.2f} KB"
    return f"{kb / BYTES_PER_KB:.2f} MB"


class SizeMetrics(BaseModel):
    """Byte size of a produced artifact plus derived units."""

    model_config = ConfigDict(frozen=True)

    bytes: int = Field(ge=0)

    @property
    def derived_kb(self) -> float:
        return self.bytes / BYTES_PER_KB

    @property
    def derived_mb(self) -> float:
        return self.bytes / (BYTES_PER_KB * BYTES_PER_KB)

    @property
    def formatted(self) -> str:
        return format_bytes(self.bytes)


class OptimizationMetrics(BaseModel):
    """Artifact size going into the optimizer stages and coming out of them.

    ``before_bytes`` is the wasm-bindgen output; ``after_bytes`` is the
    final artifact once wasm-opt and wasm-snip have run (or been skipped).
    """

    model_config = ConfigDict(frozen=True)

    before_bytes: int = Field(ge=0)
    after_bytes: int = Field(ge=0)

    @property
    def reduction_bytes(self) -> int:
        """Bytes saved; negative if optimization grew the artifact."""
        return self.before_bytes - self.after_bytes

    @property
    def reduction_percent(self) -> float:
        if self.before_bytes == 0:
            return 0.0
        return self.reduction_bytes / self.before_bytes * 100


class BudgetStatus(str, Enum):
    """Four-tier budget classification, ordered by severity."""

    UNDER_TARGET = "under_target"
    ABOVE_TARGET = "above_target"
    WARNING = "warning"
    OVER_BUDGET = "over_budget"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def within_budget(self) -> bool:
        return self is not BudgetStatus.OVER_BUDGET


_SEVERITY: dict[BudgetStatus, int] = {
    BudgetStatus.UNDER_TARGET: 0,
    BudgetStatus.ABOVE_TARGET: 1,
    BudgetStatus.WARNING: 2,
    BudgetStatus.OVER_BUDGET: 3,
}


class BudgetConfig(BaseModel):
    """Three-threshold size policy in KB. Requires target <= warn <= max."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    target_kb: float = Field(ge=0, alias="target-kb")
    warn_threshold_kb: float = Field(ge=0, alias="warn-threshold-kb")
    max_kb: float = Field(ge=0, alias="max-kb")

    @model_validator(mode="after")
    def _check_ordering(self) -> BudgetConfig:
        if self.target_kb > self.warn_threshold_kb:
            raise ValueError(
                f"target ({self.target_kb} KB) cannot exceed warning "
                f"threshold ({self.warn_threshold_kb} KB)"
            )
        if self.warn_threshold_kb > self.max_kb:
            raise ValueError(
                f"warning threshold ({self.warn_threshold_kb} KB) cannot "
                f"exceed max ({self.max_kb} KB)"
            )
        return self


class BudgetResult(BaseModel):
    """Structured result of a budget check. Over budget is a result, not an error."""

    model_config = ConfigDict(frozen=True)

    status: BudgetStatus
    size_bytes: int
    budget: BudgetConfig
    message: str = ""

    @property
    def size_kb(self) -> float:
        return self.size_bytes / BYTES_PER_KB

    @property
    def within_budget(self) -> bool:
        return self.status.within_budget

    @property
    def exit_code(self) -> int:
        """CI contract: 0 unless over budget, then 1."""
        return 0 if self.within_budget else 1


class HistoryEntry(BaseModel):
    """One recorded build measurement."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    size_bytes: int = Field(ge=0)
    version_tag: str | None = None
    commit_ref: str | None = None
    branch: str | None = None


class RegressionResult(BaseModel):
    """Size delta between two consecutive measurements (sizes in KB)."""

    model_config = ConfigDict(frozen=True)

    previous_kb: float
    current_kb: float
    delta_kb: float
    delta_percent: float  # inf when growing from zero
    threshold_percent: float = 0.0
    regressed: bool
