"""slimforge data models: all Pydantic v2, all frozen (immutable)."""

from slimforge.models.backups import BackupRecord
from slimforge.models.metrics import (
    BudgetConfig,
    BudgetResult,
    BudgetStatus,
    HistoryEntry,
    OptimizationMetrics,
    RegressionResult,
    SizeMetrics,
)
from slimforge.models.mutation import FieldChange, MutationResult
from slimforge.models.outcome import BuildOutcome
from slimforge.models.pipeline import (
    VALID_TRANSITIONS,
    FailureCause,
    PipelineConfig,
    PipelineReport,
    PipelineStage,
    PipelineState,
    StageResult,
    StageState,
)
from slimforge.models.profiles import BUILTIN_PROFILES, OptimizationProfile
from slimforge.models.project import HistorySettings, PipelineSettings, ProjectConfig

__all__ = [
    # backups
    "BackupRecord",
    # profiles
    "OptimizationProfile",
    "BUILTIN_PROFILES",
    # mutation
    "FieldChange",
    "MutationResult",
    # pipeline
    "StageState",
    "PipelineState",
    "FailureCause",
    "VALID_TRANSITIONS",
    "PipelineStage",
    "PipelineConfig",
    "StageResult",
    "PipelineReport",
    # metrics
    "SizeMetrics",
    "OptimizationMetrics",
    "BudgetConfig",
    "BudgetStatus",
    "BudgetResult",
    "HistoryEntry",
    "RegressionResult",
    # project
    "ProjectConfig",
    "PipelineSettings",
    "HistorySettings",
    # outcome
    "BuildOutcome",
]
