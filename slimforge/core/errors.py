"""Error taxonomy shared by the core components.

A budget violation is deliberately absent: exceeding a budget is a normal
classification result (``BudgetStatus.OVER_BUDGET``), never an exception.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from slimforge.models.pipeline import StageResult


class SlimforgeError(RuntimeError):
    """Base class for every error raised by slimforge."""


class UserError(SlimforgeError):
    """Caller error reported before any mutation is attempted."""


class UnknownProfileError(UserError):
    """Raised when a profile name does not resolve to a known profile."""

    def __init__(self, name: str, known: list[str] | None = None) -> None:
        self.name = name
        self.known = sorted(known or [])
        hint = f" Available: {', '.join(self.known)}" if self.known else ""
        super().__init__(f"Unknown optimization profile {name!r}.{hint}")


class BudgetConfigError(UserError):
    """Raised when a budget configuration violates target <= warn <= max."""


class StorageIOError(SlimforgeError):
    """Backup, restore, or other file I/O failure, with path context."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        if self.path is not None:
            message = f"{message}: {self.path}"
        super().__init__(message)


class ArtifactNotFoundError(StorageIOError):
    """Raised when a built artifact does not exist (e.g. pipeline aborted)."""


class ConfigParseError(SlimforgeError):
    """Raised when a configuration document is malformed."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        prefix = f"{self.path}: " if self.path is not None else ""
        super().__init__(f"{prefix}{message}")


class ExternalToolError(SlimforgeError):
    """A pipeline stage exited non-zero or timed out.

    Carries the failing ``StageResult`` so callers can show the captured
    output tail.
    """

    def __init__(self, result: StageResult) -> None:
        self.result = result
        self.stage_name = result.stage_name
        reason = (
            result.cause.value if result.cause is not None else "failed"
        )
        message = f"Stage {result.stage_name!r} failed ({reason}"
        if result.exit_status is not None:
            message += f", exit status {result.exit_status}"
        message += ")"
        tail = result.output_tail()
        if tail:
            message += f"\n{tail}"
        super().__init__(message)
