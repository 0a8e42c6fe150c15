"""Config mutation result models."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from slimforge.models.backups import BackupRecord


class FieldChange(BaseModel):
    """One addressed field whose value a profile changed."""

    model_config = ConfigDict(frozen=True)

    key_path: tuple[str, ...]
    old_value: Any = None  # None when the key did not exist
    new_value: Any

    @property
    def dotted_path(self) -> str:
        return ".".join(self.key_path)


class MutationResult(BaseModel):
    """Outcome of applying a profile to a build-configuration file."""

    model_config = ConfigDict(frozen=True)

    target_file: Path
    profile_name: str
    dry_run: bool = False
    changes: list[FieldChange] = []
    backup: BackupRecord | None = None
    diff: str = ""  # unified diff of the would-be / actual edit
    written: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.changes)
