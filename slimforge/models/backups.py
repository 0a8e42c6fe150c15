"""Backup snapshot models (immutable, never auto-deleted)."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class BackupRecord(BaseModel):
    """A single snapshot of a mutable file, taken before mutation.

    The backup bytes at ``backup_path`` are byte-identical to the bytes of
    ``original_path`` at ``created_at``; ``sha256`` records that content so
    the snapshot can be verified later.
    """

    model_config = ConfigDict(frozen=True)

    original_path: Path
    backup_path: Path
    unique_id: str  # "<YYYYmmdd_HHMMSS.ffffff>.<uuid4 hex>"
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    sha256: str = ""
    size_bytes: int = 0
