"""Collision-free, immutable backup snapshots of mutable files.

Storage layout: {backup_dir}/{filename}.{timestamp}.{uuid4hex}.backup
plus a {same}.json sidecar holding the BackupRecord metadata.

There is no delete method and no lock. Two concurrent backups of the same
file always get distinct names because every backup identity combines a
microsecond timestamp with a random uuid4 token.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from slimforge.core.atomic import atomic_write_bytes, atomic_write_text
from slimforge.core.errors import StorageIOError
from slimforge.core.hasher import sha256_file, sha256_hex
from slimforge.models.backups import BackupRecord

logger = logging.getLogger(__name__)

_BACKUP_SUFFIX = ".backup"
_SIDECAR_SUFFIX = ".json"


def new_unique_id(now: datetime | None = None) -> str:
    """Return ``<YYYYmmdd_HHMMSS.ffffff>.<uuid4 hex>``."""
    now = now or datetime.now(timezone.utc)
    return f"{now.strftime('%Y%m%d_%H%M%S.%f')}.{uuid.uuid4().hex}"


class BackupStore:
    """Snapshot store for files about to be mutated.

    Parameters
    ----------
    backup_dir:
        Dedicated directory for snapshots. Nothing is ever written
        alongside the source files.
    """

    def __init__(self, backup_dir: Path) -> None:
        self._dir = Path(backup_dir)

    @property
    def backup_dir(self) -> Path:
        return self._dir

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    def backup(self, path: Path) -> BackupRecord:
        """Snapshot *path* and return its record.

        Returns only after the backup content is fully written and flushed.
        Raises ``StorageIOError`` if *path* cannot be read or the snapshot
        cannot be written.
        """
        source = Path(path)
        if not source.is_file():
            raise StorageIOError("Cannot back up missing or non-regular file", source)
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise StorageIOError(f"Cannot read file for backup ({exc})", source) from exc

        created_at = datetime.now(timezone.utc)
        unique_id = new_unique_id(created_at)
        backup_path = self._dir / f"{source.name}.{unique_id}{_BACKUP_SUFFIX}"

        record = BackupRecord(
            original_path=source.resolve(),
            backup_path=backup_path.resolve(),
            unique_id=unique_id,
            created_at=created_at,
            sha256=sha256_hex(data),
            size_bytes=len(data),
        )

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(backup_path, data)
            atomic_write_text(self._sidecar_path(backup_path), record.model_dump_json(indent=2))
        except OSError as exc:
            raise StorageIOError(f"Failed to write backup ({exc})", backup_path) from exc

        logger.info("Backed up %s -> %s", source, backup_path)
        return record

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore(self, record: BackupRecord) -> None:
        """Overwrite ``record.original_path`` with the snapshot content.

        Raises ``StorageIOError`` if the backup file is missing or the
        original cannot be written. Never silently skips.
        """
        backup_path = Path(record.backup_path)
        if not backup_path.is_file():
            raise StorageIOError("Backup file is missing", backup_path)
        try:
            data = backup_path.read_bytes()
            atomic_write_bytes(Path(record.original_path), data)
        except OSError as exc:
            raise StorageIOError(
                f"Failed to restore from {backup_path} ({exc})", record.original_path
            ) from exc
        logger.info("Restored %s from %s", record.original_path, backup_path)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def list(self, path_scope: Path | None = None) -> list[BackupRecord]:
        """Return records for files beneath *path_scope*, newest first.

        A *path_scope* naming a file matches backups of that exact file.
        """
        if not self._dir.is_dir():
            return []
        scope = Path(path_scope).resolve() if path_scope is not None else None

        records: list[BackupRecord] = []
        for sidecar in self._dir.glob(f"*{_BACKUP_SUFFIX}{_SIDECAR_SUFFIX}"):
            try:
                record = BackupRecord.model_validate_json(sidecar.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as exc:
                logger.warning("Ignoring unreadable backup metadata %s: %s", sidecar, exc)
                continue
            original = Path(record.original_path)
            if scope is not None and original != scope and not original.is_relative_to(scope):
                continue
            records.append(record)

        records.sort(key=lambda r: (r.created_at, r.unique_id), reverse=True)
        return records

    def latest(self, path: Path) -> BackupRecord | None:
        """Return the newest backup of *path*, or None."""
        records = self.list(path)
        return records[0] if records else None

    def verify(self, record: BackupRecord) -> bool:
        """Re-hash the backup content and compare against ``record.sha256``."""
        backup_path = Path(record.backup_path)
        if not backup_path.is_file():
            return False
        return sha256_file(backup_path) == record.sha256

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _sidecar_path(backup_path: Path) -> Path:
        return backup_path.with_name(backup_path.name + _SIDECAR_SUFFIX)
