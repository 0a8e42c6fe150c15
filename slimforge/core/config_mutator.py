"""Config Mutator: applies an optimization profile to a Cargo.toml.

Fixed protocol for every mutation:

    resolve profile -> backup -> parse -> apply deltas -> write

If parse, apply, or write fails, the file is restored from the backup
taken in step one before the error propagates, so a failed mutation never
leaves the target partially edited. Dry runs stop after applying deltas and
report the would-be diff instead of writing.
"""

from __future__ import annotations

import difflib
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from slimforge.core.atomic import atomic_write_text
from slimforge.core.backup_store import BackupStore
from slimforge.core.document import TomlDocument
from slimforge.core.errors import (
    StorageIOError,
    UnknownProfileError,
)
from slimforge.models.backups import BackupRecord
from slimforge.models.mutation import FieldChange, MutationResult
from slimforge.models.profiles import BUILTIN_PROFILES, OptimizationProfile

logger = logging.getLogger(__name__)


def resolve_profile(
    profile: OptimizationProfile | str,
    profiles: Mapping[str, OptimizationProfile] | None = None,
) -> OptimizationProfile:
    """Return *profile* itself, or look a profile name up in *profiles*."""
    if isinstance(profile, OptimizationProfile):
        return profile
    catalog = BUILTIN_PROFILES if profiles is None else profiles
    try:
        return catalog[profile]
    except KeyError:
        raise UnknownProfileError(profile, list(catalog)) from None


def values_equal(old: Any, new: Any) -> bool:
    """Compare a document value with a profile value.

    ``opt-level = 3`` and ``opt-level = "3"`` are the same setting, but a
    bool never equals an int.
    """
    if isinstance(old, bool) or isinstance(new, bool):
        return type(old) is type(new) and old == new
    if isinstance(old, int) and isinstance(new, str):
        return str(old) == new
    return old == new


class ConfigMutator:
    """Applies profiles to build-configuration files, guarded by backups.

    Parameters
    ----------
    backup_store:
        Store used to snapshot every target file before it is touched.
    profiles:
        Catalog used to resolve profile names. Defaults to the built-ins.
    """

    def __init__(
        self,
        backup_store: BackupStore,
        profiles: Mapping[str, OptimizationProfile] | None = None,
    ) -> None:
        self._backups = backup_store
        self._profiles = dict(BUILTIN_PROFILES if profiles is None else profiles)

    @property
    def profiles(self) -> dict[str, OptimizationProfile]:
        return dict(self._profiles)

    def apply(
        self,
        profile: OptimizationProfile | str,
        target_file: Path,
        *,
        dry_run: bool = False,
    ) -> MutationResult:
        """Apply *profile* to *target_file*.

        Raises
        ------
        UnknownProfileError
            *profile* names no known profile; nothing was touched.
        StorageIOError
            The file could not be backed up, read, or written. When the
            failure happens after the backup, a restore is attempted first.
        ConfigParseError
            The file is not valid TOML or has a non-table where a table is
            required. The file is restored before this propagates.
        """
        resolved = resolve_profile(profile, self._profiles)
        target = Path(target_file)

        # 1. Backup
        record = self._backups.backup(target)

        try:
            # 2. Parse
            try:
                original_text = target.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise StorageIOError(f"Cannot read config ({exc})", target) from exc
            doc = TomlDocument.parse(original_text, target)

            # 3. Apply deltas
            changes = self._apply_deltas(doc, resolved)
            new_text = doc.render()
            diff = _unified_diff(original_text, new_text, target)

            if dry_run:
                logger.info(
                    "Dry run: profile %r would change %d field(s) in %s",
                    resolved.name, len(changes), target,
                )
                return MutationResult(
                    target_file=target,
                    profile_name=resolved.name,
                    dry_run=True,
                    changes=changes,
                    backup=record,
                    diff=diff,
                    written=False,
                )

            # 4. Write
            written = False
            if changes:
                try:
                    atomic_write_text(target, new_text)
                except OSError as exc:
                    raise StorageIOError(f"Cannot write config ({exc})", target) from exc
                written = True
        except Exception:
            self._restore_after_failure(record)
            raise

        logger.info(
            "Applied profile %r to %s (%d change(s))", resolved.name, target, len(changes)
        )
        return MutationResult(
            target_file=target,
            profile_name=resolved.name,
            dry_run=False,
            changes=changes,
            backup=record,
            diff=diff,
            written=written,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_deltas(doc: TomlDocument, profile: OptimizationProfile) -> list[FieldChange]:
        changes: list[FieldChange] = []
        for key_path, new_value in profile.deltas():
            old_value = doc.get(key_path)
            if doc.has(key_path) and values_equal(old_value, new_value):
                continue
            doc.set(key_path, new_value)
            changes.append(
                FieldChange(key_path=tuple(key_path), old_value=old_value, new_value=new_value)
            )
        return changes

    def _restore_after_failure(self, record: BackupRecord) -> None:
        try:
            self._backups.restore(record)
        except StorageIOError:
            # The mutation error propagates; the restore failure is logged.
            logger.exception("Restore after failed mutation also failed for %s", record.original_path)


def _unified_diff(before: str, after: str, path: Path) -> str:
    return "".join(
        difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=f"a/{path.name}",
            tofile=f"b/{path.name}",
        )
    )

