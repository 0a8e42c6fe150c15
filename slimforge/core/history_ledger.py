"""History Ledger: append-only record of measured build sizes.

Storage is a single JSON file holding a list of entries, oldest first. Every
``record`` reads the whole list, appends, and rewrites the file through a
temp file + fsync + atomic replace, so a failed write leaves the previous
history intact. Expected scale is hundreds to low thousands of entries.

``reset`` is the only way entries are removed.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from slimforge.core.atomic import atomic_write_bytes
from slimforge.core.errors import StorageIOError
from slimforge.models.metrics import BYTES_PER_KB, HistoryEntry, RegressionResult

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[HistoryEntry])


def compute_regression(
    previous_kb: float,
    current_kb: float,
    threshold_percent: float = 0.0,
) -> RegressionResult:
    """Compare two sizes in KB.

    ``regressed`` is true when growth exceeds *threshold_percent*. Growing
    from zero is an infinite percentage and always a regression; zero to
    zero is no change.
    """
    delta_kb = current_kb - previous_kb
    if previous_kb == 0:
        if current_kb == 0:
            delta_percent, regressed = 0.0, False
        else:
            delta_percent, regressed = math.inf, True
    else:
        delta_percent = delta_kb / previous_kb * 100.0
        regressed = delta_percent > threshold_percent
    return RegressionResult(
        previous_kb=previous_kb,
        current_kb=current_kb,
        delta_kb=delta_kb,
        delta_percent=delta_percent,
        threshold_percent=threshold_percent,
        regressed=regressed,
    )


class HistoryLedger:
    """JSON-file ledger of ``HistoryEntry`` records.

    Parameters
    ----------
    history_path:
        The JSON file. It and its parent directory are created on the
        first ``record``.
    """

    def __init__(self, history_path: Path) -> None:
        self._path = Path(history_path)

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def entries(self) -> list[HistoryEntry]:
        """All entries, oldest first. A missing file is an empty history."""
        if not self._path.exists():
            return []
        try:
            return _ENTRIES.validate_json(self._path.read_bytes())
        except OSError as exc:
            raise StorageIOError(f"Cannot read build history ({exc})", self._path) from exc
        except ValidationError as exc:
            raise StorageIOError(
                f"Build history is corrupt ({exc.error_count()} error(s))", self._path
            ) from exc

    def latest(self) -> HistoryEntry | None:
        entries = self.entries()
        return entries[-1] if entries else None

    def latest_before(self, entry: HistoryEntry) -> HistoryEntry | None:
        """Entry recorded immediately before *entry*.

        None if *entry* is the first entry or is not in the ledger.
        """
        entries = self.entries()
        for index, candidate in enumerate(entries):
            if candidate == entry:
                return entries[index - 1] if index > 0 else None
        return None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def record(self, entry: HistoryEntry) -> HistoryEntry:
        """Append *entry*; all-or-nothing."""
        entries = self.entries()
        entries.append(entry)
        self._write(entries)
        logger.info("Recorded build size %d bytes in %s", entry.size_bytes, self._path)
        return entry

    def reset(self) -> int:
        """Delete every entry. Returns how many were removed."""
        count = len(self.entries())
        if self._path.exists():
            self._write([])
        logger.info("Cleared %d history entries from %s", count, self._path)
        return count

    def _write(self, entries: list[HistoryEntry]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(self._path, _ENTRIES.dump_json(entries, indent=2))
        except OSError as exc:
            raise StorageIOError(f"Failed to write build history ({exc})", self._path) from exc

    # ------------------------------------------------------------------
    # Regression
    # ------------------------------------------------------------------

    @staticmethod
    def regression_between(
        previous: HistoryEntry,
        current: HistoryEntry,
        threshold_percent: float = 0.0,
    ) -> RegressionResult:
        return compute_regression(
            previous.size_bytes / BYTES_PER_KB,
            current.size_bytes / BYTES_PER_KB,
            threshold_percent,
        )

    def check_regression(
        self,
        current_bytes: int,
        threshold_percent: float = 0.0,
    ) -> RegressionResult | None:
        """Compare *current_bytes* against the latest entry; None if empty."""
        previous = self.latest()
        if previous is None:
            return None
        return compute_regression(
            previous.size_bytes / BYTES_PER_KB,
            current_bytes / BYTES_PER_KB,
            threshold_percent,
        )
