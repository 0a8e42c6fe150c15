"""Size Measurer: stat-based artifact sizing."""

from __future__ import annotations

import logging
from pathlib import Path

from slimforge.core.errors import ArtifactNotFoundError, StorageIOError
from slimforge.models.metrics import SizeMetrics

logger = logging.getLogger(__name__)


def measure(artifact_path: Path) -> SizeMetrics:
    """Return the size of *artifact_path* without reading its content.

    Raises ``ArtifactNotFoundError`` if the artifact does not exist, e.g.
    because the pipeline aborted before producing it.
    """
    path = Path(artifact_path)
    try:
        stat = path.stat()
    except FileNotFoundError:
        raise ArtifactNotFoundError("Artifact not found", path) from None
    except OSError as exc:
        raise StorageIOError(f"Cannot stat artifact ({exc})", path) from exc
    if not path.is_file():
        raise ArtifactNotFoundError("Artifact is not a regular file", path)

    metrics = SizeMetrics(bytes=stat.st_size)
    logger.debug("Measured %s: %d bytes", path, metrics.bytes)
    return metrics
