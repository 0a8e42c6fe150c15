"""Best-effort git metadata for history entries."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


def _git(args: list[str], cwd: Path | None) -> str | None:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.SubprocessError, OSError) as exc:
        logger.debug("git %s unavailable: %s", " ".join(args), exc)
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def commit_ref(cwd: Path | None = None) -> str | None:
    """Short hash of HEAD, or None outside a repository or without git."""
    return _git(["rev-parse", "--short", "HEAD"], cwd)


def branch_name(cwd: Path | None = None) -> str | None:
    """Current branch, or None when detached, outside a repository, or without git."""
    branch = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd)
    return None if branch == "HEAD" else branch
