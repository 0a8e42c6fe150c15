"""Runtime settings: env-driven.

Reads from a .env file and SLIMFORGE_* environment variables. Project-level
build policy (profile, budget, pipeline toggles) lives in ``.slimforge.toml``
instead; see ``slimforge.core.project_config``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from slimforge.models.profiles import DEFAULT_PROFILE_NAME


class SlimSettings(BaseSettings):
    """Runtime settings with environment variable overrides.

    Relative paths are resolved against the project root being built.

    Examples
    --------
    Override via environment::

        export SLIMFORGE_LOG_LEVEL=DEBUG
        export SLIMFORGE_STAGE_TIMEOUT_SECONDS=900
        export SLIMFORGE_STATE_DIR=/var/cache/slimforge
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SLIMFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Storage paths
    state_dir: Path = Path(".slimforge")
    backup_dir: Path | None = None  # defaults to <state_dir>/backups
    history_file: Path | None = None  # defaults to <state_dir>/history.json
    project_config_name: str = ".slimforge.toml"

    # Build defaults (a project's .slimforge.toml wins over these)
    default_profile: str = DEFAULT_PROFILE_NAME
    tail_lines: int = 40
    stage_timeout_seconds: float | None = None
    regression_threshold_percent: float = 0.0

    def backup_path(self, project_root: Path) -> Path:
        return _under(project_root, self.backup_dir or self.state_dir / "backups")

    def history_path(self, project_root: Path) -> Path:
        return _under(project_root, self.history_file or self.state_dir / "history.json")


def _under(project_root: Path, path: Path) -> Path:
    return path if path.is_absolute() else Path(project_root) / path


# Module-level singleton: import as `from slimforge.config import settings`
settings = SlimSettings()
