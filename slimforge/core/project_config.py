"""Loader for the per-project ``.slimforge.toml`` file.

Example::

    profile = "aggressive"

    [budget]
    target-kb = 400
    warn-threshold-kb = 800
    max-kb = 1000

    [pipeline]
    wasm-opt = true
    wasm-snip = false
    bindgen-target = "web"
    timeout-seconds = 900

    [history]
    regression-threshold-percent = 5.0
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from slimforge.core.atomic import atomic_write_text
from slimforge.core.document import TomlDocument
from slimforge.core.errors import (
    BudgetConfigError,
    ConfigParseError,
    StorageIOError,
    UserError,
)
from slimforge.models.project import ProjectConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = ".slimforge.toml"

_TEMPLATE = """\
# slimforge project configuration
profile = "{profile}"

[budget]
target-kb = {target_kb}
warn-threshold-kb = {warn_kb}
max-kb = {max_kb}

[pipeline]
wasm-opt = true
wasm-snip = false
bindgen-target = "web"

[history]
regression-threshold-percent = 5.0
"""


def load_project_config(path: Path) -> ProjectConfig:
    """Parse and validate *path*. A missing file yields the defaults.

    Raises
    ------
    ConfigParseError
        The file is not valid TOML or contains unknown or mistyped keys.
    BudgetConfigError
        The ``[budget]`` section violates target <= warn <= max.
    """
    path = Path(path)
    if not path.exists():
        logger.debug("No project config at %s; using defaults", path)
        return ProjectConfig()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise StorageIOError(f"Cannot read project config ({exc})", path) from exc

    return _validate(TomlDocument.parse(text, path).to_dict(), path)


def write_default_project_config(
    path: Path,
    *,
    profile: str = "balanced",
    target_kb: int = 500,
    warn_kb: int = 800,
    max_kb: int = 1000,
    overwrite: bool = False,
) -> Path:
    """Write a starter ``.slimforge.toml``. Refuses to clobber unless asked."""
    path = Path(path)
    if path.exists() and not overwrite:
        raise UserError(f"Project config already exists: {path}")
    text = _TEMPLATE.format(profile=profile, target_kb=target_kb, warn_kb=warn_kb, max_kb=max_kb)
    _validate(TomlDocument.parse(text, path).to_dict(), path)
    try:
        atomic_write_text(path, text)
    except OSError as exc:
        raise StorageIOError(f"Cannot write project config ({exc})", path) from exc
    logger.info("Wrote project config %s", path)
    return path


def _validate(data: dict, path: Path) -> ProjectConfig:
    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as exc:
        errors = exc.errors()
        if all((err.get("loc") or ("",))[0] == "budget" for err in errors):
            message = errors[0].get("msg", "").removeprefix("Value error, ")
            raise BudgetConfigError(f"{path}: invalid [budget]: {message}") from exc
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in errors
        )
        raise ConfigParseError(f"Invalid project config ({details})", path) from exc
