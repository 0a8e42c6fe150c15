"""``slimforge profiles``: list the built-in optimization profiles."""

from __future__ import annotations

from slimforge.cli.support import console
from slimforge.config import settings
from slimforge.models.profiles import BUILTIN_PROFILES
from slimforge.report.renderer import ReportRenderer


def profiles_cmd() -> None:
    """List optimization profiles and what each one sets."""
    console.print(
        ReportRenderer(console=console).render_profiles(
            BUILTIN_PROFILES, default=settings.default_profile
        )
    )
