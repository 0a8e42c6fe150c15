"""slimforge CLI: Typer-based command-line interface.

Provides the ``slimforge`` command with subcommands for applying profiles,
running builds, checking size budgets, and managing history and backups.

All output uses Rich for formatted terminal display, or JSON with ``--json``.
"""
