"""slimforge reporting: presentation over structured results.

Modules
-------
renderer
    ``ReportRenderer`` turns pipeline reports, budget results, regressions,
    history and backups into Rich renderables.
json_output
    ``JsonReport`` is the machine-readable summary emitted with ``--json``.
"""
