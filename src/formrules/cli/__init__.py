"""CLI package - Typer-based command-line interface.

Usage:
    formrules --help
    python -m formrules.cli evaluate form.json data.json
"""

from formrules.cli._app import app

# Register command modules (side-effect imports)
import formrules.cli.cmd_evaluate  # noqa: F401
import formrules.cli.cmd_deps  # noqa: F401
import formrules.cli.cmd_lint  # noqa: F401

__all__ = ["app"]
