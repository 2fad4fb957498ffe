"""Shared CLI helpers: logging setup and input loading."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.logging import RichHandler

from formrules.cli._console import console, print_err
from formrules.config.settings import EngineConfig, load_engine_config
from formrules.runtime.form_loader import FormDocument, FormDocumentError, load_form

logger = logging.getLogger(__name__)


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with Rich handler."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def load_config_or_exit(config_path: Optional[str]) -> EngineConfig:
    """Load engine settings; exit with status 2 on invalid settings."""
    try:
        return load_engine_config(Path(config_path) if config_path else None)
    except ValueError as e:
        print_err(str(e))
        raise typer.Exit(2)


def load_form_or_exit(form_path: Path) -> FormDocument:
    """Load a form document; exit with status 2 when it cannot be loaded."""
    try:
        return load_form(form_path)
    except FormDocumentError as e:
        print_err(str(e))
        raise typer.Exit(2)
