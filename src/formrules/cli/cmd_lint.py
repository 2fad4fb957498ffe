"""Lint command - check rule definitions for author errors."""

from pathlib import Path

import typer

from formrules.cli._app import app
from formrules.cli._common import load_form_or_exit, setup_logging
from formrules.cli._console import console, output_json, output_table, print_err, print_ok
from formrules.linting.rule_linter import lint_form


@app.command("lint", help="Lint dependency rules; exits 1 when critical violations are found.")
def lint_cmd(
    ctx: typer.Context,
    form_path: Path = typer.Argument(..., help="Form document JSON"),
    no_vocab: bool = typer.Option(
        False, "--no-vocab", help="Skip checks for references to unbound fields"
    ),
):
    """Lint every component of a form."""
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])
    form = load_form_or_exit(form_path)

    report = lint_form(form, check_vocabulary=not no_vocab)

    if ctx.obj["json"]:
        output_json(report.to_dict())
    else:
        rows = [
            {
                "component": v.component_id,
                "slot": v.slot,
                "severity": v.severity.value,
                "type": v.type.value,
                "message": v.message,
            }
            for v in report.violations
        ]
        if rows:
            output_table(rows, ctx=ctx, title="Rule violations")
        summary = report.summary
        console.print(
            f"{summary['total_components']} component(s) with rules, "
            f"{summary['critical_violations']} critical, {summary['warnings']} warning(s)"
        )
        if report.has_critical:
            print_err("Critical rule violations found")
        else:
            print_ok("No critical rule violations")

    if report.has_critical:
        raise typer.Exit(1)
