"""Deps command - list the data fields each component's rules depend on."""

from pathlib import Path

import typer

from formrules.cli._app import app
from formrules.cli._common import load_config_or_exit, load_form_or_exit, setup_logging
from formrules.cli._console import output_json, output_table
from formrules.runtime.evaluator import DependencyEvaluator


@app.command("deps", help="Show the dependent fields of every component with rules.")
def deps_cmd(
    ctx: typer.Context,
    form_path: Path = typer.Argument(..., help="Form document JSON"),
):
    """Extract dependent-field sets, as computed once per form load."""
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])
    config = load_config_or_exit(ctx.obj["config"])
    form = load_form_or_exit(form_path)

    evaluator = DependencyEvaluator(config=config)
    result = {
        f.id: sorted(evaluator.extract_dependent_fields(f.dependencies))
        for f in form.with_dependencies()
    }

    if ctx.obj["json"]:
        output_json(result)
        return

    rows = []
    for form_field in form.with_dependencies():
        rows.append({
            "component": form_field.id,
            "dataKey": form_field.data_key or "",
            "depends on": ", ".join(result[form_field.id]),
            "resetOn": ", ".join(form_field.dependencies.reset_on or []),
        })
    output_table(rows, ctx=ctx, title="Dependent fields")
