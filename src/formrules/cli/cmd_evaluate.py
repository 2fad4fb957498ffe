"""Evaluate command - run every component's rules against a data snapshot."""

import json
from pathlib import Path

import typer

from formrules.cli._app import app
from formrules.cli._common import load_config_or_exit, load_form_or_exit, setup_logging
from formrules.cli._console import console, output_json, output_table, print_err, print_ok, print_warn
from formrules.runtime.evaluator import DependencyEvaluator
from formrules.runtime.form_loader import FormDocumentError, load_data
from formrules.runtime.form_runtime import FormRuntime
from formrules.runtime.observer import CollectingFailureObserver


@app.command("evaluate", help="Evaluate dependency rules of a form against form data.")
def evaluate_cmd(
    ctx: typer.Context,
    form_path: Path = typer.Argument(..., help="Form document JSON"),
    data_path: Path = typer.Argument(None, help="Form data JSON object (default: empty data)"),
    component: str = typer.Option(None, "--component", help="Only report this component id"),
    resolved: bool = typer.Option(
        False, "--resolved", help="Fold rule results onto each field's static props"
    ),
):
    """Evaluate all components and report their effective state."""
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])
    config = load_config_or_exit(ctx.obj["config"])
    form = load_form_or_exit(form_path)

    data = {}
    if data_path is not None:
        try:
            data = load_data(data_path)
        except FormDocumentError as e:
            print_err(str(e))
            raise typer.Exit(2)

    if component and form.get(component) is None:
        print_err(f"Unknown component: {component}")
        raise typer.Exit(2)

    observer = CollectingFailureObserver()
    evaluator = DependencyEvaluator(config=config, observer=observer)
    runtime = FormRuntime(form, data, evaluator=evaluator, config=config)

    fields = [f for f in form.fields if not component or f.id == component]
    if not resolved:
        fields = [f for f in fields if f.has_dependencies]

    states = {}
    for form_field in fields:
        if resolved:
            states[form_field.id] = runtime.resolved_state(form_field.id).to_dict()
        else:
            states[form_field.id] = runtime.state(form_field.id).to_dict()

    failures = [f.to_dict() for f in observer.failures]

    if ctx.obj["json"]:
        output_json({"components": states, "data": runtime.data, "failures": failures})
        return

    rows = [
        {
            "component": field_id,
            "state": json.dumps(state, ensure_ascii=False, default=str),
        }
        for field_id, state in states.items()
    ]
    output_table(rows, ctx=ctx, title="Effective state")

    if runtime.data != data and not ctx.obj["quiet"]:
        console.print(f"[dim]Data after computed values/resets:[/dim] {json.dumps(runtime.data, default=str)}")

    for failure in observer.failures:
        print_warn(f"{failure.component_id}.{failure.slot}: [{failure.kind.value}] {failure.message}")

    if not ctx.obj["quiet"]:
        print_ok(f"Evaluated {len(states)} component(s), {len(failures)} rule failure(s)")
