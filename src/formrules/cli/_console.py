"""Rich console singleton and output helpers."""

from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

# Status/progress to stderr so it doesn't pollute piped JSON output
console = Console(stderr=True)

# Data output to stdout (pipeable to jq); resolved per write so redirection is honoured
stdout_console = Console()


def print_ok(msg: str) -> None:
    """Print a success message to stderr."""
    console.print(f"[green]✓[/green] {msg}")


def print_err(msg: str) -> None:
    """Print an error message to stderr."""
    console.print(f"[red]✗[/red] {msg}")


def print_warn(msg: str) -> None:
    """Print a warning message to stderr."""
    console.print(f"[yellow]![/yellow] {msg}")


def output_json(data: Any) -> None:
    """Print data as JSON to stdout."""
    stdout_console.print_json(data=data, default=str)


def output_table(
    rows: List[Dict[str, Any]],
    *,
    ctx: typer.Context,
    title: str = "",
    columns: Optional[List[str]] = None,
) -> None:
    """Print rows as JSON array or Rich table."""
    if ctx.obj.get("json"):
        output_json(rows)
        return

    if not rows:
        console.print("[dim]No data[/dim]")
        return

    cols = columns or list(rows[0].keys())
    table = Table(title=title, show_lines=False)
    for col in cols:
        table.add_column(col)
    for row in rows:
        table.add_row(*[str(row.get(c, "")) for c in cols])
    console.print(table)
