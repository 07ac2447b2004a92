"""``assetforge filters`` — list the built-in filters."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from assetforge.filters.registry import default_registry
from assetforge.models.pipeline import StepKind

console = Console()


def filters_cmd(
    kind: str = typer.Option(None, "--kind", "-k", help="Only filters serving this step kind."),
) -> None:
    """List registered filters and the step kinds they serve."""
    try:
        kind_filter = StepKind(kind) if kind else None
    except ValueError:
        valid = ", ".join(k.value for k in StepKind)
        console.print(f"[red]Unknown step kind {kind!r}.[/red] Valid kinds: {valid}")
        raise typer.Exit(code=2)

    entries = default_registry().list_filters(kind=kind_filter)
    if not entries:
        console.print("[dim]No filters registered.[/dim]")
        return

    table = Table(title="Filters")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Kinds", no_wrap=True)
    table.add_column("Built-in", justify="center")
    table.add_column("Description")
    for entry in entries:
        kinds = ", ".join(k.value for k in entry.kinds) or "any"
        builtin = "[green]Yes[/green]" if entry.builtin else "[dim]No[/dim]"
        table.add_row(entry.name, kinds, builtin, entry.description)
    console.print(table)
