"""Main Typer application — imports and registers all CLI commands.

Entry point: ``assetforge`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import typer

from assetforge.cli.commands.build import build_cmd
from assetforge.cli.commands.filters_cmd import filters_cmd

app = typer.Typer(
    name="assetforge",
    help="Assetforge: multi-stage, cached, deterministic asset build pipelines.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="build", help="Run a pipeline declaration.")(build_cmd)
app.command(name="filters", help="List the built-in filters.")(filters_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
