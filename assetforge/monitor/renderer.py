"""Rich terminal renderer for build reports.

Turns a ``BuildReport`` into Rich renderables: one table row per stage,
color-coded by final state, and an error panel naming the failing stage,
match group, file and step.

Color scheme
------------
- green     : DONE
- bold red  : FAILED
- dim       : PENDING (never ran)
- yellow    : any intermediate state
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from assetforge.models.results import BuildReport, BuildResult, ErrorDetail
from assetforge.models.stages import StageState

_STATE_ICONS: dict[StageState, str] = {
    StageState.DONE: "[green]DONE[/green]",
    StageState.FAILED: "[bold red]FAILED[/bold red]",
    StageState.PENDING: "[dim]PENDING[/dim]",
}


def final_state(result: BuildResult) -> StageState:
    """The state a stage ended in, from its recorded transitions."""
    if not result.transitions:
        return StageState.PENDING
    return result.transitions[-1].to_state


class ReportRenderer:
    """Renders ``BuildReport`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_report(self, report: BuildReport) -> Panel:
        table = self._build_stage_table(report)
        parts: list = [table]

        if report.error is not None:
            parts.extend([Text(""), self._render_error(report.error)])

        if report.ok:
            summary = f"[bold green]Build succeeded[/bold green]  |  [bold]Publish root:[/bold] {report.publish_root}"
            border = "green"
        else:
            summary = (
                f"[bold red]Build failed[/bold red]  |  [bold]Exit code:[/bold] {report.exit_code}"
            )
            border = "red"
        parts.extend([Text(""), Text.from_markup(summary)])

        return Panel(
            Group(*parts),
            title="[bold]assetforge build[/bold]",
            border_style=border,
            padding=(1, 2),
        )

    def _build_stage_table(self, report: BuildReport) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Stage", min_width=18)
        table.add_column("State", min_width=12, justify="center")
        table.add_column("Outputs", justify="right", width=8)
        table.add_column("Cache (hit/miss)", justify="right", width=16)

        for index, result in enumerate(report.stage_results):
            state = final_state(result)
            table.add_row(
                str(index),
                result.stage_id,
                _STATE_ICONS.get(state, f"[yellow]{state.value.upper()}[/yellow]"),
                str(len(result.produced_assets)),
                f"{result.cache_hits}/{result.cache_misses}",
            )
        offset = len(report.stage_results)
        for extra, stage_id in enumerate(report.skipped_stages):
            table.add_row(
                str(offset + extra), f"[dim]{stage_id}[/dim]", _STATE_ICONS[StageState.PENDING], "-", "-"
            )
        return table

    @staticmethod
    def _render_error(error: ErrorDetail) -> Panel:
        lines = [f"[bold red]{error.kind}[/bold red]: {escape(error.message)}"]
        for label, value in (
            ("Stage", error.stage_id),
            ("Match group", error.match_group),
            ("File", error.file if error.line is None else f"{error.file}:{error.line}"),
            ("Step", error.step),
        ):
            if value is not None:
                lines.append(f"[bold]{label}:[/bold] {escape(str(value))}")
        return Panel("\n".join(lines), border_style="red", title="Error")

    def print_report(self, report: BuildReport) -> None:
        """Print a report to the console."""
        self.console.print(self.render_report(report))
