"""Tests for the ReportRenderer (Rich output for build reports)."""

from __future__ import annotations

from io import StringIO
from pathlib import Path

from rich.console import Console

from assetforge.models.results import BuildReport, BuildResult, BuildStatus, ErrorDetail
from assetforge.models.stages import StageState, StageTransition
from assetforge.monitor.renderer import ReportRenderer, final_state


def _render(report: BuildReport) -> str:
    buffer = StringIO()
    ReportRenderer(console=Console(file=buffer, width=120, color_system=None)).print_report(report)
    return buffer.getvalue()


def _result(stage_id: str, *states: StageState, status=BuildStatus.SUCCESS) -> BuildResult:
    previous = StageState.PENDING
    transitions = []
    for state in states:
        transitions.append(StageTransition(stage_id=stage_id, from_state=previous, to_state=state))
        previous = state
    return BuildResult(stage_id=stage_id, status=status, transitions=transitions, cache_hits=2)


class TestReportRenderer:
    def test_success(self):
        report = BuildReport(
            status=BuildStatus.SUCCESS,
            stage_results=[_result("scripts", StageState.LOADING, StageState.DONE)],
            publish_root=Path("dist"),
        )
        output = _render(report)
        assert "scripts" in output
        assert "DONE" in output
        assert "2/0" in output
        assert "Build succeeded" in output

    def test_failure_shows_error_context(self):
        error = ErrorDetail(
            kind="CompileError",
            message="unexpected [token]",
            stage_id="templates",
            match_group="hbs",
            file="list.hbs",
            line=4,
            step="0:compile(handlebars)",
            exit_code=3,
        )
        report = BuildReport(
            status=BuildStatus.FAILED,
            stage_results=[
                _result(
                    "templates",
                    StageState.LOADING,
                    StageState.MATCHING,
                    StageState.TRANSFORMING,
                    StageState.FAILED,
                    status=BuildStatus.FAILED,
                )
            ],
            failed_stage="templates",
            error=error,
            skipped_stages=["publish"],
        )
        output = _render(report)
        assert "FAILED" in output
        assert "PENDING" in output
        assert "publish" in output
        assert "unexpected [token]" in output
        assert "list.hbs:4" in output
        assert "0:compile(handlebars)" in output
        assert "Exit code: 3" in output

    def test_final_state(self):
        assert final_state(_result("s")) == StageState.PENDING
        assert final_state(_result("s", StageState.LOADING)) == StageState.LOADING
