"""``assetforge build TARGET`` — run a declared pipeline.

TARGET is ``package.module:attribute`` naming either a ``PipelineDefinition``
or a callable taking the environment name and returning one.  The report is
rendered with Rich and the process exits with the report's exit code.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from assetforge.config import BuildSettings
from assetforge.core.builder import PipelineDefinition
from assetforge.errors import MatchConfigError
from assetforge.filters.registry import load_entry_point
from assetforge.models.results import BuildReport, BuildStatus
from assetforge.monitor.renderer import ReportRenderer

console = Console()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def resolve_target(target: str, environment: str) -> PipelineDefinition:
    """Load TARGET and return the pipeline it declares."""
    # Declarations usually live next to the project, not in site-packages.
    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    obj = load_entry_point(target)
    if not isinstance(obj, PipelineDefinition) and callable(obj):
        obj = obj(environment)
    if not isinstance(obj, PipelineDefinition):
        raise MatchConfigError(
            f"{target} is not a PipelineDefinition (got {type(obj).__name__})"
        )
    return obj


def build_cmd(
    target: str = typer.Argument(
        ...,
        help="Pipeline declaration as 'package.module:attribute'.",
    ),
    environment: str = typer.Option(
        None,
        "--env",
        "-e",
        help="Build environment passed to filters (default: ASSETFORGE_ENVIRONMENT).",
    ),
    cache_dir: Path = typer.Option(
        None,
        "--cache-dir",
        help="Directory of the build cache.",
    ),
    workers: int = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Maximum match groups transformed concurrently.",
    ),
    no_cache: bool = typer.Option(
        False,
        "--no-cache",
        help="Ignore and do not populate the build cache.",
    ),
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Logging level (default: ASSETFORGE_LOG_LEVEL).",
    ),
) -> None:
    """Validate and run a pipeline, then show the build report."""
    base = BuildSettings()
    overrides: dict = {}
    if environment is not None:
        overrides["environment"] = environment
    if cache_dir is not None:
        overrides["cache_path"] = cache_dir
    if workers is not None:
        overrides["max_workers"] = workers
    if no_cache:
        overrides["use_cache"] = False
    if log_level is not None:
        overrides["log_level"] = log_level
    settings = base.model_copy(update=overrides)

    configure_logging(settings.log_level)

    try:
        definition = resolve_target(target, settings.environment)
    except MatchConfigError as exc:
        report = BuildReport(status=BuildStatus.FAILED, error=exc.to_detail())
    else:
        report = definition.run(settings=settings, environment=settings.environment)

    ReportRenderer(console=console).print_report(report)
    raise typer.Exit(code=report.exit_code)
