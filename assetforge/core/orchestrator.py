"""Pipeline orchestrator — the central coordinator for assetforge builds.

The Orchestrator wires together the FilterRegistry, CacheStore,
StageMachine and StageRunner.  It validates the whole declaration before
any stage runs, connects each stage's input root to the previous stage's
output root, runs stages strictly in order and stops at the first failure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from assetforge.config import BuildSettings
from assetforge.config import settings as default_settings
from assetforge.core.cache_store import CacheStore
from assetforge.core.hasher import canonical_json_bytes, step_fingerprint
from assetforge.core.matcher import compile_glob, is_glob
from assetforge.core.stage_machine import StageMachine
from assetforge.core.stage_runner import StageRunner
from assetforge.errors import AssetIOError, MatchConfigError
from assetforge.filters.registry import FilterRegistry, default_registry
from assetforge.models.context import BuildContext
from assetforge.models.pipeline import FilterStep, MatchGroup, PipelineStage, StepKind
from assetforge.models.results import BuildReport, BuildStatus
from assetforge.models.stages import StageState

logger = logging.getLogger(__name__)

PublishFn = Callable[[Path], None]


def _overlaps(a: Path, b: Path) -> bool:
    a, b = a.resolve(), b.resolve()
    return a == b or a in b.parents or b in a.parents


class Orchestrator:
    """Central build orchestrator.

    Parameters
    ----------
    registry:
        Filters available to every stage.  Defaults to the built-ins.
    settings:
        Runtime settings.  Defaults to the module-level ``settings``.
    cache:
        Explicit cache store; overrides ``settings.cache_path``.  Ignored
        when ``settings.use_cache`` is False.
    """

    def __init__(
        self,
        registry: FilterRegistry | None = None,
        *,
        settings: BuildSettings | None = None,
        cache: CacheStore | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.registry = registry or default_registry()

        if self.settings.use_cache:
            self.cache: CacheStore | None = cache or CacheStore(self.settings.cache_path)
        else:
            self.cache = None

        self.stage_machine = StageMachine()
        self.runner = StageRunner(
            self.registry,
            self.stage_machine,
            cache=self.cache,
            max_workers=self.settings.max_workers,
            emit_source_maps=self.settings.emit_source_maps,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def resolve_stages(self, stages: list[PipelineStage]) -> list[PipelineStage]:
        """Fill in missing input roots from the previous stage's output root."""
        resolved: list[PipelineStage] = []
        previous_output: Path | None = None
        for stage in stages:
            if stage.input_root is None:
                if previous_output is None:
                    raise MatchConfigError(
                        "The first stage must declare an input root", stage_id=stage.stage_id
                    )
                stage = stage.model_copy(update={"input_root": previous_output})
            resolved.append(stage)
            previous_output = stage.output_root
        return resolved

    def validate(self, stages: list[PipelineStage]) -> list[PipelineStage]:
        """Check the whole declaration; return stages with roots wired.

        Raises ``MatchConfigError`` on the first problem found.  Nothing is
        read or written.
        """
        if not stages:
            raise MatchConfigError("No stages declared")

        seen: set[str] = set()
        for stage in stages:
            if stage.stage_id in seen:
                raise MatchConfigError("Duplicate stage id", stage_id=stage.stage_id)
            seen.add(stage.stage_id)

        resolved = self.resolve_stages(stages)
        self._validate_roots(resolved)
        for stage in resolved:
            self._validate_stage(stage)
        return resolved

    def _validate_roots(self, stages: list[PipelineStage]) -> None:
        outputs = [s.output_root for s in stages]
        sources = [s.input_root for s in stages if s.input_root not in outputs]
        for index, stage in enumerate(stages):
            if _overlaps(stage.input_root, stage.output_root):
                raise MatchConfigError(
                    f"Output root {stage.output_root} overlaps input root {stage.input_root}",
                    stage_id=stage.stage_id,
                )
            for other in stages[index + 1:]:
                if _overlaps(stage.output_root, other.output_root):
                    raise MatchConfigError(
                        f"Output root {stage.output_root} overlaps that of stage {other.stage_id}",
                        stage_id=stage.stage_id,
                    )
            for source in sources:
                if _overlaps(stage.output_root, source):
                    raise MatchConfigError(
                        f"Output root {stage.output_root} overlaps source root {source}",
                        stage_id=stage.stage_id,
                    )

    def _validate_stage(self, stage: PipelineStage) -> None:
        for pattern in stage.skip_patterns:
            compile_glob(pattern)

        names: set[str] = set()
        for group in stage.match_groups:
            if group.name in names:
                raise MatchConfigError(
                    "Duplicate match group name", stage_id=stage.stage_id, match_group=group.name
                )
            names.add(group.name)
            try:
                self._validate_group(group)
            except MatchConfigError as exc:
                raise exc.with_context(stage_id=stage.stage_id, match_group=group.name)

    def _validate_group(self, group: MatchGroup) -> None:
        for pattern in [group.pattern, *group.exclude_patterns]:
            compile_glob(pattern)
        if not group.steps:
            logger.debug("Match group %s has no steps; files pass through unchanged", group.name)
        for index, step in enumerate(group.steps):
            try:
                self._validate_step(step)
            except MatchConfigError as exc:
                raise exc.with_context(step=f"{index}:{step.kind.value}")

    def _validate_step(self, step: FilterStep) -> None:
        if step.kind == StepKind.COMPILE and not step.plugin:
            raise MatchConfigError("Compile steps must name a filter plugin")
        self.registry.require(step.filter_name, step.kind)
        if step.kind == StepKind.CONCAT and not step.config.output_name:
            raise MatchConfigError("Concat steps require an output_name")
        for prefix in step.config.priority_prefixes:
            if is_glob(prefix):
                compile_glob(prefix)
        try:
            canonical_json_bytes(step_fingerprint(step))
        except (TypeError, ValueError) as exc:
            raise MatchConfigError(f"Step configuration cannot be fingerprinted: {exc}") from exc

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run_all(
        self,
        stages: list[PipelineStage],
        *,
        environment: str | None = None,
        publish: PublishFn | None = None,
    ) -> BuildReport:
        """Validate, then run every stage in order; stop at the first failure.

        *publish* receives the last stage's output root, and only runs when
        every stage succeeded.
        """
        try:
            resolved = self.validate(stages)
        except MatchConfigError as exc:
            logger.error("Invalid pipeline declaration: %s", exc)
            return BuildReport(
                status=BuildStatus.FAILED,
                failed_stage=exc.stage_id,
                error=exc.to_detail(),
                skipped_stages=[s.stage_id for s in stages],
            )

        ctx = BuildContext(environment=environment or self.settings.environment)
        self.stage_machine.initialize([s.stage_id for s in resolved])
        results = []

        for index, stage in enumerate(resolved):
            logger.info("Running stage %s (%d/%d)", stage.stage_id, index + 1, len(resolved))
            result = self.runner.run(stage, ctx)
            results.append(result)
            if not result.ok:
                skipped = [s.stage_id for s in resolved[index + 1:]]
                logger.error(
                    "Build failed in stage %s; not running %s",
                    stage.stage_id, skipped or "any further stages",
                )
                return BuildReport(
                    status=BuildStatus.FAILED,
                    stage_results=results,
                    failed_stage=stage.stage_id,
                    error=result.error,
                    skipped_stages=skipped,
                )

        publish_root = resolved[-1].output_root
        if publish is not None:
            try:
                publish(publish_root)
            except OSError as exc:
                error = AssetIOError(publish_root, exc, step="publish")
                logger.error("Publish failed: %s", error)
                return BuildReport(
                    status=BuildStatus.FAILED,
                    stage_results=results,
                    error=error.to_detail(),
                )
        logger.info("Build succeeded; publish root %s", publish_root)
        return BuildReport(
            status=BuildStatus.SUCCESS,
            stage_results=results,
            publish_root=publish_root,
        )

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def filter_invocations(self) -> int:
        return self.runner.filter_invocations

    def get_states(self) -> dict[str, StageState]:
        """Return current state of all stages."""
        return self.stage_machine.get_all_states()

    def get_stage_state(self, stage_id: str) -> StageState:
        return self.stage_machine.get_current_state(stage_id)
