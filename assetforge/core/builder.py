"""Fluent builder for pipeline declarations.

Builders only assemble data.  The engine consumes the resulting
``PipelineStage`` models and never calls back into builder code; the only
caller-supplied code it runs is registered filters and the pure
path functions placed in step configuration.

Example::

    builder = PipelineBuilder()
    (builder.stage("scripts", output_root=Path("tmp/scripts"), input_root=Path("app"))
        .skip("**/*.test.js")
        .match("**/*.js", name="app-js")
            .register_modules(namespace="app")
            .concat("app.js", join_order=["loader.js"], priority_prefixes=["vendor/"]))
    (builder.stage("publish", output_root=Path("dist"))
        .match("**/*")
            .compress())
    definition = builder.build()
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from assetforge.config import BuildSettings
from assetforge.filters.registry import FilterFn, FilterRegistry, default_registry
from assetforge.models.pipeline import (
    FilterStep,
    MatchGroup,
    PipelineStage,
    StepConfig,
    StepKind,
)
from assetforge.models.results import BuildReport


def make_step_config(**config: Any) -> StepConfig:
    """StepConfig from keyword arguments; unknown keys go into ``options``."""
    known = {k: v for k, v in config.items() if k in StepConfig.model_fields}
    extra = {k: v for k, v in config.items() if k not in StepConfig.model_fields}
    if extra:
        known["options"] = {**known.get("options", {}), **extra}
    return StepConfig(**known)


class GroupBuilder:
    """Accumulates the filter steps of one match group."""

    def __init__(self, stage: StageBuilder, pattern: str, name: str, exclude: list[str]) -> None:
        self._stage = stage
        self.pattern = pattern
        self.name = name
        self.exclude = exclude
        self.steps: list[FilterStep] = []

    def step(self, kind: StepKind | str, plugin: str | None = None, **config: Any) -> GroupBuilder:
        self.steps.append(
            FilterStep(kind=StepKind(kind), plugin=plugin, config=make_step_config(**config))
        )
        return self

    def compile(self, plugin: str, **config: Any) -> GroupBuilder:
        return self.step(StepKind.COMPILE, plugin, **config)

    def rewrite(self, plugin: str | None = None, **config: Any) -> GroupBuilder:
        return self.step(StepKind.REWRITE, plugin, **config)

    def wrap(self, prefix: str = "", suffix: str = "", **config: Any) -> GroupBuilder:
        return self.step(StepKind.WRAP, prefix=prefix, suffix=suffix, **config)

    def register_modules(
        self,
        namespace: str = "",
        module_id_fn: Callable[[str], str] | None = None,
        **config: Any,
    ) -> GroupBuilder:
        return self.step(
            StepKind.MODULE_REGISTER, namespace=namespace, module_id_fn=module_id_fn, **config
        )

    def concat(self, output_name: str, **config: Any) -> GroupBuilder:
        return self.step(StepKind.CONCAT, output_name=output_name, **config)

    def copy(self, output_name_fn: Callable[[str], str] | None = None, **config: Any) -> GroupBuilder:
        return self.step(StepKind.COPY, output_name_fn=output_name_fn, **config)

    def compress(self, keep_original: bool = True, **config: Any) -> GroupBuilder:
        return self.step(StepKind.COMPRESS, keep_original=keep_original, **config)

    def manifest(self, output_name: str = "manifest.json", **config: Any) -> GroupBuilder:
        return self.step(StepKind.MANIFEST, output_name=output_name, **config)

    # Chaining back up, so a declaration can continue with the next group.
    def match(self, pattern: str, **kwargs: Any) -> GroupBuilder:
        return self._stage.match(pattern, **kwargs)

    def build(self) -> MatchGroup:
        return MatchGroup(
            name=self.name,
            pattern=self.pattern,
            exclude_patterns=list(self.exclude),
            steps=list(self.steps),
        )


class StageBuilder:
    """Accumulates skip patterns and match groups of one stage."""

    def __init__(self, stage_id: str, output_root: Path, input_root: Path | None) -> None:
        self.stage_id = stage_id
        self.output_root = Path(output_root)
        self.input_root = Path(input_root) if input_root is not None else None
        self.skip_patterns: list[str] = []
        self.groups: list[GroupBuilder] = []

    def skip(self, *patterns: str) -> StageBuilder:
        self.skip_patterns.extend(patterns)
        return self

    def match(
        self, pattern: str, *, name: str | None = None, exclude: list[str] | tuple[str, ...] = ()
    ) -> GroupBuilder:
        group = GroupBuilder(self, pattern, name or pattern, list(exclude))
        self.groups.append(group)
        return group

    def build(self) -> PipelineStage:
        return PipelineStage(
            stage_id=self.stage_id,
            input_root=self.input_root,
            output_root=self.output_root,
            skip_patterns=list(self.skip_patterns),
            match_groups=[g.build() for g in self.groups],
        )


class PipelineDefinition:
    """Built stages plus the filters they reference."""

    def __init__(self, stages: list[PipelineStage], registry: FilterRegistry) -> None:
        self.stages = stages
        self.registry = registry

    def run(
        self,
        *,
        settings: BuildSettings | None = None,
        environment: str | None = None,
        publish: Callable[[Path], None] | None = None,
    ) -> BuildReport:
        """Run this pipeline through a fresh Orchestrator."""
        from assetforge.core.orchestrator import Orchestrator

        orchestrator = Orchestrator(self.registry, settings=settings)
        return orchestrator.run_all(self.stages, environment=environment, publish=publish)

    def __repr__(self) -> str:
        return f"<PipelineDefinition stages={[s.stage_id for s in self.stages]}>"


class PipelineBuilder:
    """Entry point of the builder API.

    Parameters
    ----------
    registry:
        Registry to add plugins to.  Defaults to a fresh one holding the
        built-in filters.
    """

    def __init__(self, registry: FilterRegistry | None = None) -> None:
        self.registry = registry or default_registry()
        self._stages: list[StageBuilder] = []

    def stage(
        self, stage_id: str, output_root: Path | str, input_root: Path | str | None = None
    ) -> StageBuilder:
        builder = StageBuilder(
            stage_id, Path(output_root), Path(input_root) if input_root is not None else None
        )
        self._stages.append(builder)
        return builder

    def register_filter(self, name: str, transform: FilterFn, **kwargs: Any) -> PipelineBuilder:
        self.registry.register(name, transform, **kwargs)
        return self

    def build(self) -> PipelineDefinition:
        return PipelineDefinition([s.build() for s in self._stages], self.registry)
