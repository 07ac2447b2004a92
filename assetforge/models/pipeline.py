"""Declarative pipeline descriptors: stages, match groups and filter steps.

These are plain data.  The builder API constructs them; the engine only
reads them.  Function-valued configuration (``module_id_fn``,
``output_name_fn``) must be pure functions of the relative path being
processed; that path is their only input.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class StepKind(str, Enum):
    """The transform kinds a filter step can declare."""

    COMPILE = "compile"
    REWRITE = "rewrite"
    WRAP = "wrap"
    MODULE_REGISTER = "module_register"
    CONCAT = "concat"
    COPY = "copy"
    COMPRESS = "compress"
    MANIFEST = "manifest"


class RemainderPolicy(BaseModel):
    """How a concat orders files not named in its explicit order."""

    model_config = ConfigDict(frozen=True)

    priority_prefixes: list[str] = []  # "engines first": vendor/plugin namespaces
    stable_sort: str = "lexicographic"


class ConcatSpec(BaseModel):
    """Ordering and naming for an N:1 concat."""

    model_config = ConfigDict(frozen=True)

    explicit_order: list[str] = []
    remainder_policy: RemainderPolicy = RemainderPolicy()
    output_name: str
    required: bool = False  # explicit names must all be present


class StepConfig(BaseModel):
    """Configuration recognized by filter steps.

    The first six fields are the recognized per-step configuration; the rest
    parameterize particular step kinds.  ``options`` is passed through
    untouched to plugins.
    """

    model_config = ConfigDict(frozen=True)

    source_maps: bool = False
    module_id_fn: Callable[[str], str] | None = None
    join_order: list[str] = []
    required: bool = False
    minify: bool = False
    output_name_fn: Callable[[str], str] | None = None

    output_name: str | None = None  # concat / manifest
    priority_prefixes: list[str] = []  # concat
    separator: str = "\n"  # concat
    prefix: str = ""  # wrap / module_register
    suffix: str = ""  # wrap / module_register
    namespace: str = ""  # module_register
    keep_original: bool = True  # compress / manifest
    options: dict[str, Any] = {}

    def concat_spec(self) -> ConcatSpec:
        """Build the ConcatSpec a concat step orders by."""
        if not self.output_name:
            raise ValueError("concat steps require an output_name")
        return ConcatSpec(
            explicit_order=list(self.join_order),
            remainder_policy=RemainderPolicy(priority_prefixes=list(self.priority_prefixes)),
            output_name=self.output_name,
            required=self.required,
        )


class FilterStep(BaseModel):
    """One step of a filter chain.

    ``plugin`` names a registered filter; when omitted the built-in filter
    for ``kind`` is used.
    """

    model_config = ConfigDict(frozen=True)

    kind: StepKind
    plugin: str | None = None
    config: StepConfig = StepConfig()

    @property
    def filter_name(self) -> str:
        return self.plugin or self.kind.value


class MatchGroup(BaseModel):
    """A pattern plus the filter chain applied to the files it selects."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    pattern: str
    exclude_patterns: list[str] = []
    steps: list[FilterStep] = []

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            data = {**data, "name": data.get("pattern", "")}
        return data


class PipelineStage(BaseModel):
    """One input-root to output-root transformation phase.

    A stage without an ``input_root`` reads the previous stage's output
    root; the orchestrator fills it in.
    """

    model_config = ConfigDict(frozen=True)

    stage_id: str
    input_root: Path | None = None
    output_root: Path
    skip_patterns: list[str] = []
    match_groups: list[MatchGroup] = []

    def stage_skip_patterns(self) -> list[str]:
        """Every exclusion that applies to this stage, deduplicated and sorted.

        A group's exclude patterns hide files from every group in the stage.
        """
        patterns = set(self.skip_patterns)
        for group in self.match_groups:
            patterns.update(group.exclude_patterns)
        return sorted(patterns)
