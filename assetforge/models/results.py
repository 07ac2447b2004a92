"""Build outcome models: per-stage results, the overall report, cache entries."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from assetforge.models.assets import AssetRef
from assetforge.models.stages import StageTransition


class BuildStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class ErrorDetail(BaseModel):
    """Serializable snapshot of a BuildError with its full context."""

    model_config = ConfigDict(frozen=True)

    kind: str
    message: str
    stage_id: str | None = None
    match_group: str | None = None
    file: str | None = None
    step: str | None = None
    line: int | None = None
    exit_code: int = 1


class CacheEntry(BaseModel):
    """Recorded outputs of one match group for a content+config key."""

    model_config = ConfigDict(frozen=True)

    key: str
    scope: str  # "<stage_id>/<match_group>"
    outputs: list[AssetRef]


class BuildResult(BaseModel):
    """Outcome of one stage run."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    status: BuildStatus
    produced_assets: list[AssetRef] = []
    error: ErrorDetail | None = None
    cache_hits: int = 0
    cache_misses: int = 0
    transitions: list[StageTransition] = []

    @property
    def ok(self) -> bool:
        return self.status == BuildStatus.SUCCESS

    @property
    def produced_paths(self) -> list[str]:
        return [asset.relative_path for asset in self.produced_assets]


class BuildReport(BaseModel):
    """Overall outcome of an orchestrated build."""

    model_config = ConfigDict(frozen=True)

    status: BuildStatus
    stage_results: list[BuildResult] = []
    failed_stage: str | None = None
    error: ErrorDetail | None = None
    publish_root: Path | None = None
    skipped_stages: list[str] = []

    @property
    def ok(self) -> bool:
        return self.status == BuildStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        if self.ok:
            return 0
        return self.error.exit_code if self.error else 1
