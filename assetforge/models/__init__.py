"""assetforge data models — all Pydantic v2, all frozen (immutable)."""

from assetforge.models.assets import AssetRef
from assetforge.models.pipeline import (
    ConcatSpec,
    FilterStep,
    MatchGroup,
    PipelineStage,
    RemainderPolicy,
    StepConfig,
    StepKind,
)
from assetforge.models.results import (
    BuildReport,
    BuildResult,
    BuildStatus,
    CacheEntry,
    ErrorDetail,
)
from assetforge.models.stages import (
    VALID_TRANSITIONS,
    StageState,
    StageTransition,
)

__all__ = [
    # assets
    "AssetRef",
    # pipeline
    "StepKind",
    "StepConfig",
    "FilterStep",
    "MatchGroup",
    "PipelineStage",
    "ConcatSpec",
    "RemainderPolicy",
    # stages
    "StageState",
    "StageTransition",
    "VALID_TRANSITIONS",
    # results
    "BuildStatus",
    "BuildResult",
    "BuildReport",
    "CacheEntry",
    "ErrorDetail",
]
