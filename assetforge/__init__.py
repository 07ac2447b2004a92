"""Assetforge: multi-stage asset build pipelines.

Declare stages with ``PipelineBuilder``; each stage matches files under an
input root, runs them through ordered filter chains, and writes exactly its
outputs to an output root.  Stages chain input-to-output, group results are
cached by content, and every build is deterministic.
"""

__version__ = "0.1.0"
__description__ = "Multi-stage, cached, deterministic asset build pipelines"

from assetforge.core.builder import PipelineBuilder, PipelineDefinition
from assetforge.core.orchestrator import Orchestrator
from assetforge.errors import (
    AssetIOError,
    BuildError,
    CollisionError,
    CompileError,
    MatchConfigError,
)
from assetforge.models.assets import AssetRef

__all__ = [
    "AssetIOError",
    "AssetRef",
    "BuildError",
    "CollisionError",
    "CompileError",
    "MatchConfigError",
    "Orchestrator",
    "PipelineBuilder",
    "PipelineDefinition",
    "__version__",
]
