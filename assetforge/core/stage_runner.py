"""Execution of one pipeline stage.

Lifecycle (enforced through the StageMachine):

    Loading -> Matching -> Transforming -> Writing -> Done

1. Loading reads every file under the input root into AssetRefs.
2. Matching applies stage-wide skips, then routes files to match groups.
3. Transforming runs each group's chain (or replays its cache entry) on a
   bounded worker pool.  Results are collected in declaration order.
4. Writing checks output paths for collisions and replaces the output root
   with exactly the stage's outputs.

A failing group does not cancel its siblings; the stage still fails with the
first error in declaration order.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import sqlite3
import threading
import uuid
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from assetforge.core.cache_store import CacheStore
from assetforge.core.filter_chain import FilterChain
from assetforge.core.hasher import compute_cache_key
from assetforge.core.matcher import Matcher, apply_skips
from assetforge.core.stage_machine import StageMachine
from assetforge.errors import AssetIOError, BuildError, CollisionError, MatchConfigError
from assetforge.filters.registry import FilterRegistry
from assetforge.models.assets import AssetRef
from assetforge.models.context import BuildContext
from assetforge.models.pipeline import MatchGroup, PipelineStage
from assetforge.models.results import BuildResult, BuildStatus, CacheEntry
from assetforge.models.stages import StageState

logger = logging.getLogger(__name__)


@dataclass
class _InputSnapshot:
    assets: dict[str, AssetRef] = field(default_factory=dict)
    error: BuildError | None = None


@dataclass
class _GroupOutcome:
    group: str
    outputs: list[AssetRef] = field(default_factory=list)
    error: BuildError | None = None
    cache_hit: bool = False


def with_sidecar_maps(assets: list[AssetRef]) -> list[AssetRef]:
    """Materialize ``source_map`` metadata as ``<path>.map`` files.

    Metadata does not survive the trip to disk, so a map that later stages
    should see has to become a file.  Existing ``.map`` outputs win.
    """
    names = {a.relative_path for a in assets}
    sidecars = []
    for asset in assets:
        source_map = asset.metadata.get("source_map")
        map_name = f"{asset.relative_path}.map"
        if source_map and map_name not in names:
            sidecars.append(
                AssetRef(
                    relative_path=map_name,
                    content=json.dumps(source_map, sort_keys=True).encode("utf-8"),
                    metadata={"source_map_for": asset.relative_path},
                )
            )
    return assets + sidecars


class StageRunner:
    """Runs single stages against a filter registry and optional cache.

    Parameters
    ----------
    registry:
        Filters available to the stage's steps.
    machine:
        State machine the stage's transitions are recorded in.
    cache:
        Build cache.  ``None`` disables caching.
    max_workers:
        Upper bound on match groups transformed concurrently.
    emit_source_maps:
        Write ``.map`` files for outputs carrying source maps.
    """

    def __init__(
        self,
        registry: FilterRegistry,
        machine: StageMachine,
        *,
        cache: CacheStore | None = None,
        max_workers: int = 4,
        emit_source_maps: bool = True,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._registry = registry
        self._machine = machine
        self._cache = cache
        self._max_workers = max_workers
        self._emit_source_maps = emit_source_maps
        self._invocations: Counter[str] = Counter()
        self._count_lock = threading.Lock()

    @property
    def filter_invocations(self) -> int:
        """Total filter invocations across every stage this runner ran."""
        with self._count_lock:
            return sum(self._invocations.values())

    def invocations_by_filter(self) -> dict[str, int]:
        with self._count_lock:
            return dict(self._invocations)

    def _count(self, filter_name: str) -> None:
        with self._count_lock:
            self._invocations[filter_name] += 1

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self, stage: PipelineStage, ctx: BuildContext | None = None) -> BuildResult:
        """Execute *stage* and return its BuildResult.

        Failures inside the stage are reported on the result.  Raises
        ``MatchConfigError`` only when the stage has no input root, which
        ``Orchestrator`` wires before running.
        """
        if stage.input_root is None:
            raise MatchConfigError("Stage has no input root", stage_id=stage.stage_id)
        ctx = ctx or BuildContext()
        sid = stage.stage_id

        self._machine.transition(sid, StageState.LOADING)
        snapshot = self._load(stage)

        self._machine.transition(sid, StageState.MATCHING)
        try:
            if snapshot.error is not None:
                raise snapshot.error
            routed = self._match(stage, snapshot)
        except BuildError as exc:
            return self._fail(stage, exc)

        self._machine.transition(sid, StageState.TRANSFORMING)
        outcomes = self._transform(stage, routed, ctx)
        hits = sum(1 for o in outcomes if o.cache_hit)
        misses = len(outcomes) - hits

        failures = [o for o in outcomes if o.error is not None]
        if failures:
            for extra in failures[1:]:
                logger.error("Stage %s: additional failure in group %s: %s", sid, extra.group, extra.error)
            completed = [a for o in outcomes if o.error is None for a in o.outputs]
            return self._fail(stage, failures[0].error, completed, hits, misses)

        self._machine.transition(sid, StageState.WRITING)
        try:
            produced = self._collect(stage, outcomes)
            self._write(stage, produced)
        except BuildError as exc:
            return self._fail(stage, exc, [], hits, misses)

        self._machine.transition(sid, StageState.DONE)
        logger.info(
            "Stage %s done: %d output(s), %d cache hit(s), %d miss(es)",
            sid, len(produced), hits, misses,
        )
        return BuildResult(
            stage_id=sid,
            status=BuildStatus.SUCCESS,
            produced_assets=produced,
            cache_hits=hits,
            cache_misses=misses,
            transitions=self._machine.history(sid),
        )

    def _fail(
        self,
        stage: PipelineStage,
        exc: BuildError,
        produced: list[AssetRef] | None = None,
        hits: int = 0,
        misses: int = 0,
    ) -> BuildResult:
        exc.with_context(stage_id=stage.stage_id)
        self._machine.transition(stage.stage_id, StageState.FAILED, reason=str(exc))
        return BuildResult(
            stage_id=stage.stage_id,
            status=BuildStatus.FAILED,
            produced_assets=sorted(produced or [], key=lambda a: a.relative_path),
            error=exc.to_detail(),
            cache_hits=hits,
            cache_misses=misses,
            transitions=self._machine.history(stage.stage_id),
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _load(self, stage: PipelineStage) -> _InputSnapshot:
        root = Path(stage.input_root)
        snapshot = _InputSnapshot()
        if not root.is_dir():
            snapshot.error = AssetIOError(
                root, FileNotFoundError(f"input root {root} is not a directory"),
                stage_id=stage.stage_id,
            )
            return snapshot
        try:
            for path in sorted(root.rglob("*")):
                if not path.is_file():
                    continue
                rel = path.relative_to(root).as_posix()
                snapshot.assets[rel] = AssetRef(relative_path=rel, content=path.read_bytes())
        except OSError as exc:
            snapshot.error = AssetIOError(
                exc.filename or root, exc, stage_id=stage.stage_id
            )
        logger.debug("Stage %s loaded %d file(s) from %s", stage.stage_id, len(snapshot.assets), root)
        return snapshot

    def _match(
        self, stage: PipelineStage, snapshot: _InputSnapshot
    ) -> list[tuple[MatchGroup, list[AssetRef]]]:
        skips = stage.stage_skip_patterns()
        visible = apply_skips(snapshot.assets, skips)
        skipped = len(snapshot.assets) - len(visible)
        if skipped:
            logger.info("Stage %s: %d file(s) skipped by %s", stage.stage_id, skipped, skips)

        routed = []
        for group in stage.match_groups:
            selected = Matcher(group.pattern).select(visible)
            logger.debug("Stage %s group %s matched %d file(s)", stage.stage_id, group.name, len(selected))
            routed.append((group, [snapshot.assets[p] for p in selected]))
        return routed

    def _transform(
        self,
        stage: PipelineStage,
        routed: list[tuple[MatchGroup, list[AssetRef]]],
        ctx: BuildContext,
    ) -> list[_GroupOutcome]:
        if not routed:
            return []
        workers = min(self._max_workers, len(routed))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix=f"assetforge-{stage.stage_id}"
        ) as pool:
            futures = [
                pool.submit(self._run_group, stage, group, assets, ctx)
                for group, assets in routed
            ]
            # Declaration order, not completion order.
            return [f.result() for f in futures]

    def _run_group(
        self,
        stage: PipelineStage,
        group: MatchGroup,
        assets: list[AssetRef],
        ctx: BuildContext,
    ) -> _GroupOutcome:
        sid = stage.stage_id
        key = None
        if self._cache is not None:
            key = compute_cache_key(sid, group.name, assets, group.steps, ctx.environment)
            entry = self._cache.get(key)
            if entry is not None:
                logger.debug("Stage %s group %s: cache hit %s", sid, group.name, key[:12])
                return _GroupOutcome(
                    group=group.name, outputs=self._finish(entry.outputs), cache_hit=True
                )

        chain = FilterChain(group.steps, self._registry, on_invoke=self._count)
        try:
            outputs = chain.run(assets, ctx.for_group(sid, group.name))
        except BuildError as exc:
            exc.with_context(stage_id=sid, match_group=group.name)
            return _GroupOutcome(group=group.name, error=exc)

        if self._cache is not None and key is not None:
            try:
                self._cache.put(CacheEntry(key=key, scope=f"{sid}/{group.name}", outputs=outputs))
            except (TypeError, ValueError) as exc:
                logger.warning("Stage %s group %s: outputs not cacheable: %s", sid, group.name, exc)
            except (OSError, sqlite3.Error) as exc:
                logger.warning("Stage %s group %s: cache write failed: %s", sid, group.name, exc)
        return _GroupOutcome(group=group.name, outputs=self._finish(outputs))

    def _finish(self, outputs: list[AssetRef]) -> list[AssetRef]:
        if self._emit_source_maps:
            return with_sidecar_maps(outputs)
        return outputs

    def _collect(self, stage: PipelineStage, outcomes: list[_GroupOutcome]) -> list[AssetRef]:
        """Merge group outputs, rejecting same-path writes with different bytes."""
        claimed: dict[str, tuple[str, AssetRef]] = {}
        for outcome in outcomes:
            for asset in outcome.outputs:
                prior = claimed.get(asset.relative_path)
                if prior is None:
                    claimed[asset.relative_path] = (outcome.group, asset)
                    continue
                owner, existing = prior
                if existing.content == asset.content:
                    logger.warning(
                        "Stage %s: %s written identically by %s and %s; keeping one copy",
                        stage.stage_id, asset.relative_path, owner, outcome.group,
                    )
                    continue
                raise CollisionError(
                    asset.relative_path, stage.stage_id, sorted({owner, outcome.group})
                )
        return [claimed[path][1] for path in sorted(claimed)]

    def _write(self, stage: PipelineStage, assets: list[AssetRef]) -> None:
        """Replace the output root with exactly *assets*.

        Files are written to a sibling staging directory which is then
        renamed into place, so a failed write leaves the old root intact.
        """
        out = Path(stage.output_root)
        staging = out.with_name(f".{out.name}.staging-{uuid.uuid4().hex[:8]}")
        try:
            staging.mkdir(parents=True)
            for asset in assets:
                target = staging / asset.relative_path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(asset.content)
            if out.exists():
                shutil.rmtree(out)
            os.replace(staging, out)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise AssetIOError(exc.filename or out, exc, stage_id=stage.stage_id) from exc
        logger.debug("Stage %s wrote %d file(s) to %s", stage.stage_id, len(assets), out)
