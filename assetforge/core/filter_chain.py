"""Filter chain execution — steps strictly in declaration order.

Step *i*'s output list is exactly step *i + 1*'s input list.  The first
failing step aborts the chain; its error carries the step label and, when
known, the offending file.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from assetforge.errors import BuildError, CompileError
from assetforge.filters.registry import FilterRegistry
from assetforge.models.assets import AssetRef
from assetforge.models.context import BuildContext
from assetforge.models.pipeline import FilterStep

logger = logging.getLogger(__name__)


def step_label(index: int, step: FilterStep) -> str:
    """Human-readable step id for error context, e.g. ``"2:concat"``."""
    if step.plugin and step.plugin != step.kind.value:
        return f"{index}:{step.kind.value}({step.plugin})"
    return f"{index}:{step.kind.value}"


class FilterChain:
    """An ordered sequence of filter steps bound to a registry.

    Parameters
    ----------
    steps:
        The declared steps.
    registry:
        Where step filters are looked up.
    on_invoke:
        Optional callback run before each filter invocation with the
        filter name; the stage runner uses it to count invocations.
    """

    def __init__(
        self,
        steps: list[FilterStep],
        registry: FilterRegistry,
        *,
        on_invoke: Callable[[str], None] | None = None,
    ) -> None:
        self.steps = list(steps)
        self._registry = registry
        self._on_invoke = on_invoke

    def run(self, assets: list[AssetRef], ctx: BuildContext) -> list[AssetRef]:
        """Apply every step left to right and return the final asset list."""
        current = list(assets)
        for index, step in enumerate(self.steps):
            label = step_label(index, step)
            entry = self._registry.require(step.filter_name, step.kind)
            if self._on_invoke is not None:
                self._on_invoke(entry.name)
            try:
                result = entry.transform(current, step.config, ctx)
            except BuildError as exc:
                raise exc.with_context(step=label, match_group=ctx.match_group, stage_id=ctx.stage_id)
            except Exception as exc:
                # Plugins are foreign code; anything they raise is a rejection of input.
                raise CompileError(
                    f"Filter '{entry.name}' raised {type(exc).__name__}: {exc}",
                    step=label,
                    match_group=ctx.match_group or None,
                    stage_id=ctx.stage_id or None,
                ) from exc

            if not isinstance(result, list) or not all(isinstance(a, AssetRef) for a in result):
                raise CompileError(
                    f"Filter '{entry.name}' must return a list of AssetRef",
                    step=label,
                    match_group=ctx.match_group or None,
                    stage_id=ctx.stage_id or None,
                )
            logger.debug(
                "[%s/%s] step %s: %d -> %d asset(s)",
                ctx.stage_id, ctx.match_group, label, len(current), len(result),
            )
            current = result
        return current
