"""Deterministic concat ordering.

Three tiers:

1. files named in ``explicit_order``, in that order, skipping absent ones;
2. remaining files under a priority prefix ("engines first");
3. everything else.

Within tiers 2 and 3 files sort lexicographically by relative path, so the
result never depends on directory listing or worker completion order.
"""

from __future__ import annotations

import logging

from assetforge.core.matcher import Matcher, is_glob
from assetforge.errors import CompileError
from assetforge.models.assets import AssetRef
from assetforge.models.pipeline import ConcatSpec

logger = logging.getLogger(__name__)

_SORT_KEYS = {
    "lexicographic": lambda asset: asset.relative_path,
}


def explicit_entry_matches(entry: str, path: str) -> bool:
    """An explicit-order entry names *path* exactly or as a trailing segment."""
    entry = entry.lstrip("/")
    return path == entry or path.endswith("/" + entry)


def _under_prefix(path: str, prefix: str) -> bool:
    """True if *path* is *prefix* itself or lies below it, segment-wise."""
    prefix = prefix.strip("/")
    return path == prefix or path.startswith(prefix + "/")


def _is_priority(path: str, prefixes: list[str], matchers: list[Matcher]) -> bool:
    return any(m.matches(path) for m in matchers) or any(_under_prefix(path, p) for p in prefixes)


def resolve_order(assets: list[AssetRef], spec: ConcatSpec) -> list[AssetRef]:
    """Return *assets* in concat order per the three-tier rule.

    Raises ``CompileError`` if ``spec.required`` and an explicit entry has no
    matching asset.
    """
    try:
        sort_key = _SORT_KEYS[spec.remainder_policy.stable_sort]
    except KeyError:
        raise ValueError(
            f"Unknown stable_sort {spec.remainder_policy.stable_sort!r}; "
            f"expected one of {sorted(_SORT_KEYS)}"
        ) from None

    remaining = sorted(assets, key=sort_key)
    ordered: list[AssetRef] = []

    for entry in spec.explicit_order:
        hits = [a for a in remaining if explicit_entry_matches(entry, a.relative_path)]
        if not hits and any(explicit_entry_matches(entry, a.relative_path) for a in ordered):
            logger.debug("Explicit order entry %r already placed; skipping", entry)
            continue
        if not hits:
            if spec.required:
                raise CompileError(
                    f"Required file {entry!r} is missing from concat input",
                    file=entry,
                )
            logger.debug("Explicit order entry %r not present; skipping", entry)
            continue
        ordered.extend(hits)
        taken = {a.relative_path for a in hits}
        remaining = [a for a in remaining if a.relative_path not in taken]

    policy = spec.remainder_policy
    glob_matchers = [Matcher(p) for p in policy.priority_prefixes if is_glob(p)]
    plain_prefixes = [p for p in policy.priority_prefixes if not is_glob(p)]

    priority: list[AssetRef] = []
    rest: list[AssetRef] = []
    for asset in remaining:
        if _is_priority(asset.relative_path, plain_prefixes, glob_matchers):
            priority.append(asset)
        else:
            rest.append(asset)
    return ordered + priority + rest
