"""Built-in filters for the generic step kinds.

Compile has no built-in: compilers are always plugins.  Rewrite has a
literal-replacement built-in; anything smarter is a plugin.
"""

from __future__ import annotations

import gzip
import json
import logging

from assetforge.core.hasher import content_address
from assetforge.core.orderer import resolve_order
from assetforge.errors import CompileError
from assetforge.filters import sourcemap
from assetforge.filters.module_ids import default_module_id
from assetforge.filters.registry import FilterRegistry
from assetforge.models.assets import AssetRef
from assetforge.models.context import BuildContext
from assetforge.models.pipeline import StepConfig, StepKind

logger = logging.getLogger(__name__)

DEFAULT_WRAP_PREFIX = "(function() {\n"
DEFAULT_WRAP_SUFFIX = "\n})();\n"
DEFAULT_REGISTER_PREFIX = 'define("{module_id}", ["exports", "require"], function(exports, require) {\n'
DEFAULT_REGISTER_SUFFIX = "\n});\n"
DEFAULT_MANIFEST_NAME = "manifest.json"


def _decode(asset: AssetRef, step: str) -> str:
    try:
        return asset.text
    except UnicodeDecodeError as exc:
        raise CompileError(
            f"{step} expects UTF-8 text: {exc.reason} at byte {exc.start}",
            file=asset.relative_path,
        ) from exc


def _rename(path: str, config: StepConfig) -> str:
    if config.output_name_fn is None:
        return path
    return config.output_name_fn(path)


def _envelope(asset: AssetRef, prefix: str, suffix: str, config: StepConfig, step: str) -> AssetRef:
    text = _decode(asset, step)
    out_path = _rename(asset.relative_path, config)
    metadata = dict(asset.metadata)
    if config.source_maps:
        prefix_lines = prefix.count("\n")
        column = len(prefix.rsplit("\n", 1)[-1])
        existing = asset.metadata.get("source_map")
        if existing and column == 0:
            metadata["source_map"] = sourcemap.shift_map(existing, prefix_lines, generated=out_path)
        else:
            metadata["source_map"] = sourcemap.identity_map(
                asset.relative_path, text, generated=out_path,
                line_offset=prefix_lines, column=column,
            )
    return AssetRef(
        relative_path=out_path,
        content=(prefix + text + suffix).encode("utf-8"),
        metadata=metadata,
    )


# ---------------------------------------------------------------------------
# 1:1 filters
# ---------------------------------------------------------------------------

def rewrite_filter(assets: list[AssetRef], config: StepConfig, ctx: BuildContext) -> list[AssetRef]:
    """Apply ordered literal replacements from ``options["replacements"]``."""
    replacements = config.options.get("replacements", [])
    out = []
    for asset in assets:
        text = _decode(asset, "rewrite")
        for old, new in replacements:
            text = text.replace(old, new)
        out.append(asset.evolve(relative_path=_rename(asset.relative_path, config), content=text))
    return out


def wrap_filter(assets: list[AssetRef], config: StepConfig, ctx: BuildContext) -> list[AssetRef]:
    """Surround each file with a prefix/suffix envelope (default: an IIFE)."""
    if config.prefix or config.suffix:
        prefix, suffix = config.prefix, config.suffix
    else:
        prefix, suffix = DEFAULT_WRAP_PREFIX, DEFAULT_WRAP_SUFFIX
    return [_envelope(a, prefix, suffix, config, "wrap") for a in assets]


def module_register_filter(
    assets: list[AssetRef], config: StepConfig, ctx: BuildContext
) -> list[AssetRef]:
    """Assign each file a module id and wrap it in a registration envelope."""
    prefix_template = config.prefix or DEFAULT_REGISTER_PREFIX
    suffix_template = config.suffix or DEFAULT_REGISTER_SUFFIX
    out = []
    for asset in assets:
        if config.module_id_fn is not None:
            module_id = config.module_id_fn(asset.relative_path)
        else:
            module_id = default_module_id(asset.relative_path, config.namespace)
        wrapped = _envelope(
            asset,
            prefix_template.replace("{module_id}", module_id),
            suffix_template.replace("{module_id}", module_id),
            config,
            "module_register",
        )
        out.append(wrapped.evolve(metadata={**wrapped.metadata, "module_id": module_id}))
    return out


def copy_filter(assets: list[AssetRef], config: StepConfig, ctx: BuildContext) -> list[AssetRef]:
    """Pass files through, optionally renamed by ``output_name_fn``."""
    return [a.evolve(relative_path=_rename(a.relative_path, config)) for a in assets]


# ---------------------------------------------------------------------------
# N:1 and 1:N filters
# ---------------------------------------------------------------------------

def concat_filter(assets: list[AssetRef], config: StepConfig, ctx: BuildContext) -> list[AssetRef]:
    """Merge all files into ``output_name`` in three-tier order."""
    spec = config.concat_spec()
    ordered = resolve_order(assets, spec)
    separator = config.separator

    pieces: list[str] = []
    parts: list[tuple[int, dict]] = []
    line = 0
    for asset in ordered:
        text = _decode(asset, "concat")
        if pieces:
            line += separator.count("\n")
        if config.source_maps:
            part = asset.metadata.get("source_map") or sourcemap.identity_map(asset.relative_path, text)
            parts.append((line, part))
        pieces.append(text)
        line += text.count("\n")

    metadata: dict = {"sources": [a.relative_path for a in ordered]}
    if config.source_maps:
        metadata["source_map"] = sourcemap.index_map(spec.output_name, parts)
    logger.debug("Concatenated %d file(s) into %s", len(ordered), spec.output_name)
    return [
        AssetRef(
            relative_path=spec.output_name,
            content=separator.join(pieces).encode("utf-8"),
            metadata=metadata,
        )
    ]


def compress_filter(assets: list[AssetRef], config: StepConfig, ctx: BuildContext) -> list[AssetRef]:
    """Gzip each file to ``<name>.gz``, alongside or instead of the original.

    The gzip header timestamp is fixed at zero so output bytes are stable.
    """
    level = int(config.options.get("level", 9))
    out = []
    for asset in assets:
        if config.keep_original:
            out.append(asset)
        out.append(
            AssetRef(
                relative_path=f"{asset.relative_path}.gz",
                content=gzip.compress(asset.content, compresslevel=level, mtime=0),
                metadata={"encoding": "gzip", "original": asset.relative_path},
            )
        )
    return out


def manifest_filter(assets: list[AssetRef], config: StepConfig, ctx: BuildContext) -> list[AssetRef]:
    """Emit a manifest mapping every asset's path to its content address."""
    name = config.output_name or DEFAULT_MANIFEST_NAME
    entries = {
        a.relative_path: content_address(a.content)
        for a in assets
        if a.relative_path != name
    }
    manifest = AssetRef(
        relative_path=name,
        content=(json.dumps(entries, indent=2, sort_keys=True) + "\n").encode("utf-8"),
        metadata={"manifest": True},
    )
    kept = [a for a in assets if a.relative_path != name] if config.keep_original else []
    return kept + [manifest]


BUILTIN_FILTERS = {
    StepKind.REWRITE: rewrite_filter,
    StepKind.WRAP: wrap_filter,
    StepKind.MODULE_REGISTER: module_register_filter,
    StepKind.CONCAT: concat_filter,
    StepKind.COPY: copy_filter,
    StepKind.COMPRESS: compress_filter,
    StepKind.MANIFEST: manifest_filter,
}


def register_builtins(registry: FilterRegistry) -> None:
    """Register each built-in under its step kind's name."""
    for kind, fn in BUILTIN_FILTERS.items():
        registry.register(kind.value, fn, kinds=[kind], builtin=True, replace=True)
