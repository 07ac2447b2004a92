"""Canonical hashing helpers for cache keys and content addressing.

Cache keys must be stable across processes and machines, so everything
hashed here goes through canonical JSON first.
"""

from __future__ import annotations

import functools
import hashlib
import json
import re
import types
from collections.abc import Callable
from typing import Any

from assetforge.models.assets import AssetRef
from assetforge.models.pipeline import FilterStep


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_address(data: bytes) -> str:
    """Return the "sha256:<hex>" address of raw bytes."""
    return f"sha256:{sha256_hex(data)}"


def callable_fingerprint(fn: Callable[..., Any] | None) -> str | None:
    """Identify a configuration function by name and compiled body.

    Two lambdas with the same qualified name but different bodies get
    different fingerprints, so editing an id function invalidates the cache.
    ``functools.partial`` objects and instances with ``__call__`` are
    fingerprinted through the function they wrap plus their bound state.

    Raises ``TypeError`` when the only available description embeds a
    memory address and would change from one process to the next.
    """
    if fn is None:
        return None
    if isinstance(fn, functools.partial):
        args = ",".join(_stable_repr(a) for a in fn.args)
        keywords = ",".join(f"{k}={_stable_repr(v)}" for k, v in sorted(fn.keywords.items()))
        return f"partial({callable_fingerprint(fn.func)};{args};{keywords})"

    code = getattr(fn, "__code__", None)
    if code is None:
        call = getattr(type(fn), "__call__", None)
        if isinstance(call, types.FunctionType) and not isinstance(fn, type):
            cls = type(fn)
            state = _stable_repr(getattr(fn, "__dict__", {}))
            return f"{cls.__module__}.{cls.__qualname__}({callable_fingerprint(call)};{state})"
        # Builtins and classes are identified by name and bound object.
        name = _check_stable(f"{getattr(fn, '__module__', '')}.{getattr(fn, '__qualname__', repr(fn))}")
        bound = getattr(fn, "__self__", None)
        if bound is not None and not isinstance(bound, types.ModuleType):
            name += f"[{_stable_repr(bound)}]"
        return name

    name = f"{getattr(fn, '__module__', '')}.{fn.__qualname__}"
    body = _code_bytes(code)
    for cell in getattr(fn, "__closure__", None) or ():
        try:
            value = cell.cell_contents
        except ValueError:
            continue  # unfilled cell
        body += (name if value is fn else _stable_repr(value)).encode("utf-8")
    bound = getattr(fn, "__self__", None)
    if bound is not None and not isinstance(bound, types.ModuleType):
        body += _stable_repr(getattr(bound, "__dict__", bound)).encode("utf-8")
    return f"{name}:{sha256_hex(body)[:16]}"


_ADDRESS = re.compile(r" at 0x[0-9a-fA-F]+")


def _check_stable(text: str) -> str:
    if _ADDRESS.search(text):
        raise TypeError(f"{text} cannot be fingerprinted across processes")
    return text


def _stable_repr(value: Any) -> str:
    """repr() that does not depend on hash seeds or memory addresses."""
    if hasattr(value, "co_code"):
        return sha256_hex(_code_bytes(value))
    if callable(value):
        return callable_fingerprint(value) or ""
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_stable_repr(v) for v in value)) + "}"
    if isinstance(value, (list, tuple)):
        return f"{type(value).__name__}(" + ",".join(_stable_repr(v) for v in value) + ")"
    if isinstance(value, dict):
        items = sorted(f"{_stable_repr(k)}:{_stable_repr(v)}" for k, v in value.items())
        return "{" + ",".join(items) + "}"
    return _check_stable(repr(value))


def _code_bytes(code: Any) -> bytes:
    # Nested code objects repr with their memory address; descend instead.
    body = code.co_code + repr(code.co_names).encode("utf-8")
    for const in code.co_consts:
        body += _stable_repr(const).encode("utf-8")
    return body


def step_fingerprint(step: FilterStep) -> dict[str, Any]:
    """Serializable description of a filter step, functions included."""
    config = step.config.model_dump(exclude={"module_id_fn", "output_name_fn"})
    config["module_id_fn"] = callable_fingerprint(step.config.module_id_fn)
    config["output_name_fn"] = callable_fingerprint(step.config.output_name_fn)
    return {"kind": step.kind.value, "plugin": step.plugin, "config": config}


def asset_fingerprint(asset: AssetRef) -> list[str]:
    """(path, content hash, metadata hash) triple for one asset."""
    return [
        asset.relative_path,
        asset.content_hash,
        sha256_hex(canonical_json_bytes(asset.metadata)),
    ]


def compute_cache_key(
    stage_id: str,
    match_group: str,
    assets: list[AssetRef],
    steps: list[FilterStep],
    environment: str = "",
) -> str:
    """SHA-256 over (scope, environment, sorted inputs, chain configuration).

    Input order does not matter; any content, metadata or configuration
    change produces a different key.
    """
    payload = {
        "stage_id": stage_id,
        "match_group": match_group,
        "environment": environment,
        "inputs": sorted(asset_fingerprint(a) for a in assets),
        "chain": [step_fingerprint(s) for s in steps],
    }
    return sha256_hex(canonical_json_bytes(payload))
