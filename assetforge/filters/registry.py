"""Filter registry — named transforms that filter steps reference.

A filter is any callable with the signature::

    transform(assets: list[AssetRef], config: StepConfig, ctx: BuildContext)
        -> list[AssetRef]

raising ``BuildError`` (usually ``CompileError``) to reject its input.
Filter steps name a registered filter via ``plugin``; steps without one use
the built-in filter registered under their kind's name.  The engine has no
knowledge of any specific compiler: compilers are plugins.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

from assetforge.errors import MatchConfigError
from assetforge.models.assets import AssetRef
from assetforge.models.context import BuildContext
from assetforge.models.pipeline import StepConfig, StepKind

logger = logging.getLogger(__name__)

FilterFn = Callable[[list[AssetRef], StepConfig, BuildContext], list[AssetRef]]


# ---------------------------------------------------------------------------
# Filter entry model
# ---------------------------------------------------------------------------

class FilterEntry(BaseModel):
    """Immutable record of one registered filter.

    Examples
    --------
    >>> entry = FilterEntry(
    ...     name="handlebars",
    ...     transform=lambda assets, config, ctx: assets,
    ...     kinds=[StepKind.COMPILE],
    ... )
    >>> entry.builtin
    False
    """

    model_config = ConfigDict(frozen=True)

    name: str
    transform: Callable[..., list[AssetRef]]
    kinds: list[StepKind] = []  # step kinds this filter may serve; empty = any
    description: str = ""
    builtin: bool = False

    def accepts(self, kind: StepKind) -> bool:
        return not self.kinds or kind in self.kinds


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class FilterRegistry:
    """Name -> filter lookup used by filter chains and validation.

    Examples
    --------
    >>> registry = FilterRegistry()
    >>> @registry.filter("upper", kinds=[StepKind.REWRITE])
    ... def upper(assets, config, ctx):
    ...     return [a.evolve(content=a.text.upper()) for a in assets]
    >>> registry.get("upper") is not None
    True
    """

    def __init__(self) -> None:
        self._filters: dict[str, FilterEntry] = {}

    # -- Registration -------------------------------------------------------

    def register(
        self,
        name: str,
        transform: FilterFn,
        *,
        kinds: list[StepKind] | None = None,
        description: str = "",
        builtin: bool = False,
        replace: bool = False,
    ) -> FilterEntry:
        """Register *transform* under *name*.

        Raises
        ------
        ValueError
            If *name* is already registered and ``replace`` is False.
        """
        if name in self._filters and not replace:
            raise ValueError(
                f"Filter '{name}' is already registered. Pass replace=True to override it."
            )
        entry = FilterEntry(
            name=name,
            transform=transform,
            kinds=list(kinds or []),
            description=description or (transform.__doc__ or "").strip().split("\n")[0],
            builtin=builtin,
        )
        self._filters[name] = entry
        logger.debug("Registered filter %s (%s)", name, [k.value for k in entry.kinds] or "any")
        return entry

    def filter(
        self, name: str, *, kinds: list[StepKind] | None = None, description: str = ""
    ) -> Callable[[FilterFn], FilterFn]:
        """Decorator form of ``register``."""

        def _decorate(fn: FilterFn) -> FilterFn:
            self.register(name, fn, kinds=kinds, description=description)
            return fn

        return _decorate

    def register_entry_point(self, name: str, entry_point: str, **kwargs: Any) -> FilterEntry:
        """Register a filter by dotted import path, e.g. ``"my_pkg.filters:compile_hbs"``."""
        return self.register(name, load_entry_point(entry_point), **kwargs)

    def unregister(self, name: str) -> bool:
        """Remove a filter; return True if it was registered."""
        if self._filters.pop(name, None) is None:
            logger.warning("Cannot unregister '%s' — not found in registry.", name)
            return False
        return True

    # -- Lookup -------------------------------------------------------------

    def get(self, name: str) -> FilterEntry | None:
        """Return the ``FilterEntry`` for *name*, or ``None`` if not found."""
        return self._filters.get(name)

    def require(self, name: str, kind: StepKind) -> FilterEntry:
        """Return the filter serving a step of *kind*, or raise ``MatchConfigError``."""
        entry = self._filters.get(name)
        if entry is None:
            raise MatchConfigError(f"Unknown filter plugin '{name}'")
        if not entry.accepts(kind):
            raise MatchConfigError(
                f"Filter '{name}' cannot serve {kind.value} steps "
                f"(serves {[k.value for k in entry.kinds]})",
            )
        return entry

    def list_filters(self, kind: StepKind | None = None) -> list[FilterEntry]:
        """Registered filters sorted by name, optionally only those serving *kind*."""
        entries = [e for e in self._filters.values() if kind is None or e.accepts(kind)]
        return sorted(entries, key=lambda e: e.name)

    def copy(self) -> FilterRegistry:
        clone = FilterRegistry()
        clone._filters = dict(self._filters)
        return clone

    def __contains__(self, name: str) -> bool:
        return name in self._filters

    def __len__(self) -> int:
        return len(self._filters)


def load_entry_point(entry_point: str) -> Any:
    """Import ``"package.module:attribute"`` and return the attribute."""
    module_name, sep, attr = entry_point.partition(":")
    if not sep or not module_name or not attr:
        raise MatchConfigError(
            f"Invalid entry point {entry_point!r}; expected 'package.module:attribute'"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise MatchConfigError(f"Cannot import {module_name!r}: {exc}") from exc
    target: Any = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise MatchConfigError(
                f"Module {module_name!r} has no attribute {attr!r}"
            ) from None
    return target


def default_registry() -> FilterRegistry:
    """A fresh registry holding the built-in filters."""
    from assetforge.filters.builtin import register_builtins

    registry = FilterRegistry()
    register_builtins(registry)
    return registry
