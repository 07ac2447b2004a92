"""Filters — the uniform transform contract and the built-in step kinds.

Plugins register under a name in a ``FilterRegistry`` and are referenced
from filter steps.  Built-ins serve wrap, module_register, concat, copy,
compress, manifest and literal rewrite steps.
"""

from assetforge.filters.module_ids import library_module_id, plugin_module_id
from assetforge.filters.registry import FilterEntry, FilterRegistry, default_registry

__all__ = [
    "FilterRegistry",
    "FilterEntry",
    "default_registry",
    "library_module_id",
    "plugin_module_id",
]
