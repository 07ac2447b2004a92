"""Module identifier functions for module-register steps.

Each factory returns a pure ``(relative_path) -> module_id`` function.  The
captured values are plain strings; the relative path is the only runtime
input.  Library code and per-plugin code use different id schemes.
"""

from __future__ import annotations

from collections.abc import Callable

ModuleIdFn = Callable[[str], str]

_COMPOUND_EXTENSIONS = (".js.es6", ".js.erb", ".hbs.erb", ".d.ts")


def strip_extension(path: str) -> str:
    """Drop the file extension, including known compound ones.

    >>> strip_extension("app/models/user.js.es6")
    'app/models/user'
    >>> strip_extension("templates/list.hbs")
    'templates/list'
    """
    for ext in _COMPOUND_EXTENSIONS:
        if path.endswith(ext):
            return path[: -len(ext)]
    head, sep, tail = path.rpartition("/")
    if "." in tail.lstrip("."):
        tail = tail[: tail.rfind(".")]
    return f"{head}{sep}{tail}"


def _join(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p.strip("/"))


def default_module_id(path: str, namespace: str = "") -> str:
    """``namespace/path-without-extension``."""
    return _join(namespace, strip_extension(path))


def library_module_id(namespace: str, strip_prefix: str = "") -> ModuleIdFn:
    """Ids for library code: ``<namespace>/<path>`` minus *strip_prefix*."""

    def _library_id(path: str) -> str:
        if strip_prefix and path.startswith(strip_prefix):
            path = path[len(strip_prefix):]
        return _join(namespace, strip_extension(path))

    return _library_id


def plugin_module_id(
    namespace: str, plugin_name: str, strip_prefix: str = ""
) -> ModuleIdFn:
    """Ids for one plugin's code: ``<namespace>/<plugin_name>/<path>``.

    >>> plugin_module_id("app/plugins", "chat", "assets/")("assets/lib/room.js")
    'app/plugins/chat/lib/room'
    """

    def _plugin_id(path: str) -> str:
        if strip_prefix and path.startswith(strip_prefix):
            path = path[len(strip_prefix):]
        return _join(namespace, plugin_name, strip_extension(path))

    return _plugin_id
