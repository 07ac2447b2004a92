"""Tests for module identifier functions."""

from __future__ import annotations

import pytest

from assetforge.filters.module_ids import (
    default_module_id,
    library_module_id,
    plugin_module_id,
    strip_extension,
)


class TestStripExtension:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("a/b.js", "a/b"),
            ("a/b.js.es6", "a/b"),
            ("t/list.hbs.erb", "t/list"),
            ("types/index.d.ts", "types/index"),
            ("a.b/c", "a.b/c"),
            ("dir/.hidden", "dir/.hidden"),
            ("jquery.min.js", "jquery.min"),
        ],
    )
    def test_strip(self, path: str, expected: str):
        assert strip_extension(path) == expected


class TestModuleIds:
    def test_default_without_namespace(self):
        assert default_module_id("models/user.js") == "models/user"

    def test_default_with_namespace(self):
        assert default_module_id("models/user.js", "app/") == "app/models/user"

    def test_library(self):
        fn = library_module_id("vendor", strip_prefix="lib/")
        assert fn("lib/jquery.js") == "vendor/jquery"
        assert fn("other/x.js") == "vendor/other/x"

    def test_plugin_ids_differ_from_library_ids(self):
        path = "assets/lib/room.js"
        lib = library_module_id("app", "assets/")(path)
        plug = plugin_module_id("app/plugins", "chat", "assets/")(path)
        assert lib == "app/lib/room"
        assert plug == "app/plugins/chat/lib/room"

    def test_pure(self):
        fn = plugin_module_id("p", "x")
        assert fn("a.js") == fn("a.js")
