"""Tests for glob compilation, matching and stage-wide skips."""

from __future__ import annotations

import pytest

from assetforge.core.matcher import Matcher, apply_skips, compile_glob, is_glob
from assetforge.errors import MatchConfigError


class TestGlobGrammar:
    @pytest.mark.parametrize(
        "pattern, path, expected",
        [
            ("*.js", "app.js", True),
            ("*.js", "lib/app.js", False),
            ("**/*.js", "app.js", True),
            ("**/*.js", "a/b/c/app.js", True),
            ("app/**", "app/x/y.hbs", True),
            ("lib/?.js", "lib/a.js", True),
            ("lib/?.js", "lib/ab.js", False),
            ("**/*.{js,es6}", "models/user.es6", True),
            ("**/*.{js,es6}", "models/user.ts", False),
            ("{app,lib/{x,y}}/*.js", "lib/y/z.js", True),
            ("[ab]*.css", "base.css", True),
            ("[ab]*.css", "core.css", False),
            ("[!ab]*.css", "core.css", True),
            ("[a-c].txt", "b.txt", True),
            ("\\*.txt", "*.txt", True),
            ("\\*.txt", "a.txt", False),
        ],
    )
    def test_matches(self, pattern: str, path: str, expected: bool):
        assert Matcher(pattern).matches(path) is expected

    def test_star_does_not_cross_directories(self):
        assert not Matcher("vendor/*").matches("vendor/x/b.js")

    def test_negated_class_never_matches_slash(self):
        assert not Matcher("a[!x]b").matches("a/b")

    def test_dots_are_literal(self):
        assert not Matcher("*.js").matches("appxjs")

    @pytest.mark.parametrize("pattern", ["", "a\\", "{a,b", "a}", "[abc", "[]"])
    def test_malformed_patterns_rejected(self, pattern: str):
        with pytest.raises(MatchConfigError):
            compile_glob(pattern)

    def test_is_glob(self):
        assert is_glob("vendor/*")
        assert is_glob("{a,b}")
        assert not is_glob("vendor/")


class TestSelection:
    def test_select_is_sorted_and_unique(self):
        paths = ["b.js", "a.js", "a.js", "c.css"]
        assert Matcher("*.js").select(paths) == ["a.js", "b.js"]

    def test_select_empty(self):
        assert Matcher("*.js").select([]) == []

    def test_apply_skips(self):
        paths = ["a.js", "a.test.js", "vendor/x.js", "b.js"]
        assert apply_skips(paths, ["**/*.test.js", "vendor/**"]) == ["a.js", "b.js"]

    def test_apply_skips_without_patterns(self):
        assert apply_skips(["b", "a"], []) == ["a", "b"]
