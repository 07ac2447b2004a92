"""Tests for the three-tier concat ordering."""

from __future__ import annotations

import random

import pytest

from assetforge.core.orderer import explicit_entry_matches, resolve_order
from assetforge.errors import CompileError
from assetforge.models.assets import AssetRef
from assetforge.models.pipeline import ConcatSpec, RemainderPolicy


def _assets(*paths: str) -> list[AssetRef]:
    return [AssetRef.from_text(p, p) for p in paths]


def _paths(assets: list[AssetRef]) -> list[str]:
    return [a.relative_path for a in assets]


def _spec(explicit=(), prefixes=(), required=False) -> ConcatSpec:
    return ConcatSpec(
        explicit_order=list(explicit),
        remainder_policy=RemainderPolicy(priority_prefixes=list(prefixes)),
        output_name="bundle.js",
        required=required,
    )


class TestResolveOrder:
    def test_three_tiers(self):
        assets = _assets("z.js", "vendor/b.js", "loader.js", "a.js", "vendor/a.js", "main.js")
        spec = _spec(explicit=["main.js", "loader.js"], prefixes=["vendor/"])
        assert _paths(resolve_order(assets, spec)) == [
            "main.js",
            "loader.js",
            "vendor/a.js",
            "vendor/b.js",
            "a.js",
            "z.js",
        ]

    def test_remainder_is_lexicographic(self):
        assets = _assets("c.js", "a.js", "b.js")
        assert _paths(resolve_order(assets, _spec())) == ["a.js", "b.js", "c.js"]

    def test_missing_explicit_entry_is_skipped(self):
        assets = _assets("b.js", "a.js")
        assert _paths(resolve_order(assets, _spec(explicit=["missing.js", "b.js"]))) == [
            "b.js",
            "a.js",
        ]

    def test_missing_required_entry_raises(self):
        with pytest.raises(CompileError, match="missing.js"):
            resolve_order(_assets("a.js"), _spec(explicit=["missing.js"], required=True))

    def test_explicit_entry_matches_trailing_segment(self):
        assets = _assets("a.js", "lib/loader.js")
        assert _paths(resolve_order(assets, _spec(explicit=["loader.js"]))) == [
            "lib/loader.js",
            "a.js",
        ]

    def test_glob_priority_prefix(self):
        assets = _assets("app/x.js", "plugins/chat/y.js", "plugins/z.js")
        spec = _spec(prefixes=["plugins/*/**"])
        assert _paths(resolve_order(assets, spec)) == [
            "plugins/chat/y.js",
            "app/x.js",
            "plugins/z.js",
        ]

    def test_plain_prefix_stops_at_segment_boundary(self):
        assets = _assets("vendors/x.js", "vendor/y.js", "app.js")
        spec = _spec(prefixes=["vendor"])
        assert _paths(resolve_order(assets, spec)) == ["vendor/y.js", "app.js", "vendors/x.js"]

    def test_repeated_required_entry(self):
        assets = _assets("b.js", "loader.js")
        spec = _spec(explicit=["loader.js", "loader.js"], required=True)
        assert _paths(resolve_order(assets, spec)) == ["loader.js", "b.js"]

    def test_each_asset_appears_once(self):
        assets = _assets("lib/a.js", "a.js")
        # Both entries name "a.js"; the second finds nothing left.
        ordered = resolve_order(assets, _spec(explicit=["a.js", "a.js"]))
        assert sorted(_paths(ordered)) == ["a.js", "lib/a.js"]
        assert len(ordered) == 2

    def test_independent_of_input_order(self):
        paths = [f"dir{i % 3}/f{i}.js" for i in range(20)]
        spec = _spec(explicit=["f7.js"], prefixes=["dir2/"])
        expected = _paths(resolve_order(_assets(*paths), spec))
        rng = random.Random(42)
        for _ in range(5):
            rng.shuffle(paths)
            assert _paths(resolve_order(_assets(*paths), spec)) == expected

    def test_unknown_stable_sort(self):
        spec = ConcatSpec(
            output_name="x.js",
            remainder_policy=RemainderPolicy(stable_sort="mtime"),
        )
        with pytest.raises(ValueError):
            resolve_order(_assets("a.js"), spec)

    def test_empty_input(self):
        assert resolve_order([], _spec(explicit=["a.js"])) == []


class TestExplicitEntryMatches:
    def test_exact(self):
        assert explicit_entry_matches("a/b.js", "a/b.js")

    def test_suffix_on_segment_boundary_only(self):
        assert explicit_entry_matches("b.js", "a/b.js")
        assert not explicit_entry_matches("b.js", "a/ab.js")
