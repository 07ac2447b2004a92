"""Tests for the FilterRegistry and entry-point loading."""

from __future__ import annotations

import pytest

from assetforge.errors import MatchConfigError
from assetforge.filters.registry import FilterRegistry, default_registry, load_entry_point
from assetforge.models.pipeline import StepKind


def _noop(assets, config, ctx):
    """Return the assets unchanged."""
    return assets


class TestFilterRegistry:
    def test_register_and_get(self):
        registry = FilterRegistry()
        entry = registry.register("noop", _noop, kinds=[StepKind.COMPILE])
        assert registry.get("noop") is entry
        assert "noop" in registry
        assert len(registry) == 1

    def test_description_defaults_to_docstring(self):
        entry = FilterRegistry().register("noop", _noop)
        assert entry.description == "Return the assets unchanged."

    def test_duplicate_rejected(self):
        registry = FilterRegistry()
        registry.register("noop", _noop)
        with pytest.raises(ValueError, match="already registered"):
            registry.register("noop", _noop)

    def test_replace(self):
        registry = FilterRegistry()
        registry.register("noop", _noop)
        replacement = registry.register("noop", lambda a, c, x: a, replace=True)
        assert registry.get("noop") is replacement

    def test_decorator(self):
        registry = FilterRegistry()

        @registry.filter("upper", kinds=[StepKind.REWRITE])
        def upper(assets, config, ctx):
            return assets

        assert registry.get("upper").transform is upper

    def test_require_unknown(self):
        with pytest.raises(MatchConfigError, match="Unknown filter"):
            FilterRegistry().require("missing", StepKind.COMPILE)

    def test_require_kind_mismatch(self):
        registry = FilterRegistry()
        registry.register("hbs", _noop, kinds=[StepKind.COMPILE])
        with pytest.raises(MatchConfigError, match="cannot serve"):
            registry.require("hbs", StepKind.CONCAT)

    def test_unkinded_filter_serves_any_kind(self):
        registry = FilterRegistry()
        registry.register("any", _noop)
        assert registry.require("any", StepKind.MANIFEST).name == "any"

    def test_unregister(self):
        registry = FilterRegistry()
        registry.register("noop", _noop)
        assert registry.unregister("noop") is True
        assert registry.unregister("noop") is False

    def test_copy_is_independent(self):
        registry = FilterRegistry()
        clone = registry.copy()
        clone.register("noop", _noop)
        assert "noop" not in registry

    def test_list_filters_sorted_and_by_kind(self):
        registry = FilterRegistry()
        registry.register("b", _noop, kinds=[StepKind.COMPILE])
        registry.register("a", _noop, kinds=[StepKind.REWRITE])
        assert [e.name for e in registry.list_filters()] == ["a", "b"]
        assert [e.name for e in registry.list_filters(StepKind.COMPILE)] == ["b"]


class TestDefaultRegistry:
    def test_builtins_present(self):
        registry = default_registry()
        for kind in StepKind:
            if kind == StepKind.COMPILE:
                assert kind.value not in registry
            else:
                assert registry.require(kind.value, kind).builtin

    def test_fresh_each_call(self):
        first = default_registry()
        first.register("extra", _noop)
        assert "extra" not in default_registry()


class TestEntryPoints:
    def test_load(self):
        assert load_entry_point("assetforge.filters.module_ids:strip_extension")("a.js") == "a"

    def test_register_entry_point(self):
        registry = FilterRegistry()
        entry = registry.register_entry_point(
            "copy2", "assetforge.filters.builtin:copy_filter", kinds=[StepKind.COPY]
        )
        assert entry.transform.__name__ == "copy_filter"

    @pytest.mark.parametrize(
        "target",
        ["no_colon", "assetforge_missing_mod:x", "assetforge.filters.builtin:missing"],
    )
    def test_bad_targets(self, target: str):
        with pytest.raises(MatchConfigError):
            load_entry_point(target)
