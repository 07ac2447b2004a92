"""Tests for the fluent PipelineBuilder API."""

from __future__ import annotations

from pathlib import Path

from assetforge.core.builder import PipelineBuilder, make_step_config
from assetforge.models.pipeline import StepKind


class TestMakeStepConfig:
    def test_unknown_keys_become_options(self):
        config = make_step_config(output_name="b.js", level=6)
        assert config.output_name == "b.js"
        assert config.options == {"level": 6}

    def test_explicit_options_merge(self):
        config = make_step_config(options={"a": 1}, b=2)
        assert config.options == {"a": 1, "b": 2}


class TestPipelineBuilder:
    def test_declaration(self, tmp_dir: Path):
        builder = PipelineBuilder()
        (
            builder.stage("scripts", output_root=tmp_dir / "tmp", input_root=tmp_dir / "src")
            .skip("**/*.test.js")
            .match("**/*.js", name="js", exclude=["vendor/**"])
            .register_modules(namespace="app")
            .concat("app.js", join_order=["loader.js"], priority_prefixes=["lib/"])
            .match("**/*.css", name="css")
            .copy()
        )
        builder.stage("publish", output_root=tmp_dir / "dist").match("**/*").compress()
        definition = builder.build()

        scripts, publish = definition.stages
        assert scripts.skip_patterns == ["**/*.test.js"]
        js, css = scripts.match_groups
        assert js.exclude_patterns == ["vendor/**"]
        assert [s.kind for s in js.steps] == [StepKind.MODULE_REGISTER, StepKind.CONCAT]
        assert js.steps[0].config.namespace == "app"
        assert js.steps[1].config.join_order == ["loader.js"]
        assert css.name == "css"
        assert publish.input_root is None
        assert publish.match_groups[0].steps[0].config.keep_original is True

    def test_compile_names_plugin(self, tmp_dir: Path):
        builder = PipelineBuilder()
        builder.stage("s", tmp_dir / "o", tmp_dir / "i").match("*.hbs").compile("hbs", strict=True)
        step = builder.build().stages[0].match_groups[0].steps[0]
        assert step.plugin == "hbs"
        assert step.config.options == {"strict": True}

    def test_register_filter(self):
        builder = PipelineBuilder().register_filter("noop", lambda a, c, x: a)
        assert "noop" in builder.build().registry

    def test_group_name_defaults_to_pattern(self, tmp_dir: Path):
        builder = PipelineBuilder()
        builder.stage("s", tmp_dir / "o", tmp_dir / "i").match("*.js")
        assert builder.build().stages[0].match_groups[0].name == "*.js"
