"""Tests for BuildSettings — env-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from assetforge.config import BuildSettings


class TestBuildSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("ASSETFORGE_ENVIRONMENT", raising=False)
        config = BuildSettings(_env_file=None)
        assert config.environment == "development"
        assert config.log_level == "INFO"
        assert config.use_cache is True
        assert config.cache_path == Path(".assetforge/cache")
        assert config.max_workers == 4
        assert config.emit_source_maps is True

    def test_is_production(self):
        assert BuildSettings(environment="production").is_production is True
        assert BuildSettings(environment="staging").is_production is False

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ASSETFORGE_ENVIRONMENT", "production")
        monkeypatch.setenv("ASSETFORGE_MAX_WORKERS", "8")
        monkeypatch.setenv("ASSETFORGE_USE_CACHE", "false")
        config = BuildSettings(_env_file=None)
        assert config.is_production
        assert config.max_workers == 8
        assert config.use_cache is False

    def test_workers_must_be_positive(self):
        with pytest.raises(ValidationError):
            BuildSettings(max_workers=0)
