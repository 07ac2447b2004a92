"""Shared test fixtures for assetforge."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from assetforge.config import BuildSettings
from assetforge.core.cache_store import CacheStore
from assetforge.core.stage_machine import StageMachine
from assetforge.filters.registry import FilterRegistry, default_registry
from assetforge.models.assets import AssetRef
from assetforge.models.context import BuildContext


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test files."""
    return tmp_path


@pytest.fixture
def registry() -> FilterRegistry:
    """Provide a fresh registry holding the built-in filters."""
    return default_registry()


@pytest.fixture
def cache_store(tmp_dir: Path) -> CacheStore:
    """Provide a fresh CacheStore in a temp directory."""
    return CacheStore(tmp_dir / "cache")


@pytest.fixture
def stage_machine() -> StageMachine:
    return StageMachine()


@pytest.fixture
def ctx() -> BuildContext:
    return BuildContext(environment="test", stage_id="s", match_group="g")


# ---------------------------------------------------------------------------
# Factories shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def write_tree() -> Callable[[Path, dict[str, str | bytes]], Path]:
    """Factory fixture: write ``{relative_path: content}`` under a root."""

    def _write(root: Path, files: dict[str, str | bytes]) -> Path:
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                path.write_text(content, encoding="utf-8")
            else:
                path.write_bytes(content)
        return root

    return _write


@pytest.fixture
def read_tree() -> Callable[[Path], dict[str, bytes]]:
    """Factory fixture: read every file under a root into a dict."""

    def _read(root: Path) -> dict[str, bytes]:
        return {
            p.relative_to(root).as_posix(): p.read_bytes()
            for p in sorted(root.rglob("*"))
            if p.is_file()
        }

    return _read


@pytest.fixture
def make_settings(tmp_dir: Path) -> Callable[..., BuildSettings]:
    """Factory fixture: BuildSettings with the cache inside tmp_dir."""

    def _factory(**overrides: Any) -> BuildSettings:
        defaults: dict[str, Any] = {
            "environment": "test",
            "cache_path": tmp_dir / "cache",
            "max_workers": 4,
        }
        defaults.update(overrides)
        return BuildSettings(**defaults)

    return _factory


@pytest.fixture
def make_asset() -> Callable[..., AssetRef]:
    """Factory fixture: build an AssetRef from text."""

    def _factory(path: str, text: str = "", **metadata: Any) -> AssetRef:
        return AssetRef.from_text(path, text, **metadata)

    return _factory
