"""Runtime settings — environment-driven.

Centralized settings using pydantic-settings.  Reads from a .env file and
ASSETFORGE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BuildSettings(BaseSettings):
    """Build settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export ASSETFORGE_ENVIRONMENT=production
        export ASSETFORGE_LOG_LEVEL=DEBUG
        export ASSETFORGE_CACHE_PATH=/var/cache/assetforge

    Or via .env file::

        ASSETFORGE_MAX_WORKERS=8
        ASSETFORGE_USE_CACHE=false
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ASSETFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment, handed to filters through BuildContext
    environment: str = "development"
    log_level: str = "INFO"

    # Cache
    use_cache: bool = True
    cache_path: Path = Path(".assetforge/cache")

    # Worker pool bound for match groups within one stage
    max_workers: int = Field(default=4, ge=1)

    # Write <file>.map next to outputs that carry a source map
    emit_source_maps: bool = True

    @property
    def is_production(self) -> bool:
        """Whether building for production."""
        return self.environment == "production"


# Module-level singleton; import as `from assetforge.config import settings`
settings = BuildSettings()
