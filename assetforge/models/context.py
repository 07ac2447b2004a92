"""Explicit context threaded into every filter invocation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BuildContext(BaseModel):
    """What a filter may know about where it runs.

    Filters receive this instead of reaching for global settings.
    """

    model_config = ConfigDict(frozen=True)

    environment: str = "development"
    stage_id: str = ""
    match_group: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def for_group(self, stage_id: str, match_group: str) -> BuildContext:
        return self.model_copy(update={"stage_id": stage_id, "match_group": match_group})
