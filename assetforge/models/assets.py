"""In-memory asset model (immutable once produced)."""

from __future__ import annotations

import hashlib
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AssetRef(BaseModel):
    """One file flowing through a stage.

    Identity is ``relative_path`` within its stage.  A filter that changes a
    file returns a new AssetRef (see ``evolve``); instances are never mutated.

    Metadata carries side information such as ``source_map`` or
    ``module_id``.  It must stay JSON-serializable so cache entries can
    persist it.
    """

    model_config = ConfigDict(frozen=True)

    relative_path: str
    content: bytes
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("relative_path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        path = value.replace("\\", "/")
        while path.startswith("./"):
            path = path[2:]
        if not path or path.startswith("/"):
            raise ValueError(f"relative_path must be a non-empty relative path, got {value!r}")
        if ".." in path.split("/"):
            raise ValueError(f"relative_path must not escape its root: {value!r}")
        return path

    @property
    def content_hash(self) -> str:
        """SHA-256 hex digest of the content bytes."""
        return hashlib.sha256(self.content).hexdigest()

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    @property
    def name(self) -> str:
        """Final path component."""
        return self.relative_path.rsplit("/", 1)[-1]

    def evolve(self, **changes: Any) -> AssetRef:
        """Return a copy with *changes* applied (``content`` may be ``str``)."""
        content = changes.get("content")
        if isinstance(content, str):
            changes["content"] = content.encode("utf-8")
        return AssetRef(**{**self.model_dump(), **changes})

    @classmethod
    def from_text(cls, relative_path: str, text: str, **metadata: Any) -> AssetRef:
        return cls(relative_path=relative_path, content=text.encode("utf-8"), metadata=metadata)
