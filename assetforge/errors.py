"""Build error hierarchy.

Every error raised inside the engine derives from ``BuildError`` and carries
the context needed to point at the failure: stage, match group, file and
filter step.  Context is attached as the error propagates outward, so the
innermost raiser only needs to know what it knows.
"""

from __future__ import annotations

from pathlib import Path

from assetforge.models.results import ErrorDetail


class BuildError(RuntimeError):
    """Base class for all engine errors."""

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        stage_id: str | None = None,
        match_group: str | None = None,
        file: str | None = None,
        step: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage_id = stage_id
        self.match_group = match_group
        self.file = file
        self.step = step

    def with_context(self, **context: str | None) -> BuildError:
        """Fill in any context fields that are still unset and return self."""
        for field in ("stage_id", "match_group", "file", "step"):
            value = context.get(field)
            if value and not getattr(self, field):
                setattr(self, field, value)
        return self

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_detail(self) -> ErrorDetail:
        return ErrorDetail(
            kind=self.kind,
            message=self.message,
            stage_id=self.stage_id,
            match_group=self.match_group,
            file=self.file,
            step=self.step,
            exit_code=self.exit_code,
        )

    def __str__(self) -> str:
        where = [
            f"{label}={value}"
            for label, value in (
                ("stage", self.stage_id),
                ("group", self.match_group),
                ("file", self.file),
                ("step", self.step),
            )
            if value is not None
        ]
        if not where:
            return self.message
        return f"{self.message} [{', '.join(where)}]"


class MatchConfigError(BuildError):
    """A declaration is invalid: bad pattern, unknown plugin, bad wiring.

    Raised during validation, before any stage runs.
    """

    exit_code = 2


class CompileError(BuildError):
    """A filter step rejected its input content."""

    exit_code = 3

    def __init__(
        self,
        message: str,
        *,
        file: str | None = None,
        line: int | None = None,
        **context: str | None,
    ) -> None:
        super().__init__(message, file=file, **context)
        self.line = line

    def to_detail(self) -> ErrorDetail:
        return super().to_detail().model_copy(update={"line": self.line})


class CollisionError(BuildError):
    """Two writers in one stage produced the same path with different bytes."""

    exit_code = 4

    def __init__(self, path: str, stage: str, groups: list[str] | None = None) -> None:
        owners = ", ".join(groups or [])
        message = f"Output path {path!r} written with differing content"
        if owners:
            message += f" by groups {owners}"
        super().__init__(message, stage_id=stage, file=path)
        self.path = path
        self.groups = list(groups or [])


class AssetIOError(BuildError):
    """Reading from the input root or writing to the output root failed."""

    exit_code = 5

    def __init__(self, path: Path | str, cause: OSError, **context: str | None) -> None:
        super().__init__(f"I/O failure on {path}: {cause}", **context)
        self.path = Path(path)
        self.cause = cause


class CacheIntegrityError(BuildError):
    """A cache entry references blobs that are missing or corrupt.

    Never fatal: the cache store reports a miss and the engine recomputes.
    """
