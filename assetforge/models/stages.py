"""Stage state machine models: deterministic transitions."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class StageState(str, Enum):
    """Lifecycle of one stage run."""

    PENDING = "pending"
    LOADING = "loading"
    MATCHING = "matching"
    TRANSFORMING = "transforming"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


# Valid state transitions, enforced by StageMachine.
# No transition skips a state; DONE and FAILED are terminal.
VALID_TRANSITIONS: dict[StageState, set[StageState]] = {
    StageState.PENDING: {StageState.LOADING},
    StageState.LOADING: {StageState.MATCHING},
    StageState.MATCHING: {StageState.TRANSFORMING, StageState.FAILED},
    StageState.TRANSFORMING: {StageState.WRITING, StageState.FAILED},
    StageState.WRITING: {StageState.DONE, StageState.FAILED},
    StageState.DONE: set(),  # terminal
    StageState.FAILED: set(),  # terminal
}


class StageTransition(BaseModel):
    """Records a single state transition for the build report."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    from_state: StageState
    to_state: StageState
    reason: str | None = None  # populated when entering FAILED
