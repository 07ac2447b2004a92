"""Deterministic per-stage state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- No skipped states: Pending -> Loading -> Matching -> Transforming
  -> Writing -> Done
- Failed reachable only from Matching, Transforming or Writing
- Terminal states (Done, Failed) have no outgoing transitions
- Every transition recorded in order for the build report
"""

from __future__ import annotations

import logging

from assetforge.models.stages import (
    VALID_TRANSITIONS,
    StageState,
    StageTransition,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class StageMachine:
    """Tracks the state of every stage in one build."""

    def __init__(self) -> None:
        self._states: dict[str, StageState] = {}
        self._history: list[StageTransition] = []

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def initialize(self, stage_ids: list[str]) -> dict[str, StageState]:
        """Put every stage in PENDING for a new build."""
        self._states = {sid: StageState.PENDING for sid in stage_ids}
        self._history = []
        return dict(self._states)

    def get_current_state(self, stage_id: str) -> StageState:
        """Return the current state of a stage (PENDING if unknown)."""
        return self._states.get(stage_id, StageState.PENDING)

    def get_all_states(self) -> dict[str, StageState]:
        """Return a snapshot of all stage states."""
        return dict(self._states)

    def history(self, stage_id: str | None = None) -> list[StageTransition]:
        """Recorded transitions, optionally for one stage only."""
        if stage_id is None:
            return list(self._history)
        return [t for t in self._history if t.stage_id == stage_id]

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(
        self, stage_id: str, target_state: StageState, *, reason: str | None = None
    ) -> StageTransition:
        """Move a stage to *target_state*, recording the transition.

        Raises ``InvalidTransitionError`` if VALID_TRANSITIONS forbids it.
        """
        current = self._states.get(stage_id, StageState.PENDING)
        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {stage_id} from {current.value} to {target_state.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        record = StageTransition(
            stage_id=stage_id,
            from_state=current,
            to_state=target_state,
            reason=reason,
        )
        self._history.append(record)
        self._states[stage_id] = target_state

        if target_state == StageState.FAILED:
            logger.error("Stage %s: %s -> failed (%s)", stage_id, current.value, reason)
        else:
            logger.debug("Stage %s: %s -> %s", stage_id, current.value, target_state.value)
        return record
