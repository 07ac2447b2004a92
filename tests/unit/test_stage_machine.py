"""Tests for the StageMachine — the per-stage lifecycle."""

from __future__ import annotations

import pytest

from assetforge.core.stage_machine import InvalidTransitionError, StageMachine
from assetforge.models.stages import StageState

_HAPPY_PATH = [
    StageState.LOADING,
    StageState.MATCHING,
    StageState.TRANSFORMING,
    StageState.WRITING,
    StageState.DONE,
]


class TestStageMachine:
    def test_initialize(self, stage_machine: StageMachine):
        states = stage_machine.initialize(["a", "b"])
        assert states == {"a": StageState.PENDING, "b": StageState.PENDING}

    def test_happy_path(self, stage_machine: StageMachine):
        stage_machine.initialize(["a"])
        for state in _HAPPY_PATH:
            stage_machine.transition("a", state)
        assert stage_machine.get_current_state("a") == StageState.DONE
        assert [t.to_state for t in stage_machine.history("a")] == _HAPPY_PATH

    def test_no_skipping(self, stage_machine: StageMachine):
        stage_machine.initialize(["a"])
        with pytest.raises(InvalidTransitionError):
            stage_machine.transition("a", StageState.MATCHING)

    @pytest.mark.parametrize("steps", [0, 1])
    def test_cannot_fail_before_matching(self, stage_machine: StageMachine, steps: int):
        stage_machine.initialize(["a"])
        for state in _HAPPY_PATH[:steps]:
            stage_machine.transition("a", state)
        with pytest.raises(InvalidTransitionError):
            stage_machine.transition("a", StageState.FAILED)

    @pytest.mark.parametrize("steps", [2, 3, 4])
    def test_fail_from_active_states(self, stage_machine: StageMachine, steps: int):
        stage_machine.initialize(["a"])
        for state in _HAPPY_PATH[:steps]:
            stage_machine.transition("a", state)
        record = stage_machine.transition("a", StageState.FAILED, reason="boom")
        assert record.reason == "boom"
        assert stage_machine.get_current_state("a") == StageState.FAILED

    def test_terminal_states_are_final(self, stage_machine: StageMachine):
        stage_machine.initialize(["a"])
        for state in _HAPPY_PATH:
            stage_machine.transition("a", state)
        for target in StageState:
            with pytest.raises(InvalidTransitionError):
                stage_machine.transition("a", target)
        assert stage_machine.get_current_state("a") == StageState.DONE

    def test_history_is_per_stage(self, stage_machine: StageMachine):
        stage_machine.initialize(["a", "b"])
        stage_machine.transition("a", StageState.LOADING)
        stage_machine.transition("b", StageState.LOADING)
        assert len(stage_machine.history()) == 2
        assert [t.stage_id for t in stage_machine.history("b")] == ["b"]

    def test_initialize_resets(self, stage_machine: StageMachine):
        stage_machine.initialize(["a"])
        stage_machine.transition("a", StageState.LOADING)
        stage_machine.initialize(["a"])
        assert stage_machine.get_current_state("a") == StageState.PENDING
        assert stage_machine.history() == []
