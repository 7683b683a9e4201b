"""Tests for the step state machine."""

from __future__ import annotations

import pytest

from netharness.executor import StepState

TERMINAL = [StepState.PASSED, StepState.FAILED, StepState.TIMED_OUT, StepState.SKIPPED]


class TestStepState:
    """Tests for allowed transitions."""

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (StepState.PENDING, StepState.RUNNING),
            (StepState.PENDING, StepState.SKIPPED),
            (StepState.RUNNING, StepState.PASSED),
            (StepState.RUNNING, StepState.FAILED),
            (StepState.RUNNING, StepState.TIMED_OUT),
        ],
    )
    def test_allowed(self, source: StepState, target: StepState) -> None:
        """The forward edges of the lifecycle are allowed."""
        assert source.can_transition_to(target)

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (StepState.PENDING, StepState.PASSED),
            (StepState.PENDING, StepState.FAILED),
            (StepState.RUNNING, StepState.PENDING),
            (StepState.RUNNING, StepState.SKIPPED),
            (StepState.RUNNING, StepState.RUNNING),
        ],
    )
    def test_forbidden(self, source: StepState, target: StepState) -> None:
        """Steps never skip RUNNING, go backwards or skip once started."""
        assert not source.can_transition_to(target)

    @pytest.mark.parametrize("source", TERMINAL)
    def test_terminal_states_are_final(self, source: StepState) -> None:
        """Nothing leaves a terminal state."""
        assert source.is_terminal
        assert not any(source.can_transition_to(target) for target in StepState)

    def test_non_terminal(self) -> None:
        """Pending and running steps are not finished."""
        assert not StepState.PENDING.is_terminal
        assert not StepState.RUNNING.is_terminal

    def test_only_passed_is_success(self) -> None:
        """Skipped and timed-out steps are not successes."""
        assert [state for state in StepState if state.is_success] == [StepState.PASSED]
