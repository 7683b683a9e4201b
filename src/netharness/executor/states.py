"""Step state machine."""

from __future__ import annotations

from enum import StrEnum


class StepState(StrEnum):
    """
    Lifecycle of one step within a run.

    State Machine Diagram
    ---------------------
    ::

        PENDING --> RUNNING --> PASSED
           |           |
           |           +------> FAILED
           |           |
           |           +------> TIMED_OUT
           |
           +------> SKIPPED

    Transitions
    -----------
    PENDING -> RUNNING
        - Triggered when: every dependency reached a terminal state and passed

    PENDING -> SKIPPED
        - Triggered when: a dependency did not pass, or the run deadline
          expired before the step started

    RUNNING -> PASSED | FAILED | TIMED_OUT
        - Triggered when: the dispatched poll or script invocation reports back

    Terminal states never change again.
    """

    PENDING = "pending"
    """Waiting for dependencies."""

    RUNNING = "running"
    """Poll or script invocation in flight."""

    PASSED = "passed"
    """Every target satisfied the predicate."""

    FAILED = "failed"
    """A target violated the predicate or the script could not run."""

    TIMED_OUT = "timed_out"
    """The step or run deadline expired while the step was running."""

    SKIPPED = "skipped"
    """Never attempted."""

    def can_transition_to(self, target: StepState) -> bool:
        """
        Check if transition to target state is valid.

        Args:
            target: The proposed target state.

        Returns:
            True if the transition is allowed by the state machine rules.
        """
        return target in _VALID_TRANSITIONS.get(self, set())

    @property
    def is_terminal(self) -> bool:
        """Whether the step is finished."""
        return self in _TERMINAL

    @property
    def is_success(self) -> bool:
        return self is StepState.PASSED


_TERMINAL = frozenset(
    {StepState.PASSED, StepState.FAILED, StepState.TIMED_OUT, StepState.SKIPPED}
)

_VALID_TRANSITIONS: dict[StepState, set[StepState]] = {
    StepState.PENDING: {StepState.RUNNING, StepState.SKIPPED},
    StepState.RUNNING: {StepState.PASSED, StepState.FAILED, StepState.TIMED_OUT},
}
"""Valid state transitions for the step state machine."""
