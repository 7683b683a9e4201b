"""
Run report: the read-only outcome of every step.

Serialized to JSON with camelCase keys, e.g.::

    {"passed": false, "steps": [{"id": "step-2", "state": "failed",
      "failureKind": "assertion", "returnCode": 1, ...}]}
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from enum import StrEnum

from pydantic import Field

from netharness.dsl import StepKind
from netharness.types import StrictBaseModel

from .states import StepState


class FailureKind(StrEnum):
    """Why a step did not pass."""

    ASSERTION = "assertion"
    """The predicate evaluated false (e.g. unexpected return code)."""

    INVOCATION = "invocation"
    """The script could not be launched."""

    TIMEOUT = "timeout"
    """The step deadline expired."""

    RUN_TIMEOUT = "run_timeout"
    """The run deadline expired."""

    DEPENDENCY = "dependency"
    """A step this one depends on did not pass."""

    UNREACHABLE = "unreachable"
    """The node never answered before the step deadline."""


class NodeOutcome(StrictBaseModel):
    """Outcome of a step on a single target node."""

    node: str
    passed: bool
    observed: int | float | str | None = None
    return_code: int | None = None
    output: str = ""
    elapsed: float = 0.0
    failure_kind: FailureKind | None = None
    message: str = ""


class StepResult(StrictBaseModel):
    """Terminal record of one step."""

    id: str
    """Step id, `step-<n>`."""

    line: int
    """Line in the test file."""

    kind: StepKind
    """Dispatch category."""

    text: str = ""
    """Source line."""

    targets: tuple[str, ...] = ()
    """Resolved node names."""

    state: StepState
    """Terminal state."""

    failure_kind: FailureKind | None = None
    """Set whenever `state` is not PASSED."""

    message: str = ""
    """Human-readable failure explanation."""

    observed: int | float | str | None = None
    """Last observed value (reports) or None."""

    return_code: int | None = None
    """Script exit code (script steps)."""

    output: str = ""
    """Captured script output (script steps)."""

    started_at: datetime | None = None
    """Wall-clock start, None if never started."""

    finished_at: datetime | None = None
    """Wall-clock end."""

    elapsed: float = 0.0
    """Seconds spent running."""

    nodes: tuple[NodeOutcome, ...] = ()
    """Per-target outcomes."""

    @property
    def passed(self) -> bool:
        return self.state is StepState.PASSED


class Report(StrictBaseModel):
    """Aggregated outcome of a run."""

    description: str = ""
    """Description header of the test file."""

    network: str = ""
    """Network file the run used."""

    passed: bool
    """True iff every step passed."""

    run_timed_out: bool = False
    """Whether the run-level deadline cut the run short."""

    elapsed: float = 0.0
    """Seconds from the first step to the last."""

    steps: tuple[StepResult, ...] = Field(default=())
    """Step results in declaration order."""

    def step(self, step_id: str) -> StepResult:
        """Look up a step result by id."""
        for result in self.steps:
            if result.id == step_id:
                return result
        raise KeyError(step_id)

    @property
    def failures(self) -> tuple[StepResult, ...]:
        """Steps that did not pass."""
        return tuple(result for result in self.steps if not result.passed)

    def counts(self) -> dict[StepState, int]:
        """Number of steps per terminal state."""
        return dict(Counter(result.state for result in self.steps))

    def to_json(self) -> str:
        """JSON document with camelCase keys."""
        return self.model_dump_json(by_alias=True, indent=2)

    def summary(self) -> str:
        """Multi-line text summary for terminals."""
        lines = []
        for result in self.steps:
            line = f"[{result.state.upper():>9}] {result.id} (line {result.line}): {result.text}"
            if result.message:
                line = f"{line}\n            {result.message}"
            lines.append(line)

        counts = ", ".join(f"{count} {state}" for state, count in self.counts().items())
        verdict = "PASSED" if self.passed else "FAILED"
        suffix = " (run timed out)" if self.run_timed_out else ""
        lines.append(f"{verdict}: {counts} in {self.elapsed:.1f}s{suffix}")
        return "\n".join(lines)
