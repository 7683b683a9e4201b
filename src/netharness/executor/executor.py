"""
Step executor: runs a resolved scenario against live nodes.

Every step gets its own task. A step waits for the completion events of
the steps it depends on, then dispatches:

- script steps to the script bridge, once per target node
- reports and is-up steps to the assertion engine, once per target node

Targets of one step run concurrently, and the step passes only if every
target passes. A failing step never cancels independent steps; steps that
depend on it are skipped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

from netharness.assertions import AssertionEngine
from netharness.bridge import ScriptBridge
from netharness.dsl import Reports, Scenario, ScriptReturn, Step, StepKind, Value
from netharness.metrics import step_duration, steps_total
from netharness.supervisor import NodeEndpoints
from netharness.types import (
    AssertionFailure,
    ConfigError,
    HarnessTimeoutError,
    InvocationError,
)

from .report import FailureKind, NodeOutcome, Report, StepResult
from .states import StepState

logger = logging.getLogger(__name__)

# Outcomes are ordered so the most actionable failure names the step.
_FAILURE_PRIORITY = (
    FailureKind.INVOCATION,
    FailureKind.ASSERTION,
    FailureKind.UNREACHABLE,
    FailureKind.TIMEOUT,
)


@dataclass(slots=True)
class StepRecord:
    """
    Mutable record of one step during a run.

    Each record is written only by the task running its step.
    """

    step: Step
    """The step being tracked."""

    state: StepState = StepState.PENDING
    """Current state."""

    done: asyncio.Event = field(default_factory=asyncio.Event)
    """Set once the state is terminal."""

    failure_kind: FailureKind | None = None
    message: str = ""
    outcomes: list[NodeOutcome] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    _started: float | None = None
    elapsed: float = 0.0

    def transition(self, target: StepState) -> None:
        """
        Move to a new state.

        Raises:
            ValueError: If the state machine forbids the transition.
        """
        if not self.state.can_transition_to(target):
            raise ValueError(
                f"Invalid state transition for {self.step.id}: {self.state.name} -> {target.name}"
            )
        self.state = target

        if target is StepState.RUNNING:
            self.started_at = datetime.now(UTC)
            self._started = time.monotonic()
            return

        self.finished_at = datetime.now(UTC)
        if self._started is not None:
            self.elapsed = time.monotonic() - self._started
            step_duration.observe(self.elapsed)
        steps_total.labels(state=target.value).inc()
        self.done.set()

    def finish(
        self,
        state: StepState,
        failure_kind: FailureKind | None = None,
        message: str = "",
    ) -> None:
        """Enter a terminal state with its explanation."""
        self.failure_kind = failure_kind
        self.message = message
        self.transition(state)

    def to_result(self) -> StepResult:
        headline = _headline(self.outcomes)
        return StepResult(
            id=self.step.id,
            line=self.step.line,
            kind=self.step.kind,
            text=self.step.text,
            targets=self.step.targets,
            state=self.state,
            failure_kind=self.failure_kind,
            message=self.message,
            observed=headline.observed if headline else None,
            return_code=headline.return_code if headline else None,
            output=headline.output if headline else "",
            started_at=self.started_at,
            finished_at=self.finished_at,
            elapsed=self.elapsed,
            nodes=tuple(self.outcomes),
        )


class StepExecutor:
    """Schedules the steps of a scenario in dependency order."""

    def __init__(
        self,
        registry: Mapping[str, NodeEndpoints],
        *,
        engine: AssertionEngine,
        bridge: ScriptBridge,
        run_timeout: float | None = None,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.bridge = bridge
        self.run_timeout = run_timeout

    async def run(self, scenario: Scenario) -> Report:
        """
        Execute every step and aggregate the results.

        The scenario must already be resolved against the topology.

        Raises:
            ConfigError: If a step names an unknown dependency or target node.
        """
        records = {step.id: StepRecord(step) for step in scenario.steps}
        self._validate(scenario, records)

        loop = asyncio.get_running_loop()
        start = loop.time()
        run_timed_out = False

        deadline = asyncio.timeout(self.run_timeout)
        try:
            async with deadline:
                async with asyncio.TaskGroup() as tg:
                    for record in records.values():
                        tg.create_task(self._run_step(record, records), name=record.step.id)
        except TimeoutError:
            if not deadline.expired():
                raise
            assert self.run_timeout is not None
            run_timed_out = True
            logger.error("Run deadline of %gs exceeded", self.run_timeout)
            self._expire(records, self.run_timeout)

        results = tuple(record.to_result() for record in records.values())
        report = Report(
            description=scenario.description,
            network=str(scenario.network),
            passed=all(result.passed for result in results),
            run_timed_out=run_timed_out,
            elapsed=loop.time() - start,
            steps=results,
        )
        logger.info("Run %s: %s", "passed" if report.passed else "failed", report.counts())
        return report

    def _validate(self, scenario: Scenario, records: Mapping[str, StepRecord]) -> None:
        for step in scenario.steps:
            if not step.targets:
                raise ConfigError(f"{step.id} has no resolved targets", line=step.line)
            unknown = [dep for dep in step.depends_on if dep not in records]
            if unknown:
                raise ConfigError(f"{step.id} depends on unknown steps {unknown}", line=step.line)
            missing = [name for name in step.targets if name not in self.registry]
            if missing:
                raise ConfigError(f"{step.id} targets stopped nodes {missing}", line=step.line)

    def _expire(self, records: Mapping[str, StepRecord], timeout: float) -> None:
        """Close out every step the run deadline interrupted."""
        message = str(HarnessTimeoutError("run", timeout))
        for record in records.values():
            if record.state is StepState.RUNNING:
                record.finish(StepState.TIMED_OUT, FailureKind.RUN_TIMEOUT, message)
            elif record.state is StepState.PENDING:
                record.finish(StepState.SKIPPED, FailureKind.RUN_TIMEOUT, f"not started: {message}")

    async def _run_step(self, record: StepRecord, records: Mapping[str, StepRecord]) -> None:
        step = record.step
        for dep in step.depends_on:
            await records[dep].done.wait()

        blocked = [dep for dep in step.depends_on if not records[dep].state.is_success]
        if blocked:
            logger.info("%s skipped: %s did not pass", step.id, ", ".join(blocked))
            record.finish(
                StepState.SKIPPED,
                FailureKind.DEPENDENCY,
                f"not attempted because {', '.join(blocked)} did not pass",
            )
            return

        record.transition(StepState.RUNNING)
        logger.info("%s running on %s: %s", step.id, ", ".join(step.targets), step.text)

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(self._dispatch(step, name)) for name in step.targets]
        except ExceptionGroup as group:
            # Unexpected errors fail this step only.
            logger.exception("%s crashed", step.id, exc_info=group)
            record.finish(StepState.FAILED, FailureKind.ASSERTION, _describe(group))
            return

        record.outcomes = [task.result() for task in tasks]
        state, kind, message = _aggregate(record.outcomes)
        record.finish(state, kind, message)

        log = logger.info if state is StepState.PASSED else logger.warning
        suffix = f": {message}" if message else ""
        log("%s %s after %.1fs%s", step.id, state, record.elapsed, suffix)

    async def _dispatch(self, step: Step, node_name: str) -> NodeOutcome:
        node = self.registry[node_name]
        match step.kind:
            case StepKind.SCRIPT:
                return await self._invoke(step, node)
            case StepKind.REPORTS | StepKind.IS_UP:
                return await self._poll(step, node)
            case _:
                raise TypeError(f"cannot dispatch {step.kind}")

    async def _invoke(self, step: Step, node: NodeEndpoints) -> NodeOutcome:
        assert step.script is not None and isinstance(step.predicate, ScriptReturn)
        comparison = step.predicate.comparison
        started = time.monotonic()

        try:
            result = await self.bridge.invoke(node, step.script, timeout=step.timeout)
        except InvocationError as exc:
            return NodeOutcome(
                node=node.name,
                passed=False,
                elapsed=time.monotonic() - started,
                failure_kind=FailureKind.INVOCATION,
                message=str(exc),
            )
        except HarnessTimeoutError as exc:
            return NodeOutcome(
                node=node.name,
                passed=False,
                elapsed=time.monotonic() - started,
                failure_kind=FailureKind.TIMEOUT,
                message=f"{step.script.path.name}: {exc}",
            )

        passed = comparison.holds(result.return_code)
        message = ""
        if not passed:
            failure = AssertionFailure(
                step.id,
                observed=result.return_code,
                expected=f"{step.script.path.name} to return {comparison}",
            )
            message = str(failure)
        return NodeOutcome(
            node=node.name,
            passed=passed,
            observed=result.return_code,
            return_code=result.return_code,
            output=result.output,
            elapsed=result.elapsed,
            failure_kind=None if passed else FailureKind.ASSERTION,
            message=message,
        )

    async def _poll(self, step: Step, node: NodeEndpoints) -> NodeOutcome:
        assert not isinstance(step.predicate, ScriptReturn)
        result = await self.engine.await_condition(
            node, step.predicate, step.timeout, step_id=step.id
        )
        if result.passed:
            return NodeOutcome(
                node=node.name, passed=True, observed=result.observed, elapsed=result.elapsed
            )

        kind = FailureKind.TIMEOUT if result.reachable else FailureKind.UNREACHABLE
        subject = step.predicate.key if isinstance(step.predicate, Reports) else "node"
        return NodeOutcome(
            node=node.name,
            passed=False,
            observed=result.observed,
            elapsed=result.elapsed,
            failure_kind=kind,
            message=(
                f"{subject} never satisfied {result.expected} within {step.timeout:g}s"
                f" (last observed {_show(result.observed)}"
                f"{'' if result.reachable else ', node unreachable'})"
            ),
        )


def _aggregate(outcomes: list[NodeOutcome]) -> tuple[StepState, FailureKind | None, str]:
    """Fold per-target outcomes into the step's terminal state."""
    failures = [outcome for outcome in outcomes if not outcome.passed]
    if not failures:
        return StepState.PASSED, None, ""

    kinds = {outcome.failure_kind for outcome in failures}
    kind = next(k for k in _FAILURE_PRIORITY if k in kinds)
    timed_out = kinds <= {FailureKind.TIMEOUT, FailureKind.UNREACHABLE}
    message = "; ".join(f"{outcome.node}: {outcome.message}" for outcome in failures)
    return (StepState.TIMED_OUT if timed_out else StepState.FAILED), kind, message


def _headline(outcomes: list[NodeOutcome]) -> NodeOutcome | None:
    """The outcome summarised at step level: the first failure, else the first target."""
    for outcome in outcomes:
        if not outcome.passed:
            return outcome
    return outcomes[0] if outcomes else None


def _describe(group: BaseExceptionGroup) -> str:
    return "; ".join(f"{type(exc).__name__}: {exc}" for exc in group.exceptions)


def _show(value: Value | None) -> str:
    return "nothing" if value is None else repr(value)
