"""
Typed steps and predicates of a test scenario.

Free-form DSL lines are parsed into these immutable values:

- `Reports`: a value read from the node must satisfy a comparison
- `ScriptReturn`: an external script's return code must satisfy a comparison
- `IsUp`: the node's reporting interface must answer
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from netharness.types import ConfigError

if TYPE_CHECKING:
    from netharness.topology import Topology

Value = int | float | str
"""A value reported by a node or written in a test file."""


class Comparator(StrEnum):
    """How an observed value is compared with the expected operand."""

    EQUALS = "=="
    AT_LEAST = ">="
    AT_MOST = "<="
    GREATER_THAN = ">"
    LESS_THAN = "<"


def as_number(value: object) -> int | float | None:
    """Interpret a value as a number, or return None if it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        for kind in (int, float):
            try:
                return kind(value)
            except ValueError:
                continue
    return None


@dataclass(frozen=True, slots=True)
class Comparison:
    """A comparator together with its expected operand."""

    comparator: Comparator
    """Comparison operator."""

    operand: Value
    """Expected value."""

    def holds(self, observed: object) -> bool:
        """
        Evaluate the comparison against an observed value.

        Numeric when both sides are numeric. Otherwise only equality is
        meaningful and is evaluated on the string forms.
        """
        left = as_number(observed)
        right = as_number(self.operand)
        if left is None or right is None:
            return self.comparator is Comparator.EQUALS and str(observed) == str(self.operand)

        match self.comparator:
            case Comparator.EQUALS:
                return left == right
            case Comparator.AT_LEAST:
                return left >= right
            case Comparator.AT_MOST:
                return left <= right
            case Comparator.GREATER_THAN:
                return left > right
            case Comparator.LESS_THAN:
                return left < right

    def __str__(self) -> str:
        return f"{self.comparator} {self.operand}"


@dataclass(frozen=True, slots=True)
class Reports:
    """A reported value must satisfy a comparison."""

    key: str
    """Reporting key as written, e.g. `block height` or `node_roles`."""

    comparison: Comparison
    """Expected relation."""

    def __str__(self) -> str:
        return f"{self.key} {self.comparison}"


@dataclass(frozen=True, slots=True)
class ScriptReturn:
    """An external script's return code must satisfy a comparison."""

    comparison: Comparison = field(default=Comparison(Comparator.EQUALS, 0))
    """Expected relation; defaults to `== 0`."""

    def __str__(self) -> str:
        return f"return {self.comparison}"


@dataclass(frozen=True, slots=True)
class IsUp:
    """The node's reporting interface must answer."""

    def __str__(self) -> str:
        return "is up"


Predicate = Reports | ScriptReturn | IsUp
"""Tagged variant over every predicate form."""


class StepKind(StrEnum):
    """Dispatch category of a step."""

    REPORTS = "reports"
    SCRIPT = "script"
    IS_UP = "is-up"


class Concurrency(StrEnum):
    """How steps without a data dependency are scheduled."""

    GROUPED = "grouped"
    """Consecutive assertions run concurrently between script barriers."""

    SEQUENTIAL = "sequential"
    """Every step waits for the previous one."""


@dataclass(frozen=True, slots=True)
class ScriptCall:
    """An external script invocation."""

    invoker: str
    """DSL keyword selecting the invoker, e.g. `js-script` or `run`."""

    path: Path
    """Script path, absolute once the scenario file is loaded."""

    args: tuple[str, ...] = ()
    """Ordered arguments, passed verbatim."""

    raw_args: str = ""
    """The comma-separated argument string as written."""


@dataclass(frozen=True, slots=True)
class Step:
    """
    One executable unit of a scenario.

    Created at parse time with unresolved targets. Resolution against the
    topology fills `targets` with concrete node names.
    """

    id: str
    """Stable identifier, `step-<n>` with n starting at 1."""

    line: int
    """1-based line number in the scenario file."""

    target: str
    """Node or group reference as written."""

    predicate: Predicate
    """What must hold for the step to pass."""

    timeout: float
    """Step deadline in seconds."""

    script: ScriptCall | None = None
    """Script to invoke (script steps only)."""

    depends_on: tuple[str, ...] = ()
    """Ids of the steps that must finish first."""

    targets: tuple[str, ...] = ()
    """Resolved node names."""

    text: str = ""
    """Source line, for reports."""

    @property
    def kind(self) -> StepKind:
        """Dispatch category derived from the predicate."""
        match self.predicate:
            case ScriptReturn():
                return StepKind.SCRIPT
            case IsUp():
                return StepKind.IS_UP
            case _:
                return StepKind.REPORTS

    @property
    def is_barrier(self) -> bool:
        """Scripts change network state, so they order everything around them."""
        return self.kind is StepKind.SCRIPT


@dataclass(frozen=True, slots=True)
class Scenario:
    """A parsed test file: headers plus the ordered step list."""

    network: Path
    """Network description file."""

    steps: tuple[Step, ...]
    """Steps in declaration order."""

    description: str = ""
    """Free-form description header."""

    creds: str | None = None
    """Credentials header. Accepted for compatibility, not used."""

    concurrency: Concurrency = Concurrency.GROUPED
    """Scheduling mode for independent steps."""

    path: Path | None = None
    """Scenario file, if loaded from disk."""

    def step(self, step_id: str) -> Step:
        """Look up a step by id."""
        for step in self.steps:
            if step.id == step_id:
                return step
        raise KeyError(step_id)

    def resolve(self, topology: Topology) -> Scenario:
        """
        Resolve every step target against a topology.

        Args:
            topology: Network graph the targets refer to.

        Raises:
            ConfigError: If a target matches no node or group.
        """
        resolved = []
        for step in self.steps:
            try:
                targets = topology.resolve(step.target)
            except ConfigError as exc:
                raise ConfigError(exc.detail, path=self.path, line=step.line) from exc
            resolved.append(replace(step, targets=targets))
        return replace(self, steps=tuple(resolved))
