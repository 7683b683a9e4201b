"""Exception hierarchy for the test-network harness."""

from __future__ import annotations

from pathlib import Path
from typing import Literal


class HarnessError(Exception):
    """
    Base exception for all harness errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigError(HarnessError):
    """
    Raised when a network or test file is malformed.

    Fatal: the run is aborted before any process starts.

    Attributes:
        path: The offending file, if known.
        line: The 1-based line number inside the file, if known.
        detail: Description of what is wrong.
    """

    def __init__(
        self,
        detail: str,
        *,
        path: Path | str | None = None,
        line: int | None = None,
    ) -> None:
        self.detail = detail
        self.path = Path(path) if path is not None else None
        self.line = line

        location = ""
        if self.path is not None:
            location = str(self.path)
            if line is not None:
                location = f"{location}:{line}"
        elif line is not None:
            location = f"line {line}"

        super().__init__(f"{location}: {detail}" if location else detail)


class LaunchError(HarnessError):
    """
    Raised when a node process cannot be started or never becomes ready.

    Fatal for the whole run.

    Attributes:
        node: Name of the node that failed to launch.
        detail: What went wrong.
    """

    def __init__(self, node: str, detail: str) -> None:
        self.node = node
        self.detail = detail
        super().__init__(f"Failed to launch node '{node}': {detail}")


class InvocationError(HarnessError):
    """
    Raised when an external script cannot be launched at all.

    A script that runs and exits with an unexpected code is *not* an
    invocation error; it is reported as a failed step.

    Attributes:
        script: Path of the script.
        detail: What went wrong.
    """

    def __init__(self, script: Path | str, detail: str) -> None:
        self.script = Path(script)
        self.detail = detail
        super().__init__(f"Cannot invoke {self.script}: {detail}")


class AssertionFailure(HarnessError):
    """
    Raised when a predicate evaluated false for a step.

    Attributes:
        step_id: The step that failed.
        observed: Last observed value, if any.
        expected: Human-readable expectation.
    """

    def __init__(self, step_id: str, *, observed: object, expected: str) -> None:
        self.step_id = step_id
        self.observed = observed
        self.expected = expected
        super().__init__(f"{step_id}: expected {expected}, observed {observed!r}")


class HarnessTimeoutError(HarnessError, TimeoutError):
    """
    Raised when a step-level or run-level deadline is exceeded.

    Attributes:
        scope: Whether the deadline belonged to a single step or the whole run.
        timeout: The deadline in seconds.
    """

    def __init__(self, scope: Literal["step", "run"], timeout: float) -> None:
        self.scope = scope
        self.timeout = timeout
        super().__init__(f"{scope} deadline of {timeout:g}s exceeded")


class NodeUnreachable(HarnessError):
    """
    Raised when a node's reporting interface cannot be read.

    Transient: the Assertion Engine retries until the step deadline.

    Attributes:
        node: Name of the node.
    """

    def __init__(self, node: str, detail: str) -> None:
        self.node = node
        self.detail = detail
        super().__init__(f"Node '{node}' unreachable: {detail}")
