"""
Script invokers, one per automation technology.

Every invoker runs its script as a child process in its own session:

- argv is the interpreter (if any), the script path, then the arguments verbatim
- stdout and stderr are captured together
- the node's endpoints are exported as `NETHARNESS_*` environment variables

A script that runs and exits non-zero is a normal result, not an error.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Final

from netharness.config import JS_RUNTIME
from netharness.dsl import ScriptCall
from netharness.supervisor import NodeEndpoints
from netharness.types import HarnessTimeoutError, InvocationError

logger = logging.getLogger(__name__)

MAX_OUTPUT: Final = 64 * 1024
"""Bytes of captured output kept per invocation (the tail)."""


@dataclass(frozen=True, slots=True)
class InvocationResult:
    """Outcome of one script run."""

    return_code: int
    """Process exit code. Negative when killed by a signal."""

    output: str
    """Combined stdout and stderr, truncated to the last MAX_OUTPUT bytes."""

    elapsed: float
    """Wall-clock seconds the script ran."""


def script_env(node: NodeEndpoints | None, call: ScriptCall) -> dict[str, str]:
    """Variables exported to the script on top of the harness environment."""
    env = {"NETHARNESS_ARGS": call.raw_args}
    if node is not None:
        env["NETHARNESS_NODE"] = node.name
        env["NETHARNESS_RPC_URL"] = node.rpc_url
        env["NETHARNESS_METRICS_URL"] = node.metrics_url
    return env


class Invoker(ABC):
    """
    Runs external scripts of one kind.

    Subclasses only decide how the command line is built.
    """

    @abstractmethod
    def argv(self, call: ScriptCall) -> tuple[str, ...]:
        """Command line for a script call."""
        ...

    async def invoke(
        self,
        node: NodeEndpoints | None,
        call: ScriptCall,
        *,
        timeout: float | None = None,
    ) -> InvocationResult:
        """
        Run the script to completion.

        On timeout or cancellation the whole process group is killed and
        reaped before the exception propagates.

        Raises:
            InvocationError: If the script or its interpreter cannot be started.
            HarnessTimeoutError: If the script outlives `timeout`.
        """
        if not call.path.is_file():
            raise InvocationError(call.path, "script not found")

        argv = self.argv(call)
        env = os.environ.copy()
        env.update(script_env(node, call))

        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
                cwd=call.path.parent,
                start_new_session=True,
            )
        except FileNotFoundError:
            raise InvocationError(call.path, f"executable not found: {argv[0]}") from None
        except PermissionError:
            raise InvocationError(call.path, f"permission denied: {argv[0]}") from None
        except OSError as exc:
            raise InvocationError(call.path, f"cannot execute {argv[0]}: {exc.strerror}") from None

        logger.info("Running %s (pid %d)", " ".join(argv), process.pid)

        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                stdout, _ = await process.communicate()
        except BaseException as exc:
            await _kill(process)
            if isinstance(exc, TimeoutError) and deadline.expired():
                assert timeout is not None
                raise HarnessTimeoutError("step", timeout) from None
            raise

        assert process.returncode is not None
        output = stdout[-MAX_OUTPUT:].decode("utf-8", errors="replace")
        elapsed = time.monotonic() - start
        logger.info("%s exited with %d after %.1fs", call.path.name, process.returncode, elapsed)
        return InvocationResult(return_code=process.returncode, output=output, elapsed=elapsed)


class JsScriptInvoker(Invoker):
    """`js-script` steps: run the file with a JavaScript runtime."""

    def __init__(self, runtime: str = JS_RUNTIME) -> None:
        self.runtime = runtime

    def argv(self, call: ScriptCall) -> tuple[str, ...]:
        return (self.runtime, str(call.path), *call.args)


class ShellScriptInvoker(Invoker):
    """`run` steps: execute the file directly, honouring its shebang."""

    def argv(self, call: ScriptCall) -> tuple[str, ...]:
        return (str(call.path), *call.args)


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    await process.wait()
