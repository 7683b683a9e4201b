"""Dispatch script steps to the invoker registered for their keyword."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from netharness.dsl import ScriptCall
from netharness.metrics import script_invocations
from netharness.supervisor import NodeEndpoints
from netharness.types import InvocationError

from .invokers import InvocationResult, Invoker, JsScriptInvoker, ShellScriptInvoker

logger = logging.getLogger(__name__)


def default_invokers() -> dict[str, Invoker]:
    """The built-in invokers, keyed by test-file keyword."""
    return {
        "js-script": JsScriptInvoker(),
        "run": ShellScriptInvoker(),
    }


class ScriptBridge:
    """Selects an invoker by step keyword and runs the script against a node."""

    def __init__(self, invokers: Mapping[str, Invoker] | None = None) -> None:
        self.invokers = dict(invokers) if invokers is not None else default_invokers()

    async def invoke(
        self,
        node: NodeEndpoints | None,
        call: ScriptCall,
        *,
        timeout: float | None = None,
    ) -> InvocationResult:
        """
        Run a script call.

        Raises:
            InvocationError: If no invoker handles the keyword or the script cannot start.
            HarnessTimeoutError: If the script outlives `timeout`.
        """
        invoker = self.invokers.get(call.invoker)
        if invoker is None:
            raise InvocationError(call.path, f"no invoker registered for '{call.invoker}'")

        logger.debug(
            "Invoking %s with %s against %s",
            call.path,
            type(invoker).__name__,
            node.name if node is not None else "no node",
        )
        script_invocations.labels(invoker=call.invoker).inc()
        return await invoker.invoke(node, call, timeout=timeout)
