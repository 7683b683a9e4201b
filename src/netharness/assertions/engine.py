"""
Assertion engine: poll a node until a predicate holds or the deadline passes.

Failure nuance while polling:

- Node unreachable: retried silently
- Predicate false: retried until the deadline
- Deadline exceeded: terminal, reported as a timed-out result
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from netharness.config import MAX_POLL_INTERVAL, POLL_INTERVAL
from netharness.dsl import IsUp, Reports, Value
from netharness.supervisor import NodeEndpoints
from netharness.types import NodeUnreachable

from .reporter import Reporter

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AssertionResult:
    """Outcome of waiting for one predicate on one node."""

    step_id: str
    """Step the poll belonged to."""

    node: str
    """Node that was polled."""

    passed: bool
    """Whether the predicate held before the deadline."""

    observed: Value | None
    """Last value read, None if the node never reported one."""

    expected: str
    """Human-readable expectation, for reports."""

    elapsed: float
    """Seconds from the first poll to the outcome."""

    attempts: int
    """Number of reads performed."""

    timed_out: bool = False
    """Whether the deadline ended the poll."""

    reachable: bool = True
    """Whether the last read reached the node."""


class AssertionEngine:
    """
    Polls a `Reporter` with optional exponential backoff.

    The first read happens immediately, so a predicate that already holds
    passes with an elapsed time close to zero.
    """

    def __init__(
        self,
        reporter: Reporter,
        *,
        interval: float = POLL_INTERVAL,
        max_interval: float = MAX_POLL_INTERVAL,
        backoff: float = 1.0,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if backoff < 1.0:
            raise ValueError(f"backoff must be at least 1.0, got {backoff}")
        self.reporter = reporter
        self.interval = interval
        self.max_interval = max(interval, max_interval)
        self.backoff = backoff

    async def await_condition(
        self,
        node: NodeEndpoints,
        predicate: Reports | IsUp,
        timeout: float,
        *,
        step_id: str,
    ) -> AssertionResult:
        """
        Wait until the predicate holds on the node.

        Never returns a timed-out result before `timeout` seconds have passed.
        Cancellation propagates to the caller.
        """
        loop = asyncio.get_running_loop()
        start = loop.time()
        expected = str(predicate)
        observed: Value | None = None
        reachable = False
        attempts = 0
        interval = self.interval

        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                while True:
                    attempts += 1
                    holds, observed, reachable = await self._check(node, predicate, observed)
                    if holds:
                        logger.debug("%s on %s: %s holds", step_id, node.name, expected)
                        return AssertionResult(
                            step_id=step_id,
                            node=node.name,
                            passed=True,
                            observed=observed,
                            expected=expected,
                            elapsed=loop.time() - start,
                            attempts=attempts,
                            reachable=reachable,
                        )
                    await asyncio.sleep(interval)
                    interval = min(interval * self.backoff, self.max_interval)
        except TimeoutError:
            if not deadline.expired():
                raise

        logger.info(
            "%s on %s: %s did not hold within %gs (last observed %r)",
            step_id,
            node.name,
            expected,
            timeout,
            observed,
        )
        return AssertionResult(
            step_id=step_id,
            node=node.name,
            passed=False,
            observed=observed,
            expected=expected,
            elapsed=loop.time() - start,
            attempts=attempts,
            timed_out=True,
            reachable=reachable,
        )

    async def _check(
        self,
        node: NodeEndpoints,
        predicate: Reports | IsUp,
        previous: Value | None,
    ) -> tuple[bool, Value | None, bool]:
        """One read: (holds, observed, reachable)."""
        match predicate:
            case IsUp():
                up = await self.reporter.is_reachable(node)
                return up, "up" if up else "down", up
            case Reports(key=key, comparison=comparison):
                try:
                    value = await self.reporter.read(node, key)
                except NodeUnreachable as exc:
                    logger.debug("%s", exc)
                    return False, previous, False
                return value is not None and comparison.holds(value), value, True
            case _:
                raise TypeError(f"cannot poll for {predicate!r}")
