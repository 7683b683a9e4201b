"""Tests for the polling assertion engine."""

from __future__ import annotations

import asyncio

import pytest

from netharness.assertions import AssertionEngine
from netharness.dsl import Comparator, Comparison, IsUp, Reports
from tests.netharness.helpers import FakeReporter, make_endpoints

pytestmark = pytest.mark.timeout(10)

HEIGHT_AT_LEAST_6 = Reports("block height", Comparison(Comparator.AT_LEAST, 6))


class TestAwaitCondition:
    """Tests for polling a single predicate on a single node."""

    async def test_immediate_pass(self) -> None:
        """A predicate that already holds passes on the first read."""
        reporter = FakeReporter({("alice", "block height"): 10})
        engine = AssertionEngine(reporter, interval=1.0)

        result = await engine.await_condition(
            make_endpoints("alice"), HEIGHT_AT_LEAST_6, 30, step_id="step-1"
        )

        assert result.passed
        assert result.observed == 10
        assert result.attempts == 1
        assert result.elapsed < 0.5
        assert result.expected == "block height >= 6"

    async def test_passes_once_value_grows(self) -> None:
        """Polling continues until the value satisfies the comparison."""
        reporter = FakeReporter({("alice", "block height"): [None, 2, 4, 6, 8]})
        engine = AssertionEngine(reporter, interval=0.01)

        result = await engine.await_condition(
            make_endpoints("alice"), HEIGHT_AT_LEAST_6, 5, step_id="step-1"
        )

        assert result.passed
        assert result.observed == 6
        assert result.attempts == 4

    async def test_timeout_not_before_deadline(self) -> None:
        """A predicate that never holds times out no earlier than the deadline."""
        reporter = FakeReporter({("alice", "block height"): 3})
        engine = AssertionEngine(reporter, interval=0.02)

        result = await engine.await_condition(
            make_endpoints("alice"), HEIGHT_AT_LEAST_6, 0.3, step_id="step-1"
        )

        assert not result.passed
        assert result.timed_out
        assert result.reachable
        assert result.observed == 3
        assert 0.3 - 0.01 <= result.elapsed < 0.3 + 0.02 + 0.2
        assert result.attempts > 1

    async def test_missing_key_keeps_polling(self) -> None:
        """A key the node does not report yet is retried, not failed."""
        reporter = FakeReporter()
        engine = AssertionEngine(reporter, interval=0.02)

        result = await engine.await_condition(
            make_endpoints("alice"), HEIGHT_AT_LEAST_6, 0.2, step_id="step-1"
        )

        assert result.timed_out
        assert result.observed is None
        assert len(reporter.reads) > 1

    async def test_unreachable_is_retried(self) -> None:
        """An unreachable node is retried until it answers."""
        reporter = FakeReporter({("alice", "block height"): 7}, unreachable={"alice"})
        engine = AssertionEngine(reporter, interval=0.02)

        async def recover() -> None:
            await asyncio.sleep(0.1)
            reporter.unreachable.clear()

        recovery = asyncio.create_task(recover())
        result = await engine.await_condition(
            make_endpoints("alice"), HEIGHT_AT_LEAST_6, 5, step_id="step-1"
        )
        await recovery

        assert result.passed
        assert result.attempts > 1

    async def test_unreachable_until_deadline(self) -> None:
        """A node that never answers times out as unreachable."""
        reporter = FakeReporter(unreachable={"alice"})
        engine = AssertionEngine(reporter, interval=0.02)

        result = await engine.await_condition(
            make_endpoints("alice"), HEIGHT_AT_LEAST_6, 0.2, step_id="step-1"
        )

        assert result.timed_out
        assert not result.reachable

    async def test_unreachable_keeps_last_observed(self) -> None:
        """A read failure does not erase the last value seen."""
        reporter = FakeReporter({("alice", "block height"): 4})
        engine = AssertionEngine(reporter, interval=0.02)

        async def disconnect() -> None:
            await asyncio.sleep(0.05)
            reporter.unreachable.add("alice")

        task = asyncio.create_task(disconnect())
        result = await engine.await_condition(
            make_endpoints("alice"), HEIGHT_AT_LEAST_6, 0.2, step_id="step-1"
        )
        await task

        assert result.observed == 4
        assert not result.reachable

    async def test_is_up(self) -> None:
        """`is up` holds once the node answers."""
        reporter = FakeReporter()
        engine = AssertionEngine(reporter, interval=0.02)

        result = await engine.await_condition(make_endpoints("alice"), IsUp(), 1, step_id="s")

        assert result.passed
        assert result.observed == "up"
        assert reporter.probes == ["alice"]

    async def test_is_down(self) -> None:
        """`is up` times out on a node that never answers."""
        reporter = FakeReporter(unreachable={"alice"})
        engine = AssertionEngine(reporter, interval=0.02)

        result = await engine.await_condition(make_endpoints("alice"), IsUp(), 0.1, step_id="s")

        assert result.timed_out
        assert result.observed == "down"

    async def test_cancellation_propagates(self) -> None:
        """Cancelling a poll is not reported as a timeout."""
        engine = AssertionEngine(FakeReporter(), interval=0.02)
        task = asyncio.create_task(
            engine.await_condition(make_endpoints("alice"), HEIGHT_AT_LEAST_6, 5, step_id="s")
        )
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestBackoff:
    """Tests for the polling interval."""

    async def test_backoff_spaces_reads(self) -> None:
        """Each wait is longer than the previous one, up to the ceiling."""
        reporter = FakeReporter()
        engine = AssertionEngine(reporter, interval=0.02, max_interval=0.08, backoff=2.0)

        await engine.await_condition(
            make_endpoints("alice"), HEIGHT_AT_LEAST_6, 0.5, step_id="s"
        )

        times = [read[2] for read in reporter.reads]
        gaps = [later - earlier for earlier, later in zip(times, times[1:], strict=False)]
        assert gaps[1] > gaps[0]
        assert max(gaps) < 0.08 + 0.05

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"interval": 0}, "interval must be positive"),
            ({"backoff": 0.5}, "backoff must be at least 1.0"),
        ],
    )
    def test_invalid_settings(self, kwargs: dict[str, float], message: str) -> None:
        """Non-positive intervals and shrinking backoff are rejected."""
        with pytest.raises(ValueError, match=message):
            AssertionEngine(FakeReporter(), **kwargs)
