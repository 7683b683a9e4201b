"""
Run orchestration: test file in, report out.

Wires the components together in order:

1. Parse the test file and load the network file it names
2. Resolve every step target against the topology (nothing is launched yet)
3. Start the network under the supervisor
4. Execute the steps
5. Tear the network down, whatever happened
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

from netharness.assertions import AssertionEngine, PrometheusReporter, Reporter
from netharness.bridge import ScriptBridge
from netharness.config import POLL_INTERVAL
from netharness.dsl import Scenario, load_scenario
from netharness.executor import Report, StepExecutor
from netharness.supervisor import PortAllocator, ProcessSupervisor
from netharness.topology import Topology, load_topology

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Plan:
    """A validated run: resolved steps plus the network they run against."""

    scenario: Scenario
    """Steps with resolved targets and dependency edges."""

    topology: Topology
    """Network to launch."""

    def describe(self) -> str:
        """Human-readable outline, printed by dry runs."""
        lines = [f"Network: {self.scenario.network}"]
        for node in self.topology:
            para = f" para {node.para_id}" if node.para_id is not None else ""
            lines.append(f"  {node.name} ({node.role}{para}): {node.command} on {node.chain}")
        lines.append(f"Steps ({self.scenario.concurrency}):")
        for step in self.scenario.steps:
            after = f" after {', '.join(step.depends_on)}" if step.depends_on else ""
            targets = ", ".join(step.targets)
            lines.append(f"  {step.id} [{step.kind}] on {targets}{after}: {step.text}")
        return "\n".join(lines)


def prepare(test_file: Path | str) -> Plan:
    """
    Parse and validate a test file and its network without side effects.

    Raises:
        ConfigError: If either file is malformed or a step names an unknown target.
    """
    scenario = load_scenario(test_file)
    topology = load_topology(scenario.network)
    resolved = scenario.resolve(topology)
    logger.info(
        "Loaded %d steps against %d nodes (%d validators, %d collators)",
        len(resolved.steps),
        len(topology),
        len(topology.validators),
        len(topology.collators),
    )
    return Plan(scenario=resolved, topology=topology)


async def execute(
    plan: Plan,
    *,
    workdir: Path | None = None,
    run_timeout: float | None = None,
    reporter: Reporter | None = None,
    bridge: ScriptBridge | None = None,
    ports: PortAllocator | None = None,
    poll_interval: float = POLL_INTERVAL,
) -> Report:
    """
    Launch the network, run every step and tear the network down.

    The run deadline is `run_timeout` if given, else the network file's
    `settings.timeout`, else unlimited.

    Raises:
        LaunchError: If the network cannot be started. Nothing stays running.
    """
    if workdir is None:
        workdir = Path(tempfile.mkdtemp(prefix="netharness-"))
    logger.info("Node logs and data in %s", workdir)

    timeout = run_timeout if run_timeout is not None else plan.topology.settings.timeout
    if reporter is None:
        async with PrometheusReporter() as owned:
            return await _launch_and_run(
                plan, workdir, timeout, owned, bridge, ports, poll_interval
            )
    return await _launch_and_run(plan, workdir, timeout, reporter, bridge, ports, poll_interval)


async def _launch_and_run(
    plan: Plan,
    workdir: Path,
    timeout: float | None,
    reporter: Reporter,
    bridge: ScriptBridge | None,
    ports: PortAllocator | None,
    poll_interval: float,
) -> Report:
    supervisor = ProcessSupervisor(workdir, reporter=reporter, ports=ports)
    async with supervisor.running(plan.topology) as registry:
        executor = StepExecutor(
            registry,
            engine=AssertionEngine(reporter, interval=poll_interval),
            bridge=bridge if bridge is not None else ScriptBridge(),
            run_timeout=timeout,
        )
        return await executor.run(plan.scenario)
