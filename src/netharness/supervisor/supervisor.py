"""
Process supervisor: spawns, monitors and tears down the nodes of a topology.

Lifecycle::

    supervisor = ProcessSupervisor(workdir, reporter=reporter)
    async with supervisor.running(topology) as registry:
        ...  # every node is up and reachable here
    # every started process has been stopped exactly once
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from netharness.metrics import nodes_launched
from netharness.topology import NodeRole, NodeSpec, Topology
from netharness.types import LaunchError

from .ports import NodePorts, PortAllocator
from .process import GRACE_PERIOD, NodeProcess
from .registry import NodeEndpoints, NodeHandle, NodeRegistry

if TYPE_CHECKING:
    from netharness.assertions import Reporter

logger = logging.getLogger(__name__)

READY_POLL_INTERVAL: Final = 0.25
"""Seconds between two readiness probes of a freshly spawned node."""

ROLE_ARGS: Final[Mapping[NodeRole, tuple[str, ...]]] = MappingProxyType(
    {
        NodeRole.VALIDATOR: (
            "--chain={chain}",
            "--name={name}",
            "--base-path={base_path}",
            "--validator",
            "--port={p2p_port}",
            "--rpc-port={rpc_port}",
            "--prometheus-port={prometheus_port}",
        ),
        NodeRole.COLLATOR: (
            "--chain={chain}",
            "--name={name}",
            "--base-path={base_path}",
            "--collator",
            "--port={p2p_port}",
            "--rpc-port={rpc_port}",
            "--prometheus-port={prometheus_port}",
        ),
    }
)
"""
Per-role argument templates, placed before the node's own arguments.

Placeholders: {name} {chain} {rpc_port} {p2p_port} {prometheus_port}
{base_path} {para_id}.
"""


def expand_args(template: Sequence[str], values: Mapping[str, object]) -> tuple[str, ...]:
    """
    Substitute placeholders in every argument.

    Raises:
        KeyError: If an argument names an unknown placeholder.
    """
    return tuple(arg.format_map(values) for arg in template)


class ProcessSupervisor:
    """
    Owns every node process of one run.

    The registry is written only here. Other components receive it as a
    read-only name -> endpoints mapping.
    """

    def __init__(
        self,
        workdir: Path,
        *,
        reporter: Reporter,
        ports: PortAllocator | None = None,
        role_args: Mapping[NodeRole, Sequence[str]] = ROLE_ARGS,
        grace_period: float = GRACE_PERIOD,
    ) -> None:
        self.workdir = workdir
        self.reporter = reporter
        self.ports = ports if ports is not None else PortAllocator()
        self.role_args = role_args
        self.grace_period = grace_period
        self.registry = NodeRegistry()
        self._handles: list[NodeHandle] = []
        self._started = False

    @property
    def handles(self) -> tuple[NodeHandle, ...]:
        """Started nodes, in launch order."""
        return tuple(self._handles)

    async def start(self, topology: Topology) -> NodeRegistry:
        """
        Spawn every node and wait until all are reachable.

        A failed or interrupted launch stops every process already started
        before the error propagates.

        Raises:
            LaunchError: If a binary is missing, a process exits early, or a
                node is not reachable within the startup timeout.
        """
        if self._started:
            raise RuntimeError("supervisor already started")
        self._started = True

        self.workdir.mkdir(parents=True, exist_ok=True)
        startup_timeout = topology.settings.startup_timeout

        try:
            for spec in topology:
                await self._spawn(spec)

            loop = asyncio.get_running_loop()
            deadline = loop.time() + startup_timeout
            for handle in self._handles:
                await self._await_ready(handle, deadline, startup_timeout)
        except BaseException:
            await self.stop()
            raise

        logger.info("All %d nodes ready", len(self._handles))
        return self.registry

    async def stop(self) -> None:
        """
        Stop every started process, newest first.

        Each process is signalled at most once, however often this is called.
        """
        handles = list(reversed(self._handles))
        if not handles:
            return
        results = await asyncio.gather(
            *(handle.process.stop(self.grace_period) for handle in handles),
            return_exceptions=True,
        )
        for handle, result in zip(handles, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("Failed to stop %s: %s", handle.spec.name, result)

    @asynccontextmanager
    async def running(self, topology: Topology) -> AsyncIterator[NodeRegistry]:
        """Scoped network: started on entry, torn down on every exit path."""
        registry = await self.start(topology)
        try:
            yield registry
        finally:
            await self.stop()

    def command_for(self, spec: NodeSpec, ports: NodePorts, base_path: Path) -> tuple[str, ...]:
        """
        Build the full argv of a node.

        Raises:
            LaunchError: If the command is empty or an argument uses an unknown placeholder.
        """
        binary = shlex.split(spec.command)
        if not binary:
            raise LaunchError(spec.name, "empty command")

        values = {
            "name": spec.name,
            "chain": spec.chain,
            "rpc_port": ports.rpc,
            "p2p_port": ports.p2p,
            "prometheus_port": ports.prometheus,
            "base_path": base_path,
            "para_id": "" if spec.para_id is None else spec.para_id,
        }
        template = tuple(self.role_args.get(spec.role, ())) + spec.args
        try:
            return tuple(binary) + expand_args(template, values)
        except (KeyError, IndexError, ValueError) as exc:
            raise LaunchError(spec.name, f"bad argument placeholder: {exc}") from exc

    async def _spawn(self, spec: NodeSpec) -> NodeHandle:
        ports = self.ports.allocate()
        base_path = self.workdir / spec.name
        base_path.mkdir(parents=True, exist_ok=True)

        process = NodeProcess(
            spec.name,
            self.command_for(spec, ports, base_path),
            log_path=self.workdir / f"{spec.name}.log",
            env=dict(spec.env),
            cwd=self.workdir,
        )
        handle = NodeHandle(
            spec=spec,
            ports=ports,
            base_path=base_path,
            process=process,
            endpoints=NodeEndpoints.for_ports(spec, ports),
        )

        # Registered before spawning so a partial launch is still torn down.
        self._handles.append(handle)
        await process.start()
        self.registry._register(handle)
        nodes_launched.inc()

        logger.debug("%s: %s", spec.name, " ".join(process.argv))
        return handle

    async def _await_ready(self, handle: NodeHandle, deadline: float, timeout: float) -> None:
        loop = asyncio.get_running_loop()
        name = handle.spec.name

        while True:
            if handle.process.returncode is not None:
                detail = (
                    f"exited with code {handle.process.returncode} before becoming ready"
                    f" (log: {handle.process.log_path})"
                )
                if tail := handle.process.tail(5):
                    detail = f"{detail}\n{tail}"
                raise LaunchError(name, detail)

            if await self.reporter.is_reachable(handle.endpoints):
                logger.info("%s ready at %s", name, handle.endpoints.metrics_url)
                return

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise LaunchError(name, f"not reachable within {timeout:g}s")
            await asyncio.sleep(min(READY_POLL_INTERVAL, remaining))
