"""
Registry of live nodes.

The supervisor is the only writer. Everything else sees a read-only
mapping from node name to `NodeEndpoints`.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path

from netharness.config import HOST
from netharness.topology import NodeRole, NodeSpec

from .ports import NodePorts
from .process import NodeProcess


@dataclass(frozen=True, slots=True)
class NodeEndpoints:
    """How other components reach a node."""

    name: str
    """Node name."""

    role: NodeRole
    """Validator or collator."""

    rpc_url: str
    """JSON-RPC endpoint."""

    metrics_url: str
    """Prometheus text endpoint."""

    @classmethod
    def for_ports(cls, spec: NodeSpec, ports: NodePorts, host: str = HOST) -> NodeEndpoints:
        return cls(
            name=spec.name,
            role=spec.role,
            rpc_url=f"http://{host}:{ports.rpc}",
            metrics_url=f"http://{host}:{ports.prometheus}/metrics",
        )


@dataclass(slots=True)
class NodeHandle:
    """Runtime reference to a live node process. Owned by the supervisor."""

    spec: NodeSpec
    """Static description from the topology."""

    ports: NodePorts
    """Allocated ports."""

    base_path: Path
    """Node data directory."""

    process: NodeProcess
    """The supervised OS process."""

    endpoints: NodeEndpoints
    """Published addresses."""


class NodeRegistry(Mapping[str, NodeEndpoints]):
    """Read-only view: node name -> endpoints, in launch order."""

    def __init__(self) -> None:
        self._handles: dict[str, NodeHandle] = {}

    def __getitem__(self, name: str) -> NodeEndpoints:
        return self._handles[name].endpoints

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def _register(self, handle: NodeHandle) -> None:
        if handle.spec.name in self._handles:
            raise ValueError(f"node '{handle.spec.name}' already registered")
        self._handles[handle.spec.name] = handle

