"""
Port allocation for spawned nodes.

Provides thread-safe allocation of network ports for node processes.
Each node gets its own p2p, RPC and Prometheus port.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Final

BASE_P2P_PORT: Final = 30333
"""Starting port for peer-to-peer connections."""

BASE_RPC_PORT: Final = 9944
"""Starting port for JSON-RPC servers."""

BASE_PROMETHEUS_PORT: Final = 19615
"""Starting port for Prometheus exporters."""


@dataclass(frozen=True, slots=True)
class NodePorts:
    """The ports assigned to one node."""

    p2p: int
    """Peer-to-peer listen port."""

    rpc: int
    """JSON-RPC port."""

    prometheus: int
    """Prometheus exporter port."""


@dataclass(slots=True)
class PortAllocator:
    """
    Thread-safe port allocator for node processes.

    Allocates sequential port ranges starting from configurable bases.
    Each node gets a unique triple of ports.
    """

    base_p2p: int = BASE_P2P_PORT
    """First p2p port handed out."""

    base_rpc: int = BASE_RPC_PORT
    """First RPC port handed out."""

    base_prometheus: int = BASE_PROMETHEUS_PORT
    """First Prometheus port handed out."""

    _counter: int = field(default=0)
    """Number of nodes allocated so far."""

    _lock: threading.Lock = field(default_factory=threading.Lock)
    """Thread lock for concurrent access."""

    def __post_init__(self) -> None:
        """Ranges must not overlap within the first thousand nodes."""
        bases = sorted((self.base_p2p, self.base_rpc, self.base_prometheus))
        if bases[1] - bases[0] < 1000 or bases[2] - bases[1] < 1000:
            raise ValueError(f"Port bases {bases} are closer than 1000 apart")

    def allocate(self) -> NodePorts:
        """
        Allocate the ports for one node.

        Returns:
            Unique p2p, RPC and Prometheus ports.
        """
        with self._lock:
            offset = self._counter
            self._counter += 1
        ports = NodePorts(
            p2p=self.base_p2p + offset,
            rpc=self.base_rpc + offset,
            prometheus=self.base_prometheus + offset,
        )
        if max(ports.p2p, ports.rpc, ports.prometheus) > 65535:
            raise ValueError(f"Port range exhausted after {offset} nodes")
        return ports

    def reset(self) -> None:
        """Reset counters to initial state."""
        with self._lock:
            self._counter = 0
